"""A coarse timing wheel that signals events after a number of ticks."""

from __future__ import annotations

import threading
import time
from datetime import datetime
from typing import List, Optional

__all__ = ["Wheel"]


def _to_ns(seconds: float) -> int:
    return int(round(seconds * 1e9))


class Wheel:
    """A ring of *buckets* slots advanced every *span* seconds.

    ``after`` returns a ``threading.Event`` set when its slot is reached; all
    timeouts that fall in the same slot share one event.
    """

    def __init__(self, span: float, buckets: int) -> None:
        if span <= 0:
            raise ValueError("span must be positive")
        if buckets < 1:
            raise ValueError("buckets must be positive")

        self.span = span
        self.period = span * buckets
        self._lock = threading.Lock()
        self._ring: List[Optional[threading.Event]] = [None] * buckets
        self._index = 0
        self._now = datetime.now().astimezone()
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._tick_loop, daemon=True)
        self._thread.start()

    def _tick_loop(self) -> None:
        next_at = time.monotonic() + self.span
        while not self._stopped.wait(max(0.0, next_at - time.monotonic())):
            with self._lock:
                self._now = datetime.now().astimezone()
                notify = self._ring[self._index]
                self._ring[self._index] = None
                self._index = (self._index + 1) % len(self._ring)
            if notify is not None:
                notify.set()

            next_at += self.span
            current = time.monotonic()
            if next_at <= current:
                # a slow tick: skip the missed ones instead of bursting
                next_at = current + self.span

    def stop(self) -> None:
        """Stop ticking; events not yet set will never be set."""
        self._stopped.set()

    def after(self, timeout: float) -> threading.Event:
        """Return an event set roughly *timeout* seconds from now."""
        if timeout < 0:
            raise ValueError("timeout must not be negative")
        if timeout >= self.period:
            raise ValueError("timeout over ring's life period")

        pos = _to_ns(timeout) // _to_ns(self.span)
        if pos > 0:
            pos -= 1

        with self._lock:
            pos = (self._index + pos) % len(self._ring)
            event = self._ring[pos]
            if event is None:
                event = threading.Event()
                self._ring[pos] = event
            return event

    def now(self) -> datetime:
        """Return the time of the latest tick, or of creation before any tick."""
        with self._lock:
            return self._now

    def __enter__(self) -> "Wheel":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
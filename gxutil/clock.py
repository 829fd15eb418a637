"""Process-wide timer functions backed by one shared ``TimerWheel``.

Durations are whole nanoseconds. A duration that is not positive gives
``None`` (or, for ``sleep``, an immediate return) instead of a timer.
"""

from __future__ import annotations

import queue
import threading
from datetime import datetime
from typing import Callable, Optional

from .timerwheel import Ticker, Timer, TimerWheel

__all__ = [
    "init_default_timer_wheel",
    "get_default_timer_wheel",
    "now",
    "after",
    "sleep",
    "after_func",
    "new_timer",
    "new_ticker",
    "tick_func",
    "tick",
]

_default_wheel: Optional[TimerWheel] = None
_default_lock = threading.Lock()


def init_default_timer_wheel() -> TimerWheel:
    """Create the shared timer wheel once and return it."""
    global _default_wheel
    with _default_lock:
        if _default_wheel is None:
            _default_wheel = TimerWheel()
        return _default_wheel


def get_default_timer_wheel() -> Optional[TimerWheel]:
    """Return the shared timer wheel, or ``None`` before it is created."""
    return _default_wheel


def _wheel() -> TimerWheel:
    wheel = _default_wheel
    if wheel is None:
        wheel = init_default_timer_wheel()
    return wheel


def now() -> datetime:
    """Return the time of the shared wheel's latest tick."""
    return _wheel().now()


def after(d: int) -> Optional["queue.Queue[datetime]"]:
    """Return a channel receiving the current time after *d* ns."""
    if d <= 0:
        return None
    return _wheel().after(d)


def sleep(d: int) -> None:
    """Block for at least about *d* ns; return at once if *d* is not positive."""
    if d <= 0:
        return
    _wheel().sleep(d)


def after_func(d: int, func: Callable[[], object]) -> Optional[Timer]:
    """Call *func* on a thread of its own after *d* ns; the timer can cancel it."""
    if d <= 0:
        return None
    return _wheel().after_func(d, func)


def new_timer(d: int) -> Optional[Timer]:
    """Return a timer that puts the current time on its channel after *d* ns."""
    if d <= 0:
        return None
    return _wheel().new_timer(d)


def new_ticker(d: int) -> Optional[Ticker]:
    """Return a ticker putting the current time on its channel every *d* ns."""
    if d <= 0:
        return None
    return _wheel().new_ticker(d)


def tick_func(d: int, func: Callable[[], object]) -> Optional[Ticker]:
    """Call *func* on a thread of its own every *d* ns."""
    if d <= 0:
        return None
    return _wheel().tick_func(d, func)


def tick(d: int) -> Optional["queue.Queue[datetime]"]:
    """Return the channel of a new ticker with period *d* ns."""
    if d <= 0:
        return None
    return _wheel().tick(d)
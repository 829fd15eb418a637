"""A hierarchical timer wheel driving one-shot timers and tickers.

Durations are whole nanoseconds, as produced by the helpers in
``gxutil.timeutil``. The wheel advances every 10 milliseconds on a thread of
its own, so timers fire with that accuracy.
"""

from __future__ import annotations

import bisect
import enum
import itertools
import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, List, Optional, Tuple

from .safego import go_safely
from .timeutil import HOUR, MILLISECOND, MINUTE, SECOND, unix_nano_to_time

__all__ = [
    "TimerChannelClosedError",
    "TimerType",
    "TimerFunc",
    "Timer",
    "Ticker",
    "TimerWheel",
    "MIN_TICKER_INTERVAL",
]

_log = logging.getLogger(__name__)

MIN_TICKER_INTERVAL = 10 * MILLISECOND
"""The wheel's tick, and so its accuracy, in nanoseconds."""

_MAX_HOUR = 24
_LEVELS = 5
_LIMIT = (1000, 60, 60, _MAX_HOUR, 31)
_LEVEL_NS = (MILLISECOND, SECOND, MINUTE, HOUR, _MAX_HOUR * HOUR)

_ids = itertools.count(1)
_ids_lock = threading.Lock()


def _next_id() -> int:
    with _ids_lock:
        return next(_ids)


# The second level is sized in minutes as well, so it is never chosen on
# insertion; timers under a minute go straight to the millisecond level.
def _second_num(expire: int) -> int:
    return expire // MINUTE


def _minute_num(expire: int) -> int:
    return expire // MINUTE


def _hour_num(expire: int) -> int:
    return expire // HOUR


def _day_num(expire: int) -> int:
    return expire // (_MAX_HOUR * HOUR)


class TimerChannelClosedError(RuntimeError):
    """Raised when a timer is added to or changed on a stopped wheel."""

    def __init__(self, message: str = "timer channel closed") -> None:
        super().__init__(message)


class TimerType(enum.IntEnum):
    """Whether a timer fires once or repeatedly."""

    ONCE = 1 << 0
    LOOP = 1 << 1


TimerFunc = Callable[[int, datetime, Any], object]
"""Called as ``func(timer_id, expire, arg)``; raising closes the timer."""


@dataclass(eq=False)
class _TimerNode:
    id: int
    trig: int
    typ: TimerType = TimerType.ONCE
    period: int = 0
    func: Optional[TimerFunc] = None
    arg: Any = None


class _Action(enum.Enum):
    ADD = 1
    DELETE = 2
    RESET = 3


_STOP = object()


@dataclass
class Timer:
    """A handle on a timer in a ``TimerWheel``.

    ``channel`` receives the fire time for timers made by ``new_timer``; it
    holds at most one value and later values are dropped while it is full.
    """

    id: int
    channel: Optional["queue.Queue[datetime]"] = None
    _wheel: Optional["TimerWheel"] = field(default=None, repr=False)

    def reset(self, d: int) -> None:
        """Make the timer expire *d* nanoseconds after it was started.

        A non-positive *d* is ignored.
        """
        if d <= 0:
            return
        if self._wheel is None:
            raise RuntimeError("time: Stop called on uninitialized Timer")
        try:
            self._wheel._reset_timer(self, d)
        except TimerChannelClosedError:
            pass

    def stop(self) -> None:
        """Prevent the timer from firing; it cannot be used afterwards."""
        if self._wheel is None:
            raise RuntimeError("time: Stop called on uninitialized Timer")
        try:
            self._wheel._delete_timer(self)
        except TimerChannelClosedError:
            pass
        self._wheel = None


@dataclass
class Ticker(Timer):
    """A timer that fires repeatedly with a fixed period."""

    def reset(self, d: int) -> None:
        """Change the ticker's period to *d* nanoseconds; ignore non-positive *d*."""
        if d <= 0:
            return
        super().reset(d)

    def stop(self) -> None:
        """Turn the ticker off; no more ticks are delivered."""
        super().stop()


def _send_time(_timer_id: int, expire: datetime, channel: "queue.Queue[datetime]") -> None:
    try:
        channel.put_nowait(expire)
    except queue.Full:
        pass


def _go_func(_timer_id: int, _expire: datetime, func: Callable[[], object]) -> None:
    go_safely(func)


class TimerWheel:
    """Timers kept on five wheels of milliseconds, seconds, minutes, hours and days.

    All changes go through one queue consumed by the wheel's thread, so they
    take effect in the order they were made.
    """

    def __init__(self) -> None:
        self._cur_time = time.time_ns()
        self._clock = self._cur_time
        self._start = self._clock
        self._number = 0
        self._hand = [0] * _LEVELS
        self._slots: List[List[_TimerNode]] = [[] for _ in range(_LEVELS)]
        self._enabled = True
        self._stop_lock = threading.Lock()
        self._actions: "queue.Queue[Any]" = queue.Queue()
        self._thread = threading.Thread(target=self._loop, daemon=True)
        self._thread.start()

    # ----- the wheel's thread -----

    def _loop(self) -> None:
        interval = MIN_TICKER_INTERVAL / SECOND
        next_tick = time.monotonic() + interval
        while self._enabled:
            timeout = next_tick - time.monotonic()
            if timeout > 0:
                try:
                    item = self._actions.get(timeout=timeout)
                except queue.Empty:
                    item = None
                if item is _STOP:
                    break
                if item is not None:
                    self._apply(*item)
                    continue

            current = time.monotonic()
            next_tick += interval
            if next_tick <= current:
                next_tick = current + interval

            now = time.time_ns()
            self._cur_time = now
            if self._timer_update(now) == 0:
                self._run()
        _log.info("the timeWheel runner exit, current timer node num:%d", self._number)

    def _apply(self, action: _Action, node: _TimerNode) -> None:
        if action is _Action.DELETE:
            if self._delete_node(node.id):
                self._number -= 1
        elif action is _Action.RESET:
            self._reset_node(node.id, node.period)
        else:
            self._number += 1
            self._insert_node(node)

    def _run(self) -> None:
        slot = self._slots[0]
        clock = self._clock
        reinsert: List[_TimerNode] = []
        while slot and slot[0].trig <= clock:
            node = slot.pop(0)
            try:
                node.func(node.id, unix_nano_to_time(clock), node.arg)
                keep = node.typ is TimerType.LOOP
            except Exception:
                _log.exception("timer %d function failed, the timer is closed", node.id)
                keep = False
            if keep:
                reinsert.append(node)
            else:
                self._number -= 1

        for node in reinsert:
            node.trig += node.period
            self._insert_node(node)

    def _find(self, timer_id: int) -> Optional[Tuple[int, int]]:
        for level, slot in enumerate(self._slots):
            for pos, node in enumerate(slot):
                if node.id == timer_id:
                    return level, pos
        return None

    def _delete_node(self, timer_id: int) -> bool:
        found = self._find(timer_id)
        if found is None:
            return False
        level, pos = found
        del self._slots[level][pos]
        return True

    def _reset_node(self, timer_id: int, period: int) -> None:
        found = self._find(timer_id)
        if found is None:
            return
        level, pos = found
        node = self._slots[level].pop(pos)
        node.trig += period - node.period
        node.period = period
        self._insert_node(node)

    def _delta_diff(self, clock: int) -> int:
        hand_time = sum(hand * unit for hand, unit in zip(self._hand, _LEVEL_NS))
        return clock - self._start - hand_time

    def _insert_node(self, node: _TimerNode) -> None:
        diff = node.trig - self._clock
        if diff <= 0:
            level = 0
        elif _day_num(diff) != 0:
            level = 4
        elif _hour_num(diff) != 0:
            level = 3
        elif _minute_num(diff) != 0:
            level = 2
        elif _second_num(diff) != 0:
            level = 1
        else:
            level = 0
        bisect.insort_right(self._slots[level], node, key=lambda n: n.trig)

    def _cascade(self, level: int) -> None:
        slot = self._slots[level]
        clock = self._clock
        guard = False
        while slot:
            node = slot[0]
            diff = node.trig - clock
            if node.trig <= clock:
                guard = False
            elif level == 1:
                guard = _second_num(diff) > 0
            elif level == 2:
                guard = _minute_num(diff) > 0
            elif level == 3:
                guard = _hour_num(diff) > 0
            elif level == 4:
                guard = _day_num(diff) > 0
            if guard:
                break
            slot.pop(0)
            self._insert_node(node)

    def _timer_update(self, now: int) -> int:
        clock = self._clock
        diff = now - clock + self._delta_diff(clock)
        if diff < MIN_TICKER_INTERVAL * 0.7:
            return -1
        self._clock = now

        inc = [0] * (_LEVELS + 1)
        for level in reversed(range(_LEVELS)):
            inc[level], diff = divmod(diff, _LEVEL_NS[level])

        max_level = 0
        for level in range(_LEVELS):
            if inc[level]:
                self._hand[level] += inc[level]
                carry, self._hand[level] = divmod(self._hand[level], _LIMIT[level])
                inc[level + 1] += carry
                max_level = level + 1

        for level in range(1, max_level):
            self._cascade(level)
        return 0

    # ----- public interface -----

    def timer_number(self) -> int:
        """Return the number of timers held by the wheel."""
        return self._number

    def now(self) -> datetime:
        """Return the time of the wheel's latest tick."""
        return unix_nano_to_time(self._cur_time)

    def _submit(self, action: _Action, node: _TimerNode) -> None:
        if not self._enabled:
            raise TimerChannelClosedError()
        self._actions.put((action, node))

    def _add_node(self, func: TimerFunc, typ: TimerType, period: int, arg: Any) -> int:
        node = _TimerNode(
            id=_next_id(),
            trig=self._cur_time + int(period),
            typ=TimerType(typ),
            period=int(period),
            func=func,
            arg=arg,
        )
        self._submit(_Action.ADD, node)
        return node.id

    def add_timer(self, func: TimerFunc, typ: TimerType, period: int, arg: Any = None) -> Timer:
        """Add a timer calling ``func(timer_id, expire, arg)`` after *period* nanoseconds.

        A ``LOOP`` timer fires every *period* until *func* raises or it is
        stopped. *func* runs on the wheel's thread and should return quickly.
        Raises ``TimerChannelClosedError`` once the wheel is stopped.
        """
        return Timer(id=self._add_node(func, typ, period, arg), _wheel=self)

    def _delete_timer(self, timer: Timer) -> None:
        self._submit(_Action.DELETE, _TimerNode(id=timer.id, trig=0))

    def _reset_timer(self, timer: Timer, d: int) -> None:
        self._submit(_Action.RESET, _TimerNode(id=timer.id, trig=0, period=int(d)))

    def stop(self) -> None:
        """Stop the wheel; pending timers never fire."""
        with self._stop_lock:
            if not self._enabled:
                return
            self._enabled = False
            self._actions.put(_STOP)

    def close(self) -> None:
        """Stop the wheel and wait for its thread to end."""
        self.stop()
        self._thread.join()

    def new_timer(self, d: int) -> Optional[Timer]:
        """Return a timer that puts the current time on its channel after *d* ns.

        Returns ``None`` when the wheel is stopped.
        """
        channel: "queue.Queue[datetime]" = queue.Queue(maxsize=1)
        try:
            timer_id = self._add_node(_send_time, TimerType.ONCE, d, channel)
        except TimerChannelClosedError as exc:
            _log.error("addTimer fail, err is %s", exc)
            return None
        return Timer(id=timer_id, channel=channel, _wheel=self)

    def after(self, d: int) -> "queue.Queue[datetime]":
        """Return a channel that receives the current time after *d* ns."""
        timer = self.new_timer(d)
        if timer is None:
            raise TimerChannelClosedError()
        return timer.channel

    def after_func(self, d: int, func: Callable[[], object]) -> Optional[Timer]:
        """Call *func* on a thread of its own after *d* ns; ``None`` if stopped."""
        try:
            return self.add_timer(_go_func, TimerType.ONCE, d, func)
        except TimerChannelClosedError:
            return None

    def sleep(self, d: int) -> None:
        """Block for at least about *d* ns, to the wheel's accuracy."""
        self.after(d).get()

    def new_ticker(self, d: int) -> Optional[Ticker]:
        """Return a ticker putting the time on its channel every *d* ns.

        Ticks are dropped while the channel is full. Returns ``None`` when the
        wheel is stopped.
        """
        channel: "queue.Queue[datetime]" = queue.Queue(maxsize=1)
        try:
            timer_id = self._add_node(_send_time, TimerType.LOOP, d, channel)
        except TimerChannelClosedError as exc:
            _log.error("addTimer fail, err is %s", exc)
            return None
        return Ticker(id=timer_id, channel=channel, _wheel=self)

    def tick_func(self, d: int, func: Callable[[], object]) -> Optional[Ticker]:
        """Call *func* on a thread of its own every *d* ns; ``None`` if stopped."""
        try:
            timer_id = self._add_node(_go_func, TimerType.LOOP, d, func)
        except TimerChannelClosedError as exc:
            _log.error("addTimer fail, err is %s", exc)
            return None
        return Ticker(id=timer_id, _wheel=self)

    def tick(self, d: int) -> "queue.Queue[datetime]":
        """Return the channel of a new ticker with period *d* ns."""
        ticker = self.new_ticker(d)
        if ticker is None:
            raise TimerChannelClosedError()
        return ticker.channel

    def __enter__(self) -> "TimerWheel":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
"""Duration helpers, Unix time conversions and a simple stopwatch."""

from __future__ import annotations

import calendar
import re
import threading
import time as _time
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

__all__ = [
    "CountWatch",
    "day_duration",
    "hour_duration",
    "minute_duration",
    "second_duration",
    "millisecond_duration",
    "microsecond_duration",
    "nanosecond_duration",
    "ymd",
    "ymd_utc",
    "ymd_print",
    "future",
    "unix_to_time",
    "unix_nano_to_time",
    "unix_string_to_time",
    "time_to_unix",
    "time_to_unix_nano",
    "get_end_time",
]

NANOSECOND = 1
MICROSECOND = 1_000 * NANOSECOND
MILLISECOND = 1_000 * MICROSECOND
SECOND = 1_000 * MILLISECOND
MINUTE = 60 * SECOND
HOUR = 60 * MINUTE

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_DECIMAL_INT = re.compile(r"[+-]?[0-9]+")


class CountWatch:
    """A stopwatch measuring elapsed nanoseconds on a monotonic clock."""

    def __init__(self) -> None:
        self._start: Optional[int] = None

    def start(self) -> None:
        """Start the watch; a watch already started keeps its start time."""
        if self._start is None:
            self._start = _time.monotonic_ns()

    def reset(self) -> None:
        """Restart the watch from now."""
        self._start = _time.monotonic_ns()

    def count(self) -> int:
        """Return the nanoseconds elapsed since the watch was started."""
        if self._start is None:
            raise RuntimeError("the watch has not been started")
        return _time.monotonic_ns() - self._start


def day_duration(days: float) -> int:
    """Return *days* as whole nanoseconds, truncated toward zero."""
    return int(days * 24 * HOUR)


def hour_duration(hours: float) -> int:
    """Return *hours* as whole nanoseconds, truncated toward zero."""
    return int(hours * HOUR)


def minute_duration(minutes: float) -> int:
    """Return *minutes* as whole nanoseconds, truncated toward zero."""
    return int(minutes * MINUTE)


def second_duration(seconds: float) -> int:
    """Return *seconds* as whole nanoseconds, truncated toward zero."""
    return int(seconds * SECOND)


def millisecond_duration(ms: float) -> int:
    """Return *ms* milliseconds as whole nanoseconds, truncated toward zero."""
    return int(ms * MILLISECOND)


def microsecond_duration(us: float) -> int:
    """Return *us* microseconds as whole nanoseconds, truncated toward zero."""
    return int(us * MICROSECOND)


def nanosecond_duration(ns: float) -> int:
    """Return *ns* as whole nanoseconds, truncated toward zero."""
    return int(ns * NANOSECOND)


def ymd(year: int, month: int, day: int, hour: int, minute: int, sec: int) -> int:
    """Return the Unix time of a local date and time.

    Out-of-range fields are normalised, so month 13 is January of the next year.
    """
    return int(_time.mktime((year, month, day, hour, minute, sec, 0, 0, -1)))


def ymd_utc(year: int, month: int, day: int, hour: int, minute: int, sec: int) -> int:
    """Return the Unix time of a UTC date and time, normalising out-of-range fields."""
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return calendar.timegm((year, month, day, hour, minute, sec, 0, 0, 0))


def ymd_print(sec: int, nsec: int) -> str:
    """Format a Unix time as local ``YYYY-MM-DD hh:mm:ss`` with up to five fraction digits.

    Trailing zeros of the fraction are dropped, and the dot with them when
    nothing is left.
    """
    whole, frac_ns = divmod(sec * SECOND + nsec, SECOND)
    moment = datetime.fromtimestamp(whole)
    fraction = f"{frac_ns:09d}"[:5].rstrip("0")
    text = moment.strftime("%Y-%m-%d %H:%M:%S")
    return f"{text}.{fraction}" if fraction else text


def future(sec: int, func: Callable[[], object]) -> threading.Timer:
    """Call *func* on a thread of its own after *sec* seconds."""
    timer = threading.Timer(second_duration(float(sec)) / SECOND, func)
    timer.daemon = True
    timer.start()
    return timer


def _from_unix(seconds: int, micros: int = 0) -> datetime:
    moment = _EPOCH + timedelta(seconds=seconds, microseconds=micros)
    return moment.astimezone()


def unix_to_time(unix: int) -> datetime:
    """Return the local, timezone-aware time of Unix second *unix*."""
    return _from_unix(unix)


def unix_nano_to_time(nano: int) -> datetime:
    """Return the local time of Unix nanosecond *nano*, to microsecond precision."""
    seconds, rest = divmod(nano, SECOND)
    return _from_unix(seconds, rest // MICROSECOND)


def unix_string_to_time(unix: str) -> datetime:
    """Parse a decimal Unix second count and return its local time."""
    if not _DECIMAL_INT.fullmatch(unix):
        raise ValueError(f"parsing {unix!r}: invalid syntax")
    value = int(unix)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(f"parsing {unix!r}: value out of range")
    return unix_to_time(value)


def _since_epoch(moment: datetime) -> timedelta:
    aware = moment if moment.tzinfo is not None else moment.astimezone()
    return aware - _EPOCH


def time_to_unix(moment: datetime) -> int:
    """Return the Unix second of *moment*; the sub-second part is dropped.

    A naive *moment* is taken as local time.
    """
    return _since_epoch(moment) // timedelta(seconds=1)


def time_to_unix_nano(moment: datetime) -> int:
    """Return the Unix nanosecond of *moment*; a naive value is taken as local time."""
    delta = _since_epoch(moment)
    return (delta.days * 86_400 + delta.seconds) * SECOND + delta.microseconds * MICROSECOND


def _month_after(today: date) -> int:
    """The month reached by adding one month to *today*, with day overflow."""
    year, month = today.year, today.month + 1
    if month > 12:
        year, month = year + 1, 1
    if today.day > calendar.monthrange(year, month)[1]:
        month += 1
        if month > 12:
            month = 1
    return month


def get_end_time(period: str) -> datetime:
    """Return the last second of the current "day", "week", "month" or "year".

    The target is built from the current year and month with the computed
    day or month, normalised as ``ymd`` does. Any other *period* returns the
    current time.
    """
    now = datetime.now().astimezone()
    today = now.date()

    if period == "day":
        next_day = (today + timedelta(days=1)).day
        boundary = ymd(today.year, today.month, next_day, 0, 0, 0)
    elif period == "week":
        weekday = today.isoweekday() % 7
        week_end_day = (today + timedelta(days=8 - weekday)).day
        boundary = ymd(today.year, today.month, week_end_day, 0, 0, 0)
    elif period == "month":
        boundary = ymd(today.year, _month_after(today), 1, 0, 0, 0)
    elif period == "year":
        boundary = ymd(today.year + 1, 1, 1, 0, 0, 0)
    else:
        return now

    return unix_to_time(boundary - 1)
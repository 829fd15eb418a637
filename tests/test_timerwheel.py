import threading
import time
from datetime import datetime, timezone

import pytest

from gxutil.timerwheel import (
    Ticker,
    Timer,
    TimerChannelClosedError,
    TimerType,
    TimerWheel,
)
from gxutil.timeutil import CountWatch, millisecond_duration, second_duration


@pytest.fixture
def wheel():
    w = TimerWheel()
    yield w
    w.close()


def _wait_until(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


def test_new_timer_wheel_after_repeatedly(wheel):
    watch = CountWatch()
    watch.start()
    for _ in range(3):
        value = wheel.after(millisecond_duration(100)).get(timeout=2)
        assert isinstance(value, datetime)
    assert watch.count() >= millisecond_duration(250)


def test_after_counts_timers(wheel):
    results = []

    def waiter(d):
        results.append(wheel.after(d).get(timeout=5))

    threads = [
        threading.Thread(target=waiter, args=(second_duration(s),), daemon=True)
        for s in (0.15, 0.25, 0.3)
    ]
    for t in threads:
        t.start()
    long_timer = wheel.new_timer(second_duration(63))
    assert long_timer.id > 0
    assert _wait_until(lambda: wheel.timer_number() == 4, 0.12)
    for t in threads:
        t.join(5)
    assert len(results) == 3
    _wait_until(lambda: wheel.timer_number() == 1)
    assert wheel.timer_number() == 1
    long_timer.stop()
    _wait_until(lambda: wheel.timer_number() == 0)
    assert wheel.timer_number() == 0


def test_after_func_runs_and_keeps_long_timer(wheel):
    fired = [threading.Event(), threading.Event(), threading.Event()]
    durations = (0.3, 0.5, 61.5)
    timers = [
        wheel.after_func(second_duration(seconds), event.set)
        for event, seconds in zip(fired, durations)
    ]
    assert len({timer.id for timer in timers}) == 3
    assert _wait_until(lambda: wheel.timer_number() == 3, 0.2)
    assert fired[0].wait(3)
    assert fired[1].wait(3)
    assert not fired[2].is_set()
    _wait_until(lambda: wheel.timer_number() == 1)
    assert wheel.timer_number() == 1


def test_timer_reset_postpones(wheel):
    fired = threading.Event()
    timer = wheel.after_func(second_duration(0.2), fired.set)
    timer.reset(second_duration(0.6))
    assert _wait_until(lambda: wheel.timer_number() == 1, 0.1)
    time.sleep(0.35)
    assert not fired.is_set()
    assert fired.wait(2)


def test_timer_stop_prevents_firing(wheel):
    fired = threading.Event()
    timer = wheel.after_func(second_duration(0.3), fired.set)
    assert _wait_until(lambda: wheel.timer_number() == 1)
    timer.stop()
    assert _wait_until(lambda: wheel.timer_number() == 0)
    time.sleep(0.5)
    assert not fired.is_set()


def test_stop_twice_raises(wheel):
    timer = wheel.new_timer(second_duration(10))
    timer.stop()
    with pytest.raises(RuntimeError):
        timer.stop()
    with pytest.raises(RuntimeError):
        timer.reset(second_duration(1))


def test_reset_with_non_positive_duration_is_ignored(wheel):
    timer = wheel.new_timer(millisecond_duration(100))
    timer.stop()
    timer.reset(0)
    timer.reset(-5)
    with pytest.raises(RuntimeError):
        timer.reset(1)


def test_add_timer_passes_id_and_arg(wheel):
    calls = []
    done = threading.Event()

    def func(timer_id, expire, arg):
        calls.append((timer_id, arg, expire))
        done.set()

    timer = wheel.add_timer(func, TimerType.ONCE, millisecond_duration(50), "payload")
    assert isinstance(timer, Timer)
    assert done.wait(2)
    assert calls[0][0] == timer.id
    assert calls[0][1] == "payload"
    assert isinstance(calls[0][2], datetime)
    assert _wait_until(lambda: wheel.timer_number() == 0)


def test_loop_timer_closed_when_func_raises(wheel):
    calls = []

    def func(timer_id, expire, arg):
        calls.append(timer_id)
        raise ValueError("stop")

    timer = wheel.add_timer(func, TimerType.LOOP, millisecond_duration(50), None)
    assert _wait_until(lambda: len(calls) >= 1)
    _wait_until(lambda: wheel.timer_number() == 0)
    assert wheel.timer_number() == 0
    time.sleep(0.2)
    assert calls == [timer.id]


def test_sleep_waits(wheel):
    start = time.monotonic()
    wheel.sleep(millisecond_duration(100))
    assert time.monotonic() - start >= 0.08
    _wait_until(lambda: wheel.timer_number() == 0)
    assert wheel.timer_number() == 0


def test_tick_func_repeats_and_stops(wheel):
    count = []
    ticker = wheel.tick_func(millisecond_duration(100), lambda: count.append(1))
    assert isinstance(ticker, Ticker)
    assert _wait_until(lambda: len(count) >= 3, 2)
    ticker.stop()
    assert _wait_until(lambda: wheel.timer_number() == 0)
    time.sleep(0.05)
    seen = len(count)
    time.sleep(0.3)
    assert len(count) == seen


def test_new_ticker_channel_delivers(wheel):
    ticker = wheel.new_ticker(millisecond_duration(50))
    first = ticker.channel.get(timeout=2)
    second = ticker.channel.get(timeout=2)
    assert second >= first
    ticker.stop()


def test_tick_returns_channel(wheel):
    channel = wheel.tick(millisecond_duration(50))
    first = channel.get(timeout=2)
    second = channel.get(timeout=2)
    assert isinstance(first, datetime)
    assert second >= first
    assert wheel.timer_number() == 1


def test_now_close_to_wall_clock(wheel):
    time.sleep(0.05)
    diff = abs((wheel.now() - datetime.now(timezone.utc)).total_seconds())
    assert diff < 1.0


def test_closed_wheel_rejects_timers():
    w = TimerWheel()
    w.close()
    with pytest.raises(TimerChannelClosedError):
        w.add_timer(lambda *a: None, TimerType.ONCE, millisecond_duration(10), None)
    assert w.new_timer(millisecond_duration(10)) is None
    assert w.new_ticker(millisecond_duration(10)) is None
    assert w.after_func(millisecond_duration(10), lambda: None) is None
    assert w.tick_func(millisecond_duration(10), lambda: None) is None
    with pytest.raises(TimerChannelClosedError):
        w.after(millisecond_duration(10))
    with pytest.raises(TimerChannelClosedError):
        w.tick(millisecond_duration(10))


def test_stop_after_wheel_closed_forgets_wheel():
    w = TimerWheel()
    timer = w.new_timer(second_duration(5))
    w.close()
    timer.stop()
    with pytest.raises(RuntimeError):
        timer.stop()


def test_context_manager_closes():
    with TimerWheel() as w:
        value = w.after(millisecond_duration(20)).get(timeout=2)
        assert isinstance(value, datetime)
    with pytest.raises(TimerChannelClosedError):
        w.add_timer(lambda *a: None, TimerType.ONCE, 1, None)
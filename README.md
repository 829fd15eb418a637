# gxutil

Small building blocks for long-running, thread-based Python services.

## Modules

- `gxutil.safego`: `go_safely(handler, wg, ignore_recover, catch)` runs a
  callable on a daemon thread. An exception is written to stderr, unless
  `ignore_recover` is set, and then passed to `catch` on a thread of its own.
  `go_unterminated(handle, wg, ignore_recover, period)` starts the callable
  again every time it raises, after a pause of `period` seconds. `WaitGroup`
  offers `add`, `done` and `wait(timeout)`.
- `gxutil.taskpool`: `TaskPool(pool_size, queue_number, queue_length)` is a fixed
  set of worker threads fed round robin from several bounded queues.
  `SimpleTaskPool(size)` starts workers on demand, up to `size`. Both offer
  `add_task`, `add_task_always`, `add_task_balance`, `close` and `is_closed`,
  and both work as context managers. `TaskPoolOptions.validate` fills in the
  defaults of 128 per queue and 10 queues. It caps the number of queues at the
  pool size, and it raises `ValueError` when the pool size is below 1.
- `gxutil.workerpool`: `ConnectionPool(WorkerPoolConfig(...))` has
  `submit`, `submit_sync`, `close`, `is_closed` and `num_workers`. `submit`
  raises `PoolBusyError` when the chosen queue and the few random queues it
  tries next are all full. It raises `ValueError` for a `None` task. A disabled
  pool (`enable=False`) runs each task on a thread of its own.
- `gxutil.timerwheel`: `TimerWheel` is a hierarchical timer wheel that ticks
  every 10 ms. It offers `add_timer`, `new_timer`, `after`, `after_func`,
  `sleep`, `new_ticker`, `tick_func`, `tick`, `timer_number`, `now`, `stop`
  and `close`. It hands out `Timer` and `Ticker` handles, which have `reset`
  and `stop`. `TimerType.ONCE` and `TimerType.LOOP` select one-shot or
  repeating timers. Adding a timer to a stopped wheel raises
  `TimerChannelClosedError`. Channels are `queue.Queue` objects that hold one
  value.
- `gxutil.clock`: the same operations on one shared wheel
  (`init_default_timer_wheel`, `get_default_timer_wheel`, `now`, `after`,
  `sleep`, `after_func`, `new_timer`, `new_ticker`, `tick_func`, `tick`). A
  duration that is not positive gives `None`.
- `gxutil.wheel`: `Wheel(span, buckets)` is a coarse ring of slots measured in
  seconds. `after(timeout)` returns a `threading.Event` that is set when the
  matching slot is reached.
- `gxutil.timeutil`: duration helpers (`second_duration`,
  `millisecond_duration` and so on) that return whole nanoseconds. It also has
  Unix time conversions (`ymd`, `ymd_utc`, `ymd_print`, `unix_to_time`,
  `unix_nano_to_time`, `unix_string_to_time`, `time_to_unix`,
  `time_to_unix_nano`), `get_end_time("day" | "week" | "month" | "year")`,
  `future` and the `CountWatch` stopwatch.
- `gxutil.sysinfo`: CPU count that honours a container CPU quota, host and
  process memory statistics (`MemoryStat`), process CPU usage, thread count,
  and cgroup memory limit and usage. It also has `parse_uint`, `read_uint` and
  `read_lines`.
- `gxutil.strutil`: `reg_split`, `is_match_pattern` (one `*` wildcard),
  `is_nil` and `to_bytes`.
- `gxutil.sorting`: `sort_int64`, `sort_int32` and `sort_uint32` sort a list
  in place. They raise `OverflowError` for values outside the type's range.
  `Prioritizer` is a protocol for objects that have a `priority`.
- `gxutil.paths`: `exists`, `file_exists` and `dir_exists`. The last two raise
  `FileNotFoundError`, `IsADirectoryError` or `NotADirectoryError` instead of
  returning `False`.

## Installing

```
pip install .
```

## Examples

Run work in a worker pool:

```python
from gxutil.workerpool import ConnectionPool, WorkerPoolConfig

with ConnectionPool(WorkerPoolConfig(num_workers=4, num_queues=2, queue_size=10)) as pool:
    pool.submit(lambda: print("hello"))
    pool.submit_sync(lambda: print("and wait for it"))
```

Use a task pool:

```python
from gxutil.taskpool import TaskPool

with TaskPool(pool_size=4, queue_number=2, queue_length=16) as pool:
    pool.add_task(lambda: print("queued"))
```

Wait on a timer wheel:

```python
from gxutil.timerwheel import TimerWheel
from gxutil.timeutil import millisecond_duration

with TimerWheel() as wheel:
    fired_at = wheel.after(millisecond_duration(100)).get()
```

Schedule a callback on the shared wheel:

```python
from gxutil import clock
from gxutil.timeutil import second_duration

timer = clock.after_func(second_duration(1.5), lambda: print("fired"))
timer.reset(second_duration(3))
```

Match a simple wildcard pattern:

```python
from gxutil.strutil import is_match_pattern

is_match_pattern("val*e", "value")   # True
```

## Limits

- Work runs on threads, so CPU-bound tasks do not run in parallel.
- Timers fire with the 10 ms accuracy of the wheel's tick.
- The package is a library only: it installs no command-line tool.
- The cgroup readings use the cgroup v1 file locations.

## Running the tests

```
pip install .[test]
pytest
```
"""Run callables on background threads, catching and reporting failures."""

from __future__ import annotations

import sys
import threading
import time
import traceback
from datetime import datetime
from typing import Callable, Optional

__all__ = ["WaitGroup", "go_safely", "go_unterminated"]


class WaitGroup:
    """A counter that lets a thread wait until a set of tasks has finished."""

    def __init__(self) -> None:
        self._count = 0
        self._cond = threading.Condition()

    def add(self, delta: int = 1) -> None:
        """Change the counter by *delta*; waking waiters when it reaches zero."""
        with self._cond:
            count = self._count + delta
            if count < 0:
                raise ValueError("negative WaitGroup counter")
            self._count = count
            if count == 0:
                self._cond.notify_all()

    def done(self) -> None:
        """Decrement the counter by one."""
        self.add(-1)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the counter is zero; return False if *timeout* expired."""
        with self._cond:
            return self._cond.wait_for(lambda: self._count == 0, timeout)


def _report(header: str) -> None:
    sys.stderr.write(f"{header}\n{traceback.format_exc()}\n")


def go_safely(
    handler: Callable[[], object],
    wg: Optional[WaitGroup] = None,
    ignore_recover: bool = False,
    catch: Optional[Callable[[BaseException], object]] = None,
) -> threading.Thread:
    """Run *handler* on a daemon thread, recovering from any exception.

    An exception is written to stderr unless *ignore_recover* is set, and is
    then passed to *catch* on a thread of its own. *wg*, when given, counts
    both the handler and the catch call.
    """
    if wg is not None:
        wg.add(1)

    def run_catch(error: BaseException) -> None:
        try:
            catch(error)
        except Exception as exc:
            if not ignore_recover:
                _report(f"recover goroutine panic:{exc}")
        finally:
            if wg is not None:
                wg.done()

    def run() -> None:
        try:
            handler()
        except Exception as exc:
            if not ignore_recover:
                _report(f"{datetime.now()} goroutine panic: {exc}")
            if catch is not None:
                if wg is not None:
                    wg.add(1)
                threading.Thread(target=run_catch, args=(exc,), daemon=True).start()
        finally:
            if wg is not None:
                wg.done()

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    return thread


def go_unterminated(
    handle: Callable[[], object],
    wg: Optional[WaitGroup] = None,
    ignore_recover: bool = False,
    period: float = 0.0,
) -> threading.Thread:
    """Run *handle* on a thread and start it again every time it raises.

    *period* is the number of seconds to pause before a restart; when it is
    not positive the restart happens at once.
    """

    def restart(_error: BaseException) -> None:
        if period > 0:
            time.sleep(period)
        go_unterminated(handle, wg, ignore_recover, period)

    return go_safely(handle, wg, ignore_recover, restart)
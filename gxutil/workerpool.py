"""Worker pools that feed a fixed set of threads from several task queues."""

from __future__ import annotations

import dataclasses
import logging
import random
import threading
import traceback
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional, Tuple

from .safego import WaitGroup

__all__ = ["PoolBusyError", "WorkerPoolConfig", "WorkerPool", "ConnectionPool"]

Task = Callable[[], object]

_UINT32_MASK = 0xFFFFFFFF


class PoolBusyError(Exception):
    """Raised when no task queue can take a task right now."""

    def __init__(self, message: str = "pool is busy") -> None:
        super().__init__(message)


@dataclass
class WorkerPoolConfig:
    """Settings for a worker pool.

    ``num_workers`` and ``num_queues`` are raised to at least one and
    ``queue_size`` to at least zero. A queue of size zero only accepts a task
    when a worker is waiting for one. A disabled pool runs every task on a
    thread of its own.
    """

    num_workers: int = 1
    num_queues: int = 1
    queue_size: int = 0
    logger: Optional[logging.Logger] = None
    enable: bool = True


class _TaskQueue:
    """A bounded queue that also accepts a task when a consumer is waiting."""

    def __init__(self, capacity: int) -> None:
        self._capacity = capacity
        self._items: Deque[Task] = deque()
        self._waiting = 0
        self._closed = False
        self._cond = threading.Condition()

    def offer(self, task: Task) -> bool:
        """Queue *task* without blocking; return False when there is no room."""
        with self._cond:
            if self._closed:
                raise RuntimeError("cannot submit to a closed pool")
            if len(self._items) >= self._capacity + self._waiting:
                return False
            self._items.append(task)
            self._cond.notify()
            return True

    def take(self, on_wait: Optional[Callable[[], object]] = None) -> Tuple[Optional[Task], bool]:
        """Block for the next task; the flag is False once closed and drained."""
        with self._cond:
            self._waiting += 1
            if on_wait is not None:
                on_wait()
            try:
                self._cond.wait_for(lambda: bool(self._items) or self._closed)
            finally:
                self._waiting -= 1
            if self._items:
                return self._items.popleft(), True
            return None, False

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()


class WorkerPool(ABC):
    """Interface of a pool that runs submitted tasks on worker threads."""

    @abstractmethod
    def submit(self, task: Task) -> None:
        """Queue *task* to run asynchronously."""

    @abstractmethod
    def submit_sync(self, task: Task) -> None:
        """Queue *task* and wait until it has run."""

    @abstractmethod
    def close(self) -> None:
        """Close the pool and wait for its workers to finish."""

    @abstractmethod
    def is_closed(self) -> bool:
        """Return whether the pool has been closed."""

    @abstractmethod
    def num_workers(self) -> int:
        """Return the number of live workers."""

    def __enter__(self) -> "WorkerPool":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class ConnectionPool(WorkerPool):
    """A worker pool with several queues; worker *i* serves queue ``i % num_queues``.

    Tasks are placed round robin; when the chosen queue is full a few random
    queues are tried before ``PoolBusyError`` is raised.
    """

    def __init__(self, config: Optional[WorkerPoolConfig] = None) -> None:
        config = dataclasses.replace(config) if config is not None else WorkerPoolConfig()
        config.num_workers = max(config.num_workers, 1)
        config.num_queues = max(config.num_queues, 1)
        config.queue_size = max(config.queue_size, 0)
        self.config = config

        self._logger = config.logger
        self._enable = config.enable
        self._queues: List[_TaskQueue] = [
            _TaskQueue(config.queue_size) for _ in range(config.num_queues)
        ]
        self._task_id = 0
        self._id_lock = threading.Lock()
        self._count_lock = threading.Lock()
        self._num_workers = 0
        self._wg = WaitGroup()

        if not config.enable:
            return

        ready = WaitGroup()
        ready.add(config.num_workers)
        for worker_id in range(config.num_workers):
            self._start_worker(worker_id, ready)
        ready.wait()
        if self._logger is not None:
            self._logger.info("all %d workers are started", self.num_workers())

    def _start_worker(self, worker_id: int, ready: WaitGroup) -> None:
        self._wg.add(1)
        with self._count_lock:
            self._num_workers += 1
        threading.Thread(target=self._worker, args=(worker_id, ready), daemon=True).start()

    def _worker(self, worker_id: int, ready: WaitGroup) -> None:
        queue = self._queues[worker_id % len(self._queues)]
        on_wait: Optional[Callable[[], object]] = ready.done
        try:
            while True:
                task, ok = queue.take(on_wait)
                on_wait = None
                if not ok:
                    return
                if task is not None:
                    self._execute(task)
        finally:
            with self._count_lock:
                self._num_workers -= 1
                remaining = self._num_workers
            self._wg.done()
            if remaining < 0:
                raise RuntimeError(
                    f"numWorkers should be greater or equal to 0, but the value is {remaining}"
                )

    def _execute(self, task: Task) -> None:
        try:
            task()
        except Exception as exc:
            if self._logger is not None:
                self._logger.error("goroutine panic: %s\n%s", exc, traceback.format_exc())

    def _next_task_id(self) -> int:
        with self._id_lock:
            self._task_id = (self._task_id + 1) & _UINT32_MASK
            return self._task_id

    def submit(self, task: Task) -> None:
        """Queue *task*; raise ``PoolBusyError`` when every tried queue is full."""
        if task is None:
            raise ValueError("task shouldn't be nil")

        if not self._enable:
            threading.Thread(target=task, daemon=True).start()
            return

        task_id = self._next_task_id()
        if self._queues[task_id % len(self._queues)].offer(task):
            return

        for _ in range(len(self._queues) // 2):
            if random.choice(self._queues).offer(task):
                return

        raise PoolBusyError()

    def submit_sync(self, task: Task) -> None:
        """Queue *task* and block until it has run."""
        if task is None:
            raise ValueError("task shouldn't be nil")
        finished = threading.Event()

        def run() -> None:
            try:
                task()
            finally:
                finished.set()

        self.submit(run)
        finished.wait()

    def close(self) -> None:
        if self.is_closed():
            return
        for queue in self._queues:
            queue.close()
        self._wg.wait()
        if self._logger is not None:
            self._logger.info(
                "there are %d workers remained, all workers are closed", self.num_workers()
            )

    def is_closed(self) -> bool:
        return self.num_workers() == 0

    def num_workers(self) -> int:
        with self._count_lock:
            return self._num_workers
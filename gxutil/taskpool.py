"""Thread pools that run submitted callables in the background."""

from __future__ import annotations

import logging
import os
import random
import sys
import threading
import traceback
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Deque, List, Optional

from .safego import go_safely

__all__ = ["TaskPoolOptions", "GenericTaskPool", "TaskPool", "SimpleTaskPool"]

Task = Callable[[], object]

DEFAULT_QUEUE_NUMBER = 10
DEFAULT_QUEUE_LENGTH = 128

_log = logging.getLogger(__name__)


def _run_task(task: Task) -> bool:
    """Run *task*, reporting an exception to stderr; return whether it succeeded."""
    try:
        task()
    except Exception as exc:
        sys.stderr.write(
            f"{datetime.now()} goroutine panic: {exc}\n{traceback.format_exc()}\n"
        )
        return False
    return True


@dataclass
class TaskPoolOptions:
    """Sizes for a ``TaskPool``: workers, queues and per-queue capacity."""

    queue_length: int = 0
    queue_number: int = 0
    pool_size: int = 0

    def validate(self) -> None:
        """Fill in defaults and clamp values; raise ValueError for a bad pool size."""
        if self.pool_size < 1:
            raise ValueError(f"illegal pool size {self.pool_size}")
        if self.queue_length < 1:
            self.queue_length = DEFAULT_QUEUE_LENGTH
        if self.queue_number < 1:
            self.queue_number = DEFAULT_QUEUE_NUMBER
        if self.queue_number > self.pool_size:
            self.queue_number = self.pool_size


class GenericTaskPool(ABC):
    """Common interface of the task pools."""

    @abstractmethod
    def add_task(self, task: Task) -> bool:
        """Wait for room and queue *task*; return False once the pool is closed."""

    @abstractmethod
    def add_task_always(self, task: Task) -> None:
        """Queue *task*, or run it on a thread of its own when there is no room."""

    @abstractmethod
    def add_task_balance(self, task: Task) -> None:
        """Queue *task* on an idle queue, or run it on a thread of its own."""

    @abstractmethod
    def close(self) -> None:
        """Stop the pool and wait for its workers."""

    @abstractmethod
    def is_closed(self) -> bool:
        """Return whether the pool has been closed."""

    def __enter__(self) -> "GenericTaskPool":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class TaskPool(GenericTaskPool):
    """A fixed set of worker threads fed from several bounded queues.

    Worker *i* consumes queue ``i % queue_number``; tasks are spread over
    the queues round robin.
    """

    def __init__(self, pool_size: int = 0, queue_number: int = 0, queue_length: int = 0) -> None:
        options = TaskPoolOptions(
            queue_length=queue_length, queue_number=queue_number, pool_size=pool_size
        )
        options.validate()
        self.options = options

        self._queues: List[Deque[Task]] = [deque() for _ in range(options.queue_number)]
        self._capacity = options.queue_length
        self._cond = threading.Condition()
        self._index = 0
        self._done = False
        self._workers = [
            threading.Thread(
                target=self._run,
                args=(worker_id, self._queues[worker_id % options.queue_number]),
                daemon=True,
            )
            for worker_id in range(options.pool_size)
        ]
        for worker in self._workers:
            worker.start()

    def _run(self, worker_id: int, queue: Deque[Task]) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._done or bool(queue))
                if self._done:
                    if queue:
                        _log.error(
                            "task worker %d exit now while its task buffer length %d "
                            "is greater than 0",
                            worker_id,
                            len(queue),
                        )
                    return
                task = queue.popleft()
                self._cond.notify_all()
            _run_task(task)

    def _next_queue(self) -> Deque[Task]:
        self._index += 1
        return self._queues[self._index % len(self._queues)]

    def add_task(self, task: Task) -> bool:
        with self._cond:
            queue = self._next_queue()
            if self._done:
                return False
            self._cond.wait_for(lambda: self._done or len(queue) < self._capacity)
            if self._done:
                return False
            queue.append(task)
            self._cond.notify_all()
            return True

    def add_task_always(self, task: Task) -> None:
        with self._cond:
            queue = self._next_queue()
            if not self._done and len(queue) < self._capacity:
                queue.append(task)
                self._cond.notify_all()
                return
        go_safely(task)

    def add_task_balance(self, task: Task) -> None:
        with self._cond:
            if not self._done:
                for _ in range(len(self._queues) // 2):
                    queue = random.choice(self._queues)
                    if len(queue) < self._capacity:
                        queue.append(task)
                        self._cond.notify_all()
                        return
        go_safely(task)

    def close(self) -> None:
        with self._cond:
            self._done = True
            self._cond.notify_all()
        for worker in self._workers:
            worker.join()

    def is_closed(self) -> bool:
        with self._cond:
            return self._done


class SimpleTaskPool(GenericTaskPool):
    """A pool that grows up to *size* worker threads on demand.

    A task goes to an idle worker if there is one, otherwise a new worker is
    started while the pool is below its size.
    """

    def __init__(self, size: int = 0) -> None:
        if size < 1:
            size = (os.cpu_count() or 1) * 100
        self.size = size
        self._cond = threading.Condition()
        self._pending: Deque[Task] = deque()
        self._idle = 0
        self._workers = 0
        self._done = False

    def _hand_off(self, task: Task) -> None:
        self._idle -= 1
        self._pending.append(task)
        self._cond.notify_all()

    def _spawn(self, task: Task) -> None:
        self._workers += 1
        threading.Thread(target=self._worker, args=(task,), daemon=True).start()

    def _next_task(self) -> Optional[Task]:
        with self._cond:
            self._idle += 1
            self._cond.notify_all()
            self._cond.wait_for(lambda: bool(self._pending) or self._done)
            if self._pending:
                return self._pending.popleft()
            self._idle -= 1
            return None

    def _worker(self, task: Optional[Task]) -> None:
        try:
            while task is not None:
                if not _run_task(task):
                    break
                task = self._next_task()
        finally:
            with self._cond:
                self._workers -= 1
                self._cond.notify_all()

    def add_task(self, task: Task) -> bool:
        with self._cond:
            if self._done:
                return False
            self._cond.wait_for(
                lambda: self._done or self._idle > 0 or self._workers < self.size
            )
            if self._done:
                return False
            if self._idle > 0:
                self._hand_off(task)
            else:
                self._spawn(task)
            return True

    def add_task_always(self, task: Task) -> None:
        with self._cond:
            if self._done:
                return
            if self._idle > 0:
                self._hand_off(task)
                return
            if self._workers < self.size:
                self._spawn(task)
                return
        go_safely(task)

    def add_task_balance(self, task: Task) -> None:
        self.add_task_always(task)

    def close(self) -> None:
        with self._cond:
            self._done = True
            self._cond.notify_all()
            self._cond.wait_for(lambda: self._workers == 0)

    def is_closed(self) -> bool:
        with self._cond:
            return self._done
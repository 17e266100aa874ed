"""A thread-safe FIFO task scheduler."""

from __future__ import annotations

import threading
from collections import deque

from .config import SchedulerConfig
from .task import MoeTask


class TaskScheduler:
    """Holds submitted tasks and hands them out in submission order."""

    def __init__(self, config: SchedulerConfig | None = None) -> None:
        self.config = config if config is not None else SchedulerConfig()
        self._queue: deque[MoeTask] = deque()
        self._lock = threading.Lock()

    def submit_task(self, task: MoeTask) -> None:
        """Append a task to the end of the queue."""
        with self._lock:
            self._queue.append(task)

    def fetch_next_task(self) -> MoeTask | None:
        """Remove and return the oldest task, or None when the queue is empty."""
        with self._lock:
            return self._queue.popleft() if self._queue else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._queue)
"""Run MoE tasks with retries and a timeout."""

from __future__ import annotations

import struct
import time
from typing import Callable

from .errors import InferenceError, SchedulerError
from .model_downloader import ModelInfo
from .task import MoeTask

_EXECUTION_DELAY = 0.05
_RETRY_BACKOFF = 0.1


class TaskExecutor:
    """Executes tasks against a model, retrying failures with a growing delay."""

    def __init__(
        self,
        model_info: ModelInfo,
        timeout_ms: int = 30000,
        max_retries: int = 3,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.model_info = model_info
        self.timeout_ms = timeout_ms
        self.max_retries = max_retries
        self._sleep = sleep
        self._clock = clock

    def execute_task(self, task: MoeTask) -> None:
        """Run the task until it completes, retries run out or time runs out."""
        start = self._clock()
        task.mark_running()
        retries = 0
        while True:
            try:
                result = self._execute_once(task)
            except SchedulerError as exc:
                retries += 1
                if retries >= self.max_retries:
                    task.mark_failed(str(exc))
                    raise
                if (self._clock() - start) * 1000 > self.timeout_ms:
                    task.mark_failed("task timed out")
                    raise InferenceError("task execution timed out") from exc
                self._sleep(_RETRY_BACKOFF * retries)
            else:
                task.mark_completed(result)
                return

    def _execute_once(self, task: MoeTask) -> bytes:
        self._sleep(_EXECUTION_DELAY)
        return self._mock_result(task)

    def _mock_result(self, task: MoeTask) -> bytes:
        output_size = self.model_info.hidden_size * 4
        if output_size < 8:
            raise InferenceError(
                f"hidden size {self.model_info.hidden_size} too small for task {task.task_id}"
            )
        count = (output_size - 8) // 4
        values = [(i % 100) / 100.0 for i in range(count)]
        return bytes(8) + struct.pack(f"<{count}f", *values)
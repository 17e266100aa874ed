"""MoE task record, its lifecycle states and priorities."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum


class TaskStatus(Enum):
    """Lifecycle of a task."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskPriority(IntEnum):
    """Task priority; larger values are more urgent."""

    LOW = 0
    NORMAL = 1
    HIGH = 2
    CRITICAL = 3


@dataclass
class MoeTask:
    """A unit of MoE inference work and its outcome."""

    task_id: str
    input_data: bytes
    status: TaskStatus = TaskStatus.PENDING
    result: bytes | None = None
    priority: TaskPriority = TaskPriority.NORMAL
    gpu_id: int | None = None
    parent_task_id: str | None = None
    failure_reason: str | None = None

    def __post_init__(self) -> None:
        self.input_data = bytes(self.input_data)

    def mark_running(self) -> None:
        """Move the task into the running state."""
        self.status = TaskStatus.RUNNING

    def mark_completed(self, result: bytes) -> None:
        """Store the result and mark the task completed."""
        self.result = bytes(result)
        self.failure_reason = None
        self.status = TaskStatus.COMPLETED

    def mark_failed(self, reason: str) -> None:
        """Mark the task failed with the given reason."""
        self.failure_reason = reason
        self.status = TaskStatus.FAILED
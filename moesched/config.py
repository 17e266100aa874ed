"""Global scheduler configuration."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class SchedulerConfig:
    """Concurrency limit, default batch size and usable GPU ids."""

    max_concurrent_tasks: int = 4
    default_batch_size: int = 1
    gpu_ids: list[int] = field(default_factory=lambda: [0])
"""Strategies for splitting an MoE task into sub-tasks."""

from __future__ import annotations

from dataclasses import dataclass


class SplitStrategy:
    """Base of all split strategies."""

    __slots__ = ()


@dataclass(frozen=True)
class ByExpert(SplitStrategy):
    """One sub-task per expert."""


@dataclass(frozen=True)
class ByLayer(SplitStrategy):
    """One sub-task per MoE layer."""


@dataclass(frozen=True)
class ByBatch(SplitStrategy):
    """Fixed-size byte batches of the input, the last one zero padded."""

    batch_size: int

    def __post_init__(self) -> None:
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")


@dataclass(frozen=True)
class Hybrid(SplitStrategy):
    """A combination of expert, layer and batch splitting."""

    expert_split: bool
    layer_split: bool
    batch_size: int = 0

    def __post_init__(self) -> None:
        if self.batch_size < 0:
            raise ValueError(f"batch_size must not be negative, got {self.batch_size}")
"""Expert placement and gate weight records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class ExpertGpuMapping:
    """Placement of one expert on a GPU with its memory need in MB."""

    expert_id: int
    gpu_id: int
    memory_required: int = 0


@dataclass(frozen=True)
class GateWeights:
    """Per-expert gate weights and the number of experts routed to."""

    weights: tuple[float, ...]
    top_k: int

    def __init__(self, weights: Iterable[float], top_k: int) -> None:
        object.__setattr__(self, "weights", tuple(float(w) for w in weights))
        object.__setattr__(self, "top_k", top_k)
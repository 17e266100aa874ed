"""Combine the outputs of sub-tasks into one result."""

from __future__ import annotations

import math
import struct
from typing import Sequence

from .errors import InferenceError
from .model_downloader import ModelInfo
from .routing import GateWeights
from .strategy import ByBatch, ByExpert, ByLayer, Hybrid, SplitStrategy


def _f32(value: float) -> float:
    try:
        return struct.unpack("<f", struct.pack("<f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def _decode(data: bytes) -> list[float]:
    whole = len(data) // 4 * 4
    return [value for (value,) in struct.iter_unpack("<f", data[:whole])]


def _encode(values: Sequence[float]) -> bytes:
    return struct.pack(f"<{len(values)}f", *values)


class ResultMerger:
    """Merges expert, layer, batch and hybrid sub-task outputs of float32 data."""

    def __init__(self, model_info: ModelInfo) -> None:
        self.model_info = model_info

    def merge_results(
        self,
        results: Sequence[bytes],
        gate_weights: GateWeights | None,
        strategy: SplitStrategy,
    ) -> bytes:
        """Merge results the way the split strategy requires."""
        if isinstance(strategy, ByExpert):
            return self.merge_expert_results(results, gate_weights)
        if isinstance(strategy, ByLayer):
            return self.merge_layer_results(results)
        if isinstance(strategy, ByBatch):
            return self.merge_batch_results(results)
        if isinstance(strategy, Hybrid):
            return self.merge_hybrid_results(results, gate_weights)
        raise TypeError(f"unknown split strategy: {strategy!r}")

    def merge_expert_results(self, results: Sequence[bytes], gate_weights: GateWeights | None) -> bytes:
        """Sum the expert outputs weighted by their gate weights."""
        if not results:
            raise InferenceError("no expert results to merge")
        if gate_weights is None:
            raise InferenceError("merging expert results requires gate weights")
        num_experts = self.model_info.num_experts
        if len(results) != num_experts:
            raise InferenceError(
                f"expert result count {len(results)} does not match expert count {num_experts}"
            )
        if len(gate_weights.weights) != num_experts:
            raise InferenceError(
                f"gate weight count {len(gate_weights.weights)} does not match expert count {num_experts}"
            )

        output_size = len(results[0])
        merged = [0.0] * (output_size // 4)
        for expert_id, (result, weight) in enumerate(zip(results, gate_weights.weights)):
            if len(result) != output_size:
                raise InferenceError(
                    f"expert {expert_id} output size {len(result)} differs from {output_size}"
                )
            weight = _f32(weight)
            merged = [_f32(acc + _f32(weight * value)) for acc, value in zip(merged, _decode(result))]
        return _encode(merged)

    def merge_layer_results(self, results: Sequence[bytes]) -> bytes:
        """Add each layer output onto the running residual."""
        if not results:
            raise InferenceError("no layer results to merge")
        num_layers = self.model_info.num_layers
        if len(results) != num_layers:
            raise InferenceError(
                f"layer result count {len(results)} does not match layer count {num_layers}"
            )

        merged = bytes(results[0])
        for layer_id, result in enumerate(results[1:], start=1):
            if len(result) != len(merged):
                raise InferenceError(
                    f"layer {layer_id} output size {len(result)} does not match residual size {len(merged)}"
                )
            sums = [_f32(a + b) for a, b in zip(_decode(merged), _decode(result))]
            merged = _encode(sums) + merged[len(sums) * 4:]
        return merged

    def merge_batch_results(self, results: Sequence[bytes]) -> bytes:
        """Concatenate batch outputs in order."""
        if not results:
            raise InferenceError("no batch results to merge")
        return b"".join(bytes(result) for result in results)

    def merge_hybrid_results(self, results: Sequence[bytes], gate_weights: GateWeights | None) -> bytes:
        """Merge experts within each layer, then merge the layers."""
        if not results:
            raise InferenceError("no hybrid results to merge")
        num_layers = self.model_info.num_layers
        num_experts = self.model_info.num_experts
        expected = num_layers * num_experts
        if len(results) != expected:
            raise InferenceError(
                f"hybrid result count {len(results)} does not match expected count {expected}"
            )
        layer_results = [
            self.merge_expert_results(results[start:start + num_experts], gate_weights)
            for start in range(0, expected, num_experts)
        ]
        return self.merge_layer_results(layer_results)
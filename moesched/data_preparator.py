"""Build the byte payloads that expert and layer sub-tasks receive."""

from __future__ import annotations

import struct

from .errors import InferenceError
from .model_downloader import ModelInfo

_U32_MASK = 0xFFFFFFFF


def _u32(value: int) -> bytes:
    return struct.pack("<I", value & _U32_MASK)


class DataPreparator:
    """Prefixes task input with routing and layer metadata for a model."""

    def __init__(self, model_info: ModelInfo) -> None:
        self.model_info = model_info

    def _check_expert(self, expert_id: int) -> None:
        num_experts = self.model_info.num_experts
        if not 0 <= expert_id < num_experts:
            raise InferenceError(f"expert id {expert_id} out of range [0, {num_experts})")

    def _check_layer(self, layer_id: int) -> None:
        num_layers = self.model_info.num_layers
        if not 0 <= layer_id < num_layers:
            raise InferenceError(f"layer id {layer_id} out of range [0, {num_layers})")

    def prepare_expert_data(self, input_data: bytes, expert_id: int) -> bytes:
        """Return expert id, one-hot gate weights and the input, concatenated."""
        self._check_expert(expert_id)
        return _u32(expert_id) + self.gate_info(expert_id) + bytes(input_data)

    def prepare_layer_data(self, input_data: bytes, layer_id: int) -> bytes:
        """Return layer id, layer configuration and the input, concatenated."""
        self._check_layer(layer_id)
        return _u32(layer_id) + self.layer_config(layer_id) + bytes(input_data)

    def prepare_layer_expert_data(self, input_data: bytes, layer_id: int, expert_id: int) -> bytes:
        """Return layer id, expert id, gate weights, layer configuration and the input."""
        self._check_layer(layer_id)
        self._check_expert(expert_id)
        return b"".join(
            (
                _u32(layer_id),
                _u32(expert_id),
                self.gate_info(expert_id),
                self.layer_config(layer_id),
                bytes(input_data),
            )
        )

    def gate_info(self, expert_id: int) -> bytes:
        """One-hot gate weights as little-endian doubles, one per expert."""
        weights = [1.0 if i == expert_id else 0.0 for i in range(self.model_info.num_experts)]
        return struct.pack(f"<{len(weights)}d", *weights)

    def layer_config(self, layer_id: int) -> bytes:
        """Layer id, hidden size, intermediate size and expert count as u32 values."""
        info = self.model_info
        return b"".join(
            _u32(value)
            for value in (layer_id, info.hidden_size, info.intermediate_size, info.num_experts)
        )
"""Split an MoE inference task into sub-tasks and merge their outputs."""

from __future__ import annotations

import logging
import threading
from typing import Iterable, Sequence

from .data_preparator import DataPreparator
from .errors import InferenceError
from .model_downloader import ModelInfo
from .result_merger import ResultMerger
from .routing import ExpertGpuMapping, GateWeights
from .strategy import ByBatch, ByExpert, ByLayer, Hybrid, SplitStrategy
from .task import MoeTask, TaskPriority

logger = logging.getLogger(__name__)

_DEFAULT_GPU = 0
_BYTES_PER_ELEMENT = 4


def _task_id(parent_id: str, prefix: str, index: int) -> str:
    return f"{parent_id}_{prefix}_{index}"


class TaskSplitter:
    """Splits MoE tasks by expert, layer, batch or a mix of these."""

    def __init__(self, model_info: ModelInfo, strategy: SplitStrategy) -> None:
        self.model_info = model_info
        self.strategy = strategy
        self.data_preparator = DataPreparator(model_info)
        self.result_merger = ResultMerger(model_info)
        self._mapping: dict[int, ExpertGpuMapping] = {}
        self._mapping_lock = threading.Lock()

    @property
    def expert_gpu_mapping(self) -> dict[int, ExpertGpuMapping]:
        """A snapshot of the expert-to-GPU placement, keyed by expert id."""
        with self._mapping_lock:
            return dict(self._mapping)

    def set_expert_gpu_mapping(self, mapping: Iterable[ExpertGpuMapping]) -> None:
        """Replace the expert-to-GPU placement."""
        entries = {entry.expert_id: entry for entry in mapping}
        with self._mapping_lock:
            self._mapping = entries

    def split_task(
        self,
        input_data: bytes,
        task_id: str,
        priority: TaskPriority = TaskPriority.NORMAL,
    ) -> list[MoeTask]:
        """Validate the input and split it according to the strategy."""
        input_data = bytes(input_data)
        self._validate_input(input_data)
        strategy = self.strategy
        if isinstance(strategy, ByExpert):
            return self._split_by_expert(input_data, task_id, priority)
        if isinstance(strategy, ByLayer):
            return self._split_by_layer(input_data, task_id, priority)
        if isinstance(strategy, ByBatch):
            return self._split_by_batch(input_data, task_id, priority, strategy.batch_size)
        if isinstance(strategy, Hybrid):
            return self._split_hybrid(input_data, task_id, priority, strategy)
        raise TypeError(f"unknown split strategy: {strategy!r}")

    def _validate_input(self, input_data: bytes) -> None:
        if not input_data:
            raise InferenceError("input data is empty")
        min_size = self.model_info.hidden_size * _BYTES_PER_ELEMENT
        if len(input_data) < min_size:
            raise InferenceError(
                f"input data size {len(input_data)} is below the minimum {min_size}"
            )

    def _split_by_expert(self, input_data: bytes, parent_id: str, priority: TaskPriority) -> list[MoeTask]:
        mapping = self.expert_gpu_mapping
        tasks = []
        for expert_id in range(self.model_info.num_experts):
            placement = mapping.get(expert_id)
            tasks.append(
                MoeTask(
                    task_id=_task_id(parent_id, "expert", expert_id),
                    input_data=self.data_preparator.prepare_expert_data(input_data, expert_id),
                    priority=priority,
                    gpu_id=placement.gpu_id if placement is not None else _DEFAULT_GPU,
                    parent_task_id=parent_id,
                )
            )
        logger.info("split by expert into %d tasks", len(tasks))
        return tasks

    def _split_by_layer(self, input_data: bytes, parent_id: str, priority: TaskPriority) -> list[MoeTask]:
        tasks = [
            MoeTask(
                task_id=_task_id(parent_id, "layer", layer_id),
                input_data=self.data_preparator.prepare_layer_data(input_data, layer_id),
                priority=priority,
                gpu_id=_DEFAULT_GPU,
                parent_task_id=parent_id,
            )
            for layer_id in range(self.model_info.num_layers)
        ]
        logger.info("split by layer into %d tasks", len(tasks))
        return tasks

    def _split_by_batch(
        self, input_data: bytes, parent_id: str, priority: TaskPriority, batch_size: int
    ) -> list[MoeTask]:
        if batch_size <= 0:
            raise InferenceError(f"batch size must be positive, got {batch_size}")
        tasks = []
        for batch_id, start in enumerate(range(0, len(input_data), batch_size)):
            chunk = input_data[start:start + batch_size]
            tasks.append(
                MoeTask(
                    task_id=_task_id(parent_id, "batch", batch_id),
                    input_data=chunk.ljust(batch_size, b"\x00"),
                    priority=priority,
                    gpu_id=_DEFAULT_GPU,
                    parent_task_id=parent_id,
                )
            )
        logger.info("split by batch into %d tasks", len(tasks))
        return tasks

    def _split_hybrid(
        self, input_data: bytes, parent_id: str, priority: TaskPriority, strategy: Hybrid
    ) -> list[MoeTask]:
        expert_split = strategy.expert_split
        layer_split = strategy.layer_split
        batch_size = strategy.batch_size

        if expert_split and layer_split:
            tasks = [
                MoeTask(
                    task_id=_task_id(parent_id, f"layer_{layer_id}_expert", expert_id),
                    input_data=self.data_preparator.prepare_layer_expert_data(
                        input_data, layer_id, expert_id
                    ),
                    priority=priority,
                    gpu_id=_DEFAULT_GPU,
                    parent_task_id=parent_id,
                )
                for layer_id in range(self.model_info.num_layers)
                for expert_id in range(self.model_info.num_experts)
            ]
        elif (expert_split or layer_split) and batch_size > 0:
            split = self._split_by_expert if expert_split else self._split_by_layer
            tasks = [
                batch_task
                for outer in split(input_data, parent_id, priority)
                for batch_task in self._split_by_batch(
                    outer.input_data, outer.task_id, priority, batch_size
                )
            ]
        elif expert_split:
            return self._split_by_expert(input_data, parent_id, priority)
        elif layer_split:
            return self._split_by_layer(input_data, parent_id, priority)
        else:
            return self._split_by_batch(input_data, parent_id, priority, batch_size)

        logger.info("hybrid split into %d tasks", len(tasks))
        return tasks

    def get_task_dependencies(self, tasks: Sequence[MoeTask]) -> dict[str, list[str]]:
        """Map each task id to the ids of the tasks it must wait for."""
        strategy = self.strategy
        if isinstance(strategy, ByLayer):
            return {
                task.task_id: [tasks[j].task_id for j in (i - 1, i - 2) if j >= 0]
                for i, task in enumerate(tasks)
            }
        if isinstance(strategy, Hybrid) and strategy.expert_split and strategy.layer_split:
            experts = self.model_info.num_experts
            dependencies: dict[str, list[str]] = {}
            for layer_id in range(self.model_info.num_layers):
                previous = [
                    tasks[idx].task_id
                    for idx in range((layer_id - 1) * experts, layer_id * experts)
                    if layer_id > 0 and idx < len(tasks)
                ]
                for idx in range(layer_id * experts, (layer_id + 1) * experts):
                    if idx < len(tasks):
                        dependencies[tasks[idx].task_id] = list(previous)
            return dependencies
        return {task.task_id: [] for task in tasks}

    def merge_results(self, results: Sequence[bytes], gate_weights: GateWeights | None = None) -> bytes:
        """Merge sub-task outputs according to the strategy."""
        return self.result_merger.merge_results(results, gate_weights, self.strategy)
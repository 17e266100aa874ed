"""Command-line walkthrough: download a model, split a task and merge the results."""

from __future__ import annotations

import argparse
import re
import struct
import sys
import time
import uuid
from typing import Sequence

from .config import SchedulerConfig
from .errors import SchedulerError
from .model_downloader import SWITCH_TRANSFORMER_MODELS, ModelDownloader, ModelInfo
from .routing import ExpertGpuMapping, GateWeights
from .scheduler import TaskScheduler
from .strategy import ByExpert
from .task import MoeTask, TaskPriority
from .task_splitter import TaskSplitter

DEFAULT_MODEL = "google/switch-base-8"
DEFAULT_CACHE_DIR = "./models"
GPU_COUNT = 2
MOCK_OUTPUT_SIZE = 1024
PREVIEW_COUNT = 10
_EXECUTION_DELAY = 0.1
_U32_LIMIT = 2**32
_EXPERT_MARKER = "expert_"
_UNSIGNED = re.compile(r"\+?[0-9]+")


def prepare_sample_input(model_info: ModelInfo) -> bytes:
    """Return a u32 element count followed by that many sample float32 values."""
    size = model_info.hidden_size
    values = [(i % 100) / 100.0 for i in range(size)]
    return struct.pack("<I", size & 0xFFFFFFFF) + struct.pack(f"<{size}f", *values)


def _expert_id_from_task_id(task_id: str) -> int:
    parts = task_id.split(_EXPERT_MARKER)
    if len(parts) < 2:
        return 0
    text = parts[1]
    if not _UNSIGNED.fullmatch(text):
        return 0
    value = int(text)
    return value if value < _U32_LIMIT else 0


def generate_mock_result(task: MoeTask) -> bytes:
    """Fabricate an expert output: the expert id as u32, then float32 samples."""
    expert_id = _expert_id_from_task_id(task.task_id)
    values = [((i + expert_id) % 100) / 100.0 for i in range(MOCK_OUTPUT_SIZE)]
    return struct.pack("<I", expert_id) + struct.pack(f"<{MOCK_OUTPUT_SIZE}f", *values)


def validate_final_result(result: bytes) -> list[float]:
    """Check the merged result is usable; print and return its first values."""
    if len(result) < 4:
        raise SchedulerError("result data is too small")
    count = min(PREVIEW_COUNT, len(result) // 4)
    preview = [value for (value,) in struct.iter_unpack("<f", bytes(result[: count * 4]))]
    print("result validated")
    print(f"first {count} output values:")
    for index, value in enumerate(preview):
        print(f"  [{index}]: {value:.6f}")
    return preview


def _uniform_gate_weights(num_experts: int) -> GateWeights:
    weight = 1.0 / num_experts if num_experts else 0.0
    return GateWeights([weight] * num_experts, top_k=num_experts)


def simulate_task_execution(scheduler: TaskScheduler, splitter: TaskSplitter) -> bytes:
    """Drain the scheduler, fake each task's output and merge everything."""
    print("simulating task execution...")
    results: list[bytes] = []
    while (task := scheduler.fetch_next_task()) is not None:
        print(f"running task: {task.task_id}")
        task.mark_running()
        time.sleep(_EXECUTION_DELAY)
        result = generate_mock_result(task)
        task.mark_completed(result)
        results.append(result)
        print(f"task completed: {task.task_id}")

    gate_weights = _uniform_gate_weights(splitter.model_info.num_experts)
    final = splitter.merge_results(results, gate_weights)
    print(f"results merged, final size: {len(final)} bytes")
    validate_final_result(final)
    return final


def list_available_models() -> tuple[str, ...]:
    """Print the known Switch Transformer checkpoints and return them."""
    print("available Switch Transformer models:")
    for number, model in enumerate(SWITCH_TRANSFORMER_MODELS, start=1):
        print(f"  {number}. {model}")
    return SWITCH_TRANSFORMER_MODELS


def _run(args: argparse.Namespace) -> None:
    downloader = ModelDownloader(args.cache_dir, use_mirror=args.mirror)
    print(f"model: {args.model}")

    model_dir = downloader.download_switch_transformer(args.model)
    print(f"model downloaded to: {model_dir}")

    downloader.verify_model(model_dir)
    print("model verified")

    info = downloader.get_model_info(model_dir)
    print("model info:")
    print(f"  type: {info.model_type}")
    print(f"  experts: {info.num_experts}")
    print(f"  hidden size: {info.hidden_size}")
    print(f"  intermediate size: {info.intermediate_size}")
    print(f"  layers: {info.num_layers}")

    splitter = TaskSplitter(info, ByExpert())
    splitter.set_expert_gpu_mapping(
        ExpertGpuMapping(expert_id=expert_id, gpu_id=expert_id % GPU_COUNT)
        for expert_id in range(info.num_experts)
    )

    input_data = prepare_sample_input(info)
    print(f"input data prepared: {len(input_data)} bytes")

    parent_task_id = f"moe_task_{uuid.uuid4()}"
    sub_tasks = splitter.split_task(input_data, parent_task_id, TaskPriority.NORMAL)
    print(f"task split into {len(sub_tasks)} sub-tasks")

    scheduler = TaskScheduler(SchedulerConfig())
    for task in sub_tasks:
        scheduler.submit_task(task)
    print("all sub-tasks submitted")

    simulate_task_execution(scheduler, splitter)
    print("done")


def main(argv: Sequence[str] | None = None) -> int:
    """Download a Switch Transformer, split a task by expert and merge the outputs."""
    parser = argparse.ArgumentParser(
        prog="moesched-demo",
        description="Download a Switch Transformer model and split an inference task by expert.",
    )
    parser.add_argument("--model", default=DEFAULT_MODEL, help="model to download")
    parser.add_argument("--cache-dir", default=DEFAULT_CACHE_DIR, help="where models are stored")
    parser.add_argument(
        "--no-mirror", dest="mirror", action="store_false", help="use the main hub instead of the mirror"
    )
    parser.add_argument("--list", action="store_true", help="list known models and exit")
    args = parser.parse_args(argv)

    if args.list:
        list_available_models()
        return 0

    try:
        _run(args)
    except (SchedulerError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0
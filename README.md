# moesched

Tools that split mixture-of-experts (MoE) inference work into sub-tasks,
queue those sub-tasks, and merge their outputs into one result. All data is
raw bytes. Model outputs are little-endian float32 values.

The package uses only the standard library.

## Installation

```
pip install .
```

To install the test dependencies as well:

```
pip install .[test]
```

## Modules

### `moesched.model_downloader`

- `ModelInfo` holds the model dimensions: `model_type`, `num_experts`,
  `hidden_size`, `intermediate_size` and `num_layers`.
- `ModelDownloader(cache_dir, use_mirror=False, python="python3")` downloads models.
  - `download_switch_transformer(model_name)` creates the directory
    `<cache_dir>/<model_name>`. It writes a `download_model.py` script into
    that directory and runs it with the configured interpreter. It returns the
    directory.
  - The script needs `transformers` and `torch` to be installed for that
    interpreter.
  - The script contacts the Hugging Face hub. When `use_mirror` is set, it
    contacts the mirror endpoint instead. The `endpoint` property gives the
    endpoint in use.
  - If the interpreter cannot be started, `SchedulerError` is raised. If the
    script fails, `ModelLoadError` is raised with the script's error output.
- `generate_download_script(model_name, model_dir)` returns the script text
  without running it.
- `verify_model(model_dir)` checks that the required files are present:
  `config.json`, `tokenizer.json`, `pytorch_model.bin` and
  `special_tokens_map.json`. It returns `True`, or raises `ModelLoadError`
  naming the first missing file.
- `get_model_info(model_dir)` reads `config.json` and returns a `ModelInfo`.
  - A missing or non-integer size becomes `0`.
  - A missing `model_type` becomes `"unknown"`.
  - Invalid JSON raises `ModelLoadError`.
- `SWITCH_TRANSFORMER_MODELS` lists the known checkpoints, from
  `google/switch-base-8` to `google/switch-xxl-128`.

### `moesched.strategy`

These split strategies are frozen dataclasses that derive from `SplitStrategy`:

- `ByExpert()`: one sub-task per expert.
- `ByLayer()`: one sub-task per layer.
- `ByBatch(batch_size)`: fixed-size chunks of the input. The last chunk is
  zero-padded. `batch_size` must be positive.
- `Hybrid(expert_split, layer_split, batch_size=0)` works as follows:
  - With both flags set, it makes one sub-task per layer and expert pair.
  - With one flag set and a positive `batch_size`, it splits by that flag
    first, then splits each piece into batches.
  - With one flag set and no `batch_size`, it splits by that flag only.
  - With no flags set, it splits into batches only. A `batch_size` of `0`
    then raises `InferenceError` when the task is split.

### `moesched.task_splitter`

`TaskSplitter(model_info, strategy)` splits and merges tasks.

- `set_expert_gpu_mapping(mapping)` replaces the expert placement. The
  mapping is an iterable of `ExpertGpuMapping` objects. The
  `expert_gpu_mapping` property returns a snapshot as a dict keyed by expert
  id.
- Expert tasks get the GPU from that mapping, or GPU 0 if the expert has no
  entry. All other tasks go to GPU 0.
- `split_task(input_data, task_id, priority=TaskPriority.NORMAL)` returns a
  list of `MoeTask` objects.
  - Input that is empty, or shorter than `hidden_size * 4` bytes, raises
    `InferenceError`.
  - Sub-task ids have the form `<parent>_expert_<n>`, `<parent>_layer_<n>`,
    `<parent>_batch_<n>` or `<parent>_layer_<l>_expert_<n>`.
- `get_task_dependencies(tasks)` maps each task id to the ids it depends on:
  - With `ByLayer`, each layer depends on the previous two layers.
  - With a `Hybrid` that sets both flags, every task depends on all tasks of
    the previous layer.
  - With any other strategy, tasks have no dependencies.
- `merge_results(results, gate_weights=None)` merges sub-task outputs
  according to the strategy.

### `moesched.data_preparator`

`DataPreparator(model_info)` builds the payload for each sub-task. Ids and
sizes are packed as little-endian u32. Gate weights are packed as
little-endian float64.

- `prepare_expert_data(input_data, expert_id)` returns the expert id, then
  one-hot gate weights, then the input.
- `prepare_layer_data(input_data, layer_id)` returns the layer id, then the
  layer configuration, then the input.
- `prepare_layer_expert_data(input_data, layer_id, expert_id)` returns the
  layer id, expert id, gate weights, layer configuration and input, in that
  order.
- `gate_info(expert_id)` returns the one-hot gate weights.
- `layer_config(layer_id)` returns the layer id, hidden size, intermediate
  size and expert count.
- An out-of-range id raises `InferenceError`.

### `moesched.result_merger`

`ResultMerger(model_info)` combines outputs. Its
`merge_results(results, gate_weights, strategy)` method dispatches to one of
the following:

- `merge_expert_results` returns the float32 sum of the expert outputs, each
  weighted by its `GateWeights` entry.
  - Gate weights are required.
  - There must be exactly one result and one weight per expert.
  - All outputs must be the same size.
- `merge_layer_results` adds each layer output onto the running residual.
  There must be one result per layer, and all must be the same size.
- `merge_batch_results` joins the outputs in order. Padding is kept.
- `merge_hybrid_results` merges the experts within each layer first, then
  merges the layers.

Inconsistent input raises `InferenceError`.

### `moesched.task_executor`

`TaskExecutor(model_info, timeout_ms=30000, max_retries=3)` runs tasks.

- `execute_task(task)` marks the task running and produces its result.
  - It retries failures, with the delay growing on each retry.
  - When the task runs out of retries or time, it marks the task failed and
    raises.
  - On success it marks the task completed.
- The result is a mock output of `hidden_size * 4` bytes: 8 zero bytes
  followed by float32 sample values. A `hidden_size` below 2 fails.
- The `sleep` and `clock` keyword arguments can replace the timing functions.

### `moesched.scheduler`, `moesched.task`, `moesched.config`, `moesched.routing`

- `TaskScheduler(config=None)` is a thread-safe first-in, first-out queue.
  - `submit_task(task)` adds a task.
  - `fetch_next_task()` returns the next task, or `None` when the queue is
    empty.
  - `len()` gives the queue length.
- `SchedulerConfig` holds three settings, with these defaults:
  - `max_concurrent_tasks=4`
  - `default_batch_size=1`
  - `gpu_ids=[0]`
- `MoeTask` holds a task's id, input, status, result, priority, GPU, parent
  id and failure reason.
  - `mark_running()`, `mark_completed(result)` and `mark_failed(reason)`
    change its status.
  - The statuses are in `TaskStatus`: `PENDING`, `RUNNING`, `COMPLETED` and
    `FAILED`.
  - The priorities are in `TaskPriority`: `LOW`, `NORMAL`, `HIGH` and
    `CRITICAL`.
- `ExpertGpuMapping(expert_id, gpu_id, memory_required=0)` describes where
  an expert runs.
- `GateWeights(weights, top_k)` holds the gate weights.

### `moesched.errors`

Errors derive from `SchedulerError`. The subclasses are `ModelLoadError`,
`InferenceError` and `GpuError`.

## Usage

```python
from moesched.config import SchedulerConfig
from moesched.model_downloader import ModelInfo
from moesched.routing import ExpertGpuMapping, GateWeights
from moesched.scheduler import TaskScheduler
from moesched.strategy import ByExpert
from moesched.task import TaskPriority
from moesched.task_splitter import TaskSplitter

info = ModelInfo(
    model_type="switch_transformer",
    num_experts=8,
    hidden_size=512,
    intermediate_size=2048,
    num_layers=12,
)
splitter = TaskSplitter(info, ByExpert())
splitter.set_expert_gpu_mapping(
    ExpertGpuMapping(expert_id=i, gpu_id=i % 2) for i in range(8)
)

tasks = splitter.split_task(bytes(info.hidden_size * 4), "job-1", TaskPriority.NORMAL)

scheduler = TaskScheduler(SchedulerConfig())
for task in tasks:
    scheduler.submit_task(task)

outputs = [bytes(16) for _ in tasks]
merged = splitter.merge_results(outputs, GateWeights([1 / 8] * 8, top_k=8))
```

## Demo command

```
moesched-demo
```

The command runs the whole workflow:

1. It downloads a model. The default is `google/switch-base-8`, fetched
   through the mirror endpoint into `./models`.
2. It verifies the model and reads its configuration.
3. It splits a sample input by expert across two GPUs.
4. It queues the sub-tasks and drains the queue, giving each sub-task a
   fabricated output.
5. It merges the outputs with uniform gate weights and prints the first
   values.

Options:

- `--model NAME` chooses the model.
- `--cache-dir DIR` changes where models are stored.
- `--no-mirror` uses the main hub instead of the mirror.
- `--list` prints the known models and exits.

## What it does not do

- The package runs no models on any GPU. `TaskExecutor` and the demo produce
  mock outputs.
- GPU ids are only labels on tasks.
- `SchedulerConfig` values are stored but not enforced. The scheduler does
  not limit concurrency and does not run tasks itself.
- Downloading a model depends on an external Python environment that has
  `transformers` and `torch` installed.
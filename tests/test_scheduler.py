import threading

from moesched.config import SchedulerConfig
from moesched.scheduler import TaskScheduler
from moesched.task import MoeTask


def task(name):
    return MoeTask(task_id=name, input_data=b"")


def test_empty_scheduler_returns_none():
    scheduler = TaskScheduler()
    assert scheduler.fetch_next_task() is None
    assert len(scheduler) == 0


def test_fifo_order():
    scheduler = TaskScheduler()
    for name in ("a", "b", "c"):
        scheduler.submit_task(task(name))
    fetched = [scheduler.fetch_next_task().task_id for _ in range(3)]
    assert fetched == ["a", "b", "c"]
    assert scheduler.fetch_next_task() is None


def test_default_and_custom_config():
    assert TaskScheduler().config == SchedulerConfig()
    custom = SchedulerConfig(gpu_ids=[0, 1])
    assert TaskScheduler(custom).config is custom


def test_concurrent_submission_keeps_every_task():
    scheduler = TaskScheduler()

    def submit(prefix):
        for i in range(200):
            scheduler.submit_task(task(f"{prefix}_{i}"))

    threads = [threading.Thread(target=submit, args=(p,)) for p in "wxyz"]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(scheduler) == 800
    ids = set()
    while (item := scheduler.fetch_next_task()) is not None:
        ids.add(item.task_id)
    assert len(ids) == 800
from __future__ import annotations

import threading
import time
from pathlib import Path

import allure
import pytest

from artifact_cache.builder.models import ArtifactLocation, BuildTask, NormalizedConfig
from artifact_cache.builder.pool import WorkerPool
from artifact_cache.builder.table import TaskTable

pytestmark = [
    allure.epic("Artifact Builder"),
    allure.feature("Task Table & Worker Pool"),
]


def _task(fingerprint: str) -> BuildTask:
    return BuildTask(
        fingerprint=fingerprint,
        request={"items": ["a"]},
        config=NormalizedConfig(name="icons", items=("a",)),
        scratch_dir=Path("/tmp") / fingerprint,
        location=ArtifactLocation(
            fingerprint=fingerprint,
            file=f"{fingerprint}.zip",
            directory=Path("/tmp"),
        ),
    )


def test_task_table_holds_one_task_per_fingerprint() -> None:
    table = TaskTable()
    task = _task("f1")
    table.register(task)

    with pytest.raises(KeyError, match="already registered"):
        table.register(_task("f1"))

    assert table.lookup("f1") is task
    assert "f1" in table
    assert len(table) == 1
    assert table.fingerprints() == frozenset({"f1"})
    assert list(table) == [task]


def test_task_table_remove_returns_task_once() -> None:
    table = TaskTable()
    task = _task("f1")
    table.register(task)

    assert table.remove("f1") is task
    assert table.lookup("f1") is None
    with pytest.raises(KeyError, match="not registered"):
        table.remove("f1")


def test_pool_signals_completion_once_per_item() -> None:
    seen: list[tuple[int, Exception | None]] = []
    seen_lock = threading.Lock()

    def handler(item: int) -> None:
        if item % 2:
            raise ValueError(f"odd {item}")

    pool: WorkerPool[int] = WorkerPool(handler=handler, concurrency=3)
    for item in range(6):
        pool.push(item, lambda error, item=item: _record(seen, seen_lock, item, error))

    assert pool.join(timeout=10)
    pool.shutdown()

    assert sorted(item for item, _ in seen) == list(range(6))
    errors = {item: error for item, error in seen}
    assert all(errors[item] is None for item in (0, 2, 4))
    assert all(isinstance(errors[item], ValueError) for item in (1, 3, 5))


def _record(seen, lock, item, error) -> None:
    with lock:
        seen.append((item, error))


def test_pool_never_exceeds_concurrency() -> None:
    active = 0
    peak = 0
    lock = threading.Lock()

    def handler(_item: int) -> None:
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.02)
        with lock:
            active -= 1

    pool: WorkerPool[int] = WorkerPool(handler=handler, concurrency=2)
    for item in range(8):
        pool.push(item, lambda _error: None)

    assert pool.join(timeout=10)
    pool.shutdown()

    assert 1 <= peak <= 2
    assert pool.active == 0
    assert pool.pending == 0


def test_pool_survives_failing_completion_callback() -> None:
    done = threading.Event()

    def explode(_error) -> None:
        raise RuntimeError("callback bug")

    pool: WorkerPool[int] = WorkerPool(handler=lambda _item: None, concurrency=1)
    pool.push(1, explode)
    pool.push(2, lambda _error: done.set())

    assert done.wait(timeout=10)
    pool.shutdown()


def test_pool_rejects_push_after_shutdown() -> None:
    pool: WorkerPool[int] = WorkerPool(handler=lambda _item: None, concurrency=1)
    pool.push(1, lambda _error: None)
    pool.shutdown()

    with pytest.raises(RuntimeError, match="shut down"):
        pool.push(2, lambda _error: None)


def test_pool_requires_positive_concurrency() -> None:
    with pytest.raises(ValueError, match="concurrency"):
        WorkerPool(handler=lambda _item: None, concurrency=0)


def test_join_timeout_leaves_no_helper_threads() -> None:
    gate = threading.Event()
    done = threading.Event()
    pool: WorkerPool[int] = WorkerPool(handler=lambda _item: gate.wait(10), concurrency=1)
    pool.push(1, lambda _error: done.set())
    baseline = threading.active_count()

    for _ in range(5):
        assert not pool.join(timeout=0.01)

    assert threading.active_count() == baseline
    gate.set()
    assert pool.join(timeout=10)
    assert done.is_set()
    pool.shutdown()


def test_join_on_idle_pool_returns_immediately() -> None:
    pool: WorkerPool[int] = WorkerPool(handler=lambda _item: None, concurrency=2)

    assert pool.join(timeout=0)
    assert pool.join()

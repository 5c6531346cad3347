from __future__ import annotations

import time
from threading import Lock

import pytest

from catalog_sync.engine import WorkerPool


def test_worker_pool_never_exceeds_bound() -> None:
    pool = WorkerPool(max_workers=5)
    lock = Lock()
    state = {"current": 0, "peak": 0}

    def handler(value: int) -> int:
        with lock:
            state["current"] += 1
            state["peak"] = max(state["peak"], state["current"])
        time.sleep(0.02)
        with lock:
            state["current"] -= 1
        return value * 2

    results = pool.run_all(range(30), handler)
    pool.shutdown()

    assert sorted(results) == [value * 2 for value in range(30)]
    assert state["peak"] <= 5
    assert pool.peak_in_flight <= 5
    assert pool.in_flight == 0


def test_worker_pool_converts_errors_and_finishes_all() -> None:
    pool = WorkerPool(max_workers=2)

    def handler(value: int) -> str:
        if value % 2:
            raise RuntimeError(f"bad {value}")
        return f"ok {value}"

    results = pool.run_all(range(6), handler, on_error=lambda value, exc: f"failed {value}")
    pool.shutdown()
    assert sorted(results) == sorted(
        ["ok 0", "failed 1", "ok 2", "failed 3", "ok 4", "failed 5"]
    )


def test_worker_pool_reraises_after_all_items_completed() -> None:
    pool = WorkerPool(max_workers=3)
    finished: list[int] = []
    lock = Lock()

    def handler(value: int) -> int:
        if value == 0:
            raise ValueError("boom")
        time.sleep(0.01)
        with lock:
            finished.append(value)
        return value

    with pytest.raises(ValueError):
        pool.run_all(range(8), handler)
    pool.shutdown()
    assert sorted(finished) == list(range(1, 8))


def test_worker_pool_rejects_empty_bound() -> None:
    with pytest.raises(ValueError):
        WorkerPool(max_workers=0)

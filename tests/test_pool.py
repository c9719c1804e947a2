"""Tests for the bounded fan-out executor."""

import threading
import time

import pytest

from nomad_exporter.collector.pool import BoundedExecutor


def test_limit_is_a_ceiling():
    lock = threading.Lock()
    state = {"running": 0, "peak": 0, "done": 0}

    def work():
        with lock:
            state["running"] += 1
            state["peak"] = max(state["peak"], state["running"])
        time.sleep(0.02)
        with lock:
            state["running"] -= 1
            state["done"] += 1

    with BoundedExecutor(limit=3, name="test") as pool:
        for _ in range(12):
            pool.submit(work)

    assert state["done"] == 12
    assert 1 <= state["peak"] <= 3


def test_failure_does_not_affect_siblings():
    results = []

    def work(i):
        if i == 2:
            raise RuntimeError("item 2 broke")
        results.append(i)

    with BoundedExecutor(limit=2) as pool:
        for i in range(5):
            pool.submit(work, i)

    assert sorted(results) == [0, 1, 3, 4]
    assert pool.failures == 1


def test_join_waits_for_everything():
    done = []

    pool = BoundedExecutor(limit=1)
    try:
        pool.submit(lambda: (time.sleep(0.05), done.append(1)))
        assert pool.join() == 0
        assert done == [1]
    finally:
        pool.__exit__(None, None, None)


def test_rejects_non_positive_limit():
    with pytest.raises(ValueError):
        BoundedExecutor(limit=0)

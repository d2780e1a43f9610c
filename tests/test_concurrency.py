import threading
import time

import pytest

from docweave.core.concurrency import Executor, ExecutorConfig


def test_map_unordered_delivers_every_result():
    executor = Executor(ExecutorConfig(max_workers=3, window=2))
    seen = []
    lock = threading.Lock()

    def on_result(res):
        with lock:
            seen.append(res)

    executor.map_unordered(range(10), lambda x: x * 2, on_result)
    assert sorted(seen) == [x * 2 for x in range(10)]


def test_map_unordered_reports_errors_and_continues():
    executor = Executor(ExecutorConfig(max_workers=2, window=2))
    seen = []
    errors = []

    def fn(x):
        if x == 2:
            raise RuntimeError("boom")
        return x

    executor.map_unordered([1, 2, 3], fn, seen.append, on_error=errors.append)
    assert sorted(seen) == [1, 3]
    assert len(errors) == 1
    assert str(errors[0]) == "boom"


def test_map_unordered_fail_fast_reraises():
    executor = Executor(ExecutorConfig(max_workers=1, window=1))

    def fn(x):
        if x == 1:
            raise ValueError("first")
        return x

    with pytest.raises(ValueError, match="first"):
        executor.map_unordered([0, 1, 2], fn, lambda _: None, fail_fast=True)


def test_map_unordered_completion_order():
    executor = Executor(ExecutorConfig(max_workers=2, window=2))
    order = []

    def fn(x):
        time.sleep(0.05 if x == 0 else 0.0)
        return x

    executor.map_unordered([0, 1], fn, order.append)
    assert order == [1, 0]


def test_executor_requires_positive_workers():
    executor = Executor(ExecutorConfig(max_workers=0, window=1))
    with pytest.raises(ValueError):
        executor.map_unordered([1], lambda x: x, lambda _: None)

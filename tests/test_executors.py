import logging
import threading

import pytest

from docweave.core.bounds import MB, BoundedProcessing, BoundsMonitor, UnboundedProcessing
from docweave.core.errors import BoundsViolation, ExtractionError, FileNotFound
from docweave.core.executors import (
    GROWTH_CHECK_INTERVAL,
    ExecutionResult,
    partition_batches,
    run_batches,
    run_sequential,
)


def _unbounded():
    return BoundsMonitor.create(UnboundedProcessing(), memory_probe=lambda: 10 * MB, clock=lambda: 0.0)


def _files(n):
    return [f"docs/{i:03d}.md" for i in range(n)]


def _upper(path):
    return path.upper()


def test_partition_batches_ceil_sizing():
    batches = partition_batches(_files(150), 4)
    assert [len(b) for b in batches] == [38, 38, 38, 36]
    assert sum(batches, []) == _files(150)


def test_partition_batches_fewer_files_than_workers():
    batches = partition_batches(_files(3), 8)
    assert [len(b) for b in batches] == [1, 1, 1]


def test_partition_batches_empty_and_invalid():
    assert partition_batches([], 4) == []
    with pytest.raises(ValueError):
        partition_batches(_files(3), 0)


def test_run_batches_preserves_batch_order():
    files = _files(25)
    result = run_batches(files, _upper, 4, _unbounded())
    assert isinstance(result, ExecutionResult)
    assert result.results == [f.upper() for f in files]
    assert result.errors == []
    assert result.batches == 4


def test_run_batches_uses_worker_threads():
    names = set()
    lock = threading.Lock()

    def work(path):
        with lock:
            names.add(threading.current_thread().name)
        return path

    run_batches(_files(8), work, 2, _unbounded())
    assert names
    assert all(name.startswith("docweave") for name in names)


def test_run_batches_collects_per_file_errors():
    def work(path):
        if path.endswith("003.md") or path.endswith("007.md"):
            raise ExtractionError("no metadata block found", path=path)
        return path

    result = run_batches(_files(10), work, 3, _unbounded())
    assert len(result.results) == 8
    assert sorted(err.path for err in result.errors) == ["docs/003.md", "docs/007.md"]


def test_run_batches_records_bounds_violation_per_batch():
    monitor = BoundsMonitor.create(
        BoundedProcessing(memory_limit_mb=1000, file_limit=2, time_limit_s=100),
        memory_probe=lambda: 10 * MB,
        clock=lambda: 0.0,
    )
    result = run_batches(_files(10), _upper, 2, monitor)
    # each batch of 5 stops once it has processed more than 2 files
    assert len(result.results) == 6
    violations = [e for e in result.errors if isinstance(e, BoundsViolation)]
    assert len(violations) == 2
    assert {v.details["batch"] for v in violations} == {0, 1}
    assert all(v.details["limit"] == "files" for v in violations)


def test_run_batches_raises_when_nothing_survives():
    def work(path):
        raise FileNotFound(f"file not found: {path}", path=path)

    with pytest.raises(FileNotFound):
        run_batches(_files(4), work, 2, _unbounded())


def test_run_sequential_in_order_with_errors():
    def work(path):
        if path == "docs/001.md":
            raise ExtractionError("bad", path=path)
        return path

    result = run_sequential(_files(4), work, _unbounded())
    assert result.results == ["docs/000.md", "docs/002.md", "docs/003.md"]
    assert [e.path for e in result.errors] == ["docs/001.md"]
    assert result.batches == 1


def test_run_sequential_aborts_on_exceeded_bounds():
    monitor = BoundsMonitor.create(
        BoundedProcessing(memory_limit_mb=1000, file_limit=2, time_limit_s=100),
        memory_probe=lambda: 10 * MB,
        clock=lambda: 0.0,
    )
    with pytest.raises(BoundsViolation) as excinfo:
        run_sequential(_files(10), _upper, monitor)
    assert excinfo.value.path == "docs/003.md"
    assert excinfo.value.details["limit"] == "files"


def test_run_sequential_raises_first_error_when_nothing_survives():
    def work(path):
        raise ExtractionError("bad", path=path)

    with pytest.raises(ExtractionError) as excinfo:
        run_sequential(_files(3), work, _unbounded())
    assert excinfo.value.path == "docs/000.md"


def test_run_sequential_warns_on_memory_growth(caplog):
    readings = iter([1 * MB] + [1 * MB] * GROWTH_CHECK_INTERVAL + [10_000 * MB] * 10)

    monitor = BoundsMonitor.create(
        UnboundedProcessing(),
        memory_probe=lambda: next(readings),
        clock=lambda: 0.0,
    )
    logger = logging.getLogger("tests.executors")
    with caplog.at_level("WARNING", logger="tests.executors"):
        result = run_sequential(_files(GROWTH_CHECK_INTERVAL), _upper, monitor, logger)
    assert len(result.results) == GROWTH_CHECK_INTERVAL
    assert "Memory growth warning" in caplog.text



def _near_memory_limit():
    return BoundsMonitor.create(
        BoundedProcessing(memory_limit_mb=100, file_limit=100, time_limit_s=100),
        memory_probe=lambda: 90 * MB,
        clock=lambda: 0.0,
    )


def test_run_sequential_warns_near_memory_limit_and_continues(caplog):
    logger = logging.getLogger("tests.executors.approaching")
    with caplog.at_level("WARNING", logger="tests.executors.approaching"):
        result = run_sequential(["a", "b", "c"], _upper, _near_memory_limit(), logger)
    assert result.results == ["A", "B", "C"]
    assert result.errors == []
    assert caplog.text.count("Approaching memory limit (90%)") == 3


def test_run_batches_warns_near_memory_limit_and_continues(caplog):
    logger = logging.getLogger("tests.executors.approaching")
    with caplog.at_level("WARNING", logger="tests.executors.approaching"):
        result = run_batches(["a", "b", "c"], _upper, 2, _near_memory_limit(), logger)
    assert result.results == ["A", "B", "C"]
    assert result.errors == []
    assert "Approaching memory limit in batch" in caplog.text
    assert "(90%)" in caplog.text

def test_empty_input():
    assert run_sequential([], _upper, _unbounded()).results == []
    assert run_batches([], _upper, 4, _unbounded()).batches == 0

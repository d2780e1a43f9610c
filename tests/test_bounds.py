# test_bounds.py
# SPDX-License-Identifier: MIT
import pytest

from docweave.core.bounds import (
    MB,
    ApproachingLimit,
    BoundedProcessing,
    BoundsMonitor,
    ExceededLimit,
    UnboundedProcessing,
    WithinBounds,
    default_bounds,
    resolve_bounds,
)
from docweave.core.config import BoundsConfig
from docweave.core.errors import ConfigurationError


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class FakeMemory:
    def __init__(self, rss):
        self.rss = rss

    def __call__(self):
        return self.rss


def _monitor(bounds, rss=10 * MB, now=0.0):
    mem = FakeMemory(rss)
    clock = FakeClock(now)
    return BoundsMonitor.create(bounds, memory_probe=mem, clock=clock), mem, clock


@pytest.mark.parametrize(
    "count, expected",
    [
        (1, (500, 2, 10)),
        (99, (500, 198, 10)),
        (100, (1024, 200, 30)),
        (999, (1024, 1998, 30)),
        (1000, (2048, 2000, 120)),
    ],
)
def test_default_bounds_tiers(count, expected):
    bounds = default_bounds(count)
    assert isinstance(bounds, BoundedProcessing)
    assert (bounds.memory_limit_mb, bounds.file_limit, bounds.time_limit_s) == expected


def test_default_bounds_zero_files_is_unbounded():
    assert isinstance(default_bounds(0), UnboundedProcessing)


def test_default_bounds_rejects_negative_count():
    with pytest.raises(ConfigurationError):
        default_bounds(-1)


@pytest.mark.parametrize("field", ["memory_limit_mb", "file_limit", "time_limit_s"])
def test_bounded_processing_requires_positive_values(field):
    values = {"memory_limit_mb": 100, "file_limit": 10, "time_limit_s": 5}
    values[field] = 0
    with pytest.raises(ConfigurationError):
        BoundedProcessing(**values)


def test_resolve_bounds_uses_defaults_without_explicit_limits():
    assert resolve_bounds(5) == default_bounds(5)
    assert resolve_bounds(5, BoundsConfig()) == default_bounds(5)


def test_resolve_bounds_fills_unset_limits_from_defaults():
    bounds = resolve_bounds(50, BoundsConfig(file_limit=7))
    assert bounds == BoundedProcessing(memory_limit_mb=500, file_limit=7, time_limit_s=10)


def test_resolve_bounds_unbounded_flag():
    assert isinstance(resolve_bounds(5000, BoundsConfig(unbounded=True)), UnboundedProcessing)


def test_within_bounds_below_thresholds():
    monitor, _, _ = _monitor(BoundedProcessing(100, 10, 5))
    state = monitor.check_state(3)
    assert isinstance(state, WithinBounds)
    assert state.memory.rss_bytes == 10 * MB


def test_file_limit_exceeded_only_when_strictly_over():
    monitor, _, _ = _monitor(BoundedProcessing(100, 10, 5))
    assert isinstance(monitor.check_state(10), WithinBounds)
    state = monitor.check_state(11)
    assert isinstance(state, ExceededLimit)
    assert state.limit == "files"


def test_memory_limit_exceeded_takes_priority():
    monitor, mem, clock = _monitor(BoundedProcessing(100, 10, 5))
    mem.rss = 101 * MB
    clock.now = 60.0
    state = monitor.check_state(50)
    assert isinstance(state, ExceededLimit)
    assert state.limit == "memory"


def test_time_limit_exceeded():
    monitor, _, clock = _monitor(BoundedProcessing(100, 10, 5), now=100.0)
    clock.now = 105.0
    assert isinstance(monitor.check_state(1), WithinBounds)
    clock.now = 105.5
    state = monitor.check_state(1)
    assert isinstance(state, ExceededLimit)
    assert state.limit == "time"
    assert monitor.elapsed == pytest.approx(5.5)


def test_approaching_limit_at_eighty_percent():
    monitor, mem, _ = _monitor(BoundedProcessing(100, 10, 5))
    mem.rss = 79 * MB
    assert isinstance(monitor.check_state(1), WithinBounds)
    mem.rss = 80 * MB
    state = monitor.check_state(1)
    assert isinstance(state, ApproachingLimit)
    assert state.ratio == pytest.approx(0.8)


def test_unbounded_is_always_within_bounds():
    monitor, mem, clock = _monitor(UnboundedProcessing())
    mem.rss = 10_000 * MB
    clock.now = 1e6
    assert isinstance(monitor.check_state(10**9), WithinBounds)


def test_memory_growth_check():
    monitor, mem, _ = _monitor(UnboundedProcessing(), rss=100 * MB)
    # 1 item always passes, whatever the growth
    mem.rss = 10_000 * MB
    assert monitor.validate_memory_growth(1).ok

    # 4 items: allowed growth is 2 * 100MB * log2(4) = 400MB
    mem.rss = 500 * MB
    assert monitor.validate_memory_growth(4).ok
    mem.rss = 501 * MB
    check = monitor.validate_memory_growth(4)
    assert not check.ok
    assert "4 items" in check.message


def test_baseline_is_fixed_at_creation():
    monitor, mem, _ = _monitor(UnboundedProcessing(), rss=10 * MB)
    mem.rss = 50 * MB
    monitor.check_state(1)
    assert monitor.baseline.rss_bytes == 10 * MB

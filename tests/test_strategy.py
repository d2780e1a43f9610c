import pytest

from docweave.core.config import AdaptiveConfig, ProcessingConfig, StrategyProfile
from docweave.core.errors import ConfigurationError
from docweave.core.strategy import select_strategy, strategy_stats


def test_parallel_requested_with_many_files():
    strategy = select_strategy(150, ProcessingConfig(parallel=True, max_workers=4))
    assert strategy.use_parallel is True
    assert strategy.max_workers == 4
    assert "parallel requested" in strategy.reason


def test_sequential_by_default():
    strategy = select_strategy(150)
    assert strategy.use_parallel is False
    assert strategy.max_workers == StrategyProfile().default_max_workers
    assert "sequential" in strategy.reason


def test_parallel_request_below_profile_minimum_stays_sequential():
    profile = StrategyProfile.preset("conservative")
    strategy = select_strategy(4, ProcessingConfig(parallel=True), profile=profile)
    assert strategy.use_parallel is False
    assert strategy.max_workers == 2
    assert strategy.reason.startswith("sequential fallback")
    assert "below the minimum of 5" in strategy.reason
    assert select_strategy(5, ProcessingConfig(parallel=True), profile=profile).use_parallel is True


def test_adaptive_policy_wins_over_parallel_flag():
    options = ProcessingConfig(parallel=False, adaptive=AdaptiveConfig(base_workers=3, max_file_threshold=10))
    assert select_strategy(10, options).use_parallel is False
    strategy = select_strategy(11, options)
    assert strategy.use_parallel is True
    assert strategy.max_workers == 3
    assert "adaptive" in strategy.reason


def test_adaptive_argument_overrides_options():
    strategy = select_strategy(
        3,
        ProcessingConfig(adaptive=AdaptiveConfig(max_file_threshold=100)),
        adaptive=AdaptiveConfig(base_workers=2, max_file_threshold=1),
    )
    assert strategy.use_parallel is True
    assert strategy.max_workers == 2


def test_strategy_stats_reports_thresholds():
    stats = strategy_stats(1)
    assert stats == {
        "recommended_strategy": "sequential",
        "min_files_for_parallel": 2,
        "default_max_workers": 4,
    }
    adaptive = strategy_stats(20, adaptive=AdaptiveConfig(max_file_threshold=10))
    assert adaptive["recommended_strategy"] == "parallel"
    assert adaptive["adaptive_threshold"] == 10


@pytest.mark.parametrize(
    "name, expected",
    [("conservative", (5, 2)), ("balanced", (2, 4)), ("Aggressive", (1, 8))],
)
def test_profile_presets(name, expected):
    profile = StrategyProfile.preset(name)
    assert (profile.min_files_for_parallel, profile.default_max_workers) == expected


def test_unknown_profile_rejected():
    with pytest.raises(ConfigurationError):
        StrategyProfile.preset("turbo")


def test_profile_validate_ranges():
    StrategyProfile(min_files_for_parallel=100, default_max_workers=32).validate()
    with pytest.raises(ConfigurationError):
        StrategyProfile(min_files_for_parallel=0).validate()
    with pytest.raises(ConfigurationError):
        StrategyProfile(default_max_workers=33).validate()

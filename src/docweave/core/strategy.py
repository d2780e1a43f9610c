# strategy.py
# SPDX-License-Identifier: MIT
"""Choose between sequential and parallel document processing."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .config import AdaptiveConfig, ProcessingConfig, StrategyProfile
from .log import get_logger, resolve_logger

log = get_logger(__name__)

__all__ = ["ProcessingStrategy", "select_strategy", "strategy_stats"]


@dataclass(frozen=True, slots=True)
class ProcessingStrategy:
    """Outcome of strategy selection.

    Attributes:
        use_parallel (bool): Whether files are processed in concurrent batches.
        max_workers (int): Worker (and batch) count for parallel runs.
        reason (str): Human-readable explanation of the decision.
    """

    use_parallel: bool
    max_workers: int
    reason: str


def select_strategy(
    file_count: int,
    options: Optional[ProcessingConfig] = None,
    adaptive: Optional[AdaptiveConfig] = None,
    profile: Optional[StrategyProfile] = None,
    *,
    logger: Optional[logging.Logger] = None,
) -> ProcessingStrategy:
    """Decide how ``file_count`` files should be processed.

    An adaptive policy, passed directly or via ``options.adaptive``, wins
    over the plain ``parallel`` flag. Without an explicit request the run
    is sequential regardless of file count.
    """
    logger = resolve_logger(logger, log)
    profile = profile or StrategyProfile()
    if adaptive is None and options is not None:
        adaptive = options.adaptive

    if adaptive is not None:
        use_parallel = file_count > adaptive.max_file_threshold
        strategy = ProcessingStrategy(
            use_parallel=use_parallel,
            max_workers=adaptive.base_workers,
            reason=(
                f"adaptive strategy: {file_count} files "
                f"{'>' if use_parallel else '<='} {adaptive.max_file_threshold} threshold"
            ),
        )
    else:
        requested = options is not None and options.parallel is True
        use_parallel = requested and file_count >= profile.min_files_for_parallel
        max_workers = (options.max_workers if options is not None else None) or profile.default_max_workers
        if use_parallel:
            reason = f"parallel requested with {file_count} files (min: {profile.min_files_for_parallel})"
        elif requested:
            reason = (
                f"sequential fallback: parallel requested but {file_count} files "
                f"is below the minimum of {profile.min_files_for_parallel}"
            )
        else:
            reason = f"sequential by default: parallel not requested for {file_count} files"
        strategy = ProcessingStrategy(use_parallel=use_parallel, max_workers=max_workers, reason=reason)

    logger.debug(
        "Strategy for %d file(s): %s with %d worker(s) (%s)",
        file_count,
        "parallel" if strategy.use_parallel else "sequential",
        strategy.max_workers,
        strategy.reason,
    )
    return strategy


def strategy_stats(
    file_count: int,
    adaptive: Optional[AdaptiveConfig] = None,
    profile: Optional[StrategyProfile] = None,
) -> Dict[str, Any]:
    """Report the recommended strategy and the thresholds behind it.

    Unlike :func:`select_strategy` this ignores whether parallelism was
    requested; it answers "what would suit this many files".
    """
    profile = profile or StrategyProfile()
    if adaptive is not None:
        recommended = "parallel" if file_count > adaptive.max_file_threshold else "sequential"
    else:
        recommended = "parallel" if file_count >= profile.min_files_for_parallel else "sequential"
    stats: Dict[str, Any] = {
        "recommended_strategy": recommended,
        "min_files_for_parallel": profile.min_files_for_parallel,
        "default_max_workers": profile.default_max_workers,
    }
    if adaptive is not None:
        stats["adaptive_threshold"] = adaptive.max_file_threshold
    return stats

# bounds.py
# SPDX-License-Identifier: MIT
"""Resource bounds for a processing run.

A run is either unbounded or bounded by memory (MB of process RSS), a file
count, and a wall-clock budget. :class:`BoundsMonitor` captures a start time
and baseline memory snapshot once, then classifies the run's state on
demand. The baseline is never modified after creation, so one monitor may be
consulted from several batches concurrently.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional, Union, cast

import psutil

from .config import BoundsConfig
from .errors import ConfigurationError
from .log import get_logger

log = get_logger(__name__)

__all__ = [
    "MB",
    "APPROACHING_RATIO",
    "BoundedProcessing",
    "UnboundedProcessing",
    "ProcessingBounds",
    "MemorySnapshot",
    "WithinBounds",
    "ApproachingLimit",
    "ExceededLimit",
    "ProcessingState",
    "GrowthCheck",
    "BoundsMonitor",
    "default_bounds",
    "resolve_bounds",
    "process_rss_bytes",
]

MB = 1024 * 1024
APPROACHING_RATIO = 0.8


# ---------------------------------------------------------------------------
# Bounds
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BoundedProcessing:
    """Ceilings for one run; all values must be positive."""

    memory_limit_mb: float
    file_limit: int
    time_limit_s: float

    def __post_init__(self) -> None:
        for name in ("memory_limit_mb", "file_limit", "time_limit_s"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive number, got {value!r}")

    @property
    def memory_limit_bytes(self) -> float:
        return self.memory_limit_mb * MB

    kind = "bounded"


@dataclass(frozen=True, slots=True)
class UnboundedProcessing:
    kind = "unbounded"


ProcessingBounds = Union[BoundedProcessing, UnboundedProcessing]


def default_bounds(file_count: int) -> ProcessingBounds:
    """Return the default bounds for a run over ``file_count`` files."""
    if file_count < 0:
        raise ConfigurationError(f"file_count must be >= 0, got {file_count}")
    if file_count == 0:
        return UnboundedProcessing()
    if file_count < 100:
        return BoundedProcessing(memory_limit_mb=500, file_limit=file_count * 2, time_limit_s=10)
    if file_count < 1000:
        return BoundedProcessing(memory_limit_mb=1024, file_limit=file_count * 2, time_limit_s=30)
    return BoundedProcessing(memory_limit_mb=2048, file_limit=file_count * 2, time_limit_s=120)


def resolve_bounds(file_count: int, config: Optional[BoundsConfig] = None) -> ProcessingBounds:
    """Build bounds from explicit config when any limit is set, else defaults.

    Unset limits in a partially specified config are taken from the
    file-count defaults.
    """
    if config is None or not (config.unbounded or config.is_explicit()):
        return default_bounds(file_count)
    if config.unbounded:
        return UnboundedProcessing()
    fallback = cast(BoundedProcessing, default_bounds(max(file_count, 1)))
    return BoundedProcessing(
        memory_limit_mb=config.memory_limit_mb or fallback.memory_limit_mb,
        file_limit=config.file_limit or fallback.file_limit,
        time_limit_s=config.time_limit_s or fallback.time_limit_s,
    )


# ---------------------------------------------------------------------------
# States
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class MemorySnapshot:
    rss_bytes: int
    taken_at: float

    @property
    def rss_mb(self) -> float:
        return self.rss_bytes / MB


@dataclass(frozen=True, slots=True)
class WithinBounds:
    memory: MemorySnapshot
    kind = "within_bounds"


@dataclass(frozen=True, slots=True)
class ApproachingLimit:
    memory: MemorySnapshot
    ratio: float = 0.0
    kind = "approaching_limit"


@dataclass(frozen=True, slots=True)
class ExceededLimit:
    """Run exceeded one of its ceilings.

    Attributes:
        limit (str): ``"memory"``, ``"files"`` or ``"time"``.
        detail (str): Human-readable description of the overrun.
    """

    memory: MemorySnapshot
    limit: str
    detail: str = ""
    kind = "exceeded_limit"


ProcessingState = Union[WithinBounds, ApproachingLimit, ExceededLimit]


@dataclass(frozen=True, slots=True)
class GrowthCheck:
    ok: bool
    message: str = ""


# ---------------------------------------------------------------------------
# Monitor
# ---------------------------------------------------------------------------


def process_rss_bytes() -> int:
    """Return the resident set size of the current process."""
    return int(psutil.Process().memory_info().rss)


class BoundsMonitor:
    """Classify a run's resource usage against its bounds.

    Use :meth:`create`; the constructor captures the baseline immediately.

    Args:
        bounds (ProcessingBounds): Limits for this run.
        memory_probe (Callable[[], int] | None): Returns current memory use in
            bytes. Defaults to process RSS via psutil.
        clock (Callable[[], float] | None): Monotonic clock in seconds.
    """

    def __init__(
        self,
        bounds: ProcessingBounds,
        *,
        memory_probe: Callable[[], int] | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.bounds = bounds
        self._probe = memory_probe or process_rss_bytes
        self._clock = clock or time.monotonic
        self._started = self._clock()
        self.baseline = self._snapshot()

    @classmethod
    def create(
        cls,
        bounds: ProcessingBounds,
        *,
        memory_probe: Callable[[], int] | None = None,
        clock: Callable[[], float] | None = None,
    ) -> "BoundsMonitor":
        return cls(bounds, memory_probe=memory_probe, clock=clock)

    def _snapshot(self) -> MemorySnapshot:
        return MemorySnapshot(rss_bytes=int(self._probe()), taken_at=self._clock())

    @property
    def elapsed(self) -> float:
        return self._clock() - self._started

    def check_state(self, items_processed: int) -> ProcessingState:
        snap = self._snapshot()
        bounds = self.bounds
        if not isinstance(bounds, BoundedProcessing):
            return WithinBounds(memory=snap)
        if snap.rss_bytes > bounds.memory_limit_bytes:
            return ExceededLimit(
                memory=snap,
                limit="memory",
                detail=f"memory {snap.rss_mb:.1f}MB > {bounds.memory_limit_mb}MB",
            )
        if items_processed > bounds.file_limit:
            return ExceededLimit(
                memory=snap,
                limit="files",
                detail=f"processed {items_processed} > {bounds.file_limit} files",
            )
        elapsed = snap.taken_at - self._started
        if elapsed > bounds.time_limit_s:
            return ExceededLimit(
                memory=snap,
                limit="time",
                detail=f"elapsed {elapsed:.2f}s > {bounds.time_limit_s}s",
            )
        ratio = snap.rss_bytes / bounds.memory_limit_bytes
        if ratio >= APPROACHING_RATIO:
            return ApproachingLimit(memory=snap, ratio=ratio)
        return WithinBounds(memory=snap)

    def validate_memory_growth(self, items_processed: int) -> GrowthCheck:
        """Heuristic check that memory grows no faster than O(log n).

        Growth since the baseline may be at most twice
        ``baseline * log2(items_processed)``. Never raises; callers log a
        warning when ``ok`` is False.
        """
        if items_processed <= 1:
            return GrowthCheck(ok=True)
        current = self._snapshot()
        growth = current.rss_bytes - self.baseline.rss_bytes
        expected = self.baseline.rss_bytes * math.log2(items_processed)
        if growth > expected * 2:
            return GrowthCheck(
                ok=False,
                message=(
                    f"memory grew {growth / MB:.1f}MB over {items_processed} items; "
                    f"expected at most {2 * expected / MB:.1f}MB"
                ),
            )
        return GrowthCheck(ok=True)

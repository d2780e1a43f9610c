# executors.py
# SPDX-License-Identifier: MIT
"""Batch (parallel) and sequential execution of per-document work.

Both executors share one contract: ``process_one(path)`` returns a result
or raises; failures are collected and the run continues. Exceptions
that are not a :class:`DocweaveError` are wrapped in :class:`ProcessingError`.
Only bounds overruns (sequential) and a run in which every file failed
abort the operation.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Generic, Optional, TypeVar

from .bounds import ApproachingLimit, BoundsMonitor, ExceededLimit
from .concurrency import Executor, ExecutorConfig
from .errors import BoundsViolation, DocweaveError, ProcessingError
from .log import get_logger, resolve_logger

log = get_logger(__name__)

R = TypeVar("R")

GROWTH_CHECK_INTERVAL = 100

__all__ = [
    "GROWTH_CHECK_INTERVAL",
    "ExecutionResult",
    "partition_batches",
    "run_batches",
    "run_sequential",
]


@dataclass(slots=True)
class ExecutionResult(Generic[R]):
    """Successful results plus the per-file errors recovered on the way.

    Attributes:
        results (list[R]): One entry per successfully processed file.
        errors (list[DocweaveError]): Recovered failures, including any
            :class:`BoundsViolation` recorded by a stopped batch.
        batches (int): Number of batches executed (1 for sequential runs).
    """

    results: list[R] = field(default_factory=list)
    errors: list[DocweaveError] = field(default_factory=list)
    batches: int = 0


def partition_batches(files: Sequence[str], workers: int) -> list[list[str]]:
    """Split ``files`` into contiguous batches of ``ceil(len(files) / workers)``.

    The last batch may be smaller.

    Raises:
        ValueError: If ``workers`` is less than 1.
    """
    if workers < 1:
        raise ValueError(f"workers must be a positive integer, got {workers}")
    if not files:
        return []
    size = max(1, math.ceil(len(files) / workers))
    return [list(files[i:i + size]) for i in range(0, len(files), size)]


def _raise_if_nothing_survived(outcome: ExecutionResult[R], logger: logging.Logger) -> None:
    if not outcome.results and outcome.errors:
        first = outcome.errors[0]
        logger.error("No document survived processing; first error: %s", first)
        raise first


def run_batches(
    files: Sequence[str],
    process_one: Callable[[str], R],
    workers: int,
    monitor: BoundsMonitor,
    logger: Optional[logging.Logger] = None,
) -> ExecutionResult[R]:
    """Process ``files`` in concurrent batches, one batch per worker.

    Within a batch files run in order and the bounds are checked before
    each file. An exceeded bound stops that batch only and is recorded as a
    :class:`BoundsViolation`. Results are returned in batch order.

    Raises:
        DocweaveError: The first recorded error when no file succeeded.
        ValueError: If ``workers`` is less than 1.
    """
    logger = resolve_logger(logger, log)
    batches = partition_batches(files, workers)
    if not batches:
        return ExecutionResult(batches=0)
    logger.debug(
        "Created %d batch(es) of up to %d file(s) for %d file(s)",
        len(batches),
        len(batches[0]),
        len(files),
    )

    def _run_one(indexed: tuple[int, list[str]]) -> tuple[int, ExecutionResult[R]]:
        index, batch = indexed
        part: ExecutionResult[R] = ExecutionResult(batches=1)
        logger.debug("Processing batch %d/%d with %d file(s)", index + 1, len(batches), len(batch))
        for path in batch:
            state = monitor.check_state(len(part.results))
            if isinstance(state, ExceededLimit):
                logger.warning("Batch %d stopped: %s", index + 1, state.detail or state.limit)
                part.errors.append(
                    BoundsViolation(
                        f"Processing exceeded bounds: {state.limit}",
                        path=path,
                        limit=state.limit,
                        batch=index,
                    )
                )
                break
            if isinstance(state, ApproachingLimit):
                logger.warning("Approaching memory limit in batch %d (%.0f%%)", index + 1, state.ratio * 100)
            try:
                part.results.append(process_one(path))
            except DocweaveError as exc:
                logger.warning("Failed to process %s: %s", path, exc)
                part.errors.append(exc)
            except Exception as exc:
                logger.warning("Unexpected failure processing %s", path, exc_info=True)
                part.errors.append(ProcessingError.wrap(exc, path=path))
        return index, part

    slots: list[Optional[ExecutionResult[R]]] = [None] * len(batches)

    def _collect(done: tuple[int, ExecutionResult[R]]) -> None:
        index, part = done
        slots[index] = part

    executor = Executor(ExecutorConfig(max_workers=len(batches), window=len(batches)))
    executor.map_unordered(enumerate(batches), _run_one, _collect, fail_fast=True)

    outcome: ExecutionResult[R] = ExecutionResult(batches=len(batches))
    for part in slots:
        if part is None:
            continue
        outcome.results.extend(part.results)
        outcome.errors.extend(part.errors)
    logger.info(
        "Parallel processing completed: %d successful, %d error(s)",
        len(outcome.results),
        len(outcome.errors),
    )
    _raise_if_nothing_survived(outcome, logger)
    return outcome


def run_sequential(
    files: Sequence[str],
    process_one: Callable[[str], R],
    monitor: BoundsMonitor,
    logger: Optional[logging.Logger] = None,
) -> ExecutionResult[R]:
    """Process ``files`` one at a time, in order.

    Raises:
        BoundsViolation: As soon as a bound is exceeded.
        DocweaveError: The first recorded error when no file succeeded.
    """
    logger = resolve_logger(logger, log)
    outcome: ExecutionResult[R] = ExecutionResult(batches=1 if files else 0)
    for path in files:
        state = monitor.check_state(len(outcome.results))
        if isinstance(state, ExceededLimit):
            raise BoundsViolation(
                f"Processing exceeded bounds: {state.limit}",
                path=path,
                limit=state.limit,
                processed=len(outcome.results),
            )
        if isinstance(state, ApproachingLimit):
            logger.warning("Approaching memory limit (%.0f%%)", state.ratio * 100)
        try:
            outcome.results.append(process_one(path))
        except DocweaveError as exc:
            logger.warning("Failed to process %s: %s", path, exc)
            outcome.errors.append(exc)
            continue
        except Exception as exc:
            logger.warning("Unexpected failure processing %s", path, exc_info=True)
            outcome.errors.append(ProcessingError.wrap(exc, path=path))
            continue
        done = len(outcome.results)
        if done % GROWTH_CHECK_INTERVAL == 0:
            growth = monitor.validate_memory_growth(done)
            if not growth.ok:
                logger.warning("Memory growth warning: %s", growth.message)
    logger.info(
        "Sequential processing completed: %d successful, %d error(s)",
        len(outcome.results),
        len(outcome.errors),
    )
    _raise_if_nothing_survived(outcome, logger)
    return outcome

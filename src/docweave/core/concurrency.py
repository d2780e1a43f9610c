# concurrency.py
# SPDX-License-Identifier: MIT
"""Thread pool executor with a bounded submission window.

Document processing is I/O bound (reading files, parsing small metadata
blocks), so batches run on threads in a single process.
"""
from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import TypeVar

from .log import get_logger

log = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")

__all__ = ["ExecutorConfig", "Executor"]


@dataclass(frozen=True)
class ExecutorConfig:
    """Immutable executor settings used to construct worker pools.

    Attributes:
        max_workers (int): Maximum number of worker threads.
        window (int): Maximum number of in-flight tasks allowed
            before backpressure is applied.
        thread_name_prefix (str): Prefix for worker thread names.
    """
    max_workers: int
    window: int
    thread_name_prefix: str = "docweave"


class Executor:
    """Run tasks in a thread pool with bounded submission.

    This wrapper keeps at most ``cfg.window`` tasks in flight and
    delivers results to callbacks in completion order, not submission
    order.

    Attributes:
        cfg (ExecutorConfig): Executor configuration for this instance.
    """

    def __init__(self, cfg: ExecutorConfig) -> None:
        self.cfg = cfg

    def _make_executor(self) -> ThreadPoolExecutor:
        if self.cfg.max_workers < 1:
            raise ValueError("Executor requires max_workers >= 1")
        return ThreadPoolExecutor(
            max_workers=self.cfg.max_workers,
            thread_name_prefix=self.cfg.thread_name_prefix,
        )

    def map_unordered(
        self,
        items: Iterable[T],
        fn: Callable[[T], R],
        on_result: Callable[[R], None],
        *,
        fail_fast: bool = False,
        on_error: Callable[[BaseException], None] | None = None,
    ) -> None:
        """Submit items to workers and consume results as they complete.

        Args:
            items (Iterable[T]): Items to process.
            fn (Callable[[T], R]): Worker function invoked for each item.
            on_result (Callable[[R], None]): Callback invoked for each
                successful result.
            fail_fast (bool): Whether to re-raise the first worker error
                and abort further processing.
            on_error (Callable[[BaseException], None] | None): Optional
                callback invoked when a worker raises an exception.

        Raises:
            Exception: Propagates the first worker error when
                ``fail_fast`` is True.
        """
        window = max(self.cfg.window, self.cfg.max_workers)
        with self._make_executor() as pool:
            pending: list[Future[R]] = []

            def _drain(block: bool = False) -> None:
                nonlocal pending
                if not pending:
                    return
                done, still = wait(
                    pending,
                    timeout=None if block else 0.0,
                    return_when=FIRST_COMPLETED,
                )
                pending = list(still)
                for fut in done:
                    try:
                        result = fut.result()
                    except Exception as exc:  # noqa: BLE001
                        if on_error:
                            on_error(exc)
                        if fail_fast:
                            raise
                        continue
                    on_result(result)

            for item in items:
                pending.append(pool.submit(fn, item))
                if len(pending) >= window:
                    _drain(block=True)

            while pending:
                _drain(block=True)

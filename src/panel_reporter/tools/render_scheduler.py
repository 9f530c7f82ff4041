"""
Concurrent Render Scheduler

Runs a blocking, I/O-bound worker over a list of tasks on a fixed pool of
``min(limit, len(tasks))`` threads. Each pool thread repeatedly claims the
next unclaimed index, runs the worker, stores its result in a pre-sized
slot and then flushes the longest contiguous run of finished-but-
unannounced indices to ``on_complete``. Completion callbacks therefore
arrive in submission order even when tasks finish out of order.

The caller polls the shared ``threading.Event`` while workers are in
flight, and the workers check it when claiming a task and around each
worker call. A set event ends the run with ``RenderCancelled`` straight
away; the first worker failure (by completion order) stops new claims and
is re-raised immediately. Workers still blocked in I/O are abandoned and
their late results dropped. Nothing is retried.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from typing import Callable, Generic, Optional, Sequence, TypeVar

from panel_reporter.config.constants import SCHEDULER_POLL_INTERVAL
from panel_reporter.exceptions import RenderCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

Worker = Callable[[T, int], R]
CompletionHandler = Callable[[int, R], None]


class _ScheduledRun(Generic[T, R]):
    """Shared state of one ``run_with_concurrency`` call."""

    def __init__(
        self,
        items: Sequence[T],
        worker: Worker,
        cancel_event: Optional[threading.Event],
        on_complete: Optional[CompletionHandler],
    ):
        self.items = items
        self.worker = worker
        self.cancel_event = cancel_event
        self.on_complete = on_complete
        self.results: list[Optional[R]] = [None] * len(items)
        self.finished = [False] * len(items)
        self.lock = threading.Lock()
        self.stop = threading.Event()
        self.next_index = 0
        self.next_to_flush = 0
        self.first_error: Optional[BaseException] = None

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def _check_cancelled(self) -> None:
        if self.cancelled:
            raise RenderCancelled()

    def _claim(self) -> Optional[int]:
        with self.lock:
            if self.stop.is_set() or self.cancelled or self.next_index >= len(self.items):
                return None
            index = self.next_index
            self.next_index += 1
            return index

    def _store_and_flush(self, index: int, result: R) -> None:
        with self.lock:
            if self.stop.is_set():
                return
            self.results[index] = result
            self.finished[index] = True
            while self.next_to_flush < len(self.items) and self.finished[self.next_to_flush]:
                if self.on_complete is not None:
                    self.on_complete(self.next_to_flush, self.results[self.next_to_flush])
                self.next_to_flush += 1

    def _fail(self, exc: BaseException) -> None:
        with self.lock:
            if self.first_error is None:
                self.first_error = exc
        self.stop.set()

    def run_slot(self) -> None:
        while True:
            index = self._claim()
            if index is None:
                return
            try:
                self._check_cancelled()
                result = self.worker(self.items[index], index)
                self._check_cancelled()
            except RenderCancelled:
                self.stop.set()
                return
            except Exception as exc:
                logger.debug(f"[Render] Task {index} failed: {exc}")
                self._fail(exc)
                return
            self._store_and_flush(index, result)


def run_with_concurrency(
    items: Sequence[T],
    limit: int,
    worker: Worker,
    cancel_event: Optional[threading.Event] = None,
    on_complete: Optional[CompletionHandler] = None,
    poll_interval: float = SCHEDULER_POLL_INTERVAL,
) -> list[R]:
    """
    Run ``worker(item, index)`` for every item with at most ``limit`` in flight.

    Returns as soon as the run is cancelled or a worker fails. Workers still
    blocked in I/O at that point are abandoned: their results are discarded
    and they fire no further callbacks.

    Args:
        items: Tasks in submission order.
        limit: Maximum concurrent workers (values below 1 are treated as 1).
        worker: Blocking callable returning the task's result.
        cancel_event: Shared cancellation signal.
        on_complete: Called as ``on_complete(index, result)`` strictly in
            index order, under the scheduler lock.
        poll_interval: Seconds between checks of ``cancel_event``.

    Returns:
        Results indexed by submission order.

    Raises:
        RenderCancelled: If ``cancel_event`` was set during the run.
        Exception: The first worker failure by completion order.
    """
    if not items:
        return []

    run: _ScheduledRun = _ScheduledRun(items, worker, cancel_event, on_complete)
    pool_size = max(1, min(limit, len(items)))
    logger.info(f"[Render] Scheduling {len(items)} tasks on {pool_size} workers")

    executor = ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="render")
    try:
        pending = {executor.submit(run.run_slot) for _ in range(pool_size)}
        while pending and not run.stop.is_set():
            if run.cancelled:
                run.stop.set()
                break
            done, pending = wait(pending, timeout=poll_interval, return_when=FIRST_COMPLETED)
            for future in done:
                future.result()
    finally:
        run.stop.set()
        executor.shutdown(wait=False, cancel_futures=True)

    if pending:
        logger.info(f"[Render] Abandoned {len(pending)} in-flight workers")
    if run.cancelled:
        raise RenderCancelled()
    if run.first_error is not None:
        raise run.first_error
    return list(run.results)

"""
Worker pool scheduler for index-tagged units of work.

Units (graph paths, ranges of VCF lines, blocks of records) are submitted in
index order with a bounded number in flight. Each result is placed in the slot
of its unit's index and slots are released strictly in index order, so the
merged output is identical to a sequential run whatever the pool size or the
order in which workers finish.
"""

import os
import time
import logging
from collections import deque
from multiprocessing import Pool as ProcessPool
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Deque, Iterable, Iterator, List, Optional, Tuple

from tqdm import tqdm

logger = logging.getLogger(__name__)

POOL_TYPES = ('thread', 'process')


class TaskChunker:
    """Splits work items into contiguous units; unit order follows item order."""

    @staticmethod
    def chunk_by_size(tasks: List[Any], chunk_size: int) -> List[List[Any]]:
        """Split ``tasks`` into units of ``chunk_size`` items (the last may be shorter)."""
        size = max(chunk_size, 1)
        return [tasks[i:i + size] for i in range(0, len(tasks), size)]

    @staticmethod
    def iter_chunks(items: Iterable[Any], chunk_size: int) -> Iterator[List[Any]]:
        """Lazily group an iterable into lists of ``chunk_size`` items."""
        size = max(chunk_size, 1)
        unit: List[Any] = []
        for item in items:
            unit.append(item)
            if len(unit) == size:
                yield unit
                unit = []
        if unit:
            yield unit


class _InlineHandle:
    """Result holder used when running without a pool."""

    def __init__(self, func: Callable, unit: Any):
        self._result = None
        self._error: Optional[Exception] = None
        try:
            self._result = func(unit)
        except Exception as e:
            self._error = e

    def get(self):
        if self._error is not None:
            raise self._error
        return self._result


class _FutureHandle:
    def __init__(self, future):
        self._future = future

    def get(self):
        return self._future.result()


class BaseWorkerPool:
    """
    Ordered, bounded worker pool.

    Subclasses provide ``_open``, ``_shutdown`` and ``_submit``; this class
    owns dispatch order, the in-flight bound and cancellation.

    Args:
        num_workers: Worker count; anything but a positive int means one per CPU.
        track_progress: Show a tqdm bar counting merged units.
        max_in_flight: Submitted but unmerged units allowed at once
            (default: twice the worker count).
    """

    kind = "base"

    def __init__(self, num_workers: Optional[int] = None,
                 track_progress: bool = False,
                 max_in_flight: Optional[int] = None):
        if not isinstance(num_workers, int) or num_workers <= 0:
            num_workers = os.cpu_count() or 4
        self.num_workers = num_workers
        self.track_progress = track_progress
        self.max_in_flight = max(1, max_in_flight or 2 * num_workers)
        self._pool = None

    def _open(self):
        raise NotImplementedError(f"{type(self).__name__} does not open a pool")

    def _shutdown(self):
        raise NotImplementedError(f"{type(self).__name__} does not close a pool")

    def _submit(self, func: Callable, unit: Any):
        """Dispatch one unit and return a handle whose ``get()`` blocks for its result."""
        raise NotImplementedError(f"{type(self).__name__} cannot submit units")

    def _create_pool(self):
        if self._pool is None:
            logger.debug(f"Starting {self.kind} pool with {self.num_workers} worker(s)")
            self._pool = self._open()

    def _close_pool(self):
        if self._pool is not None:
            logger.debug(f"Stopping {self.kind} pool")
            self._shutdown()
            self._pool = None

    def imap(self, func: Callable, tasks: Iterable[Any], total: Optional[int] = None) -> Iterator[Any]:
        """
        Apply ``func`` to every unit and yield results in unit order.

        Units are pulled lazily from ``tasks``. When a unit raises, no further
        units are dispatched, units already dispatched run to completion, and the
        first exception (in unit order) is re-raised.

        Args:
            func: Unit function. Must be picklable for a process pool.
            tasks: Iterable of units; its order defines the output order.
            total: Number of units, only used for the progress bar.
        """
        self._create_pool()

        in_flight: Deque[Tuple[int, Any]] = deque()
        first_error: Optional[BaseException] = None
        progress = tqdm(total=total, desc="Units", unit=" units", disable=not self.track_progress)

        def settle_oldest():
            nonlocal first_error
            index, handle = in_flight.popleft()
            try:
                result = handle.get()
            except Exception as e:
                if first_error is None:
                    logger.error(f"Unit {index} failed: {e}")
                    first_error = e
                return False, None
            progress.update(1)
            return True, result

        try:
            for index, unit in enumerate(tasks):
                in_flight.append((index, self._submit(func, unit)))
                while len(in_flight) >= self.max_in_flight and first_error is None:
                    ok, result = settle_oldest()
                    if ok and first_error is None:
                        yield result
                if first_error is not None:
                    break
            while in_flight and first_error is None:
                ok, result = settle_oldest()
                if ok and first_error is None:
                    yield result
        finally:
            # Dispatched units finish before the pool can be closed
            while in_flight:
                settle_oldest()
            progress.close()

        if first_error is not None:
            raise first_error

    def map(self, func: Callable, tasks: List[Any]) -> List[Any]:
        """
        Run every unit and return the results as a list indexed like ``tasks``.

        Raises:
            Exception: The first exception raised by a unit, in unit order.
        """
        slots: List[Any] = [None] * len(tasks)
        for index, result in enumerate(self.imap(func, tasks, total=len(tasks))):
            slots[index] = result
        return slots

    def __enter__(self):
        self._create_pool()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._close_pool()


class InlineWorkerPool(BaseWorkerPool):
    """Runs every unit in the calling thread; used for a single worker."""

    kind = "inline"

    def __init__(self, num_workers: Optional[int] = 1, track_progress: bool = False):
        super().__init__(1, track_progress, max_in_flight=1)

    def _open(self):
        return self

    def _shutdown(self):
        pass

    def _submit(self, func: Callable, unit: Any):
        return _InlineHandle(func, unit)


class ProcessWorkerPool(BaseWorkerPool):
    """Units run in a multiprocessing.Pool; functions and units must pickle."""

    kind = "process"

    def _open(self):
        return ProcessPool(processes=self.num_workers)

    def _shutdown(self):
        self._pool.close()
        self._pool.join()

    def _submit(self, func: Callable, unit: Any):
        # AsyncResult.get() re-raises the worker's exception
        return self._pool.apply_async(func, (unit,))


class ThreadWorkerPool(BaseWorkerPool):
    """Units run on a ThreadPoolExecutor sharing the caller's read-only state."""

    kind = "thread"

    def _open(self):
        return ThreadPoolExecutor(max_workers=self.num_workers)

    def _shutdown(self):
        self._pool.shutdown(wait=True)

    def _submit(self, func: Callable, unit: Any):
        return _FutureHandle(self._pool.submit(func, unit))


def create_worker_pool(pool_type: str = 'thread', num_workers: Optional[int] = None,
                       track_progress: bool = False) -> BaseWorkerPool:
    """
    Build the pool for ``pool_type``; a single worker always runs inline.

    Raises:
        ValueError: If ``pool_type`` is neither 'thread' nor 'process'.
    """
    pool_type = pool_type.lower()
    if pool_type not in POOL_TYPES:
        raise ValueError(f"Unknown pool type: {pool_type}. Use one of {POOL_TYPES}.")
    if num_workers == 1:
        return InlineWorkerPool(1, track_progress)
    if pool_type == 'process':
        return ProcessWorkerPool(num_workers, track_progress)
    return ThreadWorkerPool(num_workers, track_progress)


def execute_parallel(func: Callable, tasks: List[Any],
                     num_workers: Optional[int] = None,
                     pool_type: str = 'thread',
                     track_progress: bool = False) -> List[Any]:
    """Run ``func`` over ``tasks`` in a fresh pool and return the results in task order."""
    if not tasks:
        return []

    started = time.monotonic()
    with create_worker_pool(pool_type, num_workers, track_progress) as pool:
        results = pool.map(func, tasks)
    logger.debug(f"{len(tasks)} units finished in {time.monotonic() - started:.2f}s")
    return results

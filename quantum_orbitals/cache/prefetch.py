"""
Cooperative background queue for speculative cache fills.

Nothing here runs on its own: a scheduler (or a test) calls drain_one() to do
exactly one unit of work, or drain()/drain_async() to work through the queue
with a pause between items so foreground requests interleave.
"""
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import IntEnum
import asyncio
import heapq
import itertools
import logging
import time

from quantum_orbitals.utils import ErrorHandler, ErrorCode, ErrorLevel

logger = logging.getLogger(__name__)


class Priority(IntEnum):
    HIGH = 0
    MEDIUM = 1
    LOW = 2


@dataclass
class PrefetchJob:
    key: str
    priority: Priority
    is_cached: Callable[[], bool]
    compute: Callable[[], None]  # compute the payload and store it
    description: str = ""


@dataclass(order=True)
class _QueueItem:
    priority: int
    sequence: int
    job: PrefetchJob = field(compare=False)


class PrefetchQueue:
    def __init__(self, error_handler: ErrorHandler | None = None):
        self.error_handler = error_handler or ErrorHandler()
        self._heap: list[_QueueItem] = []
        self._queued: set[str] = set()
        self._sequence = itertools.count()
        self.completed = 0
        self.skipped = 0
        self.failed = 0

    def __len__(self) -> int:
        return len(self._heap)

    def pending_keys(self) -> list[str]:
        """Queued keys in the order they will be drained."""
        return [item.job.key for item in sorted(self._heap)]

    def push(self, job: PrefetchJob) -> bool:
        """Queue a job unless its key is already queued or cached."""
        if job.key in self._queued or job.is_cached():
            return False
        heapq.heappush(self._heap, _QueueItem(int(job.priority), next(self._sequence), job))
        self._queued.add(job.key)
        return True

    def drain_one(self) -> bool:
        """
        Run the highest priority job.

        The cache is checked again first, because a foreground request may have
        filled it since the job was queued. Failures are logged and dropped.

        Returns:
            False if the queue was empty
        """
        if not self._heap:
            return False
        job = heapq.heappop(self._heap).job
        self._queued.discard(job.key)
        if job.is_cached():
            self.skipped += 1
            logger.debug(f"Prefetch skipped, already cached: {job.key}")
            return True
        try:
            job.compute()
        except Exception as e:
            self.failed += 1
            self.error_handler.handle(
                f"Prefetch failed for {job.description or job.key}: {e}",
                ErrorCode.PREFETCH_FAILURE,
                ErrorLevel.ERROR,
                {"key": job.key},
            )
            return True
        self.completed += 1
        logger.debug(f"Prefetched {job.description or job.key}")
        return True

    def drain(self, delay: float = 0.0, max_items: int | None = None) -> int:
        """Drain synchronously, sleeping delay seconds between items."""
        processed = 0
        while self._heap and (max_items is None or processed < max_items):
            if processed and delay > 0:
                time.sleep(delay)
            self.drain_one()
            processed += 1
        return processed

    async def drain_async(self, delay: float = 0.05, max_items: int | None = None) -> int:
        """Drain one item per event-loop turn, yielding delay seconds in between."""
        processed = 0
        while self._heap and (max_items is None or processed < max_items):
            if processed:
                await asyncio.sleep(delay)
            self.drain_one()
            processed += 1
        return processed

    def clear(self) -> int:
        """Drop every pending job; returns how many were dropped."""
        dropped = len(self._heap)
        self._heap.clear()
        self._queued.clear()
        if dropped:
            logger.info(f"Cancelled {dropped} pending prefetch jobs")
        return dropped

"""
Batch Executor - Coalesce Task Submissions into One Execution
=============================================================

1 call with 5 tasks < 5 calls with 1 task each.

Submissions are queued until either the queue reaches ``max_size`` or the
window timer fires, whichever comes first. The whole queue is then swapped
out in one step and handed to the injected runner; every caller in that
batch is resolved (or rejected) together.

Callers that lose interest simply cancel their future before the window
fires; cancelled slots are dropped from the batch.

Usage:
    async def run_many(tasks):
        return [await model(t) for t in tasks]

    executor = BatchExecutor(runner=run_many, window_seconds=5, max_size=5)
    results = await executor.batch([task1, task2, task3])
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Set

from Colony.core.foundation.config_defaults import DEFAULTS
from Colony.core.foundation.exceptions import BatchExecutionError, ConfigurationError

logger = logging.getLogger(__name__)

BatchRunner = Callable[[List[Any]], Awaitable[List[Any]]]


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Anything with an ``asyncio.AbstractEventLoop.call_later``-like method."""

    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        ...


@dataclass
class BatchItem:
    """Single queued submission."""
    id: str
    task: Any
    future: asyncio.Future
    created_at: float = field(default_factory=time.time)


class BatchExecutor:
    """
    Size-or-window batching engine for task execution.

    Args:
        runner: Async callable taking a list of tasks and returning one
            result per task, in order
        window_seconds: Maximum time the first queued task waits
        max_size: Queue length that triggers an immediate flush
        scheduler: Timer source; defaults to the running event loop
    """

    def __init__(
        self,
        runner: Optional[BatchRunner] = None,
        window_seconds: float = DEFAULTS.BATCH_WINDOW_SECONDS,
        max_size: int = DEFAULTS.BATCH_MAX_SIZE,
        scheduler: Optional[Scheduler] = None,
    ):
        if max_size < 1:
            raise ConfigurationError("max_size must be at least 1", field='max_size', value=max_size)
        self.runner = runner
        self.window_seconds = window_seconds
        self.max_size = max_size
        self._scheduler = scheduler

        self._pending: List[BatchItem] = []
        self._timer: Optional[TimerHandle] = None
        self._flush_tasks: Set[asyncio.Task] = set()

        # Stats
        self._total_items = 0
        self._total_batches = 0
        self._failed_batches = 0
        self._cancelled_items = 0
        self._total_latency_ms = 0.0

    def submit(self, task: Any) -> asyncio.Future:
        """
        Queue one task; returns a future resolving to its result.

        Raises:
            ConfigurationError: If no runner was injected
        """
        if self.runner is None:
            raise ConfigurationError("BatchExecutor has no runner; inject one to use batching",
                                     field='runner')
        loop = asyncio.get_running_loop()
        item = BatchItem(id=str(uuid.uuid4())[:8], task=task, future=loop.create_future())
        self._pending.append(item)
        self._total_items += 1

        if len(self._pending) >= self.max_size:
            self._schedule_flush(loop)
        elif self._timer is None:
            scheduler = self._scheduler or loop
            self._timer = scheduler.call_later(self.window_seconds, self._on_window)
        return item.future

    async def batch(self, tasks: List[Any]) -> List[Any]:
        """Submit ``tasks`` and wait for all of their results."""
        if not tasks:
            return []
        futures = [self.submit(task) for task in tasks]
        return list(await asyncio.gather(*futures))

    async def flush(self) -> None:
        """Execute whatever is queued right now."""
        await self._flush()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _on_window(self) -> None:
        self._timer = None
        self._schedule_flush(asyncio.get_running_loop())

    def _schedule_flush(self, loop: asyncio.AbstractEventLoop) -> None:
        task = loop.create_task(self._flush())
        self._flush_tasks.add(task)
        task.add_done_callback(self._flush_tasks.discard)

    def _take_pending(self) -> List[BatchItem]:
        items, self._pending = self._pending, []
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        return items

    async def _flush(self) -> None:
        items = self._take_pending()
        live = [item for item in items if not item.future.done()]
        self._cancelled_items += len(items) - len(live)
        if not live:
            return

        batch_id = str(uuid.uuid4())[:8]
        start_time = time.time()
        logger.debug(f"Flushing batch {batch_id}: {len(live)} tasks")

        try:
            results = await self.runner([item.task for item in live])
            results = list(results)
            if len(results) != len(live):
                raise BatchExecutionError(
                    f"Runner returned {len(results)} results for {len(live)} tasks",
                    batch_id=batch_id,
                    size=len(live),
                )
        except Exception as e:
            self._failed_batches += 1
            logger.error(f"Batch {batch_id} failed: {e}")
            for item in live:
                if not item.future.done():
                    item.future.set_exception(e)
            return

        for item, result in zip(live, results):
            if not item.future.done():
                item.future.set_result(result)

        elapsed_ms = (time.time() - start_time) * 1000
        self._total_batches += 1
        self._total_latency_ms += elapsed_ms
        logger.debug(f"Batch {batch_id} complete: {len(live)} tasks in {elapsed_ms:.1f}ms")

    def get_stats(self) -> Dict[str, Any]:
        """Get batch executor statistics."""
        return {
            "total_items": self._total_items,
            "total_batches": self._total_batches,
            "failed_batches": self._failed_batches,
            "cancelled_items": self._cancelled_items,
            "avg_batch_size": (self._total_items - self._cancelled_items) / max(self._total_batches + self._failed_batches, 1),
            "avg_latency_per_batch_ms": self._total_latency_ms / max(self._total_batches, 1),
            "pending_items": len(self._pending),
        }

    async def close(self) -> None:
        """Flush pending tasks and wait for in-flight batches."""
        await self._flush()
        if self._flush_tasks:
            await asyncio.gather(*list(self._flush_tasks), return_exceptions=True)


__all__ = [
    'BatchExecutor',
    'BatchItem',
    'BatchRunner',
    'Scheduler',
]

"""
Batch processor — fixed-size batches, concurrent items, progress per batch.

Peak concurrency is the batch size. A failing item is turned into an
item-level outcome by ``on_error`` and never aborts the batch. The stop
check runs before every batch; in-flight items are never interrupted.
"""

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

ProgressFn = Callable[[int], Awaitable[Any]]
StopFn = Callable[[], Awaitable[bool]]


def batch_iter(items: Sequence[T], batch_size: int):
    """Yield (start index, slice) pairs of size ``batch_size``."""
    for i in range(0, len(items), batch_size):
        yield i, items[i : i + batch_size]


def progress_percent(processed: int, total: int) -> int:
    if total <= 0:
        return 100
    return math.floor(min(processed, total) / total * 100)


@dataclass
class BatchRun(Generic[R]):
    total: int
    processed: int = 0
    batches: int = 0
    stopped: bool = False
    results: list[R] = field(default_factory=list)


class BatchProcessor:
    def __init__(
        self,
        batch_size: int,
        *,
        on_progress: Optional[ProgressFn] = None,
        should_stop: Optional[StopFn] = None,
        label: str = "",
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.batch_size = batch_size
        self._on_progress = on_progress
        self._should_stop = should_stop
        self._label = label

    async def run(
        self,
        items: Sequence[T],
        operation: Callable[[T], Awaitable[R]],
        *,
        on_error: Optional[Callable[[T, Exception], Awaitable[R]]] = None,
        on_batch: Optional[Callable[[Sequence[T], list[R]], Awaitable[Any]]] = None,
    ) -> BatchRun[R]:
        run: BatchRun[R] = BatchRun(total=len(items))

        for start, batch in batch_iter(items, self.batch_size):
            if self._should_stop and await self._should_stop():
                logger.info("%sStop requested — skipping items %d..%d", self._label, start, run.total - 1)
                run.stopped = True
                break

            logger.debug("%sProcessing items %d..%d", self._label, start, start + len(batch) - 1)
            results = await asyncio.gather(*(self._guarded(operation, item, on_error) for item in batch))
            if on_batch:
                await on_batch(batch, results)

            run.results.extend(results)
            run.processed += len(batch)
            run.batches += 1
            if self._on_progress:
                await self._on_progress(progress_percent(run.processed, run.total))

        return run

    async def _guarded(self, operation, item, on_error):
        try:
            return await operation(item)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("%sItem failed: %s", self._label, exc)
            if on_error is None:
                return None
            return await on_error(item, exc)

"""
Per-job context handed to every workflow.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import BaseModel

from busverifier.config import Settings
from busverifier.lookup.base import BusinessLookup
from busverifier.schemas import JobKind, JobStatus
from busverifier.store import RecordStore

logger = logging.getLogger(__name__)


@dataclass
class WorkflowOutcome:
    results: Optional[BaseModel] = None
    stopped: bool = False


@dataclass
class JobContext:
    job_id: str
    kind: JobKind
    batch_id: str
    options: Any
    store: RecordStore
    lookup: BusinessLookup
    settings: Settings
    rng: random.Random
    cancel: asyncio.Event = field(default_factory=asyncio.Event)
    source_rows: list[dict] = field(default_factory=list)

    @property
    def label(self) -> str:
        return f"[{self.job_id[:8]}] "

    def log(self, message: str, *args, level: str = "info") -> None:
        getattr(logger, level, logger.info)("[%s] " + message, self.job_id[:8], *args)

    async def should_stop(self) -> bool:
        """Cancellation token first, then the stored status (stop from elsewhere)."""
        if self.cancel.is_set():
            return True
        job = await self.store.get_job(self.job_id)
        if job is None or job.status == JobStatus.STOPPED.value:
            self.cancel.set()
            return True
        return False

    async def set_progress(self, progress: int) -> None:
        """Persist progress. A stop may land mid-batch; that batch still counts."""
        await self.store.update_job(
            self.job_id,
            {"progress": max(0, min(100, int(progress)))},
            only_if_status=[JobStatus.RUNNING.value, JobStatus.STOPPED.value],
        )

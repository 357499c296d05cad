"""
Business Verifier — job supervisor.

Starts one supervised ``asyncio.Task`` per job, keeps its cancellation
token, and guarantees a job never stays ``running`` after its task dies.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from busverifier.config import Settings, settings as default_settings
from busverifier.errors import BatchNotFoundError, JobValidationError
from busverifier.lookup.base import BusinessLookup
from busverifier.models import ProcessingJob, UploadBatch
from busverifier.pipeline.orchestrator import JobOrchestrator, validate_options
from busverifier.pipeline.retry import RetryPolicy
from busverifier.pipeline.state import is_terminal, sources_of
from busverifier.schemas import BatchStatus, JobKind, JobStatus
from busverifier.store import RecordStore

logger = logging.getLogger(__name__)


@dataclass
class JobHandle:
    job_id: str
    batch_id: str
    task: asyncio.Task = field(repr=False)


class JobSupervisor:
    """Job-facing surface: start, poll and stop background jobs."""

    def __init__(
        self,
        store: RecordStore,
        lookup: BusinessLookup,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.store = store
        self.settings = settings or default_settings
        self.orchestrator = JobOrchestrator(
            store, lookup, self.settings, rng=rng, retry_policy=retry_policy
        )
        self._tasks: dict[str, asyncio.Task] = {}
        self._tokens: dict[str, asyncio.Event] = {}

    # ── Public API ──────────────────────────────────────

    async def start_job(
        self,
        kind: JobKind | str,
        batch_id: Optional[str] = None,
        options: Any = None,
    ) -> JobHandle:
        """Validate, create the job row and launch it in the background.

        For verification ``batch_id`` is the batch to verify. For the
        prospecting kinds it names the (optional) source batch and a new
        batch is created to hold the results.
        """
        opts = validate_options(kind, options, self.settings)
        kind = JobKind(kind)

        source: UploadBatch | None = None
        if batch_id:
            source = await self.store.get_upload_batch(batch_id)
            if source is None:
                raise BatchNotFoundError(batch_id)

        if kind == JobKind.VERIFICATION:
            if source is None:
                raise JobValidationError("businessDataId is required for verification")
            target = source
        elif kind == JobKind.AI_PROSPECTING:
            if source is None or not source.raw_rows:
                raise JobValidationError("AI prospecting needs a source batch with uploaded rows")
            target = await self._create_target_batch(
                f"ai_prospects_{opts.business_type}.json", source, opts.number_of_results
            )
        elif kind == JobKind.PROSPECTING:
            target = await self._create_target_batch(
                f"prospects_{opts.business_type}.json", source, opts.number_of_results
            )
        else:
            target = await self._create_target_batch(
                f"Prospects near {opts.latitude:.4f}, {opts.longitude:.4f}", source, 0
            )

        job = await self.store.create_job(target.id, kind.value)
        token = asyncio.Event()
        self._tokens[job.id] = token
        task = asyncio.create_task(
            self._supervise(job.id, opts, source.id if source else None, token),
            name=f"job-{job.id}",
        )
        self._tasks[job.id] = task
        task.add_done_callback(lambda _t, job_id=job.id: self._tasks.pop(job_id, None))
        logger.info("Job %s (%s) queued on batch %s", job.id, kind.value, target.id)
        return JobHandle(job_id=job.id, batch_id=target.id, task=task)

    async def get_job_status(self, job_id: str) -> ProcessingJob | None:
        return await self.store.get_job(job_id)

    async def stop_job(self, job_id: str) -> bool:
        """Request a stop. Returns False only when the job does not exist.

        A job already in a terminal state is left untouched.
        """
        job = await self.store.get_job(job_id)
        if job is None:
            return False
        if is_terminal(job.status):
            logger.info("Job %s already %s — stop ignored", job_id, job.status)
            return True
        stopped = await self.store.update_job(
            job_id,
            {"status": JobStatus.STOPPED.value, "completed_at": datetime.now(timezone.utc)},
            only_if_status=sources_of(JobStatus.STOPPED),
        )
        token = self._tokens.get(job_id)
        if token is not None:
            token.set()
        if stopped is not None:
            logger.info("⏹️ Stop requested for job %s", job_id)
        else:
            logger.info("Job %s finished before the stop landed", job_id)
        return True

    @property
    def active(self) -> int:
        """Number of job tasks still running."""
        return sum(1 for t in self._tasks.values() if not t.done())

    async def drain(self) -> None:
        """Wait for every started job to finish."""
        tasks = [t for t in self._tasks.values() if not t.done()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def shutdown(self) -> None:
        """Stop all active jobs and wait for them to wind down."""
        for job_id, task in list(self._tasks.items()):
            if not task.done():
                await self.stop_job(job_id)
        await self.drain()

    # ── Internals ───────────────────────────────────────

    async def _create_target_batch(
        self, file_name: str, source: UploadBatch | None, expected: int
    ) -> UploadBatch:
        return await self.store.create_upload_batch(
            file_name,
            user_id=source.user_id if source else None,
            raw_rows=[],
            status=BatchStatus.PROCESSING.value,
            total_records=expected,
        )

    async def _supervise(
        self,
        job_id: str,
        options: Any,
        source_batch_id: Optional[str],
        token: asyncio.Event,
    ) -> None:
        try:
            await self.orchestrator.run(
                job_id, options, source_batch_id=source_batch_id, cancel=token
            )
        except asyncio.CancelledError:
            logger.warning("Job %s task cancelled", job_id)
            await self._mark_failed(job_id, "Job task was cancelled")
            raise
        except Exception as e:
            logger.error("Job %s crashed: %s", job_id, e)
            await self._mark_failed(job_id, str(e) or e.__class__.__name__)
        finally:
            self._tokens.pop(job_id, None)

    async def _mark_failed(self, job_id: str, message: str) -> None:
        try:
            await self.store.update_job(
                job_id,
                {
                    "status": JobStatus.FAILED.value,
                    "error_message": message,
                    "completed_at": datetime.now(timezone.utc),
                },
                only_if_status=sources_of(JobStatus.FAILED),
            )
        except Exception as e:
            logger.error("Could not record failure of job %s: %s", job_id, e)

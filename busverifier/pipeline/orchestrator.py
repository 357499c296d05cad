"""
Job Orchestrator — drives one job from ``pending`` to a terminal state.

Every terminal write is a compare-and-set on the job status, so a stop
that lands while the last batch is in flight is never overwritten.
"""

import asyncio
import logging
import random
import traceback
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ValidationError

from busverifier.config import Settings, settings as default_settings
from busverifier.errors import JobNotFoundError, JobValidationError
from busverifier.lookup.base import BusinessLookup
from busverifier.models import ProcessingJob
from busverifier.pipeline.context import JobContext, WorkflowOutcome
from busverifier.pipeline.retry import RetryPolicy
from busverifier.pipeline.state import sources_of
from busverifier.pipeline.workflows import (
    ai_prospecting,
    location_prospecting,
    template_prospecting,
    verification,
)
from busverifier.schemas import OPTIONS_BY_KIND, BatchStatus, JobKind, JobStatus
from busverifier.store import RecordStore

logger = logging.getLogger(__name__)


def validate_options(kind: JobKind | str, options: Any, settings: Optional[Settings] = None) -> BaseModel:
    """Coerce raw options into the model for ``kind``. Raises JobValidationError."""
    cfg = settings or default_settings
    try:
        kind = JobKind(kind)
    except ValueError as e:
        raise JobValidationError(f"Unknown job kind: {kind!r}") from e
    model = OPTIONS_BY_KIND[kind]
    if isinstance(options, model):
        return options
    try:
        return model.model_validate(options or {}, context={"max_radius_m": cfg.max_nearby_radius_m})
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'options'}: {err['msg']}" for err in e.errors()
        )
        raise JobValidationError(f"Invalid {kind.value} options: {problems}") from e


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobOrchestrator:
    """Runs the workflow for one job kind and records the outcome."""

    def __init__(
        self,
        store: RecordStore,
        lookup: BusinessLookup,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.store = store
        self.lookup = lookup
        self.settings = settings or default_settings
        self.rng = rng or random.Random()
        self.retry_policy = retry_policy or RetryPolicy.from_settings(self.settings)

    # ── Public API ──────────────────────────────────────

    async def run(
        self,
        job_id: str,
        options: Any = None,
        *,
        source_batch_id: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> ProcessingJob:
        """Execute the job's workflow. Returns the job as last stored.

        Never raises for workflow or store failures; those end the job
        ``failed``. Raises JobNotFoundError for an unknown ``job_id``.
        """
        job = await self.store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)

        ctx = JobContext(
            job_id=job.id,
            kind=JobKind(job.kind),
            batch_id=job.batch_id,
            options=None,
            store=self.store,
            lookup=self.lookup,
            settings=self.settings,
            rng=self.rng,
            cancel=cancel or asyncio.Event(),
        )

        started = await self.store.update_job(
            job_id,
            {"status": JobStatus.RUNNING.value, "started_at": _utcnow()},
            only_if_status=sources_of(JobStatus.RUNNING),
        )
        if started is None:
            current = await self.store.get_job(job_id)
            ctx.log("Job is %s — not starting", current.status, level="warning")
            if current.status == JobStatus.STOPPED.value and ctx.kind != JobKind.VERIFICATION:
                # Target batch was created for this run and holds nothing yet
                await self.store.recompute_batch_counts(
                    ctx.batch_id, status=BatchStatus.COMPLETED.value, reset_total=True
                )
            return current

        ctx.log("🚀 Starting %s job on batch %s", ctx.kind.value, ctx.batch_id)
        try:
            ctx.options = validate_options(ctx.kind, options, self.settings)
            ctx.source_rows = await self._load_source_rows(source_batch_id or ctx.batch_id)
            outcome = await self._dispatch(ctx)
            if outcome.stopped or outcome.results is None:
                await self._finish_stopped(ctx)
            else:
                await self._complete(ctx, outcome.results)
        except Exception as exc:
            await self._fail(ctx, exc)

        return await self.store.get_job(job_id)

    # ── Internals ───────────────────────────────────────

    async def _dispatch(self, ctx: JobContext) -> WorkflowOutcome:
        if ctx.kind == JobKind.VERIFICATION:
            return await verification.run(ctx)
        if ctx.kind == JobKind.PROSPECTING:
            return await template_prospecting.run(ctx)
        if ctx.kind == JobKind.AI_PROSPECTING:
            return await ai_prospecting.run(ctx, self.retry_policy)
        return await location_prospecting.run(ctx)

    async def _load_source_rows(self, batch_id: str) -> list[dict]:
        batch = await self.store.get_upload_batch(batch_id)
        if batch is None or not isinstance(batch.raw_rows, list):
            return []
        return [row for row in batch.raw_rows if isinstance(row, dict)]

    async def _complete(self, ctx: JobContext, results: BaseModel) -> None:
        done = await self.store.update_job(
            ctx.job_id,
            {
                "status": JobStatus.COMPLETED.value,
                "progress": 100,
                "completed_at": _utcnow(),
                "results": results.model_dump(mode="json"),
            },
            only_if_status=sources_of(JobStatus.COMPLETED),
        )
        if done is None:
            ctx.log("Stopped before completion could be recorded", level="warning")
            await self._finish_stopped(ctx)
            return
        ctx.log("🎉 Job complete")

    async def _finish_stopped(self, ctx: JobContext) -> None:
        """Keep what was produced; mark the job stopped if nobody did yet."""
        await self.store.update_job(
            ctx.job_id,
            {"status": JobStatus.STOPPED.value, "completed_at": _utcnow()},
            only_if_status=[JobStatus.RUNNING.value],
        )
        await self.store.recompute_batch_counts(
            ctx.batch_id,
            status=BatchStatus.COMPLETED.value,
            reset_total=ctx.kind != JobKind.VERIFICATION,
        )
        ctx.log("⏹️ Job stopped")

    async def _fail(self, ctx: JobContext, exc: Exception) -> None:
        message = str(exc) or exc.__class__.__name__
        ctx.log("💥 Job failed: %s", message, level="error")
        logger.debug("Job %s traceback:\n%s", ctx.job_id, traceback.format_exc())
        failed = await self.store.update_job(
            ctx.job_id,
            {
                "status": JobStatus.FAILED.value,
                "error_message": message,
                "completed_at": _utcnow(),
            },
            only_if_status=sources_of(JobStatus.FAILED),
        )
        if failed is not None:
            await self.store.update_upload_batch(ctx.batch_id, {"status": BatchStatus.ERROR.value})

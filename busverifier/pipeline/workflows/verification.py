"""
Verification — check every record of a batch against the lookup.

Records are processed in batches of ``verification_batch_size``; a lookup
failure turns that one record into an ``error`` record and never fails
the job. Geocoding is best effort: its failure only drops the coordinates.
"""

import asyncio
import random

from busverifier.models import BusinessRecord
from busverifier.pipeline.batching import BatchProcessor
from busverifier.pipeline.context import JobContext, WorkflowOutcome
from busverifier.schemas import BatchStatus, RecordStatus
from busverifier.schemas.payloads import (
    Firmographics,
    PlaceVerification,
    VerificationEnrichment,
    VerificationPayload,
    VerificationResults,
)


def synthetic_firmographics(rng: random.Random) -> Firmographics:
    """Illustrative enrichment; no firmographics source is wired in."""
    return Firmographics(
        employee_count=rng.randint(1, 1000),
        revenue=rng.randint(100_000, 10_099_999),
        founded=rng.randint(1970, 2019),
    )


def derive_status(result: PlaceVerification, threshold: float) -> RecordStatus:
    if not result.verified:
        return RecordStatus.ERROR
    if result.confidence >= threshold:
        return RecordStatus.VERIFIED
    return RecordStatus.UPDATED


NO_ADDRESS = PlaceVerification(
    verified=False,
    confidence=0,
    address_verified=False,
    current_business_name="No address provided",
)


async def run(ctx: JobContext) -> WorkflowOutcome:
    records = await ctx.store.get_records(ctx.batch_id)
    ctx.log("🔎 Verifying %d records", len(records))
    await ctx.store.update_upload_batch(
        ctx.batch_id,
        {"status": BatchStatus.PROCESSING.value, "total_records": len(records)},
    )

    async def verify(record: BusinessRecord) -> RecordStatus:
        if record.address:
            result, coords = await asyncio.gather(
                ctx.lookup.verify_address(record.address),
                ctx.lookup.geocode(record.address),
                return_exceptions=True,
            )
            if isinstance(result, BaseException):
                raise result
            if isinstance(coords, Exception):
                ctx.log("Geocoding failed for record %s: %s", record.id, coords, level="warning")
                coords = None
            elif isinstance(coords, BaseException):
                raise coords
        else:
            result, coords = NO_ADDRESS, None

        enrichment = VerificationEnrichment(
            **synthetic_firmographics(ctx.rng).model_dump(),
            place_details=result.place_details,
            location=coords,
        )
        payload = VerificationPayload(
            verified=result.verified,
            confidence=result.confidence,
            address_verified=result.address_verified,
            current_business_name=result.current_business_name,
            enrichment=enrichment,
        )
        status = derive_status(result, ctx.settings.verified_confidence_threshold)
        await ctx.store.update_record(
            record.id,
            {"status": status.value, "verification_data": payload.model_dump(mode="json")},
        )
        return status

    async def failed(record: BusinessRecord, exc: Exception) -> RecordStatus:
        ctx.log("Verification error for record %s: %s", record.id, exc, level="warning")
        payload = VerificationPayload(
            verified=False,
            confidence=0.1,
            address_verified=False,
            current_business_name="Verification failed",
        )
        await ctx.store.update_record(
            record.id,
            {"status": RecordStatus.ERROR.value, "verification_data": payload.model_dump(mode="json")},
        )
        return RecordStatus.ERROR

    processor = BatchProcessor(
        ctx.settings.verification_batch_size,
        on_progress=ctx.set_progress,
        should_stop=ctx.should_stop,
        label=ctx.label,
    )
    outcome = await processor.run(records, verify, on_error=failed)
    if outcome.stopped:
        return WorkflowOutcome(stopped=True)

    await ctx.store.recompute_batch_counts(ctx.batch_id, status=BatchStatus.COMPLETED.value)
    results = VerificationResults(
        total_processed=outcome.processed,
        verified=outcome.results.count(RecordStatus.VERIFIED),
        updated=outcome.results.count(RecordStatus.UPDATED),
        errors=outcome.results.count(RecordStatus.ERROR),
    )
    ctx.log("✅ Verification done: %d verified, %d updated, %d errors",
            results.verified, results.updated, results.errors)
    return WorkflowOutcome(results=results)

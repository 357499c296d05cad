"""
AI prospecting — find real businesses in the cities the source data points at.

1. AI location extraction over the source rows (retried with backoff)
2. Dedup index from the source company names
3. One search per target city, ``ceil(requested / cities)`` results each
4. Survivors of the dedup filter become ``new`` records, one city at a time
"""

import math

from busverifier.errors import WorkflowError
from busverifier.pipeline.batching import BatchProcessor
from busverifier.pipeline.context import JobContext, WorkflowOutcome
from busverifier.pipeline.dedup import DedupIndex
from busverifier.pipeline.locations import extract_target_locations
from busverifier.pipeline.retry import RetryPolicy
from busverifier.schemas import AIProspectingOptions, BatchStatus, RecordStatus
from busverifier.schemas.payloads import (
    AIProspectEnrichment,
    AIProspectPayload,
    AIProspectResults,
    CityPlace,
)

PROSPECT_CONFIDENCE = 0.9

NO_CITIES_MESSAGE = (
    "No cities could be found in your uploaded spreadsheet. "
    "Please ensure your spreadsheet contains address or location information."
)


def unique_locations(locations: list[str]) -> list[str]:
    seen: list[str] = []
    for loc in locations:
        loc = (loc or "").strip()
        if loc and loc not in seen:
            seen.append(loc)
    return seen


def prospect_record(place: CityPlace, business_type: str, index: int) -> dict:
    payload = AIProspectPayload(
        verified=True,
        confidence=PROSPECT_CONFIDENCE,
        address_verified=True,
        current_business_name=place.company_name,
        enrichment=AIProspectEnrichment(
            google_rating=place.rating,
            review_count=place.review_count,
            business_status=place.business_status,
            place_id=place.place_id,
        ),
    )
    return {
        "company_name": place.company_name,
        "phone": place.phone,
        "website": place.website,
        "address": place.address,
        "industry": business_type,
        "status": RecordStatus.NEW.value,
        "verification_data": payload.model_dump(mode="json"),
        "original_row_index": index,
    }


async def run(ctx: JobContext, policy: RetryPolicy | None = None) -> WorkflowOutcome:
    options: AIProspectingOptions = ctx.options
    rows = ctx.source_rows
    policy = policy or RetryPolicy.from_settings(ctx.settings)

    ctx.log("🤖 Extracting target cities from %d source rows", len(rows))
    analysis = await extract_target_locations(ctx.lookup, rows, policy)
    locations = unique_locations(analysis.target_locations)
    if not locations:
        raise WorkflowError(NO_CITIES_MESSAGE)

    index = DedupIndex.from_rows(rows)
    quota = math.ceil(options.number_of_results / len(locations))
    ctx.log("🎯 Searching %r in %d cities (%d each), excluding %d known businesses",
            options.business_type, len(locations), quota, len(index))

    created = 0
    excluded_total = 0

    async def search_city(city: str) -> list[CityPlace]:
        nonlocal excluded_total
        found = await ctx.lookup.search_by_type(options.business_type, city, quota)
        kept, excluded = index.filter(found, key=lambda place: place.company_name)
        for place in excluded:
            ctx.log("Excluding existing business: %s", place.company_name, level="debug")
        excluded_total += len(excluded)
        ctx.log("Found %d businesses in %s (%d new)", len(found), city, len(kept))
        return kept

    async def city_failed(city: str, exc: Exception) -> list[CityPlace]:
        ctx.log("Error searching businesses in %s: %s", city, exc, level="warning")
        return []

    async def persist(_cities, results: list[list[CityPlace]]) -> None:
        nonlocal created
        rows_out = []
        for places in results:
            for place in places:
                rows_out.append(prospect_record(place, options.business_type, created))
                created += 1
        if rows_out:
            await ctx.store.create_records(ctx.batch_id, rows_out)

    # One city per batch: progress is citiesDone / citiesTotal
    processor = BatchProcessor(
        1,
        on_progress=ctx.set_progress,
        should_stop=ctx.should_stop,
        label=ctx.label,
    )
    outcome = await processor.run(locations, search_city, on_error=city_failed, on_batch=persist)
    if outcome.stopped:
        return WorkflowOutcome(stopped=True)

    await ctx.store.recompute_batch_counts(
        ctx.batch_id, status=BatchStatus.COMPLETED.value, reset_total=True
    )
    ctx.log("✅ AI prospecting done: %d new businesses", created)
    return WorkflowOutcome(
        results=AIProspectResults(
            total_generated=created,
            locations_analyzed=len(locations),
            existing_businesses_filtered=len(index),
            duplicates_excluded=excluded_total,
            patterns=analysis.patterns,
            recommendations=analysis.recommendations,
            target_locations=locations,
            state_filter=analysis.state_filter,
        )
    )

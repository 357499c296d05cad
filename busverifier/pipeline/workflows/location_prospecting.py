"""
Location prospecting — one nearby search around a point, every hit kept.
"""

from busverifier.pipeline.context import JobContext, WorkflowOutcome
from busverifier.schemas import BatchStatus, NearbyProspectingOptions, RecordStatus
from busverifier.schemas.payloads import (
    LocationEnrichment,
    LocationPayload,
    LocationProspectResults,
    NearbyPlace,
)

DEFAULT_CONFIDENCE = 0.7


def nearby_record(place: NearbyPlace, index: int) -> dict:
    confidence = min(place.rating / 5, 1.0) if place.rating else DEFAULT_CONFIDENCE
    payload = LocationPayload(
        verified=True,
        confidence=confidence,
        address_verified=True,
        current_business_name=place.name,
        enrichment=LocationEnrichment(
            rating=place.rating,
            price_level=place.price_level,
            place_id=place.place_id,
            location=place.coordinates,
        ),
    )
    return {
        "company_name": place.name,
        "phone": place.phone,
        "website": place.website,
        "address": place.address,
        "industry": ", ".join(place.types) if place.types else "Business",
        "status": RecordStatus.VERIFIED.value,
        "verification_data": payload.model_dump(mode="json"),
        "original_row_index": index,
    }


async def run(ctx: JobContext) -> WorkflowOutcome:
    options: NearbyProspectingOptions = ctx.options
    await ctx.set_progress(20)
    if await ctx.should_stop():
        return WorkflowOutcome(stopped=True)

    ctx.log("📍 Searching %r near %.4f, %.4f (%dm)",
            options.business_type, options.latitude, options.longitude, options.radius)
    places = await ctx.lookup.search_nearby(
        options.business_type, options.latitude, options.longitude, options.radius
    )
    ctx.log("Found %d businesses", len(places))
    await ctx.set_progress(80)
    if await ctx.should_stop():
        return WorkflowOutcome(stopped=True)

    if places:
        await ctx.store.create_records(
            ctx.batch_id, [nearby_record(place, i) for i, place in enumerate(places)]
        )
    await ctx.store.recompute_batch_counts(
        ctx.batch_id, status=BatchStatus.COMPLETED.value, reset_total=True
    )
    return WorkflowOutcome(
        results=LocationProspectResults(
            total_found=len(places),
            business_type=options.business_type,
            location=f"{options.latitude:.4f}, {options.longitude:.4f}",
            radius=f"{options.radius}m",
        )
    )

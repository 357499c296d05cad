"""
Template prospecting — generate illustrative prospects for a business type.

Locations come from the explicit option, else "City, State" pairs mined from
the source rows, else a fixed city list. Prospects are written per batch of
``prospect_batch_size`` so a stop keeps what was already produced.
"""

from busverifier.pipeline.batching import BatchProcessor
from busverifier.pipeline.context import JobContext, WorkflowOutcome
from busverifier.pipeline.locations import FALLBACK_CITIES, mine_city_states
from busverifier.schemas import BatchStatus, ProspectingOptions, RecordStatus
from busverifier.schemas.payloads import (
    Firmographics,
    TemplateProspectPayload,
    TemplateProspectResults,
)

STREETS = ["Main St", "Oak Ave", "Park Blvd", "First St", "Broadway", "Center Dr", "Pine St", "Elm Ave"]

DEFAULT_INDUSTRY = "Business Services"


def name_templates(business_type: str) -> list[str]:
    return [
        f"{business_type} Solutions",
        f"Professional {business_type}",
        f"Elite {business_type} Services",
        f"Premier {business_type} Group",
        f"Advanced {business_type} Co",
        f"Metro {business_type} Partners",
        f"Strategic {business_type} LLC",
        f"Innovative {business_type} Inc",
    ]


def pick_locations(options: ProspectingOptions, rows: list[dict]) -> tuple[list[str], str]:
    """Returns (locations, which source they came from)."""
    if options.location and options.location.strip():
        return [options.location.strip()], "User location"
    mined = mine_city_states(rows)
    if mined:
        return mined, "Source data patterns"
    return list(FALLBACK_CITIES), "Default patterns"


def pick_industry(options: ProspectingOptions) -> str:
    if options.industry_filter and options.industry_filter.lower() != "all":
        return options.industry_filter
    return DEFAULT_INDUSTRY


async def run(ctx: JobContext) -> WorkflowOutcome:
    options: ProspectingOptions = ctx.options
    rng = ctx.rng
    locations, patterns_used = pick_locations(options, ctx.source_rows)
    names = name_templates(options.business_type)
    industry = pick_industry(options)
    ctx.log("🏭 Generating %d %r prospects across %d locations (%s)",
            options.number_of_results, options.business_type, len(locations), patterns_used)

    async def make_prospect(index: int) -> dict:
        location = rng.choice(locations)
        company = rng.choice(names)
        address_verified = rng.random() > 0.2
        current_names = [
            company,
            f"{options.business_type} Express",
            f"Quality {options.business_type}",
            f"Local {options.business_type} Pro",
            f"Trusted {options.business_type}",
        ]
        payload = TemplateProspectPayload(
            verified=True,
            confidence=round(rng.random() * 0.5 + 0.5, 3),
            address_verified=address_verified,
            current_business_name=(
                rng.choice(current_names) if address_verified else "Address not found in Google Places"
            ),
            enrichment=Firmographics(
                employee_count=rng.randint(1, 500),
                revenue=rng.randint(100_000, 5_099_999),
                founded=rng.randint(1990, 2019),
            ),
        )
        return {
            "company_name": company,
            "address": f"{rng.randint(1, 9999)} {rng.choice(STREETS)}, {location}",
            "industry": industry,
            "status": RecordStatus.NEW.value,
            "verification_data": payload.model_dump(mode="json"),
            "original_row_index": index,
        }

    async def persist(_indexes, prospects: list[dict]) -> None:
        await ctx.store.create_records(ctx.batch_id, prospects)

    processor = BatchProcessor(
        ctx.settings.prospect_batch_size,
        on_progress=ctx.set_progress,
        should_stop=ctx.should_stop,
        label=ctx.label,
    )
    outcome = await processor.run(list(range(options.number_of_results)), make_prospect, on_batch=persist)
    if outcome.stopped:
        return WorkflowOutcome(stopped=True)

    await ctx.store.recompute_batch_counts(
        ctx.batch_id, status=BatchStatus.COMPLETED.value, reset_total=True
    )
    return WorkflowOutcome(
        results=TemplateProspectResults(
            total_generated=outcome.processed,
            business_type=options.business_type,
            location=options.location,
            locations_used=locations,
            patterns_used=patterns_used,
        )
    )

"""
Location helpers — "City, State" mining from rows and the AI extraction step.
"""

import logging

from busverifier.lookup.base import BusinessLookup
from busverifier.pipeline.retry import RetryPolicy
from busverifier.schemas.payloads import LocationAnalysis

logger = logging.getLogger(__name__)

ADDRESS_KEYS = ("address", "Address", "location", "Location")

MAX_TEMPLATE_LOCATIONS = 8

FALLBACK_CITIES = [
    "San Francisco, CA", "Los Angeles, CA", "New York, NY", "Chicago, IL",
    "Houston, TX", "Phoenix, AZ", "Philadelphia, PA", "San Antonio, TX",
]


def row_address(row: dict) -> str | None:
    for key in ADDRESS_KEYS:
        value = row.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def city_state(address: str) -> str | None:
    """Last two non-empty comma segments: "1 Main St, Austin, TX" → "Austin, TX"."""
    parts = [p.strip() for p in address.split(",")]
    parts = [p for p in parts if p]
    if len(parts) < 2:
        return None
    return f"{parts[-2]}, {parts[-1]}"


def mine_city_states(rows: list[dict] | None, limit: int = MAX_TEMPLATE_LOCATIONS) -> list[str]:
    """Unique "City, State" strings from address-like fields, in first-seen order."""
    found: list[str] = []
    for row in rows or []:
        if not isinstance(row, dict):
            continue
        address = row_address(row)
        pair = city_state(address) if address else None
        if pair and pair not in found:
            found.append(pair)
            if len(found) >= limit:
                break
    return found


async def extract_target_locations(
    lookup: BusinessLookup,
    rows: list[dict],
    policy: RetryPolicy,
) -> LocationAnalysis:
    """AI location extraction wrapped in the retry policy.

    Returns the empty analysis (never raises) when the AI backend is not
    configured, ``rows`` is empty, or every attempt fails.
    """
    if not lookup.ai_available or not rows:
        logger.info("AI location extraction skipped (backend=%s, rows=%d)", lookup.ai_available, len(rows))
        return LocationAnalysis.empty()

    # An answer with zero cities is still an answer; the caller decides if it is fatal
    analysis = await policy.run(lambda: lookup.analyze_for_locations(rows))
    if analysis is None:
        logger.error("All AI location extraction attempts failed")
        return LocationAnalysis.empty()
    return analysis

"""
Offline lookup — illustrative Places results with no Maps calls.

Used when no Maps key is configured. Every value comes from the injected
``random.Random`` so tests can seed it. AI location extraction still goes
to Gemini when a key is set and is skipped otherwise.
"""

import logging
import random
from typing import Optional

from busverifier.config import Settings
from busverifier.lookup.base import BusinessLookup
from busverifier.schemas.payloads import (
    CityPlace,
    Coordinates,
    NearbyPlace,
    PlaceVerification,
)

logger = logging.getLogger(__name__)

BUSINESS_NAMES = [
    "Metro Business Center", "Professional Services LLC", "Downtown Associates",
    "City Commercial Group", "Prime Location Ventures", "Central Business Hub",
]

# Rough center of the continental US, used when nothing better is known
DEFAULT_CENTER = Coordinates(lat=39.8283, lng=-98.5795)

MAX_CITY_RESULTS = 5


class OfflineLookup(BusinessLookup):
    name = "offline"

    def __init__(self, rng: Optional[random.Random] = None, settings: Optional[Settings] = None):
        self._rng = rng or random.Random()
        self._settings = settings

    async def verify_address(self, address: str) -> PlaceVerification:
        verified = self._rng.random() > 0.2
        return PlaceVerification(
            verified=verified,
            confidence=round(self._rng.random() * 0.5 + 0.4, 3),
            address_verified=verified,
            current_business_name=(
                self._rng.choice(BUSINESS_NAMES) if verified else "Address not found in Google Places"
            ),
        )

    async def geocode(self, address: str) -> Coordinates | None:
        if not address:
            return None
        return Coordinates(
            lat=round(DEFAULT_CENTER.lat + self._rng.uniform(-5, 5), 6),
            lng=round(DEFAULT_CENTER.lng + self._rng.uniform(-15, 15), 6),
        )

    async def search_nearby(
        self, business_type: str, lat: float, lng: float, radius_m: int
    ) -> list[NearbyPlace]:
        logger.info("Offline nearby search for %r at %.4f, %.4f", business_type, lat, lng)
        return [
            NearbyPlace(
                place_id="mock_1",
                name=f"Local {business_type} Co",
                address="123 Main St",
                phone="(555) 123-4567",
                rating=4.5,
                types=[business_type.lower().replace(" ", "_")],
                business_status="OPERATIONAL",
                coordinates=Coordinates(lat=lat + 0.001, lng=lng + 0.001),
            ),
            NearbyPlace(
                place_id="mock_2",
                name=f"Premier {business_type} Services",
                address="456 Oak Ave",
                phone="(555) 987-6543",
                rating=4.2,
                types=[business_type.lower().replace(" ", "_")],
                business_status="OPERATIONAL",
                coordinates=Coordinates(lat=lat - 0.001, lng=lng - 0.001),
            ),
        ]

    async def search_by_type(
        self, business_type: str, city_state: str, max_results: int
    ) -> list[CityPlace]:
        count = min(max_results, MAX_CITY_RESULTS)
        slug = city_state.lower().replace(",", "").replace(" ", "_")
        prefixes = ["Premier", "Local", "Elite", "Trusted", "Metro"]
        return [
            CityPlace(
                place_id=f"offline_{slug}_{i}",
                company_name=f"{prefixes[i % len(prefixes)]} {business_type} of {city_state.split(',')[0]}",
                address=f"{self._rng.randint(1, 9999)} Main St, {city_state}",
                rating=round(self._rng.uniform(3.5, 5.0), 1),
                review_count=self._rng.randint(5, 500),
            )
            for i in range(count)
        ]


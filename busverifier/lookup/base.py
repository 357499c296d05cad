"""
External lookup contract consumed by the pipeline.

Each method is one independent external operation with its own latency and
failure profile. Implementations may raise; the pipeline decides whether a
failure is item-level or fatal. AI location extraction is shared by every
backend and goes to Gemini whenever ``GEMINI_API_KEY`` is set.
"""

from abc import ABC, abstractmethod
from typing import Optional

from busverifier.config import Settings
from busverifier.schemas.payloads import (
    CityPlace,
    Coordinates,
    LocationAnalysis,
    NearbyPlace,
    PlaceVerification,
)
from busverifier.services import prompts
from busverifier.services.ai import call_ai, extract_json


class BusinessLookup(ABC):
    """Address verification, geocoding, business search and AI location extraction."""

    name: str = "lookup"
    _settings: Optional[Settings] = None

    @property
    def ai_available(self) -> bool:
        """Whether ``analyze_for_locations`` has a configured backend."""
        return bool(self._settings and self._settings.gemini_api_key)

    @abstractmethod
    async def verify_address(self, address: str) -> PlaceVerification: ...

    @abstractmethod
    async def geocode(self, address: str) -> Coordinates | None: ...

    @abstractmethod
    async def search_nearby(
        self, business_type: str, lat: float, lng: float, radius_m: int
    ) -> list[NearbyPlace]: ...

    @abstractmethod
    async def search_by_type(
        self, business_type: str, city_state: str, max_results: int
    ) -> list[CityPlace]: ...

    async def analyze_for_locations(self, rows: list[dict]) -> LocationAnalysis:
        """One AI extraction attempt. Raises on transport or parse failure."""
        if not self.ai_available:
            raise RuntimeError("GEMINI_API_KEY not set — AI location extraction unavailable")
        sample = rows[: self._settings.ai_sample_rows]
        raw = await call_ai(
            prompts.location_extraction(sample, total_rows=len(rows)),
            settings=self._settings,
        )
        return LocationAnalysis.model_validate(extract_json(raw))

    async def close(self) -> None:
        """Release any pooled connections."""

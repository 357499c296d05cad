"""
Google Places / Geocoding lookup.

Text Search + Place Details for verification and city search, Text Search
with a location bias for nearby search, Geocoding API for coordinates.
AI location extraction is inherited from ``BusinessLookup``.
"""

import asyncio
import logging
from typing import Optional

import aiohttp

from busverifier.config import Settings
from busverifier.lookup.base import BusinessLookup
from busverifier.schemas.payloads import (
    CityPlace,
    Coordinates,
    NearbyPlace,
    PlaceDetails,
    PlaceVerification,
)

logger = logging.getLogger(__name__)

PLACES_API_BASE = "https://maps.googleapis.com/maps/api/place"
GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

VERIFY_DETAIL_FIELDS = (
    "name,formatted_address,business_status,rating,user_ratings_total,"
    "website,formatted_phone_number"
)
SEARCH_DETAIL_FIELDS = VERIFY_DETAIL_FIELDS + ",opening_hours"


class PlacesAPIError(RuntimeError):
    pass


class GooglePlacesLookup(BusinessLookup):
    name = "google"

    def __init__(self, settings: Settings):
        if not settings.google_maps_api_key:
            raise ValueError("GOOGLE_MAPS_API_KEY must be set for the google lookup")
        self._settings = settings
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._settings.http_timeout_secs)
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def _get_json(self, url: str, params: dict) -> dict:
        session = await self._get_session()
        params = {**params, "key": self._settings.google_maps_api_key}
        async with session.get(url, params=params) as resp:
            if resp.status != 200:
                raise PlacesAPIError(f"Google API HTTP {resp.status} for {url}")
            return await resp.json()

    async def _places(self, endpoint: str, params: dict) -> dict:
        data = await self._get_json(f"{PLACES_API_BASE}/{endpoint}/json", params)
        status = data.get("status", "UNKNOWN")
        if status not in ("OK", "ZERO_RESULTS"):
            logger.warning(
                "Places API %s returned status=%s: %s",
                endpoint, status, data.get("error_message", ""),
            )
        return data

    # ── Verification ────────────────────────────────────

    async def verify_address(self, address: str) -> PlaceVerification:
        search = await self._places("textsearch", {"query": address})
        results = search.get("results") or []
        if search.get("status") != "OK" or not results:
            return PlaceVerification(
                verified=False,
                confidence=0.1,
                address_verified=False,
                current_business_name="Address not found in Google Places",
            )

        place = results[0]
        details = await self._places(
            "details", {"place_id": place["place_id"], "fields": VERIFY_DETAIL_FIELDS}
        )
        result = details.get("result")
        if details.get("status") == "OK" and result:
            return PlaceVerification(
                verified=True,
                confidence=0.85,
                address_verified=True,
                current_business_name=result.get("name") or "Business found at location",
                place_details=PlaceDetails.model_validate(result),
            )

        return PlaceVerification(
            verified=True,
            confidence=0.6,
            address_verified=True,
            current_business_name=place.get("name") or "Business location verified",
        )

    async def geocode(self, address: str) -> Coordinates | None:
        if not address:
            return None
        try:
            data = await self._get_json(GEOCODE_URL, {"address": address})
        except (aiohttp.ClientError, asyncio.TimeoutError, PlacesAPIError) as e:
            logger.warning("Geocoding failed for %r: %s", address, e)
            return None
        results = data.get("results") or []
        if data.get("status") != "OK" or not results:
            return None
        try:
            loc = results[0]["geometry"]["location"]
            return Coordinates(lat=loc["lat"], lng=loc["lng"])
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Unexpected geocode result for %r: %s", address, e)
            return None

    # ── Search ──────────────────────────────────────────

    async def search_nearby(
        self, business_type: str, lat: float, lng: float, radius_m: int
    ) -> list[NearbyPlace]:
        location = f"{lat},{lng}"
        radius = min(radius_m, self._settings.max_nearby_radius_m)
        logger.info("Searching for %r near %s within %dm", business_type, location, radius)
        data = await self._places(
            "textsearch",
            {"query": f"{business_type} near {location}", "location": location, "radius": str(radius)},
        )
        status = data.get("status")
        if status == "ZERO_RESULTS":
            return []
        if status != "OK":
            raise PlacesAPIError(
                f"Google Places API error: {status} - {data.get('error_message') or 'Unknown error'}"
            )

        places = []
        for place in data.get("results", []):
            geo = place.get("geometry", {}).get("location", {})
            places.append(
                NearbyPlace(
                    place_id=place["place_id"],
                    name=place.get("name", "Unknown"),
                    address=place.get("formatted_address"),
                    phone=place.get("international_phone_number"),
                    website=place.get("website"),
                    rating=place.get("rating"),
                    price_level=place.get("price_level"),
                    types=place.get("types") or [],
                    business_status=place.get("business_status"),
                    coordinates=Coordinates(lat=geo.get("lat", lat), lng=geo.get("lng", lng)),
                )
            )
        logger.info("Found %d nearby businesses for %r", len(places), business_type)
        return places

    async def search_by_type(
        self, business_type: str, city_state: str, max_results: int
    ) -> list[CityPlace]:
        query = f"{business_type} in {city_state}"
        data = await self._places("textsearch", {"query": query})
        if data.get("status") != "OK" or not data.get("results"):
            logger.info("No results found for %r", query)
            return []

        results = data["results"][:max_results]
        fetched = await asyncio.gather(
            *(self._city_place(place) for place in results), return_exceptions=True
        )
        businesses = []
        for place, item in zip(results, fetched):
            if isinstance(item, Exception):
                logger.warning("Details failed for place %s: %s", place.get("place_id"), item)
            elif item is not None:
                businesses.append(item)
        logger.info("Found %d businesses for %r", len(businesses), query)
        return businesses

    async def _city_place(self, place: dict) -> CityPlace | None:
        details = await self._places(
            "details", {"place_id": place["place_id"], "fields": SEARCH_DETAIL_FIELDS}
        )
        result = details.get("result")
        if details.get("status") != "OK" or not result:
            return None
        return CityPlace(
            place_id=place["place_id"],
            company_name=result.get("name") or place.get("name", "Unknown"),
            address=result.get("formatted_address"),
            website=result.get("website"),
            phone=result.get("formatted_phone_number"),
            rating=result.get("rating"),
            review_count=result.get("user_ratings_total"),
            business_status=result.get("business_status") or "OPERATIONAL",
        )

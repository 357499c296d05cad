"""
Shared test fixtures — async DB, record store, stub lookup, FastAPI test client.
"""

import asyncio
import random
from typing import Awaitable, Callable, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine

from busverifier.config import Settings
from busverifier.database import init_db
from busverifier.lookup.base import BusinessLookup
from busverifier.main import app
from busverifier.pipeline.orchestrator import JobOrchestrator
from busverifier.schemas.payloads import (
    CityPlace,
    Coordinates,
    LocationAnalysis,
    NearbyPlace,
    PlaceVerification,
)
from busverifier.services.jobs import JobSupervisor
from busverifier.store import RecordStore


# ── Test Database (SQLite in-memory) ────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture()
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False)
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def store(db_engine):
    return RecordStore.from_engine(db_engine)


# ── Settings ────────────────────────────────────────────

@pytest.fixture
def test_settings():
    """No keys, no real backoff sleeps."""
    return Settings(
        _env_file=None,
        database_url=TEST_DB_URL,
        google_maps_api_key="",
        gemini_api_key="",
        lookup_mode="offline",
        ai_backoff_base=0,
    )


# ── Stub Lookup ─────────────────────────────────────────

DEFAULT_VERIFICATION = PlaceVerification(
    verified=True,
    confidence=0.9,
    address_verified=True,
    current_business_name="Stub Business",
)


class StubLookup(BusinessLookup):
    """Scriptable lookup: set the attributes a test cares about."""

    name = "stub"

    def __init__(self):
        self.verifications: dict[str, PlaceVerification] = {}
        self.failing_addresses: set[str] = set()
        self.coordinates: Optional[Coordinates] = Coordinates(lat=30.2672, lng=-97.7431)
        self.geocode_error: Optional[Exception] = None
        self.nearby: list[NearbyPlace] = []
        self.nearby_error: Optional[Exception] = None
        self.city_results: dict[str, list[CityPlace]] = {}
        self.failing_cities: set[str] = set()
        self.analysis: LocationAnalysis = LocationAnalysis.empty()
        self.ai = True
        self.on_verify: Optional[Callable[[str], Awaitable[None]]] = None
        self.verify_calls: list[str] = []
        self.city_calls: list[tuple[str, str, int]] = []
        self.analyze_calls = 0

    @property
    def ai_available(self) -> bool:
        return self.ai

    async def verify_address(self, address: str) -> PlaceVerification:
        self.verify_calls.append(address)
        if self.on_verify:
            await self.on_verify(address)
        if address in self.failing_addresses:
            raise RuntimeError(f"lookup down for {address}")
        return self.verifications.get(address, DEFAULT_VERIFICATION)

    async def geocode(self, address: str) -> Optional[Coordinates]:
        if self.geocode_error:
            raise self.geocode_error
        return self.coordinates

    async def search_nearby(self, business_type, lat, lng, radius_m):
        if self.nearby_error:
            raise self.nearby_error
        return list(self.nearby)

    async def search_by_type(self, business_type, city_state, max_results):
        self.city_calls.append((business_type, city_state, max_results))
        if city_state in self.failing_cities:
            raise RuntimeError(f"search failed for {city_state}")
        return list(self.city_results.get(city_state, []))[:max_results]

    async def analyze_for_locations(self, rows):
        self.analyze_calls += 1
        return self.analysis


@pytest.fixture
def stub_lookup():
    return StubLookup()


@pytest.fixture
def orchestrator(store, stub_lookup, test_settings):
    return JobOrchestrator(store, stub_lookup, test_settings, rng=random.Random(7))


@pytest_asyncio.fixture()
async def supervisor(store, stub_lookup, test_settings):
    sup = JobSupervisor(store, stub_lookup, test_settings, rng=random.Random(7))
    yield sup
    await sup.drain()


@pytest_asyncio.fixture()
async def client(store, stub_lookup, supervisor):
    """FastAPI test client wired to the test store and stub lookup."""
    app.state.store = store
    app.state.lookup = stub_lookup
    app.state.supervisor = supervisor

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ── Sample Data ─────────────────────────────────────────

SAMPLE_ROWS = [
    {"Company Name": "Acme Corp", "Email": "info@acme.test", "Phone": "512-555-0100",
     "Website": "acme.test", "Address": "100 Congress Ave, Austin, TX", "Industry": "Retail"},
    {"Company Name": "Bayou Bakery", "Email": "hello@bayou.test", "Phone": "713-555-0199",
     "Website": "bayou.test", "Address": "22 Main St, Houston, TX", "Industry": "Food"},
    {"Company Name": "Nameless Co", "Email": "", "Phone": "", "Website": "",
     "Address": "", "Industry": "Services"},
]

SAMPLE_MAPPING = {
    "company_name": "Company Name",
    "email": "Email",
    "phone": "Phone",
    "website": "Website",
    "address": "Address",
    "industry": "Industry",
}


@pytest.fixture
def sample_rows():
    return [dict(r) for r in SAMPLE_ROWS]


@pytest.fixture
def make_batch(store):
    """Factory: a mapped batch with one pending record per address."""

    async def _make(addresses: list[Optional[str]], **fields):
        batch = await store.create_upload_batch("test.xlsx", status="mapped", **fields)
        await store.create_records(
            batch.id,
            [
                {"company_name": f"Business {i}", "address": addr, "original_row_index": i}
                for i, addr in enumerate(addresses)
            ],
        )
        return batch

    return _make


@pytest.fixture
def wait_for():
    """Poll an async predicate until it holds (5s cap)."""

    async def _wait(predicate: Callable[[], Awaitable[bool]], timeout: float = 5.0) -> None:
        async def _poll():
            while not await predicate():
                await asyncio.sleep(0.01)

        await asyncio.wait_for(_poll(), timeout)

    return _wait


@pytest.fixture
def sample_mapping():
    return dict(SAMPLE_MAPPING)

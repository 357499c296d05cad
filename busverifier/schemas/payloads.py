"""
Typed payloads — lookup results, per-record verification data, job results.

Record payloads and job results are tagged unions keyed on ``kind`` so the
producer (a workflow) and the consumer (poller / exporter) agree on shape.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


# ── Lookup results ──────────────────────────────────────

class Coordinates(BaseModel):
    lat: float
    lng: float


class PlaceDetails(BaseModel):
    formatted_address: str | None = None
    business_status: str | None = None
    rating: float | None = None
    user_ratings_total: int | None = None
    website: str | None = None
    formatted_phone_number: str | None = None


class PlaceVerification(BaseModel):
    verified: bool
    confidence: float = Field(..., ge=0, le=1)
    address_verified: bool
    current_business_name: str
    place_details: PlaceDetails | None = None


class NearbyPlace(BaseModel):
    place_id: str
    name: str
    address: str | None = None
    phone: str | None = None
    website: str | None = None
    rating: float | None = None
    price_level: int | None = None
    types: list[str] = Field(default_factory=list)
    business_status: str | None = None
    coordinates: Coordinates


class CityPlace(BaseModel):
    place_id: str
    company_name: str
    address: str | None = None
    phone: str | None = None
    website: str | None = None
    rating: float | None = None
    review_count: int | None = None
    business_status: str = "OPERATIONAL"


class LocationAnalysis(BaseModel):
    """AI location extraction output. Accepts the AI's camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    target_locations: list[str] = Field(default_factory=list)
    patterns: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    location_insights: list[dict] = Field(default_factory=list)
    state_filter: str | None = None

    @classmethod
    def empty(cls) -> "LocationAnalysis":
        return cls()


# ── Record payloads ─────────────────────────────────────

class Firmographics(BaseModel):
    employee_count: int = 0
    revenue: int = 0
    founded: int = 0


class VerificationEnrichment(Firmographics):
    place_details: PlaceDetails | None = None
    location: Coordinates | None = None


class AIProspectEnrichment(BaseModel):
    google_rating: float | None = None
    review_count: int | None = None
    business_status: str | None = None
    place_id: str


class LocationEnrichment(BaseModel):
    rating: float | None = None
    price_level: int | None = None
    place_id: str
    location: Coordinates


class _PayloadBase(BaseModel):
    verified: bool
    confidence: float = Field(..., ge=0, le=1)
    address_verified: bool
    current_business_name: str


class VerificationPayload(_PayloadBase):
    kind: Literal["verification"] = "verification"
    enrichment: VerificationEnrichment = Field(default_factory=VerificationEnrichment)


class TemplateProspectPayload(_PayloadBase):
    kind: Literal["template-prospect"] = "template-prospect"
    enrichment: Firmographics = Field(default_factory=Firmographics)


class AIProspectPayload(_PayloadBase):
    kind: Literal["ai-prospect"] = "ai-prospect"
    enrichment: AIProspectEnrichment


class LocationPayload(_PayloadBase):
    kind: Literal["location"] = "location"
    enrichment: LocationEnrichment


RecordPayload = Annotated[
    Union[VerificationPayload, TemplateProspectPayload, AIProspectPayload, LocationPayload],
    Field(discriminator="kind"),
]


# ── Job results ─────────────────────────────────────────

class VerificationResults(BaseModel):
    kind: Literal["verification"] = "verification"
    total_processed: int
    verified: int
    updated: int
    errors: int


class TemplateProspectResults(BaseModel):
    kind: Literal["prospecting"] = "prospecting"
    total_generated: int
    business_type: str
    location: str | None = None
    locations_used: list[str] = Field(default_factory=list)
    patterns_used: str


class AIProspectResults(BaseModel):
    kind: Literal["ai-prospecting"] = "ai-prospecting"
    total_generated: int
    locations_analyzed: int
    existing_businesses_filtered: int
    duplicates_excluded: int
    processing_type: str = "AI Smart Prospecting"
    patterns: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    target_locations: list[str] = Field(default_factory=list)
    state_filter: str | None = None


class LocationProspectResults(BaseModel):
    kind: Literal["location-prospecting"] = "location-prospecting"
    total_found: int
    business_type: str
    location: str
    radius: str


JobResults = Annotated[
    Union[VerificationResults, TemplateProspectResults, AIProspectResults, LocationProspectResults],
    Field(discriminator="kind"),
]

_payload_adapter: TypeAdapter = TypeAdapter(RecordPayload)
_results_adapter: TypeAdapter = TypeAdapter(JobResults)


def parse_payload(data: dict | None):
    """Stored ``verification_data`` JSON → payload model (or None)."""
    if data is None:
        return None
    return _payload_adapter.validate_python(data)


def parse_results(data: dict | None):
    """Stored job ``results`` JSON → results model (or None)."""
    if data is None:
        return None
    return _results_adapter.validate_python(data)

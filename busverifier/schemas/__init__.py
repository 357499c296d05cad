"""
Business Verifier — Pydantic request/response schemas and status enums.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from busverifier.config import settings

from busverifier.schemas.payloads import (  # noqa: F401
    AIProspectEnrichment,
    AIProspectPayload,
    AIProspectResults,
    CityPlace,
    Coordinates,
    Firmographics,
    LocationAnalysis,
    LocationEnrichment,
    LocationPayload,
    LocationProspectResults,
    NearbyPlace,
    PlaceDetails,
    PlaceVerification,
    TemplateProspectPayload,
    TemplateProspectResults,
    VerificationEnrichment,
    VerificationPayload,
    VerificationResults,
    parse_payload,
    parse_results,
)


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"


class JobKind(str, Enum):
    VERIFICATION = "verification"
    PROSPECTING = "prospecting"
    AI_PROSPECTING = "ai-prospecting"
    LOCATION_PROSPECTING = "location-prospecting"


class RecordStatus(str, Enum):
    PENDING = "pending"
    NEW = "new"
    VERIFIED = "verified"
    UPDATED = "updated"
    ERROR = "error"


class BatchStatus(str, Enum):
    UPLOADED = "uploaded"
    MAPPED = "mapped"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


# ── Workflow options (validated before a job exists) ────

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class VerificationOptions(_CamelModel):
    pass


class ProspectingOptions(_CamelModel):
    business_type: str = Field(..., alias="businessType", min_length=1, max_length=255)
    location: str | None = Field(None, max_length=255)
    number_of_results: int = Field(50, alias="numberOfResults", ge=1, le=1000)
    industry_filter: str | None = Field(None, alias="industryFilter", max_length=255)


class AIProspectingOptions(ProspectingOptions):
    business_type: str = Field("businesses", alias="businessType", min_length=1, max_length=255)
    number_of_results: int = Field(100, alias="numberOfResults", ge=1, le=1000)


class NearbyProspectingOptions(_CamelModel):
    business_type: str = Field(..., alias="businessType", min_length=1, max_length=255)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    radius: int = Field(5000, gt=0)

    @field_validator("radius")
    @classmethod
    def _radius_within_cap(cls, value: int, info: ValidationInfo) -> int:
        """Cap comes from the ``max_radius_m`` validation context, else settings."""
        cap = (info.context or {}).get("max_radius_m", settings.max_nearby_radius_m)
        if value > cap:
            raise ValueError(f"radius must be at most {cap} meters")
        return value


OPTIONS_BY_KIND: dict[JobKind, type[BaseModel]] = {
    JobKind.VERIFICATION: VerificationOptions,
    JobKind.PROSPECTING: ProspectingOptions,
    JobKind.AI_PROSPECTING: AIProspectingOptions,
    JobKind.LOCATION_PROSPECTING: NearbyProspectingOptions,
}


# ── HTTP requests ───────────────────────────────────────

class UploadRequest(_CamelModel):
    file_name: str = Field(..., alias="fileName", min_length=1, max_length=512)
    data: list[dict[str, Any]]


class MappingRequest(_CamelModel):
    batch_id: str = Field(..., alias="businessDataId")
    mapping: dict[str, str]


class ProcessingRequest(_CamelModel):
    batch_id: str = Field(..., alias="businessDataId")
    type: JobKind = JobKind.VERIFICATION
    options: dict[str, Any] | None = None


class ProspectRequest(_CamelModel):
    """Body of the prospecting endpoints; options are validated per kind."""

    batch_id: str | None = Field(None, alias="businessDataId")


class RecordUpdate(_CamelModel):
    company_name: str | None = Field(None, alias="companyName")
    email: str | None = None
    phone: str | None = None
    website: str | None = None
    address: str | None = None
    industry: str | None = None
    status: RecordStatus | None = None


# ── HTTP responses ──────────────────────────────────────

class UploadResponse(_CamelModel):
    batch_id: str = Field(..., alias="businessDataId")
    detected_columns: list[str] = Field(..., alias="detectedColumns")
    suggested_mapping: dict[str, str] = Field(..., alias="suggestedMapping")
    total_records: int = Field(..., alias="totalRecords")


class MappingResponse(_CamelModel):
    success: bool = True
    mapped_records: int = Field(..., alias="mappedRecords")


class StartJobResponse(_CamelModel):
    job_id: str = Field(..., alias="jobId")
    batch_id: str = Field(..., alias="businessDataId")


class JobResponse(BaseModel):
    id: str
    batch_id: str
    kind: JobKind
    status: JobStatus
    progress: int
    results: dict | None = None
    error_message: str | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    model_config = {"from_attributes": True}


class RecordResponse(BaseModel):
    id: str
    batch_id: str
    company_name: str | None = None
    email: str | None = None
    phone: str | None = None
    website: str | None = None
    address: str | None = None
    industry: str | None = None
    status: RecordStatus
    verification_data: dict | None = None
    original_row_index: int | None = None
    is_deleted: bool = False

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "1.0.0"
    timestamp: str | None = None
    lookup: str = "offline"
    active_jobs: int = 0

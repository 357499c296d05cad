"""
API Routes — upload, mapping, jobs, records, health.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request

from busverifier.errors import BatchNotFoundError, JobValidationError
from busverifier.schemas import (
    HealthResponse,
    JobKind,
    JobResponse,
    MappingRequest,
    MappingResponse,
    ProcessingRequest,
    ProspectRequest,
    RecordResponse,
    RecordUpdate,
    StartJobResponse,
    UploadRequest,
    UploadResponse,
)
from busverifier.services import ingest
from busverifier.services.jobs import JobSupervisor
from busverifier.store import RecordStore

logger = logging.getLogger(__name__)

router = APIRouter()


def get_store(request: Request) -> RecordStore:
    return request.app.state.store


def get_supervisor(request: Request) -> JobSupervisor:
    return request.app.state.supervisor


async def _start(supervisor: JobSupervisor, kind: JobKind, batch_id: str | None, options: Any):
    try:
        handle = await supervisor.start_job(kind, batch_id, options)
    except JobValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except BatchNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return StartJobResponse(job_id=handle.job_id, batch_id=handle.batch_id)


# ── Health ──────────────────────────────────────────────

@router.get("/health", response_model=HealthResponse, tags=["system"])
async def health(request: Request, supervisor: JobSupervisor = Depends(get_supervisor)):
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        lookup=request.app.state.lookup.name,
        active_jobs=supervisor.active,
    )


# ── Upload & mapping ────────────────────────────────────

@router.post("/upload", response_model=UploadResponse, tags=["upload"])
async def upload(req: UploadRequest, store: RecordStore = Depends(get_store)):
    batch, suggested = await ingest.create_upload(store, req.file_name, req.data)
    return UploadResponse(
        batch_id=batch.id,
        detected_columns=ingest.detected_columns(req.data),
        suggested_mapping=suggested,
        total_records=len(req.data),
    )


@router.post("/mapping", response_model=MappingResponse, tags=["upload"])
async def apply_mapping(req: MappingRequest, store: RecordStore = Depends(get_store)):
    try:
        count = await ingest.apply_mapping(store, req.batch_id, req.mapping)
    except BatchNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except JobValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return MappingResponse(mapped_records=count)


# ── Jobs ────────────────────────────────────────────────

@router.post("/process", response_model=StartJobResponse, tags=["jobs"])
async def start_processing(
    req: ProcessingRequest, supervisor: JobSupervisor = Depends(get_supervisor)
):
    return await _start(supervisor, req.type, req.batch_id, req.options)


@router.post("/prospect", response_model=StartJobResponse, tags=["jobs"])
async def start_prospecting(
    body: dict[str, Any] = Body(...), supervisor: JobSupervisor = Depends(get_supervisor)
):
    req = ProspectRequest.model_validate(body)
    return await _start(supervisor, JobKind.PROSPECTING, req.batch_id, body)


@router.post("/ai-prospect", response_model=StartJobResponse, tags=["jobs"])
async def start_ai_prospecting(
    body: dict[str, Any] = Body(...), supervisor: JobSupervisor = Depends(get_supervisor)
):
    req = ProspectRequest.model_validate(body)
    return await _start(supervisor, JobKind.AI_PROSPECTING, req.batch_id, body)


@router.post("/prospect-near-me", response_model=StartJobResponse, tags=["jobs"])
async def start_location_prospecting(
    body: dict[str, Any] = Body(...), supervisor: JobSupervisor = Depends(get_supervisor)
):
    return await _start(supervisor, JobKind.LOCATION_PROSPECTING, None, body)


@router.get("/job/{job_id}", response_model=JobResponse, tags=["jobs"])
async def get_job(job_id: str, supervisor: JobSupervisor = Depends(get_supervisor)):
    job = await supervisor.get_job_status(job_id)
    if not job:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return job


@router.post("/job/{job_id}/stop", tags=["jobs"])
async def stop_job(job_id: str, supervisor: JobSupervisor = Depends(get_supervisor)):
    if not await supervisor.stop_job(job_id):
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return {"success": True}


# ── Records ─────────────────────────────────────────────

@router.get("/records/{batch_id}", response_model=list[RecordResponse], tags=["records"])
async def list_records(batch_id: str, store: RecordStore = Depends(get_store)):
    return await store.get_records(batch_id)


@router.patch("/record/{record_id}", response_model=RecordResponse, tags=["records"])
async def update_record(
    record_id: str, req: RecordUpdate, store: RecordStore = Depends(get_store)
):
    updates = req.model_dump(exclude_unset=True, mode="json")
    record = await store.update_record(record_id, updates)
    if not record:
        raise HTTPException(status_code=404, detail=f"Record {record_id} not found")
    return record


@router.delete("/record/{record_id}", tags=["records"])
async def delete_record(record_id: str, store: RecordStore = Depends(get_store)):
    if not await store.delete_record(record_id):
        raise HTTPException(status_code=404, detail=f"Record {record_id} not found")
    return {"success": True}

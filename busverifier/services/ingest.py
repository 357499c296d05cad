"""
Upload and column mapping — turns parsed spreadsheet rows into records.

Parsing the file itself happens client-side; these functions receive rows
as a list of dicts keyed by column header.
"""

import logging
from typing import Any

from busverifier.errors import BatchNotFoundError, JobValidationError
from busverifier.models import UploadBatch
from busverifier.schemas import BatchStatus, RecordStatus
from busverifier.store import RecordStore

logger = logging.getLogger(__name__)

TARGET_FIELDS = ("company_name", "email", "phone", "website", "address", "industry")

# Keyword heuristics, checked in order; the first matching field wins per column
COLUMN_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("company_name", ("company", "business", "name")),
    ("email", ("email", "mail")),
    ("phone", ("phone", "tel", "mobile")),
    ("website", ("website", "url", "web")),
    ("address", ("address", "location", "street")),
    ("industry", ("industry", "sector", "category")),
]

FIELD_ALIASES = {"companyName": "company_name", "companyname": "company_name"}


def detected_columns(rows: list[dict]) -> list[str]:
    return list(rows[0].keys()) if rows else []


def suggest_column_mapping(rows: list[dict]) -> dict[str, str]:
    """Guess ``{target_field: source_column}`` from the column headers."""
    mapping: dict[str, str] = {}
    for column in detected_columns(rows):
        lowered = column.lower()
        for target, keywords in COLUMN_KEYWORDS:
            if any(k in lowered for k in keywords):
                mapping.setdefault(target, column)
                break
    return mapping


def normalize_mapping(mapping: dict[str, str]) -> dict[str, str]:
    normalized = {}
    for target, column in mapping.items():
        target = FIELD_ALIASES.get(target, target)
        if target not in TARGET_FIELDS:
            raise JobValidationError(f"Unknown target field: {target!r}")
        if column:
            normalized[target] = column
    return normalized


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


async def create_upload(
    store: RecordStore,
    file_name: str,
    rows: list[dict],
    user_id: str | None = None,
) -> tuple[UploadBatch, dict[str, str]]:
    """Store the raw rows as a new batch. Returns (batch, suggested mapping)."""
    batch = await store.create_upload_batch(
        file_name,
        user_id=user_id,
        raw_rows=rows,
        status=BatchStatus.UPLOADED.value,
        total_records=len(rows),
    )
    logger.info("📥 Upload %s: %d rows from %r", batch.id, len(rows), file_name)
    return batch, suggest_column_mapping(rows)


async def apply_mapping(store: RecordStore, batch_id: str, mapping: dict[str, str]) -> int:
    """Map raw rows, store them, and create one ``pending`` record per row.

    Re-mapping a batch soft-deletes the records of the previous mapping.
    Returns the number of records created.
    """
    batch = await store.get_upload_batch(batch_id)
    if batch is None:
        raise BatchNotFoundError(batch_id)
    mapping = normalize_mapping(mapping)

    rows = batch.raw_rows or []
    mapped_rows = [{target: row.get(column) for target, column in mapping.items()} for row in rows]

    for old in await store.get_records(batch_id):
        await store.delete_record(old.id)

    await store.update_upload_batch(
        batch_id,
        {
            "mapped_rows": mapped_rows,
            "status": BatchStatus.MAPPED.value,
            "total_records": len(mapped_rows),
            "processed_records": 0,
            "verified_records": 0,
            "error_records": 0,
        },
    )
    await store.create_records(
        batch_id,
        [
            {
                **{field: _clean(row.get(field)) for field in TARGET_FIELDS},
                "status": RecordStatus.PENDING.value,
                "original_row_index": index,
            }
            for index, row in enumerate(mapped_rows)
        ],
    )
    logger.info("🗂️ Batch %s mapped: %d records", batch_id, len(mapped_rows))
    return len(mapped_rows)

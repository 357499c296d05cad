"""
Record Store — keyed async storage for users, upload batches, jobs and records.

Every operation opens its own session and runs under a store-wide lock, so
one store instance can be shared by concurrent jobs and by the concurrent
items of a batch. Returned entities are detached snapshots
(``expire_on_commit=False``); mutate through the ``update_*`` methods.
"""

import asyncio
import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from busverifier.errors import BatchNotFoundError
from busverifier.models import BusinessRecord, ProcessingJob, UploadBatch, User
from busverifier.pipeline.state import check_transition

logger = logging.getLogger(__name__)

_READ_ONLY = {"id", "created_at"}

# Record statuses that count towards the verified / error tallies
VERIFIED_STATUSES = ("verified", "updated", "new")
ERROR_STATUSES = ("error",)


def _apply(entity, updates: dict[str, Any]) -> None:
    columns = set(entity.__table__.columns.keys())
    unknown = set(updates) - columns
    if unknown:
        raise ValueError(f"Unknown {entity.__tablename__} fields: {sorted(unknown)}")
    for key, value in updates.items():
        if key in _READ_ONLY:
            continue
        setattr(entity, key, value)


class RecordStore:
    """Async SQLAlchemy implementation of the record store contract."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self._lock = asyncio.Lock()

    @classmethod
    def from_engine(cls, engine: AsyncEngine) -> "RecordStore":
        return cls(async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False))

    # ── Users ───────────────────────────────────────────

    async def create_user(self, username: str, password: str) -> User:
        async with self._lock, self._session_factory() as session:
            user = User(username=username, password=password)
            session.add(user)
            await session.commit()
            return user

    async def get_user(self, user_id: str) -> User | None:
        async with self._lock, self._session_factory() as session:
            return await session.get(User, user_id)

    async def get_user_by_username(self, username: str) -> User | None:
        async with self._lock, self._session_factory() as session:
            result = await session.execute(select(User).where(User.username == username))
            return result.scalar_one_or_none()

    # ── Upload batches ──────────────────────────────────

    async def create_upload_batch(self, file_name: str, **fields: Any) -> UploadBatch:
        async with self._lock, self._session_factory() as session:
            batch = UploadBatch(file_name=file_name)
            _apply(batch, fields)
            session.add(batch)
            await session.commit()
            return batch

    async def get_upload_batch(self, batch_id: str) -> UploadBatch | None:
        async with self._lock, self._session_factory() as session:
            return await session.get(UploadBatch, batch_id)

    async def update_upload_batch(self, batch_id: str, updates: dict[str, Any]) -> UploadBatch | None:
        async with self._lock, self._session_factory() as session:
            batch = await session.get(UploadBatch, batch_id)
            if batch is None:
                return None
            _apply(batch, updates)
            await session.commit()
            return batch

    async def get_user_batches(self, user_id: str) -> list[UploadBatch]:
        async with self._lock, self._session_factory() as session:
            result = await session.execute(
                select(UploadBatch)
                .where(UploadBatch.user_id == user_id)
                .order_by(UploadBatch.created_at)
            )
            return list(result.scalars().all())

    # ── Jobs ────────────────────────────────────────────

    async def create_job(self, batch_id: str, kind: str, **fields: Any) -> ProcessingJob:
        async with self._lock, self._session_factory() as session:
            if await session.get(UploadBatch, batch_id) is None:
                raise BatchNotFoundError(batch_id)
            job = ProcessingJob(batch_id=batch_id, kind=kind, status="pending", progress=0)
            _apply(job, fields)
            session.add(job)
            await session.commit()
            return job

    async def get_job(self, job_id: str) -> ProcessingJob | None:
        async with self._lock, self._session_factory() as session:
            return await session.get(ProcessingJob, job_id)

    async def update_job(
        self,
        job_id: str,
        updates: dict[str, Any],
        only_if_status: Iterable[str] | None = None,
    ) -> ProcessingJob | None:
        """Partial update. Returns None when the job is missing or, with
        ``only_if_status``, when its current status is not one of those.

        A ``progress`` value lower than the stored one is ignored while the
        job is running. Without ``only_if_status`` a status change outside
        the job state machine raises InvalidTransition.
        """
        async with self._lock, self._session_factory() as session:
            job = await session.get(ProcessingJob, job_id)
            if job is None:
                return None
            if only_if_status is not None and job.status not in set(only_if_status):
                return None
            if only_if_status is None and updates.get("status", job.status) != job.status:
                check_transition(job.status, updates["status"])
            updates = dict(updates)
            if (
                "progress" in updates
                and job.status == "running"
                and updates.get("status", "running") == "running"
            ):
                updates["progress"] = max(job.progress or 0, updates["progress"])
            _apply(job, updates)
            await session.commit()
            return job

    async def get_jobs_for_batch(self, batch_id: str) -> list[ProcessingJob]:
        async with self._lock, self._session_factory() as session:
            result = await session.execute(
                select(ProcessingJob)
                .where(ProcessingJob.batch_id == batch_id)
                .order_by(ProcessingJob.created_at)
            )
            return list(result.scalars().all())

    # ── Records ─────────────────────────────────────────

    async def create_record(self, batch_id: str, **fields: Any) -> BusinessRecord:
        records = await self.create_records(batch_id, [fields])
        return records[0]

    async def create_records(self, batch_id: str, rows: list[dict[str, Any]]) -> list[BusinessRecord]:
        async with self._lock, self._session_factory() as session:
            if await session.get(UploadBatch, batch_id) is None:
                raise BatchNotFoundError(batch_id)
            records = []
            for row in rows:
                record = BusinessRecord(batch_id=batch_id, status="pending", is_deleted=False)
                _apply(record, {k: v for k, v in row.items() if k != "batch_id"})
                records.append(record)
            session.add_all(records)
            await session.commit()
            return records

    async def get_records(self, batch_id: str) -> list[BusinessRecord]:
        """Non-deleted records of a batch in upload order."""
        async with self._lock, self._session_factory() as session:
            result = await session.execute(
                select(BusinessRecord)
                .where(BusinessRecord.batch_id == batch_id, BusinessRecord.is_deleted.is_(False))
                .order_by(BusinessRecord.original_row_index, BusinessRecord.created_at)
            )
            return list(result.scalars().all())

    async def get_record(self, record_id: str) -> BusinessRecord | None:
        """Direct lookup; soft-deleted records stay addressable."""
        async with self._lock, self._session_factory() as session:
            return await session.get(BusinessRecord, record_id)

    async def update_record(self, record_id: str, updates: dict[str, Any]) -> BusinessRecord | None:
        async with self._lock, self._session_factory() as session:
            record = await session.get(BusinessRecord, record_id)
            if record is None:
                return None
            _apply(record, updates)
            await session.commit()
            return record

    async def delete_record(self, record_id: str) -> bool:
        return await self.update_record(record_id, {"is_deleted": True}) is not None

    # ── Reconciliation ──────────────────────────────────

    async def recompute_batch_counts(
        self,
        batch_id: str,
        *,
        status: str | None = None,
        reset_total: bool = False,
    ) -> UploadBatch | None:
        """Rewrite processed/verified/error counts from the live record set.

        ``reset_total`` also sets ``total_records`` to the live record count
        (prospecting batches, whose size is only known at the end).
        """
        records = await self.get_records(batch_id)
        processed = sum(1 for r in records if r.status != "pending")
        updates: dict[str, Any] = {
            "processed_records": processed,
            "verified_records": sum(1 for r in records if r.status in VERIFIED_STATUSES),
            "error_records": sum(1 for r in records if r.status in ERROR_STATUSES),
        }
        if reset_total:
            updates["total_records"] = len(records)
        else:
            batch = await self.get_upload_batch(batch_id)
            if batch is None:
                return None
            updates["total_records"] = max(batch.total_records or 0, processed)
        if status:
            updates["status"] = status
        return await self.update_upload_batch(batch_id, updates)

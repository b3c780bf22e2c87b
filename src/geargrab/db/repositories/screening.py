"""Relational screening record storage."""

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from geargrab.config.settings import CheckTier
from geargrab.core.exceptions import DuplicateRequestError, RecordNotFoundError, StaleRecordError
from geargrab.core.logging import get_logger
from geargrab.db.models.screening import ScreeningRecordModel
from geargrab.screening.store import ScreeningRecordStore
from geargrab.screening.types import (
    CandidateSummary,
    ConsentMetadata,
    RecordedError,
    ScreeningDecision,
    ScreeningRecord,
    ScreeningStatus,
    apply_patch,
)

from .base import BaseRepository

logger = get_logger(__name__)


def record_to_columns(record: ScreeningRecord) -> dict[str, Any]:
    """Column values for a domain record."""
    return {
        "record_id": record.record_id,
        "email": record.email,
        "active_email": record.email.lower() if record.status.holds_email else None,
        "provider_name": record.provider_name,
        "check_tier": record.check_tier.value,
        "status": record.status.value,
        "external_report_id": record.external_report_id,
        "consent": record.consent.model_dump(mode="json"),
        "candidate_summary": (
            record.candidate_summary.to_dict() if record.candidate_summary else None
        ),
        "decision": record.decision.to_dict() if record.decision else None,
        "report_artifact_url": record.report_artifact_url,
        "error": record.error.to_dict() if record.error else None,
        "user_id": record.user_id,
        "profile_created": record.profile_created,
        "cancel_requested": record.cancel_requested,
        "pre_adverse_notice_sent_at": record.pre_adverse_notice_sent_at,
        "poll_attempts": record.poll_attempts,
        "previous_record_id": record.previous_record_id,
        "version": record.version,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
    }


def row_to_record(row: ScreeningRecordModel) -> ScreeningRecord:
    """Domain record for a database row."""
    return ScreeningRecord(
        record_id=row.record_id,
        email=row.email,
        provider_name=row.provider_name,
        check_tier=CheckTier(row.check_tier),
        status=ScreeningStatus(row.status),
        external_report_id=row.external_report_id,
        consent=ConsentMetadata.model_validate(row.consent),
        candidate_summary=(
            CandidateSummary.from_dict(row.candidate_summary) if row.candidate_summary else None
        ),
        decision=ScreeningDecision.from_dict(row.decision) if row.decision else None,
        report_artifact_url=row.report_artifact_url,
        error=RecordedError.from_dict(row.error) if row.error else None,
        user_id=row.user_id,
        profile_created=row.profile_created,
        cancel_requested=row.cancel_requested,
        pre_adverse_notice_sent_at=row.pre_adverse_notice_sent_at,
        poll_attempts=row.poll_attempts,
        previous_record_id=row.previous_record_id,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class ScreeningRecordRepository(BaseRepository[ScreeningRecordModel, UUID]):
    """Queries over the screening_records table."""

    async def find_latest_by_email(self, email: str) -> ScreeningRecordModel | None:
        stmt = (
            select(ScreeningRecordModel)
            .where(func.lower(ScreeningRecordModel.email) == email.lower())
            .order_by(ScreeningRecordModel.created_at.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_active_by_email(self, email: str) -> ScreeningRecordModel | None:
        stmt = select(ScreeningRecordModel).where(
            ScreeningRecordModel.active_email == email.lower()
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_latest_by_external_report(
        self, provider_name: str, external_report_id: str
    ) -> ScreeningRecordModel | None:
        stmt = (
            select(ScreeningRecordModel)
            .where(
                ScreeningRecordModel.provider_name == provider_name,
                ScreeningRecordModel.external_report_id == external_report_id,
            )
            .order_by(ScreeningRecordModel.created_at.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_status(
        self,
        statuses: Iterable[ScreeningStatus] | None,
        limit: int,
        offset: int,
    ) -> list[ScreeningRecordModel]:
        stmt = select(ScreeningRecordModel)
        if statuses is not None:
            stmt = stmt.where(ScreeningRecordModel.status.in_([s.value for s in statuses]))
        stmt = (
            stmt.order_by(ScreeningRecordModel.created_at.desc()).limit(limit).offset(offset)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count_by_status(self) -> dict[str, int]:
        stmt = select(ScreeningRecordModel.status, func.count()).group_by(
            ScreeningRecordModel.status
        )
        result = await self.db.execute(stmt)
        return {status: count for status, count in result.all()}

    async def count_created_since(self, since: datetime) -> int:
        stmt = select(func.count()).where(ScreeningRecordModel.created_at >= since)
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def guarded_update(
        self, record_id: UUID, expected_version: int, values: dict[str, Any]
    ) -> int:
        """Write ``values`` only if the row is still at ``expected_version``.

        Returns:
            Number of rows written (0 or 1).
        """
        stmt = (
            update(ScreeningRecordModel)
            .where(
                ScreeningRecordModel.record_id == record_id,
                ScreeningRecordModel.version == expected_version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount


class SqlScreeningRecordStore(ScreeningRecordStore):
    """Screening record store backed by SQLAlchemy.

    Each operation runs in its own session so long-lived workflow tasks
    never hold a connection between polls.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(self, record: ScreeningRecord) -> ScreeningRecord:
        async with self._session_factory() as session:
            repo = ScreeningRecordRepository(session)
            try:
                await repo.create(ScreeningRecordModel(**record_to_columns(record)))
            except IntegrityError:
                await session.rollback()
                holder = await repo.find_active_by_email(record.email)
                raise DuplicateRequestError(
                    record.email,
                    holder.record_id if holder else None,
                    holder.status if holder else None,
                ) from None
        return record

    async def find_by_id(self, record_id: UUID) -> ScreeningRecord | None:
        async with self._session_factory() as session:
            row = await ScreeningRecordRepository(session).get(record_id)
            return row_to_record(row) if row else None

    async def find_by_email(self, email: str) -> ScreeningRecord | None:
        async with self._session_factory() as session:
            row = await ScreeningRecordRepository(session).find_latest_by_email(email)
            return row_to_record(row) if row else None

    async def find_by_external_report_id(
        self, provider_name: str, external_report_id: str
    ) -> ScreeningRecord | None:
        async with self._session_factory() as session:
            row = await ScreeningRecordRepository(session).find_latest_by_external_report(
                provider_name, external_report_id
            )
            return row_to_record(row) if row else None

    async def update(
        self,
        record_id: UUID,
        patch: Mapping[str, Any],
        expected_version: int | None = None,
    ) -> ScreeningRecord:
        async with self._session_factory() as session:
            repo = ScreeningRecordRepository(session)
            row = await repo.get(record_id)
            if row is None:
                raise RecordNotFoundError(record_id)
            current = row_to_record(row)
            if expected_version is not None and current.version != expected_version:
                raise StaleRecordError(record_id, expected_version, current.version)

            updated = apply_patch(current, patch)
            values = record_to_columns(updated)
            del values["record_id"]

            written = await repo.guarded_update(record_id, current.version, values)
            if written == 0:
                await session.rollback()
                fresh = await repo.get(record_id)
                raise StaleRecordError(
                    record_id, current.version, fresh.version if fresh else None
                )
            await session.commit()
            return updated

    async def list_by_status(
        self,
        statuses: Iterable[ScreeningStatus] | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[ScreeningRecord]:
        async with self._session_factory() as session:
            rows = await ScreeningRecordRepository(session).list_by_status(
                statuses, limit, offset
            )
            return [row_to_record(r) for r in rows]

    async def count_by_status(self) -> dict[ScreeningStatus, int]:
        async with self._session_factory() as session:
            raw = await ScreeningRecordRepository(session).count_by_status()
        counts = dict.fromkeys(ScreeningStatus, 0)
        for status, count in raw.items():
            counts[ScreeningStatus(status)] = count
        return counts

    async def count_created_since(self, since: datetime) -> int:
        async with self._session_factory() as session:
            return await ScreeningRecordRepository(session).count_created_since(since)

"""Screening record model."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Boolean, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, PortableJSON, PortableUUID, UTCDateTime


class ScreeningRecordModel(Base):
    """One screening attempt for a prospective marketplace user.

    ``active_email`` mirrors ``email`` while the record holds the email and
    is cleared when the record reaches a status that releases it. Its unique
    constraint enforces one active screening per email.
    """

    __tablename__ = "screening_records"

    record_id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    active_email: Mapped[str | None] = mapped_column(String(320), nullable=True, unique=True)
    provider_name: Mapped[str] = mapped_column(String(50), nullable=False)
    check_tier: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    external_report_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    consent: Mapped[dict[str, Any]] = mapped_column(PortableJSON(), nullable=False)
    candidate_summary: Mapped[dict[str, Any] | None] = mapped_column(PortableJSON())
    decision: Mapped[dict[str, Any] | None] = mapped_column(PortableJSON())
    report_artifact_url: Mapped[str | None] = mapped_column(Text)
    error: Mapped[dict[str, Any] | None] = mapped_column(PortableJSON())

    user_id: Mapped[UUID | None] = mapped_column(PortableUUID(), nullable=True)
    profile_created: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    cancel_requested: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    pre_adverse_notice_sent_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    poll_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    previous_record_id: Mapped[UUID | None] = mapped_column(PortableUUID(), nullable=True)

    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    __table_args__ = (
        Index("idx_screening_records_email_created", "email", "created_at"),
        Index("idx_screening_records_external_report", "provider_name", "external_report_id"),
    )

    def __repr__(self) -> str:
        return f"<ScreeningRecordModel(id={self.record_id}, status={self.status})>"

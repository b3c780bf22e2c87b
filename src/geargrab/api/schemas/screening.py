"""API schemas for registration and screening administration.

Responses expose the redacted record only. Raw candidate identifiers are
never part of a response.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from geargrab.config.settings import CheckTier
from geargrab.screening.admin import ScreeningStatistics
from geargrab.screening.registration import RegistrationPayload, RegistrationReceipt
from geargrab.screening.types import ScreeningRecord, ScreeningStatus
from geargrab.screening.webhooks import WebhookReceipt

# =============================================================================
# Registration
# =============================================================================


class RegistrationResponse(BaseModel):
    """Acknowledgement of an accepted registration."""

    record_id: UUID = Field(..., description="Screening record tracking the background check")
    status: ScreeningStatus = Field(..., description="Always pending at acceptance")
    provider: str = Field(..., description="Screening vendor handling the check")
    check_tier: CheckTier
    estimated_completion: str = Field(..., description="Vendor turnaround estimate")
    message: str = "Application submitted. Your background check is underway."

    model_config = {"json_schema_extra": {"example": {
        "record_id": "019478f2-1234-7000-8000-abcdef123456",
        "status": "pending",
        "provider": "checkr",
        "check_tier": "basic",
        "estimated_completion": "1-2 business days",
        "message": "Application submitted. Your background check is underway.",
    }}}

    @classmethod
    def from_receipt(cls, receipt: RegistrationReceipt) -> "RegistrationResponse":
        return cls(
            record_id=receipt.record_id,
            status=receipt.status,
            provider=receipt.provider,
            check_tier=receipt.check_tier,
            estimated_completion=receipt.estimated_completion,
        )


# =============================================================================
# Administration
# =============================================================================


class ScreeningRecordResponse(BaseModel):
    """Redacted view of a screening record."""

    record_id: UUID
    email: str
    provider_name: str
    check_tier: CheckTier
    status: ScreeningStatus
    external_report_id: str | None = None
    display_name: str | None = None
    government_id_last4: str | None = None
    decision: dict[str, Any] | None = None
    report_artifact_url: str | None = None
    error: dict[str, Any] | None = None
    user_id: UUID | None = None
    profile_created: bool = False
    cancel_requested: bool = False
    pre_adverse_notice_sent_at: datetime | None = None
    poll_attempts: int = 0
    previous_record_id: UUID | None = None
    version: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: ScreeningRecord) -> "ScreeningRecordResponse":
        summary = record.candidate_summary
        return cls(
            record_id=record.record_id,
            email=record.email,
            provider_name=record.provider_name,
            check_tier=record.check_tier,
            status=record.status,
            external_report_id=record.external_report_id,
            display_name=summary.display_name if summary else None,
            government_id_last4=summary.government_id_last4 if summary else None,
            decision=record.decision.to_dict() if record.decision else None,
            report_artifact_url=record.report_artifact_url,
            error=record.error.to_dict() if record.error else None,
            user_id=record.user_id,
            profile_created=record.profile_created,
            cancel_requested=record.cancel_requested,
            pre_adverse_notice_sent_at=record.pre_adverse_notice_sent_at,
            poll_attempts=record.poll_attempts,
            previous_record_id=record.previous_record_id,
            version=record.version,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class ScreeningListResponse(BaseModel):
    """A page of screening records."""

    items: list[ScreeningRecordResponse]
    limit: int
    offset: int


class ScreeningStatisticsResponse(BaseModel):
    """Dashboard counts over screening records."""

    total: int
    clear: int
    pending: int
    pending_adverse: int
    failed: int
    cancelled: int
    last_30_days: int
    by_status: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_statistics(cls, stats: ScreeningStatistics) -> "ScreeningStatisticsResponse":
        return cls(**stats.to_dict())


class RerunRequest(BaseModel):
    """Optional body for a rerun.

    ``registration`` is needed only when the previous attempt has no
    vendor report that can still be polled.
    """

    registration: RegistrationPayload | None = None


# =============================================================================
# Webhooks
# =============================================================================


class WebhookAckResponse(BaseModel):
    """Acknowledgement of a vendor webhook delivery."""

    provider: str
    event_type: str | None = Field(None, description="Normalised event type, if recognised")
    handled: bool = Field(..., description="Whether a screening record was updated")
    record_id: UUID | None = None
    status: ScreeningStatus | None = Field(None, description="Record status after the event")

    @classmethod
    def from_receipt(cls, receipt: WebhookReceipt) -> "WebhookAckResponse":
        return cls(**receipt.to_dict())

"""Provider types for the screening vendor abstraction.

Vendor responses are normalised into these values so the orchestrator and
the decision resolver never see vendor-specific status strings.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from geargrab.config.settings import CheckTier


class ProviderReportStatus(str, Enum):
    """Normalised status of a vendor report."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    FAILED = "failed"  # Vendor reports the report can never complete


@dataclass(frozen=True)
class ReportAdjudication:
    """Normalised vendor adjudication for a completed report.

    Attributes:
        clear: Overall clear flag. ``None`` when the vendor did not say.
        summary_clear: Clear flag of the vendor's summary section, if any.
        flagged_sections: Sections the vendor marked as having records.
        label: Vendor's own adjudication label, kept for audit.
    """

    clear: bool | None = None
    summary_clear: bool | None = None
    flagged_sections: tuple[str, ...] = ()
    label: str | None = None


@dataclass(frozen=True)
class PollResult:
    """Result of one ``poll_status`` call."""

    status: ProviderReportStatus
    adjudication: ReportAdjudication | None = None
    artifact_url: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        return self.status == ProviderReportStatus.COMPLETE


class ProviderInfo(BaseModel):
    """Static information about a screening vendor.

    Used for registration, discovery and the admin surface.
    """

    provider_id: str
    name: str
    description: str = ""
    base_url: str | None = None
    requires_api_key: bool = True
    supported_tiers: list[CheckTier] = Field(default_factory=lambda: list(CheckTier))


class WebhookEventType(str, Enum):
    """Vendor push events acted on by the webhook intake."""

    REPORT_COMPLETED = "report.completed"
    REPORT_UPDATED = "report.updated"
    REPORT_DISPUTED = "report.disputed"


@dataclass(frozen=True)
class WebhookEvent:
    """A vendor push about one report, normalised like a poll."""

    event_type: WebhookEventType
    external_report_id: str
    report: PollResult

"""Deterministic screening provider for development and tests.

Performs no I/O. A report completes after a configurable number of polls
with a configurable outcome, and every call is recorded for assertions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from uuid_utils.compat import uuid7

from geargrab.config.settings import CheckTier
from geargrab.core.logging import get_logger
from geargrab.providers.protocol import BaseScreeningProvider
from geargrab.providers.types import (
    PollResult,
    ProviderInfo,
    ProviderReportStatus,
    ReportAdjudication,
)
from geargrab.screening.types import ScreeningRequest

logger = get_logger(__name__)

MOCK_PORTAL_URL = "https://mock-screening.geargrab.local/reports"

STATUS_MAP = {
    "pending": ProviderReportStatus.PENDING,
    "in_progress": ProviderReportStatus.IN_PROGRESS,
    "complete": ProviderReportStatus.COMPLETE,
    "failed": ProviderReportStatus.FAILED,
}


class MockOutcome(str, Enum):
    """How a mock report ends once it completes."""

    CLEAR = "clear"
    ADVERSE = "adverse"
    FAILED = "failed"


@dataclass
class MockCalls:
    """Calls received by a MockScreeningProvider."""

    initiated: list[ScreeningRequest] = field(default_factory=list)
    polled: list[str] = field(default_factory=list)
    cancelled: list[str] = field(default_factory=list)


class MockScreeningProvider(BaseScreeningProvider):
    """Test double implementing the ScreeningProvider contract.

    Args:
        polls_until_complete: Poll number on which the report completes.
            ``None`` means it never completes.
        outcome: Adjudication returned on completion.
        initiate_error: Raised from ``initiate`` when set.
        poll_errors: Raised from successive ``poll_status`` calls before
            normal responses resume.
        cancel_error: Raised from ``cancel`` when set.
        artifact_url: Link carried on the completed report. ``None`` makes
            callers fall back to ``report_artifact_url``.
    """

    COMPLETION_ESTIMATES = {tier: "1-2 business days (mock)" for tier in CheckTier}
    DEFAULT_ESTIMATE = "1-2 business days (mock)"

    def __init__(
        self,
        polls_until_complete: int | None = 1,
        outcome: MockOutcome = MockOutcome.CLEAR,
        *,
        initiate_error: Exception | None = None,
        poll_errors: list[Exception] | None = None,
        cancel_error: Exception | None = None,
        artifact_url: str | None = None,
        provider_id: str = "mock",
    ):
        super().__init__(
            ProviderInfo(
                provider_id=provider_id,
                name="Mock Provider",
                description="Deterministic in-process screening double",
                base_url=MOCK_PORTAL_URL,
                requires_api_key=False,
            ),
            portal_url=MOCK_PORTAL_URL,
        )
        self.polls_until_complete = polls_until_complete
        self.outcome = MockOutcome(outcome)
        self.initiate_error = initiate_error
        self.poll_errors = list(poll_errors or [])
        self.cancel_error = cancel_error
        self.artifact_url = artifact_url
        self.calls = MockCalls()
        self._poll_counts: dict[str, int] = {}

    async def initiate(self, request: ScreeningRequest) -> str:
        self.calls.initiated.append(request)
        if self.initiate_error is not None:
            raise self.initiate_error
        external_report_id = f"mock_{uuid7().hex}"
        self._poll_counts[external_report_id] = 0
        logger.debug("mock_report_created", external_report_id=external_report_id)
        return external_report_id

    async def poll_status(self, external_report_id: str) -> PollResult:
        self.calls.polled.append(external_report_id)
        if self.poll_errors:
            raise self.poll_errors.pop(0)

        count = self._poll_counts.get(external_report_id, 0) + 1
        self._poll_counts[external_report_id] = count

        if self.polls_until_complete is None or count < self.polls_until_complete:
            document: dict[str, Any] = {
                "id": external_report_id,
                "status": "in_progress",
                "poll": count,
            }
        elif self.outcome == MockOutcome.FAILED:
            document = {"id": external_report_id, "status": "failed"}
        else:
            document = {
                "id": external_report_id,
                "status": "complete",
                "result": self.outcome.value,
            }
            if self.artifact_url is not None:
                document["report_url"] = self.artifact_url
        return self.report_from_document(document)

    def report_from_document(self, document: dict[str, Any]) -> PollResult:
        """Read ``{"status": ..., "result": "clear" | "adverse"}`` documents."""
        status = STATUS_MAP.get(str(document.get("status")), ProviderReportStatus.IN_PROGRESS)
        if status != ProviderReportStatus.COMPLETE:
            return PollResult(status=status, raw=document)

        clear = document.get("result", MockOutcome.CLEAR.value) == MockOutcome.CLEAR.value
        return PollResult(
            status=status,
            adjudication=ReportAdjudication(
                clear=clear,
                summary_clear=clear,
                flagged_sections=() if clear else ("criminal_history",),
                label="clear" if clear else "consider",
            ),
            artifact_url=document.get("report_url"),
            raw=document,
        )

    async def cancel(self, external_report_id: str) -> None:
        self.calls.cancelled.append(external_report_id)
        if self.cancel_error is not None:
            raise self.cancel_error

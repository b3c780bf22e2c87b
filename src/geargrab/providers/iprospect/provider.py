"""iProspectCheck screening provider.

iProspectCheck takes the whole candidate in a single report call and
answers completed reports with ``clear_flag`` booleans on the adjudication
and summary blocks.
"""

from datetime import UTC, datetime
from typing import Any

import httpx

from geargrab.config.settings import CheckTier, VendorEndpoint
from geargrab.core.exceptions import ProviderAPIError
from geargrab.core.logging import get_logger
from geargrab.providers.http import VendorHTTPProvider
from geargrab.providers.types import (
    PollResult,
    ProviderInfo,
    ProviderReportStatus,
    ReportAdjudication,
)
from geargrab.screening.types import ScreeningRequest

logger = get_logger(__name__)

PACKAGE_CODES: dict[CheckTier, str] = {
    CheckTier.BASIC: "BASIC_CRIMINAL",
    CheckTier.STANDARD: "STANDARD_CRIMINAL_MVR",
    CheckTier.COMPREHENSIVE: "COMPREHENSIVE_PLUS",
}

PERMISSIBLE_PURPOSE = "LICENSE_SCREENING"

STATUS_MAP: dict[str, ProviderReportStatus] = {
    "pending": ProviderReportStatus.PENDING,
    "queued": ProviderReportStatus.PENDING,
    "in_progress": ProviderReportStatus.IN_PROGRESS,
    "processing": ProviderReportStatus.IN_PROGRESS,
    "complete": ProviderReportStatus.COMPLETE,
    "completed": ProviderReportStatus.COMPLETE,
    "failed": ProviderReportStatus.FAILED,
    "error": ProviderReportStatus.FAILED,
    "cancelled": ProviderReportStatus.FAILED,
    "canceled": ProviderReportStatus.FAILED,
}

FLAGGED_SECTION_STATUSES = frozenset({"consider", "records_found", "review"})

CANCEL_NOOP_STATUSES = (404, 409, 410)


class IProspectCheckProvider(VendorHTTPProvider):
    """Screening provider backed by the iProspectCheck REST API."""

    COMPLETION_ESTIMATES = {
        CheckTier.BASIC: "24-48 hours",
        CheckTier.STANDARD: "2-3 business days",
        CheckTier.COMPREHENSIVE: "3-5 business days",
    }

    def __init__(self, endpoint: VendorEndpoint, client: httpx.AsyncClient | None = None):
        super().__init__(
            ProviderInfo(
                provider_id="iprospect",
                name="iProspectCheck",
                description="iProspectCheck FCRA screening reports",
                base_url=endpoint.base_url,
            ),
            endpoint,
            client=client,
        )

    async def initiate(self, request: ScreeningRequest) -> str:
        """Order a report with the candidate nested in the payload."""
        response = await self.request("POST", "/reports", json=build_report_payload(request))
        body = self.json_body(response)
        report_id = body.get("report_id") or body.get("id")
        if not report_id:
            raise ProviderAPIError(
                "iProspectCheck report response carried no report_id",
                self.provider_id,
                status_code=response.status_code,
            )
        logger.info(
            "iprospect_report_created",
            external_report_id=report_id,
            package_code=PACKAGE_CODES[request.check_tier],
        )
        return str(report_id)

    async def poll_status(self, external_report_id: str) -> PollResult:
        response = await self.request_idempotent("GET", f"/reports/{external_report_id}")
        return parse_report(self.json_body(response))

    def report_from_document(self, document: dict[str, Any]) -> PollResult:
        return parse_report(document)

    def webhook_report_id(self, data: dict[str, Any]) -> str | None:
        return data.get("report_id") or data.get("id")

    async def cancel(self, external_report_id: str) -> None:
        response = await self.request_idempotent(
            "POST",
            f"/reports/{external_report_id}/cancel",
            allow_status=CANCEL_NOOP_STATUSES,
        )
        if response.status_code in CANCEL_NOOP_STATUSES:
            logger.info(
                "iprospect_cancel_noop",
                external_report_id=external_report_id,
                status_code=response.status_code,
            )


def build_report_payload(request: ScreeningRequest) -> dict[str, Any]:
    """Build the report creation body for a screening request."""
    candidate = request.candidate
    address = candidate.address
    return {
        "candidate": {
            "first_name": candidate.first_name,
            "last_name": candidate.last_name,
            "dob": candidate.date_of_birth.isoformat(),
            "ssn": candidate.government_id.get_secret_value(),
            "address": f"{address.street}, {address.city}, {address.state} {address.zip_code}",
            "email": candidate.email,
            "phone": candidate.phone,
            "metadata": {
                "ip": request.consent.ip_address,
                "ua": request.consent.user_agent,
                "consented_at": request.consent.consented_at.isoformat(),
                "source": "geargrab_registration",
                "timestamp": datetime.now(UTC).isoformat(),
            },
        },
        "package_code": PACKAGE_CODES[request.check_tier],
        "permissible_purpose": PERMISSIBLE_PURPOSE,
    }


def parse_report(report: dict[str, Any]) -> PollResult:
    """Normalise an iProspectCheck report document."""
    raw_status = str(report.get("status") or "").lower()
    status = STATUS_MAP.get(raw_status, ProviderReportStatus.PENDING)

    adjudication = None
    if status == ProviderReportStatus.COMPLETE:
        adjudication_block = report.get("adjudication") or {}
        summary_block = report.get("summary") or {}
        sections = report.get("sections") or {}
        flagged = tuple(
            name
            for name, section in sections.items()
            if isinstance(section, dict)
            and str(section.get("status", "")).lower() in FLAGGED_SECTION_STATUSES
        )
        adjudication = ReportAdjudication(
            clear=adjudication_block.get("clear_flag"),
            summary_clear=summary_block.get("clear_flag"),
            flagged_sections=flagged,
            label=adjudication_block.get("result"),
        )

    return PollResult(
        status=status,
        adjudication=adjudication,
        artifact_url=report.get("pdf_url"),
        raw=report,
    )

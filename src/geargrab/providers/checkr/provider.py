"""Checkr screening provider.

Checkr needs two calls to start a screening: a candidate is created first,
then a report is ordered for that candidate against a package. Report
status and adjudication strings are normalised here.
"""

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

PACKAGES: dict[CheckTier, str] = {
    CheckTier.BASIC: "tasker_basic",
    CheckTier.STANDARD: "tasker_standard",
    CheckTier.COMPREHENSIVE: "tasker_pro",
}

# "consider" is a finished report with records; it must not keep polling.
STATUS_MAP: dict[str, ProviderReportStatus] = {
    "pending": ProviderReportStatus.PENDING,
    "complete": ProviderReportStatus.COMPLETE,
    "consider": ProviderReportStatus.COMPLETE,
    "dispute": ProviderReportStatus.FAILED,
    "disputed": ProviderReportStatus.FAILED,
    "suspended": ProviderReportStatus.FAILED,
    "canceled": ProviderReportStatus.FAILED,
}

# Cancelling a report Checkr already closed is not an error
CANCEL_NOOP_STATUSES = (404, 409, 410)


class CheckrProvider(VendorHTTPProvider):
    """Screening provider backed by the Checkr REST API."""

    COMPLETION_ESTIMATES = {
        CheckTier.BASIC: "1-2 business days",
        CheckTier.STANDARD: "2-3 business days",
        CheckTier.COMPREHENSIVE: "3-5 business days",
    }

    def __init__(self, endpoint: VendorEndpoint, client: httpx.AsyncClient | None = None):
        super().__init__(
            ProviderInfo(
                provider_id="checkr",
                name="Checkr",
                description="Checkr background checks (candidate + report)",
                base_url=endpoint.base_url,
            ),
            endpoint,
            client=client,
        )

    async def initiate(self, request: ScreeningRequest) -> str:
        """Create a Checkr candidate and order a report for it."""
        candidate = request.candidate
        candidate_response = await self.request(
            "POST",
            "/candidates",
            json={
                "first_name": candidate.first_name,
                "last_name": candidate.last_name,
                "email": candidate.email,
                "phone": candidate.phone,
                "dob": candidate.date_of_birth.isoformat(),
                "ssn": candidate.government_id.get_secret_value(),
                "zipcode": candidate.address.zip_code,
                "driver_license_number": candidate.drivers_license or "",
                "driver_license_state": candidate.address.state,
            },
        )
        candidate_id = self._require_id(candidate_response, "candidate")

        report_response = await self.request(
            "POST",
            "/reports",
            json={
                "candidate_id": candidate_id,
                "package": PACKAGES[request.check_tier],
                "tags": ["geargrab_registration"],
            },
        )
        report_id = self._require_id(report_response, "report")
        logger.info(
            "checkr_report_created",
            external_report_id=report_id,
            package=PACKAGES[request.check_tier],
        )
        return report_id

    async def poll_status(self, external_report_id: str) -> PollResult:
        """Fetch a report and normalise its status and adjudication."""
        response = await self.request_idempotent("GET", f"/reports/{external_report_id}")
        return parse_report(self.json_body(response))

    def report_from_document(self, document: dict[str, Any]) -> PollResult:
        return parse_report(document)

    async def cancel(self, external_report_id: str) -> None:
        """Cancel a report; closed or unknown reports are ignored."""
        response = await self.request_idempotent(
            "DELETE",
            f"/reports/{external_report_id}",
            allow_status=CANCEL_NOOP_STATUSES,
        )
        if response.status_code in CANCEL_NOOP_STATUSES:
            logger.info(
                "checkr_cancel_noop",
                external_report_id=external_report_id,
                status_code=response.status_code,
            )

    def _require_id(self, response: httpx.Response, what: str) -> str:
        identifier = self.json_body(response).get("id")
        if not identifier:
            raise ProviderAPIError(
                f"Checkr {what} response carried no id",
                self.provider_id,
                status_code=response.status_code,
            )
        return str(identifier)


def parse_report(report: dict[str, Any]) -> PollResult:
    """Normalise a Checkr report document."""
    raw_status = str(report.get("status", "")).lower()
    status = STATUS_MAP.get(raw_status, ProviderReportStatus.PENDING)

    adjudication = None
    if status == ProviderReportStatus.COMPLETE:
        label = report.get("adjudication") or report.get("result") or raw_status
        engaged = (
            report.get("adjudication") == "engaged"
            or report.get("result") == "consider"
            or raw_status == "consider"
        )
        adjudication = ReportAdjudication(
            clear=not engaged,
            flagged_sections=("criminal_history",) if engaged else (),
            label=label,
        )

    return PollResult(
        status=status,
        adjudication=adjudication,
        artifact_url=report.get("report_url") or report.get("pdf_url"),
        raw=report,
    )

"""Screening provider protocol for the vendor abstraction.

This module defines the interface that every background-check vendor
adapter must implement. Adapters translate between the vendor's REST API
and the normalised PollResult consumed by the orchestrator.
"""

from typing import Any, Protocol, runtime_checkable

from geargrab.config.settings import CheckTier
from geargrab.core.exceptions import ValidationError
from geargrab.screening.types import ScreeningRequest

from .types import (
    PollResult,
    ProviderInfo,
    ProviderReportStatus,
    WebhookEvent,
    WebhookEventType,
)


@runtime_checkable
class ScreeningProvider(Protocol):
    """Interface all screening vendors must implement.

    Example implementation:
        class SterlingProvider(BaseScreeningProvider):
            async def initiate(self, request: ScreeningRequest) -> str:
                # POST the candidate to Sterling and return its report id
                ...

            async def poll_status(self, external_report_id: str) -> PollResult:
                ...
    """

    @property
    def provider_info(self) -> ProviderInfo:
        """Get static provider information."""
        ...

    @property
    def provider_id(self) -> str:
        """Get the unique provider identifier (e.g. "checkr", "mock")."""
        ...

    async def initiate(self, request: ScreeningRequest) -> str:
        """Submit a candidate to the vendor.

        Args:
            request: Validated screening request.

        Returns:
            The vendor's external report identifier.

        Raises:
            ProviderUnavailableError: On transport or authentication failure.
            ProviderAPIError: On a non-success vendor response.
        """
        ...

    async def poll_status(self, external_report_id: str) -> PollResult:
        """Fetch the current state of a report.

        Raises:
            ProviderError: If the vendor cannot be reached or answers badly.
        """
        ...

    async def cancel(self, external_report_id: str) -> None:
        """Cancel a report. Already cancelled or completed reports are a no-op."""
        ...

    def estimate_completion(self, tier: CheckTier) -> str:
        """Human-readable turnaround estimate for a tier."""
        ...

    def report_artifact_url(self, external_report_id: str) -> str:
        """Durable link to the report when the vendor response carries none."""
        ...

    def parse_webhook(self, payload: dict[str, Any]) -> WebhookEvent | None:
        """Normalise a vendor push. Returns None for events that are not acted on.

        Raises:
            ValidationError: If a handled event does not name a report.
        """
        ...


class BaseScreeningProvider:
    """Base class for screening provider implementations.

    Subclasses supply their ProviderInfo, an estimate table and the vendor
    calls.
    """

    COMPLETION_ESTIMATES: dict[CheckTier, str] = {}
    DEFAULT_ESTIMATE = "2-3 business days"

    def __init__(self, provider_info: ProviderInfo, portal_url: str | None = None):
        self._provider_info = provider_info
        self._portal_url = portal_url

    @property
    def provider_info(self) -> ProviderInfo:
        """Get static provider information."""
        return self._provider_info

    @property
    def provider_id(self) -> str:
        """Get the unique provider identifier."""
        return self._provider_info.provider_id

    def estimate_completion(self, tier: CheckTier) -> str:
        """Look up the turnaround estimate for a tier."""
        return self.COMPLETION_ESTIMATES.get(CheckTier(tier), self.DEFAULT_ESTIMATE)

    def report_artifact_url(self, external_report_id: str) -> str:
        """Build the portal link for a report."""
        base = (self._portal_url or self._provider_info.base_url or "").rstrip("/")
        return f"{base}/{external_report_id}"

    def parse_webhook(self, payload: dict[str, Any]) -> WebhookEvent | None:
        """Normalise a ``{"type": ..., "data": {...}}`` vendor push.

        Disputes fail the report; completions and updates are read like a
        polled report document.
        """
        try:
            event_type = WebhookEventType(payload.get("type"))
        except ValueError:
            return None

        data = payload.get("data")
        if not isinstance(data, dict):
            raise ValidationError(f"{event_type.value} event carries no report data")
        external_report_id = self.webhook_report_id(data)
        if not external_report_id:
            raise ValidationError(f"{event_type.value} event names no report")

        if event_type == WebhookEventType.REPORT_DISPUTED:
            report = PollResult(status=ProviderReportStatus.FAILED, raw=data)
        else:
            report = self.report_from_document(data)
        return WebhookEvent(event_type, str(external_report_id), report)

    def webhook_report_id(self, data: dict[str, Any]) -> str | None:
        """Report id carried in a webhook's data block."""
        return data.get("id")

    def report_from_document(self, document: dict[str, Any]) -> PollResult:
        """Normalise a vendor report document."""
        raise NotImplementedError

    async def initiate(self, request: ScreeningRequest) -> str:
        raise NotImplementedError

    async def poll_status(self, external_report_id: str) -> PollResult:
        raise NotImplementedError

    async def cancel(self, external_report_id: str) -> None:
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release any held connections."""
        return None

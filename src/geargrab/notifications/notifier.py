"""Compliance notifiers for pre-adverse action notices.

``SendGridComplianceNotifier`` delivers through the SendGrid API.
``OutboxComplianceNotifier`` keeps notices in memory for development and
tests.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any

import sendgrid
from sendgrid.helpers.mail import Content, Email, Mail, To

from geargrab.config.settings import Settings
from geargrab.core.exceptions import NotificationDeliveryError
from geargrab.core.logging import get_logger, log_external_call
from geargrab.screening.types import CandidateSummary

from .templates import RenderedNotice, render_pre_adverse_notice

logger = get_logger(__name__)


class ComplianceNotifier(ABC):
    """Base class for compliance notice channels."""

    @abstractmethod
    async def send_pre_adverse_notice(
        self,
        contact: str,
        report_artifact_url: str,
        identity: CandidateSummary | None,
        agency_name: str = "our screening partner",
    ) -> str | None:
        """Send the pre-adverse action notice.

        Args:
            contact: Candidate email address.
            report_artifact_url: Link to the consumer report.
            identity: Redacted candidate summary used for the greeting.
            agency_name: Consumer reporting agency that produced the report.

        Returns:
            Transport message id, if the channel provides one.

        Raises:
            NotificationDeliveryError: If the channel rejects the notice.
        """
        ...


@dataclass
class NoticeSettings:
    """Sender details shared by notifier implementations."""

    company: str = "GearGrab"
    from_email: str = "no-reply@geargrab.co"
    from_name: str = "GearGrab Compliance"
    contact_email: str = "compliance@geargrab.co"

    @classmethod
    def from_settings(cls, settings: Settings) -> "NoticeSettings":
        return cls(
            company=settings.COMPANY_NAME,
            from_email=settings.COMPLIANCE_FROM_EMAIL,
            from_name=settings.COMPLIANCE_FROM_NAME,
            contact_email=settings.COMPLIANCE_CONTACT_EMAIL,
        )

    def render(
        self,
        report_url: str,
        identity: CandidateSummary | None,
        agency_name: str,
        sent_on: date,
    ) -> RenderedNotice:
        return render_pre_adverse_notice(
            first_name=identity.first_name if identity else None,
            report_url=report_url,
            company=self.company,
            agency_name=agency_name,
            contact_email=self.contact_email,
            sent_on=sent_on,
        )


class SendGridComplianceNotifier(ComplianceNotifier):
    """Deliver compliance notices through SendGrid."""

    def __init__(self, api_key: str, notice_settings: NoticeSettings, client: Any | None = None):
        self._client = client or sendgrid.SendGridAPIClient(api_key=api_key)
        self._notice = notice_settings

    async def send_pre_adverse_notice(
        self,
        contact: str,
        report_artifact_url: str,
        identity: CandidateSummary | None,
        agency_name: str = "our screening partner",
    ) -> str | None:
        rendered = self._notice.render(
            report_artifact_url, identity, agency_name, datetime.now(UTC).date()
        )
        message = Mail(
            from_email=Email(self._notice.from_email, self._notice.from_name),
            to_emails=To(contact),
            subject=rendered.subject,
            html_content=Content("text/html", rendered.html),
        )
        message.plain_text_content = Content("text/plain", rendered.text)

        start = time.perf_counter()
        try:
            # SendGrid's client is synchronous
            response = await asyncio.to_thread(self._client.send, message)
        except Exception as e:
            log_external_call(
                logger,
                service="sendgrid",
                operation="send_pre_adverse_notice",
                duration_ms=(time.perf_counter() - start) * 1000,
                success=False,
                error=type(e).__name__,
            )
            raise NotificationDeliveryError(
                f"Failed to send pre-adverse notice: {e}", recipient=contact
            ) from e

        success = 200 <= response.status_code < 300
        log_external_call(
            logger,
            service="sendgrid",
            operation="send_pre_adverse_notice",
            duration_ms=(time.perf_counter() - start) * 1000,
            success=success,
            status_code=response.status_code,
        )
        if not success:
            raise NotificationDeliveryError(
                f"Failed to send pre-adverse notice: SendGrid returned {response.status_code}",
                recipient=contact,
            )
        return response.headers.get("X-Message-Id") if response.headers else None


@dataclass
class OutboxMessage:
    """A notice captured by the outbox."""

    to: str
    notice: RenderedNotice
    report_artifact_url: str
    sent_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class OutboxComplianceNotifier(ComplianceNotifier):
    """Keep notices in memory instead of sending them.

    Args:
        notice_settings: Sender details used when rendering.
        fail_with: Raised from every send when set.
    """

    def __init__(
        self,
        notice_settings: NoticeSettings | None = None,
        fail_with: NotificationDeliveryError | None = None,
    ):
        self._notice = notice_settings or NoticeSettings()
        self.fail_with = fail_with
        self.outbox: list[OutboxMessage] = []

    async def send_pre_adverse_notice(
        self,
        contact: str,
        report_artifact_url: str,
        identity: CandidateSummary | None,
        agency_name: str = "our screening partner",
    ) -> str | None:
        if self.fail_with is not None:
            raise self.fail_with
        rendered = self._notice.render(
            report_artifact_url, identity, agency_name, datetime.now(UTC).date()
        )
        self.outbox.append(OutboxMessage(contact, rendered, report_artifact_url))
        logger.info("pre_adverse_notice_queued", outbox_size=len(self.outbox))
        return f"outbox-{len(self.outbox)}"


def create_compliance_notifier(settings: Settings) -> ComplianceNotifier:
    """Pick the notifier for the configured environment."""
    notice_settings = NoticeSettings.from_settings(settings)
    if settings.SENDGRID_API_KEY is not None:
        return SendGridComplianceNotifier(
            settings.SENDGRID_API_KEY.get_secret_value(), notice_settings
        )
    logger.warning("sendgrid_not_configured", fallback="outbox")
    return OutboxComplianceNotifier(notice_settings)

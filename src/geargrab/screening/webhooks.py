"""Vendor webhook intake.

Vendors push ``report.completed``, ``report.updated`` and
``report.disputed`` events. A verified event is normalised by the
provider adapter, matched to its record by ``(provider, external report
id)`` and applied through the orchestrator's guarded writes, so the record
may resolve before the next poll.

Signatures are HMAC-SHA256 over the raw body, hex encoded, optionally
prefixed with ``sha256=``.
"""

import hashlib
import hmac
import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from pydantic import SecretStr

from geargrab.core.exceptions import (
    ProviderNotFoundError,
    ValidationError,
    WebhookSignatureError,
)
from geargrab.core.logging import get_logger
from geargrab.providers.protocol import ScreeningProvider
from geargrab.providers.registry import ProviderRegistry

from .orchestrator import WorkflowOrchestrator
from .store import ScreeningRecordStore
from .supervisor import ScreeningTaskSupervisor
from .types import ScreeningStatus

logger = get_logger(__name__)

SIGNATURE_HEADERS = ("X-Signature", "X-Checkr-Signature", "X-IProspect-Signature")


def sign_payload(body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of a webhook body."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def signature_matches(body: bytes, signature: str | None, secret: str) -> bool:
    """Compare a received signature with the expected one in constant time."""
    if not signature:
        return False
    received = signature.strip().removeprefix("sha256=")
    return hmac.compare_digest(sign_payload(body, secret), received)


@dataclass(frozen=True)
class WebhookReceipt:
    """What the intake did with one event."""

    provider: str
    event_type: str | None
    handled: bool
    record_id: UUID | None = None
    status: ScreeningStatus | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "event_type": self.event_type,
            "handled": self.handled,
            "record_id": str(self.record_id) if self.record_id else None,
            "status": self.status.value if self.status else None,
        }


class WebhookService:
    """Verifies vendor pushes and applies them to screening records.

    Args:
        store: Screening record persistence.
        registry: Providers that parse their own event payloads.
        orchestrator: Applies pushed reports with guarded writes.
        supervisor: Runs provisioning for records no workflow is driving.
        secret_for: Signing secret lookup by provider name.
        allow_unsigned: Accept events for providers without a secret.
    """

    def __init__(
        self,
        store: ScreeningRecordStore,
        registry: ProviderRegistry,
        orchestrator: WorkflowOrchestrator,
        supervisor: ScreeningTaskSupervisor,
        secret_for: Callable[[str], SecretStr | None],
        allow_unsigned: bool = False,
    ):
        self.store = store
        self.registry = registry
        self.orchestrator = orchestrator
        self.supervisor = supervisor
        self.secret_for = secret_for
        self.allow_unsigned = allow_unsigned

    async def handle(
        self, provider_name: str, body: bytes, signature: str | None
    ) -> WebhookReceipt:
        """Verify, parse and apply one vendor event.

        Events that are not acted on, or that name an unknown report, are
        acknowledged without changes so the vendor stops redelivering them.

        Raises:
            ValidationError: Unknown provider or a malformed body.
            WebhookSignatureError: Missing or wrong signature.
        """
        provider = self._provider(provider_name)
        self.verify(provider.provider_id, body, signature)

        event = provider.parse_webhook(_decode(body))
        if event is None:
            logger.info("webhook_event_ignored", provider=provider.provider_id)
            return WebhookReceipt(provider.provider_id, None, handled=False)

        record = await self.store.find_by_external_report_id(
            provider.provider_id, event.external_report_id
        )
        if record is None:
            logger.warning(
                "webhook_record_not_found",
                provider=provider.provider_id,
                external_report_id=event.external_report_id,
            )
            return WebhookReceipt(provider.provider_id, event.event_type.value, handled=False)

        record = await self.orchestrator.apply_report(record.record_id, event.report)
        if record.status == ScreeningStatus.CLEAR and record.needs_provisioning:
            # A running workflow provisions with the candidate's credential
            if not self.supervisor.is_running(record.record_id):
                self.supervisor.spawn(
                    record.record_id, self.orchestrator.provision(record.record_id)
                )

        logger.info(
            "webhook_applied",
            provider=provider.provider_id,
            event_type=event.event_type.value,
            record_id=str(record.record_id),
            status=record.status.value,
        )
        return WebhookReceipt(
            provider.provider_id,
            event.event_type.value,
            handled=True,
            record_id=record.record_id,
            status=record.status,
        )

    def verify(self, provider_name: str, body: bytes, signature: str | None) -> None:
        """Check the body signature against the provider's secret.

        Raises:
            WebhookSignatureError: If the event cannot be trusted.
        """
        secret = self.secret_for(provider_name)
        if secret is None:
            if self.allow_unsigned:
                return
            raise WebhookSignatureError(provider_name, "no signing secret configured")
        if not signature:
            raise WebhookSignatureError(provider_name, "missing signature")
        if not signature_matches(body, signature, secret.get_secret_value()):
            raise WebhookSignatureError(provider_name, "signature mismatch")

    def _provider(self, provider_name: str) -> ScreeningProvider:
        try:
            return self.registry.get(provider_name)
        except ProviderNotFoundError:
            raise ValidationError(f"Unknown screening provider: {provider_name}") from None


def _decode(body: bytes) -> dict[str, Any]:
    try:
        payload = json.loads(body)
    except ValueError:
        raise ValidationError("Webhook body is not valid JSON") from None
    if not isinstance(payload, dict):
        raise ValidationError("Webhook body must be a JSON object")
    return payload

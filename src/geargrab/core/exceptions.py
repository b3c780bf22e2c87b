"""Exception taxonomy for the identity screening workflow.

Errors raised before a screening is detached (validation, duplicates) are
reported to the caller. Errors raised afterwards are recorded on the
ScreeningRecord under their ``kind`` and never re-raised to an unawaiting
caller.
"""

from typing import Any
from uuid import UUID

from geargrab.utils.exceptions import GearGrabError


class ValidationError(GearGrabError):
    """Raised when a registration payload or webhook body is malformed.

    Attributes:
        missing_fields: Names of required fields that were not supplied.
    """

    code = "VALIDATION_ERROR"
    kind = "validation"

    def __init__(
        self,
        message: str,
        missing_fields: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = dict(details or {})
        if missing_fields:
            details["missing_fields"] = missing_fields
        super().__init__(message, details=details)
        self.missing_fields = missing_fields or []


class DuplicateRequestError(GearGrabError):
    """Raised when an active screening already exists for an email.

    Attributes:
        email: The email address that collided.
        existing_record_id: Record that is still active for the email.
        existing_status: Status of that record.
    """

    code = "DUPLICATE_REQUEST"
    kind = "duplicate_request"

    def __init__(
        self,
        email: str,
        existing_record_id: UUID | None = None,
        existing_status: str | None = None,
    ):
        super().__init__(
            "An application with this email address already exists",
            details={
                "existing_record_id": str(existing_record_id) if existing_record_id else None,
                "status": existing_status,
            },
        )
        self.email = email
        self.existing_record_id = existing_record_id
        self.existing_status = existing_status


class RecordNotFoundError(GearGrabError):
    """Raised when a screening record does not exist."""

    code = "RECORD_NOT_FOUND"
    kind = "record_not_found"

    def __init__(self, record_id: UUID):
        super().__init__(f"Screening record not found: {record_id}")
        self.record_id = record_id


class InvalidTransitionError(GearGrabError):
    """Raised when a patch would move a record along an illegal edge.

    Attributes:
        current: Status the record is in.
        target: Status the patch asked for.
    """

    code = "INVALID_TRANSITION"
    kind = "invalid_transition"

    def __init__(self, current: str, target: str, reason: str | None = None):
        message = f"Illegal status transition: {current} -> {target}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, details={"current": current, "target": target})
        self.current = current
        self.target = target


class StaleRecordError(GearGrabError):
    """Raised when an optimistic update lost a race with another writer."""

    code = "STALE_RECORD"
    kind = "stale_record"

    def __init__(self, record_id: UUID, expected_version: int, actual_version: int | None):
        super().__init__(
            f"Screening record {record_id} changed concurrently "
            f"(expected version {expected_version}, found {actual_version})",
            details={"expected_version": expected_version, "actual_version": actual_version},
        )
        self.record_id = record_id
        self.expected_version = expected_version
        self.actual_version = actual_version


# =============================================================================
# Provider Errors
# =============================================================================


class ProviderError(GearGrabError):
    """Base class for screening vendor failures.

    Attributes:
        provider_id: Registry name of the vendor that failed.
    """

    code = "PROVIDER_ERROR"
    kind = "provider_error"

    def __init__(
        self,
        message: str,
        provider_id: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details=details)
        self.provider_id = provider_id


class ProviderUnavailableError(ProviderError):
    """Raised on transport or authentication failure talking to a vendor."""

    code = "PROVIDER_UNAVAILABLE"
    kind = "provider_unavailable"


class ProviderAPIError(ProviderError):
    """Raised when a vendor answers with a non-success response.

    Attributes:
        status_code: HTTP status returned by the vendor, if any.
    """

    code = "PROVIDER_API_ERROR"
    kind = "provider_api_error"

    def __init__(
        self,
        message: str,
        provider_id: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = dict(details or {})
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, provider_id, details=details)
        self.status_code = status_code


class ProviderNotFoundError(GearGrabError):
    """Raised when a provider name is not registered."""

    code = "PROVIDER_NOT_FOUND"
    kind = "provider_not_found"

    def __init__(self, provider_id: str):
        super().__init__(f"Provider not found: {provider_id}")
        self.provider_id = provider_id


class WebhookSignatureError(GearGrabError):
    """Raised when a vendor webhook is unsigned or its signature does not match."""

    code = "WEBHOOK_SIGNATURE_INVALID"
    kind = "webhook_signature_invalid"

    def __init__(self, provider_id: str, reason: str):
        super().__init__(
            f"Webhook from {provider_id} rejected: {reason}", details={"provider": provider_id}
        )
        self.provider_id = provider_id


class PollingExhaustedError(GearGrabError):
    """Raised when the poll budget is consumed without a complete report."""

    code = "POLLING_EXHAUSTED"
    kind = "polling_exhausted"

    def __init__(self, external_report_id: str, attempts: int):
        super().__init__(
            f"Report {external_report_id} did not complete within {attempts} attempts",
            details={"external_report_id": external_report_id, "attempts": attempts},
        )
        self.external_report_id = external_report_id
        self.attempts = attempts


# =============================================================================
# Collaborator Errors
# =============================================================================


class NotificationDeliveryError(GearGrabError):
    """Raised when the compliance notice channel rejects a send."""

    code = "NOTIFICATION_DELIVERY_FAILED"
    kind = "notification_delivery_failed"

    def __init__(self, message: str, recipient: str | None = None):
        super().__init__(message, details={"recipient": recipient} if recipient else None)
        self.recipient = recipient


class AccountProvisioningError(GearGrabError):
    """Raised when identity or profile creation fails after a clear decision.

    Attributes:
        step: ``"account"`` or ``"profile"``.
    """

    code = "ACCOUNT_PROVISIONING_FAILED"
    kind = "account_creation_failed"

    def __init__(self, message: str, step: str = "account"):
        super().__init__(message, details={"step": step})
        self.step = step
        if step == "profile":
            self.kind = "profile_creation_failed"

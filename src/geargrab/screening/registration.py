"""Registration entry point for new marketplace taskers.

Registration validates the submission, reserves the email with a pending
ScreeningRecord and hands the workflow to the task supervisor. The caller
gets an acknowledgement immediately. Only errors raised before the record
is created reach the caller.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, SecretStr
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from geargrab.config.settings import CheckTier
from geargrab.core.exceptions import ValidationError
from geargrab.core.logging import get_logger
from geargrab.providers.registry import ProviderRegistry

from .clock import Clock, SystemClock
from .orchestrator import WorkflowOrchestrator
from .store import ScreeningRecordStore
from .supervisor import ScreeningTaskSupervisor
from .types import (
    ConsentMetadata,
    ScreeningRecord,
    ScreeningRequest,
    ScreeningStatus,
)

logger = get_logger(__name__)

CONSENT_REQUIRED_MESSAGE = "Must consent to background check"

REQUIRED_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "password",
    "phone",
    "date_of_birth",
    "government_id",
    "address",
)
ADDRESS_FIELDS = ("street", "city", "state", "zip_code")


class AddressPayload(BaseModel):
    """Postal address as submitted. Completeness is checked by the service."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    street: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None


class RegistrationPayload(BaseModel):
    """Raw registration submission.

    Every field is optional here so the service can report missing fields
    and consent in a fixed order. Accepts snake_case or camelCase keys.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    password: SecretStr | None = None
    phone: str | None = None
    date_of_birth: date | None = None
    government_id: SecretStr | None = Field(
        default=None, validation_alias=AliasChoices("government_id", "governmentId", "ssn")
    )
    address: AddressPayload | None = None
    drivers_license: str | None = None
    check_tier: CheckTier | None = None
    consent_given: bool = False


@dataclass(frozen=True)
class ConsentContext:
    """Request metadata captured when the candidate consented."""

    ip_address: str
    user_agent: str | None = None


@dataclass(frozen=True)
class RegistrationReceipt:
    """Acknowledgement returned once the workflow is detached."""

    record_id: UUID
    status: ScreeningStatus
    provider: str
    check_tier: CheckTier
    estimated_completion: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "record_id": str(self.record_id),
            "status": self.status.value,
            "provider": self.provider,
            "check_tier": self.check_tier.value,
            "estimated_completion": self.estimated_completion,
        }


class RegistrationService:
    """Validates registrations and starts their screening workflow."""

    def __init__(
        self,
        store: ScreeningRecordStore,
        registry: ProviderRegistry,
        orchestrator: WorkflowOrchestrator,
        supervisor: ScreeningTaskSupervisor,
        default_tier: CheckTier = CheckTier.BASIC,
        clock: Clock | None = None,
    ):
        self.store = store
        self.registry = registry
        self.orchestrator = orchestrator
        self.supervisor = supervisor
        self.default_tier = default_tier
        self.clock = clock or SystemClock()

    async def register(
        self,
        payload: RegistrationPayload | Mapping[str, Any],
        consent_context: ConsentContext,
    ) -> RegistrationReceipt:
        """Register a candidate and start their background check.

        Args:
            payload: Submission as a model or a raw JSON mapping.
            consent_context: Client metadata recorded with the consent.

        Raises:
            ValidationError: On missing consent, fields or address parts.
            DuplicateRequestError: If the email already holds a screening.
        """
        if not isinstance(payload, RegistrationPayload):
            payload = parse_payload(payload)
        request = self.build_request(payload, consent_context)
        credential = payload.password
        provider = self.registry.default()

        record = ScreeningRecord(
            email=request.email,
            provider_name=provider.provider_id,
            consent=request.consent,
            check_tier=request.check_tier,
            candidate_summary=request.summarize(),
        )
        record = await self.store.create(record)
        logger.info(
            "registration_accepted",
            record_id=str(record.record_id),
            provider=provider.provider_id,
            check_tier=record.check_tier.value,
        )

        self.supervisor.spawn(
            record.record_id,
            self.orchestrator.run(record.record_id, request, credential),
        )

        return RegistrationReceipt(
            record_id=record.record_id,
            status=record.status,
            provider=provider.provider_id,
            check_tier=record.check_tier,
            estimated_completion=provider.estimate_completion(record.check_tier),
        )

    def build_request(
        self,
        payload: RegistrationPayload,
        consent_context: ConsentContext | None = None,
        consent: ConsentMetadata | None = None,
    ) -> ScreeningRequest:
        """Validate a submission into a ScreeningRequest.

        Consent is checked first, then required fields, then the address.
        ``consent`` carries consent recorded earlier, as on a rerun; otherwise
        consent is stamped now from ``consent_context``.
        """
        if not payload.consent_given:
            raise ValidationError(CONSENT_REQUIRED_MESSAGE)

        missing = [name for name in REQUIRED_FIELDS if _is_blank(getattr(payload, name))]
        if missing:
            raise ValidationError("Missing required fields", missing_fields=missing)

        address = payload.address
        missing_address = [name for name in ADDRESS_FIELDS if _is_blank(getattr(address, name))]
        if missing_address:
            raise ValidationError(
                "Complete address is required",
                missing_fields=[f"address.{name}" for name in missing_address],
            )

        try:
            return ScreeningRequest.model_validate(
                {
                    "candidate": {
                        "first_name": payload.first_name,
                        "last_name": payload.last_name,
                        "email": payload.email,
                        "phone": payload.phone,
                        "date_of_birth": payload.date_of_birth,
                        "government_id": payload.government_id,
                        "address": address.model_dump(),
                        "drivers_license": payload.drivers_license,
                    },
                    "check_tier": payload.check_tier or self.default_tier,
                    "consent_given": True,
                    "consent": consent or self._stamp_consent(consent_context),
                }
            )
        except PydanticValidationError as e:
            raise ValidationError(
                "Invalid registration data", details=_error_details(e)
            ) from None

    def _stamp_consent(self, consent_context: ConsentContext | None) -> ConsentMetadata:
        if consent_context is None:
            raise ValidationError("Consent metadata is required")
        return ConsentMetadata(
            consented_at=self.clock.now(),
            ip_address=consent_context.ip_address,
            user_agent=consent_context.user_agent,
        )


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, SecretStr):
        return not value.get_secret_value().strip()
    if isinstance(value, str):
        return not value.strip()
    return False


def parse_payload(data: Mapping[str, Any]) -> RegistrationPayload:
    """Parse a raw submission, checking consent before field types."""
    try:
        return RegistrationPayload.model_validate(data)
    except PydanticValidationError as e:
        if not (data.get("consent_given") or data.get("consentGiven")):
            raise ValidationError(CONSENT_REQUIRED_MESSAGE) from None
        raise ValidationError("Invalid registration data", details=_error_details(e)) from None


def _error_details(exc: PydanticValidationError) -> dict[str, Any]:
    errors = exc.errors(include_input=False, include_url=False, include_context=False)
    return {
        "errors": [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in errors
        ]
    }

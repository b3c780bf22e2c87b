"""Core types and models for the identity screening workflow.

This module defines the request models accepted at registration, the
persisted ScreeningRecord and its closed status machine, and the decision
values produced when a vendor report completes.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, SecretStr, field_validator
from uuid_utils.compat import uuid7

from geargrab.config.settings import CheckTier
from geargrab.core.exceptions import InvalidTransitionError, ValidationError

# =============================================================================
# Enums
# =============================================================================


class ScreeningStatus(str, Enum):
    """Status of a screening attempt."""

    PENDING = "pending"  # Record created, vendor not yet contacted
    SUBMITTED = "submitted"  # Vendor accepted the report request
    IN_PROGRESS = "in_progress"  # Polling the vendor
    CLEAR = "clear"  # No adverse findings, account provisioning
    PENDING_ADVERSE = "pending_adverse"  # Notice sent, awaiting an external decision
    ACCOUNT_CREATION_FAILED = "account_creation_failed"  # Clear but identity not created
    PROCESSING_FAILED = "processing_failed"  # Vendor or polling failure
    CANCELLED = "cancelled"  # Withdrawn by an administrator

    @property
    def is_terminal(self) -> bool:
        """Whether the orchestrator stops driving a record in this status."""
        return self in TERMINAL_STATUSES

    @property
    def holds_email(self) -> bool:
        """Whether a record in this status blocks re-registration of its email."""
        return self not in RELEASED_STATUSES

    def can_transition_to(self, target: "ScreeningStatus") -> bool:
        """Check the transition table for ``self -> target``."""
        return target in ALLOWED_TRANSITIONS[self]


ALLOWED_TRANSITIONS: dict[ScreeningStatus, frozenset[ScreeningStatus]] = {
    ScreeningStatus.PENDING: frozenset(
        {
            ScreeningStatus.SUBMITTED,
            ScreeningStatus.PROCESSING_FAILED,
            ScreeningStatus.CANCELLED,
        }
    ),
    ScreeningStatus.SUBMITTED: frozenset(
        {
            ScreeningStatus.IN_PROGRESS,
            ScreeningStatus.PROCESSING_FAILED,
            ScreeningStatus.CANCELLED,
        }
    ),
    ScreeningStatus.IN_PROGRESS: frozenset(
        {
            ScreeningStatus.CLEAR,
            ScreeningStatus.PENDING_ADVERSE,
            ScreeningStatus.PROCESSING_FAILED,
            ScreeningStatus.CANCELLED,
        }
    ),
    ScreeningStatus.CLEAR: frozenset({ScreeningStatus.ACCOUNT_CREATION_FAILED}),
    # Provisioning retry only
    ScreeningStatus.ACCOUNT_CREATION_FAILED: frozenset({ScreeningStatus.CLEAR}),
    ScreeningStatus.PENDING_ADVERSE: frozenset(),
    ScreeningStatus.PROCESSING_FAILED: frozenset(),
    ScreeningStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    {
        ScreeningStatus.CLEAR,
        ScreeningStatus.PENDING_ADVERSE,
        ScreeningStatus.ACCOUNT_CREATION_FAILED,
        ScreeningStatus.PROCESSING_FAILED,
        ScreeningStatus.CANCELLED,
    }
)

RELEASED_STATUSES = frozenset({ScreeningStatus.PROCESSING_FAILED, ScreeningStatus.CANCELLED})

CANCELLABLE_STATUSES = frozenset(
    {ScreeningStatus.PENDING, ScreeningStatus.SUBMITTED, ScreeningStatus.IN_PROGRESS}
)


class DecisionAction(str, Enum):
    """Outcome of interpreting a vendor adjudication."""

    APPROVE = "approve"
    ADVERSE = "adverse"
    PENDING = "pending"  # Report not complete yet


class RiskLevel(str, Enum):
    """Risk level attached to a decision."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# =============================================================================
# Request Models
# =============================================================================


class PostalAddress(BaseModel):
    """Candidate's current postal address."""

    model_config = ConfigDict(frozen=True)

    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=2, max_length=2)
    zip_code: str = Field(pattern=r"^\d{5}(-\d{4})?$")

    @field_validator("state")
    @classmethod
    def upper_state(cls, v: str) -> str:
        return v.upper()


class CandidateIdentity(BaseModel):
    """Personal data submitted to the screening vendor.

    Attributes:
        government_id: Social security number; kept secret in reprs and logs.
        drivers_license: Optional driver licence number.
    """

    model_config = ConfigDict(frozen=True)

    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: EmailStr
    phone: str = Field(min_length=7)
    date_of_birth: date
    government_id: SecretStr
    address: PostalAddress
    drivers_license: str | None = None

    @field_validator("email")
    @classmethod
    def normalise_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("government_id")
    @classmethod
    def check_government_id(cls, v: SecretStr) -> SecretStr:
        digits = "".join(ch for ch in v.get_secret_value() if ch.isdigit())
        if len(digits) != 9:
            raise ValueError("government ID must contain 9 digits")
        return SecretStr(digits)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class ConsentMetadata(BaseModel):
    """Evidence of the candidate's consent to screening."""

    model_config = ConfigDict(frozen=True)

    consented_at: datetime
    ip_address: str = Field(min_length=1)
    user_agent: str | None = None


class ScreeningRequest(BaseModel):
    """Validated input for one screening attempt.

    Never persisted verbatim. Only ``summarize()`` output is stored.
    """

    model_config = ConfigDict(frozen=True)

    candidate: CandidateIdentity
    check_tier: CheckTier = CheckTier.BASIC
    consent_given: bool
    consent: ConsentMetadata

    @property
    def email(self) -> str:
        return self.candidate.email

    def summarize(self) -> "CandidateSummary":
        """Build the redacted summary stored on the record."""
        return CandidateSummary(
            first_name=self.candidate.first_name,
            last_name=self.candidate.last_name,
            display_name=self.candidate.display_name,
            government_id_last4=self.candidate.government_id.get_secret_value()[-4:],
            state=self.candidate.address.state,
            check_tier=self.check_tier,
        )


# =============================================================================
# Record Models
# =============================================================================


@dataclass(frozen=True)
class CandidateSummary:
    """Redacted candidate data kept on the record."""

    first_name: str
    last_name: str
    display_name: str
    government_id_last4: str
    state: str
    check_tier: CheckTier = CheckTier.BASIC

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "display_name": self.display_name,
            "government_id_last4": self.government_id_last4,
            "state": self.state,
            "check_tier": self.check_tier.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CandidateSummary":
        """Create from dictionary."""
        return cls(
            first_name=data["first_name"],
            last_name=data["last_name"],
            display_name=data["display_name"],
            government_id_last4=data["government_id_last4"],
            state=data["state"],
            check_tier=CheckTier(data.get("check_tier", CheckTier.BASIC.value)),
        )


@dataclass(frozen=True)
class ScreeningDecision:
    """Interpretation of a completed vendor report."""

    action: DecisionAction
    risk_level: RiskLevel
    requires_adverse_action: bool
    reasons: tuple[str, ...] = ()
    decided_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "action": self.action.value,
            "risk_level": self.risk_level.value,
            "requires_adverse_action": self.requires_adverse_action,
            "reasons": list(self.reasons),
            "decided_at": self.decided_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScreeningDecision":
        """Create from dictionary."""
        return cls(
            action=DecisionAction(data["action"]),
            risk_level=RiskLevel(data["risk_level"]),
            requires_adverse_action=bool(data["requires_adverse_action"]),
            reasons=tuple(data.get("reasons", ())),
            decided_at=datetime.fromisoformat(data["decided_at"]),
        )


@dataclass(frozen=True)
class RecordedError:
    """Last failure recorded on a screening record."""

    kind: str
    message: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_exception(cls, exc: BaseException, kind: str | None = None) -> "RecordedError":
        """Record an exception under its taxonomy kind."""
        return cls(
            kind=kind or getattr(exc, "kind", "unexpected_error"),
            message=getattr(exc, "message", None) or str(exc) or type(exc).__name__,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "kind": self.kind,
            "message": self.message,
            "occurred_at": self.occurred_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RecordedError":
        """Create from dictionary."""
        return cls(
            kind=data["kind"],
            message=data["message"],
            occurred_at=datetime.fromisoformat(data["occurred_at"]),
        )


@dataclass(frozen=True)
class ScreeningRecord:
    """One persisted screening attempt.

    Records are immutable values. Stores produce a new value per update via
    ``apply_patch`` and bump ``version`` each time.
    """

    email: str
    provider_name: str
    consent: ConsentMetadata
    check_tier: CheckTier = CheckTier.BASIC
    record_id: UUID = field(default_factory=uuid7)
    status: ScreeningStatus = ScreeningStatus.PENDING
    candidate_summary: CandidateSummary | None = None
    external_report_id: str | None = None
    decision: ScreeningDecision | None = None
    report_artifact_url: str | None = None
    error: RecordedError | None = None
    user_id: UUID | None = None
    profile_created: bool = False
    cancel_requested: bool = False
    pre_adverse_notice_sent_at: datetime | None = None
    poll_attempts: int = 0
    previous_record_id: UUID | None = None
    version: int = 1
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def needs_provisioning(self) -> bool:
        """Whether a clear record still lacks its account or profile."""
        if self.status == ScreeningStatus.ACCOUNT_CREATION_FAILED:
            return True
        return self.status == ScreeningStatus.CLEAR and (
            self.user_id is None or not self.profile_created
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "record_id": str(self.record_id),
            "email": self.email,
            "provider_name": self.provider_name,
            "check_tier": self.check_tier.value,
            "status": self.status.value,
            "external_report_id": self.external_report_id,
            "consent": self.consent.model_dump(mode="json"),
            "candidate_summary": (
                self.candidate_summary.to_dict() if self.candidate_summary else None
            ),
            "decision": self.decision.to_dict() if self.decision else None,
            "report_artifact_url": self.report_artifact_url,
            "error": self.error.to_dict() if self.error else None,
            "user_id": str(self.user_id) if self.user_id else None,
            "profile_created": self.profile_created,
            "cancel_requested": self.cancel_requested,
            "pre_adverse_notice_sent_at": (
                self.pre_adverse_notice_sent_at.isoformat()
                if self.pre_adverse_notice_sent_at
                else None
            ),
            "poll_attempts": self.poll_attempts,
            "previous_record_id": (
                str(self.previous_record_id) if self.previous_record_id else None
            ),
            "version": self.version,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


# =============================================================================
# Patches
# =============================================================================

IMMUTABLE_FIELDS = frozenset(
    {"record_id", "email", "provider_name", "check_tier", "consent", "version", "created_at"}
)
PATCHABLE_FIELDS = frozenset(f.name for f in fields(ScreeningRecord)) - IMMUTABLE_FIELDS - {
    "updated_at"
}


def validate_patch(record: ScreeningRecord, patch: Mapping[str, Any]) -> None:
    """Check a patch against the status machine and set-once fields.

    Raises:
        ValidationError: If the patch names unknown or immutable fields.
        InvalidTransitionError: If the patch breaks a record invariant.
    """
    unknown = set(patch) - PATCHABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be patched: {', '.join(sorted(unknown))}")

    current = record.status
    target = ScreeningStatus(patch.get("status", current))
    if target != current and not current.can_transition_to(target):
        raise InvalidTransitionError(current.value, target.value)

    if "user_id" in patch and patch["user_id"] != record.user_id:
        if record.user_id is not None:
            raise InvalidTransitionError(current.value, target.value, "user_id is already set")
        if target != ScreeningStatus.CLEAR:
            raise InvalidTransitionError(
                current.value, target.value, "user_id may only be set while clear"
            )

    new_report_id = patch.get("external_report_id")
    if (
        new_report_id is not None
        and record.external_report_id is not None
        and new_report_id != record.external_report_id
    ):
        raise InvalidTransitionError(
            current.value, target.value, "external_report_id is already set"
        )


def apply_patch(
    record: ScreeningRecord,
    patch: Mapping[str, Any],
    now: datetime | None = None,
) -> ScreeningRecord:
    """Validate a patch and return the next version of the record."""
    validate_patch(record, patch)
    changes = dict(patch)
    if "status" in changes:
        changes["status"] = ScreeningStatus(changes["status"])
    return replace(
        record,
        **changes,
        version=record.version + 1,
        updated_at=now or datetime.now(UTC),
    )

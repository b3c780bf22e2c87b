"""Identity screening workflow.

Workflow components (orchestrator, supervisor, registration, admin) live
in their own modules and are not re-exported here, since providers import
the types from this package.
"""

from .clock import Clock, SystemClock, VirtualClock
from .decision import resolve_decision
from .store import InMemoryScreeningRecordStore, ScreeningRecordStore
from .types import (
    ALLOWED_TRANSITIONS,
    CANCELLABLE_STATUSES,
    TERMINAL_STATUSES,
    CandidateIdentity,
    CandidateSummary,
    ConsentMetadata,
    DecisionAction,
    PostalAddress,
    RecordedError,
    RiskLevel,
    ScreeningDecision,
    ScreeningRecord,
    ScreeningRequest,
    ScreeningStatus,
    apply_patch,
    validate_patch,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "CANCELLABLE_STATUSES",
    "TERMINAL_STATUSES",
    "CandidateIdentity",
    "CandidateSummary",
    "Clock",
    "ConsentMetadata",
    "DecisionAction",
    "InMemoryScreeningRecordStore",
    "PostalAddress",
    "RecordedError",
    "RiskLevel",
    "ScreeningDecision",
    "ScreeningRecord",
    "ScreeningRecordStore",
    "ScreeningRequest",
    "ScreeningStatus",
    "SystemClock",
    "VirtualClock",
    "apply_patch",
    "resolve_decision",
    "validate_patch",
]

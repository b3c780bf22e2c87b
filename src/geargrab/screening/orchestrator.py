"""Workflow orchestrator for identity screening.

This module provides the WorkflowOrchestrator that drives one
ScreeningRecord from submission to a terminal state:

1. Submit the candidate to the record's provider
2. Poll the vendor under a bounded attempt budget
3. Resolve the adverse-action decision
4. Send the pre-adverse notice, or provision the account

A vendor webhook can resolve a waiting record through ``apply_report``;
the poll loop then finds the record settled and stops.

Every write is a patch guarded by the record version. A write that loses
a race re-reads the record and yields to an administrative cancel.
Failures after the caller has been acknowledged are recorded on the
record and never raised.
"""

import asyncio
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, SecretStr

from geargrab.accounts.provisioner import AccountProvisioner
from geargrab.core.exceptions import (
    AccountProvisioningError,
    NotificationDeliveryError,
    PollingExhaustedError,
    ProviderAPIError,
    ProviderError,
    StaleRecordError,
)
from geargrab.core.logging import LogContext, get_logger, log_exception
from geargrab.notifications.notifier import ComplianceNotifier
from geargrab.providers.protocol import ScreeningProvider
from geargrab.providers.registry import ProviderRegistry
from geargrab.providers.types import PollResult, ProviderReportStatus
from geargrab.utils.exceptions import GearGrabError

from .clock import Clock, SystemClock
from .decision import resolve_decision
from .store import ScreeningRecordStore
from .types import (
    CANCELLABLE_STATUSES,
    RecordedError,
    ScreeningRecord,
    ScreeningRequest,
    ScreeningStatus,
)

logger = get_logger(__name__)

REPORT_FAILED_KIND = "report_failed"
REQUEST_UNAVAILABLE_KIND = "request_unavailable"
CANCEL_FAILED_KIND = "cancel_failed"
UNEXPECTED_ERROR_KIND = "unexpected_error"


# =============================================================================
# Configuration
# =============================================================================


class OrchestratorConfig(BaseModel):
    """Configuration for the workflow orchestrator."""

    poll_interval_seconds: float = Field(
        default=30.0, ge=0, description="Delay between vendor polls"
    )
    max_poll_attempts: int = Field(
        default=144, ge=1, description="Polls allowed before the attempt fails"
    )


# =============================================================================
# Control flow signals
# =============================================================================


class _CancellationObserved(Exception):
    """A guarded write found that an administrator requested cancellation."""

    def __init__(self, record: ScreeningRecord):
        super().__init__(str(record.record_id))
        self.record = record


class _Superseded(Exception):
    """A guarded write found that another writer moved the record on."""

    def __init__(self, record: ScreeningRecord):
        super().__init__(str(record.record_id))
        self.record = record


@dataclass
class _PollOutcome:
    record: ScreeningRecord
    report: PollResult | None
    attempts: int


# =============================================================================
# Workflow Orchestrator
# =============================================================================


class WorkflowOrchestrator:
    """Drives screening records through the status machine.

    Example:
        orchestrator = WorkflowOrchestrator(store, registry, notifier, provisioner)
        record = await orchestrator.run(record.record_id, request, credential)

        if record.status == ScreeningStatus.CLEAR:
            print(f"Account: {record.user_id}")
    """

    def __init__(
        self,
        store: ScreeningRecordStore,
        registry: ProviderRegistry,
        notifier: ComplianceNotifier,
        provisioner: AccountProvisioner,
        clock: Clock | None = None,
        config: OrchestratorConfig | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Screening record persistence.
            registry: Providers, looked up by each record's provider_name.
            notifier: Channel for pre-adverse notices.
            provisioner: Account store for cleared candidates.
            clock: Time source for the poll interval.
            config: Polling budget.
        """
        self.store = store
        self.registry = registry
        self.notifier = notifier
        self.provisioner = provisioner
        self.clock = clock or SystemClock()
        self.config = config or OrchestratorConfig()

    # =========================================================================
    # Entry points
    # =========================================================================

    async def run(
        self,
        record_id: UUID,
        request: ScreeningRequest | None = None,
        credential: SecretStr | None = None,
    ) -> ScreeningRecord | None:
        """Drive a record from its persisted status to a terminal state.

        Args:
            record_id: Record to drive.
            request: Candidate data, needed only while the record is pending
                without an external report id.
            credential: Password for the account created on a clear result.

        Returns:
            The record as last written, or None if it does not exist.
        """
        with LogContext(record_id=str(record_id)):
            try:
                return await self._drive(record_id, request, credential)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log_exception(logger, e, stage="workflow")
                return await persist_failure(self.store, record_id, e)

    async def resume(self, record_id: UUID) -> ScreeningRecord | None:
        """Continue an attempt interrupted by a host restart."""
        logger.info("workflow_resumed", record_id=str(record_id))
        return await self.run(record_id)

    async def provision(
        self, record_id: UUID, credential: SecretStr | None = None
    ) -> ScreeningRecord | None:
        """Retry account and profile creation for a clear record."""
        with LogContext(record_id=str(record_id)):
            try:
                record = await self.store.get(record_id)
                if not record.needs_provisioning:
                    return record
                return await self._provision(record, credential)
            except asyncio.CancelledError:
                raise
            except (_CancellationObserved, _Superseded) as signal:
                return signal.record
            except Exception as e:
                log_exception(logger, e, stage="provisioning")
                return await persist_failure(self.store, record_id, e)

    async def apply_report(self, record_id: UUID, report: PollResult) -> ScreeningRecord:
        """Resolve a record from a report the vendor pushed.

        Only a record still waiting on its vendor changes, and only for a
        complete or failed report. Writes are version-guarded like the poll
        loop's, so a push and a poll never both resolve the record.
        Provisioning is left to the caller.
        """
        with LogContext(record_id=str(record_id)):
            record = await self.store.get(record_id)
            waiting = record.status in (ScreeningStatus.SUBMITTED, ScreeningStatus.IN_PROGRESS)
            settled = report.is_complete or report.status == ProviderReportStatus.FAILED
            if record.cancel_requested or not waiting or not settled:
                logger.info(
                    "pushed_report_ignored",
                    status=record.status.value,
                    report_status=report.status.value,
                )
                return record

            provider = self.registry.get(record.provider_name)
            try:
                if record.status == ScreeningStatus.SUBMITTED:
                    record = await self._write(record, {"status": ScreeningStatus.IN_PROGRESS})
                if report.status == ProviderReportStatus.FAILED:
                    return await self._fail_report(record, provider, report, record.poll_attempts)
                outcome = _PollOutcome(record, report, record.poll_attempts)
                return await self._record_decision(outcome, provider)
            except (_CancellationObserved, _Superseded) as signal:
                logger.info("pushed_report_superseded", status=signal.record.status.value)
                return signal.record

    # =========================================================================
    # Workflow
    # =========================================================================

    async def _drive(
        self,
        record_id: UUID,
        request: ScreeningRequest | None,
        credential: SecretStr | None,
    ) -> ScreeningRecord | None:
        record = await self.store.find_by_id(record_id)
        if record is None:
            logger.warning("workflow_record_missing")
            return None

        provider = self.registry.get(record.provider_name)

        try:
            if record.status == ScreeningStatus.PENDING:
                if record.cancel_requested:
                    return await self._cancel(record, provider)
                record = await self._submit(record, provider, request)

            if record.status == ScreeningStatus.SUBMITTED:
                record = await self._write(record, {"status": ScreeningStatus.IN_PROGRESS})

            if record.status == ScreeningStatus.IN_PROGRESS:
                outcome = await self._poll(record, provider)
                if outcome.report is not None:
                    return await self._resolve(outcome, provider, credential)
                record = outcome.record

        except _CancellationObserved as signal:
            return await self._cancel(signal.record, provider)
        except _Superseded as signal:
            logger.info("workflow_superseded", status=signal.record.status.value)
            record = signal.record

        if record.status == ScreeningStatus.CLEAR and record.needs_provisioning:
            # Cleared by a vendor webhook, or interrupted before provisioning
            return await self.provision(record.record_id, credential)
        return record

    async def _submit(
        self,
        record: ScreeningRecord,
        provider: ScreeningProvider,
        request: ScreeningRequest | None,
    ) -> ScreeningRecord:
        """Hand the candidate to the vendor. Submission is never retried."""
        if record.external_report_id is not None:
            # A rerun continuing an existing vendor report
            return await self._write(record, {"status": ScreeningStatus.SUBMITTED})

        if request is None:
            logger.warning("workflow_request_unavailable")
            return await self._write(
                record,
                {
                    "status": ScreeningStatus.PROCESSING_FAILED,
                    "error": RecordedError(
                        kind=REQUEST_UNAVAILABLE_KIND,
                        message="Screening request data is no longer available",
                        occurred_at=self.clock.now(),
                    ),
                },
            )

        try:
            external_report_id = await provider.initiate(request)
        except ProviderError as e:
            logger.warning("submission_failed", provider=provider.provider_id, error=e.message)
            return await self._write(
                record,
                {
                    "status": ScreeningStatus.PROCESSING_FAILED,
                    "error": self._error(e),
                },
            )

        logger.info(
            "screening_submitted",
            provider=provider.provider_id,
            external_report_id=external_report_id,
        )
        try:
            return await self._write(
                record,
                {
                    "status": ScreeningStatus.SUBMITTED,
                    "external_report_id": external_report_id,
                },
            )
        except _CancellationObserved as signal:
            return await self._cancel(signal.record, provider, external_report_id)

    async def _poll(self, record: ScreeningRecord, provider: ScreeningProvider) -> _PollOutcome:
        """Poll until the report completes, fails, the budget runs out or a cancel lands."""
        external_report_id = record.external_report_id
        max_attempts = self.config.max_poll_attempts
        attempts = 0

        while True:
            record = await self.store.get(record.record_id)
            if record.status != ScreeningStatus.IN_PROGRESS:
                return _PollOutcome(record, None, attempts)
            if record.cancel_requested:
                return _PollOutcome(await self._cancel(record, provider), None, attempts)

            if attempts >= max_attempts:
                error = PollingExhaustedError(external_report_id, attempts)
                logger.warning("polling_exhausted", attempts=attempts)
                record = await self._write(
                    record,
                    {
                        "status": ScreeningStatus.PROCESSING_FAILED,
                        "error": self._error(error),
                        "poll_attempts": attempts,
                    },
                )
                return _PollOutcome(record, None, attempts)

            attempts += 1
            report: PollResult | None
            try:
                report = await provider.poll_status(external_report_id)
            except ProviderError as e:
                # Counts against the same budget as a not-complete response
                logger.warning("poll_failed", attempt=attempts, error=e.message)
                report = None

            if report is not None and report.is_complete:
                logger.info("report_complete", attempts=attempts)
                return _PollOutcome(record, report, attempts)

            if report is not None and report.status == ProviderReportStatus.FAILED:
                record = await self._fail_report(record, provider, report, attempts)
                return _PollOutcome(record, None, attempts)

            if attempts < max_attempts:
                await self.clock.sleep(self.config.poll_interval_seconds)

    async def _fail_report(
        self,
        record: ScreeningRecord,
        provider: ScreeningProvider,
        report: PollResult,
        attempts: int,
    ) -> ScreeningRecord:
        error = ProviderAPIError(
            f"Vendor reported report {record.external_report_id} as failed",
            provider.provider_id,
            details={"raw_status": report.raw.get("status")},
        )
        return await self._write(
            record,
            {
                "status": ScreeningStatus.PROCESSING_FAILED,
                "error": self._error(error, kind=REPORT_FAILED_KIND),
                "poll_attempts": attempts,
            },
        )

    async def _resolve(
        self,
        outcome: _PollOutcome,
        provider: ScreeningProvider,
        credential: SecretStr | None,
    ) -> ScreeningRecord:
        record = await self._record_decision(outcome, provider)
        if record.status == ScreeningStatus.CLEAR:
            return await self._provision(record, credential)
        return record

    async def _record_decision(
        self, outcome: _PollOutcome, provider: ScreeningProvider
    ) -> ScreeningRecord:
        """Write the decision, then send the notice on the adverse branch."""
        record = outcome.record
        report = outcome.report
        decision = resolve_decision(report, now=self.clock.now())
        artifact_url = report.artifact_url or provider.report_artifact_url(
            record.external_report_id
        )
        logger.info(
            "decision_resolved",
            action=decision.action.value,
            risk_level=decision.risk_level.value,
        )

        if decision.requires_adverse_action:
            record = await self._write(
                record,
                {
                    "status": ScreeningStatus.PENDING_ADVERSE,
                    "decision": decision,
                    "report_artifact_url": artifact_url,
                    "poll_attempts": outcome.attempts,
                },
            )
            return await self._send_notice(record, provider)

        return await self._write(
            record,
            {
                "status": ScreeningStatus.CLEAR,
                "decision": decision,
                "report_artifact_url": artifact_url,
                "poll_attempts": outcome.attempts,
            },
        )

    async def _send_notice(
        self, record: ScreeningRecord, provider: ScreeningProvider
    ) -> ScreeningRecord:
        """Send the pre-adverse notice once; delivery failure is not fatal."""
        if record.pre_adverse_notice_sent_at is not None:
            return record

        try:
            await self.notifier.send_pre_adverse_notice(
                record.email,
                record.report_artifact_url,
                record.candidate_summary,
                agency_name=provider.provider_info.name,
            )
        except NotificationDeliveryError as e:
            logger.error("pre_adverse_notice_failed", error=e.message)
            return await self._write(record, {"error": self._error(e)})

        logger.info("pre_adverse_notice_sent")
        return await self._write(record, {"pre_adverse_notice_sent_at": self.clock.now()})

    async def _provision(
        self, record: ScreeningRecord, credential: SecretStr | None
    ) -> ScreeningRecord:
        """Create the identity, then the profile. Existing steps are skipped."""
        user_id = record.user_id
        if user_id is None:
            display_name = (
                record.candidate_summary.display_name if record.candidate_summary else record.email
            )
            try:
                user_id = await self.provisioner.create_account(
                    record.email, credential, display_name
                )
            except AccountProvisioningError as e:
                logger.error("account_creation_failed", error=e.message)
                return await self._write(
                    record,
                    {
                        "status": ScreeningStatus.ACCOUNT_CREATION_FAILED,
                        "error": self._error(e),
                    },
                )

            patch: dict[str, Any] = {"user_id": user_id}
            if record.status == ScreeningStatus.ACCOUNT_CREATION_FAILED:
                patch.update(status=ScreeningStatus.CLEAR, error=None)
            record = await self._write(record, patch)
            logger.info("account_provisioned", user_id=str(user_id))

        if record.profile_created or record.candidate_summary is None:
            return record

        try:
            await self.provisioner.create_profile(
                user_id, record.candidate_summary, record.record_id
            )
        except AccountProvisioningError as e:
            logger.error("profile_creation_failed", error=e.message)
            return await self._write(record, {"error": self._error(e)})

        return await self._write(record, {"profile_created": True, "error": None})

    async def _cancel(
        self,
        record: ScreeningRecord,
        provider: ScreeningProvider,
        external_report_id: str | None = None,
    ) -> ScreeningRecord:
        """Cancel at the vendor once, then settle the record as cancelled."""
        external_report_id = external_report_id or record.external_report_id
        patch: dict[str, Any] = {"status": ScreeningStatus.CANCELLED}
        if record.external_report_id is None and external_report_id is not None:
            patch["external_report_id"] = external_report_id

        if external_report_id is not None:
            try:
                await provider.cancel(external_report_id)
            except ProviderError as e:
                logger.warning("vendor_cancel_failed", error=e.message)
                patch["error"] = self._error(e, kind=CANCEL_FAILED_KIND)

        logger.info("screening_cancelled", external_report_id=external_report_id)
        return await settle(self.store, record.record_id, patch)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _write(self, record: ScreeningRecord, patch: dict[str, Any]) -> ScreeningRecord:
        """Apply a patch guarded by the version last read.

        Raises:
            _CancellationObserved: If the record is now flagged for cancellation.
            _Superseded: If another writer moved the record to a new status.
        """
        try:
            return await self.store.update(
                record.record_id, patch, expected_version=record.version
            )
        except StaleRecordError:
            fresh = await self.store.get(record.record_id)

        if fresh.cancel_requested and fresh.status in CANCELLABLE_STATUSES:
            raise _CancellationObserved(fresh)
        if fresh.status != record.status:
            raise _Superseded(fresh)
        return await self.store.update(record.record_id, patch, expected_version=fresh.version)

    def _error(self, exc: GearGrabError, kind: str | None = None) -> RecordedError:
        return RecordedError(
            kind=kind or getattr(exc, "kind", UNEXPECTED_ERROR_KIND),
            message=exc.message,
            occurred_at=self.clock.now(),
        )


# =============================================================================
# Failure persistence
# =============================================================================


async def settle(
    store: ScreeningRecordStore, record_id: UUID, patch: dict[str, Any], attempts: int = 3
) -> ScreeningRecord:
    """Apply a patch against the latest version, retrying lost races."""
    for _ in range(attempts - 1):
        record = await store.get(record_id)
        try:
            return await store.update(record_id, patch, expected_version=record.version)
        except StaleRecordError:
            continue
    return await store.update(record_id, patch)


async def persist_failure(
    store: ScreeningRecordStore, record_id: UUID, exc: BaseException
) -> ScreeningRecord | None:
    """Record an unexpected failure on the record it interrupted.

    The record moves to ``processing_failed`` where that is a legal edge,
    or to ``account_creation_failed`` if it was clear without an account.
    Otherwise only the error is recorded.
    """
    record = await store.find_by_id(record_id)
    if record is None:
        return None

    patch: dict[str, Any] = {
        "error": RecordedError.from_exception(
            exc, kind=getattr(exc, "kind", UNEXPECTED_ERROR_KIND)
        )
    }
    if record.status.can_transition_to(ScreeningStatus.PROCESSING_FAILED):
        patch["status"] = ScreeningStatus.PROCESSING_FAILED
    elif record.status == ScreeningStatus.CLEAR and record.user_id is None:
        patch["status"] = ScreeningStatus.ACCOUNT_CREATION_FAILED

    try:
        return await settle(store, record_id, patch)
    except GearGrabError as e:
        log_exception(logger, e, stage="persist_failure", record_id=str(record_id))
        return record


# =============================================================================
# Factory Functions
# =============================================================================


def create_workflow_orchestrator(
    store: ScreeningRecordStore,
    registry: ProviderRegistry,
    notifier: ComplianceNotifier,
    provisioner: AccountProvisioner,
    clock: Clock | None = None,
    config: OrchestratorConfig | None = None,
) -> WorkflowOrchestrator:
    """Create a workflow orchestrator.

    Returns:
        Configured WorkflowOrchestrator instance.
    """
    return WorkflowOrchestrator(
        store=store,
        registry=registry,
        notifier=notifier,
        provisioner=provisioner,
        clock=clock,
        config=config,
    )

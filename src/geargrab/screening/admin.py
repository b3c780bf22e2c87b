"""Administrative operations on screening records."""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any
from uuid import UUID

from pydantic import SecretStr

from geargrab.core.exceptions import (
    InvalidTransitionError,
    ProviderError,
    StaleRecordError,
    ValidationError,
)
from geargrab.core.logging import get_logger
from geargrab.providers.registry import ProviderRegistry

from .clock import Clock, SystemClock
from .orchestrator import CANCEL_FAILED_KIND, REPORT_FAILED_KIND, WorkflowOrchestrator
from .store import ScreeningRecordStore
from .supervisor import ScreeningTaskSupervisor
from .types import (
    CANCELLABLE_STATUSES,
    RecordedError,
    ScreeningRecord,
    ScreeningRequest,
    ScreeningStatus,
)

logger = get_logger(__name__)

STATISTICS_WINDOW = timedelta(days=30)

RESUMABLE_STATUSES = (
    ScreeningStatus.PENDING,
    ScreeningStatus.SUBMITTED,
    ScreeningStatus.IN_PROGRESS,
    ScreeningStatus.CLEAR,
)


@dataclass
class ScreeningStatistics:
    """Counts over all screening records."""

    total: int = 0
    clear: int = 0
    pending: int = 0
    pending_adverse: int = 0
    failed: int = 0
    cancelled: int = 0
    last_30_days: int = 0
    by_status: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total": self.total,
            "clear": self.clear,
            "pending": self.pending,
            "pending_adverse": self.pending_adverse,
            "failed": self.failed,
            "cancelled": self.cancelled,
            "last_30_days": self.last_30_days,
            "by_status": dict(self.by_status),
        }


class ScreeningAdminService:
    """Cancel, rerun and inspect screening records.

    Cancellation of a record with a running workflow only flags it; the
    workflow calls the vendor and settles the record. Records with no
    running workflow are settled here.

    A rerun of a failed or cancelled attempt creates a new record linked by
    ``previous_record_id``. A rerun of a clear record only completes any
    missing account provisioning.
    """

    def __init__(
        self,
        store: ScreeningRecordStore,
        registry: ProviderRegistry,
        orchestrator: WorkflowOrchestrator,
        supervisor: ScreeningTaskSupervisor,
        clock: Clock | None = None,
    ):
        self.store = store
        self.registry = registry
        self.orchestrator = orchestrator
        self.supervisor = supervisor
        self.clock = clock or SystemClock()

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_record(self, record_id: UUID) -> ScreeningRecord:
        return await self.store.get(record_id)

    async def list_records(
        self,
        status: ScreeningStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ScreeningRecord]:
        """List records newest first, optionally filtered by status."""
        statuses = [status] if status is not None else None
        return await self.store.list_by_status(statuses, limit=limit, offset=offset)

    async def get_statistics(self) -> ScreeningStatistics:
        counts = await self.store.count_by_status()
        since = self.clock.now() - STATISTICS_WINDOW

        def count(*statuses: ScreeningStatus) -> int:
            return sum(counts.get(s, 0) for s in statuses)

        return ScreeningStatistics(
            total=sum(counts.values()),
            clear=count(ScreeningStatus.CLEAR),
            pending=count(
                ScreeningStatus.PENDING,
                ScreeningStatus.SUBMITTED,
                ScreeningStatus.IN_PROGRESS,
            ),
            pending_adverse=count(ScreeningStatus.PENDING_ADVERSE),
            failed=count(
                ScreeningStatus.PROCESSING_FAILED,
                ScreeningStatus.ACCOUNT_CREATION_FAILED,
            ),
            cancelled=count(ScreeningStatus.CANCELLED),
            last_30_days=await self.store.count_created_since(since),
            by_status={s.value: n for s, n in counts.items()},
        )

    # =========================================================================
    # Cancel
    # =========================================================================

    async def cancel(self, record_id: UUID) -> ScreeningRecord:
        """Withdraw a screening. Terminal records are returned unchanged."""
        record = await self.store.get(record_id)

        while record.status in CANCELLABLE_STATUSES and not record.cancel_requested:
            if self.supervisor.is_running(record_id):
                patch: dict[str, Any] = {"cancel_requested": True}
            else:
                patch = await self._settle_cancel(record)
            try:
                record = await self.store.update(record_id, patch, expected_version=record.version)
            except StaleRecordError:
                record = await self.store.get(record_id)
                continue
            logger.info(
                "cancel_requested",
                record_id=str(record_id),
                status=record.status.value,
            )

        return record

    async def _settle_cancel(self, record: ScreeningRecord) -> dict[str, Any]:
        patch: dict[str, Any] = {
            "cancel_requested": True,
            "status": ScreeningStatus.CANCELLED,
        }
        if record.external_report_id is None:
            return patch

        provider = self.registry.get(record.provider_name)
        try:
            await provider.cancel(record.external_report_id)
        except ProviderError as e:
            logger.warning("vendor_cancel_failed", record_id=str(record.record_id), error=e.message)
            patch["error"] = RecordedError(
                kind=CANCEL_FAILED_KIND, message=e.message, occurred_at=self.clock.now()
            )
        return patch

    # =========================================================================
    # Rerun
    # =========================================================================

    async def rerun(
        self,
        record_id: UUID,
        request: ScreeningRequest | None = None,
        credential: SecretStr | None = None,
    ) -> ScreeningRecord:
        """Start another attempt for a record.

        Args:
            record_id: Record to rerun.
            request: Candidate data for a fresh vendor report. Not needed
                when the previous attempt's report can still be polled. The
                attempt keeps the consent recorded on the previous record.
            credential: Password for the account, if one is created.

        Returns:
            The record the rerun drives: a new attempt, or the same record
            for provisioning retries and no-ops.

        Raises:
            InvalidTransitionError: If the record is still running or awaits
                an adverse-action decision.
            ValidationError: If a fresh report is needed and ``request`` is
                missing or names another email.
        """
        record = await self.store.get(record_id)

        if record.status in CANCELLABLE_STATUSES:
            raise InvalidTransitionError(record.status.value, "rerun", "screening is still running")
        if record.status == ScreeningStatus.PENDING_ADVERSE:
            raise InvalidTransitionError(
                record.status.value, "rerun", "awaiting an adverse-action decision"
            )

        if record.status in (ScreeningStatus.CLEAR, ScreeningStatus.ACCOUNT_CREATION_FAILED):
            if record.needs_provisioning and not self.supervisor.is_running(record_id):
                logger.info("provisioning_retry", record_id=str(record_id))
                self.supervisor.spawn(record_id, self.orchestrator.provision(record_id, credential))
            return record

        reuse_report = (
            record.status == ScreeningStatus.PROCESSING_FAILED
            and record.external_report_id is not None
            and (record.error is None or record.error.kind != REPORT_FAILED_KIND)
        )
        if request is None and not reuse_report:
            raise ValidationError("A screening request is required to rerun this record")
        if request is not None and request.email != record.email:
            raise ValidationError("Rerun request email does not match the record")
        if request is not None and request.consent != record.consent:
            # The candidate's recorded consent carries over
            request = request.model_copy(update={"consent": record.consent})

        attempt = ScreeningRecord(
            email=record.email,
            provider_name=record.provider_name,
            consent=record.consent,
            check_tier=request.check_tier if request else record.check_tier,
            candidate_summary=request.summarize() if request else record.candidate_summary,
            external_report_id=record.external_report_id if reuse_report else None,
            previous_record_id=record.record_id,
        )
        attempt = await self.store.create(attempt)
        logger.info(
            "rerun_started",
            record_id=str(attempt.record_id),
            previous_record_id=str(record_id),
            reused_report=reuse_report,
        )
        self.supervisor.spawn(
            attempt.record_id,
            self.orchestrator.run(attempt.record_id, request, credential),
        )
        return attempt

    # =========================================================================
    # Startup
    # =========================================================================

    async def resume_incomplete(self, batch_size: int = 100) -> list[UUID]:
        """Restart workflows for records left mid-flight by a restart."""
        candidates: list[ScreeningRecord] = []
        offset = 0
        while True:
            batch = await self.store.list_by_status(
                list(RESUMABLE_STATUSES), limit=batch_size, offset=offset
            )
            candidates.extend(batch)
            if len(batch) < batch_size:
                break
            offset += batch_size

        # Spawn only after paging so running workflows cannot shift the pages
        resumed: list[UUID] = []
        for record in candidates:
            if record.status == ScreeningStatus.CLEAR and not record.needs_provisioning:
                continue
            if self.supervisor.is_running(record.record_id):
                continue
            self.supervisor.spawn(record.record_id, self.orchestrator.resume(record.record_id))
            resumed.append(record.record_id)

        if resumed:
            logger.info("workflows_resumed", count=len(resumed))
        return resumed

"""Tests for the WorkflowOrchestrator.

Tests cover:
- Clear and adverse branches
- Poll budget, transient poll errors and vendor-failed reports
- Cancellation between polls and before submission
- Provisioning failures and retries
- Stale writes and restart resumption
"""

from unittest.mock import AsyncMock

import pytest
from pydantic import SecretStr

from geargrab.accounts.provisioner import InMemoryAccountProvisioner
from geargrab.core.exceptions import (
    NotificationDeliveryError,
    ProviderAPIError,
    ProviderUnavailableError,
)
from geargrab.notifications.notifier import OutboxComplianceNotifier
from geargrab.providers.mock import MockOutcome, MockScreeningProvider
from geargrab.providers.registry import ProviderRegistry
from geargrab.screening.clock import VirtualClock
from geargrab.screening.orchestrator import (
    OrchestratorConfig,
    WorkflowOrchestrator,
    create_workflow_orchestrator,
    persist_failure,
)
from geargrab.screening.store import InMemoryScreeningRecordStore
from geargrab.screening.types import DecisionAction, ScreeningStatus
from helpers import make_record, make_request

# =============================================================================
# Fixtures
# =============================================================================


def build_orchestrator(
    provider: MockScreeningProvider,
    *,
    store: InMemoryScreeningRecordStore | None = None,
    notifier=None,
    provisioner=None,
    clock: VirtualClock | None = None,
    max_poll_attempts: int = 144,
) -> WorkflowOrchestrator:
    return create_workflow_orchestrator(
        store=store or InMemoryScreeningRecordStore(),
        registry=ProviderRegistry([provider], default=provider.provider_id),
        notifier=notifier or OutboxComplianceNotifier(),
        provisioner=provisioner or InMemoryAccountProvisioner(hash_credentials=False),
        clock=clock or VirtualClock(),
        config=OrchestratorConfig(poll_interval_seconds=30, max_poll_attempts=max_poll_attempts),
    )


async def start(orchestrator: WorkflowOrchestrator, request=None):
    request = request or make_request()
    record = await orchestrator.store.create(make_record(request))
    return record, request


# =============================================================================
# Configuration Tests
# =============================================================================


class TestOrchestratorConfig:
    """Tests for OrchestratorConfig."""

    def test_defaults(self):
        config = OrchestratorConfig()
        assert config.poll_interval_seconds == 30
        assert config.max_poll_attempts == 144

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            OrchestratorConfig(max_poll_attempts=0)


# =============================================================================
# Clear Path Tests
# =============================================================================


class TestClearPath:
    """Tests for a report without adverse findings."""

    @pytest.mark.asyncio
    async def test_first_poll_clear_creates_account(self):
        provider = MockScreeningProvider(polls_until_complete=1)
        notifier = AsyncMock()
        provisioner = InMemoryAccountProvisioner(hash_credentials=False)
        orchestrator = build_orchestrator(provider, notifier=notifier, provisioner=provisioner)
        record, request = await start(orchestrator)

        final = await orchestrator.run(record.record_id, request, SecretStr("pw-123456"))

        assert final.status == ScreeningStatus.CLEAR
        assert final.user_id is not None
        assert final.profile_created is True
        assert final.decision.action == DecisionAction.APPROVE
        assert final.poll_attempts == 1
        assert provisioner.account_calls == [request.email]
        assert final.user_id in provisioner.profiles
        notifier.send_pre_adverse_notice.assert_not_called()

    @pytest.mark.asyncio
    async def test_polls_until_complete(self):
        provider = MockScreeningProvider(polls_until_complete=3)
        clock = VirtualClock()
        orchestrator = build_orchestrator(provider, clock=clock)
        record, request = await start(orchestrator)

        final = await orchestrator.run(record.record_id, request)

        assert final.status == ScreeningStatus.CLEAR
        assert len(provider.calls.polled) == 3
        assert clock.sleeps == [30, 30]
        assert final.external_report_id == provider.calls.polled[0]

    @pytest.mark.asyncio
    async def test_artifact_url_falls_back_to_portal(self):
        provider = MockScreeningProvider(polls_until_complete=1)
        orchestrator = build_orchestrator(provider)
        record, request = await start(orchestrator)

        final = await orchestrator.run(record.record_id, request)

        assert final.report_artifact_url == provider.report_artifact_url(
            final.external_report_id
        )


# =============================================================================
# Adverse Path Tests
# =============================================================================


class TestAdversePath:
    """Tests for a report requiring adverse action."""

    @pytest.mark.asyncio
    async def test_adverse_sends_notice_once(self):
        provider = MockScreeningProvider(
            polls_until_complete=1,
            outcome=MockOutcome.ADVERSE,
            artifact_url="https://reports.example/r/1",
        )
        notifier = OutboxComplianceNotifier()
        provisioner = InMemoryAccountProvisioner(hash_credentials=False)
        orchestrator = build_orchestrator(provider, notifier=notifier, provisioner=provisioner)
        record, request = await start(orchestrator)

        final = await orchestrator.run(record.record_id, request)

        assert final.status == ScreeningStatus.PENDING_ADVERSE
        assert final.user_id is None
        assert final.decision.requires_adverse_action is True
        assert final.pre_adverse_notice_sent_at is not None
        assert len(notifier.outbox) == 1
        assert notifier.outbox[0].to == request.email
        assert provisioner.account_calls == []

    @pytest.mark.asyncio
    async def test_notice_failure_is_recorded_not_fatal(self):
        provider = MockScreeningProvider(polls_until_complete=1, outcome=MockOutcome.ADVERSE)
        notifier = OutboxComplianceNotifier(
            fail_with=NotificationDeliveryError("Mailbox unavailable", recipient="x")
        )
        orchestrator = build_orchestrator(provider, notifier=notifier)
        record, request = await start(orchestrator)

        final = await orchestrator.run(record.record_id, request)

        assert final.status == ScreeningStatus.PENDING_ADVERSE
        assert final.pre_adverse_notice_sent_at is None
        assert final.error.kind == "notification_delivery_failed"

    @pytest.mark.asyncio
    async def test_resume_does_not_resend_notice(self):
        provider = MockScreeningProvider(polls_until_complete=1, outcome=MockOutcome.ADVERSE)
        notifier = OutboxComplianceNotifier()
        orchestrator = build_orchestrator(provider, notifier=notifier)
        record, request = await start(orchestrator)

        await orchestrator.run(record.record_id, request)
        await orchestrator.resume(record.record_id)

        assert len(notifier.outbox) == 1


# =============================================================================
# Polling Tests
# =============================================================================


class TestPolling:
    """Tests for the bounded poll loop."""

    @pytest.mark.asyncio
    async def test_exhaustion_after_exact_budget(self):
        provider = MockScreeningProvider(polls_until_complete=None)
        clock = VirtualClock()
        orchestrator = build_orchestrator(provider, clock=clock)
        record, request = await start(orchestrator)

        final = await orchestrator.run(record.record_id, request)

        assert final.status == ScreeningStatus.PROCESSING_FAILED
        assert final.error.kind == "polling_exhausted"
        assert final.poll_attempts == 144
        assert len(provider.calls.polled) == 144
        # No sleep after the last poll
        assert len(clock.sleeps) == 143
        assert clock.elapsed_seconds == 143 * 30

        await orchestrator.resume(record.record_id)
        assert len(provider.calls.polled) == 144

    @pytest.mark.asyncio
    async def test_transient_errors_share_the_budget(self):
        provider = MockScreeningProvider(
            polls_until_complete=None,
            poll_errors=[ProviderUnavailableError("timeout", "mock")] * 2,
        )
        orchestrator = build_orchestrator(provider, max_poll_attempts=5)
        record, request = await start(orchestrator)

        final = await orchestrator.run(record.record_id, request)

        assert final.status == ScreeningStatus.PROCESSING_FAILED
        assert final.poll_attempts == 5
        assert len(provider.calls.polled) == 5

    @pytest.mark.asyncio
    async def test_recovers_after_transient_error(self):
        provider = MockScreeningProvider(
            polls_until_complete=1,
            poll_errors=[ProviderUnavailableError("connection reset", "mock")],
        )
        orchestrator = build_orchestrator(provider)
        record, request = await start(orchestrator)

        final = await orchestrator.run(record.record_id, request)

        assert final.status == ScreeningStatus.CLEAR
        assert final.poll_attempts == 2

    @pytest.mark.asyncio
    async def test_vendor_failed_report(self):
        provider = MockScreeningProvider(polls_until_complete=2, outcome=MockOutcome.FAILED)
        orchestrator = build_orchestrator(provider)
        record, request = await start(orchestrator)

        final = await orchestrator.run(record.record_id, request)

        assert final.status == ScreeningStatus.PROCESSING_FAILED
        assert final.error.kind == "report_failed"
        assert len(provider.calls.polled) == 2


# =============================================================================
# Submission Tests
# =============================================================================


class TestSubmission:
    """Tests for the submit step."""

    @pytest.mark.asyncio
    async def test_initiate_failure_is_not_retried(self):
        provider = MockScreeningProvider(
            initiate_error=ProviderAPIError("bad request", "mock", status_code=422)
        )
        orchestrator = build_orchestrator(provider)
        record, request = await start(orchestrator)

        final = await orchestrator.run(record.record_id, request)

        assert final.status == ScreeningStatus.PROCESSING_FAILED
        assert final.error.kind == "provider_api_error"
        assert len(provider.calls.initiated) == 1
        assert provider.calls.polled == []

    @pytest.mark.asyncio
    async def test_pending_without_request_fails(self):
        provider = MockScreeningProvider()
        orchestrator = build_orchestrator(provider)
        record, _ = await start(orchestrator)

        final = await orchestrator.resume(record.record_id)

        assert final.status == ScreeningStatus.PROCESSING_FAILED
        assert final.error.kind == "request_unavailable"
        assert provider.calls.initiated == []

    @pytest.mark.asyncio
    async def test_existing_report_id_skips_initiate(self):
        provider = MockScreeningProvider(polls_until_complete=1)
        orchestrator = build_orchestrator(provider)
        record = await orchestrator.store.create(make_record(external_report_id="mock_existing"))

        final = await orchestrator.run(record.record_id)

        assert final.status == ScreeningStatus.CLEAR
        assert provider.calls.initiated == []
        assert provider.calls.polled == ["mock_existing"]

    @pytest.mark.asyncio
    async def test_missing_record_returns_none(self):
        orchestrator = build_orchestrator(MockScreeningProvider())
        assert await orchestrator.run(make_record().record_id) is None


# =============================================================================
# Cancellation Tests
# =============================================================================


class TestCancellation:
    """Tests for administrative cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_between_polls(self):
        provider = MockScreeningProvider(polls_until_complete=5)
        store = InMemoryScreeningRecordStore()
        record_ids = []

        async def request_cancel(sleep_count: int) -> None:
            if sleep_count == 2:
                await store.update(record_ids[0], {"cancel_requested": True})

        orchestrator = build_orchestrator(
            provider, store=store, clock=VirtualClock(on_sleep=request_cancel)
        )
        record, request = await start(orchestrator)
        record_ids.append(record.record_id)

        final = await orchestrator.run(record.record_id, request)

        assert final.status == ScreeningStatus.CANCELLED
        assert len(provider.calls.polled) == 2
        assert provider.calls.cancelled == [final.external_report_id]
        assert final.decision is None

        # Cancelled records are never driven again
        await orchestrator.resume(record.record_id)
        assert (await store.get(record.record_id)).status == ScreeningStatus.CANCELLED
        assert len(provider.calls.cancelled) == 1

    @pytest.mark.asyncio
    async def test_cancel_before_submission_skips_vendor(self):
        provider = MockScreeningProvider()
        orchestrator = build_orchestrator(provider)
        record, request = await start(orchestrator)
        await orchestrator.store.update(record.record_id, {"cancel_requested": True})

        final = await orchestrator.run(record.record_id, request)

        assert final.status == ScreeningStatus.CANCELLED
        assert provider.calls.initiated == []
        assert provider.calls.cancelled == []

    @pytest.mark.asyncio
    async def test_vendor_cancel_failure_is_recorded(self):
        provider = MockScreeningProvider(
            polls_until_complete=None,
            cancel_error=ProviderUnavailableError("down", "mock"),
        )
        store = InMemoryScreeningRecordStore()
        holder = {}

        async def request_cancel(sleep_count: int) -> None:
            if sleep_count == 1:
                await store.update(holder["id"], {"cancel_requested": True})

        orchestrator = build_orchestrator(
            provider, store=store, clock=VirtualClock(on_sleep=request_cancel)
        )
        record, request = await start(orchestrator)
        holder["id"] = record.record_id

        final = await orchestrator.run(record.record_id, request)

        assert final.status == ScreeningStatus.CANCELLED
        assert final.error.kind == "cancel_failed"


# =============================================================================
# Provisioning Tests
# =============================================================================


class TestProvisioning:
    """Tests for account and profile creation after a clear decision."""

    @pytest.mark.asyncio
    async def test_account_failure_marks_record(self):
        provider = MockScreeningProvider(polls_until_complete=1)
        provisioner = InMemoryAccountProvisioner(fail_account=True)
        orchestrator = build_orchestrator(provider, provisioner=provisioner)
        record, request = await start(orchestrator)

        final = await orchestrator.run(record.record_id, request)

        assert final.status == ScreeningStatus.ACCOUNT_CREATION_FAILED
        assert final.decision.action == DecisionAction.APPROVE
        assert final.user_id is None
        assert final.error.kind == "account_creation_failed"

    @pytest.mark.asyncio
    async def test_provision_retry_recovers(self):
        provider = MockScreeningProvider(polls_until_complete=1)
        provisioner = InMemoryAccountProvisioner(fail_account=True)
        orchestrator = build_orchestrator(provider, provisioner=provisioner)
        record, request = await start(orchestrator)
        await orchestrator.run(record.record_id, request)

        provisioner.fail_account = False
        final = await orchestrator.provision(record.record_id)

        assert final.status == ScreeningStatus.CLEAR
        assert final.user_id is not None
        assert final.profile_created is True
        assert final.error is None
        assert len(provider.calls.polled) == 1

    @pytest.mark.asyncio
    async def test_profile_failure_keeps_user_id(self):
        provider = MockScreeningProvider(polls_until_complete=1)
        provisioner = InMemoryAccountProvisioner(fail_profile=True)
        orchestrator = build_orchestrator(provider, provisioner=provisioner)
        record, request = await start(orchestrator)

        final = await orchestrator.run(record.record_id, request)

        assert final.status == ScreeningStatus.CLEAR
        assert final.user_id is not None
        assert final.profile_created is False
        assert final.error.kind == "profile_creation_failed"

        provisioner.fail_profile = False
        retried = await orchestrator.provision(record.record_id)

        assert retried.user_id == final.user_id
        assert retried.profile_created is True
        assert len(provisioner.accounts) == 1

    @pytest.mark.asyncio
    async def test_provision_on_complete_record_is_noop(self):
        provider = MockScreeningProvider(polls_until_complete=1)
        provisioner = InMemoryAccountProvisioner(hash_credentials=False)
        orchestrator = build_orchestrator(provider, provisioner=provisioner)
        record, request = await start(orchestrator)
        done = await orchestrator.run(record.record_id, request)

        again = await orchestrator.provision(record.record_id)

        assert again.version == done.version
        assert provisioner.account_calls == [request.email]


# =============================================================================
# Failure Persistence Tests
# =============================================================================


class TestFailurePersistence:
    """Tests for unexpected errors after detachment."""

    @pytest.mark.asyncio
    async def test_unexpected_provider_error_is_recorded(self):
        provider = MockScreeningProvider(initiate_error=RuntimeError("boom"))
        orchestrator = build_orchestrator(provider)
        record, request = await start(orchestrator)

        final = await orchestrator.run(record.record_id, request)

        assert final.status == ScreeningStatus.PROCESSING_FAILED
        assert final.error.kind == "unexpected_error"
        assert final.error.message == "boom"

    @pytest.mark.asyncio
    async def test_persist_failure_on_clear_without_account(self):
        store = InMemoryScreeningRecordStore()
        record = await store.create(make_record())
        for status in (
            ScreeningStatus.SUBMITTED,
            ScreeningStatus.IN_PROGRESS,
            ScreeningStatus.CLEAR,
        ):
            record = await store.update(record.record_id, {"status": status})

        final = await persist_failure(store, record.record_id, RuntimeError("db down"))

        assert final.status == ScreeningStatus.ACCOUNT_CREATION_FAILED
        assert final.error.message == "db down"

    @pytest.mark.asyncio
    async def test_persist_failure_on_terminal_record_keeps_status(self):
        store = InMemoryScreeningRecordStore()
        record = await store.create(make_record())
        record = await store.update(record.record_id, {"status": ScreeningStatus.CANCELLED})

        final = await persist_failure(store, record.record_id, RuntimeError("late"))

        assert final.status == ScreeningStatus.CANCELLED
        assert final.error.kind == "unexpected_error"


# =============================================================================
# Pushed Report Tests
# =============================================================================


async def start_waiting(orchestrator: WorkflowOrchestrator, status=ScreeningStatus.IN_PROGRESS):
    """Create a record already handed to the vendor."""
    record, request = await start(orchestrator)
    record = await orchestrator.store.update(
        record.record_id,
        {"status": ScreeningStatus.SUBMITTED, "external_report_id": "mock_rpt_1"},
    )
    if status == ScreeningStatus.IN_PROGRESS:
        record = await orchestrator.store.update(record.record_id, {"status": status})
    return record, request


def pushed(provider: MockScreeningProvider, **document):
    return provider.report_from_document({"id": "mock_rpt_1", **document})


class TestApplyReport:
    """Tests for reports delivered by the vendor instead of polled."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [ScreeningStatus.SUBMITTED, ScreeningStatus.IN_PROGRESS])
    async def test_clear_report_resolves_without_provisioning(self, status):
        provider = MockScreeningProvider(polls_until_complete=None)
        provisioner = InMemoryAccountProvisioner(hash_credentials=False)
        orchestrator = build_orchestrator(provider, provisioner=provisioner)
        record, _ = await start_waiting(orchestrator, status)

        final = await orchestrator.apply_report(
            record.record_id, pushed(provider, status="complete", result="clear")
        )

        assert final.status == ScreeningStatus.CLEAR
        assert final.decision.action == DecisionAction.APPROVE
        assert final.needs_provisioning is True
        assert provisioner.account_calls == []
        assert provider.calls.polled == []

    @pytest.mark.asyncio
    async def test_adverse_report_sends_notice(self):
        provider = MockScreeningProvider(polls_until_complete=None)
        notifier = OutboxComplianceNotifier()
        orchestrator = build_orchestrator(provider, notifier=notifier)
        record, request = await start_waiting(orchestrator)

        final = await orchestrator.apply_report(
            record.record_id, pushed(provider, status="complete", result="adverse")
        )

        assert final.status == ScreeningStatus.PENDING_ADVERSE
        assert final.pre_adverse_notice_sent_at is not None
        assert [m.to for m in notifier.outbox] == [request.email]

    @pytest.mark.asyncio
    async def test_failed_report_fails_record(self):
        provider = MockScreeningProvider(polls_until_complete=None)
        orchestrator = build_orchestrator(provider)
        record, _ = await start_waiting(orchestrator)

        final = await orchestrator.apply_report(record.record_id, pushed(provider, status="failed"))

        assert final.status == ScreeningStatus.PROCESSING_FAILED
        assert final.error.kind == "report_failed"

    @pytest.mark.asyncio
    async def test_unfinished_report_is_ignored(self):
        provider = MockScreeningProvider(polls_until_complete=None)
        orchestrator = build_orchestrator(provider)
        record, _ = await start_waiting(orchestrator)

        final = await orchestrator.apply_report(
            record.record_id, pushed(provider, status="in_progress")
        )

        assert final.status == ScreeningStatus.IN_PROGRESS
        assert final.version == record.version

    @pytest.mark.asyncio
    async def test_settled_record_is_not_reopened(self):
        provider = MockScreeningProvider(polls_until_complete=1, outcome=MockOutcome.ADVERSE)
        orchestrator = build_orchestrator(provider)
        record, request = await start(orchestrator)
        settled = await orchestrator.run(record.record_id, request)

        final = await orchestrator.apply_report(
            record.record_id, pushed(provider, status="complete", result="clear")
        )

        assert final.status == ScreeningStatus.PENDING_ADVERSE
        assert final.version == settled.version

    @pytest.mark.asyncio
    async def test_cancel_requested_record_is_left_alone(self):
        provider = MockScreeningProvider(polls_until_complete=None)
        orchestrator = build_orchestrator(provider)
        record, _ = await start_waiting(orchestrator)
        record = await orchestrator.store.update(record.record_id, {"cancel_requested": True})

        final = await orchestrator.apply_report(
            record.record_id, pushed(provider, status="complete", result="clear")
        )

        assert final.status == ScreeningStatus.IN_PROGRESS
        assert final.decision is None

    @pytest.mark.asyncio
    async def test_push_between_polls_provisions_with_credential(self):
        provider = MockScreeningProvider(polls_until_complete=None)
        store = InMemoryScreeningRecordStore()
        provisioner = InMemoryAccountProvisioner(hash_credentials=False)
        holder = {}

        async def deliver(sleep_count: int) -> None:
            if sleep_count == 1:
                await orchestrator.apply_report(
                    holder["id"], pushed(provider, status="complete", result="clear")
                )

        orchestrator = build_orchestrator(
            provider,
            store=store,
            provisioner=provisioner,
            clock=VirtualClock(on_sleep=deliver),
        )
        record, request = await start(orchestrator)
        holder["id"] = record.record_id

        final = await orchestrator.run(record.record_id, request, SecretStr("pw-123456"))

        assert final.status == ScreeningStatus.CLEAR
        assert final.user_id is not None
        assert final.profile_created is True
        assert len(provider.calls.polled) == 1
        assert provisioner.accounts[request.email].password_hash == "plain:pw-123456"

    @pytest.mark.asyncio
    async def test_push_racing_a_poll_resolves_once(self):
        provider = MockScreeningProvider(polls_until_complete=1, outcome=MockOutcome.ADVERSE)
        notifier = OutboxComplianceNotifier()
        orchestrator = build_orchestrator(provider, notifier=notifier)
        record, request = await start(orchestrator)
        poll = provider.poll_status

        async def poll_then_push(external_report_id: str):
            report = await poll(external_report_id)
            await orchestrator.apply_report(record.record_id, report)
            return report

        provider.poll_status = poll_then_push

        final = await orchestrator.run(record.record_id, request)

        assert final.status == ScreeningStatus.PENDING_ADVERSE
        assert len(notifier.outbox) == 1

    @pytest.mark.asyncio
    async def test_clear_push_racing_a_poll_provisions_once(self):
        provider = MockScreeningProvider(polls_until_complete=1)
        provisioner = InMemoryAccountProvisioner(hash_credentials=False)
        orchestrator = build_orchestrator(provider, provisioner=provisioner)
        record, request = await start(orchestrator)
        poll = provider.poll_status

        async def poll_then_push(external_report_id: str):
            report = await poll(external_report_id)
            await orchestrator.apply_report(record.record_id, report)
            return report

        provider.poll_status = poll_then_push

        final = await orchestrator.run(record.record_id, request, SecretStr("pw-123456"))

        assert final.status == ScreeningStatus.CLEAR
        assert final.profile_created is True
        assert provisioner.account_calls == [request.email]
        assert provisioner.accounts[request.email].password_hash == "plain:pw-123456"

"""Unit tests for the screening admin service."""

from datetime import UTC, datetime
from uuid import uuid4

import pytest

from geargrab.core.exceptions import (
    InvalidTransitionError,
    ProviderUnavailableError,
    RecordNotFoundError,
    ValidationError,
)
from geargrab.screening.registration import ConsentContext
from geargrab.screening.types import ConsentMetadata, RecordedError, ScreeningStatus
from helpers import make_record, make_request, registration_payload

CONSENT = ConsentContext(ip_address="198.51.100.20")


async def register(services, **overrides):
    receipt = await services.registration.register(registration_payload(**overrides), CONSENT)
    return receipt.record_id


# =============================================================================
# Queries
# =============================================================================


class TestQueries:
    """Tests for record lookup, listing and statistics."""

    @pytest.mark.asyncio
    async def test_get_missing(self, services):
        with pytest.raises(RecordNotFoundError):
            await services.admin.get_record(uuid4())

    @pytest.mark.asyncio
    async def test_list_filters_by_status(self, services, store):
        await store.create(make_record(make_request(email="a@example.com")))
        await store.create(
            make_record(make_request(email="b@example.com"), status=ScreeningStatus.CANCELLED)
        )

        cancelled = await services.admin.list_records(status=ScreeningStatus.CANCELLED)
        everything = await services.admin.list_records()

        assert [r.email for r in cancelled] == ["b@example.com"]
        assert len(everything) == 2

    @pytest.mark.asyncio
    async def test_statistics(self, services, store):
        statuses = [
            ScreeningStatus.PENDING,
            ScreeningStatus.IN_PROGRESS,
            ScreeningStatus.CLEAR,
            ScreeningStatus.PENDING_ADVERSE,
            ScreeningStatus.PROCESSING_FAILED,
            ScreeningStatus.ACCOUNT_CREATION_FAILED,
            ScreeningStatus.CANCELLED,
        ]
        for i, status in enumerate(statuses):
            await store.create(
                make_record(make_request(email=f"user{i}@example.com"), status=status)
            )

        stats = await services.admin.get_statistics()

        assert stats.total == 7
        assert stats.pending == 2
        assert stats.clear == 1
        assert stats.pending_adverse == 1
        assert stats.failed == 2
        assert stats.cancelled == 1
        assert stats.last_30_days == 7
        assert stats.by_status["submitted"] == 0


# =============================================================================
# Cancel
# =============================================================================


class TestCancel:
    """Tests for administrative cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_between_polls(self, services, clock, mock_provider):
        """Test a cancel landing mid-poll stops the workflow before clear."""
        mock_provider.polls_until_complete = 5
        record_ids = []

        async def cancel_on_second_sleep(sleep_count: int) -> None:
            if sleep_count == 2:
                flagged = await services.admin.cancel(record_ids[0])
                assert flagged.cancel_requested
                assert flagged.status == ScreeningStatus.IN_PROGRESS

        clock.on_sleep = cancel_on_second_sleep
        record_ids.append(await register(services))
        await services.supervisor.join()

        record = await services.store.get(record_ids[0])
        assert record.status == ScreeningStatus.CANCELLED
        assert record.user_id is None
        assert len(mock_provider.calls.polled) == 2
        assert mock_provider.calls.cancelled == [record.external_report_id]

    @pytest.mark.asyncio
    async def test_cancel_without_running_workflow(self, services, store, mock_provider):
        record = await store.create(
            make_record(status=ScreeningStatus.IN_PROGRESS, external_report_id="mock_orphan")
        )

        cancelled = await services.admin.cancel(record.record_id)

        assert cancelled.status == ScreeningStatus.CANCELLED
        assert cancelled.cancel_requested is True
        assert mock_provider.calls.cancelled == ["mock_orphan"]

    @pytest.mark.asyncio
    async def test_cancel_records_vendor_failure(self, services, store, mock_provider):
        mock_provider.cancel_error = ProviderUnavailableError("down", "mock")
        record = await store.create(
            make_record(status=ScreeningStatus.SUBMITTED, external_report_id="mock_x")
        )

        cancelled = await services.admin.cancel(record.record_id)

        assert cancelled.status == ScreeningStatus.CANCELLED
        assert cancelled.error.kind == "cancel_failed"

    @pytest.mark.asyncio
    async def test_cancel_terminal_is_noop(self, services, store, mock_provider):
        record = await store.create(make_record(status=ScreeningStatus.PENDING_ADVERSE))

        result = await services.admin.cancel(record.record_id)

        assert result.status == ScreeningStatus.PENDING_ADVERSE
        assert result.version == record.version
        assert mock_provider.calls.cancelled == []

    @pytest.mark.asyncio
    async def test_cancel_twice(self, services, store, mock_provider):
        record = await store.create(
            make_record(status=ScreeningStatus.IN_PROGRESS, external_report_id="mock_y")
        )
        await services.admin.cancel(record.record_id)
        await services.admin.cancel(record.record_id)

        assert mock_provider.calls.cancelled == ["mock_y"]


# =============================================================================
# Rerun
# =============================================================================


class TestRerun:
    """Tests for rerunning a screening."""

    @pytest.mark.asyncio
    async def test_rerun_clear_does_not_duplicate_account(self, services, provisioner):
        record_id = await register(services)
        await services.supervisor.join()
        before = await services.store.get(record_id)

        result = await services.admin.rerun(record_id)
        await services.supervisor.join()

        assert result.record_id == record_id
        after = await services.store.get(record_id)
        assert after.version == before.version
        assert after.user_id == before.user_id
        assert len(provisioner.account_calls) == 1

    @pytest.mark.asyncio
    async def test_rerun_retries_provisioning(self, services, provisioner, mock_provider):
        provisioner.fail_account = True
        record_id = await register(services)
        await services.supervisor.join()
        assert (await services.store.get(record_id)).status == (
            ScreeningStatus.ACCOUNT_CREATION_FAILED
        )

        provisioner.fail_account = False
        await services.admin.rerun(record_id)
        await services.supervisor.join()

        record = await services.store.get(record_id)
        assert record.status == ScreeningStatus.CLEAR
        assert record.user_id is not None
        assert record.profile_created is True
        # The vendor is not contacted again
        assert len(mock_provider.calls.initiated) == 1

    @pytest.mark.asyncio
    async def test_rerun_running_rejected(self, services):
        record_id = await register(services)
        with pytest.raises(InvalidTransitionError, match="still running"):
            await services.admin.rerun(record_id)
        await services.supervisor.join()

    @pytest.mark.asyncio
    async def test_rerun_pending_adverse_rejected(self, services, store):
        record = await store.create(make_record(status=ScreeningStatus.PENDING_ADVERSE))
        with pytest.raises(InvalidTransitionError, match="adverse-action"):
            await services.admin.rerun(record.record_id)

    @pytest.mark.asyncio
    async def test_rerun_reuses_pollable_report(self, services, store, mock_provider):
        failed = await store.create(
            make_record(
                status=ScreeningStatus.PROCESSING_FAILED,
                external_report_id="mock_slow",
                error=RecordedError(kind="polling_exhausted", message="gave up"),
            )
        )

        attempt = await services.admin.rerun(failed.record_id)
        await services.supervisor.join()

        assert attempt.record_id != failed.record_id
        assert attempt.previous_record_id == failed.record_id
        assert attempt.external_report_id == "mock_slow"
        final = await store.get(attempt.record_id)
        assert final.status == ScreeningStatus.CLEAR
        assert mock_provider.calls.initiated == []
        assert set(mock_provider.calls.polled) == {"mock_slow"}

    @pytest.mark.asyncio
    async def test_rerun_failed_report_needs_request(self, services, store):
        failed = await store.create(
            make_record(
                status=ScreeningStatus.PROCESSING_FAILED,
                external_report_id="mock_dead",
                error=RecordedError(kind="report_failed", message="vendor failed"),
            )
        )
        with pytest.raises(ValidationError):
            await services.admin.rerun(failed.record_id)

    @pytest.mark.asyncio
    async def test_rerun_cancelled_with_request(self, services, store, mock_provider):
        cancelled = await store.create(make_record(status=ScreeningStatus.CANCELLED))

        attempt = await services.admin.rerun(cancelled.record_id, make_request())
        await services.supervisor.join()

        assert attempt.external_report_id is None
        final = await store.get(attempt.record_id)
        assert final.status == ScreeningStatus.CLEAR
        assert len(mock_provider.calls.initiated) == 1

    @pytest.mark.asyncio
    async def test_rerun_keeps_recorded_consent(self, services, store, mock_provider):
        cancelled = await store.create(make_record(status=ScreeningStatus.CANCELLED))
        operator_request = make_request().model_copy(
            update={
                "consent": ConsentMetadata(
                    consented_at=datetime(2024, 6, 1, tzinfo=UTC),
                    ip_address="10.0.0.5",
                    user_agent="AdminConsole/1.0",
                )
            }
        )

        attempt = await services.admin.rerun(cancelled.record_id, operator_request)
        await services.supervisor.join()

        assert attempt.consent == cancelled.consent
        assert mock_provider.calls.initiated[0].consent == cancelled.consent

    @pytest.mark.asyncio
    async def test_rerun_request_email_must_match(self, services, store):
        cancelled = await store.create(make_record(status=ScreeningStatus.CANCELLED))
        with pytest.raises(ValidationError, match="does not match"):
            await services.admin.rerun(
                cancelled.record_id, make_request(email="someone.else@example.com")
            )


# =============================================================================
# Resume
# =============================================================================


class TestResumeIncomplete:
    """Tests for restarting interrupted workflows."""

    @pytest.mark.asyncio
    async def test_resumes_each_incomplete_record(self, services, store, provisioner):
        pending = await store.create(make_record(make_request(email="p@example.com")))
        polling = await store.create(
            make_record(
                make_request(email="q@example.com"),
                status=ScreeningStatus.IN_PROGRESS,
                external_report_id="mock_q",
            )
        )
        unprovisioned = await store.create(
            make_record(make_request(email="r@example.com"), status=ScreeningStatus.CLEAR)
        )
        done = await store.create(
            make_record(
                make_request(email="s@example.com"),
                status=ScreeningStatus.CLEAR,
                user_id=uuid4(),
                profile_created=True,
            )
        )
        await store.create(
            make_record(make_request(email="t@example.com"), status=ScreeningStatus.CANCELLED)
        )

        resumed = await services.admin.resume_incomplete(batch_size=2)
        await services.supervisor.join()

        assert set(resumed) == {pending.record_id, polling.record_id, unprovisioned.record_id}
        assert (await store.get(pending.record_id)).error.kind == "request_unavailable"
        assert (await store.get(polling.record_id)).status == ScreeningStatus.CLEAR
        assert (await store.get(unprovisioned.record_id)).user_id is not None
        assert (await store.get(done.record_id)).version == done.version
        assert set(provisioner.account_calls) == {"q@example.com", "r@example.com"}

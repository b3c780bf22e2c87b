"""Unit tests for the deterministic mock provider."""

import pytest

from geargrab.config.settings import CheckTier
from geargrab.core.exceptions import ProviderUnavailableError
from geargrab.providers.mock import MockOutcome, MockScreeningProvider
from geargrab.providers.types import ProviderReportStatus
from geargrab.screening.decision import resolve_decision
from geargrab.screening.types import DecisionAction


class TestMockScreeningProvider:
    """Tests for MockScreeningProvider."""

    @pytest.mark.asyncio
    async def test_completes_on_configured_poll(self, screening_request):
        provider = MockScreeningProvider(polls_until_complete=3)
        report_id = await provider.initiate(screening_request)

        statuses = [(await provider.poll_status(report_id)).status for _ in range(3)]

        assert statuses == [
            ProviderReportStatus.IN_PROGRESS,
            ProviderReportStatus.IN_PROGRESS,
            ProviderReportStatus.COMPLETE,
        ]
        assert provider.calls.initiated == [screening_request]
        assert provider.calls.polled == [report_id] * 3

    @pytest.mark.asyncio
    async def test_never_completes(self, screening_request):
        provider = MockScreeningProvider(polls_until_complete=None)
        report_id = await provider.initiate(screening_request)
        for _ in range(10):
            assert not (await provider.poll_status(report_id)).is_complete

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "outcome,action",
        [
            (MockOutcome.CLEAR, DecisionAction.APPROVE),
            (MockOutcome.ADVERSE, DecisionAction.ADVERSE),
        ],
    )
    async def test_outcome_drives_decision(self, screening_request, outcome, action):
        provider = MockScreeningProvider(outcome=outcome)
        report = await provider.poll_status(await provider.initiate(screening_request))
        assert resolve_decision(report).action == action

    @pytest.mark.asyncio
    async def test_failed_outcome(self, screening_request):
        provider = MockScreeningProvider(outcome=MockOutcome.FAILED)
        report = await provider.poll_status(await provider.initiate(screening_request))
        assert report.status == ProviderReportStatus.FAILED

    @pytest.mark.asyncio
    async def test_scripted_poll_errors(self, screening_request):
        provider = MockScreeningProvider(
            poll_errors=[ProviderUnavailableError("timeout", "mock")]
        )
        report_id = await provider.initiate(screening_request)

        with pytest.raises(ProviderUnavailableError):
            await provider.poll_status(report_id)
        assert (await provider.poll_status(report_id)).is_complete

    @pytest.mark.asyncio
    async def test_cancel_is_recorded(self):
        provider = MockScreeningProvider()
        await provider.cancel("mock_1")
        assert provider.calls.cancelled == ["mock_1"]

    def test_estimate(self):
        assert "mock" in MockScreeningProvider().estimate_completion(CheckTier.COMPREHENSIVE)

"""Unit tests for the adverse-action decision rules."""

from datetime import UTC, datetime

from geargrab.providers.types import PollResult, ProviderReportStatus, ReportAdjudication
from geargrab.screening.decision import resolve_decision
from geargrab.screening.types import DecisionAction, RiskLevel

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


def complete(**adjudication) -> PollResult:
    return PollResult(
        status=ProviderReportStatus.COMPLETE,
        adjudication=ReportAdjudication(**adjudication),
    )


class TestResolveDecision:
    """Tests for resolve_decision."""

    def test_incomplete_report_is_pending(self):
        decision = resolve_decision(
            PollResult(status=ProviderReportStatus.IN_PROGRESS), now=NOW
        )
        assert decision.action == DecisionAction.PENDING
        assert decision.requires_adverse_action is False

    def test_clear_report_is_approved(self):
        decision = resolve_decision(complete(clear=True), now=NOW)
        assert decision.action == DecisionAction.APPROVE
        assert decision.risk_level == RiskLevel.LOW
        assert decision.requires_adverse_action is False
        assert decision.decided_at == NOW

    def test_explicit_not_clear_is_high_risk(self):
        decision = resolve_decision(complete(clear=False), now=NOW)
        assert decision.action == DecisionAction.ADVERSE
        assert decision.risk_level == RiskLevel.HIGH
        assert decision.requires_adverse_action is True

    def test_summary_not_clear_is_high_risk(self):
        """Test a summary flag alone is enough for adverse action."""
        decision = resolve_decision(complete(clear=True, summary_clear=False), now=NOW)
        assert decision.action == DecisionAction.ADVERSE
        assert decision.risk_level == RiskLevel.HIGH
        assert "Summary indicates adverse findings" in decision.reasons

    def test_flagged_sections_are_medium_risk(self):
        decision = resolve_decision(
            complete(flagged_sections=("motor_vehicle", "criminal_history")), now=NOW
        )
        assert decision.action == DecisionAction.ADVERSE
        assert decision.risk_level == RiskLevel.MEDIUM
        assert decision.reasons == ("Records found in: criminal_history, motor_vehicle",)

    def test_explicit_flag_wins_over_sections(self):
        decision = resolve_decision(
            complete(clear=False, flagged_sections=("criminal_history",)), now=NOW
        )
        assert decision.risk_level == RiskLevel.HIGH
        assert decision.reasons == ("Background check flagged for review",)

    def test_missing_adjudication_is_approved(self):
        decision = resolve_decision(PollResult(status=ProviderReportStatus.COMPLETE), now=NOW)
        assert decision.action == DecisionAction.APPROVE

    def test_deterministic(self):
        report = complete(clear=False, summary_clear=False)
        assert resolve_decision(report, now=NOW) == resolve_decision(report, now=NOW)

"""Adverse-action decision rules for completed vendor reports."""

from datetime import UTC, datetime

from geargrab.providers.types import PollResult

from .types import DecisionAction, RiskLevel, ScreeningDecision


def resolve_decision(report: PollResult, now: datetime | None = None) -> ScreeningDecision:
    """Interpret a vendor report against the adverse-action rules.

    Pure and deterministic for a given report and ``now``:

    - an incomplete report yields ``pending``;
    - an explicit ``clear = False`` or a summary ``clear = False`` is
      adverse with high risk;
    - flagged sections without an explicit flag are adverse with medium risk;
    - otherwise the candidate is approved.
    """
    decided_at = now or datetime.now(UTC)

    if not report.is_complete:
        return ScreeningDecision(
            action=DecisionAction.PENDING,
            risk_level=RiskLevel.LOW,
            requires_adverse_action=False,
            reasons=(f"Report still pending: {report.status.value}",),
            decided_at=decided_at,
        )

    adjudication = report.adjudication
    reasons: list[str] = []
    risk = RiskLevel.LOW

    if adjudication is not None:
        if adjudication.clear is False:
            reasons.append("Background check flagged for review")
            risk = RiskLevel.HIGH
        if adjudication.summary_clear is False:
            reasons.append("Summary indicates adverse findings")
            risk = RiskLevel.HIGH
        if adjudication.flagged_sections and not reasons:
            reasons.append(
                "Records found in: " + ", ".join(sorted(adjudication.flagged_sections))
            )
            risk = RiskLevel.MEDIUM

    if reasons:
        return ScreeningDecision(
            action=DecisionAction.ADVERSE,
            risk_level=risk,
            requires_adverse_action=True,
            reasons=tuple(reasons),
            decided_at=decided_at,
        )

    return ScreeningDecision(
        action=DecisionAction.APPROVE,
        risk_level=RiskLevel.LOW,
        requires_adverse_action=False,
        reasons=("Background check passed - clear flag is true",),
        decided_at=decided_at,
    )

from __future__ import annotations

from datetime import datetime, timezone

from helpdesk.core.agent.schemas import AgentResult
from helpdesk.core.guardrails.policy import GuardrailContext, evaluate, meets_confidence_threshold, should_auto_apply


def test_threshold_is_inclusive() -> None:
    below = AgentResult(action="replied", confidence=0.79, summary="s")
    at = AgentResult(action="replied", confidence=0.80, summary="s")

    assert meets_confidence_threshold(below, 0.8) is False
    assert meets_confidence_threshold(at, 0.8) is True
    assert should_auto_apply(below, 0.8) is False
    assert should_auto_apply(at, 0.8) is True


def test_needs_human_is_never_auto_applied() -> None:
    result = AgentResult(action="needs_human", confidence=1.0, summary="unsure")

    assert should_auto_apply(result, 0.5) is False


def test_evaluate_reports_reason() -> None:
    monday_noon = datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)
    saturday_noon = datetime(2025, 1, 11, 12, 0, tzinfo=timezone.utc)

    assert evaluate(GuardrailContext(), monday_noon).reason == "allowed"
    assert evaluate(GuardrailContext(), saturday_noon).reason == "outside_business_hours"

    limited = GuardrailContext(rate_limit=5, recent_autonomous_action_count=5)
    decision = evaluate(limited, monday_noon)
    assert decision.autonomous is False
    assert decision.reason == "rate_limited"

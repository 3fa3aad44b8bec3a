from __future__ import annotations

from datetime import datetime, timedelta, timezone

from helpdesk.core.config.settings import TenantSettings
from helpdesk.core.guardrails.dispatch import AgentTaskDispatcher, plan_for_inbound_message
from helpdesk.core.guardrails.rate_limit import TaskGate

MONDAY_NOON = datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)
SATURDAY_EARLY = datetime(2025, 1, 11, 3, 0, tzinfo=timezone.utc)

WIDGET_SETTINGS = {"agentEnabled": True, "agentWidgetAgent": True, "agentWidgetResolve": True, "agentRateLimit": 5}


def _gate(now: datetime, actions: int) -> TaskGate:
    gate = TaskGate(clock=lambda: now)
    for minutes in range(actions):
        gate.counter.record("tk1", now - timedelta(minutes=minutes))
    return gate


def _plan(now: datetime, gate: TaskGate):
    settings = TenantSettings.model_validate(WIDGET_SETTINGS)
    return plan_for_inbound_message(settings, "t1", "tk1", "CHAT_WIDGET", "hello?", gate=gate, now=now)


def test_widget_outside_hours_degrades_to_suggestion() -> None:
    task = _plan(SATURDAY_EARLY, _gate(SATURDAY_EARLY, 0))

    assert task.action == "copilot-suggest"
    assert task.reason == "outside_business_hours"


def test_widget_over_rate_limit_degrades_to_suggestion() -> None:
    task = _plan(MONDAY_NOON, _gate(MONDAY_NOON, 10))

    assert task.action == "copilot-suggest"
    assert task.reason == "rate_limited"


def test_widget_within_guardrails_attempts_resolution() -> None:
    task = _plan(MONDAY_NOON, _gate(MONDAY_NOON, 4))

    assert task.action == "resolve-attempt"
    assert task.reason == "chat_widget"


def test_dispatcher_counts_persisted_autonomous_replies(store) -> None:
    store.add_tenant("t1", WIDGET_SETTINGS)
    store.add_ticket("t1", "Widget chat", ticket_id="tk-chat", channel="CHAT_WIDGET")
    for _ in range(5):
        store.create_message(
            "t1",
            "tk-chat",
            {"direction": "OUTBOUND", "content_text": "hi", "message_type": "TEXT", "metadata": {"aiGenerated": True}},
        )
    queued = []
    dispatcher = AgentTaskDispatcher(store, queued.append)

    dispatcher.handle_message_created(
        {"tenantId": "t1", "ticketId": "tk-chat", "message": {"direction": "INBOUND", "content_text": "still there?"}},
        now=MONDAY_NOON,
    )

    assert [(task.action, task.reason) for task in queued] == [("copilot-suggest", "rate_limited")]

from __future__ import annotations

import pytest

from helpdesk.core.agent.processor import ACTIVITY_LOG_LIMIT, AgentTaskProcessor
from helpdesk.core.agent.service import AgentService
from helpdesk.core.config.settings import AgentConfig
from helpdesk.core.guardrails.dispatch import AgentTask
from helpdesk.core.guardrails.rate_limit import TaskGate


def _config(tmp_path) -> AgentConfig:
    return AgentConfig(max_iterations=5, max_result_chars=8000, max_tool_failures=3, state_dir=tmp_path)


def _processor(store, bus, model, tmp_path, gate: TaskGate | None = None) -> AgentTaskProcessor:
    service = AgentService(store, bus, llm=model, config=_config(tmp_path))
    return AgentTaskProcessor(service, store, bus, gate=gate)


def _task(action: str, **kwargs) -> AgentTask:
    return AgentTask(action=action, tenant_id="t1", ticket_id="tk1", **kwargs)


def _messages(store, message_type: str) -> list[dict]:
    return [m for m in store.list_messages("t1", "tk1") if m["message_type"] == message_type]


def test_triage_stores_metadata_and_activity(store, bus, scripted_model, turns, tmp_path) -> None:
    model = scripted_model(
        [
            turns["final"](
                {
                    "action": "triaged",
                    "confidence": 0.7,
                    "summary": "login issue",
                    "sentiment": "frustrated",
                    "suggestedTags": ["login"],
                }
            )
        ]
    )

    result = _processor(store, bus, model, tmp_path).process(_task("triage"))

    metadata = store.get_ticket("t1", "tk1")["metadata"]
    assert result.action == "triaged"
    assert metadata["aiTriage"]["sentiment"] == "frustrated"
    assert metadata["aiTriage"]["suggestedTags"] == ["login"]
    assert metadata["aiActivityLog"][-1]["action"] == "triage"
    assert metadata["aiActivityLog"][-1]["triggeredBy"] == "auto-triage"


@pytest.mark.parametrize(("confidence", "stored"), [(0.9, 1), (0.5, 0)])
def test_copilot_suggestion_respects_threshold(
    store, bus, recorded_events, scripted_model, turns, tmp_path, confidence: float, stored: int
) -> None:
    model = scripted_model(
        [turns["final"]({"action": "replied", "confidence": confidence, "summary": "s", "draftReply": "Try a reset."})]
    )

    _processor(store, bus, model, tmp_path).process(_task("copilot-suggest"))

    suggestions = _messages(store, "AI_SUGGESTION")
    assert len(suggestions) == stored
    if stored:
        assert suggestions[0]["metadata"]["suggestion"] is True
        assert suggestions[0]["content_text"] == "Try a reset."
        assert [name for name, _ in recorded_events] == ["message.created"]


def test_suggestion_mode_never_sends_replies(store, bus, scripted_model, turns, tmp_path) -> None:
    model = scripted_model(
        [
            turns["tool"](("send_reply", {"ticketId": "tk1", "content": "sent behind your back"})),
            turns["final"]({"action": "replied", "confidence": 0.9, "summary": "s", "draftReply": "Draft only."}),
        ]
    )

    result = _processor(store, bus, model, tmp_path).process(_task("copilot-suggest"))

    assert "send_reply" not in model.calls[0]["tools"]
    assert result.tool_calls[0].is_error
    assert [m["content_text"] for m in _messages(store, "AI_SUGGESTION")] == ["Draft only."]


def test_needs_human_routes_ticket_to_agents(store, bus, recorded_events, scripted_model, turns, tmp_path) -> None:
    store.update_ticket("t1", "tk1", {"status": "PENDING"})
    model = scripted_model([turns["final"]({"action": "needs_human", "confidence": 0.2, "summary": "unclear"})])

    _processor(store, bus, model, tmp_path).process(_task("triage"))

    ticket = store.get_ticket("t1", "tk1")
    assert ticket["status"] == "OPEN"
    assert ticket["metadata"]["aiActivityLog"][-1]["action"] == "routed-to-human"
    assert "ticket.updated" in [name for name, _ in recorded_events]


def test_activity_log_keeps_most_recent_entries(store, bus, scripted_model, turns, tmp_path) -> None:
    old = [{"action": "triage", "timestamp": str(index)} for index in range(ACTIVITY_LOG_LIMIT)]
    store.update_ticket("t1", "tk1", {"metadata": {"aiActivityLog": old}})
    model = scripted_model([turns["final"]({"action": "triaged", "confidence": 0.7, "summary": "ok"})])

    _processor(store, bus, model, tmp_path).process(_task("triage"))

    log = store.get_ticket("t1", "tk1")["metadata"]["aiActivityLog"]
    assert len(log) == ACTIVITY_LOG_LIMIT
    assert log[0]["timestamp"] == "1"
    assert log[-1]["result"]["summary"] == "ok"


def test_confident_autonomous_reply_is_delivered_and_counted(store, bus, scripted_model, turns, tmp_path) -> None:
    store.add_tenant("t1", {"agentEnabled": True, "agentMode": "autonomous"})
    gate = TaskGate()
    model = scripted_model(
        [
            turns["tool"](("get_ticket", {"ticketId": "tk1"})),
            turns["final"]({"action": "replied", "confidence": 0.95, "summary": "answered", "draftReply": "Reset link sent."}),
        ]
    )

    _processor(store, bus, model, tmp_path, gate=gate).process(
        _task("auto-reply", customer_message="cannot log in", confidence_threshold=0.8)
    )

    sent = _messages(store, "TEXT")
    assert gate.recent_count("tk1") == 1
    assert [m["content_text"] for m in sent] == ["Reset link sent."]
    assert sent[0]["metadata"]["autonomous"] is True
    assert _messages(store, "AI_SUGGESTION") == []


def test_low_confidence_autonomous_draft_is_kept_as_suggestion(store, bus, scripted_model, turns, tmp_path) -> None:
    store.add_tenant("t1", {"agentEnabled": True, "agentMode": "autonomous"})
    gate = TaskGate()
    model = scripted_model(
        [turns["final"]({"action": "replied", "confidence": 0.4, "summary": "unsure", "draftReply": "Maybe this?"})]
    )

    _processor(store, bus, model, tmp_path, gate=gate).process(_task("auto-reply", customer_message="hi"))

    assert gate.recent_count("tk1") == 0
    suggestions = _messages(store, "AI_SUGGESTION")
    assert [m["metadata"].get("suggestion") for m in suggestions] == [True]


def test_disabled_tenant_is_skipped(store, bus, scripted_model, tmp_path) -> None:
    store.add_tenant("t1", {"agentEnabled": False})
    model = scripted_model([])

    assert _processor(store, bus, model, tmp_path).process(_task("triage")) is None
    assert _processor(store, bus, model, tmp_path).process(AgentTask("triage", "missing", "tk1")) is None
    assert model.calls == []


def test_store_failures_are_reraised(store, bus, scripted_model, turns, tmp_path, monkeypatch) -> None:
    model = scripted_model([turns["final"]({"action": "triaged", "confidence": 0.7, "summary": "ok"})])

    def broken_update(*args, **kwargs):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(store, "update_ticket", broken_update)

    with pytest.raises(RuntimeError, match="database unavailable"):
        _processor(store, bus, model, tmp_path).process(_task("triage"))

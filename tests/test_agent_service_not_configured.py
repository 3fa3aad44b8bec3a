from __future__ import annotations

from helpdesk.core.agent.service import NOT_CONFIGURED_SUMMARY, AgentService
from helpdesk.core.config.settings import AgentConfig


def _service(store, bus, model, tmp_path) -> AgentService:
    config = AgentConfig(max_iterations=2, max_result_chars=8000, max_tool_failures=3, state_dir=tmp_path)
    return AgentService(store, bus, llm=model, config=config)


def test_unconfigured_model_needs_human(store, bus, scripted_model, tmp_path) -> None:
    model = scripted_model([], configured=False)

    result = _service(store, bus, model, tmp_path).summarize_ticket("tk1", "t1")

    assert result.action == "needs_human"
    assert result.summary == NOT_CONFIGURED_SUMMARY
    assert model.calls == []


def test_draft_reply_offers_tools_by_mode(store, bus, scripted_model, turns, tmp_path) -> None:
    final = {"action": "replied", "confidence": 0.9, "summary": "s", "draftReply": "hi"}
    model = scripted_model([turns["final"](final), turns["final"](final)])
    service = _service(store, bus, model, tmp_path)

    service.generate_draft_reply("tk1", "t1")
    service.generate_draft_reply("tk1", "t1", suggestion_only=True)

    assert "send_reply" in model.calls[0]["tools"]
    assert "send_reply" not in model.calls[1]["tools"]
    assert "escalate" not in model.calls[1]["tools"]
    assert "get_ticket" in model.calls[1]["tools"]


def test_widget_prompt_carries_threshold_and_message(store, bus, scripted_model, turns, tmp_path) -> None:
    model = scripted_model([turns["final"]({"action": "replied", "confidence": 0.9, "summary": "s"})])

    _service(store, bus, model, tmp_path).handle_widget_message("tk1", "t1", "where is my invoice?", confidence_threshold=0.7)

    system, user = model.calls[0]["transcript"][:2]
    assert "0.7" in system.content
    assert "where is my invoice?" in user.content
    assert "tk1" in user.content

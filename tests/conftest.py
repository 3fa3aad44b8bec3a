from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import pytest

from helpdesk.core.agent.schemas import AssistantTurn, ToolCall
from helpdesk.core.events.emitter import EventBus
from helpdesk.core.integrations.memory_store import InMemoryTicketStore
from helpdesk.core.tools.executor import ToolExecutor


@pytest.fixture(autouse=True)
def isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("HELPDESK_STATE_DIR", str(tmp_path))
    monkeypatch.setenv("HELPDESK_LOG_TO_FILE", "off")
    monkeypatch.setenv("HELPDESK_LLM_URL", "http://llm.local/v1")
    monkeypatch.delenv("HELPDESK_LLM_API_KEY", raising=False)
    monkeypatch.delenv("HELPDESK_AGENT_MAX_ITERATIONS", raising=False)
    monkeypatch.delenv("HELPDESK_AGENT_MAX_TOOL_FAILURES", raising=False)


@dataclass
class _FakeLLMConfig:
    base_url: str = "http://llm.local/v1"


class ScriptedModel:
    """Plays back a fixed list of turns. An exception in the script is raised."""

    def __init__(self, turns: list[Any], configured: bool = True) -> None:
        self.turns = list(turns)
        self.calls: list[dict[str, Any]] = []
        self.configured = configured
        self.config = _FakeLLMConfig()

    def complete(self, transcript, tools, model=None, trace=None):
        self.calls.append({"transcript": list(transcript), "tools": [tool.name for tool in tools], "model": model})
        if not self.turns:
            raise AssertionError("model called more times than scripted")
        turn = self.turns.pop(0)
        if isinstance(turn, Exception):
            raise turn
        return turn

    def check_connectivity(self) -> dict[str, Any]:
        return {"ok": True, "models": ["scripted"]}


def tool_turn(*calls: tuple[str, dict[str, Any] | str]) -> AssistantTurn:
    tool_calls = []
    for index, (name, args) in enumerate(calls):
        raw = args if isinstance(args, str) else json.dumps(args)
        tool_calls.append(ToolCall(id=f"call_{name}_{index}", tool_name=name, raw_arguments=raw))
    return AssistantTurn(content=None, tool_calls=tool_calls)


def final_turn(payload: dict[str, Any] | str) -> AssistantTurn:
    return AssistantTurn(content=payload if isinstance(payload, str) else json.dumps(payload))


@pytest.fixture
def scripted_model():
    return ScriptedModel


@pytest.fixture
def turns():
    return {"tool": tool_turn, "final": final_turn}


@pytest.fixture
def store() -> InMemoryTicketStore:
    store = InMemoryTicketStore()
    store.add_tenant("t1", {"agentEnabled": True})
    store.add_tenant("t2", {"agentEnabled": True})
    contact = store.add_contact("t1", "Ada Lovelace", "ada@example.com", contact_id="c1")
    store.add_ticket("t1", "Cannot log in", ticket_id="tk1", contact_id=contact["id"])
    store.add_ticket("t2", "Foreign ticket", ticket_id="tk-foreign")
    return store


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recorded_events(bus: EventBus) -> list[tuple[str, dict[str, Any]]]:
    events: list[tuple[str, dict[str, Any]]] = []
    for name in ("ticket.updated", "ticket.created", "message.created"):
        bus.subscribe(name, lambda payload, name=name: events.append((name, payload)))
    return events


@pytest.fixture
def executor(store: InMemoryTicketStore, bus: EventBus) -> ToolExecutor:
    return ToolExecutor(store, bus)

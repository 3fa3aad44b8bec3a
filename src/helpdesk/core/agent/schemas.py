from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

AgentAction = Literal["replied", "triaged", "escalated", "resolved", "needs_human"]
AGENT_ACTIONS: frozenset[str] = frozenset({"replied", "triaged", "escalated", "resolved", "needs_human"})

MessageRole = Literal["system", "user", "assistant", "tool"]


class ToolCall(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    tool_name: str
    raw_arguments: str = ""

    def parse_arguments(self) -> dict[str, Any]:
        """Untrusted model text; anything but a JSON object becomes an empty map."""
        try:
            parsed = json.loads(self.raw_arguments) if self.raw_arguments else {}
        except (json.JSONDecodeError, TypeError):
            return {}
        return parsed if isinstance(parsed, dict) else {}

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.tool_name, "arguments": self.raw_arguments},
        }


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)
    tool_call_id: str | None = None

    def to_wire(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            payload["tool_calls"] = [call.to_wire() for call in self.tool_calls]
        if self.tool_call_id is not None:
            payload["tool_call_id"] = self.tool_call_id
        return payload


class ToolDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameter_schema: dict[str, Any]

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameter_schema,
            },
        }


class ToolExecutionRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)
    result: str

    @property
    def is_error(self) -> bool:
        try:
            payload = json.loads(self.result)
        except json.JSONDecodeError:
            return False
        return isinstance(payload, dict) and "error" in payload


class AgentResult(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    action: AgentAction = "needs_human"
    confidence: float = 0.0
    summary: str = ""
    tool_calls: list[ToolExecutionRecord] = Field(default_factory=list, alias="toolCalls")
    draft_reply: str | None = Field(default=None, alias="draftReply")
    sentiment: str | None = None
    suggested_tags: list[str] | None = Field(default=None, alias="suggestedTags")

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, value: Any) -> float:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0.0
        if number != number:
            return 0.0
        return min(1.0, max(0.0, number))

    @classmethod
    def needs_human(cls, summary: str, tool_calls: list[ToolExecutionRecord] | None = None) -> "AgentResult":
        return cls(action="needs_human", confidence=0.0, summary=summary, tool_calls=list(tool_calls or []))


@dataclass(frozen=True)
class ExecutionContext:
    tenant_id: str
    ticket_id: str | None = None
    model: str | None = None
    correlation_id: str = field(default_factory=lambda: str(uuid4()))


@dataclass(frozen=True)
class AssistantTurn:
    """One model reply: plain content, tool call requests, or both."""

    content: str | None
    tool_calls: list[ToolCall] = field(default_factory=list)

    def to_message(self) -> ChatMessage:
        return ChatMessage(role="assistant", content=self.content, tool_calls=list(self.tool_calls))

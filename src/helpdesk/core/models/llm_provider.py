from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from helpdesk.core.agent.schemas import AssistantTurn, ChatMessage, ToolCall, ToolDefinition
from helpdesk.core.http import HelpdeskHTTPError
from helpdesk.core.infra.breaker_manager import BreakerManager, ServiceDegradedError
from helpdesk.core.observability.trace import Trace

from .llm_openai_compat import OpenAICompatClient

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"


class ModelUnavailable(RuntimeError):
    pass


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass
class LLMConfig:
    base_url: str
    api_key: str | None
    model: str
    timeout_s: float
    temperature: float

    @classmethod
    def from_env(cls) -> "LLMConfig":
        return cls(
            base_url=os.getenv("HELPDESK_LLM_URL", "http://localhost:11434/v1").strip(),
            api_key=os.getenv("HELPDESK_LLM_API_KEY") or None,
            model=os.getenv("HELPDESK_LLM_MODEL", DEFAULT_MODEL),
            timeout_s=_env_float("HELPDESK_LLM_TIMEOUT_S", 45.0),
            temperature=_env_float("HELPDESK_LLM_TEMPERATURE", 0.3),
        )

    @property
    def configured(self) -> bool:
        return bool(self.base_url)


class AgentLLM:
    """Tool-calling chat client guarded by the ``llm`` circuit breaker.

    ``complete`` raises ``ModelUnavailable`` when no response arrives at all
    and returns ``None`` when a response arrives without an assistant message.
    """

    def __init__(self, config: LLMConfig | None = None, breaker_manager: BreakerManager | None = None) -> None:
        self.config = config or LLMConfig.from_env()
        self._compat = OpenAICompatClient(
            base_url=self.config.base_url,
            api_key=self.config.api_key,
            timeout_s=self.config.timeout_s,
        )
        self.breaker_manager = breaker_manager or BreakerManager()
        self.logger = logging.getLogger("helpdesk.llm")

    @property
    def configured(self) -> bool:
        return self.config.configured

    def complete(
        self,
        transcript: list[ChatMessage],
        tools: list[ToolDefinition],
        model: str | None = None,
        trace: Trace | None = None,
    ) -> AssistantTurn | None:
        if not self.config.configured:
            raise ModelUnavailable("model endpoint is not configured")

        used_model = model or self.config.model
        start = time.perf_counter()
        try:
            data = self.breaker_manager.wrap(
                "llm",
                lambda: self._compat.chat_with_tools(
                    messages=[message.to_wire() for message in transcript],
                    tools=[tool.to_wire() for tool in tools],
                    model=used_model,
                    temperature=self.config.temperature,
                ),
            )
        except ServiceDegradedError as exc:
            if trace is not None:
                trace.emit("LLMDegraded", {"service": "llm", "reason": str(exc)})
            self._log_call(used_model, start, ok=False, messages=len(transcript))
            raise ModelUnavailable(str(exc)) from exc
        except (HelpdeskHTTPError, ValueError) as exc:
            self._log_call(used_model, start, ok=False, messages=len(transcript))
            raise ModelUnavailable(f"model request failed: {exc}") from exc

        self._log_call(used_model, start, ok=True, messages=len(transcript))
        return self._to_turn(data)

    def check_connectivity(self) -> dict[str, Any]:
        if not self.config.configured:
            return {"ok": False, "error": "model endpoint is not configured"}
        try:
            models = self.breaker_manager.wrap("llm", self._compat.list_models)
        except (ServiceDegradedError, HelpdeskHTTPError, ValueError) as exc:
            return {"ok": False, "error": str(exc)}
        return {"ok": True, "models": models}

    def _to_turn(self, data: dict[str, Any]) -> AssistantTurn | None:
        choices = data.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            return None
        message = choices[0].get("message")
        if not isinstance(message, dict):
            return None

        calls: list[ToolCall] = []
        for raw in message.get("tool_calls") or []:
            if not isinstance(raw, dict):
                continue
            function = raw.get("function") or {}
            name = function.get("name")
            if not name:
                continue
            arguments = function.get("arguments")
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments) if arguments is not None else ""
            calls.append(ToolCall(id=str(raw.get("id") or f"call_{uuid4().hex[:12]}"), tool_name=str(name), raw_arguments=arguments))

        content = message.get("content")
        return AssistantTurn(content=content if isinstance(content, str) else None, tool_calls=calls)

    def _log_call(self, model: str, start: float, ok: bool, messages: int) -> None:
        self.logger.info(
            "llm_call",
            extra={
                "extra_fields": {
                    "model": model,
                    "duration_ms": int((time.perf_counter() - start) * 1000),
                    "ok": ok,
                    "messages": messages,
                }
            },
        )

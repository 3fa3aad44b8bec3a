from __future__ import annotations

import json
import logging
import re
from typing import Any

from .schemas import AGENT_ACTIONS, AgentResult, ToolExecutionRecord

logger = logging.getLogger("helpdesk.agent.parser")

_FENCE_RE = re.compile(r"```[a-zA-Z]*\n?")


class ResponseParser:
    """Turns the model's final answer into an AgentResult. Never raises."""

    def parse(self, raw_content: str | None, trail: list[ToolExecutionRecord] | None = None) -> AgentResult:
        content = raw_content if isinstance(raw_content, str) else ""
        tool_calls = list(trail or [])
        try:
            payload = self._decode(content)
            if payload is not None:
                return self._to_result(payload, content, tool_calls)
        except Exception:
            # RecursionError on pathological nesting is not a JSONDecodeError
            logger.exception("agent_response_parse_crashed")

        logger.info("agent_response_unparseable", extra={"extra_fields": {"content_len": len(content)}})
        return AgentResult.needs_human(content or "Unable to parse agent response", tool_calls)

    def _decode(self, content: str) -> dict[str, Any] | None:
        cleaned = _FENCE_RE.sub("", content).strip()
        if not cleaned:
            return None
        try:
            parsed = json.loads(cleaned)
        except json.JSONDecodeError:
            start = cleaned.find("{")
            end = cleaned.rfind("}")
            if start == -1 or end <= start:
                return None
            try:
                parsed = json.loads(cleaned[start : end + 1])
            except json.JSONDecodeError:
                return None
        return parsed if isinstance(parsed, dict) else None

    def _to_result(self, payload: dict[str, Any], content: str, tool_calls: list[ToolExecutionRecord]) -> AgentResult:
        action = payload.get("action")
        if not isinstance(action, str) or action not in AGENT_ACTIONS:
            action = "needs_human"

        summary = payload.get("summary")
        if not isinstance(summary, str) or not summary:
            summary = content

        draft_reply = payload.get("draftReply", payload.get("draft_reply"))
        sentiment = payload.get("sentiment")
        tags = payload.get("suggestedTags", payload.get("suggested_tags"))
        if isinstance(tags, list):
            tags = [str(tag) for tag in tags if isinstance(tag, (str, int, float)) and str(tag).strip()]
        else:
            tags = None

        return AgentResult(
            action=action,
            confidence=self._confidence(payload.get("confidence")),
            summary=summary,
            tool_calls=tool_calls,
            draft_reply=draft_reply if isinstance(draft_reply, str) else None,
            sentiment=sentiment if isinstance(sentiment, str) else None,
            suggested_tags=tags,
        )

    @staticmethod
    def _confidence(value: Any) -> float:
        if isinstance(value, bool):
            return 0.0
        if isinstance(value, str):
            try:
                value = float(value)
            except ValueError:
                return 0.0
        if not isinstance(value, (int, float)):
            return 0.0
        return float(value)

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from helpdesk.core.guardrails.policy import DEFAULT_CONFIDENCE_THRESHOLD, BusinessHours, GuardrailContext

logger = logging.getLogger("helpdesk.config")

AgentMode = Literal["copilot", "autonomous"]


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class TenantSettings(BaseModel):
    """Per-tenant agent switches, read from the tenant's settings document."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    enabled: bool = Field(default=False, alias="agentEnabled")
    mode: AgentMode = Field(default="copilot", alias="agentMode")
    model: str | None = Field(default=None, alias="agentModel")
    confidence_threshold: float = Field(default=DEFAULT_CONFIDENCE_THRESHOLD, alias="agentConfidenceThreshold")
    rate_limit: int = Field(default=5, alias="agentRateLimit")
    auto_triage: bool = Field(default=False, alias="agentAutoTriage")
    auto_suggest: bool = Field(default=True, alias="agentAutoSuggest")
    widget_agent: bool = Field(default=False, alias="agentWidgetAgent")
    widget_resolve: bool = Field(default=False, alias="agentWidgetResolve")
    business_hours: BusinessHours | None = Field(default=None, alias="businessHours")

    @field_validator("mode", mode="before")
    @classmethod
    def normalize_mode(cls, value: Any) -> Any:
        if value is None:
            return "copilot"
        return value.strip().casefold() if isinstance(value, str) else value

    @field_validator("confidence_threshold", mode="before")
    @classmethod
    def default_threshold(cls, value: Any) -> Any:
        return value if value else DEFAULT_CONFIDENCE_THRESHOLD

    @field_validator("rate_limit", mode="before")
    @classmethod
    def default_rate_limit(cls, value: Any) -> Any:
        return value if value else 5

    @field_validator("confidence_threshold")
    @classmethod
    def check_threshold(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError("confidence threshold must be within [0, 1]")
        return value

    @classmethod
    def from_raw(cls, raw: dict[str, Any] | None) -> "TenantSettings":
        if not raw:
            return cls()
        try:
            return cls.model_validate(raw)
        except ValidationError as exc:
            logger.warning(
                "tenant_settings_invalid",
                extra={"extra_fields": {"errors": [error["msg"] for error in exc.errors()]}},
            )
            return cls()

    def guardrail_context(self, recent_autonomous_action_count: int = 0) -> GuardrailContext:
        return GuardrailContext(
            business_hours=self.business_hours or BusinessHours(),
            confidence_threshold=self.confidence_threshold,
            rate_limit=self.rate_limit,
            recent_autonomous_action_count=recent_autonomous_action_count,
        )


@dataclass
class AgentConfig:
    max_iterations: int
    max_result_chars: int
    max_tool_failures: int
    state_dir: Path

    @classmethod
    def from_env(cls) -> "AgentConfig":
        return cls(
            max_iterations=max(1, _env_int("HELPDESK_AGENT_MAX_ITERATIONS", 10)),
            max_result_chars=max(256, _env_int("HELPDESK_AGENT_MAX_RESULT_CHARS", 8000)),
            max_tool_failures=max(1, _env_int("HELPDESK_AGENT_MAX_TOOL_FAILURES", 3)),
            state_dir=Path(os.getenv("HELPDESK_STATE_DIR", str(Path.home() / ".helpdesk"))).expanduser(),
        )

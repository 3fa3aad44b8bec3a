from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, time, timezone
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

from helpdesk.core.agent.schemas import AgentResult

logger = logging.getLogger("helpdesk.guardrails")

DEFAULT_CONFIDENCE_THRESHOLD = 0.8

_DAY_NAMES = {
    "mon": 1,
    "tue": 2,
    "wed": 3,
    "thu": 4,
    "fri": 5,
    "sat": 6,
    "sun": 7,
}


def _parse_clock(value: str) -> time:
    hours, _, minutes = value.strip().partition(":")
    return time(int(hours), int(minutes or 0))


class BusinessHours(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timezone: str = "UTC"
    work_days: list[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5], alias="workDays")
    start_time: str = Field(default="09:00", alias="startTime")
    end_time: str = Field(default="17:00", alias="endTime")

    @field_validator("work_days", mode="before")
    @classmethod
    def normalize_days(cls, value: Any) -> Any:
        if not isinstance(value, (list, tuple)):
            return value
        days: list[Any] = []
        for day in value:
            if isinstance(day, str) and not day.strip().isdigit():
                days.append(_DAY_NAMES.get(day.strip().casefold()[:3], day))
            else:
                days.append(day)
        return days

    @field_validator("work_days")
    @classmethod
    def check_days(cls, value: list[int]) -> list[int]:
        for day in value:
            if not 1 <= day <= 7:
                raise ValueError(f"work day out of range: {day}")
        return value

    @field_validator("start_time", "end_time")
    @classmethod
    def check_clock(cls, value: str) -> str:
        _parse_clock(value)
        return value

    def zone(self) -> ZoneInfo:
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("unknown_business_timezone", extra={"extra_fields": {"timezone": self.timezone}})
            return ZoneInfo("UTC")


class GuardrailContext(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    business_hours: BusinessHours = Field(default_factory=BusinessHours, alias="businessHours")
    confidence_threshold: float = Field(default=DEFAULT_CONFIDENCE_THRESHOLD, alias="confidenceThreshold")
    rate_limit: int = Field(default=5, alias="rateLimit")
    recent_autonomous_action_count: int = Field(default=0, alias="recentAutonomousActionCount")


@dataclass
class GuardrailDecision:
    autonomous: bool
    reason: str


def is_within_business_hours(hours: BusinessHours | None = None, now: datetime | None = None) -> bool:
    hours = hours or BusinessHours()
    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    local = current.astimezone(hours.zone())

    if local.isoweekday() not in hours.work_days:
        return False
    return _parse_clock(hours.start_time) <= local.time() < _parse_clock(hours.end_time)


def meets_confidence_threshold(result: AgentResult, threshold: float = DEFAULT_CONFIDENCE_THRESHOLD) -> bool:
    return result.confidence >= threshold


def should_auto_apply(result: AgentResult, threshold: float = DEFAULT_CONFIDENCE_THRESHOLD) -> bool:
    if result.action == "needs_human":
        return False
    return meets_confidence_threshold(result, threshold)


def evaluate(context: GuardrailContext, now: datetime | None = None) -> GuardrailDecision:
    if not is_within_business_hours(context.business_hours, now):
        return GuardrailDecision(autonomous=False, reason="outside_business_hours")
    if context.recent_autonomous_action_count >= context.rate_limit:
        return GuardrailDecision(autonomous=False, reason="rate_limited")
    return GuardrailDecision(autonomous=True, reason="allowed")

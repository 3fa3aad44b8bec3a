from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone


_BREAKER_STATES = {"closed", "open", "half_open"}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CircuitBreaker:
    """Closed -> open after ``failure_threshold`` failures, half-open after ``open_seconds``."""

    service: str
    failure_threshold: int = 3
    open_seconds: int = 60
    half_open_max_trials: int = 1
    state: str = "closed"
    failure_count: int = 0
    opened_at: datetime | None = None
    last_error: str | None = None
    half_open_trials_used: int = 0

    def __post_init__(self) -> None:
        if self.state not in _BREAKER_STATES:
            self.state = "closed"

    def allow_request(self, now: datetime | None = None) -> bool:
        current = now or _utc_now()
        if self.state == "open":
            cooldown = timedelta(seconds=max(1, self.open_seconds))
            if self.opened_at is None or current < self.opened_at + cooldown:
                return False
            self.state = "half_open"
            self.half_open_trials_used = 0
        if self.state == "half_open":
            if self.half_open_trials_used >= max(1, self.half_open_max_trials):
                return False
            self.half_open_trials_used += 1
        return True

    def record_success(self) -> tuple[str, str] | None:
        previous = self.state
        self.state = "closed"
        self.failure_count = 0
        self.opened_at = None
        self.last_error = None
        self.half_open_trials_used = 0
        return (previous, self.state) if previous != self.state else None

    def record_failure(self, error_str: str, now: datetime | None = None) -> tuple[str, str] | None:
        current = now or _utc_now()
        previous = self.state
        self.last_error = error_str
        self.failure_count += 1

        if self.state == "half_open" or self.failure_count >= max(1, self.failure_threshold):
            self.state = "open"
            self.opened_at = current
            self.half_open_trials_used = 0

        return (previous, self.state) if previous != self.state else None

    def to_dict(self) -> dict[str, object]:
        return {
            "state": self.state,
            "failure_count": self.failure_count,
            "opened_at_iso": self.opened_at.isoformat() if self.opened_at else None,
            "last_error": self.last_error,
        }

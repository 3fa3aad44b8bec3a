from __future__ import annotations

import logging
import os
import threading
from typing import Callable, TypeVar

from .breaker import CircuitBreaker

T = TypeVar("T")

logger = logging.getLogger("helpdesk.infra.breaker")


class ServiceDegradedError(RuntimeError):
    def __init__(self, service: str, last_error: str | None = None) -> None:
        self.service = service
        self.last_error = last_error
        suffix = f": {last_error}" if last_error else ""
        super().__init__(f"service_degraded:{service}{suffix}")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class BreakerManager:
    """Process-wide breakers keyed by service name, shared by concurrent agent runs."""

    def __init__(self) -> None:
        self.enabled = os.getenv("HELPDESK_BREAKERS_ENABLED", "on").casefold() != "off"
        self.failure_threshold = max(1, _env_int("HELPDESK_BREAKER_FAILURE_THRESHOLD", 3))
        self.open_seconds = max(1, _env_int("HELPDESK_BREAKER_OPEN_SECONDS", 60))
        self.half_open_max_trials = max(1, _env_int("HELPDESK_BREAKER_HALFOPEN_MAX_TRIALS", 1))
        self._breakers: dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def get(self, service: str) -> CircuitBreaker:
        with self._lock:
            if service not in self._breakers:
                self._breakers[service] = CircuitBreaker(
                    service=service,
                    failure_threshold=self.failure_threshold,
                    open_seconds=self.open_seconds,
                    half_open_max_trials=self.half_open_max_trials,
                )
            return self._breakers[service]

    def snapshot(self) -> dict[str, dict[str, object]]:
        with self._lock:
            return {name: breaker.to_dict() for name, breaker in self._breakers.items()}

    def wrap(self, service: str, fn: Callable[[], T]) -> T:
        if not self.enabled:
            return fn()

        breaker = self.get(service)
        with self._lock:
            allowed = breaker.allow_request()
        if not allowed:
            raise ServiceDegradedError(service, breaker.last_error)

        try:
            result = fn()
        except Exception as exc:
            with self._lock:
                transition = breaker.record_failure(str(exc))
            if transition is not None:
                self._log_transition(service, transition, str(exc))
            raise

        with self._lock:
            transition = breaker.record_success()
        if transition is not None:
            self._log_transition(service, transition, "request succeeded")
        return result

    def _log_transition(self, service: str, transition: tuple[str, str], reason: str) -> None:
        logger.warning(
            "breaker_transition",
            extra={
                "extra_fields": {
                    "service": service,
                    "from_state": transition[0],
                    "to_state": transition[1],
                    "reason": reason,
                }
            },
        )

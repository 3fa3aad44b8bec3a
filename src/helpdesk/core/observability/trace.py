from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class TraceEvent:
    name: str
    elapsed_ms: int
    payload: dict[str, Any]


@dataclass
class Trace:
    """Ordered record of one agent run, stamped with ms since the run began.

    Callers pass one in to inspect what the loop did; the ticket and
    correlation ids ride along on every event payload.
    """

    task: str
    ticket_id: str | None = None
    correlation_id: str | None = None
    events: list[TraceEvent] = field(default_factory=list)
    _started: float = field(default_factory=time.monotonic, repr=False)

    def emit(self, name: str, payload: dict[str, Any]) -> None:
        stamped = {"ticket_id": self.ticket_id, "correlation_id": self.correlation_id, **payload}
        elapsed_ms = int((time.monotonic() - self._started) * 1000)
        self.events.append(TraceEvent(name, elapsed_ms, {k: v for k, v in stamped.items() if v is not None}))

    def names(self) -> list[str]:
        return [event.name for event in self.events]

    def find(self, name: str) -> list[TraceEvent]:
        return [event for event in self.events if event.name == name]

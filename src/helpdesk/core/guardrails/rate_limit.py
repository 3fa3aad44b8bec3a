from __future__ import annotations

import threading
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from helpdesk.core.integrations.base import TicketStore

DEFAULT_WINDOW = timedelta(hours=1)
DEFAULT_LIMIT = 5

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ActionCounter(Protocol):
    def count_since(self, key: str, since: datetime) -> int: ...

    def record(self, key: str, at: datetime) -> None: ...


class SlidingWindowCounter:
    """Thread-safe in-memory timestamps per key.

    Entries older than ``retention`` are pruned on every touch so idle keys
    cannot grow without bound.
    """

    def __init__(self, retention: timedelta = DEFAULT_WINDOW, clock: Clock = _utcnow) -> None:
        self.retention = retention
        self.clock = clock
        self._events: dict[str, deque[datetime]] = {}
        self._lock = threading.Lock()

    def count_since(self, key: str, since: datetime) -> int:
        with self._lock:
            events = self._prune(key)
            return sum(1 for at in events if at >= since)

    def record(self, key: str, at: datetime) -> None:
        with self._lock:
            self._events.setdefault(key, deque()).append(at)
            self._prune(key)

    def _prune(self, key: str) -> deque[datetime]:
        events = self._events.get(key)
        if events is None:
            return deque()
        cutoff = self.clock() - self.retention
        while events and events[0] < cutoff:
            events.popleft()
        if not events:
            self._events.pop(key, None)
        return events


class MessageStoreCounter:
    """Counts AI-generated outbound messages already persisted for a ticket.

    Copilot suggestions still waiting for an agent are not counted.

    Sent replies are themselves the record, so ``record`` is a no-op.
    """

    def __init__(self, store: TicketStore, tenant_id: str) -> None:
        self.store = store
        self.tenant_id = tenant_id

    def count_since(self, key: str, since: datetime) -> int:
        return self.store.count_ai_messages_since(self.tenant_id, key, since)

    def record(self, key: str, at: datetime) -> None:
        return None


class TaskGate:
    def __init__(self, counter: ActionCounter | None = None, clock: Clock = _utcnow) -> None:
        self.clock = clock
        self.counter = counter or SlidingWindowCounter(clock=clock)

    def recent_count(self, ticket_id: str, window: timedelta = DEFAULT_WINDOW) -> int:
        return self.counter.count_since(ticket_id, self.clock() - window)

    def allow(self, ticket_id: str, window: timedelta = DEFAULT_WINDOW, limit: int = DEFAULT_LIMIT) -> bool:
        return self.recent_count(ticket_id, window) < limit

    def record(self, ticket_id: str) -> None:
        self.counter.record(ticket_id, self.clock())

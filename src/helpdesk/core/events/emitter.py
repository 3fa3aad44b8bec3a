from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger("helpdesk.events")

TICKET_UPDATED = "ticket.updated"
TICKET_CREATED = "ticket.created"
MESSAGE_CREATED = "message.created"

Handler = Callable[[dict[str, Any]], None]


class EventBus:
    """In-process domain event fan-out.

    Subscribers run synchronously in emit order. A failing subscriber is
    logged and skipped so a broken consumer cannot undo the mutation that
    produced the event.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event: str, handler: Handler) -> None:
        with self._lock:
            self._handlers[event].append(handler)

    def emit(self, event: str, payload: dict[str, Any]) -> None:
        with self._lock:
            handlers = list(self._handlers.get(event, []))
        logger.debug("event_emitted", extra={"extra_fields": {"event": event, "subscribers": len(handlers)}})
        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                logger.exception("event_handler_failed", extra={"extra_fields": {"event": event}})

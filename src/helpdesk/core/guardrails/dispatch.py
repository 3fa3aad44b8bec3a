from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Literal

from helpdesk.core.config.settings import TenantSettings
from helpdesk.core.events.emitter import MESSAGE_CREATED, TICKET_CREATED, EventBus
from helpdesk.core.integrations.base import TicketStore

from .policy import evaluate
from .rate_limit import DEFAULT_WINDOW, MessageStoreCounter, TaskGate

logger = logging.getLogger("helpdesk.guardrails.dispatch")

TaskAction = Literal["triage", "auto-reply", "resolve-attempt", "copilot-suggest"]
CHAT_WIDGET = "CHAT_WIDGET"


@dataclass(frozen=True)
class AgentTask:
    action: TaskAction
    tenant_id: str
    ticket_id: str
    customer_message: str | None = None
    confidence_threshold: float | None = None
    model: str | None = None
    reason: str = ""


def plan_for_ticket_created(settings: TenantSettings, tenant_id: str, ticket_id: str) -> AgentTask | None:
    if not settings.enabled or not settings.auto_triage:
        return None
    return AgentTask(action="triage", tenant_id=tenant_id, ticket_id=ticket_id, reason="auto_triage")


def plan_for_inbound_message(
    settings: TenantSettings,
    tenant_id: str,
    ticket_id: str,
    channel: str | None,
    customer_message: str | None,
    gate: TaskGate,
    now: datetime | None = None,
    window: timedelta = DEFAULT_WINDOW,
) -> AgentTask | None:
    """Pick the agent task for a new customer message, or ``None``.

    Every autonomous path, the chat widget included, is downgraded to a
    copilot suggestion outside business hours and once the ticket has used
    its hourly autonomous budget.
    """
    if not settings.enabled:
        return None

    widget = channel == CHAT_WIDGET and settings.widget_agent
    if widget or settings.mode == "autonomous":
        context = settings.guardrail_context(gate.recent_count(ticket_id, window))
        decision = evaluate(context, now)
        if not decision.autonomous:
            return AgentTask(
                action="copilot-suggest",
                tenant_id=tenant_id,
                ticket_id=ticket_id,
                customer_message=customer_message,
                reason=decision.reason,
            )
        if widget:
            return AgentTask(
                action="resolve-attempt" if settings.widget_resolve else "auto-reply",
                tenant_id=tenant_id,
                ticket_id=ticket_id,
                customer_message=customer_message,
                confidence_threshold=settings.confidence_threshold,
                reason="chat_widget",
            )
        return AgentTask(
            action="auto-reply",
            tenant_id=tenant_id,
            ticket_id=ticket_id,
            customer_message=customer_message,
            confidence_threshold=settings.confidence_threshold,
            reason=decision.reason,
        )

    if settings.auto_suggest:
        return AgentTask(
            action="copilot-suggest",
            tenant_id=tenant_id,
            ticket_id=ticket_id,
            customer_message=customer_message,
            reason="copilot",
        )
    return None


class AgentTaskDispatcher:
    """Turns domain events into queued agent tasks.

    ``enqueue`` is the hand-off to the job queue, which owns retries.
    """

    def __init__(
        self,
        store: TicketStore,
        enqueue: Callable[[AgentTask], Any],
        gate: TaskGate | None = None,
    ) -> None:
        self.store = store
        self.enqueue = enqueue
        self.gate = gate

    def subscribe(self, bus: EventBus) -> None:
        bus.subscribe(TICKET_CREATED, self.handle_ticket_created)
        bus.subscribe(MESSAGE_CREATED, self.handle_message_created)

    def gate_for(self, tenant_id: str) -> TaskGate:
        return self.gate or TaskGate(MessageStoreCounter(self.store, tenant_id))

    def handle_ticket_created(self, payload: dict[str, Any]) -> AgentTask | None:
        tenant_id = payload["tenantId"]
        ticket = payload.get("ticket") or {}
        settings = TenantSettings.from_raw(self.store.get_tenant_settings(tenant_id))
        task = plan_for_ticket_created(settings, tenant_id, ticket["id"])
        return self._submit(task)

    def handle_message_created(self, payload: dict[str, Any], now: datetime | None = None) -> AgentTask | None:
        message = payload.get("message") or {}
        if message.get("direction") != "INBOUND":
            return None

        tenant_id = payload["tenantId"]
        ticket_id = payload["ticketId"]
        settings = TenantSettings.from_raw(self.store.get_tenant_settings(tenant_id))
        if not settings.enabled:
            return None
        ticket = self.store.get_ticket(tenant_id, ticket_id, message_limit=0)
        if ticket is None:
            return None

        task = plan_for_inbound_message(
            settings,
            tenant_id,
            ticket_id,
            ticket.get("channel"),
            message.get("content_text"),
            gate=self.gate_for(tenant_id),
            now=now,
        )
        return self._submit(task)

    def _submit(self, task: AgentTask | None) -> AgentTask | None:
        if task is None:
            return None
        self.enqueue(task)
        logger.info(
            "agent_task_queued",
            extra={
                "extra_fields": {
                    "action": task.action,
                    "tenant_id": task.tenant_id,
                    "ticket_id": task.ticket_id,
                    "reason": task.reason,
                }
            },
        )
        return task

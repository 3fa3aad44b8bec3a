from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from helpdesk.core.config.settings import TenantSettings
from helpdesk.core.events.emitter import MESSAGE_CREATED, TICKET_UPDATED
from helpdesk.core.guardrails.dispatch import AgentTask
from helpdesk.core.guardrails.policy import meets_confidence_threshold, should_auto_apply
from helpdesk.core.guardrails.rate_limit import TaskGate
from helpdesk.core.integrations.base import EventEmitter, TicketStore
from helpdesk.core.logging import log_context

from .schemas import AgentResult
from .service import AgentService

logger = logging.getLogger("helpdesk.agent.processor")

ACTIVITY_LOG_LIMIT = 50


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _result_summary(result: AgentResult) -> dict[str, Any]:
    return {"action": result.action, "confidence": result.confidence, "summary": result.summary}


class AgentTaskProcessor:
    """Runs one queued agent task and applies its result to the ticket.

    Failures are logged and re-raised; the job queue decides whether to retry.
    """

    def __init__(
        self,
        service: AgentService,
        store: TicketStore,
        events: EventEmitter,
        gate: TaskGate | None = None,
    ) -> None:
        self.service = service
        self.store = store
        self.events = events
        self.gate = gate

    def process(self, task: AgentTask) -> AgentResult | None:
        with log_context(tenant_id=task.tenant_id, ticket_id=task.ticket_id, job_id=task.action):
            raw_settings = self.store.get_tenant_settings(task.tenant_id)
            if raw_settings is None:
                logger.warning("agent_task_tenant_missing", extra={"extra_fields": {"action": task.action}})
                return None
            settings = TenantSettings.from_raw(raw_settings)
            if not settings.enabled:
                logger.debug("agent_task_skipped_disabled", extra={"extra_fields": {"action": task.action}})
                return None

            try:
                result = self._dispatch(task, settings)
                if result is not None and result.action == "needs_human":
                    self._route_to_human(task, result)
            except Exception:
                logger.exception("agent_task_failed", extra={"extra_fields": {"action": task.action}})
                raise

            if result is not None:
                logger.info(
                    "agent_task_completed",
                    extra={
                        "extra_fields": {
                            "action": task.action,
                            "result_action": result.action,
                            "confidence": result.confidence,
                            "tool_calls": len(result.tool_calls),
                        }
                    },
                )
            return result

    def _dispatch(self, task: AgentTask, settings: TenantSettings) -> AgentResult | None:
        model = task.model or settings.model
        threshold = task.confidence_threshold or settings.confidence_threshold

        if task.action == "triage":
            return self._triage(task, model)
        if task.action == "auto-reply":
            if settings.mode == "autonomous":
                return self._autonomous_reply(task, model, threshold)
            return self._draft_reply(task, model)
        if task.action == "resolve-attempt":
            return self._resolve(task, model, threshold)
        if task.action == "copilot-suggest":
            return self._copilot_suggest(task, model, threshold)

        logger.warning("agent_task_unknown_action", extra={"extra_fields": {"action": task.action}})
        return None

    def _triage(self, task: AgentTask, model: str | None) -> AgentResult:
        result = self.service.triage_ticket(task.ticket_id, task.tenant_id, model=model)
        triage = {**_result_summary(result), "toolCalls": len(result.tool_calls), "processedAt": _now_iso()}
        if result.sentiment:
            triage["sentiment"] = result.sentiment
        if result.suggested_tags:
            triage["suggestedTags"] = list(result.suggested_tags)
        self.store.update_ticket(task.tenant_id, task.ticket_id, {"metadata": {"aiTriage": triage}})
        self.append_activity(task.tenant_id, task.ticket_id, "triage", result, triggered_by="auto-triage")
        return result

    def _resolve(self, task: AgentTask, model: str | None, threshold: float) -> AgentResult:
        result = self.service.attempt_resolve(task.ticket_id, task.tenant_id, model=model, suggestion_only=True)
        delivered = self._apply_autonomous(task, result, threshold)
        if delivered and result.action == "resolved":
            self._mark_resolved(task)
        attempt = {**_result_summary(result), "delivered": delivered, "processedAt": _now_iso()}
        self.store.update_ticket(task.tenant_id, task.ticket_id, {"metadata": {"aiResolveAttempt": attempt}})
        self.append_activity(task.tenant_id, task.ticket_id, "resolve", result, triggered_by="auto-reply")
        return result

    def _autonomous_reply(self, task: AgentTask, model: str | None, threshold: float) -> AgentResult:
        result = self.service.handle_widget_message(
            task.ticket_id,
            task.tenant_id,
            task.customer_message or "",
            model=model,
            confidence_threshold=threshold,
        )
        self._apply_autonomous(task, result, threshold)
        self.append_activity(task.tenant_id, task.ticket_id, "draft-reply", result, triggered_by="auto-reply")
        return result

    def _draft_reply(self, task: AgentTask, model: str | None) -> AgentResult:
        result = self.service.generate_draft_reply(task.ticket_id, task.tenant_id, model=model, suggestion_only=True)
        if result.draft_reply:
            self._store_suggestion(task, result)
        self.append_activity(task.tenant_id, task.ticket_id, "draft-reply", result, triggered_by="auto-reply")
        return result

    def _copilot_suggest(self, task: AgentTask, model: str | None, threshold: float) -> AgentResult:
        result = self.service.generate_draft_reply(task.ticket_id, task.tenant_id, model=model, suggestion_only=True)
        if result.draft_reply and meets_confidence_threshold(result, threshold):
            self._store_suggestion(task, result)
        self.append_activity(task.tenant_id, task.ticket_id, "draft-reply", result, triggered_by="copilot")
        return result

    def _apply_autonomous(self, task: AgentTask, result: AgentResult, threshold: float) -> bool:
        """Send the draft only when it clears the confidence threshold, else keep it as a suggestion."""
        if not result.draft_reply:
            return False
        if not should_auto_apply(result, threshold):
            self._store_suggestion(task, result)
            return False

        reply = self.store.create_message(
            task.tenant_id,
            task.ticket_id,
            {
                "direction": "OUTBOUND",
                "content_text": result.draft_reply,
                "message_type": "TEXT",
                "metadata": {"aiGenerated": True, "autonomous": True, "confidence": result.confidence},
            },
        )
        if reply is None:
            return False
        if self.gate is not None:
            self.gate.record(task.ticket_id)
        self.events.emit(MESSAGE_CREATED, {"tenantId": task.tenant_id, "ticketId": task.ticket_id, "message": reply})
        logger.info(
            "agent_reply_delivered",
            extra={"extra_fields": {"action": task.action, "confidence": result.confidence}},
        )
        return True

    def _mark_resolved(self, task: AgentTask) -> None:
        ticket = self.store.update_ticket(
            task.tenant_id,
            task.ticket_id,
            {"status": "RESOLVED", "resolved_at": _now_iso()},
        )
        if ticket is not None:
            self.events.emit(TICKET_UPDATED, {"tenantId": task.tenant_id, "ticket": ticket})

    def _store_suggestion(self, task: AgentTask, result: AgentResult) -> None:
        suggestion = self.store.create_message(
            task.tenant_id,
            task.ticket_id,
            {
                "direction": "OUTBOUND",
                "content_text": result.draft_reply,
                "message_type": "AI_SUGGESTION",
                "metadata": {
                    "aiGenerated": True,
                    "suggestion": True,
                    "confidence": result.confidence,
                    "summary": result.summary,
                    "toolCalls": len(result.tool_calls),
                },
            },
        )
        if suggestion is not None:
            self.events.emit(MESSAGE_CREATED, {"tenantId": task.tenant_id, "ticketId": task.ticket_id, "message": suggestion})

    def _route_to_human(self, task: AgentTask, result: AgentResult) -> None:
        ticket = self.store.update_ticket(task.tenant_id, task.ticket_id, {"status": "OPEN"})
        if ticket is None:
            return
        self.events.emit(TICKET_UPDATED, {"tenantId": task.tenant_id, "ticket": ticket})
        self.append_activity(task.tenant_id, task.ticket_id, "routed-to-human", result, triggered_by=task.action)

    def append_activity(self, tenant_id: str, ticket_id: str, action: str, result: AgentResult, triggered_by: str) -> None:
        ticket = self.store.get_ticket(tenant_id, ticket_id, message_limit=0)
        if ticket is None:
            return
        log = list((ticket.get("metadata") or {}).get("aiActivityLog") or [])
        log.append(
            {
                "action": action,
                "result": _result_summary(result),
                "triggeredBy": triggered_by,
                "toolCallCount": len(result.tool_calls),
                "timestamp": _now_iso(),
            }
        )
        self.store.update_ticket(
            tenant_id,
            ticket_id,
            {"metadata": {"aiActivityLog": log[-ACTIVITY_LOG_LIMIT:]}},
        )

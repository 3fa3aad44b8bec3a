from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import ValidationError

from helpdesk.core.events.emitter import MESSAGE_CREATED, TICKET_UPDATED
from helpdesk.core.integrations.base import EventEmitter, TicketStore

from .inputs import (
    TOOL_INPUTS,
    AddNoteInput,
    AssignToTeamInput,
    EscalateInput,
    GetCannedResponsesInput,
    GetContactHistoryInput,
    GetTeamsInput,
    GetTicketInput,
    SearchKnowledgeBaseInput,
    SearchTicketsInput,
    SendReplyInput,
    SetTagsInput,
    UpdateTicketInput,
)

logger = logging.getLogger("helpdesk.tools")

_SEARCH_LIMIT_MAX = 20
_TICKET_NOT_FOUND = {"error": "Ticket not found"}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dumps(payload: Any) -> str:
    return json.dumps(payload, ensure_ascii=False, default=str)


class ToolExecutor:
    """Runs catalog tools against the ticket store on behalf of the agent.

    ``execute`` always returns a JSON string. Bad arguments, missing rows,
    unknown tools and store failures come back as ``{"error": ...}`` so a
    single failed call never aborts the agent loop.
    """

    def __init__(
        self,
        store: TicketStore,
        events: EventEmitter,
        max_result_chars: int = 8000,
        allowed_tools: frozenset[str] | None = None,
    ) -> None:
        self.store = store
        self.events = events
        self.max_result_chars = max_result_chars
        self.allowed_tools = allowed_tools
        self._handlers: dict[str, Callable[[Any, str], Any]] = {
            "get_ticket": self._get_ticket,
            "update_ticket": self._update_ticket,
            "send_reply": self._send_reply,
            "add_note": self._add_note,
            "search_tickets": self._search_tickets,
            "get_contact_history": self._get_contact_history,
            "escalate": self._escalate,
            "get_canned_responses": self._get_canned_responses,
            "search_knowledge_base": self._search_knowledge_base,
            "set_tags": self._set_tags,
            "assign_to_team": self._assign_to_team,
            "get_teams": self._get_teams,
        }

    def execute(self, tool_name: str, args: dict[str, Any], tenant_id: str) -> str:
        handler = self._handlers.get(tool_name)
        input_model = TOOL_INPUTS.get(tool_name)
        if handler is None or input_model is None:
            return self._encode({"error": f"Unknown tool: {tool_name}"})
        if self.allowed_tools is not None and tool_name not in self.allowed_tools:
            return self._encode({"error": f"Tool not permitted in this mode: {tool_name}"})

        try:
            payload = input_model.model_validate(args if isinstance(args, dict) else {})
        except ValidationError as exc:
            details = [
                {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
                for error in exc.errors()
            ]
            return self._encode({"error": f"Invalid arguments for {tool_name}", "details": details})

        try:
            result = handler(payload, tenant_id)
        except Exception as exc:
            logger.exception("tool_execution_failed", extra={"extra_fields": {"tool": tool_name}})
            result = {"error": f"Tool {tool_name} failed: {exc}"}
        return self._encode(result)

    def _encode(self, payload: Any) -> str:
        """JSON-encode ``payload`` within ``max_result_chars``.

        An oversized result is wrapped as ``{"truncated": true, "partial": ...}``
        so the model still receives valid JSON. An error keeps its ``error`` key.
        """
        text = _dumps(payload)
        if len(text) <= self.max_result_chars:
            return text

        wrapper: dict[str, Any] = {"truncated": True}
        if isinstance(payload, dict) and "error" in payload:
            wrapper = {"error": str(payload["error"])[:200], **wrapper}
        partial = text[: max(0, self.max_result_chars - len(_dumps({**wrapper, "partial": ""})))]
        encoded = _dumps({**wrapper, "partial": partial})
        # escaping grows the prefix; drop the overshoot until it fits
        while partial and len(encoded) > self.max_result_chars:
            partial = partial[: len(partial) - (len(encoded) - self.max_result_chars)]
            encoded = _dumps({**wrapper, "partial": partial})
        return encoded

    # reads

    def _get_ticket(self, payload: GetTicketInput, tenant_id: str) -> dict:
        ticket = self.store.get_ticket(tenant_id, payload.ticket_id, message_limit=20)
        if ticket is None:
            return _TICKET_NOT_FOUND
        return {
            "id": ticket["id"],
            "subject": ticket.get("subject"),
            "status": ticket.get("status"),
            "priority": ticket.get("priority"),
            "channel": ticket.get("channel"),
            "tags": ticket.get("tags", []),
            "contact": ticket.get("contact"),
            "assignee": ticket.get("assignee"),
            "team": ticket.get("team"),
            "created_at": ticket.get("created_at"),
            "messages": ticket.get("messages", []),
            "metadata": ticket.get("metadata", {}),
        }

    def _search_tickets(self, payload: SearchTicketsInput, tenant_id: str) -> dict:
        limit = min(payload.limit, _SEARCH_LIMIT_MAX)
        tickets = self.store.search_tickets(tenant_id, payload.query, payload.status, limit)
        results = []
        for ticket in tickets:
            snippets = ticket.get("matching_messages") or []
            results.append(
                {
                    "id": ticket["id"],
                    "subject": ticket.get("subject"),
                    "status": ticket.get("status"),
                    "priority": ticket.get("priority"),
                    "created_at": ticket.get("created_at"),
                    "tags": ticket.get("tags", []),
                    "matching_snippet": snippets[0][:200] if snippets else None,
                }
            )
        return {"tickets": results}

    def _get_contact_history(self, payload: GetContactHistoryInput, tenant_id: str) -> dict:
        contact = self.store.get_contact_with_tickets(tenant_id, payload.contact_id, ticket_limit=10)
        if contact is None:
            return {"error": "Contact not found"}
        tickets = [
            {key: ticket.get(key) for key in ("id", "subject", "status", "priority", "created_at", "resolved_at")}
            for ticket in contact.get("tickets", [])
        ]
        return {
            "contact": {
                "id": contact["id"],
                "name": contact.get("name"),
                "email": contact.get("email"),
                "ticket_count": len(tickets),
                "tickets": tickets,
            }
        }

    def _get_canned_responses(self, payload: GetCannedResponsesInput, tenant_id: str) -> dict:
        rows = self.store.list_canned_responses(tenant_id, payload.query, limit=10)
        return {
            "canned_responses": [
                {key: row.get(key) for key in ("id", "title", "content", "shortcut")} for row in rows
            ]
        }

    def _search_knowledge_base(self, payload: SearchKnowledgeBaseInput, tenant_id: str) -> dict:
        limit = min(payload.limit, _SEARCH_LIMIT_MAX)
        messages = self.store.search_resolved_replies(tenant_id, payload.query, limit)
        return {
            "results": [
                {
                    "message_id": message["id"],
                    "ticket_id": message["ticket"]["id"],
                    "ticket_subject": message["ticket"].get("subject"),
                    "snippet": (message.get("content_text") or "")[:300],
                    "created_at": message.get("created_at"),
                }
                for message in messages
            ]
        }

    def _get_teams(self, payload: GetTeamsInput, tenant_id: str) -> dict:
        teams = self.store.list_teams(tenant_id)
        return {"teams": [{key: team.get(key) for key in ("id", "name", "description")} for team in teams]}

    # writes

    def _update_ticket(self, payload: UpdateTicketInput, tenant_id: str) -> dict:
        changes: dict[str, Any] = {}
        if payload.status:
            changes["status"] = payload.status
        if payload.priority:
            changes["priority"] = payload.priority
        if payload.assignee_id:
            changes["assignee_id"] = payload.assignee_id
        if payload.status == "RESOLVED":
            changes["resolved_at"] = _now_iso()
        if payload.status == "CLOSED":
            changes["closed_at"] = _now_iso()

        updated = self.store.update_ticket(tenant_id, payload.ticket_id, changes)
        if updated is None:
            return _TICKET_NOT_FOUND
        self.events.emit(TICKET_UPDATED, {"tenantId": tenant_id, "ticket": updated})
        return {
            "success": True,
            "ticket": {
                "id": updated["id"],
                "status": updated.get("status"),
                "priority": updated.get("priority"),
                "assignee_id": updated.get("assignee_id"),
            },
        }

    def _send_reply(self, payload: SendReplyInput, tenant_id: str) -> dict:
        message = self.store.create_message(
            tenant_id,
            payload.ticket_id,
            {
                "direction": "OUTBOUND",
                "content_text": payload.content,
                "message_type": "AI_SUGGESTION",
                "metadata": {"aiGenerated": True},
            },
        )
        if message is None:
            return _TICKET_NOT_FOUND
        self.events.emit(MESSAGE_CREATED, {"tenantId": tenant_id, "ticketId": payload.ticket_id, "message": message})
        return {"success": True, "message_id": message["id"]}

    def _add_note(self, payload: AddNoteInput, tenant_id: str) -> dict:
        note = self.store.create_message(
            tenant_id,
            payload.ticket_id,
            {"direction": "OUTBOUND", "content_text": payload.content, "message_type": "NOTE"},
        )
        if note is None:
            return _TICKET_NOT_FOUND
        self.events.emit(MESSAGE_CREATED, {"tenantId": tenant_id, "ticketId": payload.ticket_id, "message": note})
        return {"success": True, "message_id": note["id"]}

    def _escalate(self, payload: EscalateInput, tenant_id: str) -> dict:
        ticket = self.store.update_ticket(
            tenant_id,
            payload.ticket_id,
            {
                "status": "OPEN",
                "metadata": {
                    "escalation": {
                        "reason": payload.reason,
                        "escalatedAt": _now_iso(),
                        "escalatedBy": "ai-agent",
                    }
                },
            },
        )
        if ticket is None:
            return _TICKET_NOT_FOUND
        self.store.create_message(
            tenant_id,
            payload.ticket_id,
            {
                "direction": "OUTBOUND",
                "content_text": f"Escalated to human agent. Reason: {payload.reason}",
                "message_type": "SYSTEM",
            },
        )
        self.events.emit(TICKET_UPDATED, {"tenantId": tenant_id, "ticket": ticket})
        return {"success": True, "escalated": True, "reason": payload.reason}

    def _set_tags(self, payload: SetTagsInput, tenant_id: str) -> dict:
        tags = [tag.strip() for tag in payload.tags if tag.strip()]
        updated = self.store.update_ticket(tenant_id, payload.ticket_id, {"tags": tags})
        if updated is None:
            return _TICKET_NOT_FOUND
        self.events.emit(TICKET_UPDATED, {"tenantId": tenant_id, "ticket": updated})
        return {"success": True, "ticket_id": updated["id"], "tags": updated.get("tags", [])}

    def _assign_to_team(self, payload: AssignToTeamInput, tenant_id: str) -> dict:
        if self.store.get_team(tenant_id, payload.team_id) is None:
            return {"error": "Team not found"}
        updated = self.store.update_ticket(tenant_id, payload.ticket_id, {"team_id": payload.team_id})
        if updated is None:
            return _TICKET_NOT_FOUND
        self.events.emit(TICKET_UPDATED, {"tenantId": tenant_id, "ticket": updated})
        return {"success": True, "ticket_id": updated["id"], "team_id": updated.get("team_id")}

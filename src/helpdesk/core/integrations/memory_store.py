from __future__ import annotations

import copy
import threading
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _contains(haystack: str | None, needle: str) -> bool:
    return bool(haystack) and needle.casefold() in str(haystack).casefold()


class InMemoryTicketStore:
    """Dict-backed TicketStore for local development and tests.

    Rows are copied on the way in and out so callers never share mutable
    state with the store. A single lock serializes writes, which gives the
    per-row atomicity the agent relies on.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tenants: dict[str, dict[str, Any]] = {}
        self._tickets: dict[str, dict[str, Any]] = {}
        self._messages: dict[str, dict[str, Any]] = {}
        self._contacts: dict[str, dict[str, Any]] = {}
        self._users: dict[str, dict[str, Any]] = {}
        self._teams: dict[str, dict[str, Any]] = {}
        self._canned: dict[str, dict[str, Any]] = {}

    # seeding

    def add_tenant(self, tenant_id: str, settings: dict[str, Any] | None = None) -> None:
        with self._lock:
            self._tenants[tenant_id] = {"id": tenant_id, "settings": copy.deepcopy(settings or {})}

    def add_contact(self, tenant_id: str, name: str, email: str | None = None, contact_id: str | None = None) -> dict:
        record = {
            "id": contact_id or str(uuid4()),
            "tenant_id": tenant_id,
            "name": name,
            "email": email,
            "metadata": {},
        }
        with self._lock:
            self._contacts[record["id"]] = record
        return copy.deepcopy(record)

    def add_user(self, tenant_id: str, name: str, user_id: str | None = None) -> dict:
        record = {"id": user_id or str(uuid4()), "tenant_id": tenant_id, "name": name}
        with self._lock:
            self._users[record["id"]] = record
        return copy.deepcopy(record)

    def add_team(self, tenant_id: str, name: str, description: str | None = None, team_id: str | None = None) -> dict:
        record = {"id": team_id or str(uuid4()), "tenant_id": tenant_id, "name": name, "description": description}
        with self._lock:
            self._teams[record["id"]] = record
        return copy.deepcopy(record)

    def add_canned_response(self, tenant_id: str, title: str, content: str, shortcut: str | None = None, usage_count: int = 0) -> dict:
        record = {
            "id": str(uuid4()),
            "tenant_id": tenant_id,
            "title": title,
            "content": content,
            "shortcut": shortcut,
            "usage_count": usage_count,
        }
        with self._lock:
            self._canned[record["id"]] = record
        return copy.deepcopy(record)

    def add_ticket(
        self,
        tenant_id: str,
        subject: str,
        *,
        ticket_id: str | None = None,
        contact_id: str | None = None,
        status: str = "OPEN",
        priority: str = "NORMAL",
        channel: str = "EMAIL",
        tags: list[str] | None = None,
        created_at: datetime | None = None,
    ) -> dict:
        record = {
            "id": ticket_id or str(uuid4()),
            "tenant_id": tenant_id,
            "subject": subject,
            "status": status,
            "priority": priority,
            "channel": channel,
            "tags": list(tags or []),
            "contact_id": contact_id,
            "assignee_id": None,
            "team_id": None,
            "created_at": (created_at or _now()).isoformat(),
            "resolved_at": None,
            "closed_at": None,
            "metadata": {},
        }
        with self._lock:
            self._tickets[record["id"]] = record
        return copy.deepcopy(record)

    # TicketStore protocol

    def get_ticket(self, tenant_id: str, ticket_id: str, message_limit: int = 20) -> dict | None:
        with self._lock:
            ticket = self._scoped(self._tickets, tenant_id, ticket_id)
            if ticket is None:
                return None
            result = copy.deepcopy(ticket)
            result["messages"] = [
                {key: message[key] for key in ("id", "direction", "content_text", "message_type", "created_at")}
                for message in self._ticket_messages(ticket_id)[:message_limit]
            ]
            contact = self._contacts.get(ticket.get("contact_id") or "")
            result["contact"] = (
                {key: contact[key] for key in ("id", "name", "email", "metadata")} if contact else None
            )
            assignee = self._users.get(ticket.get("assignee_id") or "")
            result["assignee"] = {"id": assignee["id"], "name": assignee["name"]} if assignee else None
            team = self._teams.get(ticket.get("team_id") or "")
            result["team"] = {"id": team["id"], "name": team["name"]} if team else None
            return copy.deepcopy(result)

    def update_ticket(self, tenant_id: str, ticket_id: str, changes: dict[str, Any]) -> dict | None:
        with self._lock:
            ticket = self._scoped(self._tickets, tenant_id, ticket_id)
            if ticket is None:
                return None
            for key, value in changes.items():
                if key == "metadata" and isinstance(value, dict):
                    ticket["metadata"] = {**ticket.get("metadata", {}), **copy.deepcopy(value)}
                elif key not in {"id", "tenant_id"}:
                    ticket[key] = copy.deepcopy(value)
            return copy.deepcopy(ticket)

    def create_message(self, tenant_id: str, ticket_id: str, data: dict[str, Any]) -> dict | None:
        with self._lock:
            if self._scoped(self._tickets, tenant_id, ticket_id) is None:
                return None
            created_at = data.get("created_at") or _now()
            record = {
                "id": str(uuid4()),
                "tenant_id": tenant_id,
                "ticket_id": ticket_id,
                "direction": data.get("direction", "OUTBOUND"),
                "content_text": data.get("content_text", ""),
                "message_type": data.get("message_type", "TEXT"),
                "metadata": copy.deepcopy(data.get("metadata") or {}),
                "created_at": created_at.isoformat() if isinstance(created_at, datetime) else str(created_at),
            }
            self._messages[record["id"]] = record
            return copy.deepcopy(record)

    def search_tickets(self, tenant_id: str, query: str, status: str | None, limit: int) -> list[dict]:
        with self._lock:
            matches: list[dict] = []
            for ticket in self._tenant_rows(self._tickets, tenant_id):
                if status and ticket["status"] != status:
                    continue
                matching = [m for m in self._ticket_messages(ticket["id"]) if _contains(m["content_text"], query)]
                if not (_contains(ticket["subject"], query) or matching):
                    continue
                found = copy.deepcopy(ticket)
                found["matching_messages"] = [m["content_text"] for m in matching[:1]]
                matches.append(found)
            matches.sort(key=lambda item: item["created_at"], reverse=True)
            return matches[: max(0, limit)]

    def get_contact_with_tickets(self, tenant_id: str, contact_id: str, ticket_limit: int = 10) -> dict | None:
        with self._lock:
            contact = self._scoped(self._contacts, tenant_id, contact_id)
            if contact is None:
                return None
            tickets = [t for t in self._tenant_rows(self._tickets, tenant_id) if t.get("contact_id") == contact_id]
            tickets.sort(key=lambda item: item["created_at"], reverse=True)
            result = copy.deepcopy(contact)
            result["tickets"] = copy.deepcopy(tickets[:ticket_limit])
            return result

    def list_canned_responses(self, tenant_id: str, query: str | None, limit: int = 10) -> list[dict]:
        with self._lock:
            rows = [
                row
                for row in self._tenant_rows(self._canned, tenant_id)
                if not query or _contains(row["title"], query) or _contains(row["content"], query)
            ]
            rows.sort(key=lambda item: item["usage_count"], reverse=True)
            return copy.deepcopy(rows[:limit])

    def search_resolved_replies(self, tenant_id: str, query: str, limit: int) -> list[dict]:
        with self._lock:
            results: list[dict] = []
            for message in self._tenant_rows(self._messages, tenant_id):
                ticket = self._tickets.get(message["ticket_id"])
                if ticket is None or ticket["status"] != "RESOLVED":
                    continue
                if message["message_type"] != "TEXT" or message["direction"] != "OUTBOUND":
                    continue
                if not _contains(message["content_text"], query):
                    continue
                found = copy.deepcopy(message)
                found["ticket"] = {"id": ticket["id"], "subject": ticket["subject"]}
                results.append(found)
            results.sort(key=lambda item: item["created_at"], reverse=True)
            return results[: max(0, limit)]

    def get_team(self, tenant_id: str, team_id: str) -> dict | None:
        with self._lock:
            team = self._scoped(self._teams, tenant_id, team_id)
            return copy.deepcopy(team) if team else None

    def list_teams(self, tenant_id: str) -> list[dict]:
        with self._lock:
            return copy.deepcopy(self._tenant_rows(self._teams, tenant_id))

    def count_ai_messages_since(self, tenant_id: str, ticket_id: str, since: datetime) -> int:
        with self._lock:
            count = 0
            for message in self._ticket_messages(ticket_id):
                if message["tenant_id"] != tenant_id or message["direction"] != "OUTBOUND":
                    continue
                if message["message_type"] not in {"AI_SUGGESTION", "TEXT"}:
                    continue
                metadata = message["metadata"]
                if not metadata.get("aiGenerated") or metadata.get("suggestion"):
                    continue
                if datetime.fromisoformat(message["created_at"]) >= since:
                    count += 1
            return count

    def get_tenant_settings(self, tenant_id: str) -> dict | None:
        with self._lock:
            tenant = self._tenants.get(tenant_id)
            return copy.deepcopy(tenant["settings"]) if tenant else None

    def list_messages(self, tenant_id: str, ticket_id: str) -> list[dict]:
        with self._lock:
            return copy.deepcopy([m for m in self._ticket_messages(ticket_id) if m["tenant_id"] == tenant_id])

    # helpers

    @staticmethod
    def _scoped(rows: dict[str, dict[str, Any]], tenant_id: str, row_id: str) -> dict[str, Any] | None:
        row = rows.get(row_id)
        if row is None or row.get("tenant_id") != tenant_id:
            return None
        return row

    @staticmethod
    def _tenant_rows(rows: dict[str, dict[str, Any]], tenant_id: str) -> list[dict[str, Any]]:
        return [row for row in rows.values() if row.get("tenant_id") == tenant_id]

    def _ticket_messages(self, ticket_id: str) -> list[dict[str, Any]]:
        messages = [m for m in self._messages.values() if m["ticket_id"] == ticket_id]
        messages.sort(key=lambda item: item["created_at"])
        return messages

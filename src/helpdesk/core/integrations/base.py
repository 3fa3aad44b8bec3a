from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol


class TicketStore(Protocol):
    """Tenant-scoped ticket persistence.

    Every lookup takes the caller's tenant id; a row that belongs to another
    tenant must be reported exactly like a missing one (``None`` / empty).
    Writes are expected to be atomic per row.
    """

    def get_ticket(self, tenant_id: str, ticket_id: str, message_limit: int = 20) -> dict | None: ...

    def update_ticket(self, tenant_id: str, ticket_id: str, changes: dict[str, Any]) -> dict | None:
        """Apply ``changes``; a ``metadata`` key is merged into the existing metadata."""
        ...

    def create_message(self, tenant_id: str, ticket_id: str, data: dict[str, Any]) -> dict | None: ...

    def search_tickets(self, tenant_id: str, query: str, status: str | None, limit: int) -> list[dict]: ...

    def get_contact_with_tickets(self, tenant_id: str, contact_id: str, ticket_limit: int = 10) -> dict | None: ...

    def list_canned_responses(self, tenant_id: str, query: str | None, limit: int = 10) -> list[dict]: ...

    def search_resolved_replies(self, tenant_id: str, query: str, limit: int) -> list[dict]: ...

    def get_team(self, tenant_id: str, team_id: str) -> dict | None: ...

    def list_teams(self, tenant_id: str) -> list[dict]: ...

    def count_ai_messages_since(self, tenant_id: str, ticket_id: str, since: datetime) -> int: ...

    def get_tenant_settings(self, tenant_id: str) -> dict | None: ...


class EventEmitter(Protocol):
    def emit(self, event: str, payload: dict[str, Any]) -> None: ...

from __future__ import annotations

from typing import Any

from helpdesk.core.agent.schemas import ToolDefinition

TICKET_STATUSES = ["OPEN", "PENDING", "RESOLVED", "CLOSED"]
TICKET_PRIORITIES = ["LOW", "NORMAL", "HIGH", "URGENT"]

SIDE_EFFECT_TOOLS = frozenset({"update_ticket", "send_reply", "add_note", "escalate", "set_tags", "assign_to_team"})


def _tool(name: str, description: str, properties: dict[str, Any], required: list[str]) -> ToolDefinition:
    return ToolDefinition(
        name=name,
        description=description,
        parameter_schema={"type": "object", "properties": properties, "required": required},
    )


TOOL_DEFINITIONS: tuple[ToolDefinition, ...] = (
    _tool(
        "get_ticket",
        "Get full ticket details including messages and contact info",
        {"ticketId": {"type": "string", "description": "The ticket ID to fetch"}},
        ["ticketId"],
    ),
    _tool(
        "update_ticket",
        "Update ticket status, priority, or assignment",
        {
            "ticketId": {"type": "string"},
            "status": {"type": "string", "enum": TICKET_STATUSES},
            "priority": {"type": "string", "enum": TICKET_PRIORITIES},
            "assigneeId": {"type": "string"},
        },
        ["ticketId"],
    ),
    _tool(
        "send_reply",
        "Send a reply message to the customer on a ticket",
        {
            "ticketId": {"type": "string"},
            "content": {"type": "string", "description": "The reply text to send to the customer"},
        },
        ["ticketId", "content"],
    ),
    _tool(
        "add_note",
        "Add an internal note to a ticket (not visible to the customer)",
        {
            "ticketId": {"type": "string"},
            "content": {"type": "string", "description": "The internal note content"},
        },
        ["ticketId", "content"],
    ),
    _tool(
        "search_tickets",
        "Search for related or similar tickets by subject or message content",
        {
            "query": {"type": "string", "description": "Search query to find similar tickets"},
            "status": {"type": "string", "enum": TICKET_STATUSES},
            "limit": {"type": "number", "description": "Max results (default 5)"},
        },
        ["query"],
    ),
    _tool(
        "get_contact_history",
        "Pull a customer's past tickets and interaction history",
        {"contactId": {"type": "string"}},
        ["contactId"],
    ),
    _tool(
        "escalate",
        "Escalate a ticket to a human agent. Use this when the AI cannot resolve the issue "
        "or the customer requests a human.",
        {
            "ticketId": {"type": "string"},
            "reason": {"type": "string", "description": "Reason for escalation"},
        },
        ["ticketId", "reason"],
    ),
    _tool(
        "get_canned_responses",
        "Retrieve saved canned responses, optionally filtered by a search query",
        {"query": {"type": "string", "description": "Optional search term to filter canned responses by title or content"}},
        [],
    ),
    _tool(
        "search_knowledge_base",
        "Search previously resolved ticket replies to find relevant answers from past support interactions",
        {
            "query": {"type": "string", "description": "Search term to find relevant past replies"},
            "limit": {"type": "number", "description": "Max results to return (default 5)"},
        },
        ["query"],
    ),
    _tool(
        "set_tags",
        "Set or replace the tags on a ticket",
        {
            "ticketId": {"type": "string"},
            "tags": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Array of tag strings to apply to the ticket",
            },
        },
        ["ticketId", "tags"],
    ),
    _tool(
        "assign_to_team",
        "Assign a ticket to a specific team",
        {
            "ticketId": {"type": "string"},
            "teamId": {"type": "string", "description": "The ID of the team to assign the ticket to"},
        },
        ["ticketId", "teamId"],
    ),
    _tool(
        "get_teams",
        "List all teams available in the current tenant",
        {},
        [],
    ),
)


class ToolCatalog:
    def __init__(self, definitions: tuple[ToolDefinition, ...] = TOOL_DEFINITIONS) -> None:
        self._definitions = {definition.name: definition for definition in definitions}

    def get(self, name: str) -> ToolDefinition | None:
        return self._definitions.get(name)

    def names(self) -> list[str]:
        return list(self._definitions.keys())

    def definitions(self) -> list[ToolDefinition]:
        return list(self._definitions.values())

    def to_wire(self) -> list[dict[str, Any]]:
        return [definition.to_wire() for definition in self._definitions.values()]

    def read_only(self) -> "ToolCatalog":
        return ToolCatalog(tuple(d for d in self._definitions.values() if d.name not in SIDE_EFFECT_TOOLS))

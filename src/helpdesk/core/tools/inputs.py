from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

TicketStatus = Literal["OPEN", "PENDING", "RESOLVED", "CLOSED"]
TicketPriority = Literal["LOW", "NORMAL", "HIGH", "URGENT"]


class _ToolInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


def _upper(value: Any) -> Any:
    return value.strip().upper() if isinstance(value, str) else value


def _whole_number(value: Any) -> Any:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return value


class GetTicketInput(_ToolInput):
    ticket_id: str = Field(alias="ticketId", min_length=1)


class UpdateTicketInput(_ToolInput):
    ticket_id: str = Field(alias="ticketId", min_length=1)
    status: TicketStatus | None = None
    priority: TicketPriority | None = None
    assignee_id: str | None = Field(default=None, alias="assigneeId")

    @field_validator("status", "priority", mode="before")
    @classmethod
    def normalize_enums(cls, value: Any) -> Any:
        return _upper(value)


class SendReplyInput(_ToolInput):
    ticket_id: str = Field(alias="ticketId", min_length=1)
    content: str = Field(min_length=1)


class AddNoteInput(_ToolInput):
    ticket_id: str = Field(alias="ticketId", min_length=1)
    content: str = Field(min_length=1)


class SearchTicketsInput(_ToolInput):
    query: str = Field(min_length=1)
    status: TicketStatus | None = None
    limit: int = Field(default=5, ge=1)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: Any) -> Any:
        return _upper(value)

    @field_validator("limit", mode="before")
    @classmethod
    def normalize_limit(cls, value: Any) -> Any:
        return 5 if value is None else _whole_number(value)


class GetContactHistoryInput(_ToolInput):
    contact_id: str = Field(alias="contactId", min_length=1)


class EscalateInput(_ToolInput):
    ticket_id: str = Field(alias="ticketId", min_length=1)
    reason: str = Field(min_length=1)


class GetCannedResponsesInput(_ToolInput):
    query: str | None = None


class SearchKnowledgeBaseInput(_ToolInput):
    query: str = Field(min_length=1)
    limit: int = Field(default=5, ge=1)

    @field_validator("limit", mode="before")
    @classmethod
    def normalize_limit(cls, value: Any) -> Any:
        return 5 if value is None else _whole_number(value)


class SetTagsInput(_ToolInput):
    ticket_id: str = Field(alias="ticketId", min_length=1)
    tags: list[str]


class AssignToTeamInput(_ToolInput):
    ticket_id: str = Field(alias="ticketId", min_length=1)
    team_id: str = Field(alias="teamId", min_length=1)


class GetTeamsInput(_ToolInput):
    pass


TOOL_INPUTS: dict[str, type[_ToolInput]] = {
    "get_ticket": GetTicketInput,
    "update_ticket": UpdateTicketInput,
    "send_reply": SendReplyInput,
    "add_note": AddNoteInput,
    "search_tickets": SearchTicketsInput,
    "get_contact_history": GetContactHistoryInput,
    "escalate": EscalateInput,
    "get_canned_responses": GetCannedResponsesInput,
    "search_knowledge_base": SearchKnowledgeBaseInput,
    "set_tags": SetTagsInput,
    "assign_to_team": AssignToTeamInput,
    "get_teams": GetTeamsInput,
}

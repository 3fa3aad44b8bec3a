from __future__ import annotations

import os
from typing import Literal

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel

from helpdesk.core.agent.processor import AgentTaskProcessor
from helpdesk.core.agent.schemas import AgentResult
from helpdesk.core.agent.service import AgentService
from helpdesk.core.config.settings import TenantSettings
from helpdesk.core.infra.breaker_manager import BreakerManager
from helpdesk.core.integrations.memory_store import InMemoryTicketStore
from helpdesk.core.logging import redact_env

from .deps import get_agent_service, get_breaker_manager, get_task_processor, get_ticket_store

router = APIRouter()

ManualAction = Literal["triage", "reply", "resolve", "summarize"]

_ACTIVITY_NAMES = {
    "triage": "triage",
    "reply": "draft-reply",
    "resolve": "resolve",
    "summarize": "summarize",
}


class AgentActionRequest(BaseModel):
    model: str | None = None


@router.get("/status")
def agent_status(
    x_tenant_id: str = Header(..., alias="X-Tenant-Id"),
    service: AgentService = Depends(get_agent_service),
    store: InMemoryTicketStore = Depends(get_ticket_store),
    breakers: BreakerManager = Depends(get_breaker_manager),
) -> dict:
    settings = TenantSettings.from_raw(store.get_tenant_settings(x_tenant_id))
    env = {key: value for key, value in os.environ.items() if key.startswith("HELPDESK_")}
    return {
        **service.check_connectivity(),
        "tenant_config": {
            "agentEnabled": settings.enabled,
            "agentMode": settings.mode,
            "agentWidgetAgent": settings.widget_agent,
            "agentAutoTriage": settings.auto_triage,
        },
        "breakers": breakers.snapshot(),
        "env": redact_env(env),
    }


@router.post("/{action}/{ticket_id}")
def run_agent_action(
    action: ManualAction,
    ticket_id: str,
    request: AgentActionRequest | None = None,
    x_tenant_id: str = Header(..., alias="X-Tenant-Id"),
    service: AgentService = Depends(get_agent_service),
    store: InMemoryTicketStore = Depends(get_ticket_store),
    processor: AgentTaskProcessor = Depends(get_task_processor),
) -> dict:
    if store.get_ticket(x_tenant_id, ticket_id, message_limit=0) is None:
        raise HTTPException(status_code=404, detail="Ticket not found")

    model = request.model if request else None
    if action == "triage":
        result: AgentResult = service.triage_ticket(ticket_id, x_tenant_id, model=model)
    elif action == "reply":
        result = service.generate_draft_reply(ticket_id, x_tenant_id, model=model)
    elif action == "resolve":
        result = service.attempt_resolve(ticket_id, x_tenant_id, model=model)
    else:
        result = service.summarize_ticket(ticket_id, x_tenant_id, model=model)

    processor.append_activity(x_tenant_id, ticket_id, _ACTIVITY_NAMES[action], result, triggered_by="manual")
    return {"result": result.model_dump(by_alias=True)}

from __future__ import annotations

import os
from uuid import uuid4

import uvicorn
from fastapi import FastAPI

from helpdesk.core.logging import configure_logging, log_context

from .deps import get_agent_config, get_event_bus, get_task_dispatcher
from .routes_agent import router as agent_router


app = FastAPI(title="Helpdesk Agent API")
configure_logging(get_agent_config().state_dir)

app.include_router(agent_router, prefix="/agent", tags=["agent"])


@app.middleware("http")
async def request_context_middleware(request, call_next):
    correlation_id = request.headers.get("X-Correlation-ID") or str(uuid4())
    with log_context(correlation_id=correlation_id, tenant_id=request.headers.get("X-Tenant-Id")):
        response = await call_next(request)
    response.headers["X-Correlation-ID"] = correlation_id
    return response


@app.on_event("startup")
def startup() -> None:
    get_task_dispatcher().subscribe(get_event_bus())


@app.get("/healthz")
def healthz() -> dict[str, bool]:
    return {"ok": True}


def run() -> None:
    uvicorn.run(
        "helpdesk.apps.api.main:app",
        host=os.getenv("HELPDESK_API_HOST", "127.0.0.1"),
        port=int(os.getenv("HELPDESK_API_PORT", "8000")),
    )

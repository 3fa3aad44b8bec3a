from __future__ import annotations

from functools import lru_cache

from helpdesk.core.agent.processor import AgentTaskProcessor
from helpdesk.core.agent.service import AgentService
from helpdesk.core.config.settings import AgentConfig
from helpdesk.core.events.emitter import EventBus
from helpdesk.core.guardrails.dispatch import AgentTaskDispatcher
from helpdesk.core.guardrails.rate_limit import TaskGate
from helpdesk.core.infra.breaker_manager import BreakerManager
from helpdesk.core.integrations.memory_store import InMemoryTicketStore
from helpdesk.core.models.llm_provider import AgentLLM


@lru_cache(maxsize=1)
def get_agent_config() -> AgentConfig:
    return AgentConfig.from_env()


@lru_cache(maxsize=1)
def get_ticket_store() -> InMemoryTicketStore:
    return InMemoryTicketStore()


@lru_cache(maxsize=1)
def get_event_bus() -> EventBus:
    return EventBus()


@lru_cache(maxsize=1)
def get_breaker_manager() -> BreakerManager:
    return BreakerManager()


@lru_cache(maxsize=1)
def get_llm() -> AgentLLM:
    return AgentLLM(breaker_manager=get_breaker_manager())


@lru_cache(maxsize=1)
def get_task_gate() -> TaskGate:
    return TaskGate()


@lru_cache(maxsize=1)
def get_agent_service() -> AgentService:
    return AgentService(
        store=get_ticket_store(),
        events=get_event_bus(),
        llm=get_llm(),
        config=get_agent_config(),
    )


@lru_cache(maxsize=1)
def get_task_processor() -> AgentTaskProcessor:
    return AgentTaskProcessor(
        service=get_agent_service(),
        store=get_ticket_store(),
        events=get_event_bus(),
        gate=get_task_gate(),
    )


@lru_cache(maxsize=1)
def get_task_dispatcher() -> AgentTaskDispatcher:
    # no external queue in-process: tasks run as soon as they are planned
    return AgentTaskDispatcher(
        store=get_ticket_store(),
        enqueue=get_task_processor().process,
        gate=get_task_gate(),
    )

from __future__ import annotations

import logging
from typing import Any

from helpdesk.core.config.settings import AgentConfig
from helpdesk.core.guardrails.policy import DEFAULT_CONFIDENCE_THRESHOLD
from helpdesk.core.integrations.base import EventEmitter, TicketStore
from helpdesk.core.models.llm_provider import AgentLLM
from helpdesk.core.observability.trace import Trace
from helpdesk.core.tools.catalog import ToolCatalog
from helpdesk.core.tools.executor import ToolExecutor

from . import prompts
from .orchestrator import AgentOrchestrator
from .schemas import AgentResult, ExecutionContext

NOT_CONFIGURED_SUMMARY = "Agent is not configured"


class AgentService:
    """Role-specific agent entry points, one prompt pair per task."""

    def __init__(
        self,
        store: TicketStore,
        events: EventEmitter,
        llm: AgentLLM | None = None,
        config: AgentConfig | None = None,
        catalog: ToolCatalog | None = None,
    ) -> None:
        self.config = config or AgentConfig.from_env()
        self.llm = llm or AgentLLM()
        self.store = store
        catalog = catalog or ToolCatalog()
        self.orchestrator = AgentOrchestrator(
            model=self.llm,
            executor=ToolExecutor(store, events, max_result_chars=self.config.max_result_chars),
            catalog=catalog,
            max_consecutive_tool_failures=self.config.max_tool_failures,
        )
        read_only = catalog.read_only()
        # suggestion and autonomous runs: customer-facing effects are applied by the caller
        self.suggestion_orchestrator = AgentOrchestrator(
            model=self.llm,
            executor=ToolExecutor(
                store,
                events,
                max_result_chars=self.config.max_result_chars,
                allowed_tools=frozenset(read_only.names()),
            ),
            catalog=read_only,
            max_consecutive_tool_failures=self.config.max_tool_failures,
        )
        self.logger = logging.getLogger("helpdesk.agent.service")

    @property
    def enabled(self) -> bool:
        return self.llm.configured

    def triage_ticket(self, ticket_id: str, tenant_id: str, model: str | None = None, **kwargs: Any) -> AgentResult:
        return self._run(
            prompts.triage_system_prompt(),
            prompts.triage_task(ticket_id),
            ticket_id,
            tenant_id,
            model,
            **kwargs,
        )

    def generate_draft_reply(
        self,
        ticket_id: str,
        tenant_id: str,
        model: str | None = None,
        suggestion_only: bool = False,
        **kwargs: Any,
    ) -> AgentResult:
        return self._run(
            prompts.draft_reply_system_prompt(),
            prompts.draft_reply_task(ticket_id),
            ticket_id,
            tenant_id,
            model,
            orchestrator=self.suggestion_orchestrator if suggestion_only else self.orchestrator,
            **kwargs,
        )

    def attempt_resolve(
        self,
        ticket_id: str,
        tenant_id: str,
        model: str | None = None,
        suggestion_only: bool = False,
        **kwargs: Any,
    ) -> AgentResult:
        return self._run(
            prompts.resolve_system_prompt(apply_directly=not suggestion_only),
            prompts.resolve_task(ticket_id),
            ticket_id,
            tenant_id,
            model,
            orchestrator=self.suggestion_orchestrator if suggestion_only else self.orchestrator,
            **kwargs,
        )

    def summarize_ticket(self, ticket_id: str, tenant_id: str, model: str | None = None, **kwargs: Any) -> AgentResult:
        return self._run(
            prompts.summarize_system_prompt(),
            prompts.summarize_task(ticket_id),
            ticket_id,
            tenant_id,
            model,
            **kwargs,
        )

    def handle_widget_message(
        self,
        ticket_id: str,
        tenant_id: str,
        customer_message: str,
        model: str | None = None,
        confidence_threshold: float | None = None,
        **kwargs: Any,
    ) -> AgentResult:
        """Read-only run; the caller decides whether ``draft_reply`` reaches the customer."""
        threshold = confidence_threshold or DEFAULT_CONFIDENCE_THRESHOLD
        return self._run(
            prompts.widget_system_prompt(threshold),
            prompts.widget_task(ticket_id, customer_message),
            ticket_id,
            tenant_id,
            model,
            orchestrator=self.suggestion_orchestrator,
            **kwargs,
        )

    def check_connectivity(self) -> dict[str, Any]:
        status = self.llm.check_connectivity()
        return {"connected": bool(status.get("ok")), "url": self.llm.config.base_url, **status}

    def _run(
        self,
        system_prompt: str,
        user_task: str,
        ticket_id: str,
        tenant_id: str,
        model: str | None,
        orchestrator: AgentOrchestrator | None = None,
        deadline: float | None = None,
        trace: Trace | None = None,
        correlation_id: str | None = None,
    ) -> AgentResult:
        if not self.enabled:
            self.logger.info("agent_not_configured", extra={"extra_fields": {"ticket_id": ticket_id}})
            return AgentResult.needs_human(NOT_CONFIGURED_SUMMARY)

        context_kwargs: dict[str, Any] = {"tenant_id": tenant_id, "ticket_id": ticket_id, "model": model}
        if correlation_id:
            context_kwargs["correlation_id"] = correlation_id
        return (orchestrator or self.orchestrator).run(
            system_prompt,
            user_task,
            ExecutionContext(**context_kwargs),
            max_iterations=self.config.max_iterations,
            deadline=deadline,
            trace=trace,
        )

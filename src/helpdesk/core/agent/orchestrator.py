from __future__ import annotations

import logging
import time
from typing import Protocol

from helpdesk.core.logging import log_context
from helpdesk.core.models.llm_provider import ModelUnavailable
from helpdesk.core.observability.trace import Trace
from helpdesk.core.tools.catalog import ToolCatalog
from helpdesk.core.tools.executor import ToolExecutor

from .parser import ResponseParser
from .schemas import AgentResult, AssistantTurn, ChatMessage, ExecutionContext, ToolDefinition, ToolExecutionRecord

logger = logging.getLogger("helpdesk.agent")

NO_RESPONSE_SUMMARY = "Failed to get response from model"
EMPTY_RESPONSE_SUMMARY = "Empty response from model"
MAX_ITERATIONS_SUMMARY = "Agent reached maximum iterations without completing"
DEADLINE_SUMMARY = "Agent deadline expired before the run completed"


class ChatModel(Protocol):
    def complete(
        self,
        transcript: list[ChatMessage],
        tools: list[ToolDefinition],
        model: str | None = None,
        trace: Trace | None = None,
    ) -> AssistantTurn | None: ...


class AgentOrchestrator:
    """Bounded reason-and-act loop over the tool catalog.

    Each iteration makes exactly one model call. A turn without tool calls is
    the final answer and goes through ``ResponseParser``; a turn with tool
    calls is executed in order and fed back into the transcript. Every
    failure mode ends in a ``needs_human`` result, ``run`` never raises.
    """

    def __init__(
        self,
        model: ChatModel,
        executor: ToolExecutor,
        catalog: ToolCatalog | None = None,
        parser: ResponseParser | None = None,
        max_consecutive_tool_failures: int = 3,
        clock=time.monotonic,
    ) -> None:
        self.model = model
        self.executor = executor
        self.catalog = catalog or ToolCatalog()
        self.parser = parser or ResponseParser()
        self.max_consecutive_tool_failures = max(1, max_consecutive_tool_failures)
        self.clock = clock

    def run(
        self,
        system_prompt: str,
        user_task: str,
        context: ExecutionContext,
        max_iterations: int = 10,
        deadline: float | None = None,
        trace: Trace | None = None,
    ) -> AgentResult:
        trace = trace or Trace(task=user_task[:200], ticket_id=context.ticket_id, correlation_id=context.correlation_id)
        with log_context(
            correlation_id=context.correlation_id,
            tenant_id=context.tenant_id,
            ticket_id=context.ticket_id,
        ):
            logger.info(
                "agent_run_started",
                extra={"extra_fields": {"max_iterations": max_iterations, "model": context.model}},
            )
            started = time.perf_counter()
            result, model_calls = self._loop(system_prompt, user_task, context, max_iterations, deadline, trace)
            trace.emit(
                "RunCompleted",
                {"action": result.action, "confidence": result.confidence, "model_calls": model_calls},
            )
            logger.info(
                "agent_run_completed",
                extra={
                    "extra_fields": {
                        "action": result.action,
                        "confidence": result.confidence,
                        "model_calls": model_calls,
                        "tool_calls": len(result.tool_calls),
                        "duration_ms": int((time.perf_counter() - started) * 1000),
                    }
                },
            )
            return result

    def _loop(
        self,
        system_prompt: str,
        user_task: str,
        context: ExecutionContext,
        max_iterations: int,
        deadline: float | None,
        trace: Trace,
    ) -> tuple[AgentResult, int]:
        transcript = [
            ChatMessage(role="system", content=system_prompt),
            ChatMessage(role="user", content=user_task),
        ]
        trail: list[ToolExecutionRecord] = []
        tools = self.catalog.definitions()
        consecutive_failures = 0
        model_calls = 0

        for iteration in range(max(0, max_iterations)):
            if deadline is not None and self.clock() >= deadline:
                trace.emit("DeadlineExpired", {"iteration": iteration})
                return AgentResult.needs_human(DEADLINE_SUMMARY, trail), model_calls

            model_calls += 1
            try:
                turn = self.model.complete(transcript, tools, model=context.model, trace=trace)
            except ModelUnavailable as exc:
                logger.warning("agent_model_unavailable", extra={"extra_fields": {"error": str(exc)}})
                trace.emit("ModelCalled", {"iteration": iteration, "ok": False, "error": str(exc)})
                return AgentResult.needs_human(NO_RESPONSE_SUMMARY, trail), model_calls
            except Exception as exc:
                logger.exception("agent_model_call_crashed")
                trace.emit("ModelCalled", {"iteration": iteration, "ok": False, "error": str(exc)})
                return AgentResult.needs_human(NO_RESPONSE_SUMMARY, trail), model_calls

            if turn is None:
                trace.emit("ModelCalled", {"iteration": iteration, "ok": False, "error": "empty"})
                return AgentResult.needs_human(EMPTY_RESPONSE_SUMMARY, trail), model_calls

            trace.emit("ModelCalled", {"iteration": iteration, "ok": True, "tool_calls": len(turn.tool_calls)})
            transcript.append(turn.to_message())

            if not turn.tool_calls:
                if not (turn.content or "").strip():
                    return AgentResult.needs_human(EMPTY_RESPONSE_SUMMARY, trail), model_calls
                return self.parser.parse(turn.content, trail), model_calls

            for call in turn.tool_calls:
                args = call.parse_arguments()
                output = self.executor.execute(call.tool_name, args, context.tenant_id)
                transcript.append(ChatMessage(role="tool", content=output, tool_call_id=call.id))
                record = ToolExecutionRecord(tool_name=call.tool_name, args=args, result=output)
                trail.append(record)

                consecutive_failures = consecutive_failures + 1 if record.is_error else 0
                trace.emit("ToolExecuted", {"tool": call.tool_name, "ok": not record.is_error})
                logger.info(
                    "agent_tool_call",
                    extra={
                        "extra_fields": {
                            "tool": call.tool_name,
                            "ok": not record.is_error,
                            "iteration": iteration,
                            "result_len": len(output),
                        }
                    },
                )

                if consecutive_failures >= self.max_consecutive_tool_failures:
                    summary = f"Agent stopped after {consecutive_failures} consecutive tool failures"
                    return AgentResult.needs_human(summary, trail), model_calls

        return AgentResult.needs_human(MAX_ITERATIONS_SUMMARY, trail), model_calls

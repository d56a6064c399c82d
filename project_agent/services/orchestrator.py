"""Tool-calling orchestration loop."""

import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from project_agent.models.llm import LLMResponse, Message, RunMetrics, ToolResult, ToolSchema
from project_agent.models.runs import PromptRun, RunRequest, RunResult
from project_agent.services.actions import ActionRecordService
from project_agent.services.contacts import ContactResolver
from project_agent.services.context import ConversationContext, validate_context
from project_agent.services.context_store import InMemoryContextStore
from project_agent.services.costs import calculate_cost
from project_agent.services.datastore import Datastore, require_project_in_scope
from project_agent.services.dispatcher import ToolDispatcher, ToolLoopDetected
from project_agent.services.prompts import build_system_prompt
from project_agent.tools.base import ToolExecutionContext
from project_agent.tools.registry import ToolsRegistry
from project_agent.utils.logging import get_logger

logger = get_logger(__name__)

MAX_ITERATIONS_MESSAGE = "Maximum number of iterations reached. The conversation was terminated for safety reasons."
EMPTY_ANSWER = "No response generated."
NOT_EXECUTED_NOTICE = "Not executed: processing was terminated before this call ran."


class ModelClient(Protocol):
    """Interface for the language-model transport."""

    @property
    def model(self) -> str: ...

    async def create_message(self, messages: list[Message], tools: list[ToolSchema] | None = None) -> LLMResponse:
        """Send the full conversation and return the model's next turn."""
        ...


@dataclass
class OrchestratorConfig:
    """Safety bounds for orchestration runs."""

    max_iterations: int = field(default_factory=lambda: int(os.getenv("AGENT_MAX_ITERATIONS", "5")))
    tool_limits: dict[str, int] = field(default_factory=lambda: {"detect_action": 1})
    loop_threshold: int = 3


class OrchestrationService:
    """Drives a bounded multi-turn exchange between the model and the project tools."""

    def __init__(
        self,
        client: ModelClient,
        datastore: Datastore,
        actions: ActionRecordService,
        resolver: ContactResolver,
        registry: ToolsRegistry,
        context_store: InMemoryContextStore,
        config: OrchestratorConfig | None = None,
    ):
        """Initialize orchestration service.

        Args:
            client: Language-model transport
            datastore: Store for projects, runs and audit rows
            actions: Action record lifecycle service
            resolver: Contact resolver handed to tools
            registry: Source of tool definitions
            context_store: Cache of resumable conversations
            config: Safety bounds
        """
        self.client = client
        self.datastore = datastore
        self.actions = actions
        self.resolver = resolver
        self.registry = registry
        self.context_store = context_store
        self.config = config or OrchestratorConfig()

    async def run(self, request: RunRequest) -> RunResult:
        """Execute one orchestration run.

        Args:
            request: Project scope, prompt and run options

        Returns:
            The terminal answer with run metrics and created action records

        Raises:
            ScopeError: If the project does not belong to the requested company
        """
        await require_project_in_scope(self.datastore, request.project_id, request.company_id)

        max_iterations = request.max_iterations or self.config.max_iterations
        tools = self.registry.get_tools(request.available_tools)
        tool_schemas = [tool.to_schema() for tool in tools.values()]
        system_prompt = request.system_prompt or build_system_prompt(
            list(tools.keys()), request.milestone_instructions
        )

        context = self._load_context(request, system_prompt)
        context.tools = tool_schemas

        prompt_run = PromptRun(
            project_id=request.project_id,
            company_id=request.company_id,
            prompt_input=request.prompt,
            conversation_id=context.conversation_id,
        )
        await self.datastore.insert_prompt_run(prompt_run)
        logger.info(
            f"Starting run {prompt_run.id} for project {request.project_id} with {len(tools)} tools, "
            f"max_iterations: {max_iterations}"
        )

        execution_context = ToolExecutionContext(
            datastore=self.datastore,
            actions=self.actions,
            resolver=self.resolver,
            company_id=request.company_id,
            project_id=request.project_id,
            prompt_run_id=prompt_run.id,
            caller_id=request.caller_id,
        )
        dispatcher = ToolDispatcher(
            tools,
            execution_context,
            self.datastore,
            tool_limits=self.config.tool_limits,
            loop_threshold=self.config.loop_threshold,
        )
        metrics = RunMetrics()
        iterations = 0
        stop_reason = "max_iterations"
        answer = MAX_ITERATIONS_MESSAGE

        try:
            while iterations < max_iterations:
                iterations += 1
                logger.debug(f"Run {prompt_run.id} iteration {iterations}/{max_iterations}")

                response = await self.client.create_message(context.messages, tool_schemas)
                cost = calculate_cost(
                    response.model, response.usage.input_tokens, response.usage.output_tokens, self.client.model
                )
                metrics.add_usage(response.usage, cost)

                if not response.tool_calls:
                    context.append(Message.assistant(response.text))
                    answer = response.text or EMPTY_ANSWER
                    stop_reason = "completed"
                    break

                logger.info(f"Model requested {len(response.tool_calls)} tools")
                context.append(Message.assistant(response.text, response.tool_calls))

                try:
                    for invocation in response.tool_calls:
                        if await dispatcher.dispatch(invocation, context) is not None:
                            metrics.tool_calls += 1
                except ToolLoopDetected as e:
                    self._close_unanswered(context)
                    answer = e.diagnostic
                    stop_reason = "loop_aborted"
                    break
                finally:
                    validate_context(context)

            if stop_reason == "max_iterations":
                logger.warning(f"Run {prompt_run.id} reached max iterations ({max_iterations})")
                context.append(Message.assistant(MAX_ITERATIONS_MESSAGE))

        except Exception as e:
            logger.error(f"Run {prompt_run.id} failed: {e}", exc_info=True)
            self._close_unanswered(context)
            answer = f"Error during processing: {e}"
            stop_reason = "error"
            await self._finish_run(prompt_run, "FAILED", answer, metrics, error_message=str(e))
        else:
            await self._finish_run(prompt_run, "COMPLETED", answer, metrics)

        self.context_store.save(context)
        logger.info(f"Run {prompt_run.id} finished: {stop_reason} after {iterations} iterations")

        return RunResult(
            run_id=prompt_run.id,
            conversation_id=context.conversation_id,
            status=prompt_run.status,
            answer=answer,
            stop_reason=stop_reason,
            iterations=iterations,
            metrics=metrics,
            tool_outputs=dispatcher.outputs,
            action_record_ids=execution_context.state.action_record_ids,
        )

    def _load_context(self, request: RunRequest, system_prompt: str) -> ConversationContext:
        """Resume a cached conversation or start a fresh one."""
        if request.conversation_id:
            context = self.context_store.get(request.conversation_id)
            if context is not None:
                logger.info(f"Resuming conversation {context.conversation_id} ({len(context.messages)} messages)")
                last = context.messages[-1] if context.messages else None
                if last is None or last.role != "user" or last.content != request.prompt:
                    context.append(Message.user(request.prompt))
                return context

        conversation_id = request.conversation_id or self.context_store.generate_conversation_id()
        context = ConversationContext(conversation_id=conversation_id)
        context.append(Message.system(system_prompt))
        context.append(Message.user(request.prompt))
        return context

    def _close_unanswered(self, context: ConversationContext) -> None:
        """Answer any invocation left without a tool message so the log stays well-formed."""
        answered = context.answered_invocation_ids()
        for message in list(context.messages):
            if message.role != "assistant":
                continue
            for invocation in message.tool_calls:
                if invocation.id not in answered:
                    context.add_tool_result(invocation, ToolResult(status="no_action", message=NOT_EXECUTED_NOTICE))

    async def _finish_run(
        self,
        prompt_run: PromptRun,
        status: str,
        output: str,
        metrics: RunMetrics,
        error_message: str | None = None,
    ) -> None:
        prompt_run.status = status
        prompt_run.prompt_output = output
        prompt_run.error_message = error_message
        prompt_run.prompt_tokens = metrics.prompt_tokens
        prompt_run.completion_tokens = metrics.completion_tokens
        prompt_run.usd_cost = metrics.usd_cost
        prompt_run.completed_at = datetime.now(UTC)
        await self.datastore.update_prompt_run(prompt_run)

"""Tool dispatch with deduplication, per-tool limits, loop detection and error containment."""

import hashlib
import json
import time
from typing import Any

from project_agent.models.llm import ToolInvocation, ToolResult
from project_agent.models.runs import ToolLog, ToolOutput
from project_agent.services.context import ConversationContext
from project_agent.services.datastore import Datastore
from project_agent.tools.base import ToolDefinition, ToolExecutionContext
from project_agent.utils.logging import get_logger

logger = get_logger(__name__)

MAX_OUTPUT_CHARS = 10_000
LOOP_ABORT_DIAGNOSTIC = (
    "The system detected a potential infinite loop in tool calls. "
    "Analysis was terminated to prevent redundant actions. "
    "Please review the generated actions for completeness."
)


class ToolLoopDetected(Exception):
    """Raised when a tool is invoked more often than the loop threshold allows."""

    def __init__(self, tool_name: str, diagnostic: str = LOOP_ABORT_DIAGNOSTIC):
        super().__init__(diagnostic)
        self.tool_name = tool_name
        self.diagnostic = diagnostic


def hash_input(arguments: dict[str, Any]) -> str:
    """Generate a short stable hash of tool arguments for audit logs."""
    serialized = json.dumps(arguments, sort_keys=True, default=str)
    return hashlib.sha256(serialized.encode()).hexdigest()[:16]


def trim_output(output: str, limit: int = MAX_OUTPUT_CHARS) -> str:
    if len(output) <= limit:
        return output
    return output[:limit] + "... [truncated]"


class ToolDispatcher:
    """Routes tool invocations for a single run.

    Holds the run's processed invocation IDs and per-tool call counts, so one instance
    must be created per run.
    """

    def __init__(
        self,
        tools: dict[str, ToolDefinition],
        execution_context: ToolExecutionContext,
        datastore: Datastore,
        tool_limits: dict[str, int] | None = None,
        loop_threshold: int = 3,
    ):
        """Initialize dispatcher.

        Args:
            tools: Name-to-definition map of tools offered in this run
            execution_context: Scoped collaborators passed to every handler
            datastore: Destination for tool audit logs
            tool_limits: Maximum calls per run for capped tools
            loop_threshold: Calls of one uncapped tool tolerated before aborting the run
        """
        self.tools = tools
        self.execution_context = execution_context
        self.datastore = datastore
        self.tool_limits = tool_limits or {}
        self.loop_threshold = loop_threshold

        self.processed_ids: set[str] = set()
        self.call_counts: dict[str, int] = {}
        self.outputs: list[ToolOutput] = []

    async def dispatch(self, invocation: ToolInvocation, context: ConversationContext) -> ToolResult | None:
        """Execute one tool invocation and append its result to the conversation.

        Args:
            invocation: Tool call requested by the model
            context: Conversation receiving the tool message and any system notices

        Returns:
            The tool result, or None when the invocation ID was already processed

        Raises:
            ToolLoopDetected: If an uncapped tool exceeds the loop threshold
        """
        name = invocation.name
        if invocation.id in self.processed_ids:
            logger.warning(f"Skipping already processed tool call {invocation.id} ({name})")
            return None
        self.processed_ids.add(invocation.id)

        count = self.call_counts.get(name, 0)
        limit = self.tool_limits.get(name)

        if limit is not None and count >= limit:
            notice = (
                f"The tool '{name}' has reached its maximum allowed calls ({limit}). "
                "Please use the results from previous calls."
            )
            logger.warning(f"Tool {name} call {invocation.id} skipped: limit of {limit} reached")
            result = ToolResult(status="no_action", message=notice)
            context.add_tool_result(invocation, result)
            context.add_system_notice(notice)
            await self._record_log(invocation, result, 0)
            return result

        count += 1
        self.call_counts[name] = count

        if limit is None and count > self.loop_threshold:
            warning = f"WARNING: Potential infinite loop detected with {name} tool. Processing terminated."
            logger.error(f"Tool {name} called {count} times in one run, aborting")
            result = ToolResult(status="no_action", message=warning)
            context.add_tool_result(invocation, result)
            context.add_system_notice(warning)
            await self._record_log(invocation, result, 0)
            raise ToolLoopDetected(name)

        return await self._execute(invocation, context)

    async def _execute(self, invocation: ToolInvocation, context: ConversationContext) -> ToolResult:
        name = invocation.name
        tool = self.tools.get(name)
        logger.debug(f"Executing tool: {name} with input: {invocation.arguments}")

        start = time.perf_counter()
        try:
            if tool is None:
                raise ValueError(f"Unknown tool: {name}")
            result = await tool.run(invocation.arguments, self.execution_context)
        except Exception as e:
            logger.error(f"Tool {name} failed: {e}")
            result = ToolResult.failure(str(e))
        duration_ms = int((time.perf_counter() - start) * 1000)

        context.add_tool_result(invocation, result)
        self.outputs.append(ToolOutput(tool=name, args=invocation.arguments, result=result.model_dump()))
        await self._record_log(invocation, result, duration_ms)
        return result

    async def _record_log(self, invocation: ToolInvocation, result: ToolResult, duration_ms: int) -> None:
        """Log and persist one dispatch, regardless of outcome."""
        output = trim_output(result.to_content())
        input_hash = hash_input(invocation.arguments)
        logger.info(
            f"Tool {invocation.name} ({invocation.id}) finished with {result.status} "
            f"in {duration_ms}ms, input_hash={input_hash}"
        )

        prompt_run_id = self.execution_context.prompt_run_id
        if not prompt_run_id:
            return
        try:
            await self.datastore.insert_tool_log(
                ToolLog(
                    prompt_run_id=prompt_run_id,
                    tool_call_id=invocation.id,
                    tool_name=invocation.name,
                    status=result.status,
                    duration_ms=duration_ms,
                    input_hash=input_hash,
                    output_trim=output,
                )
            )
        except Exception as e:
            logger.error(f"Failed to persist tool log for {invocation.id}: {e}")

"""Tests for tool dispatch."""

import json
from unittest.mock import AsyncMock, patch

import pytest
from conftest import tool_call
from pydantic import BaseModel

from project_agent.models.llm import ToolResult
from project_agent.services.context import ConversationContext
from project_agent.services.dispatcher import (
    LOOP_ABORT_DIAGNOSTIC,
    ToolDispatcher,
    ToolLoopDetected,
    hash_input,
    trim_output,
)
from project_agent.tools.base import ToolDefinition
from project_agent.tools.registry import ToolsRegistry


class EmptyInput(BaseModel):
    pass


async def failing_handler(params, context):
    raise RuntimeError("CRM unavailable")


@pytest.fixture
def conversation():
    return ConversationContext(conversation_id="conv_1")


@pytest.fixture
def dispatcher(tool_context, datastore):
    """Dispatcher over the default tools with detect_action capped at one call."""
    tools = ToolsRegistry().get_tools()
    tools["flaky"] = ToolDefinition(
        name="flaky", description="Always fails", input_schema_class=EmptyInput, handler=failing_handler
    )
    return ToolDispatcher(tools, tool_context, datastore, tool_limits={"detect_action": 1}, loop_threshold=3)


def tool_messages(conversation: ConversationContext) -> list:
    return [message for message in conversation.messages if message.role == "tool"]


def system_messages(conversation: ConversationContext) -> list:
    return [message for message in conversation.messages if message.role == "system"]


class TestDispatch:
    """Tests for routing a single invocation."""

    @pytest.mark.asyncio
    async def test_success_appends_tool_message(self, dispatcher, conversation):
        """Test that a successful call is answered with a matching tool message."""
        invocation = tool_call("list_project_contacts")
        result = await dispatcher.dispatch(invocation, conversation)

        assert result.status == "success"
        messages = tool_messages(conversation)
        assert len(messages) == 1
        assert messages[0].tool_call_id == invocation.id
        assert json.loads(messages[0].content)["status"] == "success"
        assert dispatcher.outputs[0].tool == "list_project_contacts"

    @pytest.mark.asyncio
    async def test_duplicate_invocation_id_skipped(self, dispatcher, conversation):
        """Test that an already processed invocation ID is not executed again."""
        invocation = tool_call("list_project_contacts", call_id="toolu_dup")
        await dispatcher.dispatch(invocation, conversation)
        second = await dispatcher.dispatch(invocation, conversation)

        assert second is None
        assert len(tool_messages(conversation)) == 1
        assert dispatcher.call_counts["list_project_contacts"] == 1

    @pytest.mark.asyncio
    async def test_unknown_tool_returns_error(self, dispatcher, conversation):
        """Test that calls to tools not offered in the run become error results."""
        result = await dispatcher.dispatch(tool_call("teleport"), conversation)

        assert result.status == "error"
        assert result.error == "Unknown tool: teleport"
        assert len(tool_messages(conversation)) == 1

    @pytest.mark.asyncio
    async def test_handler_exception_is_contained(self, dispatcher, conversation):
        """Test that a raising handler is turned into an error result."""
        result = await dispatcher.dispatch(tool_call("flaky"), conversation)

        assert result.status == "error"
        assert result.message == "Tool execution failed: CRM unavailable"

    @pytest.mark.asyncio
    async def test_invalid_arguments_are_contained(self, dispatcher, conversation):
        """Test that input validation errors become error results."""
        result = await dispatcher.dispatch(
            tool_call("create_action_record", action_type="message", message_text="Hi"), conversation
        )

        assert result.status == "error"
        assert "recipient" in result.error


class TestLimits:
    """Tests for per-tool limits and loop detection."""

    @pytest.mark.asyncio
    async def test_capped_tool_skipped_after_limit(self, dispatcher, conversation):
        """Test that calls past the limit are answered without executing and a notice is added."""
        first = await dispatcher.dispatch(tool_call("detect_action", decision="NO_ACTION", reason="ok"), conversation)
        second = await dispatcher.dispatch(
            tool_call("detect_action", decision="ACTION_NEEDED", reason="changed my mind"), conversation
        )

        assert first.status == "no_action"
        assert second.status == "no_action"
        assert "reached its maximum allowed calls (1)" in second.message
        assert dispatcher.execution_context.state.last_decision == "NO_ACTION"
        assert len(tool_messages(conversation)) == 2
        assert system_messages(conversation)[-1].content == (
            "The tool 'detect_action' has reached its maximum allowed calls (1). "
            "Please use the results from previous calls."
        )
        assert len(dispatcher.outputs) == 1

    @pytest.mark.asyncio
    async def test_capped_tool_never_triggers_loop_abort(self, dispatcher, conversation):
        """Test that repeated calls to a capped tool are skipped rather than aborting the run."""
        for _ in range(5):
            await dispatcher.dispatch(tool_call("detect_action", decision="NO_ACTION", reason="ok"), conversation)

        assert len(tool_messages(conversation)) == 5
        assert dispatcher.call_counts["detect_action"] == 1

    @pytest.mark.asyncio
    async def test_loop_threshold_aborts(self, dispatcher, conversation):
        """Test that an uncapped tool called past the threshold raises."""
        for _ in range(3):
            await dispatcher.dispatch(tool_call("list_project_contacts"), conversation)

        looping = tool_call("list_project_contacts")
        with pytest.raises(ToolLoopDetected) as exc_info:
            await dispatcher.dispatch(looping, conversation)

        assert exc_info.value.tool_name == "list_project_contacts"
        assert exc_info.value.diagnostic == LOOP_ABORT_DIAGNOSTIC
        assert tool_messages(conversation)[-1].tool_call_id == looping.id
        assert system_messages(conversation)[-1].content == (
            "WARNING: Potential infinite loop detected with list_project_contacts tool. Processing terminated."
        )
        assert len(dispatcher.outputs) == 3

    @pytest.mark.asyncio
    async def test_failed_calls_count_toward_threshold(self, dispatcher, conversation):
        """Test that errors still count as calls."""
        for _ in range(3):
            await dispatcher.dispatch(tool_call("flaky"), conversation)
        with pytest.raises(ToolLoopDetected):
            await dispatcher.dispatch(tool_call("flaky"), conversation)


class TestToolLogs:
    """Tests for tool audit logs."""

    @pytest.mark.asyncio
    async def test_log_persisted(self, dispatcher, conversation, datastore):
        """Test that each executed call writes one log row."""
        invocation = tool_call("list_project_contacts")
        await dispatcher.dispatch(invocation, conversation)
        await dispatcher.dispatch(tool_call("flaky"), conversation)

        logs = await datastore.list_tool_logs("run_1")
        assert [log.tool_name for log in logs] == ["list_project_contacts", "flaky"]
        assert [log.status for log in logs] == ["success", "error"]
        assert logs[0].tool_call_id == invocation.id
        assert logs[0].input_hash == hash_input({})
        assert logs[0].duration_ms >= 0

    @pytest.mark.asyncio
    async def test_capped_call_logged_as_no_action(self, dispatcher, conversation, datastore):
        """Test that a call skipped by its limit still writes a log row."""
        await dispatcher.dispatch(tool_call("detect_action", decision="NO_ACTION", reason="ok"), conversation)
        skipped = tool_call("detect_action", decision="NO_ACTION", reason="again")
        await dispatcher.dispatch(skipped, conversation)

        logs = await datastore.list_tool_logs("run_1")
        assert len(logs) == 2
        assert logs[-1].tool_call_id == skipped.id
        assert logs[-1].status == "no_action"
        assert logs[-1].duration_ms == 0
        assert "maximum allowed calls" in logs[-1].output_trim

    @pytest.mark.asyncio
    async def test_loop_abort_call_logged_as_no_action(self, dispatcher, conversation, datastore):
        """Test that the call that triggers the loop abort is audited before the run stops."""
        for _ in range(3):
            await dispatcher.dispatch(tool_call("list_project_contacts"), conversation)
        looping = tool_call("list_project_contacts")
        with pytest.raises(ToolLoopDetected):
            await dispatcher.dispatch(looping, conversation)

        logs = await datastore.list_tool_logs("run_1")
        assert len(logs) == 4
        assert logs[-1].tool_call_id == looping.id
        assert logs[-1].status == "no_action"
        assert "Potential infinite loop" in logs[-1].output_trim

    @pytest.mark.asyncio
    async def test_log_failure_does_not_fail_call(self, dispatcher, conversation, datastore):
        """Test that a failing audit write does not affect the tool result."""
        with patch.object(datastore, "insert_tool_log", AsyncMock(side_effect=RuntimeError("disk full"))):
            result = await dispatcher.dispatch(tool_call("list_project_contacts"), conversation)

        assert result.status == "success"
        assert len(tool_messages(conversation)) == 1

    @pytest.mark.asyncio
    async def test_no_log_without_run(self, dispatcher, conversation, datastore):
        """Test that logs are skipped when no run is recorded."""
        dispatcher.execution_context.prompt_run_id = None
        await dispatcher.dispatch(tool_call("list_project_contacts"), conversation)
        assert datastore.tool_logs == []

    def test_hash_input_is_stable(self):
        """Test that argument order does not change the hash."""
        assert hash_input({"a": 1, "b": [1, 2]}) == hash_input({"b": [1, 2], "a": 1})
        assert len(hash_input({})) == 16

    def test_trim_output(self):
        """Test that long outputs are truncated with a marker."""
        assert trim_output("short") == "short"
        trimmed = trim_output("x" * 20, limit=10)
        assert trimmed == "x" * 10 + "... [truncated]"

    def test_failure_result_content(self):
        """Test the serialized shape of an error result."""
        content = json.loads(ToolResult.failure("boom").to_content())
        assert content["status"] == "error"
        assert content["error"] == "boom"

"""Tests for data models."""

import json

import pytest
from pydantic import ValidationError

from project_agent.models.actions import ActionDecisionRequest, ActionRecord
from project_agent.models.llm import LLMUsage, Message, RunMetrics, ToolInvocation, ToolResult
from project_agent.models.projects import Project
from project_agent.models.runs import RunRequest, RunResult
from project_agent.services.costs import calculate_cost


class TestMessageModel:
    """Tests for conversation messages."""

    def test_tool_message_requires_call_id(self):
        """Test that tool messages cannot be created without a tool_call_id."""
        with pytest.raises(ValidationError, match="tool_call_id"):
            Message(role="tool", content="{}")

    def test_only_assistant_carries_tool_calls(self):
        """Test that user messages cannot carry tool calls."""
        with pytest.raises(ValidationError, match="Only assistant"):
            Message(role="user", content="hi", tool_calls=[ToolInvocation(id="1", name="detect_action")])

    def test_tool_response_links_invocation(self):
        """Test that tool responses reference the invocation they answer."""
        invocation = ToolInvocation(id="toolu_1", name="detect_action", arguments={"decision": "NO_ACTION"})
        message = Message.tool_response(invocation, ToolResult(status="no_action", message="nothing to do"))

        assert message.role == "tool"
        assert message.tool_call_id == "toolu_1"
        assert message.name == "detect_action"
        assert json.loads(message.content) == {"status": "no_action", "message": "nothing to do", "data": {}}

    def test_assistant_factory(self):
        """Test assistant messages keep text and tool calls."""
        calls = [ToolInvocation(id="a", name="x")]
        message = Message.assistant("thinking", calls)
        assert message.content == "thinking"
        assert message.tool_calls == calls


class TestToolResult:
    """Tests for tool results."""

    def test_failure_shape(self):
        """Test the error result returned when a tool raises."""
        result = ToolResult.failure("boom")
        assert result.status == "error"
        assert result.error == "boom"
        assert result.message == "Tool execution failed: boom"

    def test_to_content_omits_empty_fields(self):
        """Test that serialized results drop unset optional fields."""
        content = json.loads(ToolResult(status="success", data={"id": 1}).to_content())
        assert content == {"status": "success", "data": {"id": 1}}

    def test_invalid_status_rejected(self):
        """Test that only known statuses are accepted."""
        with pytest.raises(ValidationError):
            ToolResult(status="maybe")


class TestRunMetrics:
    """Tests for run metric accumulation and pricing."""

    def test_add_usage_accumulates(self):
        """Test that usage from several calls is summed."""
        metrics = RunMetrics()
        metrics.add_usage(LLMUsage(input_tokens=100, output_tokens=20), 0.5)
        metrics.add_usage(LLMUsage(input_tokens=50, output_tokens=10), 0.25)

        assert metrics.model_calls == 2
        assert metrics.prompt_tokens == 150
        assert metrics.completion_tokens == 30
        assert metrics.total_tokens == 180
        assert metrics.usd_cost == pytest.approx(0.75)

    def test_calculate_cost_known_model(self):
        """Test per-1k-token pricing."""
        cost = calculate_cost("claude-sonnet-4-20250514", 1000, 1000)
        assert cost == pytest.approx(0.003 + 0.015)

    def test_calculate_cost_falls_back_to_default_model(self):
        """Test that unpriced models use the default model's pricing."""
        cost = calculate_cost("unknown-model", 2000, 0, default_model="claude-3-5-haiku-20241022")
        assert cost == pytest.approx(0.0016)

    def test_calculate_cost_unpriced(self):
        """Test that unpriced models cost nothing."""
        assert calculate_cost("unknown-model", 1000, 1000) == 0.0

    def test_run_result_to_response(self):
        """Test conversion of run results to the API model."""
        metrics = RunMetrics(prompt_tokens=10, completion_tokens=5, total_tokens=15, model_calls=1)
        result = RunResult(
            run_id="run_1",
            conversation_id="conv_1",
            status="COMPLETED",
            answer="done",
            stop_reason="completed",
            iterations=1,
            metrics=metrics,
            action_record_ids=["a1"],
        )

        response = result.to_response()
        assert response.metrics.total_tokens == 15
        assert response.action_record_ids == ["a1"]


class TestRequestModels:
    """Tests for API request models."""

    def test_run_request_defaults(self):
        """Test optional run request fields."""
        request = RunRequest(project_id="p", company_id="c", prompt="Check the project")
        assert request.available_tools is None
        assert request.max_iterations is None
        assert request.conversation_id is None

    def test_run_request_requires_prompt(self):
        """Test that an empty prompt is rejected."""
        with pytest.raises(ValidationError):
            RunRequest(project_id="p", company_id="c", prompt="")

    def test_run_request_bounds_iterations(self):
        """Test the iteration bound validation."""
        with pytest.raises(ValidationError):
            RunRequest(project_id="p", company_id="c", prompt="x", max_iterations=0)

    def test_action_decision_requires_company(self):
        """Test that approvals must name a company."""
        with pytest.raises(ValidationError):
            ActionDecisionRequest.model_validate({})


class TestDomainModels:
    """Tests for project and action record models."""

    def test_action_record_defaults(self):
        """Test new action records are pending with generated IDs."""
        first = ActionRecord(project_id="p", action_type="message")
        second = ActionRecord(project_id="p", action_type="message")

        assert first.status == "pending"
        assert first.requires_approval is True
        assert first.id != second.id

    def test_action_record_rejects_unknown_type(self):
        """Test that unknown action types are rejected."""
        with pytest.raises(ValidationError):
            ActionRecord(project_id="p", action_type="teleport")

    def test_project_set_field(self):
        """Test known attributes are set directly and others land in the field map."""
        project = Project(id="p", company_id="c", project_name="Roof")
        project.set_field("next_step", "Order shingles")
        project.set_field("shingle_color", "Charcoal")

        assert project.next_step == "Order shingles"
        assert project.fields == {"shingle_color": "Charcoal"}

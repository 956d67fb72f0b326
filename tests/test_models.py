"""
Tests for canonical chat models
"""
import pytest
from pydantic import ValidationError

from chat.models import Message, ToolDefinition, ToolResult, UsageStats, accumulate_usage


class TestAccumulateUsage:
    """Tests for accumulate_usage"""

    @pytest.mark.unit
    def test_adds_counters(self):
        total = accumulate_usage(UsageStats(input_tokens=100, output_tokens=20), UsageStats(input_tokens=150, output_tokens=40))
        assert total.input_tokens == 250
        assert total.output_tokens == 60
        assert total.total_tokens is None
        assert total.effective_total() == 310

    @pytest.mark.unit
    def test_missing_operand_counts_as_zero(self):
        """None on either side is the zero record"""
        usage = UsageStats(input_tokens=7, output_tokens=3)
        assert accumulate_usage(usage, None) == usage
        assert accumulate_usage(None, usage) == usage
        assert accumulate_usage(None, None) == UsageStats()

    @pytest.mark.unit
    def test_is_commutative(self):
        a = UsageStats(input_tokens=300, output_tokens=25, total_tokens=325)
        b = UsageStats(input_tokens=10, output_tokens=5)
        assert accumulate_usage(a, b) == accumulate_usage(b, a)

    @pytest.mark.unit
    def test_total_uses_effective_totals(self):
        """A reported total on one side is combined with the other's computed total"""
        a = UsageStats(input_tokens=300, output_tokens=25, total_tokens=330)
        b = UsageStats(input_tokens=10, output_tokens=5)
        assert accumulate_usage(a, b).total_tokens == 345

    @pytest.mark.unit
    def test_negative_counters_are_rejected(self):
        with pytest.raises(ValidationError):
            UsageStats(input_tokens=-1)


class TestMessages:
    """Tests for Message constructors"""

    @pytest.mark.unit
    def test_assistant_drops_empty_tool_calls(self):
        assert Message.assistant("hi", tool_calls=[]).tool_calls is None

    @pytest.mark.unit
    def test_tool_message_from_failed_result(self):
        """Failures are flagged in metadata"""
        message = Message.tool(ToolResult(
            tool_call_id="t1", name="get-metrics", content="Error: boom", succeeded=False, error="boom",
        ))
        assert message.role == "tool"
        assert message.tool_call_id == "t1"
        assert message.name == "get-metrics"
        assert message.metadata == {"is_error": True}

    @pytest.mark.unit
    def test_messages_are_immutable(self):
        message = Message.user("hi")
        with pytest.raises(ValidationError):
            message.content = "changed"

    @pytest.mark.unit
    def test_unknown_role_is_rejected(self):
        with pytest.raises(ValidationError):
            Message(role="function", content="x")


class TestToolDefinition:
    """Tests for ToolDefinition.category"""

    @pytest.mark.unit
    @pytest.mark.parametrize("name, category", [
        ("ga4/get-traffic", "ga4"),
        ("marketing-analytics/ga4/run-report", "marketing-analytics"),
        ("clarity_heatmaps", "clarity"),
        ("get-metrics", "get-metrics"),
    ])
    def test_category(self, name, category):
        assert ToolDefinition(name=name).category == category

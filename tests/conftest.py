"""
Shared pytest fixtures for analytics-chat tests
"""
import pytest
from mcp.server.fastmcp import FastMCP

from chat.models import Completion, ToolCall, ToolDefinition, UsageStats
from chat.store import InMemoryConversationStore
from config import ProviderConfig
from providers.base import LLMProvider


class ScriptedProvider(LLMProvider):
    """Adapter double that replays queued completions and records every send."""

    name = "scripted"
    display_name = "Scripted"
    default_model = "scripted-1"

    def __init__(self, config, replies):
        super().__init__(config)
        self.replies = list(replies)
        self.requests = []

    def endpoint(self, model):
        return "https://llm.test.example.com/v1"

    def headers(self):
        return {}

    def build_request(self, history, tools, options=None):
        return {"messages": [m.model_dump() for m in history], "tools": [t.name for t in tools]}

    def parse_response(self, raw, call_id_prefix="call"):
        return Completion(**raw)

    def send(self, history, tools=None, options=None):
        self.requests.append({"history": list(history), "tools": list(tools or []), "options": options})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeRegistry:
    """Ability registry double; results may be values or exceptions."""

    def __init__(self, tools=None, results=None):
        self.tools = tools or []
        self.results = results or {}
        self.calls = []

    def list_tools(self):
        return self.tools

    def invoke(self, name, arguments):
        self.calls.append((name, arguments))
        result = self.results.get(name, "{}")
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def provider_config():
    """Configured adapter settings with no rate-limit back-off"""
    return ProviderConfig(api_key="test-key", max_retries=0, retry_base_delay=0)


@pytest.fixture
def make_provider(provider_config):
    def _make(*replies, config=None):
        return ScriptedProvider(config or provider_config, replies)
    return _make


@pytest.fixture
def make_registry():
    return FakeRegistry


@pytest.fixture
def store():
    return InMemoryConversationStore()


@pytest.fixture
def conversation_id(store):
    return store.create_conversation(user_id=1)


@pytest.fixture
def metrics_tool():
    return ToolDefinition(
        name="get-metrics",
        description="Fetch site metrics for the last N days",
        input_schema={
            "type": "object",
            "properties": {"days": {"type": "integer", "minimum": 1}},
            "required": ["days"],
        },
    )


@pytest.fixture
def analytics_tools(metrics_tool):
    """A small registry spanning several categories"""
    return [
        metrics_tool,
        ToolDefinition(name="ga4/get-traffic", description="GA4 sessions and users"),
        ToolDefinition(name="gsc/top-queries", description="Search Console top queries"),
        ToolDefinition(name="clarity_heatmaps", description="Clarity heatmap summary"),
    ]


@pytest.fixture
def text_completion():
    return Completion(
        content="hello",
        usage=UsageStats(input_tokens=10, output_tokens=5),
        stop_reason="end_turn",
    )


@pytest.fixture
def tool_completion():
    return Completion(
        content="",
        tool_calls=[ToolCall(id="t1", name="get-metrics", arguments={"days": 7})],
        usage=UsageStats(input_tokens=100, output_tokens=20),
        stop_reason="tool_use",
    )


@pytest.fixture
def mcp_server():
    """Create a fresh FastMCP server instance for testing"""
    return FastMCP("test-analytics-chat")


@pytest.fixture
def sample_anthropic_tool_response():
    return {
        "id": "msg_01",
        "type": "message",
        "role": "assistant",
        "model": "claude-sonnet-4-20250514",
        "content": [
            {"type": "text", "text": "Let me check your traffic."},
            {
                "type": "tool_use",
                "id": "toolu_01",
                "name": "ga4__get-traffic",
                "input": {"days": 30},
            },
        ],
        "stop_reason": "tool_use",
        "usage": {"input_tokens": 412, "output_tokens": 58},
    }


@pytest.fixture
def sample_openai_tool_response():
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "choices": [
            {
                "index": 0,
                "message": {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {
                            "id": "call_abc",
                            "type": "function",
                            "function": {"name": "gsc__top-queries", "arguments": "{\"limit\": 10}"},
                        }
                    ],
                },
                "finish_reason": "tool_calls",
            }
        ],
        "usage": {"prompt_tokens": 300, "completion_tokens": 25, "total_tokens": 325},
    }


@pytest.fixture
def sample_gemini_tool_response():
    return {
        "candidates": [
            {
                "content": {
                    "role": "model",
                    "parts": [
                        {"functionCall": {"name": "ga4__get-traffic", "args": {"days": 7}}},
                        {"functionCall": {"name": "gsc__top-queries", "args": {}}},
                    ],
                },
                "finishReason": "STOP",
            }
        ],
        "usageMetadata": {"promptTokenCount": 120, "candidatesTokenCount": 14, "totalTokenCount": 134},
    }

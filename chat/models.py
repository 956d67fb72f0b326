"""Canonical, provider-neutral records shared by adapters and the orchestrator."""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


Role = Literal["user", "assistant", "system", "tool"]


# ------------------------------------------------------------------------------
# Usage
# ------------------------------------------------------------------------------

class UsageStats(BaseModel):
    """Token counters normalized to input/output naming."""
    input_tokens: int = Field(0, ge=0)
    output_tokens: int = Field(0, ge=0)
    total_tokens: Optional[int] = Field(None, ge=0)

    model_config = ConfigDict(frozen=True)

    def effective_total(self) -> int:
        if self.total_tokens is not None:
            return self.total_tokens
        return self.input_tokens + self.output_tokens


def accumulate_usage(first: Optional[UsageStats], second: Optional[UsageStats]) -> UsageStats:
    """Add two usage records; a missing operand counts as the zero record."""
    a = first or UsageStats()
    b = second or UsageStats()
    total = None
    if a.total_tokens is not None or b.total_tokens is not None:
        total = a.effective_total() + b.effective_total()
    return UsageStats(
        input_tokens=a.input_tokens + b.input_tokens,
        output_tokens=a.output_tokens + b.output_tokens,
        total_tokens=total,
    )


# ------------------------------------------------------------------------------
# Tools
# ------------------------------------------------------------------------------

class ToolDefinition(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    input_schema: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    model_config = ConfigDict(frozen=True)

    @property
    def category(self) -> str:
        """Leading name segment: ``ga4/get-metrics`` -> ``ga4``, ``gsc_query`` -> ``gsc``."""
        if "/" in self.name:
            return self.name.split("/", 1)[0]
        return self.name.split("_", 1)[0]


class ToolCall(BaseModel):
    id: str
    name: str
    # An empty dict is the explicit "no arguments" value.
    arguments: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class ToolResult(BaseModel):
    tool_call_id: str
    name: str
    content: str
    succeeded: bool = True
    error: Optional[str] = None


# ------------------------------------------------------------------------------
# Messages
# ------------------------------------------------------------------------------

class Message(BaseModel):
    """One entry of a conversation. Immutable once built."""
    role: Role
    content: str = ""
    tool_calls: Optional[List[ToolCall]] = None
    tool_call_id: Optional[str] = None
    name: Optional[str] = Field(None, description="Tool name on tool-role messages")
    usage: Optional[UsageStats] = None
    metadata: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)

    @classmethod
    def assistant(
        cls,
        content: str,
        tool_calls: Optional[List[ToolCall]] = None,
        usage: Optional[UsageStats] = None,
    ) -> "Message":
        return cls(role="assistant", content=content, tool_calls=tool_calls or None, usage=usage)

    @classmethod
    def tool(cls, result: ToolResult) -> "Message":
        return cls(
            role="tool",
            content=result.content,
            tool_call_id=result.tool_call_id,
            name=result.name,
            metadata=None if result.succeeded else {"is_error": True},
        )


# ------------------------------------------------------------------------------
# Provider request/response
# ------------------------------------------------------------------------------

class RequestOptions(BaseModel):
    """Per-request overrides; unset fields fall back to the provider config."""
    system: Optional[str] = None
    model: Optional[str] = None
    max_tokens: Optional[int] = Field(None, ge=1)
    temperature: Optional[float] = Field(None, ge=0.0, le=2.0)
    call_id_prefix: str = "call"

    model_config = ConfigDict(frozen=True)


class Completion(BaseModel):
    """A parsed provider response."""
    content: str = ""
    tool_calls: Optional[List[ToolCall]] = None
    usage: Optional[UsageStats] = None
    stop_reason: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict, repr=False)


# ------------------------------------------------------------------------------
# Turn results
# ------------------------------------------------------------------------------

class FailedTool(BaseModel):
    id: str
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    error: str


class TurnResult(BaseModel):
    content: str
    tool_calls: Optional[List[ToolCall]] = None
    usage: UsageStats = Field(default_factory=UsageStats)
    failed_tools: List[FailedTool] = Field(default_factory=list)
    messages: List[Message] = Field(default_factory=list)
    tool_metadata: Dict[str, Any] = Field(default_factory=dict)


class RetryResult(BaseModel):
    tool: str
    raw_result: str
    content: str
    usage: Optional[UsageStats] = None

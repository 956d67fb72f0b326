"""Conversation orchestration: canonical model, usage accounting, store, turn driver."""
from __future__ import annotations

from .errors import (
    ChatError,
    InvalidResponseFormat,
    NameCollisionError,
    ProviderAPIError,
    ProviderError,
    ProviderNotConfigured,
    ProviderTransportError,
    ToolExecutionError,
)
from .models import (
    Completion,
    FailedTool,
    Message,
    RequestOptions,
    RetryResult,
    ToolCall,
    ToolDefinition,
    ToolResult,
    TurnResult,
    UsageStats,
    accumulate_usage,
)

__all__ = [
    "ChatError",
    "Completion",
    "FailedTool",
    "InvalidResponseFormat",
    "Message",
    "NameCollisionError",
    "ProviderAPIError",
    "ProviderError",
    "ProviderNotConfigured",
    "ProviderTransportError",
    "RequestOptions",
    "RetryResult",
    "ToolCall",
    "ToolDefinition",
    "ToolExecutionError",
    "ToolResult",
    "TurnResult",
    "UsageStats",
    "accumulate_usage",
]

"""Error taxonomy for the chat layer.

Provider errors abort a turn. Tool errors are recovered per call and end up
in the tool result and in ``TurnResult.failed_tools``.
"""
from __future__ import annotations

from typing import Any, Iterable, Optional


class ChatError(Exception):
    """Base class for every error raised by the chat layer."""


class ProviderError(ChatError):
    """A provider request could not produce a completion."""


class ProviderNotConfigured(ProviderError):
    """No credentials; raised before any network call is attempted."""

    def __init__(self, provider: str, errors: Optional[Iterable[str]] = None):
        self.provider = provider
        self.errors = list(errors or [])
        detail = "; ".join(self.errors) or f"{provider} API is not configured"
        super().__init__(detail)


class ProviderTransportError(ProviderError):
    """Network failure or timeout talking to the provider."""


class ProviderAPIError(ProviderError):
    """The provider answered with a non-success HTTP status."""

    def __init__(self, status_code: int, message: str, response: Any = None):
        self.status_code = status_code
        self.message = message
        self.response = response
        super().__init__(f"API returned status {status_code}: {message}")


class InvalidResponseFormat(ProviderError):
    """The provider body could not be decoded or lacks the expected shape."""


class ToolExecutionError(ChatError):
    """A single tool invocation failed."""

    def __init__(self, tool_name: str, message: str):
        self.tool_name = tool_name
        self.message = message
        super().__init__(message)


class NameCollisionError(ChatError):
    """Registered tool names cannot be mapped losslessly onto wire names."""

    def __init__(self, names: Iterable[str], wire_name: str):
        self.names = sorted(set(names))
        self.wire_name = wire_name
        super().__init__(
            f"Tool names {', '.join(repr(n) for n in self.names)} "
            f"cannot be encoded losslessly (wire name {wire_name!r})"
        )

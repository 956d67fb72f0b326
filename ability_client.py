"""Ability (tool) registry clients.

Two registries satisfy the same shape (``list_tools`` / ``invoke``):
- McpAbilityClient talks JSON-RPC 2.0 to a remote MCP endpoint over HTTP
- FastMCPAbilityRegistry wraps tools registered on an in-process FastMCP server
"""
from __future__ import annotations
import json, logging, itertools
from typing import Any, Dict, Iterable, List, Optional, Protocol, runtime_checkable

import requests
from mcp.server.fastmcp import FastMCP

from chat.errors import ToolExecutionError
from chat.models import ToolDefinition

log = logging.getLogger("analytics-chat")


@runtime_checkable
class AbilityRegistry(Protocol):
    """Methods may be plain or ``async``; the orchestrator accepts both."""

    def list_tools(self) -> Any: ...

    def invoke(self, name: str, arguments: Dict[str, Any]) -> Any: ...


# ------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------

def _to_definition(tool: Dict[str, Any]) -> ToolDefinition:
    return ToolDefinition(
        name=tool["name"],
        description=tool.get("description") or "",
        input_schema=tool.get("inputSchema") or {"type": "object", "properties": {}},
    )


def _content_text(result: Dict[str, Any]) -> str:
    items = result.get("content") if isinstance(result, dict) else None
    texts = [
        item.get("text", "") for item in items or []
        if isinstance(item, dict) and item.get("type") == "text"
    ]
    return "\n\n".join(t for t in texts if t)


def format_tool_result(tool_name: str, result: Any) -> str:
    """Render a tool result as model-readable text."""
    formatted = f"Tool: {tool_name}\n\n"

    if isinstance(result, dict) and isinstance(result.get("content"), list):
        text = _content_text(result)
        if text:
            formatted += text + "\n\n"
        elif result.get("structuredContent") is not None:
            formatted += json.dumps(result["structuredContent"], indent=2, default=str) + "\n"
    elif isinstance(result, str):
        formatted += result + "\n"
    else:
        formatted += json.dumps(result, indent=2, default=str) + "\n"

    return formatted


def filter_tools(tools: Iterable[ToolDefinition], enabled_categories: Iterable[str] = ("all",)) -> List[ToolDefinition]:
    """Keep tools whose category is enabled; ``all`` keeps everything."""
    enabled = {c.lower() for c in enabled_categories}
    tools = list(tools)
    if "all" in enabled:
        return tools
    return [t for t in tools if t.category.lower() in enabled]


# ------------------------------------------------------------------------------
# Remote registry (JSON-RPC over HTTP)
# ------------------------------------------------------------------------------

class McpAbilityClient:
    """Lists and calls tools on a remote MCP server."""

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        if not url:
            raise RuntimeError("Set ABILITIES_MCP_URL to the MCP endpoint that exposes the analytics tools")
        self.url = url
        self.timeout = timeout
        self.token = token or ""
        self._ids = itertools.count(1)
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "Content-Type": "application/json",
        })
        if self.token:
            self.session.headers["Authorization"] = self.token

    def _handle(self, r: requests.Response) -> Dict[str, Any]:
        """Uniform HTTP handler with token redaction."""
        try:
            r.raise_for_status()
        except requests.HTTPError as e:
            body = (r.text or "")[:2000]
            redacted = body.replace(self.token, "***REDACTED***") if self.token else body
            raise RuntimeError(f"MCP server returned HTTP {r.status_code}: {redacted}") from e
        try:
            data = r.json()
        except ValueError as e:
            raise RuntimeError("Invalid JSON response from MCP server") from e
        if not isinstance(data, dict):
            raise RuntimeError("Invalid response from MCP server")
        return data

    def _rpc(self, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            r = self.session.post(self.url, data=json.dumps(body), timeout=self.timeout)
        except requests.RequestException as e:
            raise RuntimeError(f"MCP request failed: {e}") from e
        return self._handle(r)

    def list_tools(self) -> List[ToolDefinition]:
        """
        POST tools/list
        """
        data = self._rpc("tools/list", {})
        tools = (data.get("result") or {}).get("tools")
        if not isinstance(tools, list):
            raise RuntimeError("Invalid response from MCP server")
        return [_to_definition(t) for t in tools if isinstance(t, dict) and t.get("name")]

    def invoke(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Any:
        """
        POST tools/call
        Returns the raw MCP result; failures raise ToolExecutionError.
        """
        try:
            data = self._rpc("tools/call", {"name": name, "arguments": arguments or {}})
        except RuntimeError as e:
            raise ToolExecutionError(name, str(e)) from e

        if isinstance(data.get("error"), dict):
            raise ToolExecutionError(name, data["error"].get("message") or "Tool execution failed")
        result = data.get("result")
        if result is None:
            raise ToolExecutionError(name, "Invalid response from MCP server")
        if isinstance(result, dict) and result.get("isError"):
            raise ToolExecutionError(name, _content_text(result) or "Tool execution failed")
        return result


# ------------------------------------------------------------------------------
# In-process registry (FastMCP)
# ------------------------------------------------------------------------------

class FastMCPAbilityRegistry:
    """Exposes tools registered with ``@mcp.tool()`` on a FastMCP instance."""

    def __init__(self, mcp: FastMCP):
        self.mcp = mcp

    async def list_tools(self) -> List[ToolDefinition]:
        tools = await self.mcp.list_tools()
        return [
            ToolDefinition(
                name=t.name,
                description=t.description or "",
                input_schema=t.inputSchema or {"type": "object", "properties": {}},
            )
            for t in tools
        ]

    async def invoke(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            result = await self.mcp.call_tool(name, arguments or {})
        except Exception as e:
            raise ToolExecutionError(name, str(e)) from e
        return _normalize_fastmcp_result(result)


def _normalize_fastmcp_result(result: Any) -> Dict[str, Any]:
    """FastMCP returns content blocks, a structured dict, or (blocks, structured)."""
    structured = None
    if isinstance(result, tuple):
        result, structured = result
    if isinstance(result, dict):
        return {"content": [], "structuredContent": result}

    content = []
    for block in result or []:
        content.append(block.model_dump(exclude_none=True) if hasattr(block, "model_dump") else block)
    normalized: Dict[str, Any] = {"content": content}
    if structured is not None:
        normalized["structuredContent"] = structured
    return normalized

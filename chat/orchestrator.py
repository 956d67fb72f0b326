"""Drives one user turn through completion, tool execution and follow-up."""
from __future__ import annotations

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from ability_client import AbilityRegistry, filter_tools, format_tool_result
from providers.base import LLMProvider
from providers.tool_converter import validate_tool_names
from .errors import ProviderError, ProviderNotConfigured, ToolExecutionError
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
    accumulate_usage,
)
from .store import ConversationStore

log = logging.getLogger("analytics-chat")

SUMMARY_PROMPT = (
    "Here's the result from the {tool} tool. Please provide a brief, helpful summary:\n\n{result}"
)


class TurnState(str, Enum):
    AWAITING_COMPLETION = "awaiting_completion"
    TOOL_CALLS_DETECTED = "tool_calls_detected"
    EXECUTING_TOOLS = "executing_tools"
    AWAITING_FOLLOW_UP = "awaiting_follow_up"
    DONE = "done"
    ADAPTER_ERROR = "adapter_error"


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def _call_blocking(fn: Callable[..., Any], *args: Any) -> Any:
    """Await coroutine functions; run plain callables in a worker thread."""
    if inspect.iscoroutinefunction(fn):
        return await fn(*args)
    return await _maybe_await(await asyncio.to_thread(fn, *args))


class Orchestrator:
    """One provider, one ability registry, one conversation store.

    The caller serializes turns per conversation; different conversations
    may run concurrently.
    """

    def __init__(
        self,
        provider: LLMProvider,
        registry: AbilityRegistry,
        store: ConversationStore,
        enabled_tool_categories: Iterable[str] = ("all",),
        concurrent_tools: bool = True,
        options: Optional[RequestOptions] = None,
    ):
        self.provider = provider
        self.registry = registry
        self.store = store
        self.enabled_tool_categories = tuple(enabled_tool_categories)
        self.concurrent_tools = concurrent_tools
        self.options = options or RequestOptions()
        self._tools: Optional[List[ToolDefinition]] = None

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------
    async def load_tools(self) -> List[ToolDefinition]:
        """List the registry once and check every name survives the wire codec."""
        if self._tools is not None:
            return self._tools
        try:
            tools = list(await _call_blocking(self.registry.list_tools))
        except Exception:
            log.warning("Ability registry unavailable; continuing without tools", exc_info=True)
            return []
        validate_tool_names(tools, self.provider.max_tool_name_length)
        self._tools = tools
        log.info("Loaded %d tools from the ability registry", len(tools))
        return tools

    async def _invoke_tool(self, name: str, arguments: Dict[str, Any]) -> Any:
        try:
            return await _call_blocking(self.registry.invoke, name, arguments)
        except ToolExecutionError:
            raise
        except Exception as e:
            raise ToolExecutionError(name, str(e) or type(e).__name__) from e

    async def _execute_tool(self, conversation_id: int, call: ToolCall) -> ToolResult:
        log.info("Executing tool: %s", call.name)
        try:
            raw = await self._invoke_tool(call.name, call.arguments)
            result = ToolResult(
                tool_call_id=call.id,
                name=call.name,
                content=format_tool_result(call.name, raw),
            )
        except ToolExecutionError as e:
            log.warning("Tool %s failed: %s", call.name, e.message)
            result = ToolResult(
                tool_call_id=call.id,
                name=call.name,
                content=f"Error: {e.message}",
                succeeded=False,
                error=e.message,
            )
        await _maybe_await(self.store.append(conversation_id, Message.tool(result)))
        return result

    async def _execute_tools(self, conversation_id: int, calls: List[ToolCall]) -> List[ToolResult]:
        if self.concurrent_tools and len(calls) > 1:
            return list(await asyncio.gather(*(self._execute_tool(conversation_id, c) for c in calls)))
        return [await self._execute_tool(conversation_id, c) for c in calls]

    # ------------------------------------------------------------------
    # Provider
    # ------------------------------------------------------------------
    async def _complete(self, history: List[Message], tools: List[ToolDefinition], call_id_prefix: str) -> Completion:
        options = self.options.model_copy(update={"call_id_prefix": call_id_prefix})
        return await asyncio.to_thread(self.provider.send, history, tools, options)

    async def _history(self, conversation_id: int) -> List[Message]:
        return list(await _maybe_await(self.store.list(conversation_id)))

    def _ensure_configured(self) -> None:
        if not self.provider.is_configured():
            raise ProviderNotConfigured(self.provider.display_name, self.provider.configuration_errors())

    # ------------------------------------------------------------------
    # Turn
    # ------------------------------------------------------------------
    async def run_turn(self, conversation_id: int, text: str) -> TurnResult:
        """Answer one user message, running any requested tools once.

        Provider errors propagate; whatever was appended before the failure
        stays in the conversation.
        """
        self._ensure_configured()
        state = TurnState.AWAITING_COMPLETION
        try:
            await _maybe_await(self.store.append(conversation_id, Message.user(text)))

            available = await self.load_tools()
            tools = filter_tools(available, self.enabled_tool_categories)
            tool_metadata = {
                "total_available": len(available),
                "tools_sent": len(tools),
                "filtered": len(available) != len(tools),
            }

            history = await self._history(conversation_id)
            prefix = f"call_{len(history)}"
            first = await self._complete(history, tools, prefix)

            if not first.tool_calls:
                answer = Message.assistant(first.content, usage=first.usage)
                await _maybe_await(self.store.append(conversation_id, answer))
                state = TurnState.DONE
                return TurnResult(
                    content=first.content,
                    usage=accumulate_usage(first.usage, None),
                    messages=[answer],
                    tool_metadata=tool_metadata,
                )

            state = TurnState.TOOL_CALLS_DETECTED
            request = Message.assistant(first.content, tool_calls=first.tool_calls, usage=first.usage)
            await _maybe_await(self.store.append(conversation_id, request))

            state = TurnState.EXECUTING_TOOLS
            results = await self._execute_tools(conversation_id, first.tool_calls)

            # No tools on the follow-up: one tool round per turn
            state = TurnState.AWAITING_FOLLOW_UP
            history = await self._history(conversation_id)
            follow_up = await self._complete(history, [], f"{prefix}_followup")
            if follow_up.tool_calls:
                log.warning("Ignoring %d tool calls in follow-up response", len(follow_up.tool_calls))

            usage = accumulate_usage(first.usage, follow_up.usage)
            answer = Message.assistant(follow_up.content, usage=usage)
            await _maybe_await(self.store.append(conversation_id, answer))
            state = TurnState.DONE
        except ProviderError as e:
            log.error("Turn on conversation %s failed in state %s: %s", conversation_id, state.value, e)
            state = TurnState.ADAPTER_ERROR
            raise
        finally:
            log.debug("Conversation %s turn ended in state %s", conversation_id, state.value)

        calls_by_id = {call.id: call for call in first.tool_calls}
        failed = [
            FailedTool(
                id=result.tool_call_id,
                name=result.name,
                arguments=calls_by_id[result.tool_call_id].arguments,
                error=result.error or result.content,
            )
            for result in results
            if not result.succeeded
        ]

        return TurnResult(
            content=follow_up.content,
            tool_calls=first.tool_calls,
            usage=usage,
            failed_tools=failed,
            messages=([request] if first.content else []) + [answer],
            tool_metadata=tool_metadata,
        )

    # ------------------------------------------------------------------
    # Retry
    # ------------------------------------------------------------------
    async def retry_tool(
        self,
        tool_name: str,
        arguments: Optional[Dict[str, Any]] = None,
        summarize: bool = True,
    ) -> RetryResult:
        """Run one tool outside any conversation and optionally summarise it.

        Raises ToolExecutionError when the tool fails. A failed or unavailable
        summary falls back to the formatted result.
        """
        raw = await self._invoke_tool(tool_name, arguments or {})
        formatted = format_tool_result(tool_name, raw)

        if not summarize or not self.provider.is_configured():
            return RetryResult(tool=tool_name, raw_result=formatted, content=formatted)

        prompt = SUMMARY_PROMPT.format(tool=tool_name, result=formatted)
        try:
            completion = await self._complete([Message.user(prompt)], [], "retry")
        except ProviderError as e:
            log.warning("Could not summarise %s result: %s", tool_name, e)
            return RetryResult(tool=tool_name, raw_result=formatted, content=formatted)

        return RetryResult(
            tool=tool_name,
            raw_result=formatted,
            content=completion.content or formatted,
            usage=completion.usage,
        )

"""Anthropic (Claude) Messages API adapter."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from chat.errors import InvalidResponseFormat
from chat.models import Completion, Message, RequestOptions, ToolDefinition, UsageStats
from .base import LLMProvider
from .tool_converter import encode_tool_name, to_anthropic

log = logging.getLogger("analytics-chat")

API_ENDPOINT = "https://api.anthropic.com/v1/messages"
API_VERSION = "2023-06-01"
DEFAULT_MODEL = "claude-sonnet-4-20250514"


class AnthropicProvider(LLMProvider):
    """Tool calls and tool results travel as typed content blocks.

    The system prompt is a top-level field; tool results become ``tool_result``
    blocks inside the next user turn.
    """

    name = "anthropic"
    display_name = "Claude (Anthropic)"
    default_model = DEFAULT_MODEL

    def endpoint(self, model: str) -> str:
        return self.config.base_url or API_ENDPOINT

    def headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.config.api_key,
            "anthropic-version": API_VERSION,
        }

    # ------------------------------------------------------------------
    # Request
    # ------------------------------------------------------------------
    def build_request(
        self,
        history: List[Message],
        tools: List[ToolDefinition],
        options: Optional[RequestOptions] = None,
    ) -> Dict[str, Any]:
        options = options or RequestOptions()
        messages = self._format_messages(history)
        body: Dict[str, Any] = {
            "model": options.model or self.model,
            "max_tokens": self._max_tokens(options),
            "system": self._system_text(history, options),
            "messages": messages,
        }

        temperature = self._temperature(options)
        if temperature is not None:
            body["temperature"] = temperature

        if tools:
            body["tools"] = to_anthropic(tools, self.max_tool_name_length)
        else:
            # tool_use/tool_result blocks need their tools declared; offer none of them
            referenced = self._referenced_tool_names(messages)
            if referenced:
                body["tools"] = [
                    {"name": name, "description": "", "input_schema": {"type": "object", "properties": {}}}
                    for name in referenced
                ]
                body["tool_choice"] = {"type": "none"}
        return body

    def _format_messages(self, history: List[Message]) -> List[dict]:
        formatted: List[dict] = []

        for message in history:
            # System messages are folded into the top-level system field
            if message.role == "system":
                continue

            if message.role == "tool":
                block: Dict[str, Any] = {
                    "type": "tool_result",
                    "tool_use_id": message.tool_call_id or "unknown",
                    "content": message.content,
                }
                if message.metadata and message.metadata.get("is_error"):
                    block["is_error"] = True
                # Results of one assistant turn share a single user turn
                if formatted and self._is_tool_result_turn(formatted[-1]):
                    formatted[-1]["content"].append(block)
                else:
                    formatted.append({"role": "user", "content": [block]})
                continue

            if message.tool_calls:
                content: List[dict] = []
                if message.content:
                    content.append({"type": "text", "text": message.content})
                for call in message.tool_calls:
                    content.append({
                        "type": "tool_use",
                        "id": call.id,
                        "name": encode_tool_name(call.name, self.max_tool_name_length),
                        "input": call.arguments,
                    })
                formatted.append({"role": message.role, "content": content})
                continue

            # The Messages API rejects empty assistant turns; neighbouring user turns merge
            if message.role == "assistant" and not message.content:
                continue

            formatted.append({"role": message.role, "content": message.content})

        return formatted

    @staticmethod
    def _is_tool_result_turn(turn: dict) -> bool:
        content = turn.get("content")
        return (
            turn.get("role") == "user"
            and isinstance(content, list)
            and all(b.get("type") == "tool_result" for b in content)
        )

    @staticmethod
    def _referenced_tool_names(messages: List[dict]) -> List[str]:
        names: List[str] = []
        for turn in messages:
            if not isinstance(turn.get("content"), list):
                continue
            for block in turn["content"]:
                if block.get("type") == "tool_use" and block["name"] not in names:
                    names.append(block["name"])
        return names

    # ------------------------------------------------------------------
    # Response
    # ------------------------------------------------------------------
    def parse_response(self, raw: Dict[str, Any], call_id_prefix: str = "call") -> Completion:
        blocks = raw.get("content") or []
        if not isinstance(blocks, list):
            raise InvalidResponseFormat("Claude response 'content' is not a list of blocks")

        text_parts = [
            b["text"] for b in blocks
            if isinstance(b, dict) and b.get("type") == "text" and b.get("text")
        ]
        raw_calls = [
            (b.get("id"), b.get("name", ""), b.get("input"))
            for b in blocks
            if isinstance(b, dict) and b.get("type") == "tool_use"
        ]

        return Completion(
            content="\n\n".join(text_parts),
            tool_calls=self._build_tool_calls(raw_calls, call_id_prefix),
            usage=self._parse_usage(raw.get("usage")),
            stop_reason=raw.get("stop_reason"),
            raw=raw,
        )

    @staticmethod
    def _parse_usage(usage: Any) -> Optional[UsageStats]:
        if not isinstance(usage, dict) or not usage:
            return None
        return UsageStats(
            input_tokens=usage.get("input_tokens") or 0,
            output_tokens=usage.get("output_tokens") or 0,
        )

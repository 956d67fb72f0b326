"""OpenAI Chat Completions API adapter."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from chat.errors import InvalidResponseFormat
from chat.models import Completion, Message, RequestOptions, ToolDefinition, UsageStats
from .base import LLMProvider
from .tool_converter import encode_tool_name, to_openai

log = logging.getLogger("analytics-chat")

API_ENDPOINT = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-5.1"

# Reasoning models reject a custom temperature
NO_TEMPERATURE_PREFIXES = ("o1", "o1-mini", "o1-preview", "o3-mini", "gpt-5-mini")


def model_supports_temperature(model: str) -> bool:
    return not any(model.startswith(prefix) for prefix in NO_TEMPERATURE_PREFIXES)


class OpenAIProvider(LLMProvider):
    """Tool results are first-class ``tool`` messages keyed by ``tool_call_id``."""

    name = "openai"
    display_name = "OpenAI GPT"
    default_model = DEFAULT_MODEL
    max_tool_name_length = 64

    def endpoint(self, model: str) -> str:
        return self.config.base_url or API_ENDPOINT

    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.config.api_key}"}

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
        model = options.model or self.model
        body: Dict[str, Any] = {
            "model": model,
            "messages": self._format_messages(history, options),
            "max_completion_tokens": self._max_tokens(options),
        }

        temperature = self._temperature(options)
        if temperature is not None and model_supports_temperature(model):
            body["temperature"] = temperature

        if tools:
            body["tools"] = to_openai(tools, self.max_tool_name_length)
            log.debug("OpenAI: sending %d tools", len(body["tools"]))
        return body

    def _format_messages(self, history: List[Message], options: RequestOptions) -> List[dict]:
        formatted: List[dict] = [{"role": "system", "content": self._system_text(history, options)}]

        for message in history:
            if message.role == "system":
                continue

            if message.role == "tool":
                formatted.append({
                    "role": "tool",
                    "tool_call_id": message.tool_call_id or "unknown",
                    "content": message.content,
                })
                continue

            entry: Dict[str, Any] = {"role": message.role, "content": message.content}
            if message.tool_calls:
                entry["content"] = message.content or None
                entry["tool_calls"] = [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {
                            "name": encode_tool_name(call.name, self.max_tool_name_length),
                            # OpenAI wants the arguments as a JSON string
                            "arguments": json.dumps(call.arguments),
                        },
                    }
                    for call in message.tool_calls
                ]
            formatted.append(entry)

        return formatted

    # ------------------------------------------------------------------
    # Response
    # ------------------------------------------------------------------
    def parse_response(self, raw: Dict[str, Any], call_id_prefix: str = "call") -> Completion:
        choices = raw.get("choices")
        if not isinstance(choices, list) or not choices:
            raise InvalidResponseFormat("OpenAI response contains no choices")
        choice = choices[0] if isinstance(choices[0], dict) else {}
        message = choice.get("message") or {}

        raw_calls = []
        for call in message.get("tool_calls") or []:
            function = call.get("function") or {}
            raw_calls.append((call.get("id"), function.get("name", ""), function.get("arguments")))

        return Completion(
            content=self._extract_text(message.get("content")),
            tool_calls=self._build_tool_calls(raw_calls, call_id_prefix),
            usage=self._parse_usage(raw.get("usage")),
            stop_reason=choice.get("finish_reason"),
            raw=raw,
        )

    @staticmethod
    def _extract_text(content: Any) -> str:
        if content is None:
            return ""
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts = [
                p.get("text", "") for p in content
                if isinstance(p, dict) and p.get("type") in ("text", "output_text") and p.get("text")
            ]
            return "\n\n".join(parts)
        raise InvalidResponseFormat(f"Unexpected OpenAI message content type: {type(content).__name__}")

    @staticmethod
    def _parse_usage(usage: Any) -> Optional[UsageStats]:
        # prompt/completion naming normalized to input/output
        if not isinstance(usage, dict) or not usage:
            return None
        return UsageStats(
            input_tokens=usage.get("prompt_tokens") or 0,
            output_tokens=usage.get("completion_tokens") or 0,
            total_tokens=usage.get("total_tokens"),
        )

"""Google Gemini generateContent API adapter."""
from __future__ import annotations

import bisect
import logging
from typing import Any, Dict, List, Optional

from chat.errors import InvalidResponseFormat
from chat.models import Completion, Message, RequestOptions, ToolDefinition, UsageStats
from .base import LLMProvider
from .tool_converter import encode_tool_name, to_gemini

log = logging.getLogger("analytics-chat")

API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_MODEL = "gemini-2.5-pro"


class GeminiProvider(LLMProvider):
    """Gemini uses ``user``/``model`` roles and ``function`` turns for tool results.

    Function calls carry no ids, so ids are synthesized from the request's
    ``call_id_prefix`` and the call's position in the response.
    """

    name = "gemini"
    display_name = "Google Gemini"
    default_model = DEFAULT_MODEL
    max_tool_name_length = 64

    def endpoint(self, model: str) -> str:
        base = (self.config.base_url or API_BASE).rstrip("/")
        return f"{base}/{model}:generateContent"

    def headers(self) -> Dict[str, str]:
        return {"x-goog-api-key": self.config.api_key}

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
        body: Dict[str, Any] = {
            "contents": self._format_messages(history),
            "systemInstruction": {"parts": [{"text": self._system_text(history, options)}]},
        }

        generation_config: Dict[str, Any] = {"maxOutputTokens": self._max_tokens(options)}
        temperature = self._temperature(options)
        if temperature is not None:
            generation_config["temperature"] = temperature
        body["generationConfig"] = generation_config

        if tools:
            declarations = to_gemini(tools, self.max_tool_name_length)
            body["tools"] = [{"functionDeclarations": declarations}]
            log.debug("Gemini: sending %d function declarations", len(declarations))
        return body

    def _format_messages(self, history: List[Message]) -> List[dict]:
        """Translate history into ``contents``.

        Gemini pairs each functionResponse with a functionCall by position, so
        the parts of a function turn follow the call order of the model turn
        before it, whatever order the results were stored in.
        """
        contents: List[dict] = []
        call_order: Dict[str, int] = {}
        positions: List[int] = []

        for message in history:
            if message.role == "system":
                continue

            if message.role == "tool":
                part = {
                    "functionResponse": {
                        "name": encode_tool_name(message.name or "unknown", self.max_tool_name_length),
                        "response": {"result": message.content},
                    }
                }
                # One function turn answers all calls of the preceding model turn
                if not contents or contents[-1]["role"] != "function":
                    contents.append({"role": "function", "parts": []})
                    positions = []
                position = call_order.get(message.tool_call_id or "", len(call_order))
                index = bisect.bisect_right(positions, position)
                positions.insert(index, position)
                contents[-1]["parts"].insert(index, part)
                continue

            role = "model" if message.role == "assistant" else message.role
            parts: List[dict] = []
            if message.tool_calls:
                call_order = {call.id: i for i, call in enumerate(message.tool_calls)}
                if message.content:
                    parts.append({"text": message.content})
                for call in message.tool_calls:
                    parts.append({
                        "functionCall": {
                            "name": encode_tool_name(call.name, self.max_tool_name_length),
                            "args": call.arguments,
                        }
                    })
            else:
                parts.append({"text": message.content})

            contents.append({"role": role, "parts": parts})

        return contents

    # ------------------------------------------------------------------
    # Response
    # ------------------------------------------------------------------
    def parse_response(self, raw: Dict[str, Any], call_id_prefix: str = "call") -> Completion:
        usage = self._parse_usage(raw.get("usageMetadata"))
        candidates = raw.get("candidates")

        if not candidates:
            feedback = raw.get("promptFeedback")
            if isinstance(feedback, dict):
                # Prompt was blocked before any candidate was generated
                return Completion(content="", usage=usage, stop_reason=feedback.get("blockReason"), raw=raw)
            raise InvalidResponseFormat("Gemini response contains no candidates")
        if not isinstance(candidates, list) or not isinstance(candidates[0], dict):
            raise InvalidResponseFormat("Gemini response 'candidates' is malformed")

        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []

        text_parts = [p["text"] for p in parts if isinstance(p, dict) and p.get("text")]
        raw_calls = []
        for part in parts:
            if isinstance(part, dict) and isinstance(part.get("functionCall"), dict):
                call = part["functionCall"]
                raw_calls.append((call.get("id"), call.get("name", ""), call.get("args")))

        return Completion(
            content="\n\n".join(text_parts),
            tool_calls=self._build_tool_calls(raw_calls, call_id_prefix),
            usage=usage,
            stop_reason=candidate.get("finishReason"),
            raw=raw,
        )

    @staticmethod
    def _parse_usage(usage: Any) -> Optional[UsageStats]:
        if not isinstance(usage, dict) or not usage:
            return None
        return UsageStats(
            input_tokens=usage.get("promptTokenCount") or 0,
            output_tokens=usage.get("candidatesTokenCount") or 0,
            total_tokens=usage.get("totalTokenCount"),
        )

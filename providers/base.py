"""Abstract base class for LLM provider adapters."""
from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Tuple

import requests

from chat.errors import (
    InvalidResponseFormat,
    ProviderAPIError,
    ProviderNotConfigured,
    ProviderTransportError,
)
from chat.models import Completion, Message, RequestOptions, ToolCall, ToolDefinition
from config import ProviderConfig
from .tool_converter import MAX_TOOL_NAME_LENGTH, decode_tool_name

log = logging.getLogger("analytics-chat")

# (call id or None, wire function name, arguments)
RawToolCall = Tuple[Optional[str], str, Any]


class LLMProvider(ABC):
    """Interface that each LLM provider must implement.

    An adapter is a stateless translator between the canonical model and one
    backend's wire format:
    - ``build_request`` turns history + tools into the provider's JSON body
    - ``parse_response`` turns the provider's JSON into a ``Completion``
    - ``send`` glues both around a single HTTP POST

    Transport problems never escape as ``requests`` exceptions; they are
    mapped onto the ``ProviderError`` family.
    """

    name: str = ""
    display_name: str = ""
    default_model: str = ""
    max_tool_name_length: int = MAX_TOOL_NAME_LENGTH

    def __init__(self, config: Optional[ProviderConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or ProviderConfig()
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "Content-Type": "application/json",
        })

    @property
    def model(self) -> str:
        return self.config.model or self.default_model

    # ------------------------------------------------------------------
    # Wire translation (per backend)
    # ------------------------------------------------------------------
    @abstractmethod
    def endpoint(self, model: str) -> str:
        ...

    @abstractmethod
    def headers(self) -> Dict[str, str]:
        ...

    @abstractmethod
    def build_request(
        self,
        history: List[Message],
        tools: List[ToolDefinition],
        options: Optional[RequestOptions] = None,
    ) -> Dict[str, Any]:
        """Serialize canonical history and tool definitions into a request body."""

    @abstractmethod
    def parse_response(self, raw: Dict[str, Any], call_id_prefix: str = "call") -> Completion:
        """Extract text, decoded tool calls, usage and stop reason."""

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    def is_configured(self) -> bool:
        return bool(self.config.api_key)

    def configuration_errors(self) -> List[str]:
        errors = []
        if not self.config.api_key:
            errors.append(f"{self.display_name} API key is not configured")
        return errors

    # ------------------------------------------------------------------
    # Request cycle
    # ------------------------------------------------------------------
    def send(
        self,
        history: List[Message],
        tools: Optional[List[ToolDefinition]] = None,
        options: Optional[RequestOptions] = None,
    ) -> Completion:
        if not self.is_configured():
            raise ProviderNotConfigured(self.display_name, self.configuration_errors())

        options = options or RequestOptions()
        model = options.model or self.model
        body = self.build_request(history, list(tools or []), options)
        log.info(
            "%s API call (model %s, %d messages, %d tools)",
            self.display_name, model, len(history), len(tools or []),
        )
        raw = self._call_with_retry(self.endpoint(model), body)
        return self.parse_response(raw, options.call_id_prefix)

    def _call_with_retry(self, url: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """POST with exponential back-off on HTTP 429."""
        max_retries = self.config.max_retries

        for attempt in range(max_retries + 1):
            try:
                return self._post(url, body)
            except ProviderAPIError as e:
                if e.status_code != 429 or attempt == max_retries:
                    log.error("%s API error: %s", self.display_name, e)
                    raise
                delay = min(self.config.retry_base_delay * (2 ** attempt), 90)
                log.warning(
                    "Rate limited. Waiting %.1fs before retry %d/%d",
                    delay, attempt + 2, max_retries + 1,
                )
                time.sleep(delay)
            except ProviderTransportError:
                log.error("%s transport error", self.display_name, exc_info=True)
                raise

        raise RuntimeError("Unexpected: retry loop completed without return")

    def _post(self, url: str, body: Dict[str, Any]) -> Dict[str, Any]:
        payload = json.dumps(body)
        log.debug("%s request to %s: %s", self.display_name, url, payload[:2000])

        try:
            r = self.session.post(url, data=payload, headers=self.headers(), timeout=self.config.timeout)
        except requests.Timeout as e:
            raise ProviderTransportError(
                f"{self.display_name} request timed out after {self.config.timeout:g}s"
            ) from e
        except requests.RequestException as e:
            raise ProviderTransportError(f"API request failed: {self._redact(str(e))}") from e

        log.debug("%s response status: %s", self.display_name, r.status_code)
        if not 200 <= r.status_code < 300:
            body_text = self._redact((r.text or "")[:2000])
            log.debug("%s error response: %s", self.display_name, body_text)
            try:
                decoded = r.json()
            except ValueError:
                decoded = None
            raise ProviderAPIError(r.status_code, self._error_message(decoded, body_text), decoded)

        try:
            decoded = r.json()
        except ValueError as e:
            raise InvalidResponseFormat("Invalid JSON response from API") from e
        if not isinstance(decoded, dict):
            raise InvalidResponseFormat(f"Expected a JSON object from API, got {type(decoded).__name__}")
        return decoded

    # ------------------------------------------------------------------
    # Helpers shared by the adapters
    # ------------------------------------------------------------------
    @staticmethod
    def _error_message(decoded: Any, fallback: str) -> str:
        if isinstance(decoded, dict):
            error = decoded.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if decoded.get("message"):
                return str(decoded["message"])
        elif isinstance(decoded, list) and decoded and isinstance(decoded[0], dict):
            # Google occasionally wraps the error object in a list
            return LLMProvider._error_message(decoded[0], fallback)
        return fallback or "Unknown error"

    def _redact(self, text: str) -> str:
        key = self.config.api_key
        return text.replace(key, "***REDACTED***") if key else text

    def _system_text(self, history: Iterable[Message], options: RequestOptions) -> str:
        """Configured system prompt followed by any system-role messages."""
        parts = [options.system or self.config.system_prompt]
        parts.extend(m.content for m in history if m.role == "system" and m.content)
        return "\n\n".join(p for p in parts if p)

    def _temperature(self, options: RequestOptions) -> Optional[float]:
        return options.temperature if options.temperature is not None else self.config.temperature

    def _max_tokens(self, options: RequestOptions) -> int:
        return options.max_tokens or self.config.max_tokens

    @staticmethod
    def _coerce_arguments(value: Any, tool_name: str) -> Dict[str, Any]:
        """Tool arguments are always an object; absent arguments are ``{}``."""
        if value is None or value == "":
            return {}
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as e:
                raise InvalidResponseFormat(
                    f"Tool call {tool_name!r} carried undecodable arguments: {e}"
                ) from e
            if value is None:
                return {}
        if not isinstance(value, dict):
            raise InvalidResponseFormat(
                f"Tool call {tool_name!r} arguments must be an object, got {type(value).__name__}"
            )
        return value

    @staticmethod
    def _build_tool_calls(raw_calls: List[RawToolCall], prefix: str) -> Optional[List[ToolCall]]:
        """Decode names, fill in missing ids and keep ids unique within the turn."""
        calls: List[ToolCall] = []
        used: set = set()
        for index, (call_id, wire_name, arguments) in enumerate(raw_calls):
            call_id = call_id or f"{prefix}_{index}"
            if call_id in used:
                call_id = f"{call_id}_{index}"
            used.add(call_id)
            name = decode_tool_name(wire_name)
            calls.append(ToolCall(
                id=call_id,
                name=name,
                arguments=LLMProvider._coerce_arguments(arguments, name),
            ))
        return calls or None

"""LLM provider factory.

Maps a ProviderKind onto its adapter class. Configuration is passed in
explicitly; when omitted it is loaded from the environment via
``config.load_provider_config`` (see .env.example for the variable names).
"""
from __future__ import annotations

import logging
from typing import Dict, Optional, Type

from config import ProviderConfig, ProviderKind, load_provider_config
from .anthropic_provider import AnthropicProvider
from .base import LLMProvider
from .gemini_provider import GeminiProvider
from .openai_provider import OpenAIProvider

log = logging.getLogger("analytics-chat")

PROVIDERS: Dict[ProviderKind, Type[LLMProvider]] = {
    ProviderKind.ANTHROPIC: AnthropicProvider,
    ProviderKind.OPENAI: OpenAIProvider,
    ProviderKind.GEMINI: GeminiProvider,
}

SUPPORTED_PROVIDERS = tuple(kind.value for kind in PROVIDERS)


def get_provider(kind: "str | ProviderKind", config: Optional[ProviderConfig] = None) -> LLMProvider:
    """Return an adapter instance for *kind*.

    Args:
        kind: A ProviderKind or one of "anthropic" (alias "claude"), "openai", "gemini".
        config: Explicit adapter settings; read from env vars when omitted.
    """
    kind = ProviderKind.parse(kind)
    if config is None:
        config = load_provider_config(kind)

    provider = PROVIDERS[kind](config)
    log.info("Using %s provider, model: %s", provider.display_name, provider.model)
    if not provider.is_configured():
        log.warning("%s", "; ".join(provider.configuration_errors()))
    return provider


__all__ = [
    "AnthropicProvider",
    "GeminiProvider",
    "LLMProvider",
    "OpenAIProvider",
    "PROVIDERS",
    "SUPPORTED_PROVIDERS",
    "get_provider",
]

from __future__ import annotations
import os
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

# Load env from a local .env (works whether launched from the project dir or by an MCP host)
load_dotenv()
load_dotenv(dotenv_path=Path(__file__).parent / ".env", override=False)

# ------------------------------------------------------------------------------
# Defaults
# ------------------------------------------------------------------------------

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant with access to marketing analytics data from "
    "Google Analytics 4, Google Search Console, and Microsoft Clarity. Use the available "
    "tools to answer questions about website performance, user behavior, and marketing "
    "metrics. Provide clear, actionable insights based on the data."
)

DEFAULT_MAX_TOKENS = 4096
DEFAULT_TEMPERATURE = 0.7
DEFAULT_TIMEOUT = 60.0


class ProviderKind(str, Enum):
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    GEMINI = "gemini"

    @classmethod
    def parse(cls, value: "str | ProviderKind") -> "ProviderKind":
        if isinstance(value, ProviderKind):
            return value
        normalized = value.lower().strip()
        normalized = _ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            supported = ", ".join(k.value for k in cls)
            raise ValueError(
                f"Unknown LLM_PROVIDER: {value!r}. Supported providers: {supported}"
            ) from None


_ALIASES = {"claude": "anthropic", "chatgpt": "openai", "google": "gemini"}

# env var names per provider: (api key vars, model var)
_ENV_KEYS = {
    ProviderKind.ANTHROPIC: (("ANTHROPIC_API_KEY",), "ANTHROPIC_MODEL"),
    ProviderKind.OPENAI: (("OPENAI_API_KEY",), "OPENAI_MODEL"),
    ProviderKind.GEMINI: (("GOOGLE_API_KEY", "GEMINI_API_KEY"), "GEMINI_MODEL"),
}


# ------------------------------------------------------------------------------
# Records
# ------------------------------------------------------------------------------

class ProviderConfig(BaseModel):
    """Immutable settings handed to one provider adapter."""
    api_key: str = ""
    model: Optional[str] = Field(None, description="Falls back to the adapter's default model")
    max_tokens: int = Field(DEFAULT_MAX_TOKENS, ge=1)
    temperature: Optional[float] = Field(DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    timeout: float = Field(DEFAULT_TIMEOUT, gt=0)
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    base_url: Optional[str] = Field(None, description="Endpoint override (proxies, tests)")
    max_retries: int = Field(3, ge=0, description="Retries on HTTP 429")
    retry_base_delay: float = Field(2.0, ge=0)

    model_config = ConfigDict(frozen=True)


class ChatSettings(BaseModel):
    provider: ProviderKind = ProviderKind.ANTHROPIC
    abilities_url: str = ""
    abilities_timeout: float = Field(30.0, gt=0)
    enabled_tool_categories: Tuple[str, ...] = ("all",)
    concurrent_tools: bool = True

    model_config = ConfigDict(frozen=True)


# ------------------------------------------------------------------------------
# Loaders
# ------------------------------------------------------------------------------

def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key, "").strip()
    return float(raw) if raw else default


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key, "").strip()
    return int(raw) if raw else default


def load_provider_config(kind: "str | ProviderKind", env: Optional[Mapping[str, str]] = None) -> ProviderConfig:
    """Build a ProviderConfig for *kind* from environment variables."""
    env = os.environ if env is None else env
    kind = ProviderKind.parse(kind)
    key_vars, model_var = _ENV_KEYS[kind]

    api_key = next((env[k] for k in key_vars if env.get(k)), "")
    return ProviderConfig(
        api_key=api_key,
        model=env.get(model_var) or None,
        max_tokens=_int(env, "AI_MAX_TOKENS", DEFAULT_MAX_TOKENS),
        temperature=_float(env, "AI_TEMPERATURE", DEFAULT_TEMPERATURE),
        timeout=_float(env, "LLM_TIMEOUT_SECONDS", DEFAULT_TIMEOUT),
        system_prompt=env.get("AI_SYSTEM_PROMPT") or DEFAULT_SYSTEM_PROMPT,
        base_url=env.get(f"{kind.name}_BASE_URL") or None,
        max_retries=_int(env, "LLM_MAX_RETRIES", 3),
    )


def load_settings(env: Optional[Mapping[str, str]] = None) -> ChatSettings:
    env = os.environ if env is None else env
    categories = tuple(
        c.strip().lower()
        for c in env.get("ENABLED_TOOL_CATEGORIES", "all").split(",")
        if c.strip()
    ) or ("all",)
    return ChatSettings(
        provider=ProviderKind.parse(env.get("LLM_PROVIDER", "anthropic")),
        abilities_url=env.get("ABILITIES_MCP_URL", "").rstrip("/"),
        abilities_timeout=_float(env, "ABILITIES_TIMEOUT_SECONDS", 30.0),
        enabled_tool_categories=categories,
        concurrent_tools=env.get("CONCURRENT_TOOLS", "true").strip().lower() not in ("0", "false", "no"),
    )

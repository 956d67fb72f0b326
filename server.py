from __future__ import annotations
import os, sys, logging, asyncio
from typing import Optional

from mcp.server.fastmcp import FastMCP

from ability_client import FastMCPAbilityRegistry, McpAbilityClient
from chat.orchestrator import Orchestrator
from chat.store import InMemoryConversationStore
from config import load_provider_config, load_settings
from defaults.tools import register_chat_tools
from providers import get_provider

# Log to STDERR only (stdio transport cannot receive stdout noise)
logging.basicConfig(stream=sys.stderr, level=logging.INFO)
log = logging.getLogger("analytics-chat")


def build_server(env=None, abilities: Optional[FastMCP] = None) -> FastMCP:
    """Wire settings, provider, ability registry and store into a FastMCP server.

    Tools come from the remote MCP endpoint at ABILITIES_MCP_URL unless an
    in-process *abilities* server is passed, in which case its registered
    tools are offered to the model directly.
    """
    settings = load_settings(env)
    provider = get_provider(settings.provider, load_provider_config(settings.provider, env))
    if abilities is not None:
        registry = FastMCPAbilityRegistry(abilities)
        log.info("Using in-process abilities from %s", abilities.name)
    else:
        registry = McpAbilityClient(
            settings.abilities_url,
            timeout=settings.abilities_timeout,
            token=(os.environ if env is None else env).get("ABILITIES_TOKEN"),
        )
    store = InMemoryConversationStore()
    orchestrator = Orchestrator(
        provider,
        registry,
        store,
        enabled_tool_categories=settings.enabled_tool_categories,
        concurrent_tools=settings.concurrent_tools,
    )

    # Fail fast on tool names that cannot survive the provider's name rules
    asyncio.run(orchestrator.load_tools())

    mcp = FastMCP("analytics-chat")
    register_chat_tools(mcp, orchestrator, store)
    return mcp


if __name__ == "__main__":
    build_server().run(transport="stdio")

"""Chat tools exposed over MCP: conversation management, turns and tool retries."""
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from chat.errors import ProviderError, ToolExecutionError
from chat.orchestrator import Orchestrator
from chat.store import InMemoryConversationStore, generate_title
from defaults.schemas import *

log = logging.getLogger("analytics-chat")


def register_chat_tools(mcp: FastMCP, orchestrator: Orchestrator, store: InMemoryConversationStore):
    """Register the chat tools on *mcp*."""

    # Track chat tools for list_tools()-style introspection
    if not hasattr(mcp, '_chat_tools_registry'):
        mcp._chat_tools_registry = []

    def _dump(model) -> Any:
        return model.model_dump(mode="json", exclude_none=True)

    # ------------------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------------------

    @mcp.tool()
    def create_conversation(args: CreateConversationArgs) -> Any:
        """Start a new analytics conversation."""
        conversation_id = store.create_conversation(args.user_id, args.title)
        return {"conversation_id": conversation_id, "message": "Conversation created successfully"}

    mcp._chat_tools_registry.append({
        "name": "create_conversation",
        "description": "Start a new analytics conversation.",
        "category": "conversations"
    })

    @mcp.tool()
    def list_conversations(args: ListConversationsArgs) -> Any:
        """List a user's conversations, most recently updated first."""
        conversations = store.list_conversations(args.user_id, limit=args.limit, offset=args.offset)
        return {"conversations": [_dump(c) for c in conversations]}

    mcp._chat_tools_registry.append({
        "name": "list_conversations",
        "description": "List a user's conversations, most recently updated first.",
        "category": "conversations"
    })

    @mcp.tool()
    def search_conversations(args: SearchConversationsArgs) -> Any:
        """Find a user's conversations whose title contains the search text."""
        conversations = store.search_conversations(args.user_id, args.search, limit=args.limit)
        return {"conversations": [_dump(c) for c in conversations]}

    mcp._chat_tools_registry.append({
        "name": "search_conversations",
        "description": "Find a user's conversations whose title contains the search text.",
        "category": "conversations"
    })

    @mcp.tool()
    def delete_conversation(args: DeleteConversationArgs) -> Any:
        """Delete a conversation and all of its messages."""
        if not store.delete_conversation(args.conversation_id):
            return {"error": "Conversation not found"}
        return {"conversation_id": args.conversation_id, "message": "Conversation deleted successfully"}

    mcp._chat_tools_registry.append({
        "name": "delete_conversation",
        "description": "Delete a conversation and all of its messages.",
        "category": "conversations"
    })

    @mcp.tool()
    def get_conversation_messages(args: GetConversationMessagesArgs) -> Any:
        """Return the ordered message history of a conversation."""
        if store.get_conversation(args.conversation_id) is None:
            return {"error": "Conversation not found"}
        messages = store.list(args.conversation_id)
        return {"conversation_id": args.conversation_id, "messages": [_dump(m) for m in messages]}

    mcp._chat_tools_registry.append({
        "name": "get_conversation_messages",
        "description": "Return the ordered message history of a conversation.",
        "category": "conversations"
    })

    # ------------------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------------------

    @mcp.tool()
    async def send_message(args: SendMessageArgs) -> Any:
        """Ask the assistant a question; it may query analytics tools before answering."""
        message = args.message.strip()
        if not message:
            return {"error": "Message cannot be empty"}
        if store.get_conversation(args.conversation_id) is None:
            return {"error": "Conversation not found"}

        new_title = None
        if store.message_count(args.conversation_id) == 0:
            new_title = generate_title(message)
            store.update_title(args.conversation_id, new_title)

        try:
            result = await orchestrator.run_turn(args.conversation_id, message)
        except ProviderError as e:
            log.error("send_message failed: %s", e)
            return {"error": str(e), "new_title": new_title}

        return {
            "content": result.content,
            "messages": [_dump(m) for m in result.messages],
            "new_title": new_title,
            "usage": _dump(result.usage),
            "tool_metadata": result.tool_metadata,
            "failed_tools": [_dump(f) for f in result.failed_tools],
            "message": "Message sent successfully",
        }

    mcp._chat_tools_registry.append({
        "name": "send_message",
        "description": "Ask the assistant a question; it may query analytics tools before answering.",
        "category": "chat"
    })

    @mcp.tool()
    async def retry_tool_call(args: RetryToolCallArgs) -> Any:
        """Re-run a tool that failed during a turn and summarise its result."""
        try:
            result = await orchestrator.retry_tool(args.tool_name, args.arguments, summarize=args.summarize)
        except ToolExecutionError as e:
            return {"error": e.message, "tool": args.tool_name}
        return {"content": result.content, "raw_result": result.raw_result, "tool": result.tool}

    mcp._chat_tools_registry.append({
        "name": "retry_tool_call",
        "description": "Re-run a tool that failed during a turn and summarise its result.",
        "category": "chat"
    })

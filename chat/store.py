"""Conversation persistence.

The orchestrator only needs ``append`` and ``list``; the rest serves the
MCP surface (creating conversations, titles, listing).
"""
from __future__ import annotations

import itertools
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from .models import Message

TITLE_WORDS = 8
DEFAULT_TITLE = "New Conversation"


class Conversation(BaseModel):
    id: int
    user_id: int
    title: str = DEFAULT_TITLE
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


@runtime_checkable
class ConversationStore(Protocol):
    """Append-only message log per conversation. Methods may be sync or async."""

    def append(self, conversation_id: int, message: Message) -> Any: ...

    def list(self, conversation_id: int) -> Any: ...


def generate_title(message: str, words: int = TITLE_WORDS) -> str:
    """First few words of the opening message."""
    parts = message.split()
    if not parts:
        return DEFAULT_TITLE
    title = " ".join(parts[:words])
    return title + "..." if len(parts) > words else title


class InMemoryConversationStore:
    """Thread-safe store; one lock guards all conversations."""

    def __init__(self):
        self._lock = threading.Lock()
        self._conversations: Dict[int, Conversation] = {}
        self._messages: Dict[int, List[Message]] = {}
        self._conversation_ids = itertools.count(1)
        self._message_ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------
    def create_conversation(self, user_id: int, title: str = DEFAULT_TITLE) -> int:
        with self._lock:
            conversation_id = next(self._conversation_ids)
            self._conversations[conversation_id] = Conversation(id=conversation_id, user_id=user_id, title=title)
            self._messages[conversation_id] = []
            return conversation_id

    def get_conversation(self, conversation_id: int) -> Optional[Conversation]:
        with self._lock:
            return self._conversations.get(conversation_id)

    def list_conversations(self, user_id: int, limit: int = 20, offset: int = 0) -> List[Conversation]:
        with self._lock:
            owned = [c for c in self._conversations.values() if c.user_id == user_id]
        owned.sort(key=lambda c: (c.updated_at, c.id), reverse=True)
        return owned[offset:offset + limit]

    def search_conversations(self, user_id: int, search: str, limit: int = 10) -> List[Conversation]:
        """Case-insensitive title match, most recently updated first."""
        needle = search.strip().lower()
        with self._lock:
            matches = [
                c for c in self._conversations.values()
                if c.user_id == user_id and needle in c.title.lower()
            ]
        matches.sort(key=lambda c: (c.updated_at, c.id), reverse=True)
        return matches[:limit]

    def update_title(self, conversation_id: int, title: str) -> None:
        with self._lock:
            conversation = self._require(conversation_id)
            conversation.title = title
            conversation.updated_at = datetime.now(timezone.utc)

    def delete_conversation(self, conversation_id: int) -> bool:
        with self._lock:
            self._messages.pop(conversation_id, None)
            return self._conversations.pop(conversation_id, None) is not None

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------
    def append(self, conversation_id: int, message: Message) -> int:
        with self._lock:
            conversation = self._require(conversation_id)
            self._messages[conversation_id].append(message)
            conversation.updated_at = datetime.now(timezone.utc)
            return next(self._message_ids)

    def list(self, conversation_id: int) -> List[Message]:
        with self._lock:
            self._require(conversation_id)
            return list(self._messages[conversation_id])

    def message_count(self, conversation_id: int) -> int:
        with self._lock:
            self._require(conversation_id)
            return len(self._messages[conversation_id])

    def _require(self, conversation_id: int) -> Conversation:
        try:
            return self._conversations[conversation_id]
        except KeyError:
            raise KeyError(f"Conversation {conversation_id} not found") from None

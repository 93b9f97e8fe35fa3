"""Chat session, message and source models.

Also defines the retrieval outcome used by the chat orchestrator: a
retrieval attempt either yields a :class:`RetrievedContext` (possibly with
zero results) or a :class:`RetrievalFailure`.  The orchestrator branches on
the outcome type instead of catching exceptions.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Union

from pydantic import BaseModel, ConfigDict, Field

from ragdesk.models.rag import VectorSearchResult


class MessageRole(str, Enum):  # noqa: UP042
    USER = "USER"
    ASSISTANT = "ASSISTANT"

    @property
    def api_role(self) -> str:
        """Role name expected by chat-completion APIs."""
        return self.value.lower()


class Source(BaseModel):
    """A retrieved chunk cited by an assistant message."""

    model_config = ConfigDict(frozen=True)

    title: str
    snippet: str
    page: int | None = None
    score: float
    document_id: str | None = None


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    chat_id: str
    role: MessageRole
    content: str
    created_at: datetime
    sources: list[Source] = Field(default_factory=list)


class Chat(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    owner_id: str
    title: str | None = None
    created_at: datetime
    updated_at: datetime


class ChatWithMessages(BaseModel):
    model_config = ConfigDict(frozen=True)

    chat: Chat
    messages: list[Message] = Field(default_factory=list)


class ChatSummary(BaseModel):
    """A chat row for the sidebar listing, with a derived title."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    message_count: int = 0


class ChatStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_chats: int = 0
    total_messages: int = 0
    assistant_messages: int = 0
    user_queries: int = 0
    average_messages_per_chat: int = 0


class ChatTurnResult(BaseModel):
    """Outcome of one user turn: both persisted messages plus retrieval facts."""

    model_config = ConfigDict(frozen=True)

    user_message: Message
    assistant_message: Message
    total_sources: int = 0
    retrieval_used: bool = False


# ---------------------------------------------------------------------------
# Retrieval outcome
# ---------------------------------------------------------------------------
class RetrievedContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    results: list[VectorSearchResult] = Field(default_factory=list)


class RetrievalFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: str


RetrievalOutcome = Union[RetrievedContext, RetrievalFailure]

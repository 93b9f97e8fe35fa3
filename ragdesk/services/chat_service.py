"""Retrieval-augmented chat orchestration.

One user turn (:meth:`ChatService.send_message`) runs:

    1. Validate and persist the user message.
    2. Retrieve context -- embed the question and search the vector index.
       Retrieval is optional and soft-failing: any error becomes a
       :class:`RetrievalFailure` and the turn continues without context.
    3. Build the system prompt (with or without a CONTEXT block) and the
       bounded conversation history.
    4. Ask the LLM for a reply.  A completion failure aborts the turn; the
       user message stays, no assistant message is written.
    5. Persist the assistant message with one source per retrieved chunk,
       derive a title for a new chat, bump the chat's ``updated_at``.

Chat CRUD and per-owner statistics live here too.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from ragdesk.models.chat import (
    Chat,
    ChatStats,
    ChatSummary,
    ChatTurnResult,
    ChatWithMessages,
    MessageRole,
    RetrievalFailure,
    RetrievalOutcome,
    RetrievedContext,
    Source,
)
from ragdesk.utils.concurrency import call_with_timeout
from ragdesk.utils.errors import ChatNotFoundError, LLMError, RagDeskError, ValidationError

if TYPE_CHECKING:
    from ragdesk.config.settings import Settings
    from ragdesk.interfaces.llm_provider import ChatTurn, ILLMProvider
    from ragdesk.interfaces.record_store import IRecordStore
    from ragdesk.interfaces.vector_store_provider import IVectorStoreProvider
    from ragdesk.models.rag import VectorSearchResult
    from ragdesk.services.ingestion.embedder import Embedder

logger = structlog.get_logger(logger_name=__name__)

MAX_MESSAGE_LENGTH = 4000
MAX_SOURCES_LIMIT = 10
TITLE_LENGTH = 50
SNIPPET_LENGTH = 200
DEFAULT_CHAT_TITLE = "New Chat"

_PROMPT_INTRO = (
    "You are a helpful AI assistant that answers questions based on the "
    "provided document context. \n\n"
)

_PROMPT_WITH_CONTEXT = (
    "Use the following context to answer the user's question. If the context "
    "doesn't contain relevant information, let the user know that you don't "
    "have enough information in the provided documents to answer their "
    "question.\n\nCONTEXT:\n{context}\n\n"
)

_PROMPT_WITHOUT_CONTEXT = (
    "You don't have access to any specific document context for this "
    "question. Provide a helpful general response."
)

_PROMPT_GUIDELINES = (
    "\n\nGuidelines:\n"
    "- Be accurate and cite the source documents when possible\n"
    "- If you're unsure or the context doesn't contain the answer, say so\n"
    "- Provide comprehensive answers when the context supports it\n"
    "- Be conversational and helpful"
)

_CONTEXT_SEPARATOR = "\n\n---\n\n"


def build_context(results: list[VectorSearchResult]) -> str:
    """Join retrieved chunks into the prompt's context block."""
    return _CONTEXT_SEPARATOR.join(
        f"[Document: {r.payload.filename or 'Unknown'}]\n{r.payload.text}" for r in results
    )


def build_system_prompt(context: str) -> str:
    body = _PROMPT_WITH_CONTEXT.format(context=context) if context else _PROMPT_WITHOUT_CONTEXT
    return _PROMPT_INTRO + body + _PROMPT_GUIDELINES


def build_sources(results: list[VectorSearchResult]) -> list[Source]:
    return [
        Source(
            title=r.payload.filename or f"Document {i + 1}",
            snippet=r.payload.text[:SNIPPET_LENGTH] + "...",
            score=r.score,
            document_id=r.payload.document_id,
        )
        for i, r in enumerate(results)
    ]


def derive_title(message: str) -> str:
    if len(message) > TITLE_LENGTH:
        return message[:TITLE_LENGTH] + "..."
    return message


class ChatService:
    """Runs chat turns against the indexed corpus and manages chats.

    Parameters
    ----------
    records:
        Record store for chats, messages and sources.
    embedder:
        Embeds the user's question for retrieval.
    vector_store:
        Vector index searched for context.
    llm:
        Chat-completion provider.
    settings:
        History window, completion limits and the external call timeout.
    """

    def __init__(
        self,
        records: IRecordStore,
        embedder: Embedder,
        vector_store: IVectorStoreProvider,
        llm: ILLMProvider,
        settings: Settings,
    ) -> None:
        self._records = records
        self._embedder = embedder
        self._vector_store = vector_store
        self._llm = llm
        self._history_window = settings.chat_history_window
        self._max_tokens = settings.chat_max_tokens
        self._temperature = settings.chat_temperature
        self._timeout = settings.external_call_timeout
        self._default_max_sources = settings.chat_default_max_sources
        self._default_score_threshold = settings.chat_default_score_threshold

    # ------------------------------------------------------------------
    # Chat turn
    # ------------------------------------------------------------------

    async def send_message(
        self,
        chat_id: str,
        owner_id: str,
        message: str,
        use_retrieval: bool = True,
        max_sources: int | None = None,
        score_threshold: float | None = None,
    ) -> ChatTurnResult:
        """Answer *message* in the chat, optionally grounded in retrieved chunks.

        Raises
        ------
        ValidationError
            If the message or retrieval parameters are out of range.
        ChatNotFoundError
            If the chat does not exist or belongs to another owner.
        ConfigurationError
            If the LLM provider is not configured.
        LLMError
            If the completion fails; the user message is kept.
        """
        max_sources = self._default_max_sources if max_sources is None else max_sources
        if score_threshold is None:
            score_threshold = self._default_score_threshold
        _validate_turn(message, max_sources, score_threshold)

        chat = await self._records.get_chat(chat_id, owner_id)
        if chat is None:
            raise ChatNotFoundError(chat_id)

        user_message = await self._records.create_message(chat_id, MessageRole.USER, message)

        results: list[VectorSearchResult] = []
        if use_retrieval:
            outcome = await self.retrieve_context(message, max_sources, score_threshold)
            if isinstance(outcome, RetrievalFailure):
                logger.warning("retrieval_failed", chat_id=chat_id, reason=outcome.reason)
            else:
                results = outcome.results

        context = build_context(results)
        sources = build_sources(results)
        history = await self._history(chat_id)

        turns: list[ChatTurn] = [*history, {"role": MessageRole.USER.api_role, "content": message}]
        reply = await call_with_timeout(
            self._llm.complete(
                build_system_prompt(context),
                turns,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            ),
            self._timeout,
            lambda msg: LLMError(message=msg, provider_name=self._llm.get_provider_name()),
            "chat completion",
        )

        assistant_message = await self._records.create_message(
            chat_id, MessageRole.ASSISTANT, reply, sources
        )

        title = derive_title(message) if not chat.title and not history else None
        await self._records.touch_chat(chat_id, title=title)

        logger.info(
            "chat_turn_complete",
            chat_id=chat_id,
            sources=len(sources),
            history_turns=len(history),
            retrieval_used=use_retrieval and bool(context),
        )
        return ChatTurnResult(
            user_message=user_message,
            assistant_message=assistant_message,
            total_sources=len(sources),
            retrieval_used=use_retrieval and bool(context),
        )

    async def retrieve_context(
        self, query: str, max_sources: int, score_threshold: float
    ) -> RetrievalOutcome:
        """Embed *query* and search the index; never raises for upstream errors."""
        try:
            results = await self.search(query, limit=max_sources, score_threshold=score_threshold)
        except RagDeskError as exc:
            return RetrievalFailure(reason=str(exc))
        return RetrievedContext(results=results)

    async def search(
        self,
        query: str,
        limit: int = 10,
        score_threshold: float = 0.7,
        document_id: str | None = None,
    ) -> list[VectorSearchResult]:
        """Similarity search for *query*; upstream errors propagate."""
        query_vector = await self._embedder.embed_one(query)
        return await self._vector_store.search(
            query_vector.embedding,
            limit=limit,
            score_threshold=score_threshold,
            document_id=document_id,
        )

    # ------------------------------------------------------------------
    # Chat management
    # ------------------------------------------------------------------

    async def create_chat(self, owner_id: str, title: str | None = None) -> Chat:
        chat = await self._records.create_chat(owner_id, title)
        logger.info("chat_created", chat_id=chat.id, owner_id=owner_id)
        return chat

    async def get_chat(self, chat_id: str, owner_id: str) -> ChatWithMessages:
        chat = await self._records.get_chat(chat_id, owner_id)
        if chat is None:
            raise ChatNotFoundError(chat_id)
        messages = await self._records.list_messages(chat_id)
        return ChatWithMessages(chat=chat, messages=messages)

    async def list_chats(self, owner_id: str) -> list[ChatSummary]:
        rows = await self._records.list_chats(owner_id)
        return [
            ChatSummary(
                id=row.chat.id,
                title=row.chat.title
                or (row.first_message[:TITLE_LENGTH] + "..." if row.first_message else None)
                or DEFAULT_CHAT_TITLE,
                created_at=row.chat.created_at,
                updated_at=row.chat.updated_at,
                message_count=row.message_count,
            )
            for row in rows
        ]

    async def delete_chat(self, chat_id: str, owner_id: str) -> None:
        if not await self._records.delete_chat(chat_id, owner_id):
            raise ChatNotFoundError(chat_id)

    async def get_stats(self, owner_id: str) -> ChatStats:
        total_chats = await self._records.count_chats(owner_id)
        total_messages = await self._records.count_messages(owner_id)
        assistant_messages = await self._records.count_messages(owner_id, MessageRole.ASSISTANT)
        user_queries = await self._records.count_messages(owner_id, MessageRole.USER)
        return ChatStats(
            total_chats=total_chats,
            total_messages=total_messages,
            assistant_messages=assistant_messages,
            user_queries=user_queries,
            average_messages_per_chat=round(total_messages / total_chats) if total_chats else 0,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _history(self, chat_id: str) -> list[ChatTurn]:
        """Prior turns, oldest first, without the just-saved user message."""
        recent = await self._records.recent_messages(chat_id, self._history_window)
        chronological = list(reversed(recent))[:-1]
        return [{"role": m.role.api_role, "content": m.content} for m in chronological]


def _validate_turn(message: str, max_sources: int, score_threshold: float) -> None:
    if not message or not message.strip():
        raise ValidationError("Message must not be empty")
    if len(message) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Message exceeds {MAX_MESSAGE_LENGTH} characters")
    if not 1 <= max_sources <= MAX_SOURCES_LIMIT:
        raise ValidationError(f"max_sources must be between 1 and {MAX_SOURCES_LIMIT}")
    if not 0 <= score_threshold <= 1:
        raise ValidationError("score_threshold must be between 0 and 1")

"""Integration tests for chat turns over an indexed corpus.

The corpus is indexed through the real ingestion pipeline with the
deterministic mock embedder, so a question that equals a chunk's text
retrieves that chunk with a similarity of 1.0.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from ragdesk.models.chat import MessageRole
from ragdesk.providers.records.sqlite_record_store import SQLiteRecordStore
from ragdesk.providers.vector_store.memory_provider import InMemoryVectorStoreProvider
from ragdesk.services.chat_service import ChatService
from ragdesk.services.ingestion.embedder import Embedder
from ragdesk.services.ingestion.ingestion_service import IngestionService
from ragdesk.utils.errors import ChatNotFoundError, LLMError, ValidationError
from tests.conftest import MockEmbeddingProvider, _settings, make_document


async def _index_report(
    record_store: SQLiteRecordStore,
    ingestion_service: IngestionService,
    vector_store: InMemoryVectorStoreProvider,
    text: str,
) -> str:
    """Index *text* as ``report.txt`` and return the first chunk's content."""
    await make_document(record_store, raw_text=text)
    await ingestion_service.index_document("doc-1")
    results = await vector_store.search([1.0] * 16, limit=100, score_threshold=-1.0)
    first = min(results, key=lambda r: r.payload.chunk_index)
    return first.payload.text


def _system_prompt(llm: MagicMock, call: int = -1) -> str:
    return llm.complete.await_args_list[call].args[0]


def _turns(llm: MagicMock, call: int = -1) -> list[dict[str, str]]:
    return llm.complete.await_args_list[call].args[1]


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_turn_with_retrieved_context(
        self,
        record_store: SQLiteRecordStore,
        ingestion_service: IngestionService,
        vector_store: InMemoryVectorStoreProvider,
        chat_service: ChatService,
        mock_llm: MagicMock,
        sample_report_text: str,
    ) -> None:
        chunk_text = await _index_report(
            record_store, ingestion_service, vector_store, sample_report_text
        )
        chat = await chat_service.create_chat("user-1")

        result = await chat_service.send_message(
            chat.id, "user-1", chunk_text, max_sources=1, score_threshold=0.99
        )

        assert result.retrieval_used is True
        assert result.total_sources == 1
        assert result.user_message.role is MessageRole.USER
        assert result.assistant_message.content == "Revenue grew 12% in Q3."
        [source] = result.assistant_message.sources
        assert source.title == "report.txt"
        assert source.document_id == "doc-1"
        assert source.snippet == chunk_text[:200] + "..."
        assert source.score == pytest.approx(1.0)

        prompt = _system_prompt(mock_llm)
        assert f"CONTEXT:\n[Document: report.txt]\n{chunk_text}\n\n" in prompt
        assert _turns(mock_llm) == [{"role": "user", "content": chunk_text}]
        kwargs = mock_llm.complete.await_args.kwargs
        assert kwargs == {"temperature": 0.7, "max_tokens": 4000}

    @pytest.mark.asyncio
    async def test_no_matching_context(
        self,
        chat_service: ChatService,
        mock_llm: MagicMock,
    ) -> None:
        chat = await chat_service.create_chat("user-1")

        result = await chat_service.send_message(
            chat.id, "user-1", "What was the Q3 revenue?", score_threshold=0.9
        )

        assert result.retrieval_used is False
        assert result.total_sources == 0
        assert result.assistant_message.sources == []
        prompt = _system_prompt(mock_llm)
        assert "CONTEXT:" not in prompt
        assert "don't have access to any specific document context" in prompt

    @pytest.mark.asyncio
    async def test_retrieval_failure_does_not_abort_turn(
        self,
        chat_service: ChatService,
        mock_embedding: MockEmbeddingProvider,
        mock_llm: MagicMock,
    ) -> None:
        chat = await chat_service.create_chat("user-1")
        mock_embedding.fail_on_call = 1

        result = await chat_service.send_message(chat.id, "user-1", "Any updates?")

        assert result.assistant_message.content == "Revenue grew 12% in Q3."
        assert result.total_sources == 0
        assert "CONTEXT:" not in _system_prompt(mock_llm)

    @pytest.mark.asyncio
    async def test_retrieval_disabled(
        self,
        chat_service: ChatService,
        mock_embedding: MockEmbeddingProvider,
    ) -> None:
        chat = await chat_service.create_chat("user-1")

        result = await chat_service.send_message(
            chat.id, "user-1", "Hello there", use_retrieval=False
        )

        assert mock_embedding.calls == []
        assert result.retrieval_used is False

    @pytest.mark.asyncio
    async def test_history_sent_on_later_turns(
        self,
        chat_service: ChatService,
        mock_llm: MagicMock,
    ) -> None:
        chat = await chat_service.create_chat("user-1")
        await chat_service.send_message(chat.id, "user-1", "First question", use_retrieval=False)
        mock_llm.complete.return_value = "Second answer"

        await chat_service.send_message(chat.id, "user-1", "Follow-up", use_retrieval=False)

        assert _turns(mock_llm) == [
            {"role": "user", "content": "First question"},
            {"role": "assistant", "content": "Revenue grew 12% in Q3."},
            {"role": "user", "content": "Follow-up"},
        ]

    @pytest.mark.asyncio
    async def test_history_window_bounds_turns(
        self,
        record_store: SQLiteRecordStore,
        embedder: Embedder,
        vector_store: InMemoryVectorStoreProvider,
        mock_llm: MagicMock,
    ) -> None:
        service = ChatService(
            record_store, embedder, vector_store, mock_llm, _settings(chat_history_window=3)
        )
        chat = await service.create_chat("user-1")
        for i in range(3):
            await service.send_message(chat.id, "user-1", f"question {i}", use_retrieval=False)

        turns = _turns(mock_llm)

        assert len(turns) == 3
        assert turns[-1] == {"role": "user", "content": "question 2"}

    @pytest.mark.asyncio
    async def test_title_derived_from_first_message(
        self,
        chat_service: ChatService,
    ) -> None:
        chat = await chat_service.create_chat("user-1")
        message = "How did the warehouse consolidation affect lead times in August?"

        await chat_service.send_message(chat.id, "user-1", message, use_retrieval=False)
        await chat_service.send_message(chat.id, "user-1", "And in September?", use_retrieval=False)

        fetched = await chat_service.get_chat(chat.id, "user-1")
        assert fetched.chat.title == message[:50] + "..."
        assert len(fetched.messages) == 4

    @pytest.mark.asyncio
    async def test_explicit_title_kept(self, chat_service: ChatService) -> None:
        chat = await chat_service.create_chat("user-1", "Budget")

        await chat_service.send_message(chat.id, "user-1", "Short one", use_retrieval=False)

        fetched = await chat_service.get_chat(chat.id, "user-1")
        assert fetched.chat.title == "Budget"

    @pytest.mark.asyncio
    async def test_completion_failure_keeps_user_message(
        self,
        chat_service: ChatService,
        mock_llm: MagicMock,
    ) -> None:
        chat = await chat_service.create_chat("user-1")
        mock_llm.complete.side_effect = LLMError(message="overloaded", provider_name="mock-llm")

        with pytest.raises(LLMError):
            await chat_service.send_message(chat.id, "user-1", "Anyone there?", use_retrieval=False)

        fetched = await chat_service.get_chat(chat.id, "user-1")
        assert [m.role for m in fetched.messages] == [MessageRole.USER]
        assert fetched.chat.title is None

    @pytest.mark.asyncio
    async def test_other_owner_cannot_post(self, chat_service: ChatService) -> None:
        chat = await chat_service.create_chat("user-1")

        with pytest.raises(ChatNotFoundError):
            await chat_service.send_message(chat.id, "user-2", "Hi")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("message", "max_sources", "threshold"),
        [
            ("", 5, 0.7),
            ("   ", 5, 0.7),
            ("x" * 4001, 5, 0.7),
            ("ok", 0, 0.7),
            ("ok", 11, 0.7),
            ("ok", 5, 1.5),
        ],
    )
    async def test_validation(
        self,
        chat_service: ChatService,
        record_store: SQLiteRecordStore,
        message: str,
        max_sources: int,
        threshold: float,
    ) -> None:
        chat = await chat_service.create_chat("user-1")

        with pytest.raises(ValidationError):
            await chat_service.send_message(
                chat.id, "user-1", message, max_sources=max_sources, score_threshold=threshold
            )

        assert await record_store.list_messages(chat.id) == []


class TestChatManagement:
    @pytest.mark.asyncio
    async def test_list_chats_title_fallbacks(
        self,
        chat_service: ChatService,
        record_store: SQLiteRecordStore,
    ) -> None:
        untitled = await chat_service.create_chat("user-1")
        await record_store.create_message(
            untitled.id, MessageRole.USER, "What changed in the supplier contracts this quarter?"
        )
        await record_store.touch_chat(untitled.id)
        empty = await chat_service.create_chat("user-1")

        summaries = {s.id: s for s in await chat_service.list_chats("user-1")}

        assert summaries[untitled.id].title == "What changed in the supplier contracts this quarte..."
        assert summaries[untitled.id].message_count == 1
        assert summaries[empty.id].title == "New Chat"

    @pytest.mark.asyncio
    async def test_stats(self, chat_service: ChatService) -> None:
        chat = await chat_service.create_chat("user-1")
        await chat_service.create_chat("user-1")
        await chat_service.create_chat("user-2")
        await chat_service.send_message(chat.id, "user-1", "Question", use_retrieval=False)

        stats = await chat_service.get_stats("user-1")

        assert stats.total_chats == 2
        assert stats.total_messages == 2
        assert stats.assistant_messages == 1
        assert stats.user_queries == 1
        assert stats.average_messages_per_chat == 1

    @pytest.mark.asyncio
    async def test_stats_without_chats(self, chat_service: ChatService) -> None:
        stats = await chat_service.get_stats("nobody")
        assert stats.average_messages_per_chat == 0

    @pytest.mark.asyncio
    async def test_delete_chat(self, chat_service: ChatService) -> None:
        chat = await chat_service.create_chat("user-1")

        with pytest.raises(ChatNotFoundError):
            await chat_service.delete_chat(chat.id, "user-2")
        await chat_service.delete_chat(chat.id, "user-1")

        with pytest.raises(ChatNotFoundError):
            await chat_service.get_chat(chat.id, "user-1")

    @pytest.mark.asyncio
    async def test_search_scoped_to_document(
        self,
        record_store: SQLiteRecordStore,
        ingestion_service: IngestionService,
        vector_store: InMemoryVectorStoreProvider,
        chat_service: ChatService,
        sample_report_text: str,
    ) -> None:
        chunk_text = await _index_report(
            record_store, ingestion_service, vector_store, sample_report_text
        )

        hits = await chat_service.search(chunk_text, limit=3, score_threshold=0.99)
        misses = await chat_service.search(
            chunk_text, limit=3, score_threshold=0.99, document_id="other"
        )

        assert [h.payload.text for h in hits] == [chunk_text]
        assert misses == []

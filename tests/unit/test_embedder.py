"""Unit tests for the Embedder -- batching, ordering, failures and pricing."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ragdesk.interfaces.embedding_provider import IEmbeddingProvider
from ragdesk.models.rag import EmbeddingBatch
from ragdesk.services.ingestion.embedder import Embedder, embedding_cost, embedding_dimensions
from ragdesk.utils.errors import EmbeddingServiceError, EmptyInputError, NoValidInputError
from tests.conftest import MockEmbeddingProvider, _hash_to_vector


def _provider_returning(batch: EmbeddingBatch) -> MagicMock:
    provider = MagicMock(spec=IEmbeddingProvider)
    provider.embed = AsyncMock(return_value=batch)
    provider.get_model.return_value = "text-embedding-3-small"
    provider.get_provider_name.return_value = "mock-embedding"
    return provider


# ======================================================================
# embed_batch
# ======================================================================


class TestEmbedBatch:
    @pytest.mark.asyncio
    async def test_groups_respect_batch_size(self) -> None:
        provider = MockEmbeddingProvider()
        embedder = Embedder(provider, batch_size=100, batch_delay=0.0)
        texts = [f"text {i}" for i in range(250)]

        result = await embedder.embed_batch(texts)

        assert [len(call) for call in provider.calls] == [100, 100, 50]
        assert len(result.vectors) == 250

    @pytest.mark.asyncio
    async def test_vectors_keep_input_order(self) -> None:
        provider = MockEmbeddingProvider()
        embedder = Embedder(provider, batch_size=3, batch_delay=0.0)
        texts = [f"paragraph {i}" for i in range(7)]

        result = await embedder.embed_batch(texts)

        assert result.vectors == [_hash_to_vector(t) for t in texts]

    @pytest.mark.asyncio
    async def test_batch_size_argument_overrides_default(self) -> None:
        provider = MockEmbeddingProvider()
        embedder = Embedder(provider, batch_size=100, batch_delay=0.0)

        await embedder.embed_batch([f"t{i}" for i in range(5)], batch_size=2)

        assert [len(call) for call in provider.calls] == [2, 2, 1]

    @pytest.mark.asyncio
    async def test_blank_texts_are_skipped(self) -> None:
        provider = MockEmbeddingProvider()
        embedder = Embedder(provider, batch_delay=0.0)

        result = await embedder.embed_batch(["alpha", "", "   ", "beta"])

        assert provider.calls == [["alpha", "beta"]]
        assert len(result.vectors) == 2

    @pytest.mark.asyncio
    async def test_tokens_are_summed_across_groups(self) -> None:
        provider = MockEmbeddingProvider()
        embedder = Embedder(provider, batch_size=1, batch_delay=0.0)

        result = await embedder.embed_batch(["a" * 40, "b" * 80])

        assert result.total_tokens == 30
        assert result.model == "text-embedding-3-small"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("texts", [[], ["", "  ", "\n"]])
    async def test_no_valid_input(self, texts: list[str]) -> None:
        embedder = Embedder(MockEmbeddingProvider(), batch_delay=0.0)
        with pytest.raises(NoValidInputError):
            await embedder.embed_batch(texts)

    @pytest.mark.asyncio
    async def test_failing_group_fails_whole_batch(self) -> None:
        provider = MockEmbeddingProvider()
        provider.fail_on_call = 2
        embedder = Embedder(provider, batch_size=2, batch_delay=0.0)

        with pytest.raises(EmbeddingServiceError, match="rate limited"):
            await embedder.embed_batch(["a", "b", "c", "d", "e"])

        # The third group is never requested.
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_count_mismatch_is_an_error(self) -> None:
        provider = _provider_returning(EmbeddingBatch(vectors=[[0.1, 0.2]], tokens_used=3))
        embedder = Embedder(provider, batch_delay=0.0)

        with pytest.raises(EmbeddingServiceError, match="expected 2 embeddings"):
            await embedder.embed_batch(["one", "two"])

    @pytest.mark.asyncio
    async def test_sleeps_between_groups_only(self) -> None:
        embedder = Embedder(MockEmbeddingProvider(), batch_size=2, batch_delay=0.5)

        with patch(
            "ragdesk.services.ingestion.embedder.asyncio.sleep", new_callable=AsyncMock
        ) as mock_sleep:
            await embedder.embed_batch(["a", "b", "c", "d", "e"])

        assert mock_sleep.await_count == 2
        mock_sleep.assert_awaited_with(0.5)

    @pytest.mark.asyncio
    async def test_unexpected_provider_error_is_wrapped(self) -> None:
        provider = _provider_returning(EmbeddingBatch(vectors=[]))
        provider.embed = AsyncMock(side_effect=RuntimeError("socket closed"))
        embedder = Embedder(provider, batch_delay=0.0)

        with pytest.raises(EmbeddingServiceError, match="socket closed") as exc_info:
            await embedder.embed_batch(["x"])
        assert exc_info.value.provider_name == "mock-embedding"


# ======================================================================
# embed_one
# ======================================================================


class TestEmbedOne:
    @pytest.mark.asyncio
    async def test_returns_single_vector(self) -> None:
        embedder = Embedder(MockEmbeddingProvider(), batch_delay=0.0)

        result = await embedder.embed_one("What was Q3 revenue?")

        assert result.embedding == _hash_to_vector("What was Q3 revenue?")
        assert result.token_count > 0

    @pytest.mark.asyncio
    async def test_blank_text_raises(self) -> None:
        embedder = Embedder(MockEmbeddingProvider(), batch_delay=0.0)
        with pytest.raises(EmptyInputError):
            await embedder.embed_one("   ")

    @pytest.mark.asyncio
    async def test_timeout_becomes_embedding_error(self) -> None:
        async def _slow_embed(texts: list[str]) -> EmbeddingBatch:
            await asyncio.sleep(1)
            return EmbeddingBatch(vectors=[[0.0]])

        provider = _provider_returning(EmbeddingBatch(vectors=[]))
        provider.embed = _slow_embed
        embedder = Embedder(provider, batch_delay=0.0, timeout=0.01)

        with pytest.raises(EmbeddingServiceError, match="timed out"):
            await embedder.embed_one("hello")


# ======================================================================
# Price and dimension tables
# ======================================================================


class TestModelTables:
    def test_cost_for_known_model(self) -> None:
        assert embedding_cost(1000, "text-embedding-3-large") == pytest.approx(0.00013)
        assert embedding_cost(2000, "text-embedding-3-small") == pytest.approx(0.00004)

    def test_unknown_model_priced_as_large(self) -> None:
        assert embedding_cost(1000, "some-new-model") == pytest.approx(0.00013)

    def test_dimensions(self) -> None:
        assert embedding_dimensions("text-embedding-3-large") == 3072
        assert embedding_dimensions("text-embedding-3-small") == 1536
        assert embedding_dimensions("unknown") == 3072

    def test_embedder_reports_provider_model(self) -> None:
        embedder = Embedder(MockEmbeddingProvider(dimension=8))
        assert embedder.model == "text-embedding-3-small"
        assert embedder.dimension == 8

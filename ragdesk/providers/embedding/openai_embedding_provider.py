"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Each :meth:`embed` call is exactly one ``embeddings.create`` request; the
:class:`~ragdesk.services.ingestion.embedder.Embedder` decides how texts
are grouped into requests.
"""

from __future__ import annotations

import openai
import structlog

from ragdesk.config.settings import Settings
from ragdesk.interfaces.embedding_provider import IEmbeddingProvider
from ragdesk.models.rag import EmbeddingBatch
from ragdesk.services.ingestion.embedder import embedding_dimensions
from ragdesk.utils.errors import ConfigurationError, EmbeddingServiceError

logger = structlog.get_logger(logger_name=__name__)


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Uses ``text-embedding-3-large`` (3072 dims) unless
    ``openai_embedding_model`` says otherwise.  When ``openai_base_url`` is
    set the client points at that URL instead of api.openai.com.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key
        # Created on first use; the SDK rejects a missing key at construction.
        self._client: openai.AsyncOpenAI | None = None
        self._model = settings.openai_embedding_model or "text-embedding-3-large"
        self._dimension = embedding_dimensions(self._model)

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> EmbeddingBatch:
        if not texts:
            return EmbeddingBatch(vectors=[], tokens_used=0)

        try:
            response = await self._get_client().embeddings.create(
                input=texts,
                model=self._model,
                encoding_format="float",
            )
        except openai.APIError as exc:
            raise EmbeddingServiceError(
                message=f"OpenAI embeddings API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        vectors = [item.embedding for item in response.data]
        if len(vectors) != len(texts):
            raise EmbeddingServiceError(
                message=f"Expected {len(texts)} embeddings, received {len(vectors)}",
                provider_name=self.get_provider_name(),
            )

        tokens = response.usage.total_tokens if response.usage else 0
        logger.info(
            "openai_embedding_batch",
            model=self._model,
            batch_size=len(texts),
            tokens=tokens,
        )
        return EmbeddingBatch(vectors=vectors, tokens_used=tokens)

    def _get_client(self) -> openai.AsyncOpenAI:
        if self._client is not None:
            return self._client
        if not self._api_key:
            raise ConfigurationError(
                message="OpenAI API key not configured",
                provider_name=self.get_provider_name(),
            )

        client_kwargs: dict = {"api_key": self._api_key}
        if self._settings.openai_base_url:
            client_kwargs["base_url"] = self._settings.openai_base_url
        self._client = openai.AsyncOpenAI(**client_kwargs)
        return self._client

    def get_model(self) -> str:
        return self._model

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "openai_embedding"

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)

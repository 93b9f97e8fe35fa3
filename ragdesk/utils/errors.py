"""Custom exception hierarchy for ragdesk.

All application exceptions inherit from :class:`RagDeskError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "qdrant", "s3") caused the failure.

The hierarchy is organized by failure family so the API layer can map each
family onto one HTTP status code:

    RagDeskError  (base -- catch-all for any ragdesk error)
    +-- ValidationError              (bad input shape/size, 400)
    |   +-- EmptyInputError
    |   +-- NoValidInputError
    |   +-- ShapeMismatchError
    |   +-- UnsupportedContentTypeError
    |   +-- FileTooLargeError
    |   +-- MissingRawTextError
    +-- NotFoundError                (missing record, 404)
    |   +-- DocumentNotFoundError
    |   +-- ChatNotFoundError
    +-- ConflictError                (state does not allow the operation, 409)
    |   +-- AlreadyIndexedError
    |   +-- AlreadyExtractedError
    |   +-- IngestionInProgressError
    |   +-- InvalidStatusTransitionError
    +-- ExternalServiceError         (upstream failure, 502)
    |   +-- EmbeddingServiceError
    |   +-- VectorStoreError
    |   +-- LLMError
    |   +-- BlobStoreError
    |   +-- RecordStoreError
    +-- IngestionError               (pipeline step failed, carries ``step``)
    +-- ExtractionError              (raw-text extraction produced nothing)
    +-- ConfigurationError           (startup / missing config)
"""

from __future__ import annotations


class RagDeskError(Exception):
    """Base exception for all ragdesk errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[qdrant] Connection refused``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Validation errors
# ---------------------------------------------------------------------------


class ValidationError(RagDeskError):
    """Raised when input is rejected before any external call is made."""

    def __init__(
        self,
        message: str = "Invalid input",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmptyInputError(ValidationError):
    """Raised when text to chunk or embed is empty or whitespace-only."""

    def __init__(self, message: str = "Input text is empty") -> None:
        super().__init__(message=message)


class NoValidInputError(ValidationError):
    """Raised when a batch contains no non-blank entries."""

    def __init__(self, message: str = "No valid texts provided for embedding") -> None:
        super().__init__(message=message)


class ShapeMismatchError(ValidationError):
    """Raised when the number of chunks and vectors differ."""

    def __init__(self, chunks: int, vectors: int) -> None:
        self.chunks = chunks
        self.vectors = vectors
        super().__init__(
            message=f"Mismatch between chunks ({chunks}) and vectors ({vectors})"
        )


class UnsupportedContentTypeError(ValidationError):
    """Raised when an operation is not available for a document's content type."""

    def __init__(self, content_type: str, operation: str) -> None:
        self.content_type = content_type
        super().__init__(
            message=f"Content type '{content_type}' is not supported for {operation}"
        )


class FileTooLargeError(ValidationError):
    """Raised when an upload exceeds the configured size limit."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(
            message=f"File size {size} bytes exceeds the {limit} byte limit"
        )


class MissingRawTextError(ValidationError):
    """Raised when indexing is requested for a document without extracted text."""

    def __init__(self, document_id: str) -> None:
        super().__init__(
            message=f"Document {document_id} has no extracted text. Extract text first."
        )


# ---------------------------------------------------------------------------
# Not-found errors
# ---------------------------------------------------------------------------


class NotFoundError(RagDeskError):
    """Raised when a requested record does not exist."""


class DocumentNotFoundError(NotFoundError):
    def __init__(self, document_id: str) -> None:
        super().__init__(message=f"Document not found: {document_id}")


class ChatNotFoundError(NotFoundError):
    def __init__(self, chat_id: str) -> None:
        super().__init__(message=f"Chat not found: {chat_id}")


# ---------------------------------------------------------------------------
# Conflict errors
# ---------------------------------------------------------------------------


class ConflictError(RagDeskError):
    """Raised when the current record state does not permit the operation."""


class AlreadyIndexedError(ConflictError):
    def __init__(self, document_id: str) -> None:
        super().__init__(message=f"Document {document_id} is already indexed")


class AlreadyExtractedError(ConflictError):
    def __init__(self, document_id: str) -> None:
        super().__init__(message=f"Document {document_id} already has extracted text")


class IngestionInProgressError(ConflictError):
    def __init__(self, document_id: str) -> None:
        super().__init__(
            message=f"Document {document_id} is already being processed by another run"
        )


class InvalidStatusTransitionError(ConflictError):
    """Raised by the document status transition function."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(message=f"Invalid status transition: {current} -> {target}")


# ---------------------------------------------------------------------------
# External service errors
# ---------------------------------------------------------------------------


class ExternalServiceError(RagDeskError):
    """Raised when an upstream service call fails.

    The upstream message is preserved in ``message`` so callers can surface
    it unchanged.
    """


class EmbeddingServiceError(ExternalServiceError):
    """Raised when an embedding API call fails or times out."""

    def __init__(
        self,
        message: str = "Embedding service call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class VectorStoreError(ExternalServiceError):
    """Raised when a vector database operation fails."""

    def __init__(
        self,
        message: str = "Vector store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(ExternalServiceError):
    """Raised when a chat-completion call fails or returns non-text content."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class BlobStoreError(ExternalServiceError):
    """Raised when an object storage operation fails."""

    def __init__(
        self,
        message: str = "Blob store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RecordStoreError(ExternalServiceError):
    """Raised when the relational record store cannot be reached."""

    def __init__(
        self,
        message: str = "Record store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Pipeline errors
# ---------------------------------------------------------------------------


class IngestionError(RagDeskError):
    """Raised when a step of the ingestion pipeline fails.

    ``step`` names the failing stage (``chunk``, ``embed``, ``index`` or
    ``finalize``) so operators can see where the run stopped.  The original
    exception is chained as ``__cause__``.
    """

    def __init__(
        self,
        step: str,
        message: str = "Ingestion failed",
        provider_name: str | None = None,
    ) -> None:
        self._step = step
        super().__init__(message=f"{step} step failed: {message}", provider_name=provider_name)

    @property
    def step(self) -> str:
        return self._step


class ExtractionError(RagDeskError):
    """Raised when raw-text extraction from a stored file fails."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(RagDeskError):
    """Raised when a required API key, model, or setting is missing."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)

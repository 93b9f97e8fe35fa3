"""Pydantic request/response schemas for the ragdesk API.

Request schemas end with ``Request`` and carry the input limits enforced
by FastAPI (422 on violation); response schemas end with ``Response``.
Domain models from :mod:`ragdesk.models` are embedded where their shape is
already the public one.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from ragdesk.models.chat import Chat, ChatSummary, Message
from ragdesk.models.document import DocumentListing


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None


class HealthResponse(BaseModel):
    status: str
    version: str
    vector_store: bool


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class DocumentUploadResponse(BaseModel):
    document_id: str
    storage_key: str
    etag: str
    message: str = "File uploaded successfully"


class DocumentListResponse(BaseModel):
    documents: list[DocumentListing] = Field(default_factory=list)
    total: int = 0


class PreviewResponse(BaseModel):
    url: str
    content_type: str
    file_name: str
    expires_in: int


class ExtractTextResponse(BaseModel):
    document_id: str
    text_length: int
    page_count: int | None = None
    message: str = "Text extracted successfully - ready for indexing"


class IndexDocumentResponse(BaseModel):
    document_id: str
    chunks: int
    total_characters: int
    average_chunk_size: int
    points_indexed: int
    tokens_used: int
    estimated_cost: float
    model: str
    elapsed_seconds: float
    message: str


class ResetDocumentResponse(BaseModel):
    document_id: str
    status: str


class DeleteResponse(BaseModel):
    success: bool = True
    message: str


# ---------------------------------------------------------------------------
# Chats
# ---------------------------------------------------------------------------


class CreateChatRequest(BaseModel):
    title: str | None = Field(default=None, max_length=200)


class SendMessageRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)
    use_retrieval: bool = True
    max_sources: int = Field(default=5, ge=1, le=10)
    score_threshold: float = Field(default=0.7, ge=0.0, le=1.0)


class SendMessageResponse(BaseModel):
    user_message: Message
    assistant_message: Message
    total_sources: int
    retrieval_used: bool


class ChatDetailResponse(BaseModel):
    chat: Chat
    messages: list[Message] = Field(default_factory=list)


class ChatListResponse(BaseModel):
    chats: list[ChatSummary] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=4000)
    limit: int = Field(default=10, ge=1, le=50)
    score_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    document_id: str | None = None


class SearchHit(BaseModel):
    id: str
    score: float
    document_id: str
    chunk_index: int
    filename: str
    text: str


class SearchResponse(BaseModel):
    query: str
    results: list[SearchHit] = Field(default_factory=list)
    searched_at: datetime

"""FastAPI API routes for ragdesk.

Service dependencies are resolved from ``app.state`` (populated at startup
in main.py's ``_build_all``) via ``Depends`` using the ``Annotated``
pattern.  The caller is identified by the ``X-User-Id`` header, taken as-is.

Endpoint                                  Method  Description
----------------------------------------------------------------------------
/api/v1/health                            GET     Liveness + vector store health
/api/v1/status                            GET     Record/vector store diagnostics
/api/v1/documents                         POST    Upload a file
/api/v1/documents                         GET     List documents
/api/v1/documents/{id}/preview            GET     Presigned preview URL
/api/v1/documents/{id}/extract            POST    Extract raw text
/api/v1/documents/{id}/index              POST    Chunk, embed and index
/api/v1/documents/{id}/reset              POST    Back to PENDING, vectors dropped
/api/v1/documents/{id}                    DELETE  Delete file, vectors and record
/api/v1/search                            POST    Similarity search over the index
/api/v1/chats                             POST    Create a chat
/api/v1/chats                             GET     List the caller's chats
/api/v1/chats/stats                       GET     The caller's chat statistics
/api/v1/chats/{id}                        GET     Chat with messages and sources
/api/v1/chats/{id}                        DELETE  Delete a chat
/api/v1/chats/{id}/messages               POST    Send a message (RAG turn)
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Header, Request, UploadFile

from ragdesk.api.schemas import (
    ChatDetailResponse,
    ChatListResponse,
    CreateChatRequest,
    DeleteResponse,
    DocumentListResponse,
    DocumentUploadResponse,
    ErrorResponse,
    ExtractTextResponse,
    HealthResponse,
    IndexDocumentResponse,
    PreviewResponse,
    ResetDocumentResponse,
    SearchHit,
    SearchRequest,
    SearchResponse,
    SendMessageRequest,
    SendMessageResponse,
)
from ragdesk.models.chat import Chat, ChatStats
from ragdesk.models.diagnostics import ServiceStatus
from ragdesk.services.chat_service import ChatService
from ragdesk.services.diagnostics_service import DiagnosticsService
from ragdesk.services.document_service import DocumentService
from ragdesk.services.ingestion.ingestion_service import IngestionService
from ragdesk.utils.errors import FileTooLargeError
from ragdesk.utils.filename import filename_from_path
from ragdesk.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_UPLOAD_CHUNK_SIZE = 64 * 1024
_DEFAULT_CONTENT_TYPE = "application/octet-stream"

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
}


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_document_service(request: Request) -> DocumentService:
    return request.app.state.document_service


def _get_ingestion_service(request: Request) -> IngestionService:
    return request.app.state.ingestion_service


def _get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def _get_diagnostics_service(request: Request) -> DiagnosticsService:
    return request.app.state.diagnostics_service


def _get_app_version(request: Request) -> str:
    return request.app.state.app_version


DocumentServiceDep = Annotated[DocumentService, Depends(_get_document_service)]
IngestionServiceDep = Annotated[IngestionService, Depends(_get_ingestion_service)]
ChatServiceDep = Annotated[ChatService, Depends(_get_chat_service)]
DiagnosticsDep = Annotated[DiagnosticsService, Depends(_get_diagnostics_service)]
AppVersionDep = Annotated[str, Depends(_get_app_version)]
OwnerId = Annotated[str, Header(alias="X-User-Id", min_length=1)]


# ---------------------------------------------------------------------------
# Health & diagnostics
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health(diagnostics: DiagnosticsDep, version: AppVersionDep) -> HealthResponse:
    vector_store = await diagnostics.vector_store_status()
    return HealthResponse(
        status="ok",
        version=version,
        vector_store=vector_store.status == "connected",
    )


@router.get("/status", response_model=ServiceStatus, summary="Backend diagnostics")
async def service_status(diagnostics: DiagnosticsDep) -> ServiceStatus:
    return await diagnostics.status()


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.post(
    "/documents",
    response_model=DocumentUploadResponse,
    status_code=201,
    responses=_ERROR_RESPONSES,
    summary="Upload a document",
)
async def upload_document(
    file: UploadFile,
    owner_id: OwnerId,
    documents: DocumentServiceDep,
    request: Request,
) -> DocumentUploadResponse:
    """Store the file and create a PENDING document record."""
    limit = request.app.state.settings.max_upload_bytes
    chunks: list[bytes] = []
    total_size = 0
    while True:
        chunk = await file.read(_UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > limit:
            raise FileTooLargeError(size=total_size, limit=limit)
        chunks.append(chunk)

    result = await documents.upload(
        owner_id=owner_id,
        file_name=filename_from_path(file.filename or ""),
        content=b"".join(chunks),
        content_type=file.content_type or _DEFAULT_CONTENT_TYPE,
    )
    return DocumentUploadResponse(
        document_id=result.document_id,
        storage_key=result.storage_key,
        etag=result.etag,
    )


@router.get("/documents", response_model=DocumentListResponse, summary="List documents")
async def list_documents(
    owner_id: OwnerId,
    documents: DocumentServiceDep,
    all_owners: bool = False,
) -> DocumentListResponse:
    """The caller's documents, or every owner's with ``?all_owners=true``."""
    listings = await documents.list_documents(None if all_owners else owner_id)
    return DocumentListResponse(documents=listings, total=len(listings))


@router.get(
    "/documents/{document_id}/preview",
    response_model=PreviewResponse,
    responses=_ERROR_RESPONSES,
    summary="Get a short-lived preview URL",
)
async def preview_document(document_id: str, documents: DocumentServiceDep) -> PreviewResponse:
    link = await documents.get_preview_url(document_id)
    return PreviewResponse(**link.model_dump())


@router.post(
    "/documents/{document_id}/extract",
    response_model=ExtractTextResponse,
    responses=_ERROR_RESPONSES,
    summary="Extract raw text from the stored file",
)
async def extract_document(document_id: str, documents: DocumentServiceDep) -> ExtractTextResponse:
    result = await documents.extract_text(document_id)
    return ExtractTextResponse(
        document_id=result.document_id,
        text_length=result.text_length,
        page_count=result.page_count,
    )


@router.post(
    "/documents/{document_id}/index",
    response_model=IndexDocumentResponse,
    responses=_ERROR_RESPONSES,
    summary="Chunk, embed and index a document",
)
async def index_document(
    document_id: str, ingestion: IngestionServiceDep
) -> IndexDocumentResponse:
    result = await ingestion.index_document(document_id)
    return IndexDocumentResponse(
        **result.model_dump(),
        message=(
            f"Document indexed successfully: {result.chunks} chunks, "
            f"{result.points_indexed} points"
        ),
    )


@router.post(
    "/documents/{document_id}/reset",
    response_model=ResetDocumentResponse,
    responses=_ERROR_RESPONSES,
    summary="Return a document to PENDING and drop its vectors",
)
async def reset_document(
    document_id: str, ingestion: IngestionServiceDep
) -> ResetDocumentResponse:
    document = await ingestion.reset_document(document_id)
    return ResetDocumentResponse(document_id=document.id, status=document.status.value)


@router.delete(
    "/documents/{document_id}",
    response_model=DeleteResponse,
    responses=_ERROR_RESPONSES,
    summary="Delete a document",
)
async def delete_document(document_id: str, documents: DocumentServiceDep) -> DeleteResponse:
    await documents.delete_document(document_id)
    return DeleteResponse(message="Document deleted successfully")


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@router.post(
    "/search",
    response_model=SearchResponse,
    responses=_ERROR_RESPONSES,
    summary="Similarity search over indexed chunks",
)
async def search(body: SearchRequest, chats: ChatServiceDep) -> SearchResponse:
    results = await chats.search(
        body.query,
        limit=body.limit,
        score_threshold=body.score_threshold,
        document_id=body.document_id,
    )
    return SearchResponse(
        query=body.query,
        results=[
            SearchHit(
                id=r.id,
                score=r.score,
                document_id=r.payload.document_id,
                chunk_index=r.payload.chunk_index,
                filename=r.payload.filename,
                text=r.payload.text,
            )
            for r in results
        ],
        searched_at=datetime.now(timezone.utc),
    )


# ---------------------------------------------------------------------------
# Chats
# ---------------------------------------------------------------------------


@router.post("/chats", response_model=Chat, status_code=201, summary="Create a chat")
async def create_chat(
    owner_id: OwnerId,
    chats: ChatServiceDep,
    body: CreateChatRequest | None = None,
) -> Chat:
    return await chats.create_chat(owner_id, body.title if body else None)


@router.get("/chats", response_model=ChatListResponse, summary="List the caller's chats")
async def list_chats(owner_id: OwnerId, chats: ChatServiceDep) -> ChatListResponse:
    return ChatListResponse(chats=await chats.list_chats(owner_id))


@router.get("/chats/stats", response_model=ChatStats, summary="Chat statistics")
async def chat_stats(owner_id: OwnerId, chats: ChatServiceDep) -> ChatStats:
    return await chats.get_stats(owner_id)


@router.get(
    "/chats/{chat_id}",
    response_model=ChatDetailResponse,
    responses=_ERROR_RESPONSES,
    summary="Get a chat with its messages",
)
async def get_chat(chat_id: str, owner_id: OwnerId, chats: ChatServiceDep) -> ChatDetailResponse:
    detail = await chats.get_chat(chat_id, owner_id)
    return ChatDetailResponse(chat=detail.chat, messages=detail.messages)


@router.delete(
    "/chats/{chat_id}",
    response_model=DeleteResponse,
    responses=_ERROR_RESPONSES,
    summary="Delete a chat",
)
async def delete_chat(chat_id: str, owner_id: OwnerId, chats: ChatServiceDep) -> DeleteResponse:
    await chats.delete_chat(chat_id, owner_id)
    return DeleteResponse(message="Chat deleted successfully")


@router.post(
    "/chats/{chat_id}/messages",
    response_model=SendMessageResponse,
    responses=_ERROR_RESPONSES,
    summary="Send a message and get the assistant's reply",
)
async def send_message(
    chat_id: str,
    body: SendMessageRequest,
    owner_id: OwnerId,
    chats: ChatServiceDep,
) -> SendMessageResponse:
    result = await chats.send_message(
        chat_id,
        owner_id,
        body.message,
        use_retrieval=body.use_retrieval,
        max_sources=body.max_sources,
        score_threshold=body.score_threshold,
    )
    _logger.debug("message_sent", chat_id=chat_id, sources=result.total_sources)
    return SendMessageResponse(
        user_message=result.user_message,
        assistant_message=result.assistant_message,
        total_sources=result.total_sources,
        retrieval_used=result.retrieval_used,
    )

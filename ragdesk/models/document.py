"""Document records and the document status state machine.

The lifecycle of a stored document::

    PENDING --(extract text)--> PROCESSING --(chunk+embed+index)--> INDEXED
                                    |
                                    +--(any failure)--> ERROR --(retry)--> PROCESSING

``INDEXED`` can only be left, and ``ERROR`` can only return to ``PENDING``,
through an explicit reset.  Every status write goes through :func:`transition`,
which rejects any move not listed in :data:`ALLOWED_TRANSITIONS` (plus
:data:`RESET_TRANSITIONS` for a reset).
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ragdesk.utils.errors import InvalidStatusTransitionError


class DocumentStatus(str, Enum):  # noqa: UP042
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    INDEXED = "INDEXED"
    ERROR = "ERROR"


class DocumentSource(str, Enum):  # noqa: UP042
    MANUAL_UPLOAD = "MANUAL_UPLOAD"
    EMAIL_INGEST = "EMAIL_INGEST"
    API_UPLOAD = "API_UPLOAD"


ALLOWED_TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.PENDING: frozenset({DocumentStatus.PROCESSING}),
    # PROCESSING -> PROCESSING: extracted text stored, indexing starts.
    DocumentStatus.PROCESSING: frozenset(
        {DocumentStatus.PROCESSING, DocumentStatus.INDEXED, DocumentStatus.ERROR}
    ),
    DocumentStatus.ERROR: frozenset({DocumentStatus.PROCESSING}),
    DocumentStatus.INDEXED: frozenset(),
}

# Only reachable through the explicit reset operation.
RESET_TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.INDEXED: frozenset({DocumentStatus.PENDING}),
    DocumentStatus.ERROR: frozenset({DocumentStatus.PENDING}),
}


def can_transition(
    current: DocumentStatus, target: DocumentStatus, *, reset: bool = False
) -> bool:
    allowed = ALLOWED_TRANSITIONS[current]
    if reset:
        allowed = allowed | RESET_TRANSITIONS.get(current, frozenset())
    return target in allowed


def transition(
    current: DocumentStatus, target: DocumentStatus, *, reset: bool = False
) -> DocumentStatus:
    """Return *target* if moving from *current* is allowed.

    Raises
    ------
    InvalidStatusTransitionError
        If the move is not part of the lifecycle.  ``reset=True`` also
        allows ``INDEXED -> PENDING`` and ``ERROR -> PENDING``.
    """
    if not can_transition(current, target, reset=reset):
        raise InvalidStatusTransitionError(current.value, target.value)
    return target


class Document(BaseModel):
    """A stored source file and its ingestion state."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = Field(description="Display name shown in listings.")
    file_name: str
    storage_key: str = Field(description="Opaque key into blob storage.")
    content_type: str
    file_size: int = Field(ge=0)
    status: DocumentStatus = DocumentStatus.PENDING
    source: DocumentSource = DocumentSource.MANUAL_UPLOAD
    raw_text: str | None = None
    owner_id: str
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def has_raw_text(self) -> bool:
        return bool(self.raw_text and self.raw_text.strip())


class DocumentListing(BaseModel):
    """A document row formatted for listings."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    display_name: str
    uploaded_at: datetime
    size: str
    content_type: str
    source: str
    status: str
    has_raw_text: bool
    owner_id: str


class UploadResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_id: str
    storage_key: str
    etag: str


class PreviewLink(BaseModel):
    """Short-lived download URL for viewing a stored file."""

    model_config = ConfigDict(frozen=True)

    url: str
    content_type: str
    file_name: str
    expires_in: int


class ExtractionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_id: str
    text_length: int
    page_count: int | None = None

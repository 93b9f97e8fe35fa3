"""Abstract base class for the relational record store.

Holds documents, chats, messages and message sources.  The store owns
timestamps and id generation for chats and messages; documents are created
with an id chosen by the caller so the blob key and the record can be
written independently.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict

from ragdesk.models.chat import Chat, Message, MessageRole, Source
from ragdesk.models.document import Document, DocumentStatus


class ChatRow(BaseModel):
    """A chat with the content of its first message, for listings."""

    model_config = ConfigDict(frozen=True)

    chat: Chat
    first_message: str | None = None
    message_count: int = 0


# Concrete implementation: SQLiteRecordStore (ragdesk/providers/records/)
class IRecordStore(ABC):
    """Contract for persisting documents, chats and messages."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables and indices if they do not exist."""

    # -- Documents ---------------------------------------------------------

    @abstractmethod
    async def create_document(self, document: Document) -> Document:
        """Insert *document* and return it as stored."""

    @abstractmethod
    async def get_document(self, document_id: str) -> Document | None:
        """Return the document or ``None`` if it does not exist."""

    @abstractmethod
    async def list_documents(self, owner_id: str | None = None) -> list[Document]:
        """Return documents newest first, optionally limited to one owner."""

    @abstractmethod
    async def update_document(self, document_id: str, **fields: Any) -> Document:
        """Set the given columns, bump ``updated_at`` and return the new row.

        Raises
        ------
        ragdesk.utils.errors.DocumentNotFoundError
            If the document does not exist.
        """

    @abstractmethod
    async def compare_and_set_status(
        self,
        document_id: str,
        expected: Iterable[DocumentStatus],
        target: DocumentStatus,
        error_message: str | None = None,
    ) -> bool:
        """Atomically move the status to *target* if it is one of *expected*.

        Returns ``True`` if this call performed the update.  ``error_message``
        is written alongside the status (``None`` clears it).
        """

    @abstractmethod
    async def delete_document(self, document_id: str) -> bool:
        """Delete the record; return ``False`` if it did not exist."""

    @abstractmethod
    async def count_documents(
        self,
        status: DocumentStatus | None = None,
        has_raw_text: bool | None = None,
    ) -> int:
        """Count documents, optionally filtered by status or extracted text."""

    # -- Chats -------------------------------------------------------------

    @abstractmethod
    async def create_chat(self, owner_id: str, title: str | None = None) -> Chat:
        """Create an empty chat owned by *owner_id*."""

    @abstractmethod
    async def get_chat(self, chat_id: str, owner_id: str) -> Chat | None:
        """Return the chat if it exists and belongs to *owner_id*."""

    @abstractmethod
    async def list_chats(self, owner_id: str) -> list[ChatRow]:
        """Return the owner's chats, most recently updated first."""

    @abstractmethod
    async def touch_chat(self, chat_id: str, title: str | None = None) -> Chat:
        """Bump ``updated_at`` and, when given, set the title."""

    @abstractmethod
    async def delete_chat(self, chat_id: str, owner_id: str) -> bool:
        """Delete the chat with its messages and sources."""

    @abstractmethod
    async def count_chats(self, owner_id: str | None = None) -> int:
        """Count chats, optionally for one owner."""

    # -- Messages ----------------------------------------------------------

    @abstractmethod
    async def create_message(
        self,
        chat_id: str,
        role: MessageRole,
        content: str,
        sources: Sequence[Source] = (),
    ) -> Message:
        """Append a message (and its sources) to a chat."""

    @abstractmethod
    async def list_messages(self, chat_id: str) -> list[Message]:
        """Return all messages of a chat oldest first, with sources."""

    @abstractmethod
    async def recent_messages(self, chat_id: str, limit: int) -> list[Message]:
        """Return the *limit* most recent messages, newest first."""

    @abstractmethod
    async def count_messages(
        self,
        owner_id: str | None = None,
        role: MessageRole | None = None,
    ) -> int:
        """Count messages, optionally restricted to an owner's chats and a role."""

    # -- Diagnostics -------------------------------------------------------

    @abstractmethod
    async def ping(self) -> None:
        """Run a trivial query; raise if the database cannot be reached."""

    @abstractmethod
    async def server_version(self) -> str:
        """Return the database engine version string."""

    @abstractmethod
    async def database_size_bytes(self) -> int:
        """Return the on-disk size of the database."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"sqlite"``."""

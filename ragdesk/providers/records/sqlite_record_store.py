"""SQLite-backed record store for documents, chats, messages and sources.

Uses ``aiosqlite`` for async I/O with one short-lived connection per
operation.  Timestamps are stored as ISO-8601 UTC strings, which sort
lexicographically in chronological order; ties are broken by ``rowid``.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from ragdesk.interfaces.record_store import ChatRow, IRecordStore
from ragdesk.models.chat import Chat, Message, MessageRole, Source
from ragdesk.models.document import Document, DocumentStatus
from ragdesk.utils.errors import ChatNotFoundError, DocumentNotFoundError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/ragdesk.db")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS documents (
    id            TEXT PRIMARY KEY,
    name          TEXT    NOT NULL,
    file_name     TEXT    NOT NULL,
    storage_key   TEXT    NOT NULL,
    content_type  TEXT    NOT NULL,
    file_size     INTEGER NOT NULL,
    status        TEXT    NOT NULL,
    source        TEXT    NOT NULL,
    raw_text      TEXT,
    owner_id      TEXT    NOT NULL,
    error_message TEXT,
    created_at    TEXT    NOT NULL,
    updated_at    TEXT    NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS chats (
    id         TEXT PRIMARY KEY,
    owner_id   TEXT NOT NULL,
    title      TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS messages (
    id         TEXT PRIMARY KEY,
    chat_id    TEXT NOT NULL REFERENCES chats(id),
    role       TEXT NOT NULL,
    content    TEXT NOT NULL,
    created_at TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS sources (
    id          TEXT PRIMARY KEY,
    message_id  TEXT    NOT NULL REFERENCES messages(id),
    position    INTEGER NOT NULL,
    title       TEXT    NOT NULL,
    snippet     TEXT    NOT NULL,
    page        INTEGER,
    score       REAL    NOT NULL,
    document_id TEXT
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_owner ON documents(owner_id);",
    "CREATE INDEX IF NOT EXISTS idx_documents_status ON documents(status);",
    "CREATE INDEX IF NOT EXISTS idx_chats_owner ON chats(owner_id, updated_at);",
    "CREATE INDEX IF NOT EXISTS idx_messages_chat ON messages(chat_id, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_sources_message ON sources(message_id);",
]

_DOCUMENT_COLUMNS = (
    "id, name, file_name, storage_key, content_type, file_size, status, source, "
    "raw_text, owner_id, error_message, created_at, updated_at"
)

_UPDATABLE_DOCUMENT_FIELDS = frozenset(
    {"name", "status", "raw_text", "error_message", "storage_key", "file_size", "content_type"}
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteRecordStore(IRecordStore):
    """SQLite persistence for every ragdesk record type."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            for table_sql in _CREATE_TABLES_SQL:
                await db.execute(table_sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("record_store_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def create_document(self, document: Document) -> Document:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                f"INSERT INTO documents ({_DOCUMENT_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    document.id,
                    document.name,
                    document.file_name,
                    document.storage_key,
                    document.content_type,
                    document.file_size,
                    document.status.value,
                    document.source.value,
                    document.raw_text,
                    document.owner_id,
                    document.error_message,
                    document.created_at.isoformat(),
                    document.updated_at.isoformat(),
                ),
            )
            await db.commit()
        return document

    async def get_document(self, document_id: str) -> Document | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?", (document_id,)
            )
            row = await cursor.fetchone()
        return self._row_to_document(row) if row else None

    async def list_documents(self, owner_id: str | None = None) -> list[Document]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            if owner_id is None:
                cursor = await db.execute(
                    f"SELECT {_DOCUMENT_COLUMNS} FROM documents "
                    "ORDER BY created_at DESC, rowid DESC"
                )
            else:
                cursor = await db.execute(
                    f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE owner_id = ? "
                    "ORDER BY created_at DESC, rowid DESC",
                    (owner_id,),
                )
            rows = await cursor.fetchall()
        return [self._row_to_document(r) for r in rows]

    async def update_document(self, document_id: str, **fields: Any) -> Document:
        unknown = set(fields) - _UPDATABLE_DOCUMENT_FIELDS
        if unknown:
            msg = f"Cannot update document fields: {sorted(unknown)}"
            raise ValueError(msg)

        values = {k: (v.value if isinstance(v, DocumentStatus) else v) for k, v in fields.items()}
        values["updated_at"] = _now()
        assignments = ", ".join(f"{column} = ?" for column in values)

        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                f"UPDATE documents SET {assignments} WHERE id = ?",
                (*values.values(), document_id),
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise DocumentNotFoundError(document_id)

        document = await self.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    async def compare_and_set_status(
        self,
        document_id: str,
        expected: Iterable[DocumentStatus],
        target: DocumentStatus,
        error_message: str | None = None,
    ) -> bool:
        expected_values = [s.value for s in expected]
        if not expected_values:
            return False
        placeholders = ", ".join("?" for _ in expected_values)
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "UPDATE documents SET status = ?, error_message = ?, updated_at = ? "
                f"WHERE id = ? AND status IN ({placeholders})",
                (target.value, error_message, _now(), document_id, *expected_values),
            )
            await db.commit()
            swapped = cursor.rowcount == 1
        logger.debug(
            "document_status_cas",
            document_id=document_id,
            expected=expected_values,
            target=target.value,
            swapped=swapped,
        )
        return swapped

    async def delete_document(self, document_id: str) -> bool:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute("DELETE FROM documents WHERE id = ?", (document_id,))
            await db.commit()
            return cursor.rowcount > 0

    async def count_documents(
        self,
        status: DocumentStatus | None = None,
        has_raw_text: bool | None = None,
    ) -> int:
        clauses: list[str] = []
        params: list[Any] = []
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if has_raw_text is True:
            clauses.append("raw_text IS NOT NULL AND TRIM(raw_text) != ''")
        elif has_raw_text is False:
            clauses.append("(raw_text IS NULL OR TRIM(raw_text) = '')")
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return await self._scalar(f"SELECT COUNT(*) FROM documents{where}", params)

    # ------------------------------------------------------------------
    # Chats
    # ------------------------------------------------------------------

    async def create_chat(self, owner_id: str, title: str | None = None) -> Chat:
        now = _now()
        chat_id = str(uuid.uuid4())
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                "INSERT INTO chats (id, owner_id, title, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (chat_id, owner_id, title, now, now),
            )
            await db.commit()
        return Chat(id=chat_id, owner_id=owner_id, title=title, created_at=now, updated_at=now)

    async def get_chat(self, chat_id: str, owner_id: str) -> Chat | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT id, owner_id, title, created_at, updated_at FROM chats "
                "WHERE id = ? AND owner_id = ?",
                (chat_id, owner_id),
            )
            row = await cursor.fetchone()
        return Chat(**dict(row)) if row else None

    async def list_chats(self, owner_id: str) -> list[ChatRow]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT c.id, c.owner_id, c.title, c.created_at, c.updated_at, "
                "  (SELECT m.content FROM messages m WHERE m.chat_id = c.id "
                "   ORDER BY m.created_at ASC, m.rowid ASC LIMIT 1) AS first_message, "
                "  (SELECT COUNT(*) FROM messages m WHERE m.chat_id = c.id) AS message_count "
                "FROM chats c WHERE c.owner_id = ? "
                "ORDER BY c.updated_at DESC, c.rowid DESC",
                (owner_id,),
            )
            rows = await cursor.fetchall()
        result: list[ChatRow] = []
        for row in rows:
            data = dict(row)
            first_message = data.pop("first_message")
            message_count = data.pop("message_count")
            result.append(
                ChatRow(chat=Chat(**data), first_message=first_message, message_count=message_count)
            )
        return result

    async def touch_chat(self, chat_id: str, title: str | None = None) -> Chat:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            if title is None:
                cursor = await db.execute(
                    "UPDATE chats SET updated_at = ? WHERE id = ?", (_now(), chat_id)
                )
            else:
                cursor = await db.execute(
                    "UPDATE chats SET title = ?, updated_at = ? WHERE id = ?",
                    (title, _now(), chat_id),
                )
            await db.commit()
            if cursor.rowcount == 0:
                raise ChatNotFoundError(chat_id)
            cursor = await db.execute(
                "SELECT id, owner_id, title, created_at, updated_at FROM chats WHERE id = ?",
                (chat_id,),
            )
            row = await cursor.fetchone()
        return Chat(**dict(row))

    async def delete_chat(self, chat_id: str, owner_id: str) -> bool:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "SELECT 1 FROM chats WHERE id = ? AND owner_id = ?", (chat_id, owner_id)
            )
            if await cursor.fetchone() is None:
                return False
            await db.execute(
                "DELETE FROM sources WHERE message_id IN "
                "(SELECT id FROM messages WHERE chat_id = ?)",
                (chat_id,),
            )
            await db.execute("DELETE FROM messages WHERE chat_id = ?", (chat_id,))
            await db.execute("DELETE FROM chats WHERE id = ?", (chat_id,))
            await db.commit()
        logger.info("chat_deleted", chat_id=chat_id)
        return True

    async def count_chats(self, owner_id: str | None = None) -> int:
        if owner_id is None:
            return await self._scalar("SELECT COUNT(*) FROM chats", [])
        return await self._scalar("SELECT COUNT(*) FROM chats WHERE owner_id = ?", [owner_id])

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def create_message(
        self,
        chat_id: str,
        role: MessageRole,
        content: str,
        sources: Sequence[Source] = (),
    ) -> Message:
        now = _now()
        message_id = str(uuid.uuid4())
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                "INSERT INTO messages (id, chat_id, role, content, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (message_id, chat_id, role.value, content, now),
            )
            await db.executemany(
                "INSERT INTO sources "
                "(id, message_id, position, title, snippet, page, score, document_id) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        str(uuid.uuid4()),
                        message_id,
                        position,
                        s.title,
                        s.snippet,
                        s.page,
                        s.score,
                        s.document_id,
                    )
                    for position, s in enumerate(sources)
                ],
            )
            await db.commit()
        return Message(
            id=message_id,
            chat_id=chat_id,
            role=role,
            content=content,
            created_at=now,
            sources=list(sources),
        )

    async def list_messages(self, chat_id: str) -> list[Message]:
        return await self._select_messages(
            "WHERE chat_id = ? ORDER BY created_at ASC, rowid ASC", (chat_id,)
        )

    async def recent_messages(self, chat_id: str, limit: int) -> list[Message]:
        return await self._select_messages(
            "WHERE chat_id = ? ORDER BY created_at DESC, rowid DESC LIMIT ?", (chat_id, limit)
        )

    async def count_messages(
        self,
        owner_id: str | None = None,
        role: MessageRole | None = None,
    ) -> int:
        clauses: list[str] = []
        params: list[Any] = []
        if owner_id is not None:
            clauses.append("chat_id IN (SELECT id FROM chats WHERE owner_id = ?)")
            params.append(owner_id)
        if role is not None:
            clauses.append("role = ?")
            params.append(role.value)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return await self._scalar(f"SELECT COUNT(*) FROM messages{where}", params)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    async def ping(self) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute("SELECT 1")

    async def server_version(self) -> str:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute("SELECT sqlite_version()")
            row = await cursor.fetchone()
        return f"SQLite {row[0]}"

    async def database_size_bytes(self) -> int:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute("PRAGMA page_count")
            page_count = (await cursor.fetchone())[0]
            cursor = await db.execute("PRAGMA page_size")
            page_size = (await cursor.fetchone())[0]
        return int(page_count) * int(page_size)

    def get_provider_name(self) -> str:
        return "sqlite"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _scalar(self, sql: str, params: Sequence[Any]) -> int:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(sql, tuple(params))
            row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def _select_messages(self, tail_sql: str, params: tuple[Any, ...]) -> list[Message]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"SELECT id, chat_id, role, content, created_at FROM messages {tail_sql}", params
            )
            rows = await cursor.fetchall()
            if not rows:
                return []
            ids = [r["id"] for r in rows]
            placeholders = ", ".join("?" for _ in ids)
            cursor = await db.execute(
                "SELECT message_id, title, snippet, page, score, document_id FROM sources "
                f"WHERE message_id IN ({placeholders}) ORDER BY position ASC",
                ids,
            )
            source_rows = await cursor.fetchall()

        sources_by_message: dict[str, list[Source]] = {}
        for s in source_rows:
            data = dict(s)
            sources_by_message.setdefault(data.pop("message_id"), []).append(Source(**data))

        return [
            Message(
                id=r["id"],
                chat_id=r["chat_id"],
                role=MessageRole(r["role"]),
                content=r["content"],
                created_at=r["created_at"],
                sources=sources_by_message.get(r["id"], []),
            )
            for r in rows
        ]

    @staticmethod
    def _row_to_document(row: aiosqlite.Row) -> Document:
        return Document(**dict(row))

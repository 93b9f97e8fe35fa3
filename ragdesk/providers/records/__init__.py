"""Relational record store for documents, chats and messages (SQLite)."""

from ragdesk.providers.records.sqlite_record_store import SQLiteRecordStore

__all__ = ["SQLiteRecordStore"]

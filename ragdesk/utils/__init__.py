"""Utility modules for ragdesk.

- **errors** -- Exception hierarchy rooted at RagDeskError, grouped by
  failure family (validation, not-found, conflict, external service).
- **concurrency** -- per-document asyncio locks and timeout wrapping for
  external calls.
- **logging** -- structlog setup with console output in development and
  JSON in production.
- **filename** -- display helpers for document names and byte sizes.
"""

from ragdesk.utils.concurrency import KeyedLock, call_with_timeout
from ragdesk.utils.errors import (
    ConfigurationError,
    ExternalServiceError,
    NotFoundError,
    RagDeskError,
    ValidationError,
)
from ragdesk.utils.filename import format_file_size, truncate_filename
from ragdesk.utils.logging import configure_logging, get_logger

__all__ = [
    "ConfigurationError",
    "ExternalServiceError",
    "KeyedLock",
    "NotFoundError",
    "RagDeskError",
    "ValidationError",
    "call_with_timeout",
    "configure_logging",
    "format_file_size",
    "get_logger",
    "truncate_filename",
]

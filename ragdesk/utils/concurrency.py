"""Shared concurrency primitives for ingestion and external calls.

Two patterns are exposed:

1. **KeyedLock** -- a registry of ``asyncio.Lock`` objects keyed by an
   identifier (a document id), so that two ingestion runs for the same
   document serialise while runs for different documents proceed in
   parallel.

2. **call_with_timeout** -- wraps one awaited external call in
   ``asyncio.wait_for`` and converts a timeout into the caller's error
   type, so every provider failure surfaces through the same hierarchy.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import TypeVar

import structlog

from ragdesk.utils.errors import RagDeskError
from ragdesk.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


class KeyedLock:
    """Per-key ``asyncio.Lock`` registry.

    Locks are created lazily and dropped once no task holds or waits on
    them, so the registry does not grow with the number of documents ever
    processed.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()


async def call_with_timeout(
    awaitable: Awaitable[_T],
    timeout: float | None,
    error_factory: Callable[[str], RagDeskError],
    operation: str,
) -> _T:
    """Await *awaitable*, raising ``error_factory(message)`` on timeout.

    Parameters
    ----------
    awaitable:
        The external call to await.
    timeout:
        Deadline in seconds.  ``None`` or a non-positive value disables it.
    error_factory:
        Builds the domain error raised on timeout (e.g. a partial of
        :class:`~ragdesk.utils.errors.EmbeddingServiceError`).
    operation:
        Short operation label used in the error message and log event.
    """
    if timeout is None or timeout <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        _logger.warning("external_call_timeout", operation=operation, timeout=timeout)
        raise error_factory(f"{operation} timed out after {timeout:g}s") from exc

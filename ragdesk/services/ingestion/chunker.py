"""Recursive text splitting with exact source offsets.

Splits raw document text into overlapping :class:`~ragdesk.models.rag.TextChunk`
windows.  The algorithm works on ``(start, end)`` spans into the source
text rather than on copied substrings, so every chunk's offsets are exact:
``text[chunk.start_offset:chunk.end_offset] == chunk.content``.

1. **Split** -- pick the first separator (in priority order) that occurs in
   the span and cut after each occurrence.  The separator stays attached to
   the preceding piece so the pieces tile the span with no gaps.
2. **Merge** -- pieces that fit are merged greedily into windows of at most
   ``chunk_size``.  When a window is emitted, its trailing pieces totalling
   at most ``chunk_overlap`` carry into the next one.
3. **Recurse** -- a piece longer than ``chunk_size`` is split again with the
   remaining separators.  Once none are left the piece is hard-cut between
   characters, so recursion always terminates.

Lengths are characters, or tokens counted with a HuggingFace ``tokenizers``
tokenizer when the config's ``length_unit`` is ``tokens``.  A window's
length is the sum of its pieces' lengths.

Windows are whitespace-trimmed (offsets adjusted) and windows that are
blank after trimming are dropped.
"""

from __future__ import annotations

from collections import deque
from functools import lru_cache

import structlog
from tokenizers import Tokenizer

from ragdesk.models.rag import ChunkingConfig, ChunkingStats, LengthUnit, TextChunk
from ragdesk.utils.errors import EmptyInputError

logger = structlog.get_logger(logger_name=__name__)

_Span = tuple[int, int]

# Approximate token length when no tokenizer could be loaded.
_CHARS_PER_TOKEN = 4


@lru_cache(maxsize=4)
def load_tokenizer(name: str) -> Tokenizer | None:
    """Load (once per process) the pretrained tokenizer *name*.

    Returns ``None`` when it cannot be fetched, e.g. offline without a
    local HuggingFace cache.
    """
    try:
        return Tokenizer.from_pretrained(name)
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "tokenizer_unavailable",
            tokenizer=name,
            error=str(exc),
            msg=f"Falling back to approximate token counting (len / {_CHARS_PER_TOKEN}).",
        )
        return None


class RecursiveTextChunker:
    """Splits text into overlapping windows on a separator hierarchy.

    Parameters
    ----------
    config:
        Window size, overlap, separators and length unit.
    tokenizer:
        Tokenizer for token-unit configs.  Loaded from
        ``config.tokenizer_name`` when omitted; ignored for character units.
    """

    def __init__(
        self,
        config: ChunkingConfig | None = None,
        tokenizer: Tokenizer | None = None,
    ) -> None:
        self._config = config or ChunkingConfig()
        self._size = self._config.chunk_size
        self._overlap = self._config.chunk_overlap
        self._tokens = self._config.length_unit is LengthUnit.TOKENS
        self._tokenizer: Tokenizer | None = None
        if self._tokens:
            self._tokenizer = tokenizer or load_tokenizer(self._config.tokenizer_name)

    @property
    def config(self) -> ChunkingConfig:
        return self._config

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, text: str) -> list[TextChunk]:
        """Split *text* into ordered, overlapping chunks.

        Raises
        ------
        EmptyInputError
            If *text* is empty or whitespace-only.
        """
        if not text or not text.strip():
            raise EmptyInputError("Cannot chunk empty text")

        windows = self._split(text, 0, len(text), self._config.separators)

        chunks: list[TextChunk] = []
        for start, end in windows:
            start, end = _trim(text, start, end)
            if start >= end:
                continue
            chunks.append(
                TextChunk(
                    content=text[start:end],
                    start_offset=start,
                    end_offset=end,
                    chunk_index=len(chunks),
                )
            )

        logger.debug(
            "chunking_complete",
            num_chunks=len(chunks),
            text_length=len(text),
            chunk_size=self._size,
            chunk_overlap=self._overlap,
            length_unit=self._config.length_unit.value,
        )
        return chunks

    def count(self, text: str) -> float:
        """Length of *text* in the configured unit."""
        if not self._tokens:
            return len(text)
        if self._tokenizer is not None:
            return len(self._tokenizer.encode(text, add_special_tokens=False).ids)
        return len(text) / _CHARS_PER_TOKEN

    # ------------------------------------------------------------------
    # Splitting
    # ------------------------------------------------------------------

    def _length(self, text: str, span: _Span) -> float:
        if not self._tokens:
            return span[1] - span[0]
        return self.count(text[span[0] : span[1]])

    def _split(self, text: str, start: int, end: int, separators: tuple[str, ...]) -> list[_Span]:
        separator = separators[-1]
        remaining: tuple[str, ...] = ()
        for i, candidate in enumerate(separators):
            if candidate == "":
                separator = candidate
                break
            if text.find(candidate, start, end) != -1:
                separator = candidate
                remaining = separators[i + 1 :]
                break

        windows: list[_Span] = []
        fitting: list[tuple[_Span, float]] = []
        for piece in _pieces(text, start, end, separator):
            length = self._length(text, piece)
            if length <= self._size:
                fitting.append((piece, length))
                continue
            if fitting:
                windows.extend(self._merge(fitting))
                fitting = []
            if remaining:
                windows.extend(self._split(text, piece[0], piece[1], remaining))
            else:
                # No separator left: hard-cut between characters.
                chars = _pieces(text, piece[0], piece[1], "")
                windows.extend(self._merge([(c, self._length(text, c)) for c in chars]))
        if fitting:
            windows.extend(self._merge(fitting))
        return windows

    def _merge(self, pieces: list[tuple[_Span, float]]) -> list[_Span]:
        windows: list[_Span] = []
        current: deque[tuple[_Span, float]] = deque()
        total: float = 0
        for piece, length in pieces:
            if total + length > self._size and current:
                windows.append((current[0][0][0], current[-1][0][1]))
                while current and (
                    total > self._overlap or (total + length > self._size and total > 0)
                ):
                    _, dropped = current.popleft()
                    total -= dropped
                if not current:
                    total = 0
            current.append((piece, length))
            total += length
        if current:
            windows.append((current[0][0][0], current[-1][0][1]))
        return windows


def _pieces(text: str, start: int, end: int, separator: str) -> list[_Span]:
    """Cut ``text[start:end]`` after each *separator*; pieces tile the span."""
    if separator == "":
        return [(i, i + 1) for i in range(start, end)]

    pieces: list[_Span] = []
    pos = start
    while True:
        idx = text.find(separator, pos, end)
        if idx == -1:
            break
        cut = idx + len(separator)
        pieces.append((pos, cut))
        pos = cut
    if pos < end:
        pieces.append((pos, end))
    return pieces


def _trim(text: str, start: int, end: int) -> _Span:
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    return start, end


def chunking_stats(chunks: list[TextChunk]) -> ChunkingStats:
    """Summarise chunk sizes; all fields are zero for an empty list."""
    if not chunks:
        return ChunkingStats()
    sizes = [len(c.content) for c in chunks]
    total = sum(sizes)
    return ChunkingStats(
        total_chunks=len(chunks),
        total_characters=total,
        average_chunk_size=round(total / len(chunks)),
        min_chunk_size=min(sizes),
        max_chunk_size=max(sizes),
    )

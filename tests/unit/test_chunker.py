"""Unit tests for RecursiveTextChunker -- overlapping windows with exact offsets."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from tokenizers import Tokenizer, normalizers, pre_tokenizers
from tokenizers.models import WordLevel

from ragdesk.models.rag import ChunkingConfig, LengthUnit, TextChunk
from ragdesk.services.ingestion.chunker import RecursiveTextChunker, chunking_stats, load_tokenizer
from ragdesk.utils.errors import EmptyInputError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_chunker(chunk_size: int = 1000, overlap: int = 200) -> RecursiveTextChunker:
    return RecursiveTextChunker(ChunkingConfig(chunk_size=chunk_size, chunk_overlap=overlap))


def _unbroken_text(length: int) -> str:
    """Text with no whitespace, so only the empty separator can split it."""
    return "".join(chr(ord("a") + (i * 7) % 26) for i in range(length))


def _word_tokenizer() -> Tokenizer:
    """Offline tokenizer: one token per word, per punctuation run and per CJK character."""
    tokenizer = Tokenizer(WordLevel({"[UNK]": 0}, unk_token="[UNK]"))
    tokenizer.normalizer = normalizers.BertNormalizer(handle_chinese_chars=True)
    tokenizer.pre_tokenizer = pre_tokenizers.Whitespace()
    return tokenizer


def _token_count(tokenizer: Tokenizer, text: str) -> int:
    return len(tokenizer.encode(text, add_special_tokens=False).ids)


def _assert_offsets(text: str, chunks: list[TextChunk]) -> None:
    for expected_index, chunk in enumerate(chunks):
        assert chunk.chunk_index == expected_index
        assert text[chunk.start_offset : chunk.end_offset] == chunk.content


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestWindowing:
    def test_unbroken_text_produces_three_overlapping_windows(self) -> None:
        text = _unbroken_text(2500)
        chunks = _make_chunker().chunk(text)

        assert [c.chunk_index for c in chunks] == [0, 1, 2]
        assert (chunks[0].start_offset, chunks[0].end_offset) == (0, 1000)
        assert chunks[1].start_offset <= 1000
        assert chunks[0].end_offset - chunks[1].start_offset >= 200
        assert chunks[-1].end_offset == 2500
        _assert_offsets(text, chunks)

    def test_short_text_is_one_chunk(self) -> None:
        chunks = _make_chunker().chunk("A short note about the budget.")

        assert len(chunks) == 1
        assert chunks[0].content == "A short note about the budget."
        assert chunks[0].start_offset == 0

    def test_no_chunk_exceeds_size(self, sample_report_text: str) -> None:
        chunks = _make_chunker(chunk_size=300, overlap=50).chunk(sample_report_text)

        assert len(chunks) > 1
        assert all(len(c.content) <= 300 for c in chunks)

    def test_every_non_whitespace_character_is_covered(self, sample_report_text: str) -> None:
        chunks = _make_chunker(chunk_size=400, overlap=80).chunk(sample_report_text)

        covered: set[int] = set()
        for chunk in chunks:
            covered.update(range(chunk.start_offset, chunk.end_offset))
        missing = [
            i for i, ch in enumerate(sample_report_text) if not ch.isspace() and i not in covered
        ]
        assert missing == []

    def test_offsets_match_source(self, sample_report_text: str) -> None:
        text = sample_report_text
        _assert_offsets(text, _make_chunker(chunk_size=250, overlap=40).chunk(text))


class TestSeparatorPriority:
    def test_paragraphs_become_their_own_chunks(self) -> None:
        paragraphs = [f"{word} " * 120 for word in ("alpha", "bravo", "charlie")]
        paragraphs = [p.strip() for p in paragraphs]
        text = "\n\n".join(paragraphs)

        chunks = _make_chunker(chunk_size=1000, overlap=200).chunk(text)

        assert [c.content for c in chunks] == paragraphs

    def test_long_paragraph_falls_back_to_words(self) -> None:
        text = " ".join(f"word{i:04d}" for i in range(300))
        chunks = _make_chunker(chunk_size=200, overlap=40).chunk(text)

        assert len(chunks) > 1
        for chunk in chunks:
            # Word-level splits never cut inside a word.
            assert all(token.startswith("word") and len(token) == 8 for token in chunk.content.split())

    def test_hard_cut_without_empty_separator(self) -> None:
        config = ChunkingConfig(
            chunk_size=1000, chunk_overlap=200, separators=("\n\n", "\n", " ")
        )
        text = "x" * 2500

        chunks = RecursiveTextChunker(config).chunk(text)

        assert [len(c.content) for c in chunks] == [1000, 1000, 900]
        assert chunks[1].start_offset == 800
        _assert_offsets(text, chunks)

    def test_long_word_is_hard_cut_after_last_separator(self) -> None:
        config = ChunkingConfig(chunk_size=20, chunk_overlap=0, separators=(" ",))
        text = "short words then " + "y" * 45

        chunks = RecursiveTextChunker(config).chunk(text)

        assert all(len(c.content) <= 20 for c in chunks)
        assert "".join(c.content for c in chunks if c.content.startswith("y")) == "y" * 45
        _assert_offsets(text, chunks)

    def test_chunks_are_whitespace_trimmed(self) -> None:
        text = "   hello world   "
        chunks = _make_chunker().chunk(text)

        assert len(chunks) == 1
        assert chunks[0].content == "hello world"
        assert (chunks[0].start_offset, chunks[0].end_offset) == (3, 14)


class TestTokenUnits:
    def test_cjk_text_is_cut_at_token_budget(self) -> None:
        config = ChunkingConfig(chunk_size=512, chunk_overlap=64, length_unit=LengthUnit.TOKENS)
        tokenizer = _word_tokenizer()
        text = "漢" * 3000

        chunks = RecursiveTextChunker(config, tokenizer=tokenizer).chunk(text)

        assert all(_token_count(tokenizer, c.content) <= 512 for c in chunks)
        assert len(chunks[0].content) == 512
        assert chunks[1].start_offset == 512 - 64
        assert chunks[-1].end_offset == 3000
        _assert_offsets(text, chunks)

    def test_word_windows_measured_in_tokens(self) -> None:
        config = ChunkingConfig(chunk_size=10, chunk_overlap=2, length_unit=LengthUnit.TOKENS)
        tokenizer = _word_tokenizer()
        text = " ".join(f"w{i}" for i in range(200))

        chunker = RecursiveTextChunker(config, tokenizer=tokenizer)
        chunks = chunker.chunk(text)

        assert chunks[0].content == " ".join(f"w{i}" for i in range(10))
        assert all(chunker.count(c.content) <= 10 for c in chunks)
        assert max(len(c.content) for c in chunks) > 10
        _assert_offsets(text, chunks)

    def test_character_config_ignores_tokenizer(self) -> None:
        chunker = RecursiveTextChunker(
            ChunkingConfig(chunk_size=50, chunk_overlap=0), _word_tokenizer()
        )

        assert chunker.count("漢字 and words") == 12

    def test_unloadable_tokenizer_falls_back_to_estimate(self) -> None:
        config = ChunkingConfig(
            chunk_size=100,
            chunk_overlap=10,
            length_unit=LengthUnit.TOKENS,
            tokenizer_name="unreachable/tokenizer",
        )
        text = _unbroken_text(1000)

        load_tokenizer.cache_clear()
        with patch("ragdesk.services.ingestion.chunker.Tokenizer") as tokenizer_cls:
            tokenizer_cls.from_pretrained.side_effect = Exception("offline")
            chunks = RecursiveTextChunker(config).chunk(text)
        load_tokenizer.cache_clear()

        assert chunks[0].end_offset == 400
        assert all(len(c.content) <= 400 for c in chunks)
        assert chunks[0].end_offset - chunks[1].start_offset >= 40
        _assert_offsets(text, chunks)


class TestValidation:
    @pytest.mark.parametrize("text", ["", "   ", "\n\n\t"])
    def test_blank_text_raises(self, text: str) -> None:
        with pytest.raises(EmptyInputError):
            _make_chunker().chunk(text)

    def test_overlap_must_be_smaller_than_size(self) -> None:
        with pytest.raises(ValueError, match="chunk_overlap"):
            ChunkingConfig(chunk_size=100, chunk_overlap=100)

    def test_default_config(self) -> None:
        chunker = RecursiveTextChunker()
        assert chunker.config.chunk_size == 1000
        assert chunker.config.chunk_overlap == 200


class TestChunkingStats:
    def test_empty_list(self) -> None:
        stats = chunking_stats([])
        assert stats.total_chunks == 0
        assert stats.average_chunk_size == 0

    def test_summary(self) -> None:
        chunks = [
            TextChunk(content="a" * size, start_offset=0, end_offset=size, chunk_index=i)
            for i, size in enumerate((10, 20, 31))
        ]
        stats = chunking_stats(chunks)

        assert stats.total_chunks == 3
        assert stats.total_characters == 61
        assert stats.average_chunk_size == 20
        assert stats.min_chunk_size == 10
        assert stats.max_chunk_size == 31

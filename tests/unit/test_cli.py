"""Unit tests for the operator CLI (ragdesk.cli.ingest) and component wiring."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from ragdesk.cli.ingest import _build_parser, main
from ragdesk.config.loader import load_config
from ragdesk.container import build_components
from ragdesk.providers.records.sqlite_record_store import SQLiteRecordStore
from ragdesk.providers.vector_store.memory_provider import InMemoryVectorStoreProvider
from ragdesk.services.chat_service import ChatService
from ragdesk.services.diagnostics_service import DiagnosticsService
from ragdesk.services.document_service import DocumentService
from ragdesk.services.ingestion.embedder import Embedder
from ragdesk.services.ingestion.ingestion_service import IngestionService
from ragdesk.utils.errors import ConfigurationError
from tests.conftest import FakeBlobStore, MockEmbeddingProvider, _mock_llm, _settings

_REPORT = "Revenue grew 12% in Q3 thanks to the new supplier contracts."


def _components(tmp_path: Path) -> dict[str, Any]:
    settings = _settings()
    records = SQLiteRecordStore(tmp_path / "cli.db")
    embedding = MockEmbeddingProvider()
    embedder = Embedder(embedding, batch_size=100, batch_delay=0.0)
    vector_store = InMemoryVectorStoreProvider(collection_name="cli-test", dimension=16)
    ingestion = IngestionService(records, embedder, vector_store)
    return {
        "settings": settings,
        "records": records,
        "vector_store": vector_store,
        "ingestion_service": ingestion,
        "document_service": DocumentService(
            records, FakeBlobStore(), ingestion, vector_store, settings
        ),
        "chat_service": ChatService(records, embedder, vector_store, _mock_llm(), settings),
        "diagnostics_service": DiagnosticsService(records, vector_store, embedding.get_model()),
    }


def _run_cli(argv: list[str], components: dict[str, Any]) -> int:
    with patch("ragdesk.cli.ingest.build_components", return_value=components):
        with pytest.raises(SystemExit) as exc_info:
            main(argv)
    return exc_info.value.code


# ======================================================================
# Argument parsing
# ======================================================================


class TestParser:
    def test_upload_defaults(self) -> None:
        args = _build_parser().parse_args(["upload", "--file", "report.pdf"])

        assert args.command == "upload"
        assert args.owner == "cli"
        assert args.content_type is None
        assert args.index is False

    def test_search_options(self) -> None:
        args = _build_parser().parse_args(
            ["search", "Q3 revenue", "--limit", "3", "--threshold", "0.5", "--document", "d1"]
        )

        assert (args.query, args.limit, args.threshold, args.document) == ("Q3 revenue", 3, 0.5, "d1")

    @pytest.mark.parametrize("command", ["extract", "index", "reset"])
    def test_document_commands_take_id(self, command: str) -> None:
        args = _build_parser().parse_args([command, "doc-42"])
        assert args.document_id == "doc-42"

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])

        assert exc_info.value.code == 1
        assert "upload" in capsys.readouterr().out


# ======================================================================
# Commands
# ======================================================================


class TestCommands:
    def test_upload_and_index(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        report = tmp_path / "report.txt"
        report.write_text(_REPORT)
        components = _components(tmp_path)

        code = _run_cli(["upload", "--file", str(report), "--index"], components)

        out = capsys.readouterr().out
        assert code == 0
        assert "Uploading: report.txt (text/plain)" in out
        assert "Ingestion complete:" in out
        assert "Chunks:          1" in out
        assert len(components["vector_store"].point_ids()) == 1

    def test_upload_missing_file(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        code = _run_cli(["upload", "--file", str(tmp_path / "nope.txt")], _components(tmp_path))

        assert code == 1
        assert "file not found" in capsys.readouterr().err

    def test_list_and_search(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        report = tmp_path / "report.txt"
        report.write_text(_REPORT)
        components = _components(tmp_path)
        _run_cli(["upload", "--file", str(report), "--index"], components)
        capsys.readouterr()

        _run_cli(["list"], components)
        listing = capsys.readouterr().out
        _run_cli(["search", _REPORT, "--threshold", "0.99"], components)
        search_out = capsys.readouterr().out

        assert "indexed" in listing
        assert "report.txt" in listing
        assert search_out.startswith("1. [1.000] report.txt #0")

    def test_search_without_results(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = _run_cli(["search", "anything"], _components(tmp_path))

        captured = capsys.readouterr()
        assert code == 0
        assert captured.out.strip() == "No results above the score threshold."
        assert "record_store_initialized" in captured.err

    def test_unknown_document_reports_error(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = _run_cli(["index", "ghost"], _components(tmp_path))

        assert code == 1
        assert "Error: Document not found: ghost" in capsys.readouterr().err

    def test_status(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        code = _run_cli(["status"], _components(tmp_path))

        out = capsys.readouterr().out
        assert code == 0
        assert "Record store" in out
        assert "Status:     connected (memory)" in out
        assert "Documents:  0" in out

    def test_configuration_error_exits(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with patch(
            "ragdesk.cli.ingest.build_components",
            side_effect=ConfigurationError(message="Unknown vector store backend 'x'"),
        ):
            with pytest.raises(SystemExit) as exc_info:
                main(["status"])

        assert exc_info.value.code == 1
        assert "Unknown vector store backend" in capsys.readouterr().err


# ======================================================================
# Component wiring
# ======================================================================


class TestBuildComponents:
    def test_memory_backend(self, tmp_path: Path) -> None:
        settings = _settings(database_path=str(tmp_path / "wired.db"))

        components = build_components(
            settings, load_config(str(tmp_path / "absent.yaml"), settings=settings)
        )

        assert isinstance(components["vector_store"], InMemoryVectorStoreProvider)
        assert components["vector_store"].get_collection_name() == "documents"
        assert components["embedder"].model == "text-embedding-3-small"
        for key in ("document_service", "ingestion_service", "chat_service", "diagnostics_service"):
            assert key in components

    def test_unknown_backend(self, tmp_path: Path) -> None:
        settings = _settings(vector_store_backend="pinecone")

        with pytest.raises(ConfigurationError, match="pinecone"):
            build_components(settings, load_config(str(tmp_path / "absent.yaml"), settings=settings))

    def test_builds_without_api_keys(self, tmp_path: Path) -> None:
        settings = _settings(
            openai_api_key="", anthropic_api_key="", database_path=str(tmp_path / "nokeys.db")
        )

        components = build_components(
            settings, load_config(str(tmp_path / "absent.yaml"), settings=settings)
        )

        assert components["embedder"].model == "text-embedding-3-small"
        assert components["llm"].is_available() is False

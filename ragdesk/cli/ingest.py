"""Operator CLI for the ragdesk document corpus.

Usage::

    python -m ragdesk.cli upload --file report.pdf --owner ops
    python -m ragdesk.cli extract <document_id>
    python -m ragdesk.cli index <document_id>
    python -m ragdesk.cli reset <document_id>
    python -m ragdesk.cli list
    python -m ragdesk.cli search "What was Q3 revenue?" --limit 5
    python -m ragdesk.cli status

Every command builds the same providers and services as the API server
(see :mod:`ragdesk.container`), so both read and write the same record
store, bucket and vector collection.
"""

from __future__ import annotations

import argparse
import asyncio
import mimetypes
import sys
from pathlib import Path
from typing import Any

from ragdesk.config.loader import load_config
from ragdesk.config.settings import Settings
from ragdesk.container import build_components, close_components
from ragdesk.utils.errors import RagDeskError
from ragdesk.utils.logging import configure_logging

_DEFAULT_OWNER = "cli"


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _handle_upload(args: argparse.Namespace, components: dict[str, Any]) -> int:
    path = Path(args.file)
    if not path.is_file():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1

    content_type = args.content_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    print(f"Uploading: {path.name} ({content_type})")
    result = await components["document_service"].upload(
        owner_id=args.owner,
        file_name=path.name,
        content=path.read_bytes(),
        content_type=content_type,
    )
    print(f"  Document ID: {result.document_id}")
    print(f"  Storage key: {result.storage_key}")

    if args.index:
        extraction = await components["document_service"].extract_text(result.document_id)
        print(f"  Extracted:   {extraction.text_length} characters")
        return await _print_ingestion(components, result.document_id)
    return 0


async def _handle_extract(args: argparse.Namespace, components: dict[str, Any]) -> int:
    result = await components["document_service"].extract_text(args.document_id)
    print(f"Text extracted from {result.document_id}")
    print(f"  Characters: {result.text_length}")
    if result.page_count is not None:
        print(f"  Pages:      {result.page_count}")
    return 0


async def _handle_index(args: argparse.Namespace, components: dict[str, Any]) -> int:
    return await _print_ingestion(components, args.document_id)


async def _handle_reset(args: argparse.Namespace, components: dict[str, Any]) -> int:
    document = await components["ingestion_service"].reset_document(args.document_id)
    print(f"Document {document.id} reset to {document.status.value}")
    return 0


async def _handle_list(args: argparse.Namespace, components: dict[str, Any]) -> int:
    listings = await components["document_service"].list_documents(args.owner)
    if not listings:
        print("No documents.")
        return 0
    for doc in listings:
        text_flag = "text" if doc.has_raw_text else "-"
        print(f"{doc.id}  {doc.status:<10} {doc.size:>10}  {text_flag:<4}  {doc.display_name}")
    return 0


async def _handle_search(args: argparse.Namespace, components: dict[str, Any]) -> int:
    results = await components["chat_service"].search(
        args.query,
        limit=args.limit,
        score_threshold=args.threshold,
        document_id=args.document,
    )
    if not results:
        print("No results above the score threshold.")
        return 0
    for rank, result in enumerate(results, start=1):
        snippet = result.payload.text[:200].replace("\n", " ")
        print(f"{rank}. [{result.score:.3f}] {result.payload.filename} #{result.payload.chunk_index}")
        print(f"   {snippet}")
    return 0


async def _handle_status(args: argparse.Namespace, components: dict[str, Any]) -> int:
    status = await components["diagnostics_service"].status()
    records, vectors, corpus = status.record_store, status.vector_store, status.corpus

    print("Record store")
    print("=" * 40)
    print(f"  Status:   {records.status}")
    if records.error:
        print(f"  Error:    {records.error}")
    else:
        print(f"  Version:  {records.version}")
        print(f"  Size:     {records.size}")

    print("\nVector store")
    print("=" * 40)
    print(f"  Status:     {vectors.status} ({vectors.provider})")
    print(f"  Collection: {vectors.collection}")
    print(f"  Model:      {vectors.embedding_model}")
    if vectors.error:
        print(f"  Error:      {vectors.error}")
    else:
        print(f"  Points:     {vectors.points_count}")
        print(f"  Indexed:    {vectors.indexed_vectors_count}")

    print("\nCorpus")
    print("=" * 40)
    print(f"  Documents:  {corpus.documents_total}")
    print(f"  Indexed:    {corpus.documents_indexed}")
    print(f"  Unindexed:  {corpus.documents_unindexed}")
    print(f"  Chats:      {corpus.chats_total}")
    return 0


async def _print_ingestion(components: dict[str, Any], document_id: str) -> int:
    print(f"Indexing: {document_id}")
    result = await components["ingestion_service"].index_document(document_id)
    print("\nIngestion complete:")
    print(f"  Chunks:          {result.chunks}")
    print(f"  Avg chunk size:  {result.average_chunk_size}")
    print(f"  Points indexed:  {result.points_indexed}")
    print(f"  Tokens:          {result.tokens_used}")
    print(f"  Estimated cost:  ${result.estimated_cost:.6f}")
    print(f"  Time:            {result.elapsed_seconds:.2f}s")
    return 0


_HANDLERS = {
    "upload": _handle_upload,
    "extract": _handle_extract,
    "index": _handle_index,
    "reset": _handle_reset,
    "list": _handle_list,
    "search": _handle_search,
    "status": _handle_status,
}


async def _run(args: argparse.Namespace, components: dict[str, Any]) -> int:
    try:
        await components["records"].initialize()
        return await _HANDLERS[args.command](args, components)
    except RagDeskError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        await close_components(components)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m ragdesk.cli",
        description="Manage the ragdesk document corpus.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Corpus commands")

    # -- upload --
    upload_parser = subparsers.add_parser("upload", help="Upload a file")
    upload_parser.add_argument("--file", required=True, help="Path to the file")
    upload_parser.add_argument("--owner", default=_DEFAULT_OWNER, help="Owner id (default: cli)")
    upload_parser.add_argument(
        "--content-type", dest="content_type", help="MIME type (guessed from the name if omitted)"
    )
    upload_parser.add_argument(
        "--index", action="store_true", help="Extract text and index right after uploading"
    )

    for name, help_text in (
        ("extract", "Extract raw text from an uploaded document"),
        ("index", "Chunk, embed and index a document"),
        ("reset", "Return a document to PENDING and drop its vectors"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("document_id", help="Document id")

    # -- list --
    list_parser = subparsers.add_parser("list", help="List documents")
    list_parser.add_argument("--owner", default=None, help="Only this owner's documents")

    # -- search --
    search_parser = subparsers.add_parser("search", help="Similarity search over the index")
    search_parser.add_argument("query", help="Search text")
    search_parser.add_argument("--limit", type=int, default=5, help="Maximum results (default: 5)")
    search_parser.add_argument(
        "--threshold", type=float, default=0.7, help="Minimum score (default: 0.7)"
    )
    search_parser.add_argument("--document", default=None, help="Restrict to one document id")

    # -- status --
    subparsers.add_parser("status", help="Show record store, vector store and corpus status")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """Parse the subcommand, build the services and dispatch to its handler."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    configure_logging(log_level=app_settings.log_level, json_output=False)
    try:
        components = build_components(app_settings, load_config(settings=app_settings))
    except RagDeskError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    sys.exit(asyncio.run(_run(args, components)))


if __name__ == "__main__":
    main()

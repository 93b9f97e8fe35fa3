"""Command-line tools for operating ragdesk outside the web API.

ingest.py manages the document corpus: upload, text extraction, indexing,
reset, listing, similarity search and backend status.  Run it with
``python -m ragdesk.cli <command>``.
"""

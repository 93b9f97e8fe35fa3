"""Application settings loaded from environment variables via pydantic-settings.

Values are read from two sources, highest priority first:

1. **Environment variables** -- e.g. ``OPENAI_API_KEY=sk-abc123``.
2. **.env file** -- ``key=value`` lines in the project root, for local
   development.

Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``; defaults apply
when neither source sets a value.  An empty string means "not configured".
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """ragdesk application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Embeddings (OpenAI) ===
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_embedding_model: str = "text-embedding-3-large"
    embedding_batch_size: int = 100
    # Pause between embedding batches, in seconds.
    embedding_batch_delay: float = 0.1

    # === Chat completion (Anthropic) ===
    anthropic_api_key: str = ""
    anthropic_claude_model: str = ""
    chat_max_tokens: int = 4000
    chat_temperature: float = 0.7
    chat_history_window: int = 10
    chat_default_max_sources: int = 5
    chat_default_score_threshold: float = 0.7

    # === Vector store (Qdrant) ===
    # "qdrant" or "memory" (in-process, for local development).
    vector_store_backend: str = "qdrant"
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: str = ""
    qdrant_collection: str = "documents"
    qdrant_upsert_batch_size: int = 100

    # === Blob storage (S3 / MinIO) ===
    minio_endpoint: str = "http://localhost:9000"
    minio_access_key: str = ""
    minio_secret_key: str = ""
    minio_bucket: str = "documents"
    minio_region: str = "us-east-1"
    max_upload_bytes: int = 20 * 1024 * 1024
    preview_url_ttl_seconds: int = 300

    # === Record store (SQLite) ===
    database_path: str = "data/ragdesk.db"

    # === Chunking ===
    # Named preset from config/config.yaml ("character" or "token").
    chunking_preset: str = "character"
    # Explicit overrides; 0 means "use the preset value".
    chunk_size: int = 0
    chunk_overlap: int = 0

    # === Timeouts ===
    # Deadline in seconds for each external call; 0 disables it.
    external_call_timeout: float = 60.0

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
    config_path: str = "config/config.yaml"

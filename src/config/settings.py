"""Application settings loaded from environment variables via pydantic-settings.

Values are read from two sources, in priority order:

  1. **Environment variables** -- e.g. ``OPENAI_API_KEY=sk-abc123``
  2. **.env file** -- key=value lines in the project root ``.env`` file

Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``; defaults apply
when neither source defines a value.  The chunking and cache defaults
mirror the sizes the embedding pipeline was tuned for (500 / 100 tokens at
roughly four characters per token, 1000 cached embeddings for 5 minutes).
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Knowledge-base application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # === Embedding / completion provider ===
    openai_api_key: str = ""
    openai_base_url: str = ""  # Custom base URL for OpenAI-compatible APIs
    openai_embedding_model: str = "text-embedding-3-small"
    openai_text_model: str = "gpt-4o-mini"
    embedding_dimensions: int | None = None  # None = model default
    openai_timeout_seconds: float = 30.0

    # === Embedding cache ===
    embedding_cache_max_size: int = Field(default=1000, ge=1)
    embedding_cache_ttl_seconds: int = Field(default=300, ge=1)
    embedding_inter_call_delay: float = Field(default=0.1, ge=0.0)

    # === Chunking ===
    chunk_max_chars: int = Field(default=2000, ge=1)
    chunk_overlap_chars: int = Field(default=400, ge=0)

    # === Vector store ===
    chromadb_persist_dir: str = "./data/chromadb"
    vector_collection_prefix: str = "org_"
    point_id_scheme: str = "v2"  # "v1" = legacy 32-bit rolling hash
    retrieval_top_k: int = Field(default=5, ge=1)
    retrieval_score_threshold: float = 0.50
    vector_upsert_concurrency: int = Field(default=8, ge=1)

    # === Object storage (S3) ===
    aws_region: str = "us-east-1"
    aws_bucket_name: str = ""
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    s3_endpoint_url: str = ""  # e.g. a local MinIO endpoint
    storage_delete_concurrency: int = Field(default=10, ge=1)

    # === Metadata store ===
    metadata_db_path: str = "data/knowledge_base.db"

    # === Ingestion worker pool ===
    ingestion_workers: int = Field(default=2, ge=1)
    ingestion_queue_size: int = Field(default=100, ge=1)
    ingestion_tmp_dir: str = "data/tmp"
    max_upload_bytes: int = 10 * 1024 * 1024

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

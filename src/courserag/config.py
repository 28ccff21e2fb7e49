"""Runtime configuration for the courserag services."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed configuration model."""

    model_config = SettingsConfigDict(env_prefix="courserag_", env_file=".env", case_sensitive=False)

    environment: Literal["dev", "test", "prod"] = "dev"
    log_level: str = "INFO"
    data_dir: Path = Path("./data")

    # Relational store
    database_url: str | None = None  # defaults to sqlite under data_dir
    database_echo: bool = False

    # Blob storage
    blob_dir: Path | None = None  # defaults to data_dir / "blobs"

    # Vector store; one collection per course
    chroma_persist_dir: Path = Path("./.chroma")
    chroma_host: str | None = None
    chroma_port: int | None = None
    chroma_ssl: bool = False
    collection_prefix: str = "course-"

    # Embedding provider (OpenAI-compatible API)
    embedding_provider: Literal["openai", "hash"] = "openai"
    embedding_model: str = "text-embedding-3-small"
    embedding_dim: int = 1536
    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"

    # Chat model
    chat_provider: Literal["openai", "template"] = "openai"
    chat_model: str = "gpt-4o-mini"
    default_max_tokens: int = 2000

    request_timeout_seconds: float = 30.0
    openai_max_retries: int = 2

    # Ingestion
    chunk_size: int = 1000
    chunk_overlap: int = 200
    embedding_workers: int = 1

    # Retrieval / prompt assembly
    retrieval_search_limit: int = 5
    retrieval_context_chunks: int = 3
    max_context_chars: int = 6000
    max_document_titles: int = 10

    # Uploads
    max_upload_size_mb: int = 25
    allowed_upload_mime_types: tuple[str, ...] | str = (
        "text/plain",
        "text/markdown",
        "application/pdf",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/octet-stream",
    )

    # CORS
    cors_allow_origins: tuple[str, ...] = ()
    cors_allow_credentials: bool = False
    cors_allow_methods: tuple[str, ...] = ("GET", "POST", "PUT", "DELETE", "OPTIONS")
    cors_allow_headers: tuple[str, ...] = ("*",)

    # Security
    api_key: str | None = None  # if set, required in X-API-Key header

    @property
    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite:///{(self.data_dir / 'courserag.db').as_posix()}"

    @property
    def resolved_blob_dir(self) -> Path:
        return self.blob_dir or self.data_dir / "blobs"

    @property
    def allowed_upload_mime_tuple(self) -> tuple[str, ...]:
        value = self.allowed_upload_mime_types
        if isinstance(value, tuple):
            return value
        if isinstance(value, str):
            parts = [p.strip() for p in value.split(",") if p.strip()]
            return tuple(parts)
        return ()


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return Settings()


def get_settings(override: Optional[dict[str, object]] = None) -> Settings:
    """Return settings, optionally overriding values without mutating cache."""

    if override:
        return Settings(**override)
    return _cached_settings()

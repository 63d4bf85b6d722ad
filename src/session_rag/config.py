"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # Sessions
    session_ttl_seconds: float = Field(default=1800, gt=0, description="Idle time before a session is evicted")
    cleanup_interval_seconds: float = Field(default=300, gt=0, description="Period of the expiry sweep")
    session_header: str = "X-Session-Id"
    session_cookie: str = "session_id"

    # Uploads
    upload_dir: Path = Path("uploads")
    max_file_size: int = Field(default=10 * 1024 * 1024, gt=0, description="Per-file upload limit in bytes")
    max_files: int = Field(default=5, gt=0, description="Maximum files accepted by one upload request")

    # Chunking / retrieval
    chunk_size: int = Field(default=600, gt=0)
    chunk_overlap: int = Field(default=150, ge=0)
    retrieval_k: int = Field(default=3, gt=0)

    # Embedding
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"

    # LLM
    openai_api_key: str = Field(default="", description="OpenAI API key (or dummy value for a local server)")
    llm_model_name: str = Field(default="gpt-4o-mini", description="LLM model identifier")
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL for the LLM API. Leave empty to use OpenAI cloud. "
            "Set to any OpenAI-compatible endpoint (vLLM, Ollama, ...) for "
            "self-hosted generation, e.g. 'http://localhost:8001/v1'"
        ),
    )

    # Server
    environment: str = "development"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 5000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @model_validator(mode="after")
    def _check_overlap(self) -> Settings:
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be < chunk_size ({self.chunk_size})"
            )
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


# Default instance; components accept an explicit Settings for injection.
settings = Settings()

"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # LLM
    openai_api_key: str = Field(default="", description="OpenAI API key (or dummy value for local vLLM)")
    llm_model_name: str = Field(default="gpt-4o-mini", description="Chat model used for answer synthesis")
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL for an OpenAI-compatible chat endpoint. "
            "Leave empty to use OpenAI cloud."
        ),
    )
    llm_temperature: float = 0.7
    llm_max_tokens: int = 700

    # Embedding
    embedding_provider: str = Field(default="openai", description="'openai' or 'huggingface'")
    embedding_model: str = "text-embedding-3-small"

    # Chunking / retrieval
    chunk_size: int = 1000
    chunk_overlap: int = 200
    top_k_results: int = 6
    similarity_threshold: float = 0.5

    # Ingestion workers
    ingestion_workers: int = 4
    stale_processing_seconds: int = 3600

    # Storage
    document_backend: str = Field(default="memory", description="'memory' or 'sql'")
    database_url: str = "sqlite:///./docqa.db"
    vector_backend: str = Field(default="memory", description="'memory' or 'chroma'")
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_collection: str = "docqa_chunks"

    # Serving
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Module-level singleton shared by every component.
settings = Settings()

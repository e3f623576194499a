"""
Storage — document records and embedded chunks behind abstract contracts.

Public surface
--------------
- :class:`DocumentStore`, :class:`ChunkStore` — abstract contracts.
- :class:`InMemoryDocumentStore`, :class:`InMemoryChunkStore` — in-process stores.
- :class:`SqlDocumentStore` — SQLAlchemy document store.
- :class:`ChromaChunkStore` — Chroma chunk store.
- :func:`build_document_store`, :func:`build_chunk_store` — settings-driven factories.
"""

from __future__ import annotations

from docqa.config import settings
from docqa.storage.base import ChunkStore, DocumentStore
from docqa.storage.memory import InMemoryChunkStore, InMemoryDocumentStore

__all__ = [
    "ChromaChunkStore",
    "ChunkStore",
    "DocumentStore",
    "InMemoryChunkStore",
    "InMemoryDocumentStore",
    "SqlDocumentStore",
    "build_chunk_store",
    "build_document_store",
]


def build_document_store() -> DocumentStore:
    backend = settings.document_backend.lower()
    if backend == "memory":
        return InMemoryDocumentStore()
    if backend == "sql":
        from docqa.storage.sql_store import SqlDocumentStore

        return SqlDocumentStore.from_url(settings.database_url)
    raise ValueError(f"Unsupported document_backend: {settings.document_backend!r}")


def build_chunk_store(documents: DocumentStore) -> ChunkStore:
    backend = settings.vector_backend.lower()
    if backend == "memory":
        return InMemoryChunkStore(documents)
    if backend == "chroma":
        from docqa.storage.chroma_store import ChromaChunkStore

        return ChromaChunkStore(documents)
    raise ValueError(f"Unsupported vector_backend: {settings.vector_backend!r}")


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import optional backends to avoid pulling in their drivers at import time."""
    if name == "ChromaChunkStore":
        from docqa.storage.chroma_store import ChromaChunkStore

        return ChromaChunkStore
    if name == "SqlDocumentStore":
        from docqa.storage.sql_store import SqlDocumentStore

        return SqlDocumentStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

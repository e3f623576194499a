"""Domain models shared by ingestion, retrieval, storage and serving."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class DocumentStatus(str, Enum):
    """Processing lifecycle of an uploaded document.

    ``PROCESSING`` is the initial state; ``COMPLETED`` and ``FAILED`` are
    terminal.  Reprocessing creates a new document rather than moving a
    terminal record.
    """

    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not DocumentStatus.PROCESSING

    def can_transition_to(self, other: DocumentStatus) -> bool:
        return self is DocumentStatus.PROCESSING and other.is_terminal


class DocumentVisibility(str, Enum):
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"


class Document(BaseModel):
    """One uploaded artifact.

    Attributes
    ----------
    id:
        Document identifier.
    owner_id:
        Identity that uploaded the document; every read is scoped to it.
    filename:
        Stored name, ``<owner>_<unix-ts>_<original>``.
    original_name:
        Filename as supplied by the uploader.
    file_size:
        Size of the raw upload in bytes.
    mime_type:
        Declared content type of the upload.
    status:
        Current :class:`DocumentStatus`.
    chunk_count:
        Number of stored chunks.  Authoritative only once ``status`` is
        ``COMPLETED``; provisional (0 or stale) while processing.
    visibility:
        ``PUBLIC`` or ``PRIVATE``.
    """

    id: str = Field(default_factory=new_id)
    owner_id: str
    filename: str
    original_name: str
    file_size: int = 0
    mime_type: str
    status: DocumentStatus = DocumentStatus.PROCESSING
    chunk_count: int = 0
    visibility: DocumentVisibility = DocumentVisibility.PRIVATE
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ChunkMetadata(BaseModel):
    """Provenance record attached to every chunk.

    Serialised explicitly at the storage boundary with :meth:`to_store`
    and :meth:`from_store`; unset optional hints are omitted so that
    backends with flat scalar metadata (Chroma) accept the payload.
    """

    source: str = "text"
    page_number: int | None = None
    confidence: float | None = None

    def to_store(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)

    @classmethod
    def from_store(cls, data: dict[str, Any] | None) -> ChunkMetadata:
        data = data or {}
        return cls(
            source=data.get("source", "text"),
            page_number=data.get("page_number"),
            confidence=data.get("confidence"),
        )


class Chunk(BaseModel):
    """One retrievable unit of a document.  Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    document_id: str
    chunk_index: int
    content: str
    embedding: list[float] = Field(default_factory=list, repr=False)
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)
    created_at: datetime = Field(default_factory=utcnow)


class SimilarityResult(BaseModel):
    """A chunk scored against one query vector.  Never persisted."""

    chunk: Chunk
    similarity: float = Field(ge=-1.0, le=1.0)

    def sort_key(self) -> tuple[float, datetime, str, int]:
        """Descending similarity, then ascending creation order."""
        return (
            -self.similarity,
            self.chunk.created_at,
            self.chunk.document_id,
            self.chunk.chunk_index,
        )


class Answer(BaseModel):
    """Synthesised answer plus the full ranked source list."""

    answer: str
    sources: list[SimilarityResult] = Field(default_factory=list)


class DocumentPage(BaseModel):
    """One page of an owner's documents."""

    documents: list[Document]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

"""Abstract storage contracts used by the orchestrators.

Adding a backend only requires subclassing :class:`DocumentStore` or
:class:`ChunkStore`; the pipelines never import a concrete store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime

from docqa.models import Chunk, Document, DocumentStatus, SimilarityResult


class DocumentStore(ABC):
    """Relational store for :class:`Document` records."""

    @abstractmethod
    def create(self, document: Document) -> Document:
        """Persist a new document and return it."""
        ...

    @abstractmethod
    def update_status(self, document_id: str, status: DocumentStatus) -> bool:
        """Move *document_id* to *status*.

        Only legal transitions (``PROCESSING`` → terminal) are applied.
        Returns ``True`` when the row changed, ``False`` when the document
        is missing or already terminal.
        """
        ...

    @abstractmethod
    def update_chunk_count(self, document_id: str, count: int) -> None:
        """Record the chunk count; ignored unless the document is ``PROCESSING``."""
        ...

    @abstractmethod
    def get(self, document_id: str) -> Document | None:
        ...

    @abstractmethod
    def find_by_id_and_owner(self, document_id: str, owner_id: str) -> Document | None:
        ...

    @abstractmethod
    def list(self, owner_id: str, page: int, limit: int) -> tuple[list[Document], int]:
        """Return one page of *owner_id*'s documents (newest first) and the total."""
        ...

    @abstractmethod
    def delete(self, document_id: str) -> None:
        ...

    @abstractmethod
    def completed_ids(self) -> set[str]:
        """Ids of every document whose status is ``COMPLETED``."""
        ...

    @abstractmethod
    def list_stale(self, status: DocumentStatus, older_than: datetime) -> list[Document]:
        """Documents in *status* not updated since *older_than*."""
        ...


class ChunkStore(ABC):
    """Vector store for :class:`Chunk` records."""

    @abstractmethod
    def create_batch(self, chunks: Sequence[Chunk]) -> None:
        """Persist *chunks* atomically: all become visible or none do.

        Raises
        ------
        StorageError
            When the batch could not be written.  No chunk of the batch
            is left behind.
        """
        ...

    @abstractmethod
    def search_similar(
        self,
        vector: Sequence[float],
        top_k: int,
        threshold: float,
    ) -> list[SimilarityResult]:
        """Return up to *top_k* chunks of ``COMPLETED`` documents with
        cosine similarity ``>= threshold``, most similar first."""
        ...

    @abstractmethod
    def delete_by_document(self, document_id: str) -> None:
        ...

    @abstractmethod
    def count_by_document(self, document_id: str) -> int:
        ...

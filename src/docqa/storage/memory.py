"""In-process stores for development and tests.

Both stores guard their state with a lock so concurrent ingestion jobs
and queries observe whole batches only.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from datetime import datetime

import numpy as np

from docqa.exceptions import StorageError
from docqa.models import Chunk, Document, DocumentStatus, SimilarityResult, utcnow
from docqa.storage.base import ChunkStore, DocumentStore


class InMemoryDocumentStore(DocumentStore):
    def __init__(self) -> None:
        self._docs: dict[str, Document] = {}
        self._lock = threading.Lock()

    def create(self, document: Document) -> Document:
        with self._lock:
            if document.id in self._docs:
                raise StorageError("Document already exists", {"document_id": document.id})
            self._docs[document.id] = document.model_copy()
        return document

    def update_status(self, document_id: str, status: DocumentStatus) -> bool:
        with self._lock:
            doc = self._docs.get(document_id)
            if doc is None or not doc.status.can_transition_to(status):
                return False
            self._docs[document_id] = doc.model_copy(
                update={"status": status, "updated_at": utcnow()}
            )
            return True

    def update_chunk_count(self, document_id: str, count: int) -> None:
        with self._lock:
            doc = self._docs.get(document_id)
            if doc is None or doc.status is not DocumentStatus.PROCESSING:
                return
            self._docs[document_id] = doc.model_copy(
                update={"chunk_count": count, "updated_at": utcnow()}
            )

    def get(self, document_id: str) -> Document | None:
        with self._lock:
            doc = self._docs.get(document_id)
            return doc.model_copy() if doc else None

    def find_by_id_and_owner(self, document_id: str, owner_id: str) -> Document | None:
        doc = self.get(document_id)
        if doc is None or doc.owner_id != owner_id:
            return None
        return doc

    def list(self, owner_id: str, page: int, limit: int) -> tuple[list[Document], int]:
        with self._lock:
            owned = [d for d in self._docs.values() if d.owner_id == owner_id]
        owned.sort(key=lambda d: d.created_at, reverse=True)
        offset = (page - 1) * limit
        return [d.model_copy() for d in owned[offset : offset + limit]], len(owned)

    def delete(self, document_id: str) -> None:
        with self._lock:
            self._docs.pop(document_id, None)

    def completed_ids(self) -> set[str]:
        with self._lock:
            return {d.id for d in self._docs.values() if d.status is DocumentStatus.COMPLETED}

    def list_stale(self, status: DocumentStatus, older_than: datetime) -> list[Document]:
        with self._lock:
            return [
                d.model_copy()
                for d in self._docs.values()
                if d.status is status and d.updated_at < older_than
            ]


class InMemoryChunkStore(ChunkStore):
    """Brute-force cosine search over every stored chunk.

    Parameters
    ----------
    documents:
        Document store consulted to restrict search to ``COMPLETED``
        documents.
    """

    def __init__(self, documents: DocumentStore) -> None:
        self._documents = documents
        self._chunks: dict[str, list[Chunk]] = {}
        self._lock = threading.Lock()

    def create_batch(self, chunks: Sequence[Chunk]) -> None:
        staged: dict[str, list[Chunk]] = {}
        for chunk in chunks:
            if not chunk.embedding:
                raise StorageError("Chunk has no embedding", {"chunk_id": chunk.id})
            staged.setdefault(chunk.document_id, []).append(chunk)

        # Swap in the whole batch under one lock acquisition.
        with self._lock:
            for document_id, new_chunks in staged.items():
                self._chunks[document_id] = self._chunks.get(document_id, []) + new_chunks

    def search_similar(
        self,
        vector: Sequence[float],
        top_k: int,
        threshold: float,
    ) -> list[SimilarityResult]:
        completed = self._documents.completed_ids()
        with self._lock:
            candidates = [
                c for doc_id in completed for c in self._chunks.get(doc_id, [])
            ]
        if not candidates:
            return []

        query = np.asarray(vector, dtype=np.float64)
        matrix = np.asarray([c.embedding for c in candidates], dtype=np.float64)
        if matrix.shape[1] != query.shape[0]:
            raise StorageError(
                "Query vector dimension does not match stored embeddings",
                {"query_dim": query.shape[0], "stored_dim": matrix.shape[1]},
            )
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        scores = np.divide(matrix @ query, norms, out=np.zeros(len(candidates)), where=norms > 0)

        results = [
            SimilarityResult(chunk=chunk, similarity=float(np.clip(score, -1.0, 1.0)))
            for chunk, score in zip(candidates, scores)
            if score >= threshold
        ]
        results.sort(key=SimilarityResult.sort_key)
        return results[:top_k]

    def delete_by_document(self, document_id: str) -> None:
        with self._lock:
            self._chunks.pop(document_id, None)

    def count_by_document(self, document_id: str) -> int:
        with self._lock:
            return len(self._chunks.get(document_id, []))

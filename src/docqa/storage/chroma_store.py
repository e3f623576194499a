"""Chroma implementation of the chunk store."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

import chromadb

from docqa.config import settings
from docqa.exceptions import StorageError
from docqa.models import Chunk, ChunkMetadata, SimilarityResult
from docqa.storage.base import ChunkStore, DocumentStore

logger = logging.getLogger(__name__)

_RESERVED_KEYS = ("document_id", "chunk_index", "created_at")


def _to_chroma_metadata(chunk: Chunk) -> dict[str, Any]:
    # Chroma metadata values must be flat str/int/float/bool
    return {
        **chunk.metadata.to_store(),
        "document_id": chunk.document_id,
        "chunk_index": chunk.chunk_index,
        "created_at": chunk.created_at.timestamp(),
    }


def _from_chroma(chunk_id: str, content: str | None, meta: dict[str, Any] | None) -> Chunk:
    meta = dict(meta or {})
    provenance = {k: v for k, v in meta.items() if k not in _RESERVED_KEYS}
    return Chunk(
        id=chunk_id,
        document_id=str(meta.get("document_id", "")),
        chunk_index=int(meta.get("chunk_index", 0)),
        content=content or "",
        metadata=ChunkMetadata.from_store(provenance),
        created_at=datetime.fromtimestamp(float(meta.get("created_at", 0.0)), tz=timezone.utc),
    )


class ChromaChunkStore(ChunkStore):
    """Chroma-backed chunk store using cosine distance.

    Parameters
    ----------
    documents:
        Document store consulted for the set of ``COMPLETED`` documents;
        search is restricted to their chunks with a ``where`` filter.
    collection:
        An existing Chroma collection.  When *None*, one is opened (or
        created with ``hnsw:space=cosine``) on the configured server.
    """

    def __init__(self, documents: DocumentStore, collection: Any | None = None) -> None:
        self._documents = documents
        if collection is None:
            client = chromadb.HttpClient(host=settings.chroma_host, port=settings.chroma_port)
            collection = client.get_or_create_collection(
                name=settings.chroma_collection,
                metadata={"hnsw:space": "cosine"},
            )
        self._collection = collection

    def create_batch(self, chunks: Sequence[Chunk]) -> None:
        if not chunks:
            return
        try:
            self._collection.add(
                ids=[c.id for c in chunks],
                embeddings=[c.embedding for c in chunks],
                documents=[c.content for c in chunks],
                metadatas=[_to_chroma_metadata(c) for c in chunks],
            )
        except Exception as exc:
            # Roll back whatever part of the batch landed.
            for document_id in {c.document_id for c in chunks}:
                try:
                    self._collection.delete(where={"document_id": document_id})
                except Exception:
                    logger.exception("Rollback of chunks for document %s failed", document_id)
            raise StorageError(f"Failed to save chunks: {exc}") from exc

    def search_similar(
        self,
        vector: Sequence[float],
        top_k: int,
        threshold: float,
    ) -> list[SimilarityResult]:
        completed = sorted(self._documents.completed_ids())
        if not completed:
            return []

        try:
            results = self._collection.query(
                query_embeddings=[list(vector)],
                n_results=top_k,
                where={"document_id": {"$in": completed}},
                include=["documents", "metadatas", "distances"],
            )
        except Exception as exc:
            raise StorageError(f"Similarity search failed: {exc}") from exc

        ids = (results.get("ids") or [[]])[0]
        docs = (results.get("documents") or [[]])[0]
        metas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        hits: list[SimilarityResult] = []
        for chunk_id, content, meta, dist in zip(ids, docs, metas, distances):
            # Cosine space: distance = 1 - cosine similarity.
            similarity = max(-1.0, min(1.0, 1.0 - float(dist)))
            if similarity < threshold:
                continue
            hits.append(SimilarityResult(chunk=_from_chroma(chunk_id, content, meta), similarity=similarity))
        hits.sort(key=SimilarityResult.sort_key)
        return hits

    def delete_by_document(self, document_id: str) -> None:
        try:
            self._collection.delete(where={"document_id": document_id})
        except Exception as exc:
            raise StorageError(f"Failed to delete chunks: {exc}") from exc

    def count_by_document(self, document_id: str) -> int:
        try:
            found = self._collection.get(where={"document_id": document_id}, include=[])
        except Exception as exc:
            raise StorageError(f"Failed to count chunks: {exc}") from exc
        return len(found.get("ids") or [])

"""Service facade — the operations the delivery layer calls.

``upload_document`` returns as soon as the ``PROCESSING`` record exists;
ingestion continues on the worker pool and its outcome is visible only
by polling the document's status.
"""

from __future__ import annotations

import logging
import time
from datetime import timedelta

from docqa.config import settings
from docqa.exceptions import NotFoundError, ServiceUnavailableError, ValidationError
from docqa.ingestion.chunker import Chunker
from docqa.ingestion.embedder import EmbeddingGateway
from docqa.ingestion.extractor import DefaultTextExtractor
from docqa.ingestion.orchestrator import IngestionOrchestrator, IngestionWorkerPool, reconcile_stale
from docqa.models import Answer, Document, DocumentPage, DocumentStatus, DocumentVisibility
from docqa.retrieval.query import QueryOrchestrator
from docqa.retrieval.ranker import RetrievalRanker
from docqa.retrieval.synthesizer import AnswerSynthesizer
from docqa.storage import build_chunk_store, build_document_store
from docqa.storage.base import ChunkStore, DocumentStore

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class DocumentService:
    """Owner-scoped document management plus question answering."""

    def __init__(
        self,
        documents: DocumentStore,
        chunks: ChunkStore,
        pool: IngestionWorkerPool,
        query: QueryOrchestrator,
        *,
        stale_after: timedelta = timedelta(hours=1),
    ) -> None:
        self._documents = documents
        self._chunks = chunks
        self._pool = pool
        self._query = query
        self._stale_after = stale_after

    def upload_document(
        self,
        owner_id: str,
        filename: str,
        data: bytes,
        mime_type: str,
        visibility: DocumentVisibility = DocumentVisibility.PRIVATE,
    ) -> Document:
        if not owner_id:
            raise ValidationError("owner_id is required", field="owner_id")
        if not filename:
            raise ValidationError("filename is required", field="filename")
        if not data:
            raise ValidationError("uploaded file is empty", field="file")
        if not mime_type:
            raise ValidationError("mime_type is required", field="mime_type")

        doc = Document(
            owner_id=owner_id,
            filename=f"{owner_id}_{int(time.time())}_{filename}",
            original_name=filename,
            file_size=len(data),
            mime_type=mime_type,
            status=DocumentStatus.PROCESSING,
            chunk_count=0,
            visibility=visibility,
        )
        self._documents.create(doc)
        try:
            self._pool.submit(doc.id, data, mime_type)
        except RuntimeError as exc:
            # pool shut down: no job will ever pick this record up
            self._documents.delete(doc.id)
            raise ServiceUnavailableError("Ingestion is shutting down", {"document_id": doc.id}) from exc
        logger.info("Document %s queued for ingestion (%d bytes)", doc.id, len(data))
        return doc

    def list_documents(self, owner_id: str, page: int = 1, limit: int = 10) -> DocumentPage:
        if page < 1:
            raise ValidationError("page must be >= 1", field="page")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be in [1, {MAX_PAGE_SIZE}]", field="limit")
        docs, total = self._documents.list(owner_id, page, limit)
        return DocumentPage(documents=docs, total=total, page=page, limit=limit)

    def get_document(self, document_id: str, owner_id: str) -> Document:
        doc = self._documents.find_by_id_and_owner(document_id, owner_id)
        if doc is None:
            raise NotFoundError("Document", document_id)
        return doc

    def delete_document(self, document_id: str, owner_id: str) -> None:
        self.get_document(document_id, owner_id)
        # Chunks first so none outlives its document.
        self._chunks.delete_by_document(document_id)
        self._documents.delete(document_id)
        logger.info("Document %s deleted", document_id)

    def answer_query(self, query: str) -> Answer:
        return self._query.answer(query)

    def reconcile(self) -> list[str]:
        return reconcile_stale(self._documents, self._stale_after)

    def shutdown(self, *, cancel_pending: bool = False) -> None:
        self._pool.shutdown(wait=True, cancel_pending=cancel_pending)


def build_service() -> DocumentService:
    """Wire a :class:`DocumentService` from the global settings."""
    documents = build_document_store()
    chunks = build_chunk_store(documents)
    embedder = EmbeddingGateway()

    orchestrator = IngestionOrchestrator(
        documents,
        chunks,
        DefaultTextExtractor(),
        Chunker(settings.chunk_size, settings.chunk_overlap),
        embedder,
    )
    pool = IngestionWorkerPool(orchestrator, max_workers=settings.ingestion_workers)
    query = QueryOrchestrator(
        embedder,
        RetrievalRanker(chunks),
        AnswerSynthesizer(),
        top_k=settings.top_k_results,
        threshold=settings.similarity_threshold,
    )
    return DocumentService(
        documents,
        chunks,
        pool,
        query,
        stale_after=timedelta(seconds=settings.stale_processing_seconds),
    )

"""Ingestion orchestrator — extract → chunk → embed → persist → finalize.

One call to :meth:`IngestionOrchestrator.run` processes one document.
It is meant to be submitted to :class:`IngestionWorkerPool` so that it
runs detached from the upload request.  Steps inside one run are strictly
sequential; separate runs share nothing but the stores.

Status contract
---------------
* Success: chunk count written, *then* status → ``COMPLETED``, so a
  poller never sees ``COMPLETED`` with a stale count.
* Any failure (typed or not) inside the run: status → ``FAILED`` and the
  fault is logged.  Nothing escapes :meth:`run`.
* Pool shutdown between steps: the document stays ``PROCESSING`` for
  :func:`reconcile_stale` to pick up.
* Document deleted or no longer ``PROCESSING`` (swept, already ingested):
  the run is abandoned and none of its chunks are kept.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timedelta

from docqa.exceptions import (
    EmbeddingServiceError,
    EmptyContentError,
    ExtractionError,
    IngestionCancelled,
    IngestionSuperseded,
)
from docqa.ingestion.chunker import Chunker
from docqa.ingestion.embedder import EmbeddingGateway
from docqa.ingestion.extractor import TextExtractor
from docqa.models import Chunk, ChunkMetadata, DocumentStatus, utcnow
from docqa.storage.base import ChunkStore, DocumentStore

logger = logging.getLogger(__name__)


class IngestionOrchestrator:
    """Drive one document through the ingestion pipeline.

    Parameters
    ----------
    documents:
        Store holding the document record whose status is managed.
    chunks:
        Store receiving the embedded chunks as one atomic batch.
    extractor:
        ``bytes + mime type → text`` collaborator.
    chunker:
        Configured :class:`Chunker`.
    embedder:
        :class:`EmbeddingGateway` used for the single batch call.
    cancel_event:
        Cancellation token checked between steps.  Owned by the worker
        pool when one is used.
    """

    def __init__(
        self,
        documents: DocumentStore,
        chunks: ChunkStore,
        extractor: TextExtractor,
        chunker: Chunker,
        embedder: EmbeddingGateway,
        *,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._documents = documents
        self._chunks = chunks
        self._extractor = extractor
        self._chunker = chunker
        self._embedder = embedder
        self.cancel_event = cancel_event or threading.Event()

    # -- public API -----------------------------------------------------------

    def run(self, document_id: str, data: bytes, mime_type: str) -> DocumentStatus | None:
        """Run :meth:`ingest` behind the task boundary.

        Returns the status the document was left in, or *None* when the
        document no longer exists or cannot be read back.  Never raises.
        """
        try:
            count = self.ingest(document_id, data, mime_type)
        except IngestionCancelled:
            logger.warning("Ingestion of document %s cancelled; left in PROCESSING", document_id)
            return DocumentStatus.PROCESSING
        except IngestionSuperseded as exc:
            logger.warning("Ingestion of document %s abandoned: %s", document_id, exc.message)
            return self._stored_status(document_id)
        except Exception:
            logger.exception("Error processing document %s", document_id)
            if self._mark_failed(document_id):
                self._discard_chunks(document_id)
                return DocumentStatus.FAILED
            return self._stored_status(document_id)

        logger.info("Document %s processed successfully with %d chunks", document_id, count)
        return DocumentStatus.COMPLETED

    def ingest(self, document_id: str, data: bytes, mime_type: str) -> int:
        """Run the pipeline for *document_id* and return its chunk count.

        Raises whatever step fails; use :meth:`run` for the fault-isolated
        variant.
        """
        logger.info("Starting processing for document %s", document_id)

        # 1. extract
        self._checkpoint(document_id)
        self._require_processing(document_id)
        try:
            text = self._extractor.extract_text(data, mime_type)
        except ExtractionError:
            raise
        except Exception as exc:
            raise ExtractionError(f"Failed to extract text: {exc}") from exc
        if not text or not text.strip():
            raise ExtractionError("No text extracted from document", {"document_id": document_id})
        logger.info("Extracted %d characters from document %s", len(text), document_id)

        # 2. chunk
        pieces = self._chunker.chunk(text)
        if not pieces:
            raise EmptyContentError("No chunks generated", {"document_id": document_id})
        logger.info("Generated %d chunks from document %s", len(pieces), document_id)

        # 3. embed
        self._checkpoint(document_id)
        vectors = self._embedder.embed_batch(pieces)
        if len(vectors) != len(pieces):
            raise EmbeddingServiceError(
                "Embedding count does not match chunk count",
                {"expected": len(pieces), "received": len(vectors)},
            )
        logger.info("Generated %d embeddings for document %s", len(vectors), document_id)

        # 4. persist (atomic)
        self._checkpoint(document_id)
        self._require_processing(document_id)
        batch = [
            Chunk(
                document_id=document_id,
                chunk_index=index,
                content=content,
                embedding=vector,
                metadata=ChunkMetadata(source="text"),
            )
            for index, (content, vector) in enumerate(zip(pieces, vectors))
        ]
        self._chunks.create_batch(batch)
        logger.info("Saved %d chunks for document %s", len(batch), document_id)

        # 5. finalize: count first, then status
        self._documents.update_chunk_count(document_id, len(batch))
        if not self._documents.update_status(document_id, DocumentStatus.COMPLETED):
            # deleted or swept while persisting; its chunks must not survive
            self._discard_chunks(document_id)
            raise IngestionSuperseded(
                "COMPLETED transition refused", {"document_id": document_id}
            )
        return len(batch)

    # -- internals ------------------------------------------------------------

    def _checkpoint(self, document_id: str) -> None:
        if self.cancel_event.is_set():
            raise IngestionCancelled("Ingestion cancelled", {"document_id": document_id})

    def _require_processing(self, document_id: str) -> None:
        doc = self._documents.get(document_id)
        if doc is None:
            raise IngestionSuperseded("Document no longer exists", {"document_id": document_id})
        if doc.status is not DocumentStatus.PROCESSING:
            raise IngestionSuperseded(
                f"Document is {doc.status.value}, not PROCESSING",
                {"document_id": document_id, "status": doc.status.value},
            )

    def _stored_status(self, document_id: str) -> DocumentStatus | None:
        try:
            doc = self._documents.get(document_id)
        except Exception:
            logger.exception("Could not read back status of document %s", document_id)
            return None
        return doc.status if doc else None

    def _discard_chunks(self, document_id: str) -> None:
        try:
            self._chunks.delete_by_document(document_id)
        except Exception:
            logger.exception("Could not discard chunks of failed document %s", document_id)

    def _mark_failed(self, document_id: str) -> bool:
        """Return False only when the store refused the transition."""
        try:
            applied = self._documents.update_status(document_id, DocumentStatus.FAILED)
        except Exception:
            logger.exception("Could not mark document %s as FAILED", document_id)
            return True
        if not applied:
            logger.warning("Document %s was no longer PROCESSING; FAILED transition refused", document_id)
        return applied


class IngestionWorkerPool:
    """Bounded pool running one ingestion job per document.

    Parameters
    ----------
    orchestrator:
        The orchestrator whose :meth:`~IngestionOrchestrator.run` is
        submitted.  Its ``cancel_event`` becomes the pool's shutdown token.
    max_workers:
        Maximum number of documents ingested concurrently.
    """

    def __init__(self, orchestrator: IngestionOrchestrator, max_workers: int = 4) -> None:
        if max_workers <= 0:
            raise ValueError(f"max_workers must be > 0, got {max_workers}")
        self._orchestrator = orchestrator
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="ingest")
        self._lock = threading.Lock()
        self._futures: set[Future[DocumentStatus | None]] = set()

    @property
    def in_flight(self) -> int:
        with self._lock:
            return sum(1 for f in self._futures if not f.done())

    def submit(self, document_id: str, data: bytes, mime_type: str) -> Future[DocumentStatus | None]:
        future = self._executor.submit(self._orchestrator.run, document_id, data, mime_type)
        with self._lock:
            self._futures.add(future)
        future.add_done_callback(self._discard)
        return future

    def shutdown(self, *, wait: bool = True, cancel_pending: bool = False) -> None:
        """Stop accepting work and optionally wait for in-flight jobs.

        With ``cancel_pending`` the cancellation token is set, so running
        jobs stop at their next step boundary and queued jobs end at once;
        their documents stay ``PROCESSING``.
        """
        if cancel_pending:
            self._orchestrator.cancel_event.set()
        self._executor.shutdown(wait=wait)
        logger.info("Ingestion worker pool shut down")

    def __enter__(self) -> IngestionWorkerPool:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown(wait=True)

    def _discard(self, future: Future[DocumentStatus | None]) -> None:
        with self._lock:
            self._futures.discard(future)


def reconcile_stale(documents: DocumentStore, older_than: timedelta) -> list[str]:
    """Mark documents stuck in ``PROCESSING`` longer than *older_than* as ``FAILED``.

    Raw upload bytes are not retained, so stuck documents cannot be
    re-queued; failing them lets the owner see the outcome and re-upload.
    Returns the ids that were transitioned.
    """
    cutoff: datetime = utcnow() - older_than
    swept: list[str] = []
    for doc in documents.list_stale(DocumentStatus.PROCESSING, cutoff):
        if documents.update_status(doc.id, DocumentStatus.FAILED):
            logger.warning("Document %s stuck in PROCESSING since %s; marked FAILED", doc.id, doc.updated_at)
            swept.append(doc.id)
    return swept

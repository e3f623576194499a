"""
Ingestion — text extraction, normalisation, chunking, embedding and the
orchestrator that drives one document through the pipeline.

Each uploaded document becomes one job on a bounded worker pool.  The
job runs detached from the upload request and reports its outcome only
through the document's status (``PROCESSING`` → ``COMPLETED`` | ``FAILED``).
"""

from docqa.ingestion.chunker import Chunker
from docqa.ingestion.embedder import EmbeddingGateway, get_embeddings
from docqa.ingestion.extractor import DefaultTextExtractor, TextExtractor
from docqa.ingestion.normalizer import normalize
from docqa.ingestion.orchestrator import (
    IngestionOrchestrator,
    IngestionWorkerPool,
    reconcile_stale,
)

__all__ = [
    "Chunker",
    "DefaultTextExtractor",
    "EmbeddingGateway",
    "IngestionOrchestrator",
    "IngestionWorkerPool",
    "TextExtractor",
    "get_embeddings",
    "normalize",
    "reconcile_stale",
]

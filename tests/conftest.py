"""Shared pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import MagicMock

import pytest
from langchain_core.embeddings import Embeddings

from docqa.ingestion.chunker import Chunker
from docqa.ingestion.embedder import EmbeddingGateway
from docqa.ingestion.extractor import DefaultTextExtractor
from docqa.ingestion.orchestrator import IngestionOrchestrator, IngestionWorkerPool
from docqa.retrieval.query import QueryOrchestrator
from docqa.retrieval.ranker import RetrievalRanker
from docqa.retrieval.synthesizer import AnswerSynthesizer
from docqa.service import DocumentService
from docqa.storage.memory import InMemoryChunkStore, InMemoryDocumentStore

VOCABULARY = ("kubernetes", "pipeline", "refund", "policy", "vector", "database")


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


class KeywordEmbeddings(Embeddings):
    """Deterministic embeddings: one dimension per vocabulary word, plus a bias.

    Texts sharing keywords get high cosine similarity, which keeps
    retrieval assertions readable.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    def _vector(self, text: str) -> list[float]:
        lowered = text.lower()
        return [float(lowered.count(word)) for word in VOCABULARY] + [0.1]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self._vector(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        return self._vector(text)


@pytest.fixture()
def keyword_embeddings() -> KeywordEmbeddings:
    return KeywordEmbeddings()


@pytest.fixture()
def document_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture()
def chunk_store(document_store: InMemoryDocumentStore) -> InMemoryChunkStore:
    return InMemoryChunkStore(document_store)


@pytest.fixture()
def orchestrator(
    document_store: InMemoryDocumentStore,
    chunk_store: InMemoryChunkStore,
    keyword_embeddings: KeywordEmbeddings,
) -> IngestionOrchestrator:
    return IngestionOrchestrator(
        document_store,
        chunk_store,
        DefaultTextExtractor(),
        Chunker(chunk_size=200, chunk_overlap=20),
        EmbeddingGateway(keyword_embeddings),
    )


@pytest.fixture()
def synthesizer() -> MagicMock:
    fake = MagicMock(spec=AnswerSynthesizer)
    fake.synthesize.return_value = "Refunds are accepted within thirty days."
    return fake


@pytest.fixture()
def service(
    document_store: InMemoryDocumentStore,
    chunk_store: InMemoryChunkStore,
    orchestrator: IngestionOrchestrator,
    keyword_embeddings: KeywordEmbeddings,
    synthesizer: MagicMock,
) -> Iterator[DocumentService]:
    query = QueryOrchestrator(
        EmbeddingGateway(keyword_embeddings),
        RetrievalRanker(chunk_store),
        synthesizer,
        top_k=3,
        threshold=0.5,
    )
    svc = DocumentService(
        document_store,
        chunk_store,
        IngestionWorkerPool(orchestrator, max_workers=2),
        query,
    )
    yield svc
    svc.shutdown()

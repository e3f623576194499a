"""Unit tests for the retrieval layer — ranking policy and the query pipeline."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from docqa.exceptions import EmbeddingServiceError, NoEmbeddingError, SynthesisError, ValidationError
from docqa.ingestion.embedder import EmbeddingGateway
from docqa.models import Chunk, Document, DocumentStatus, SimilarityResult
from docqa.retrieval.prompts import NO_RESULTS_ANSWER, format_context
from docqa.retrieval.query import QueryOrchestrator
from docqa.retrieval.ranker import RetrievalRanker
from docqa.storage.base import ChunkStore
from docqa.storage.memory import InMemoryChunkStore, InMemoryDocumentStore


# ── Fake chunk store for deterministic testing ──────────────────────────


class FakeChunkStore(ChunkStore):
    """Returns canned results, ignoring the store-side policy."""

    def __init__(self, hits: list[SimilarityResult] | None = None) -> None:
        self._hits = hits or []
        self.calls: list[tuple[int, float]] = []

    def create_batch(self, chunks: Sequence[Chunk]) -> None:
        raise NotImplementedError

    def search_similar(self, vector: Sequence[float], top_k: int, threshold: float) -> list[SimilarityResult]:
        self.calls.append((top_k, threshold))
        return list(self._hits)

    def delete_by_document(self, document_id: str) -> None:
        raise NotImplementedError

    def count_by_document(self, document_id: str) -> int:
        return 0


T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _hit(content: str, similarity: float, *, offset: int = 0, doc: str = "doc-1", index: int = 0) -> SimilarityResult:
    return SimilarityResult(
        chunk=Chunk(
            document_id=doc,
            chunk_index=index,
            content=content,
            embedding=[1.0],
            created_at=T0 + timedelta(seconds=offset),
        ),
        similarity=similarity,
    )


SAMPLE_HITS = [
    _hit("low", 0.45, offset=0),
    _hit("high", 0.92, offset=1),
    _hit("mid", 0.87, offset=2),
]


# ═══════════════════════════════════════════════════════════════════════
# RetrievalRanker
# ═══════════════════════════════════════════════════════════════════════


class TestRetrievalRanker:
    def test_orders_by_descending_similarity(self) -> None:
        ranked = RetrievalRanker(FakeChunkStore(SAMPLE_HITS)).retrieve([1.0], 5, 0.0)
        assert [r.chunk.content for r in ranked] == ["high", "mid", "low"]

    def test_threshold_filters(self) -> None:
        ranked = RetrievalRanker(FakeChunkStore(SAMPLE_HITS)).retrieve([1.0], 5, 0.5)
        assert [r.chunk.content for r in ranked] == ["high", "mid"]

    def test_top_k_limits(self) -> None:
        ranked = RetrievalRanker(FakeChunkStore(SAMPLE_HITS)).retrieve([1.0], 1, 0.0)
        assert [r.chunk.content for r in ranked] == ["high"]

    def test_policy_forwarded_to_store(self) -> None:
        store = FakeChunkStore(SAMPLE_HITS)
        RetrievalRanker(store).retrieve([1.0], 3, 0.25)
        assert store.calls == [(3, 0.25)]

    def test_ties_broken_by_creation_order(self) -> None:
        hits = [
            _hit("later", 0.8, offset=10, index=1),
            _hit("earlier", 0.8, offset=5, index=0),
            _hit("earliest-other-doc", 0.8, offset=5, doc="doc-0", index=3),
        ]
        ranked = RetrievalRanker(FakeChunkStore(hits)).retrieve([1.0], 3, 0.0)
        assert [r.chunk.content for r in ranked] == ["earliest-other-doc", "earlier", "later"]

    def test_ranking_is_stable_across_calls(self) -> None:
        ranker = RetrievalRanker(FakeChunkStore(SAMPLE_HITS))
        assert ranker.retrieve([1.0], 3, 0.0) == ranker.retrieve([1.0], 3, 0.0)

    def test_nothing_clears_threshold_returns_empty(self) -> None:
        assert RetrievalRanker(FakeChunkStore(SAMPLE_HITS)).retrieve([1.0], 3, 0.99) == []

    @pytest.mark.parametrize(
        ("top_k", "threshold", "vector"),
        [(0, 0.5, [1.0]), (-1, 0.5, [1.0]), (3, 1.5, [1.0]), (3, -1.1, [1.0]), (3, 0.5, [])],
    )
    def test_invalid_arguments_rejected(self, top_k: int, threshold: float, vector: list[float]) -> None:
        with pytest.raises(ValidationError):
            RetrievalRanker(FakeChunkStore()).retrieve(vector, top_k, threshold)


# ── Against the in-memory store ─────────────────────────────────────────


@pytest.fixture()
def populated_store() -> InMemoryChunkStore:
    """Three completed chunks at known angles from the query [1, 0]."""
    documents = InMemoryDocumentStore()
    documents.create(Document(id="doc-a", owner_id="u1", filename="a", original_name="a", mime_type="text/plain"))
    documents.update_status("doc-a", DocumentStatus.COMPLETED)
    store = InMemoryChunkStore(documents)
    store.create_batch(
        [
            Chunk(document_id="doc-a", chunk_index=0, content="exact", embedding=[1.0, 0.0]),
            Chunk(document_id="doc-a", chunk_index=1, content="close", embedding=[0.8, 0.6]),
            Chunk(document_id="doc-a", chunk_index=2, content="orthogonal", embedding=[0.0, 1.0]),
        ]
    )
    return store


def test_only_one_chunk_above_high_threshold(populated_store: InMemoryChunkStore) -> None:
    ranked = RetrievalRanker(populated_store).retrieve([1.0, 0.0], 3, 0.9)
    assert len(ranked) == 1
    assert ranked[0].chunk.content == "exact"
    assert ranked[0].similarity == pytest.approx(1.0)


def test_raising_threshold_never_grows_results(populated_store: InMemoryChunkStore) -> None:
    ranker = RetrievalRanker(populated_store)
    sizes = [len(ranker.retrieve([1.0, 0.0], 3, t)) for t in (-1.0, 0.0, 0.5, 0.79, 0.81, 0.99, 1.0)]
    assert sizes == sorted(sizes, reverse=True)


def test_raising_top_k_never_shrinks_results(populated_store: InMemoryChunkStore) -> None:
    ranker = RetrievalRanker(populated_store)
    sizes = [len(ranker.retrieve([1.0, 0.0], k, -1.0)) for k in (1, 2, 3, 10)]
    assert sizes == sorted(sizes)
    assert sizes[-1] == 3


# ═══════════════════════════════════════════════════════════════════════
# QueryOrchestrator
# ═══════════════════════════════════════════════════════════════════════


def _orchestrator(
    hits: list[SimilarityResult],
    *,
    embedder: MagicMock | None = None,
    synthesizer: MagicMock | None = None,
) -> tuple[QueryOrchestrator, MagicMock, MagicMock]:
    if embedder is None:
        embedder = MagicMock(spec=EmbeddingGateway)
        embedder.embed_batch.return_value = [[1.0, 0.0]]
    if synthesizer is None:
        synthesizer = MagicMock()
        synthesizer.synthesize.return_value = "synthesised answer"
    orchestrator = QueryOrchestrator(
        embedder,
        RetrievalRanker(FakeChunkStore(hits)),
        synthesizer,
        top_k=3,
        threshold=0.5,
    )
    return orchestrator, embedder, synthesizer


class TestQueryOrchestrator:
    def test_answer_with_sources(self) -> None:
        orchestrator, embedder, synthesizer = _orchestrator(SAMPLE_HITS)
        result = orchestrator.answer("What is high?")

        embedder.embed_batch.assert_called_once_with(["What is high?"])
        assert result.answer == "synthesised answer"
        assert [s.chunk.content for s in result.sources] == ["high", "mid"]

    def test_context_labels_rank_and_score(self) -> None:
        orchestrator, _, synthesizer = _orchestrator(SAMPLE_HITS)
        orchestrator.answer("q")
        query, context = synthesizer.synthesize.call_args.args
        assert query == "q"
        assert context == "[Document 1 - Similarity: 0.92]\nhigh\n\n[Document 2 - Similarity: 0.87]\nmid\n\n"

    def test_empty_retrieval_returns_canned_answer_without_synthesis(self) -> None:
        orchestrator, _, synthesizer = _orchestrator([])
        result = orchestrator.answer("anything")
        assert result.answer == NO_RESULTS_ANSWER
        assert result.sources == []
        synthesizer.synthesize.assert_not_called()

    def test_empty_embedding_is_hard_error(self) -> None:
        embedder = MagicMock()
        embedder.embed_batch.return_value = []
        orchestrator, _, _ = _orchestrator(SAMPLE_HITS, embedder=embedder)
        with pytest.raises(NoEmbeddingError):
            orchestrator.answer("q")

    def test_empty_response_through_gateway_is_no_embedding_error(self) -> None:
        embeddings = MagicMock()
        embeddings.embed_documents.return_value = []
        orchestrator, _, synthesizer = _orchestrator(SAMPLE_HITS, embedder=EmbeddingGateway(embeddings))
        with pytest.raises(NoEmbeddingError):
            orchestrator.answer("q")
        synthesizer.synthesize.assert_not_called()

    def test_embedding_failure_propagates(self) -> None:
        embedder = MagicMock()
        embedder.embed_batch.side_effect = EmbeddingServiceError("down")
        orchestrator, _, _ = _orchestrator(SAMPLE_HITS, embedder=embedder)
        with pytest.raises(EmbeddingServiceError):
            orchestrator.answer("q")

    def test_synthesis_failure_propagates(self) -> None:
        synthesizer = MagicMock()
        synthesizer.synthesize.side_effect = SynthesisError("no choices")
        orchestrator, _, _ = _orchestrator(SAMPLE_HITS, synthesizer=synthesizer)
        with pytest.raises(SynthesisError):
            orchestrator.answer("q")

    def test_blank_query_rejected(self) -> None:
        orchestrator, embedder, _ = _orchestrator(SAMPLE_HITS)
        with pytest.raises(ValidationError):
            orchestrator.answer("   ")
        embedder.embed_batch.assert_not_called()


def test_format_context_empty() -> None:
    assert format_context([]) == ""

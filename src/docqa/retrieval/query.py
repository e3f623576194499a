"""Query orchestrator — embed query → retrieve → synthesize.

Usage::

    from docqa.retrieval.query import QueryOrchestrator

    orchestrator = QueryOrchestrator(embedder, ranker, synthesizer, top_k=6, threshold=0.5)
    result = orchestrator.answer("What is the refund policy?")
    for source in result.sources:
        print(source.similarity, source.chunk.content[:80])
"""

from __future__ import annotations

import logging

from docqa.exceptions import NoEmbeddingError, ValidationError
from docqa.ingestion.embedder import EmbeddingGateway
from docqa.models import Answer
from docqa.retrieval.prompts import NO_RESULTS_ANSWER, format_context
from docqa.retrieval.ranker import RetrievalRanker
from docqa.retrieval.synthesizer import AnswerSynthesizer

logger = logging.getLogger(__name__)


class QueryOrchestrator:
    """Answer one natural-language question from the stored chunks.

    Runs synchronously in the caller's request.  Embedding, storage and
    synthesis failures propagate as typed errors; an empty retrieval
    yields the canned :data:`NO_RESULTS_ANSWER` without calling the model.
    """

    def __init__(
        self,
        embedder: EmbeddingGateway,
        ranker: RetrievalRanker,
        synthesizer: AnswerSynthesizer,
        *,
        top_k: int = 6,
        threshold: float = 0.5,
    ) -> None:
        self._embedder = embedder
        self._ranker = ranker
        self._synthesizer = synthesizer
        self.top_k = top_k
        self.threshold = threshold

    def answer(self, query: str) -> Answer:
        if not query or not query.strip():
            raise ValidationError("query must not be empty", field="query")

        vectors = self._embedder.embed_batch([query])
        # EmbeddingGateway raises on its own; this covers gateways that return []
        if not vectors or not vectors[0]:
            raise NoEmbeddingError("No embedding generated for query")

        sources = self._ranker.retrieve(vectors[0], self.top_k, self.threshold)
        if not sources:
            logger.info("No chunk cleared threshold %.2f", self.threshold)
            return Answer(answer=NO_RESULTS_ANSWER, sources=[])

        answer = self._synthesizer.synthesize(query, format_context(sources))
        return Answer(answer=answer, sources=sources)

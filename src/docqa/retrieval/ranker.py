"""Retrieval policy over the chunk store's similarity search."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from docqa.exceptions import ValidationError
from docqa.models import SimilarityResult
from docqa.storage.base import ChunkStore

logger = logging.getLogger(__name__)


class RetrievalRanker:
    """Top-*k* retrieval above a similarity floor.

    Nearest-neighbour search is delegated to the :class:`ChunkStore`;
    this class owns the policy and re-applies it to whatever the store
    returns:

    * only results with ``similarity >= threshold``;
    * descending similarity, ties broken by ascending chunk creation
      order (then document id and chunk index) so equal inputs always
      give equal output;
    * at most ``top_k`` results.

    An empty list means nothing cleared the threshold; it is not an error.
    """

    def __init__(self, store: ChunkStore) -> None:
        self._store = store

    def retrieve(
        self,
        query_vector: Sequence[float],
        top_k: int,
        threshold: float,
    ) -> list[SimilarityResult]:
        if top_k <= 0:
            raise ValidationError(f"top_k must be > 0, got {top_k}", field="top_k")
        if not -1.0 <= threshold <= 1.0:
            raise ValidationError(f"threshold must be in [-1, 1], got {threshold}", field="threshold")
        if not query_vector:
            raise ValidationError("query_vector must not be empty", field="query_vector")

        hits = self._store.search_similar(query_vector, top_k, threshold)
        ranked = sorted(
            (h for h in hits if h.similarity >= threshold),
            key=SimilarityResult.sort_key,
        )[:top_k]
        logger.debug("Retrieved %d chunks (top_k=%d, threshold=%.2f)", len(ranked), top_k, threshold)
        return ranked

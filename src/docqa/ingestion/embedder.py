"""Embedding gateway — one remote round trip per batch."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from docqa.config import settings
from docqa.exceptions import EmbeddingServiceError, NoEmbeddingError

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

logger = logging.getLogger(__name__)


def get_embeddings() -> Embeddings:
    """Return the configured LangChain embedding model.

    ``openai`` (default) calls the remote OpenAI embeddings API;
    ``huggingface`` runs a sentence-transformer model locally.
    """
    provider = settings.embedding_provider.lower()
    if provider == "openai":
        from langchain_openai import OpenAIEmbeddings

        return OpenAIEmbeddings(model=settings.embedding_model, api_key=settings.openai_api_key)
    if provider == "huggingface":
        from langchain_huggingface import HuggingFaceEmbeddings

        return HuggingFaceEmbeddings(model_name=settings.embedding_model)
    raise ValueError(f"Unsupported embedding_provider: {settings.embedding_provider!r}")


class EmbeddingGateway:
    """Convert text segments into fixed-dimension vectors.

    Parameters
    ----------
    embeddings:
        Any LangChain ``Embeddings`` implementation.  When *None*, the
        model from :func:`get_embeddings` is used.

    No retries happen here; a failed batch is reported once and the
    caller decides what to do.
    """

    def __init__(self, embeddings: Embeddings | None = None) -> None:
        self._embeddings = embeddings if embeddings is not None else get_embeddings()

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed *texts* in a single call, preserving order.

        Raises
        ------
        NoEmbeddingError
            When the service answers with no vectors at all.
        EmbeddingServiceError
            On transport failure, a vector count that differs from
            ``len(texts)``, or vectors of mixed dimension.
        """
        if not texts:
            return []

        try:
            vectors = self._embeddings.embed_documents(list(texts))
        except Exception as exc:
            raise EmbeddingServiceError(f"Embedding request failed: {exc}") from exc

        if not vectors:
            raise NoEmbeddingError("Embedding service returned no vectors")
        if len(vectors) != len(texts):
            raise EmbeddingServiceError(
                "Embedding service returned a different number of vectors than inputs",
                {"expected": len(texts), "received": len(vectors)},
            )

        dims = {len(v) for v in vectors}
        if len(dims) != 1 or 0 in dims:
            raise EmbeddingServiceError(
                "Embedding service returned vectors of inconsistent dimension",
                {"dimensions": sorted(dims)},
            )

        logger.debug("Embedded %d texts (dim=%d)", len(vectors), dims.pop())
        return [list(map(float, v)) for v in vectors]

"""
Retrieval — similarity ranking, answer synthesis, and the query pipeline.

Public surface
--------------
- :class:`QueryOrchestrator` — main entry point: question → :class:`~docqa.models.Answer`.
- :class:`RetrievalRanker` — top-k / threshold policy over a chunk store.
- :class:`AnswerSynthesizer` — grounded answer generation.
- :func:`get_llm` — configured chat model factory.
"""

from docqa.retrieval.query import QueryOrchestrator
from docqa.retrieval.ranker import RetrievalRanker
from docqa.retrieval.synthesizer import AnswerSynthesizer, get_llm

__all__ = [
    "AnswerSynthesizer",
    "QueryOrchestrator",
    "RetrievalRanker",
    "get_llm",
]

"""Prompt templates and context formatting for answer synthesis.

Keeping prompts in one place makes them easy to audit and version.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from langchain_core.messages import HumanMessage, SystemMessage

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

    from docqa.models import SimilarityResult

NOT_FOUND_ANSWER = "Sorry, I could not find that information in the documents."

NO_RESULTS_ANSWER = "Sorry, I could not find any relevant information in the documents."

SYNTHESIS_SYSTEM = f"""\
You are an assistant that answers questions based on the documents provided.

Instructions:
1. Answer the question ONLY from the given context.
2. If the context does not contain the information, reply exactly:
   "{NOT_FOUND_ANSWER}"
3. Give a clear, concise and well-structured answer.
4. Do NOT fabricate information that is not in the context.
"""


def build_synthesis_prompt(query: str, context: str) -> list[BaseMessage]:
    """Build the grounded-answer prompt for :class:`AnswerSynthesizer`."""
    return [
        SystemMessage(content=SYNTHESIS_SYSTEM),
        HumanMessage(
            content=(
                f"Context from documents:\n{context}\n"
                f"Question: {query}\n\n"
                "Answer:"
            )
        ),
    ]


def format_context(results: Sequence[SimilarityResult]) -> str:
    """Concatenate ranked chunks, each labelled with its rank and score."""
    parts: list[str] = []
    for i, result in enumerate(results, 1):
        parts.append(
            f"[Document {i} - Similarity: {result.similarity:.2f}]\n{result.chunk.content}\n\n"
        )
    return "".join(parts)

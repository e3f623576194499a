"""Answer synthesizer gateway and LLM initialisation.

Supports OpenAI cloud (default, set ``OPENAI_API_KEY``) or any
OpenAI-compatible endpoint via ``LLM_BASE_URL``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from langchain_openai import ChatOpenAI

from docqa.config import settings
from docqa.exceptions import SynthesisError
from docqa.retrieval.prompts import build_synthesis_prompt

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

logger = logging.getLogger(__name__)


def get_llm() -> ChatOpenAI:
    """Return the configured chat model.

    When ``settings.llm_base_url`` is set the client is pointed at that
    endpoint instead of the OpenAI cloud API; a dummy key (``"EMPTY"``)
    is used when none is configured.
    """
    kwargs: dict = {
        "model": settings.llm_model_name,
        "temperature": settings.llm_temperature,
        "max_tokens": settings.llm_max_tokens,
    }

    if settings.llm_base_url:
        logger.info("Using OpenAI-compatible endpoint: %s", settings.llm_base_url)
        kwargs["base_url"] = settings.llm_base_url
        kwargs["api_key"] = settings.openai_api_key or "EMPTY"
    else:
        kwargs["api_key"] = settings.openai_api_key

    return ChatOpenAI(**kwargs)


class AnswerSynthesizer:
    """Produce a grounded answer from a query and a context block.

    The "not found in context" judgment is left to the model through
    the system prompt; the returned text is not inspected.
    """

    def __init__(self, llm: BaseChatModel | None = None) -> None:
        self._llm = llm if llm is not None else get_llm()

    def synthesize(self, query: str, context: str) -> str:
        messages = build_synthesis_prompt(query, context)
        try:
            result = self._llm.generate([messages])
        except Exception as exc:
            raise SynthesisError(f"Failed to generate answer: {exc}") from exc

        choices = result.generations[0] if result.generations else []
        if not choices:
            raise SynthesisError("No response from language model")
        return choices[0].text

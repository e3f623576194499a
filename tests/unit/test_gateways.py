"""Unit tests for the embedding and answer-synthesis gateways."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import AIMessage, SystemMessage
from langchain_core.outputs import ChatGeneration, LLMResult

from docqa.exceptions import EmbeddingServiceError, NoEmbeddingError, SynthesisError
from docqa.ingestion.embedder import EmbeddingGateway
from docqa.retrieval.prompts import NOT_FOUND_ANSWER, build_synthesis_prompt
from docqa.retrieval.synthesizer import AnswerSynthesizer


def _embeddings_returning(vectors: list[list[float]]) -> MagicMock:
    fake = MagicMock()
    fake.embed_documents.return_value = vectors
    return fake


# ═══════════════════════════════════════════════════════════════════════
# EmbeddingGateway
# ═══════════════════════════════════════════════════════════════════════


class TestEmbeddingGateway:
    def test_one_vector_per_text_in_order(self, keyword_embeddings) -> None:
        gateway = EmbeddingGateway(keyword_embeddings)
        vectors = gateway.embed_batch(["refund policy", "vector database"])
        assert len(vectors) == 2
        assert vectors[0] == keyword_embeddings.embed_query("refund policy")
        assert vectors[1] == keyword_embeddings.embed_query("vector database")

    def test_single_round_trip_per_batch(self, keyword_embeddings) -> None:
        EmbeddingGateway(keyword_embeddings).embed_batch(["a", "b", "c"])
        assert keyword_embeddings.calls == [["a", "b", "c"]]

    def test_empty_input_skips_remote_call(self) -> None:
        fake = _embeddings_returning([])
        assert EmbeddingGateway(fake).embed_batch([]) == []
        fake.embed_documents.assert_not_called()

    def test_transport_failure_wrapped(self) -> None:
        fake = MagicMock()
        fake.embed_documents.side_effect = ConnectionError("boom")
        with pytest.raises(EmbeddingServiceError, match="boom"):
            EmbeddingGateway(fake).embed_batch(["text"])

    def test_empty_response_is_no_embedding_error(self) -> None:
        with pytest.raises(NoEmbeddingError):
            EmbeddingGateway(_embeddings_returning([])).embed_batch(["text"])

    def test_fewer_vectors_than_inputs_is_error(self) -> None:
        gateway = EmbeddingGateway(_embeddings_returning([[0.1, 0.2]]))
        with pytest.raises(EmbeddingServiceError) as excinfo:
            gateway.embed_batch(["one", "two"])
        assert excinfo.value.details == {"expected": 2, "received": 1}

    def test_inconsistent_dimensions_is_error(self) -> None:
        gateway = EmbeddingGateway(_embeddings_returning([[0.1, 0.2], [0.3]]))
        with pytest.raises(EmbeddingServiceError):
            gateway.embed_batch(["one", "two"])


# ═══════════════════════════════════════════════════════════════════════
# AnswerSynthesizer
# ═══════════════════════════════════════════════════════════════════════


class TestSynthesisPrompt:
    def test_prompt_contains_context_and_question(self) -> None:
        messages = build_synthesis_prompt("What is X?", "[Document 1 - Similarity: 0.90]\nX is Y.\n\n")
        assert isinstance(messages[0], SystemMessage)
        assert NOT_FOUND_ANSWER in messages[0].content
        assert "X is Y." in messages[1].content
        assert "Question: What is X?" in messages[1].content


class TestAnswerSynthesizer:
    def test_returns_model_text_unchanged(self) -> None:
        llm = FakeListChatModel(responses=["The answer is 42."])
        assert AnswerSynthesizer(llm).synthesize("q", "ctx") == "The answer is 42."

    def test_not_found_reply_passed_through(self) -> None:
        llm = FakeListChatModel(responses=[NOT_FOUND_ANSWER])
        assert AnswerSynthesizer(llm).synthesize("q", "ctx") == NOT_FOUND_ANSWER

    def test_transport_failure_wrapped(self) -> None:
        llm = MagicMock()
        llm.generate.side_effect = TimeoutError("upstream timeout")
        with pytest.raises(SynthesisError, match="upstream timeout"):
            AnswerSynthesizer(llm).synthesize("q", "ctx")

    def test_empty_choice_set_is_error(self) -> None:
        llm = MagicMock()
        llm.generate.return_value = LLMResult(generations=[[]])
        with pytest.raises(SynthesisError):
            AnswerSynthesizer(llm).synthesize("q", "ctx")

    def test_one_generate_call_with_grounding_prompt(self) -> None:
        llm = MagicMock()
        llm.generate.return_value = LLMResult(
            generations=[[ChatGeneration(message=AIMessage(content="ok"))]]
        )
        AnswerSynthesizer(llm).synthesize("Why?", "because")
        (batch,), _ = llm.generate.call_args
        assert len(batch) == 1
        assert "because" in batch[0][1].content

"""Tests for embed_properties.embedding module."""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from embed_properties.config import EmbeddingConfig
from embed_properties.embedding import (
    EmbeddingClient,
    GeminiEmbeddingProvider,
    SentenceTransformerProvider,
    build_embedding_provider,
)
from embed_properties.errors import EmbeddingError, SetupError


def _client(provider, **kwargs) -> tuple[EmbeddingClient, MagicMock]:
    sleep = MagicMock()
    rng = MagicMock()
    rng.uniform.return_value = 1.0
    return EmbeddingClient(provider, sleep=sleep, rng=rng, **kwargs), sleep


class TestEmbeddingClient:
    def test_returns_vector_on_first_success(self) -> None:
        provider = MagicMock()
        provider.embed.return_value = [0.1, 0.2, 0.3]
        client, sleep = _client(provider)

        assert client.embed("text") == [0.1, 0.2, 0.3]
        provider.embed.assert_called_once_with("text")
        sleep.assert_not_called()

    @pytest.mark.parametrize("failures", [1, 2, 3, 4])
    def test_succeeds_after_k_failures(self, failures: int) -> None:
        provider = MagicMock()
        provider.embed.side_effect = [RuntimeError("quota")] * failures + [[1, 0, 0]]
        client, sleep = _client(provider)

        assert client.embed("text") == [1.0, 0.0, 0.0]
        assert provider.embed.call_count == failures + 1
        assert sleep.call_count == failures

    def test_exhaustion_raises_after_five_calls(self) -> None:
        provider = MagicMock()
        provider.embed.side_effect = RuntimeError("unavailable")
        client, sleep = _client(provider)

        with pytest.raises(EmbeddingError) as exc_info:
            client.embed("text")

        assert provider.embed.call_count == 5
        assert exc_info.value.attempts == 5
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        # No wait after the final attempt
        assert sleep.call_count == 4

    def test_exponential_backoff_delays(self) -> None:
        provider = MagicMock()
        provider.embed.side_effect = RuntimeError("unavailable")
        client, sleep = _client(provider)

        with pytest.raises(EmbeddingError):
            client.embed("text")

        delays = [call.args[0] for call in sleep.call_args_list]
        assert delays == [1.0, 2.0, 4.0, 8.0]

    def test_jitter_drawn_from_half_to_one(self) -> None:
        rng = MagicMock()
        rng.uniform.return_value = 0.5
        client = EmbeddingClient(MagicMock(), base_delay=1.0, rng=rng)

        assert client.backoff(3) == 2.0
        rng.uniform.assert_called_with(0.5, 1.0)

    def test_backoff_bounds_with_real_jitter(self) -> None:
        client = EmbeddingClient(MagicMock(), base_delay=1.0)
        for attempt in range(1, 5):
            delay = client.backoff(attempt)
            assert 0.5 * 2 ** (attempt - 1) <= delay <= 2 ** (attempt - 1)

    def test_custom_retry_count(self) -> None:
        provider = MagicMock()
        provider.embed.side_effect = RuntimeError("unavailable")
        client, _ = _client(provider, max_retries=2)

        with pytest.raises(EmbeddingError):
            client.embed("text")
        assert provider.embed.call_count == 2

    def test_non_numeric_value_counts_as_failure(self) -> None:
        provider = MagicMock()
        provider.embed.side_effect = [[0.1, "x"], [0.1, 0.2]]
        client, sleep = _client(provider)

        assert client.embed("text") == [0.1, 0.2]
        assert provider.embed.call_count == 2

    def test_accepts_numpy_floats(self) -> None:
        provider = MagicMock()
        provider.embed.return_value = list(np.array([0.5, 0.25], dtype=np.float32))
        client, _ = _client(provider)

        assert client.embed("text") == [0.5, 0.25]

    def test_rejects_zero_retries(self) -> None:
        with pytest.raises(ValueError):
            EmbeddingClient(MagicMock(), max_retries=0)


class TestProviders:
    @patch("embed_properties.embedding.GoogleGenerativeAIEmbeddings")
    def test_gemini_provider_embeds_document(self, mock_embeddings_cls) -> None:
        mock_embeddings = MagicMock()
        mock_embeddings.embed_documents.return_value = [[0.1, 0.2]]
        mock_embeddings_cls.return_value = mock_embeddings

        provider = GeminiEmbeddingProvider("key", model="models/text-embedding-004")

        assert provider.embed("Title: T") == [0.1, 0.2]
        mock_embeddings_cls.assert_called_once_with(model="models/text-embedding-004", google_api_key="key")
        mock_embeddings.embed_documents.assert_called_once_with(["Title: T"])

    @patch("embed_properties.embedding.SentenceTransformer")
    def test_sentence_transformer_provider(self, mock_st_cls) -> None:
        mock_model = MagicMock()
        mock_model.encode.return_value = np.array([0.3, 0.4])
        mock_st_cls.return_value = mock_model

        provider = SentenceTransformerProvider("test-model")

        assert provider.embed("Title: T") == [0.3, 0.4]
        mock_st_cls.assert_called_once_with("test-model")


class TestBuildEmbeddingProvider:
    def test_gemini_requires_api_key(self) -> None:
        with pytest.raises(SetupError):
            build_embedding_provider(EmbeddingConfig(provider="gemini", api_key=None))

    @patch("embed_properties.embedding.GoogleGenerativeAIEmbeddings")
    def test_gemini_with_api_key(self, mock_embeddings_cls) -> None:
        provider = build_embedding_provider(EmbeddingConfig(provider="gemini", api_key="key"))
        assert isinstance(provider, GeminiEmbeddingProvider)

    @patch("embed_properties.embedding.SentenceTransformer")
    def test_sentence_transformers(self, mock_st_cls) -> None:
        config = EmbeddingConfig(provider="sentence-transformers", model="all-MiniLM-L6-v2")
        provider = build_embedding_provider(config)

        assert isinstance(provider, SentenceTransformerProvider)
        mock_st_cls.assert_called_once_with("all-MiniLM-L6-v2")

    @patch("embed_properties.embedding.SentenceTransformer")
    def test_model_load_failure_is_setup_error(self, mock_st_cls) -> None:
        mock_st_cls.side_effect = OSError("not found")
        with pytest.raises(SetupError):
            build_embedding_provider(EmbeddingConfig(provider="sentence-transformers", model="missing"))

    def test_unknown_provider(self) -> None:
        with pytest.raises(SetupError):
            build_embedding_provider(EmbeddingConfig(provider="openai", api_key="key"))

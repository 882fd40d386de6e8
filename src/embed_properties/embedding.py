"""Embedding providers and the retrying embedding client."""

import logging
import numbers
import random
import time
from typing import Callable, Protocol

from langchain_google_genai import GoogleGenerativeAIEmbeddings
from sentence_transformers import SentenceTransformer
from tenacity import RetryCallState, RetryError, Retrying, stop_after_attempt

from embed_properties.config import EmbeddingConfig
from embed_properties.errors import EmbeddingError, SetupError

logger = logging.getLogger(__name__)

GEMINI_PROVIDER = "gemini"
SENTENCE_TRANSFORMERS_PROVIDER = "sentence-transformers"


class EmbeddingProvider(Protocol):
    """Anything that turns a text into a vector."""

    def embed(self, text: str) -> list[float]:
        ...


class GeminiEmbeddingProvider:
    """Google Generative AI embeddings (text-embedding-004 produces 768 dimensions)."""

    def __init__(self, api_key: str, model: str = "models/text-embedding-004"):
        self.model = model
        self._embeddings = GoogleGenerativeAIEmbeddings(model=model, google_api_key=api_key)

    def embed(self, text: str) -> list[float]:
        return self._embeddings.embed_documents([text])[0]


class SentenceTransformerProvider:
    """Local sentence-transformers model, no credential required."""

    def __init__(self, model: str = "all-MiniLM-L6-v2"):
        self.model = model
        logger.info("Loading model: %s", model)
        self._encoder = SentenceTransformer(model)

    def embed(self, text: str) -> list[float]:
        return self._encoder.encode(text, convert_to_numpy=True).tolist()


def build_embedding_provider(config: EmbeddingConfig) -> EmbeddingProvider:
    """
    Create the provider named in the embedding config.

    Raises:
        SetupError: If the provider is unknown, the Gemini API key is missing,
            or the local model cannot be loaded.
    """
    if config.provider == GEMINI_PROVIDER:
        if not config.api_key:
            raise SetupError("GOOGLE_GENERATIVE_AI_API_KEY is not set")
        return GeminiEmbeddingProvider(config.api_key, config.model)

    if config.provider == SENTENCE_TRANSFORMERS_PROVIDER:
        try:
            return SentenceTransformerProvider(config.model)
        except OSError as exc:
            raise SetupError(f"Could not load model {config.model}: {exc}") from exc

    raise SetupError(f"Unknown embedding provider: {config.provider}")


class EmbeddingClient:
    """
    Request embeddings with bounded exponential backoff.

    A failed attempt k (1-indexed) waits ``base_delay * 2**(k-1) * jitter`` seconds
    before the next one, with jitter drawn uniformly from [0.5, 1.0]. The last
    attempt does not wait. All provider errors are treated the same way.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        max_retries: int = 5,
        base_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.provider = provider
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep
        self._rng = rng or random.Random()

    def backoff(self, attempt: int) -> float:
        """Delay in seconds after failed attempt number ``attempt``."""
        return self.base_delay * 2 ** (attempt - 1) * self._rng.uniform(0.5, 1.0)

    def _wait(self, retry_state: RetryCallState) -> float:
        return self.backoff(retry_state.attempt_number)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        logger.warning(
            "Embedding API error: %s. Retrying in %.2f seconds... (Attempt %d/%d)",
            retry_state.outcome.exception(),
            retry_state.next_action.sleep,
            retry_state.attempt_number,
            self.max_retries,
        )

    def _request(self, text: str) -> list[float]:
        vector = self.provider.embed(text)
        for value in vector:
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise TypeError(f"Embedding contains a non-numeric value: {value!r}")
        return [float(value) for value in vector]

    def embed(self, text: str) -> list[float]:
        """
        Embed a text, retrying failed provider calls.

        Raises:
            EmbeddingError: If every attempt failed.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries),
            wait=self._wait,
            sleep=self._sleep,
            before_sleep=self._log_retry,
        )
        try:
            return retrying(self._request, text)
        except RetryError as exc:
            cause = exc.last_attempt.exception()
            raise EmbeddingError(
                f"failed to generate embedding after {self.max_retries} attempts: {cause}",
                attempts=exc.last_attempt.attempt_number,
            ) from cause

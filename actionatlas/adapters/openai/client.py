"""
OpenAI Embedding Client - Text embeddings for semantic search.

Features:
- Async client (openai.AsyncOpenAI)
- Text normalization before embedding
- Dimensionality validation on every vector
- Retries with exponential backoff on transient API failures
"""

from __future__ import annotations

import logging
import math

from openai import APIConnectionError, APIStatusError, AsyncOpenAI, RateLimitError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from actionatlas.config.errors import ConfigurationError, EmbeddingError, ErrorCode
from actionatlas.domains.search.cache import normalize_text

logger = logging.getLogger(__name__)

__all__ = ["OpenAIEmbeddingClient", "validate_embedding"]

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
EMBEDDING_DIMENSIONS = 1536


def validate_embedding(vector: list[float], dimension: int = EMBEDDING_DIMENSIONS) -> bool:
    """True iff the vector has the expected length and only finite values."""
    if len(vector) != dimension:
        return False
    return all(
        isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)
        for v in vector
    )


class OpenAIEmbeddingClient:
    """
    OpenAI embeddings client.

    Example:
        >>> client = OpenAIEmbeddingClient(api_key="sk-...")
        >>> vector = await client.embed("teach kids programming")
    """

    def __init__(
        self,
        api_key: str | None,
        model: str = DEFAULT_EMBEDDING_MODEL,
        dimension: int = EMBEDDING_DIMENSIONS,
    ) -> None:
        """
        Initialize embedding client.

        Args:
            api_key: OpenAI API key (checked lazily on first call)
            model: Embedding model name
            dimension: Expected vector length
        """
        self._api_key = api_key or None
        self.model = model
        self.dimension = dimension
        self._client: AsyncOpenAI | None = None
        self.tokens_used = 0

    def _get_client(self) -> AsyncOpenAI:
        """Get or create API client."""
        if self._api_key is None:
            raise ConfigurationError(
                "OPENAI_API_KEY is not set. Please set it to use embedding generation."
            )
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    @retry(
        retry=retry_if_exception_type((APIConnectionError, RateLimitError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _create(self, inputs: list[str]) -> list[list[float]]:
        client = self._get_client()
        response = await client.embeddings.create(model=self.model, input=inputs)

        if response.usage is not None:
            self.tokens_used += response.usage.total_tokens

        # The API may return items out of order for batch requests
        data = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in data]

    def _check(self, vectors: list[list[float]]) -> None:
        for vector in vectors:
            if not validate_embedding(vector, self.dimension):
                raise EmbeddingError(
                    f"Embedding has invalid shape or values (expected {self.dimension} finite floats)",
                    {"length": len(vector), "model": self.model},
                    code=ErrorCode.EMBEDDING_INVALID,
                )

    async def embed(self, text: str) -> list[float]:
        """
        Embed a single text.

        Raises:
            ConfigurationError: No API key configured
            EmbeddingError: Provider failure or malformed vector
        """
        vectors = await self.embed_many([text])
        return vectors[0]

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts, preserving order."""
        if not texts:
            return []

        normalized = [normalize_text(t) for t in texts]

        try:
            vectors = await self._create(normalized)
        except APIStatusError as e:
            raise EmbeddingError(
                f"Embedding request failed with status {e.status_code}: {e.message}",
                {"status_code": e.status_code},
            ) from e
        except APIConnectionError as e:
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"Expected {len(texts)} embeddings, got {len(vectors)}",
                code=ErrorCode.EMBEDDING_INVALID,
            )
        self._check(vectors)

        logger.debug("Embedded %d texts with %s", len(texts), self.model)
        return vectors

    async def close(self) -> None:
        """Close API client."""
        if self._client is not None:
            await self._client.close()
            self._client = None

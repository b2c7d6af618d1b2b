"""OpenAI embeddings for category names.

Uses ``text-embedding-3-small`` by default, the same model that produces the
post embeddings orphan repair compares against.
"""

from __future__ import annotations

from typing import Any

import structlog
import tenacity

from taxonomy_cleanup.embeddings.base import Embedder
from taxonomy_cleanup.exceptions import EmbeddingError
from taxonomy_cleanup.utils.retry import embedding_retry

logger = structlog.get_logger(__name__)


class OpenAIEmbeddings(Embedder):
    """OpenAI embeddings with batch-level retry on transient errors.

    Attributes:
        model: OpenAI embedding model name.
        dimensions: Output embedding dimensions.
    """

    provider = "openai"

    def __init__(
        self,
        api_key: str = "",
        model: str = "text-embedding-3-small",
        dimensions: int = 1536,
        **kwargs: Any,
    ) -> None:
        """Initialize the OpenAI embedder.

        Args:
            api_key: OpenAI API key.
            model: Embedding model name.
            dimensions: Output vector dimensions.
            **kwargs: Additional arguments passed to the AsyncOpenAI client.
        """
        from openai import AsyncOpenAI  # noqa: PLC0415

        self.model = model
        self.dimensions = dimensions
        self._client = AsyncOpenAI(api_key=api_key, **kwargs)

        logger.info("Initialized OpenAI embeddings", model=model, dimensions=dimensions)

    @embedding_retry
    async def _call_openai(self, texts: list[str]) -> list[list[float]]:
        response = await self._client.embeddings.create(
            model=self.model,
            input=texts,
            dimensions=self.dimensions,
        )
        ordered = sorted(response.data, key=lambda item: item.index)
        return [item.embedding for item in ordered]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of category names.

        Args:
            texts: Category names.

        Returns:
            One embedding per name; empty names yield ``[]``.

        Raises:
            EmbeddingError: If the call still fails after retries.
        """
        positions, non_empty = self._split_empty(texts)
        if not non_empty:
            return [[] for _ in texts]

        try:
            vectors = await self._call_openai(non_empty)
        except tenacity.RetryError as e:
            msg = f"retries exhausted for batch of {len(non_empty)}"
            raise EmbeddingError(self.provider, msg) from e
        except Exception as e:
            raise EmbeddingError(self.provider, str(e)) from e

        if len(vectors) != len(non_empty):
            msg = f"expected {len(non_empty)} embeddings, got {len(vectors)}"
            raise EmbeddingError(self.provider, msg)

        return self._scatter(len(texts), positions, vectors)

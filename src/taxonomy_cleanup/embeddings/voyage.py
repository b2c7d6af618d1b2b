"""Voyage AI embeddings for category names.

Category names are embedded with ``input_type="document"`` so they live in
the same space as Voyage-embedded posts.
"""

from __future__ import annotations

from typing import Any

import structlog

from taxonomy_cleanup.embeddings.base import Embedder
from taxonomy_cleanup.exceptions import EmbeddingError

logger = structlog.get_logger(__name__)


class VoyageAIEmbeddings(Embedder):
    """Voyage AI embeddings implementing the Embedder interface.

    Retries are delegated to the Voyage client's ``max_retries``.

    Attributes:
        model: Voyage AI model name (default: voyage-4).
        input_type: Embedding input type ("document" for indexing, "query" for search).
        dimensions: Output embedding dimensions (default: 1024).
    """

    provider = "voyage"

    def __init__(
        self,
        model: str = "voyage-4",
        input_type: str = "document",
        dimensions: int = 1024,
        max_retries: int = 3,
        **kwargs: Any,
    ) -> None:
        """Initialize the Voyage AI embedder.

        Args:
            model: Model name (default: voyage-4).
            input_type: Either "document" (for indexing) or "query" (for search).
            dimensions: Output vector dimensions (default: 1024).
            max_retries: Client-side retry attempts.
            **kwargs: Additional arguments passed to Voyage AI client.
        """
        import voyageai  # noqa: PLC0415

        self.model = model
        self.input_type = input_type
        self.dimensions = dimensions
        self.async_client = voyageai.AsyncClient(max_retries=max_retries, **kwargs)

        logger.info(
            "Initialized Voyage AI embeddings",
            model=model,
            input_type=input_type,
            dimensions=dimensions,
        )

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of category names.

        Args:
            texts: Category names.

        Returns:
            One embedding per name; empty names yield ``[]``.

        Raises:
            EmbeddingError: If the API call fails.
        """
        positions, non_empty = self._split_empty(texts)
        if not non_empty:
            return [[] for _ in texts]

        try:
            result = await self.async_client.embed(
                non_empty,
                model=self.model,
                input_type=self.input_type,
                output_dimension=self.dimensions,
            )
        except Exception as e:
            raise EmbeddingError(self.provider, str(e)) from e

        if len(result.embeddings) != len(non_empty):
            msg = f"expected {len(non_empty)} embeddings, got {len(result.embeddings)}"
            raise EmbeddingError(self.provider, msg)

        return self._scatter(len(texts), positions, result.embeddings)

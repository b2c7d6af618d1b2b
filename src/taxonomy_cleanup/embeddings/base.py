"""Embedder interface shared by the category embedding providers."""

from __future__ import annotations

from abc import ABC, abstractmethod


class Embedder(ABC):
    """Batched, order-preserving text embedder.

    Implementations return one vector per input text, in input order.
    Empty or whitespace-only texts map to an empty list and are never sent
    to the provider. ``dimensions`` is the vector length the provider
    returns, when known.
    """

    provider: str = ""
    dimensions: int | None = None

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts.

        Args:
            texts: Texts to embed.

        Returns:
            One embedding per input text.

        Raises:
            EmbeddingError: If the provider call fails.
        """

    @staticmethod
    def _split_empty(texts: list[str]) -> tuple[list[int], list[str]]:
        """Return positions and values of the non-empty texts."""
        positions = [i for i, text in enumerate(texts) if text and text.strip()]
        return positions, [texts[i] for i in positions]

    @staticmethod
    def _scatter(
        size: int,
        positions: list[int],
        vectors: list[list[float]],
    ) -> list[list[float]]:
        """Place provider vectors back at their input positions."""
        out: list[list[float]] = [[] for _ in range(size)]
        for position, vector in zip(positions, vectors, strict=True):
            out[position] = list(vector)
        return out

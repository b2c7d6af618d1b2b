"""Embedding generation and similarity clustering for category names."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import numpy as np
import structlog

from taxonomy_cleanup.config import EMBEDDING_BATCH_SIZE, SIMILARITY_THRESHOLD
from taxonomy_cleanup.models import Category, Cluster
from taxonomy_cleanup.utils.batching import chunked, run_in_batches

if TYPE_CHECKING:
    from taxonomy_cleanup.embeddings.base import Embedder
    from taxonomy_cleanup.graph.store import CategoryStore

logger = structlog.get_logger(__name__)


def cosine_similarity(vec_a: list[float], vec_b: list[float]) -> float:
    """Cosine similarity of two vectors.

    Args:
        vec_a: First vector.
        vec_b: Second vector.

    Returns:
        Similarity in [-1, 1]; 0.0 when either vector has zero norm or the
        vectors differ in length (embeddings from different models).
    """
    a = np.asarray(vec_a, dtype=float)
    b = np.asarray(vec_b, dtype=float)
    if a.shape != b.shape:
        return 0.0

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


def find_most_similar_category(
    target: list[float],
    candidates: list[Category],
) -> Category | None:
    """Return the candidate whose embedding is most similar to ``target``.

    Candidates without an embedding, or whose embedding length differs from
    ``target``, are ignored. Ties go to the candidate encountered first.
    """
    usable = [c for c in candidates if c.has_embedding and len(c.embedding) == len(target)]
    if not usable:
        return None

    matrix = np.asarray([c.embedding for c in usable], dtype=float)
    vector = np.asarray(target, dtype=float)
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(vector)
    dots = matrix @ vector
    similarities = np.divide(dots, norms, out=np.zeros_like(dots), where=norms != 0)
    # argmax returns the first maximum
    return usable[int(np.argmax(similarities))]


def cluster_by_embedding(
    categories: list[Category],
    threshold: float = SIMILARITY_THRESHOLD,
) -> list[Cluster]:
    """Greedy seed-based clustering of categories by name embedding.

    Walks categories in input order; each unvisited category seeds a new
    cluster and pulls in every later unvisited category whose similarity to
    the seed (not to other members) is at least ``threshold``. Categories
    without an embedding are skipped entirely.

    Args:
        categories: Keep categories carrying embeddings.
        threshold: Minimum cosine similarity to the seed.

    Returns:
        Clusters sorted by descending total post count (stable), each with
        the seed's name as ID.
    """
    candidates = [c for c in categories if c.has_embedding]
    dimensions = sorted({len(c.embedding) for c in candidates})
    if len(dimensions) > 1:
        # Vectors of different lengths never join the same cluster
        logger.warning("Mixed embedding dimensions", dimensions=dimensions)

    visited: set[str] = set()
    clusters: list[Cluster] = []

    for i, seed in enumerate(candidates):
        if seed.id in visited:
            continue
        visited.add(seed.id)
        members = [seed]

        for other in candidates[i + 1 :]:
            if other.id in visited:
                continue
            if cosine_similarity(seed.embedding, other.embedding) >= threshold:
                members.append(other)
                visited.add(other.id)

        clusters.append(Cluster(id=seed.name, categories=members))

    clusters.sort(key=lambda cluster: cluster.total_post_count, reverse=True)

    multi = [c for c in clusters if len(c.categories) > 1]
    logger.info(
        "Clustered categories by embedding",
        categories=len(candidates),
        skipped_without_embedding=len(categories) - len(candidates),
        clusters=len(clusters),
        multi_member_clusters=len(multi),
        threshold=threshold,
    )
    for cluster in multi:
        logger.debug(
            "Embedding cluster",
            cluster_id=cluster.id,
            members=[c.name for c in cluster.categories],
        )

    return clusters


async def generate_category_embeddings(
    store: CategoryStore,
    embedder: Embedder,
    categories: list[Category],
    batch_size: int = EMBEDDING_BATCH_SIZE,
) -> dict[str, Any]:
    """Embed and persist names of categories that have no usable embedding.

    A stored embedding whose length differs from ``embedder.dimensions``
    (left over from another model) is stale and regenerated. Each batch is
    embedded in one provider call, then its vectors are written
    concurrently. Provider failures raise; write failures are logged and
    counted. Categories are updated in place.

    Args:
        store: Category store.
        embedder: Embedding provider.
        categories: Keep categories.
        batch_size: Names per provider call.

    Returns:
        Statistics: embedded, already embedded and errors.

    Raises:
        EmbeddingError: If the provider fails for a batch.
    """
    dimensions = embedder.dimensions
    stale = [
        c
        for c in categories
        if c.has_embedding and dimensions is not None and len(c.embedding) != dimensions
    ]
    if stale:
        logger.warning(
            "Re-embedding categories with stale embedding dimensions",
            count=len(stale),
            expected=dimensions,
        )
    stale_ids = {c.id for c in stale}
    pending = [c for c in categories if not c.has_embedding or c.id in stale_ids]
    stats = {"embedded": 0, "already_embedded": len(categories) - len(pending), "errors": 0}

    if not pending:
        logger.info("All categories already have embeddings", count=len(categories))
        return stats

    async def _persist(pair: tuple[Category, list[float]]) -> None:
        category, vector = pair
        await store.update_category_embedding(category.id, vector)
        category.embedding = vector

    for batch in chunked(pending, batch_size):
        vectors = await embedder.embed_batch([c.name for c in batch])
        pairs = [(c, v) for c, v in zip(batch, vectors, strict=True) if v]
        succeeded, failed = await run_in_batches(
            pairs, _persist, len(pairs) or 1, operation="persist_category_embedding"
        )
        stats["embedded"] += len(succeeded)
        stats["errors"] += len(failed)

    logger.info(
        "Generated category embeddings",
        embedded=stats["embedded"],
        already_embedded=stats["already_embedded"],
        errors=stats["errors"],
    )
    return stats

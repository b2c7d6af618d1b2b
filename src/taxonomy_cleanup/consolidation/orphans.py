"""Reassignment of posts left without a surviving category.

A post is orphaned when every category it links to has been deleted or
merged away. Each orphan with an embedding is linked to the surviving
category whose name embedding is most similar to it. Posts without an
embedding stay orphaned.

Orphans are processed sequentially, never concurrently.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from taxonomy_cleanup.consolidation.clustering import find_most_similar_category

if TYPE_CHECKING:
    from taxonomy_cleanup.graph.store import CategoryStore
    from taxonomy_cleanup.models import Category

logger = structlog.get_logger(__name__)


class OrphanRepairer:
    """Link orphaned posts to their nearest surviving category."""

    def __init__(self, store: CategoryStore) -> None:
        self.store = store

    async def repair(self, categories: list[Category]) -> dict[str, Any]:
        """Reassign every orphaned post that has an embedding.

        Args:
            categories: Surviving keep categories, with embeddings.

        Returns:
            Statistics: orphans found, reassigned, left without embedding,
            left without a candidate category, and errors.
        """
        stats = {
            "orphans_found": 0,
            "reassigned": 0,
            "without_embedding": 0,
            "no_candidate": 0,
            "errors": 0,
        }

        orphan_ids = await self.store.find_orphaned_post_ids([c.id for c in categories])
        stats["orphans_found"] = len(orphan_ids)
        if not orphan_ids:
            logger.info("No orphaned posts found")
            return stats

        for post_id in orphan_ids:
            try:
                post = await self.store.get_post(post_id)
                if post is None or not post.embedding:
                    stats["without_embedding"] += 1
                    continue

                best = find_most_similar_category(post.embedding, categories)
                if best is None:
                    stats["no_candidate"] += 1
                    logger.debug(
                        "No candidate category for orphaned post",
                        post_id=post_id,
                        dimensions=len(post.embedding),
                    )
                    continue

                await self.store.assign_post_to_category(post_id, best.id)
                stats["reassigned"] += 1
            except Exception:
                stats["errors"] += 1
                logger.warning("Failed to reassign orphaned post", post_id=post_id, exc_info=True)

        logger.info(
            "Repaired orphaned posts",
            found=stats["orphans_found"],
            reassigned=stats["reassigned"],
            without_embedding=stats["without_embedding"],
            no_candidate=stats["no_candidate"],
            errors=stats["errors"],
        )
        return stats

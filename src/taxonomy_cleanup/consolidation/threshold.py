"""Threshold filtering and hashtag preservation for low-count categories.

Categories below the minimum post count are removed, but not before their
name is attached as a hashtag to every post they labelled. Deletion is soft:
the node and its post edges stay in place for backup restore and orphan
detection.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from taxonomy_cleanup.config import DELETE_BATCH_SIZE, HASHTAG_BATCH_SIZE
from taxonomy_cleanup.consolidation.normalizer import category_to_hashtag
from taxonomy_cleanup.models import AnalysisResult, Category
from taxonomy_cleanup.utils.batching import run_in_batches

if TYPE_CHECKING:
    from taxonomy_cleanup.graph.store import CategoryStore

logger = structlog.get_logger(__name__)


def partition_by_post_count(categories: list[Category], min_post_threshold: int) -> AnalysisResult:
    """Split categories into keep/delete by post count.

    Args:
        categories: All live categories.
        min_post_threshold: Minimum post count to keep a category.

    Returns:
        Partition preserving input order within each side.
    """
    to_keep = [c for c in categories if c.post_count >= min_post_threshold]
    to_delete = [c for c in categories if c.post_count < min_post_threshold]
    return AnalysisResult(to_keep=to_keep, to_delete=to_delete)


class HashtagConverter:
    """Attach deleted category names as hashtags to their posts."""

    def __init__(self, store: CategoryStore, batch_size: int = HASHTAG_BATCH_SIZE) -> None:
        self.store = store
        self.batch_size = batch_size

    async def _convert_one(self, category: Category) -> int:
        hashtag = category_to_hashtag(category.name)
        if not hashtag:
            return -1
        return await self.store.add_hashtag_to_posts_in_category(category.id, hashtag)

    async def convert(self, categories: list[Category]) -> dict[str, Any]:
        """Convert each category name into a hashtag on its posts.

        Args:
            categories: Categories about to be deleted.

        Returns:
            Statistics: categories converted, posts tagged, skipped names
            (no alphanumerics survive) and errors.
        """
        stats = {"categories_converted": 0, "posts_tagged": 0, "skipped": 0, "errors": 0}

        succeeded, failed = await run_in_batches(
            categories,
            self._convert_one,
            self.batch_size,
            operation="convert_to_hashtags",
        )
        for _category, tagged in succeeded:
            if tagged < 0:
                stats["skipped"] += 1
                continue
            stats["categories_converted"] += 1
            stats["posts_tagged"] += tagged
        stats["errors"] = len(failed)

        logger.info(
            "Converted categories to hashtags",
            converted=stats["categories_converted"],
            posts_tagged=stats["posts_tagged"],
            skipped=stats["skipped"],
            errors=stats["errors"],
        )
        return stats


async def delete_categories(
    store: CategoryStore,
    categories: list[Category],
    batch_size: int = DELETE_BATCH_SIZE,
) -> dict[str, int]:
    """Soft-delete categories in bounded concurrent batches.

    Args:
        store: Category store.
        categories: Categories to delete.
        batch_size: Maximum concurrent deletions.

    Returns:
        Statistics: deleted and errors.
    """

    async def _delete(category: Category) -> None:
        await store.soft_delete_category(category.id)

    succeeded, failed = await run_in_batches(
        categories, _delete, batch_size, operation="delete_low_count"
    )

    logger.info("Deleted low-count categories", deleted=len(succeeded), errors=len(failed))
    return {"deleted": len(succeeded), "errors": len(failed)}

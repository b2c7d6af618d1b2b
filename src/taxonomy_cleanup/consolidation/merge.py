"""Applying keep/merge decisions to the category store.

Merge actions come from three places: casing-normalization duplicates,
stem pre-clustering, and the oracle's cluster merges. All of them end up
here, where post edges are moved onto the surviving category and the
losers are soft-deleted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from taxonomy_cleanup.models import Category, Cluster, ClusterMergeResponse, MergeAction, NameUpdate

if TYPE_CHECKING:
    from taxonomy_cleanup.graph.store import CategoryStore

logger = structlog.get_logger(__name__)


@dataclass
class MergeOutcome:
    """Result of applying merge actions.

    Attributes:
        categories: Updated keep working set, input order preserved.
        merged_count: Categories folded into a survivor.
        failed_items: Per-item failures that were logged and skipped.
    """

    categories: list[Category]
    merged_count: int = 0
    failed_items: int = 0
    renamed: list[str] = field(default_factory=list)


class MergeExecutor:
    """Apply merge actions against the store and the keep working set.

    Example:
        >>> executor = MergeExecutor(store)
        >>> outcome = await executor.execute(to_keep, actions)
        >>> to_keep = outcome.categories
    """

    def __init__(self, store: CategoryStore) -> None:
        self.store = store

    async def execute(self, categories: list[Category], actions: list[MergeAction]) -> MergeOutcome:
        """Apply each action in order.

        For every action the survivor is renamed first (when ``rename_to`` is
        set), then each merged category's post edges are moved onto it and
        the merged category is soft-deleted and dropped from the working
        set. The survivor's post count is recomputed by the store, so posts
        linked to both sides are counted once. Applying an action twice
        leaves the same edges as applying it once.

        Args:
            categories: Keep working set.
            actions: Merge actions to apply.

        Returns:
            Updated working set and counts.
        """
        working = {c.id: c for c in categories}
        outcome = MergeOutcome(categories=[])

        for action in actions:
            keep = working.get(action.keep.id, action.keep)

            if action.rename_to and action.rename_to != keep.name:
                try:
                    await self.store.rename_category(keep.id, action.rename_to)
                    logger.info(
                        "Renamed surviving category",
                        category_id=keep.id,
                        old_name=keep.name,
                        new_name=action.rename_to,
                    )
                    keep.name = action.rename_to
                    action.keep.name = action.rename_to
                    outcome.renamed.append(keep.id)
                except Exception:
                    outcome.failed_items += 1
                    logger.warning(
                        "Failed to rename surviving category",
                        category_id=keep.id,
                        new_name=action.rename_to,
                        exc_info=True,
                    )

            for loser in action.merge:
                if loser.id == keep.id:
                    continue
                try:
                    post_count = await self.store.reassign_posts(loser.id, keep.id)
                    await self.store.soft_delete_category(loser.id)
                except Exception:
                    outcome.failed_items += 1
                    logger.warning(
                        "Failed to merge category",
                        merge=loser.name,
                        keep=keep.name,
                        exc_info=True,
                    )
                    continue

                keep.post_count = post_count
                action.keep.post_count = post_count
                if working.pop(loser.id, None) is not None:
                    outcome.merged_count += 1
                logger.debug(
                    "Merged category",
                    merge=loser.name,
                    keep=keep.name,
                    post_count=post_count,
                    reason=action.reason,
                )

        outcome.categories = list(working.values())
        logger.info(
            "Executed merges",
            actions=len(actions),
            merged=outcome.merged_count,
            failed=outcome.failed_items,
            remaining=len(outcome.categories),
        )
        return outcome


async def persist_name_updates(
    store: CategoryStore,
    categories: list[Category],
    updates: list[NameUpdate],
) -> MergeOutcome:
    """Write planned casing updates to the store.

    Plain renames are applied first, then every duplicate has its posts
    moved onto the category already holding the name and is soft-deleted.

    Args:
        store: Category store.
        categories: Keep working set.
        updates: Planned updates from ``plan_title_case_updates``.

    Returns:
        Updated working set; ``merged_count`` counts folded duplicates.
    """
    working = {c.id: c for c in categories}
    outcome = MergeOutcome(categories=[])

    for update in updates:
        if update.is_duplicate:
            continue
        try:
            await store.rename_category(update.category_id, update.new_name)
        except Exception:
            outcome.failed_items += 1
            logger.warning(
                "Failed to rename category",
                category_id=update.category_id,
                new_name=update.new_name,
                exc_info=True,
            )
            continue
        if update.category_id in working:
            working[update.category_id].name = update.new_name
        outcome.renamed.append(update.category_id)

    for update in updates:
        if not update.is_duplicate:
            continue
        try:
            post_count = await store.reassign_posts(update.category_id, update.duplicate_of)
            await store.soft_delete_category(update.category_id)
        except Exception:
            outcome.failed_items += 1
            logger.warning(
                "Failed to fold duplicate category",
                category_id=update.category_id,
                duplicate_of=update.duplicate_of,
                exc_info=True,
            )
            continue
        if update.duplicate_of in working:
            working[update.duplicate_of].post_count = post_count
        if working.pop(update.category_id, None) is not None:
            outcome.merged_count += 1

    outcome.categories = list(working.values())
    logger.info(
        "Normalized category casing",
        renamed=len(outcome.renamed),
        duplicates_merged=outcome.merged_count,
        failed=outcome.failed_items,
    )
    return outcome


def build_semantic_merge_actions(
    response: ClusterMergeResponse,
    clusters: list[Cluster],
    categories: list[Category],
) -> list[MergeAction]:
    """Turn validated oracle merges into merge actions.

    A merge is dropped (with a log line) when fewer than two of its cluster
    IDs resolve to clusters not already consumed by an earlier merge. The
    survivor is the member whose name matches the canonical name
    case-insensitively; failing that, a keep category outside the merged
    clusters that already has the canonical name; failing that, the first
    member, renamed to the canonical name.

    Args:
        response: Decoded oracle response.
        clusters: Clusters sent to the oracle.
        categories: Current keep working set.

    Returns:
        Merge actions in response order.
    """
    clusters_by_id = {cluster.id: cluster for cluster in clusters}
    keep_by_name: dict[str, Category] = {}
    for category in categories:
        keep_by_name.setdefault(category.name.lower(), category)

    consumed: set[str] = set()
    merged_away: set[str] = set()
    actions: list[MergeAction] = []

    for merge in response.merges:
        resolved: list[Cluster] = []
        for cluster_id in dict.fromkeys(merge.cluster_ids):
            cluster = clusters_by_id.get(cluster_id)
            if cluster is None:
                logger.info("Oracle referenced unknown cluster", cluster_id=cluster_id)
                continue
            if cluster_id in consumed:
                logger.info("Cluster already merged", cluster_id=cluster_id)
                continue
            resolved.append(cluster)

        if len(resolved) < 2:
            logger.info(
                "Skipping oracle merge with fewer than two clusters",
                cluster_ids=merge.cluster_ids,
                canonical_name=merge.canonical_name,
            )
            continue

        members = [category for cluster in resolved for category in cluster.categories]
        member_ids = {category.id for category in members}
        canonical = merge.canonical_name
        rename_to: str | None = None

        keep = next((c for c in members if c.name.lower() == canonical.lower()), None)
        if keep is None:
            holder = keep_by_name.get(canonical.lower())
            if holder is not None and holder.id not in member_ids and holder.id not in merged_away:
                keep = holder
            else:
                keep = members[0]
                rename_to = canonical

        losers = [c for c in members if c.id != keep.id]
        consumed.update(cluster.id for cluster in resolved)
        merged_away.update(c.id for c in losers)
        if rename_to:
            keep_by_name.setdefault(rename_to.lower(), keep)

        if losers:
            actions.append(
                MergeAction(keep=keep, merge=losers, rename_to=rename_to, reason=merge.reason)
            )
            logger.info(
                "Semantic merge",
                merge=[c.name for c in losers],
                keep=rename_to or keep.name,
                reason=merge.reason,
            )

    return actions

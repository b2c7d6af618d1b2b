"""Applying an oracle-proposed two-level hierarchy.

``HierarchyApplier`` creates or promotes parent categories and links their
children. ``OrphanParentPostHandler`` then cleans up posts linked directly to
a parent: a parent link next to a child link is redundant and removed, and a
post linked only to the parent is moved to an "Other <Parent>" child.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from taxonomy_cleanup.graph.store import CategoryStore
    from taxonomy_cleanup.models import Category, HierarchyProposal

logger = structlog.get_logger(__name__)

PARENT_DESCRIPTION = "Parent category created during cleanup: {reason}"
OTHER_CATEGORY_NAME = "Other {parent}"
OTHER_DESCRIPTION = "Catch-all for {parent} posts that don't fit specific subcategories"


@dataclass
class AppliedParent:
    """A parent that was created or promoted, with its linked children."""

    parent: Category
    children: list[Category]
    created: bool = False


@dataclass
class HierarchyOutcome:
    """Result of applying a hierarchy proposal."""

    parents: list[AppliedParent] = field(default_factory=list)
    failed_items: int = 0

    @property
    def parent_count(self) -> int:
        return len(self.parents)

    @property
    def child_count(self) -> int:
        return sum(len(applied.children) for applied in self.parents)


class HierarchyApplier:
    """Create or promote parents and link their children.

    Re-running with the same proposal is safe: existing parents are
    promoted again and child links are merged, not duplicated.
    """

    def __init__(self, store: CategoryStore) -> None:
        self.store = store

    async def _revert_parent(
        self,
        parent: Category,
        created: bool,
        outcome: HierarchyOutcome,
    ) -> None:
        """Return a parent left without children to a standalone category.

        A parent created in this pass has no posts and is soft-deleted; a
        promoted category loses its parent flag.
        """
        try:
            if created:
                await self.store.soft_delete_category(parent.id)
            else:
                await self.store.set_category_is_parent(parent.id, False)
        except Exception:
            outcome.failed_items += 1
            logger.warning("Failed to revert childless parent", parent=parent.name, exc_info=True)
            return

        parent.is_parent = False
        logger.info("Reverted parent without linked children", parent=parent.name, created=created)

    async def apply(
        self,
        categories: list[Category],
        proposal: HierarchyProposal,
    ) -> HierarchyOutcome:
        """Apply a proposal against the keep working set.

        Child names are matched exactly against the keep set; unknown names
        are ignored. A parent is never created or promoted without at least
        one resolved child and never becomes its own child. The result stays
        two levels deep: categories already made parents in this pass are
        not linked as children, categories already linked as children are
        not promoted, and a category is linked under one parent only. A
        parent whose child links all fail goes back to being standalone.

        Args:
            categories: Keep working set.
            proposal: Validated hierarchy proposal.

        Returns:
            Applied parents and failure count.
        """
        outcome = HierarchyOutcome()
        parent_ids: set[str] = set()
        child_ids: set[str] = set()

        for proposed in proposal.parents:
            parent = next((c for c in categories if c.name == proposed.name), None)
            if parent is not None and parent.id in child_ids:
                logger.info(
                    "Skipping parent already linked as a child",
                    parent=proposed.name,
                    parent_of=parent.parent_id,
                )
                continue

            child_names = set(proposed.children)
            children = [
                c
                for c in categories
                if c.name in child_names
                and c.name != proposed.name
                and c.id not in parent_ids
                and c.id not in child_ids
            ]
            if not children:
                logger.info(
                    "Skipping parent without valid children",
                    parent=proposed.name,
                    proposed_children=len(proposed.children),
                )
                continue

            created = False
            try:
                if parent is None:
                    parent = await self.store.create_category(
                        proposed.name,
                        PARENT_DESCRIPTION.format(reason=proposed.reason),
                    )
                    created = True
                await self.store.set_category_is_parent(parent.id, True)
            except Exception:
                outcome.failed_items += 1
                logger.warning("Failed to create parent", parent=proposed.name, exc_info=True)
                continue

            parent.is_parent = True
            parent_ids.add(parent.id)

            linked: list[Category] = []
            for child in children:
                if child.id == parent.id:
                    continue
                try:
                    await self.store.set_category_parent(child.id, parent.id)
                except Exception:
                    outcome.failed_items += 1
                    logger.warning(
                        "Failed to link child category",
                        parent=parent.name,
                        child=child.name,
                        exc_info=True,
                    )
                    continue
                child.parent_id = parent.id
                linked.append(child)

            if not linked:
                parent_ids.discard(parent.id)
                await self._revert_parent(parent, created, outcome)
                continue

            child_ids.update(child.id for child in linked)
            outcome.parents.append(AppliedParent(parent=parent, children=linked, created=created))
            logger.info(
                "Created parent" if created else "Promoted existing category to parent",
                parent=parent.name,
                children=len(linked),
            )

        logger.info(
            "Applied hierarchy",
            proposed=len(proposal.parents),
            parents=outcome.parent_count,
            children=outcome.child_count,
            failed=outcome.failed_items,
        )
        return outcome


class OrphanParentPostHandler:
    """Resolve posts linked directly to a freshly applied parent."""

    def __init__(self, store: CategoryStore) -> None:
        self.store = store

    async def _get_or_create_other(self, parent: Category) -> tuple[Category, bool]:
        name = OTHER_CATEGORY_NAME.format(parent=parent.name)
        other = await self.store.find_category_by_name(name)
        created = other is None
        if other is None:
            other = await self.store.create_category(
                name, OTHER_DESCRIPTION.format(parent=parent.name)
            )
        await self.store.set_category_parent(other.id, parent.id)
        other.parent_id = parent.id
        return other, created

    async def handle(self, applied: list[AppliedParent]) -> dict[str, Any]:
        """Remove redundant parent links and move parent-only posts.

        Args:
            applied: Parents returned by ``HierarchyApplier.apply``.

        Returns:
            Statistics including ``other_categories_created``, the number of
            distinct "Other" categories created.
        """
        stats = {
            "other_categories_created": 0,
            "posts_moved": 0,
            "redundant_links_removed": 0,
            "errors": 0,
        }
        created_names: set[str] = set()

        for entry in applied:
            parent = entry.parent
            try:
                post_ids = await self.store.get_category_post_ids(parent.id)
                if not post_ids:
                    continue

                with_child = await self.store.filter_posts_linked_to_any(
                    post_ids, [c.id for c in entry.children]
                )
                redundant = [p for p in post_ids if p in with_child]
                parent_only = [p for p in post_ids if p not in with_child]

                if redundant:
                    stats["redundant_links_removed"] += await self.store.remove_category_links(
                        parent.id, redundant
                    )

                if parent_only:
                    other, created = await self._get_or_create_other(parent)
                    if created:
                        created_names.add(other.name)
                        logger.info(
                            "Created catch-all category", name=other.name, parent=parent.name
                        )
                    await self.store.assign_posts_to_category(parent_only, other.id)
                    await self.store.remove_category_links(parent.id, parent_only)
                    stats["posts_moved"] += len(parent_only)
            except Exception:
                stats["errors"] += 1
                logger.warning("Failed to handle parent posts", parent=parent.name, exc_info=True)

        stats["other_categories_created"] = len(created_names)
        logger.info(
            "Handled parent-only posts",
            posts_moved=stats["posts_moved"],
            redundant_links_removed=stats["redundant_links_removed"],
            other_categories_created=stats["other_categories_created"],
            errors=stats["errors"],
        )
        return stats

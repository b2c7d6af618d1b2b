"""Lexical consolidation of categories before any embedding call.

Two passes run here, both purely on names:
- casing normalization plans a title-case rename for every category whose
  display form differs, flagging renames that collide with a name already
  in use
- stem pre-clustering groups categories whose names stem to the same key
  ("outfit", "Outfits") and picks one survivor per group
"""

from __future__ import annotations

import structlog

from taxonomy_cleanup.consolidation.normalizer import (
    ends_with_plural_s,
    format_category_name,
    stem_word,
)
from taxonomy_cleanup.models import Category, MergeAction, NameUpdate

logger = structlog.get_logger(__name__)


def plan_title_case_updates(categories: list[Category]) -> list[NameUpdate]:
    """Plan display-name updates for a set of categories.

    Names are claimed in input order. When a category's formatted name is
    already held by another category (originally or through an earlier
    rename in this plan), the update is a duplicate and points at the
    holder. A category giving up its old name frees it for later ones.

    Args:
        categories: Categories to normalize.

    Returns:
        One update per category whose formatted name differs.
    """
    holders: dict[str, str] = {}
    for category in categories:
        holders.setdefault(category.name, category.id)

    updates: list[NameUpdate] = []
    for category in categories:
        new_name = format_category_name(category.name)
        if new_name == category.name:
            continue

        holder = holders.get(new_name)
        if holder is not None and holder != category.id:
            logger.warning(
                "Duplicate category name after casing normalization",
                category_id=category.id,
                old_name=category.name,
                new_name=new_name,
                duplicate_of=holder,
            )
            updates.append(
                NameUpdate(
                    category_id=category.id,
                    old_name=category.name,
                    new_name=new_name,
                    duplicate_of=holder,
                )
            )
        else:
            updates.append(
                NameUpdate(category_id=category.id, old_name=category.name, new_name=new_name)
            )
            holders[new_name] = category.id

        if holders.get(category.name) == category.id:
            del holders[category.name]

    return updates


def _survivor_sort_key(category: Category, prefer_plural: bool) -> tuple:
    plural_rank = 0
    if prefer_plural:
        plural_rank = 0 if ends_with_plural_s(category.name) else 1
    return (
        plural_rank,
        -category.post_count,
        len(category.name),
        category.name.casefold(),
        category.name,
    )


def pre_cluster_by_stem(categories: list[Category]) -> list[MergeAction]:
    """Group categories by stemmed name and pick one survivor per group.

    Survivor tie-break, in order:
    1. the plural-"s" form, when the group mixes plural and non-plural forms
    2. higher post count
    3. shorter name
    4. lexical order

    Args:
        categories: Keep categories after casing normalization.

    Returns:
        One merge action per group with more than one member, in order of
        each group's first appearance.
    """
    groups: dict[str, list[Category]] = {}
    for category in categories:
        groups.setdefault(stem_word(category.name), []).append(category)

    actions: list[MergeAction] = []
    for stem, group in groups.items():
        if len(group) < 2:
            continue

        plural_flags = {ends_with_plural_s(c.name) for c in group}
        prefer_plural = len(plural_flags) == 2
        ordered = sorted(group, key=lambda c: _survivor_sort_key(c, prefer_plural))

        keep, merge = ordered[0], ordered[1:]
        actions.append(MergeAction(keep=keep, merge=merge, reason=f"same stem '{stem}'"))
        logger.debug(
            "Pre-cluster group",
            stem=stem,
            keep=keep.name,
            merge=[c.name for c in merge],
        )

    logger.info(
        "Pre-clustered categories by stem",
        categories=len(categories),
        groups=len(actions),
        to_merge=sum(len(a.merge) for a in actions),
    )
    return actions

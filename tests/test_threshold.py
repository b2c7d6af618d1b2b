"""Tests for threshold partitioning, hashtag conversion and deletion."""

from __future__ import annotations

import pytest

from taxonomy_cleanup.consolidation.threshold import (
    HashtagConverter,
    delete_categories,
    partition_by_post_count,
)
from tests.conftest import FakeCategoryStore, make_category


class TestPartitionByPostCount:
    """Tests for partition_by_post_count."""

    def test_threshold_is_inclusive(self) -> None:
        categories = [make_category("A", 5), make_category("B", 3), make_category("C", 4)]

        result = partition_by_post_count(categories, 4)

        assert [c.name for c in result.to_keep] == ["A", "C"]
        assert [c.name for c in result.to_delete] == ["B"]
        assert result.orphaned_posts == 3

    def test_zero_threshold_keeps_everything(self) -> None:
        categories = [make_category("A", 0), make_category("B", 1)]

        result = partition_by_post_count(categories, 0)

        assert len(result.to_keep) == 2
        assert result.to_delete == []
        assert result.orphaned_posts == 0

    def test_partition_is_complete_and_disjoint(self, sample_categories) -> None:
        result = partition_by_post_count(sample_categories, 4)

        kept = {c.id for c in result.to_keep}
        deleted = {c.id for c in result.to_delete}
        assert kept | deleted == {c.id for c in sample_categories}
        assert kept & deleted == set()


class TestHashtagConverter:
    """Tests for HashtagConverter."""

    @pytest.mark.asyncio
    async def test_adds_hashtag_to_every_post(self, fake_store: FakeCategoryStore) -> None:
        street = fake_store.add_category("street food", post_ids=["p1", "p2"])
        outfit = fake_store.add_category("outfit", post_ids=["p2"])

        stats = await HashtagConverter(fake_store).convert([street, outfit])

        assert stats["categories_converted"] == 2
        assert stats["posts_tagged"] == 3
        assert fake_store.posts["p1"].hashtags == ["StreetFood"]
        assert fake_store.posts["p2"].hashtags == ["StreetFood", "Outfit"]

    @pytest.mark.asyncio
    async def test_existing_hashtag_not_duplicated(self, fake_store: FakeCategoryStore) -> None:
        outfit = fake_store.add_category("outfit", post_ids=["p1"])
        fake_store.posts["p1"].hashtags.append("Outfit")

        await HashtagConverter(fake_store).convert([outfit])

        assert fake_store.posts["p1"].hashtags == ["Outfit"]

    @pytest.mark.asyncio
    async def test_name_without_alphanumerics_is_skipped(
        self, fake_store: FakeCategoryStore
    ) -> None:
        symbols = fake_store.add_category("!!!", post_ids=["p1"])

        stats = await HashtagConverter(fake_store).convert([symbols])

        assert stats["skipped"] == 1
        assert stats["categories_converted"] == 0
        assert fake_store.posts["p1"].hashtags == []

    @pytest.mark.asyncio
    async def test_failures_are_counted(self, fake_store: FakeCategoryStore) -> None:
        good = fake_store.add_category("good", post_ids=["p1"])
        bad = fake_store.add_category("bad", post_ids=["p2"])
        fake_store.fail_on["add_hashtag_to_posts_in_category"] = {bad.id}

        stats = await HashtagConverter(fake_store, batch_size=1).convert([good, bad])

        assert stats["categories_converted"] == 1
        assert stats["errors"] == 1
        assert fake_store.posts["p1"].hashtags == ["Good"]


class TestDeleteCategories:
    """Tests for delete_categories."""

    @pytest.mark.asyncio
    async def test_soft_deletes(self, fake_store: FakeCategoryStore) -> None:
        keep = fake_store.add_category("Keep", post_ids=["p1"])
        drop = fake_store.add_category("Drop", post_ids=["p2"])

        stats = await delete_categories(fake_store, [drop])

        assert stats == {"deleted": 1, "errors": 0}
        assert fake_store.live_names() == ["Keep"]
        # Edges survive soft deletion
        assert ("p2", drop.id) in fake_store.edges
        assert keep.id in fake_store.categories

    @pytest.mark.asyncio
    async def test_errors_do_not_stop_batch(self, fake_store: FakeCategoryStore) -> None:
        categories = [fake_store.add_category(name) for name in ("A", "B", "C")]
        fake_store.fail_on["soft_delete_category"] = {categories[1].id}

        stats = await delete_categories(fake_store, categories, batch_size=2)

        assert stats == {"deleted": 2, "errors": 1}
        assert fake_store.live_names() == ["B"]

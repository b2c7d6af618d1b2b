"""Neo4j-backed category store.

All category queries exclude soft-deleted categories
(``coalesce(c.isDeleted, false) = false``). Soft deletion keeps the node and
its ``BELONGS_TO`` edges so a backup can be restored and orphan detection
can see posts whose only categories were deleted.

Graph shape:
    (:Post)-[:BELONGS_TO]->(:Category)
    (:Category)-[:CHILD_OF]->(:Category), mirrored by ``parentId``
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
import uuid

import structlog

from taxonomy_cleanup.models import Category, Post

if TYPE_CHECKING:
    from neo4j import AsyncDriver

logger = structlog.get_logger(__name__)

_LIVE = "coalesce(c.isDeleted, false) = false"

_CATEGORY_RETURN = """
RETURN c.id AS id,
       c.name AS name,
       c.embedding AS embedding,
       coalesce(c.isParent, false) AS is_parent,
       c.parentId AS parent_id,
       c.description AS description,
       count(DISTINCT p) AS post_count
"""


def _record_to_category(record: Any) -> Category:
    embedding = record.get("embedding")
    return Category(
        id=record["id"],
        name=record["name"],
        post_count=record.get("post_count") or 0,
        embedding=list(embedding) if embedding else None,
        is_parent=bool(record.get("is_parent")),
        parent_id=record.get("parent_id"),
        description=record.get("description"),
    )


class CategoryStore:
    """Category and post-membership operations against Neo4j.

    Attributes:
        driver: Neo4j async driver.
        database: Neo4j database name.
    """

    def __init__(self, driver: AsyncDriver, database: str = "neo4j") -> None:
        """Initialize the store.

        Args:
            driver: Neo4j async driver.
            database: Database name.
        """
        self.driver = driver
        self.database = database

    async def _fetch(self, query: str, **params: Any) -> list[Any]:
        async with self.driver.session(database=self.database) as session:
            result = await session.run(query, **params)
            return [record async for record in result]

    async def _fetch_one(self, query: str, **params: Any) -> Any:
        async with self.driver.session(database=self.database) as session:
            result = await session.run(query, **params)
            return await result.single()

    async def _execute(self, query: str, **params: Any) -> None:
        async with self.driver.session(database=self.database) as session:
            await session.run(query, **params)

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    async def get_categories(self) -> list[Category]:
        """Load every live category with its current post count.

        Returns:
            Categories ordered by post count (descending), then name.
        """
        query = f"""
        MATCH (c:Category)
        WHERE {_LIVE}
        OPTIONAL MATCH (p:Post)-[:BELONGS_TO]->(c)
        WITH c, p
        {_CATEGORY_RETURN}
        ORDER BY post_count DESC, name
        """
        records = await self._fetch(query)
        return [_record_to_category(record) for record in records]

    async def find_category_by_name(self, name: str) -> Category | None:
        """Find a live category by exact name.

        Args:
            name: Category name.

        Returns:
            The category, or None if no live category has that name.
        """
        query = f"""
        MATCH (c:Category {{name: $name}})
        WHERE {_LIVE}
        OPTIONAL MATCH (p:Post)-[:BELONGS_TO]->(c)
        WITH c, p
        {_CATEGORY_RETURN}
        LIMIT 1
        """
        record = await self._fetch_one(query, name=name)
        return _record_to_category(record) if record else None

    async def create_category(self, name: str, description: str | None = None) -> Category:
        """Create a category, or return the live one already holding ``name``.

        Args:
            name: Category name.
            description: Optional description.

        Returns:
            The created or existing category.
        """
        existing = await self.find_category_by_name(name)
        if existing is not None:
            return existing

        category_id = str(uuid.uuid4())
        query = """
        CREATE (c:Category {
            id: $id,
            name: $name,
            description: $description,
            isParent: false,
            isDeleted: false,
            postCount: 0,
            createdAt: datetime()
        })
        """
        await self._execute(query, id=category_id, name=name, description=description)
        logger.debug("Created category", category_id=category_id, name=name)
        return Category(id=category_id, name=name, description=description)

    async def soft_delete_category(self, category_id: str) -> None:
        """Mark a category deleted without removing it or its post edges.

        Args:
            category_id: Category to delete.
        """
        query = """
        MATCH (c:Category {id: $id})
        SET c.isDeleted = true, c.deletedAt = datetime()
        """
        await self._execute(query, id=category_id)

    async def rename_category(self, category_id: str, new_name: str) -> None:
        """Set a category's display name.

        Args:
            category_id: Category to rename.
            new_name: New name.
        """
        query = """
        MATCH (c:Category {id: $id})
        SET c.name = $name, c.updatedAt = datetime()
        """
        await self._execute(query, id=category_id, name=new_name)

    async def update_category_embedding(self, category_id: str, embedding: list[float]) -> None:
        """Persist a category name embedding.

        Args:
            category_id: Category to update.
            embedding: Name embedding.
        """
        query = """
        MATCH (c:Category {id: $id})
        SET c.embedding = $embedding
        """
        await self._execute(query, id=category_id, embedding=embedding)

    async def set_category_parent(self, child_id: str, parent_id: str) -> None:
        """Link a child category under a parent, replacing any previous parent.

        Args:
            child_id: Child category ID.
            parent_id: Parent category ID.
        """
        query = """
        MATCH (child:Category {id: $child_id})
        MATCH (parent:Category {id: $parent_id})
        OPTIONAL MATCH (child)-[old:CHILD_OF]->(:Category)
        DELETE old
        WITH DISTINCT child, parent
        MERGE (child)-[:CHILD_OF]->(parent)
        SET child.parentId = parent.id
        """
        await self._execute(query, child_id=child_id, parent_id=parent_id)

    async def set_category_is_parent(self, category_id: str, is_parent: bool) -> None:
        """Set or clear the parent flag of a category.

        Args:
            category_id: Category to update.
            is_parent: New flag value.
        """
        query = """
        MATCH (c:Category {id: $id})
        SET c.isParent = $is_parent
        """
        await self._execute(query, id=category_id, is_parent=is_parent)

    async def count_category_posts(self, category_id: str) -> int:
        """Count distinct posts linked to a category.

        Args:
            category_id: Category ID.

        Returns:
            Number of linked posts.
        """
        query = """
        MATCH (c:Category {id: $id})
        OPTIONAL MATCH (p:Post)-[:BELONGS_TO]->(c)
        RETURN count(DISTINCT p) AS post_count
        """
        record = await self._fetch_one(query, id=category_id)
        return int(record["post_count"]) if record else 0

    async def reassign_posts(self, from_category_id: str, to_category_id: str) -> int:
        """Move every post edge from one category onto another.

        Edges are merged onto the target before the old edge is deleted, so
        posts already linked to both end up with a single edge. Re-running is
        a no-op. The target's ``postCount`` is recomputed from its edges.

        Args:
            from_category_id: Category losing its edges.
            to_category_id: Category receiving them.

        Returns:
            Recomputed post count of the target category.
        """
        if from_category_id == to_category_id:
            return await self.count_category_posts(to_category_id)

        query = """
        MATCH (src:Category {id: $from_id})
        MATCH (dst:Category {id: $to_id})
        OPTIONAL MATCH (p:Post)-[r:BELONGS_TO]->(src)
        FOREACH (_ IN CASE WHEN p IS NULL THEN [] ELSE [1] END |
            MERGE (p)-[:BELONGS_TO]->(dst)
        )
        DELETE r
        WITH DISTINCT dst
        OPTIONAL MATCH (q:Post)-[:BELONGS_TO]->(dst)
        WITH dst, count(DISTINCT q) AS post_count
        SET dst.postCount = post_count
        RETURN post_count
        """
        record = await self._fetch_one(query, from_id=from_category_id, to_id=to_category_id)
        return int(record["post_count"]) if record else 0

    async def add_hashtag_to_posts_in_category(self, category_id: str, hashtag: str) -> int:
        """Append a hashtag to every post linked to a category.

        Posts that already carry the hashtag are left unchanged.

        Args:
            category_id: Category whose posts receive the hashtag.
            hashtag: Hashtag without the leading ``#``.

        Returns:
            Number of posts linked to the category.
        """
        query = """
        MATCH (p:Post)-[:BELONGS_TO]->(c:Category {id: $id})
        WITH DISTINCT p
        SET p.hashtags = CASE
            WHEN $hashtag IN coalesce(p.hashtags, []) THEN p.hashtags
            ELSE coalesce(p.hashtags, []) + $hashtag
        END
        RETURN count(p) AS updated
        """
        record = await self._fetch_one(query, id=category_id, hashtag=hashtag)
        return int(record["updated"]) if record else 0

    # =========================================================================
    # POSTS
    # =========================================================================

    async def find_orphaned_post_ids(self, keep_ids: list[str]) -> list[str]:
        """Find posts whose category edges all point outside ``keep_ids``.

        Posts with no category edges at all are not returned.

        Args:
            keep_ids: IDs of the surviving categories.

        Returns:
            Orphaned post IDs.
        """
        query = """
        MATCH (p:Post)-[:BELONGS_TO]->(c:Category)
        WITH p, collect(c.id) AS cat_ids
        WHERE NONE(cat_id IN cat_ids WHERE cat_id IN $keep_ids)
        RETURN p.id AS id
        """
        records = await self._fetch(query, keep_ids=keep_ids)
        return [record["id"] for record in records]

    async def get_post(self, post_id: str) -> Post | None:
        """Load a post with its embedding and hashtags.

        Args:
            post_id: Post ID.

        Returns:
            The post, or None if it does not exist.
        """
        query = """
        MATCH (p:Post {id: $id})
        RETURN p.id AS id, p.embedding AS embedding, coalesce(p.hashtags, []) AS hashtags
        """
        record = await self._fetch_one(query, id=post_id)
        if record is None:
            return None
        embedding = record.get("embedding")
        return Post(
            id=record["id"],
            embedding=list(embedding) if embedding else None,
            hashtags=list(record.get("hashtags") or []),
        )

    async def assign_post_to_category(self, post_id: str, category_id: str) -> None:
        """Link a post to a category (idempotent).

        Args:
            post_id: Post ID.
            category_id: Category ID.
        """
        query = """
        MATCH (p:Post {id: $post_id})
        MATCH (c:Category {id: $category_id})
        MERGE (p)-[:BELONGS_TO]->(c)
        """
        await self._execute(query, post_id=post_id, category_id=category_id)

    async def get_category_post_ids(self, category_id: str) -> list[str]:
        """List the posts linked to a category.

        Args:
            category_id: Category ID.

        Returns:
            Linked post IDs.
        """
        query = """
        MATCH (p:Post)-[:BELONGS_TO]->(c:Category {id: $id})
        RETURN DISTINCT p.id AS id
        """
        records = await self._fetch(query, id=category_id)
        return [record["id"] for record in records]

    async def filter_posts_linked_to_any(
        self,
        post_ids: list[str],
        category_ids: list[str],
    ) -> set[str]:
        """Select the posts that link to at least one of ``category_ids``.

        Args:
            post_ids: Candidate post IDs.
            category_ids: Category IDs to test against.

        Returns:
            Subset of ``post_ids``.
        """
        if not post_ids or not category_ids:
            return set()

        query = """
        MATCH (p:Post)-[:BELONGS_TO]->(c:Category)
        WHERE p.id IN $post_ids AND c.id IN $category_ids
        RETURN DISTINCT p.id AS id
        """
        records = await self._fetch(query, post_ids=post_ids, category_ids=category_ids)
        return {record["id"] for record in records}

    async def remove_category_links(self, category_id: str, post_ids: list[str]) -> int:
        """Delete the edges from the given posts to a category.

        Args:
            category_id: Category ID.
            post_ids: Posts whose edge is removed.

        Returns:
            Number of edges deleted.
        """
        if not post_ids:
            return 0

        query = """
        MATCH (p:Post)-[r:BELONGS_TO]->(c:Category {id: $id})
        WHERE p.id IN $post_ids
        DELETE r
        RETURN count(r) AS removed
        """
        record = await self._fetch_one(query, id=category_id, post_ids=post_ids)
        return int(record["removed"]) if record else 0

    async def assign_posts_to_category(self, post_ids: list[str], category_id: str) -> int:
        """Link many posts to one category (idempotent).

        Args:
            post_ids: Posts to link.
            category_id: Category ID.

        Returns:
            Number of posts linked.
        """
        if not post_ids:
            return 0

        query = """
        MATCH (c:Category {id: $id})
        MATCH (p:Post)
        WHERE p.id IN $post_ids
        MERGE (p)-[:BELONGS_TO]->(c)
        RETURN count(p) AS assigned
        """
        record = await self._fetch_one(query, id=category_id, post_ids=post_ids)
        return int(record["assigned"]) if record else 0

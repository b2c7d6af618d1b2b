"""Backup checkpoints taken before a cleanup run mutates the graph.

A checkpoint is a single ``(:CleanupBackup)`` node holding JSON snapshots of:
- every category, including soft-deleted ones
- every ``(:Post)-[:BELONGS_TO]->(:Category)`` edge
- every post's hashtag list

Embeddings are not captured; restored categories keep whatever embedding
they currently carry. Restoring is a manual recovery step, never automatic.
"""

from __future__ import annotations

from datetime import UTC, datetime
import json
from typing import TYPE_CHECKING, Any
import uuid

from pydantic import BaseModel
import structlog

from taxonomy_cleanup.exceptions import BackupNotFoundError

if TYPE_CHECKING:
    from neo4j import AsyncDriver

logger = structlog.get_logger(__name__)


class BackupSummary(BaseModel):
    """Listing entry for a stored checkpoint."""

    id: str
    created_at: str
    category_count: int
    membership_count: int


class BackupManager:
    """Create, list and restore cleanup checkpoints.

    Example:
        >>> manager = BackupManager(driver)
        >>> backup_id = await manager.create_backup()
        >>> stats = await manager.restore_backup(backup_id)
    """

    def __init__(self, driver: AsyncDriver, database: str = "neo4j") -> None:
        """Initialize the manager.

        Args:
            driver: Neo4j async driver.
            database: Database name.
        """
        self.driver = driver
        self.database = database

    async def create_backup(self) -> str:
        """Snapshot categories, memberships and hashtags.

        Returns:
            ID of the new checkpoint.
        """
        categories_query = """
        MATCH (c:Category)
        RETURN c.id AS id,
               c.name AS name,
               c.description AS description,
               coalesce(c.isParent, false) AS isParent,
               c.parentId AS parentId,
               coalesce(c.isDeleted, false) AS isDeleted
        """
        memberships_query = """
        MATCH (p:Post)-[:BELONGS_TO]->(c:Category)
        RETURN p.id AS postId, c.id AS categoryId
        """
        hashtags_query = """
        MATCH (p:Post)
        WHERE p.hashtags IS NOT NULL
        RETURN p.id AS postId, p.hashtags AS hashtags
        """

        async with self.driver.session(database=self.database) as session:
            result = await session.run(categories_query)
            categories = [
                {
                    "id": record["id"],
                    "name": record["name"],
                    "description": record["description"],
                    "isParent": record["isParent"],
                    "parentId": record["parentId"],
                    "isDeleted": record["isDeleted"],
                }
                async for record in result
            ]

            result = await session.run(memberships_query)
            memberships = [
                {"postId": record["postId"], "categoryId": record["categoryId"]}
                async for record in result
            ]

            result = await session.run(hashtags_query)
            hashtags = [
                {"postId": record["postId"], "hashtags": list(record["hashtags"])}
                async for record in result
            ]

            backup_id = str(uuid.uuid4())
            create_query = """
            CREATE (b:CleanupBackup {
                id: $id,
                createdAt: $created_at,
                categoryCount: $category_count,
                membershipCount: $membership_count,
                categories: $categories,
                memberships: $memberships,
                hashtags: $hashtags
            })
            """
            await session.run(
                create_query,
                id=backup_id,
                created_at=datetime.now(UTC).isoformat(),
                category_count=len(categories),
                membership_count=len(memberships),
                categories=json.dumps(categories),
                memberships=json.dumps(memberships),
                hashtags=json.dumps(hashtags),
            )

        logger.info(
            "Created cleanup backup",
            backup_id=backup_id,
            categories=len(categories),
            memberships=len(memberships),
            posts_with_hashtags=len(hashtags),
        )
        return backup_id

    async def list_backups(self) -> list[BackupSummary]:
        """List stored checkpoints, newest first.

        Returns:
            Backup summaries.
        """
        query = """
        MATCH (b:CleanupBackup)
        RETURN b.id AS id,
               b.createdAt AS created_at,
               b.categoryCount AS category_count,
               b.membershipCount AS membership_count
        ORDER BY b.createdAt DESC
        """
        async with self.driver.session(database=self.database) as session:
            result = await session.run(query)
            return [
                BackupSummary(
                    id=record["id"],
                    created_at=str(record["created_at"]),
                    category_count=record["category_count"] or 0,
                    membership_count=record["membership_count"] or 0,
                )
                async for record in result
            ]

    async def _load(self, backup_id: str) -> dict[str, Any]:
        query = """
        MATCH (b:CleanupBackup {id: $id})
        RETURN b.categories AS categories,
               b.memberships AS memberships,
               b.hashtags AS hashtags
        """
        async with self.driver.session(database=self.database) as session:
            result = await session.run(query, id=backup_id)
            record = await result.single()

        if record is None:
            raise BackupNotFoundError(backup_id)

        return {
            "categories": json.loads(record["categories"] or "[]"),
            "memberships": json.loads(record["memberships"] or "[]"),
            "hashtags": json.loads(record["hashtags"] or "[]"),
        }

    async def restore_backup(self, backup_id: str) -> dict[str, int]:
        """Restore the graph to a checkpoint.

        Categories created after the checkpoint are soft-deleted. Snapshot
        categories get their name, description, parent state and deletion
        state back. ``BELONGS_TO`` and ``CHILD_OF`` edges and post hashtags
        are rebuilt from the snapshot.

        Args:
            backup_id: Checkpoint to restore.

        Returns:
            Statistics about restored objects.

        Raises:
            BackupNotFoundError: If no checkpoint has that ID.
        """
        snapshot = await self._load(backup_id)
        categories = snapshot["categories"]
        category_ids = [c["id"] for c in categories]
        parent_links = [
            {"childId": c["id"], "parentId": c["parentId"]} for c in categories if c["parentId"]
        ]

        stats = {
            "categories_restored": len(categories),
            "categories_removed": 0,
            "memberships_restored": len(snapshot["memberships"]),
            "parent_links_restored": len(parent_links),
            "posts_with_hashtags_restored": len(snapshot["hashtags"]),
        }

        remove_new_query = """
        MATCH (c:Category)
        WHERE NOT c.id IN $ids AND coalesce(c.isDeleted, false) = false
        SET c.isDeleted = true, c.deletedAt = datetime()
        RETURN count(c) AS removed
        """
        restore_categories_query = """
        UNWIND $categories AS row
        MATCH (c:Category {id: row.id})
        SET c.name = row.name,
            c.description = row.description,
            c.isParent = row.isParent,
            c.parentId = row.parentId,
            c.isDeleted = row.isDeleted,
            c.deletedAt = CASE
                WHEN row.isDeleted THEN coalesce(c.deletedAt, datetime())
                ELSE null
            END
        """
        clear_edges_query = """
        MATCH (:Post)-[r:BELONGS_TO]->(:Category)
        DELETE r
        """
        clear_parent_links_query = """
        MATCH (:Category)-[r:CHILD_OF]->(:Category)
        DELETE r
        """
        restore_memberships_query = """
        UNWIND $memberships AS row
        MATCH (p:Post {id: row.postId})
        MATCH (c:Category {id: row.categoryId})
        MERGE (p)-[:BELONGS_TO]->(c)
        """
        restore_parent_links_query = """
        UNWIND $links AS row
        MATCH (child:Category {id: row.childId})
        MATCH (parent:Category {id: row.parentId})
        MERGE (child)-[:CHILD_OF]->(parent)
        """
        restore_hashtags_query = """
        MATCH (p:Post)
        WHERE p.hashtags IS NOT NULL
        SET p.hashtags = []
        WITH count(p) AS cleared
        UNWIND $hashtags AS row
        MATCH (p:Post {id: row.postId})
        SET p.hashtags = row.hashtags
        """

        async with self.driver.session(database=self.database) as session:
            result = await session.run(remove_new_query, ids=category_ids)
            record = await result.single()
            stats["categories_removed"] = int(record["removed"]) if record else 0

            await session.run(restore_categories_query, categories=categories)
            await session.run(clear_edges_query)
            await session.run(clear_parent_links_query)
            await session.run(restore_memberships_query, memberships=snapshot["memberships"])
            await session.run(restore_parent_links_query, links=parent_links)
            await session.run(restore_hashtags_query, hashtags=snapshot["hashtags"])

        logger.info("Restored cleanup backup", backup_id=backup_id, **stats)
        return stats

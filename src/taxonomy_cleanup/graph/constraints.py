"""Neo4j constraint and index management.

This module provides utilities for creating the constraints and indexes
the category store relies on.
"""

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from neo4j import AsyncDriver

logger = structlog.get_logger(__name__)


# =============================================================================
# CONSTRAINT DEFINITIONS
# =============================================================================

# Uniqueness constraints for node types
#
# NOTE: Category.name is indexed, not unique. Soft-deleted categories keep
# their name, so a surviving category may legitimately share it.
UNIQUENESS_CONSTRAINTS = [
    ("Category", "id"),
    ("Post", "id"),
    ("CleanupBackup", "id"),
]

# Indexes for common query patterns
INDEXES = [
    ("Category", "name"),
    ("Category", "isDeleted"),
    ("CleanupBackup", "createdAt"),
]


class ConstraintManager:
    """Manager for Neo4j constraints and indexes.

    Example:
        >>> manager = ConstraintManager(driver)
        >>> await manager.create_all()
        >>> status = await manager.verify_all()
    """

    def __init__(self, driver: "AsyncDriver", database: str = "neo4j") -> None:
        """Initialize the manager.

        Args:
            driver: Neo4j driver instance.
            database: Database name.
        """
        self.driver = driver
        self.database = database

    async def create_all(self) -> dict:
        """Create all constraints and indexes.

        Returns:
            Statistics about created objects.
        """
        stats = {
            "uniqueness_constraints": 0,
            "indexes": 0,
            "errors": [],
        }

        for label, prop in UNIQUENESS_CONSTRAINTS:
            try:
                await self._create_uniqueness_constraint(label, prop)
                stats["uniqueness_constraints"] += 1
            except Exception as e:
                if "already exists" not in str(e).lower():
                    stats["errors"].append(f"{label}.{prop}: {e}")

        for label, prop in INDEXES:
            try:
                await self._create_index(label, prop)
                stats["indexes"] += 1
            except Exception as e:
                if "already exists" not in str(e).lower():
                    stats["errors"].append(f"{label}.{prop}: {e}")

        logger.info(
            "Created constraints and indexes",
            uniqueness=stats["uniqueness_constraints"],
            indexes=stats["indexes"],
            errors=len(stats["errors"]),
        )

        return stats

    async def _create_uniqueness_constraint(self, label: str, property_name: str) -> None:
        constraint_name = f"unique_{label.lower()}_{property_name.lower()}"
        query = f"""
        CREATE CONSTRAINT {constraint_name} IF NOT EXISTS
        FOR (n:{label})
        REQUIRE n.{property_name} IS UNIQUE
        """

        async with self.driver.session(database=self.database) as session:
            await session.run(query)

    async def _create_index(self, label: str, property_name: str) -> None:
        index_name = f"idx_{label.lower()}_{property_name.lower()}"
        query = f"""
        CREATE INDEX {index_name} IF NOT EXISTS
        FOR (n:{label})
        ON (n.{property_name})
        """

        async with self.driver.session(database=self.database) as session:
            await session.run(query)

    async def verify_all(self) -> dict:
        """Verify all constraints and indexes exist.

        Returns:
            Verification status for each constraint/index.
        """
        status = {
            "constraints": [],
            "indexes": [],
            "missing_constraints": [],
            "missing_indexes": [],
        }

        async with self.driver.session(database=self.database) as session:
            result = await session.run("SHOW CONSTRAINTS")
            status["constraints"] = [record["name"] async for record in result]

            result = await session.run("SHOW INDEXES")
            status["indexes"] = [record["name"] async for record in result]

        for label, prop in UNIQUENESS_CONSTRAINTS:
            expected = f"unique_{label.lower()}_{prop.lower()}"
            if expected not in status["constraints"]:
                status["missing_constraints"].append(f"{label}.{prop}")

        for label, prop in INDEXES:
            expected = f"idx_{label.lower()}_{prop.lower()}"
            if expected not in status["indexes"]:
                status["missing_indexes"].append(f"{label}.{prop}")

        return status


async def create_all_constraints(driver: "AsyncDriver", database: str = "neo4j") -> dict:
    """Convenience function to create all constraints.

    Args:
        driver: Neo4j driver.
        database: Database name.

    Returns:
        Creation statistics.
    """
    manager = ConstraintManager(driver, database)
    return await manager.create_all()

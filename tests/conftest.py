"""Pytest configuration and shared test fixtures.

This module provides fixtures for testing the taxonomy cleanup, including
Neo4j driver mocks, an in-memory category store, and fake embedding and
oracle collaborators.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import itertools
from typing import Any

import pytest

from taxonomy_cleanup.embeddings.base import Embedder
from taxonomy_cleanup.models import (
    Category,
    ClusterMergeResponse,
    HierarchyProposal,
    Post,
)

# =============================================================================
# MODEL FIXTURES
# =============================================================================


def make_category(
    name: str,
    post_count: int = 0,
    category_id: str | None = None,
    embedding: list[float] | None = None,
) -> Category:
    """Build a Category with an ID derived from its name."""
    return Category(
        id=category_id or f"cat-{name.lower().replace(' ', '-')}",
        name=name,
        post_count=post_count,
        embedding=embedding,
    )


@pytest.fixture
def sample_categories() -> list[Category]:
    """Provide a small noisy category set.

    Returns:
        Categories with casing and plural variants.
    """
    return [
        make_category("Travel", 10),
        make_category("outfit", 3),
        make_category("Outfits", 2),
        make_category("street food", 6),
        make_category("Street Food", 4, category_id="cat-street-food-2"),
    ]


# =============================================================================
# NEO4J MOCK FIXTURES
# =============================================================================


@dataclass
class MockRecord:
    """Mock Neo4j record for testing."""

    data: dict

    def __getitem__(self, key: str) -> Any:
        """Get item from record data."""
        return self.data[key]

    def get(self, key: str, default: Any = None) -> Any:
        """Get item from record data with a default."""
        return self.data.get(key, default)

    def keys(self) -> list[str]:
        """Get record keys."""
        return list(self.data.keys())


class MockResult:
    """Mock Neo4j result for testing."""

    def __init__(self, records: list[dict]) -> None:
        """Initialize with list of record dicts."""
        self._records = [MockRecord(r) for r in records]
        self._index = 0

    async def single(self) -> MockRecord | None:
        """Return single record or None."""
        return self._records[0] if self._records else None

    def __aiter__(self) -> MockResult:
        """Return async iterator."""
        return self

    async def __anext__(self) -> MockRecord:
        """Get next record."""
        if self._index >= len(self._records):
            raise StopAsyncIteration
        record = self._records[self._index]
        self._index += 1
        return record


class MockSession:
    """Mock Neo4j async session for testing.

    Every query run is recorded in ``queries`` as ``(query, params)``.
    """

    def __init__(self, results: dict[str, list[dict]] | None = None) -> None:
        """Initialize with query -> results mapping."""
        self._results = results or {}
        self._default_result: list[dict] = []
        self.queries: list[tuple[str, dict]] = []

    def set_result(self, query_pattern: str, records: list[dict]) -> None:
        """Set result for queries matching pattern."""
        self._results[query_pattern] = records

    def set_default_result(self, records: list[dict]) -> None:
        """Set default result for unmatched queries."""
        self._default_result = records

    async def run(self, query: str, **kwargs: Any) -> MockResult:
        """Run query and return mock result."""
        self.queries.append((query, kwargs))
        for pattern, records in self._results.items():
            if pattern in query:
                return MockResult(records)
        return MockResult(self._default_result)

    async def __aenter__(self) -> MockSession:
        """Enter async context."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Exit async context."""


class MockDriver:
    """Mock Neo4j async driver for testing."""

    def __init__(self, session: MockSession | None = None) -> None:
        """Initialize with optional mock session."""
        self._session = session or MockSession()

    def session(self, database: str = "neo4j") -> MockSession:
        """Return mock session."""
        return self._session

    async def close(self) -> None:
        """Close driver (no-op for mock)."""


@pytest.fixture
def mock_neo4j_driver() -> MockDriver:
    """Provide mock Neo4j driver for testing.

    Returns:
        MockDriver instance with configurable results.
    """
    return MockDriver()


@pytest.fixture
def mock_neo4j_session() -> MockSession:
    """Provide mock Neo4j session for testing.

    Returns:
        MockSession instance with configurable results.
    """
    return MockSession()


# =============================================================================
# IN-MEMORY CATEGORY STORE
# =============================================================================


@dataclass
class _StoredCategory:
    id: str
    name: str
    embedding: list[float] | None = None
    is_parent: bool = False
    parent_id: str | None = None
    description: str | None = None
    is_deleted: bool = False


@dataclass
class _StoredPost:
    id: str
    embedding: list[float] | None = None
    hashtags: list[str] = field(default_factory=list)


class FakeCategoryStore:
    """In-memory stand-in for ``CategoryStore`` with the same semantics.

    Soft-deleted categories keep their post edges but are hidden from every
    category query. ``fail_on`` maps a method name to the category or post
    IDs for which that method raises ``RuntimeError``.
    """

    def __init__(self) -> None:
        self.categories: dict[str, _StoredCategory] = {}
        self.posts: dict[str, _StoredPost] = {}
        self.edges: set[tuple[str, str]] = set()
        self.fail_on: dict[str, set[str]] = {}
        self.calls: list[str] = []
        self._ids = itertools.count(1)

    # -- setup helpers --------------------------------------------------------

    def add_category(
        self,
        name: str,
        post_ids: list[str] | tuple[str, ...] = (),
        category_id: str | None = None,
        embedding: list[float] | None = None,
    ) -> Category:
        category_id = category_id or f"cat-{next(self._ids)}"
        self.categories[category_id] = _StoredCategory(
            id=category_id, name=name, embedding=embedding
        )
        for post_id in post_ids:
            self.posts.setdefault(post_id, _StoredPost(id=post_id))
            self.edges.add((post_id, category_id))
        return self._to_category(self.categories[category_id])

    def add_post(
        self,
        post_id: str,
        embedding: list[float] | None = None,
        category_ids: list[str] | tuple[str, ...] = (),
    ) -> None:
        post = self.posts.setdefault(post_id, _StoredPost(id=post_id))
        post.embedding = embedding
        for category_id in category_ids:
            self.edges.add((post_id, category_id))

    def live_names(self) -> list[str]:
        return sorted(c.name for c in self.categories.values() if not c.is_deleted)

    def post_category_names(self, post_id: str) -> set[str]:
        return {
            self.categories[c].name
            for p, c in self.edges
            if p == post_id and not self.categories[c].is_deleted
        }

    def _check(self, method: str, key: str) -> None:
        self.calls.append(method)
        if key in self.fail_on.get(method, set()):
            msg = f"{method} failed for {key}"
            raise RuntimeError(msg)

    def _post_count(self, category_id: str) -> int:
        return sum(1 for _, c in self.edges if c == category_id)

    def _to_category(self, stored: _StoredCategory) -> Category:
        return Category(
            id=stored.id,
            name=stored.name,
            post_count=self._post_count(stored.id),
            embedding=list(stored.embedding) if stored.embedding else None,
            is_parent=stored.is_parent,
            parent_id=stored.parent_id,
            description=stored.description,
        )

    # -- CategoryStore interface ---------------------------------------------

    async def get_categories(self) -> list[Category]:
        self.calls.append("get_categories")
        live = [self._to_category(c) for c in self.categories.values() if not c.is_deleted]
        return sorted(live, key=lambda c: (-c.post_count, c.name))

    async def find_category_by_name(self, name: str) -> Category | None:
        self.calls.append("find_category_by_name")
        for stored in self.categories.values():
            if stored.name == name and not stored.is_deleted:
                return self._to_category(stored)
        return None

    async def create_category(self, name: str, description: str | None = None) -> Category:
        self._check("create_category", name)
        existing = await self.find_category_by_name(name)
        if existing is not None:
            return existing
        category_id = f"cat-{next(self._ids)}"
        self.categories[category_id] = _StoredCategory(
            id=category_id, name=name, description=description
        )
        return self._to_category(self.categories[category_id])

    async def soft_delete_category(self, category_id: str) -> None:
        self._check("soft_delete_category", category_id)
        self.categories[category_id].is_deleted = True

    async def rename_category(self, category_id: str, new_name: str) -> None:
        self._check("rename_category", category_id)
        self.categories[category_id].name = new_name

    async def update_category_embedding(self, category_id: str, embedding: list[float]) -> None:
        self._check("update_category_embedding", category_id)
        self.categories[category_id].embedding = list(embedding)

    async def set_category_parent(self, child_id: str, parent_id: str) -> None:
        self._check("set_category_parent", child_id)
        self.categories[child_id].parent_id = parent_id

    async def set_category_is_parent(self, category_id: str, is_parent: bool) -> None:
        self._check("set_category_is_parent", category_id)
        self.categories[category_id].is_parent = is_parent

    async def count_category_posts(self, category_id: str) -> int:
        self.calls.append("count_category_posts")
        return self._post_count(category_id)

    async def reassign_posts(self, from_category_id: str, to_category_id: str) -> int:
        self._check("reassign_posts", from_category_id)
        if from_category_id != to_category_id:
            moved = {p for p, c in self.edges if c == from_category_id}
            self.edges -= {(p, from_category_id) for p in moved}
            self.edges |= {(p, to_category_id) for p in moved}
        return self._post_count(to_category_id)

    async def add_hashtag_to_posts_in_category(self, category_id: str, hashtag: str) -> int:
        self._check("add_hashtag_to_posts_in_category", category_id)
        post_ids = {p for p, c in self.edges if c == category_id}
        for post_id in post_ids:
            post = self.posts[post_id]
            if hashtag not in post.hashtags:
                post.hashtags.append(hashtag)
        return len(post_ids)

    async def find_orphaned_post_ids(self, keep_ids: list[str]) -> list[str]:
        self.calls.append("find_orphaned_post_ids")
        keep = set(keep_ids)
        linked: dict[str, set[str]] = {}
        for post_id, category_id in self.edges:
            linked.setdefault(post_id, set()).add(category_id)
        return sorted(p for p, cats in linked.items() if not cats & keep)

    async def get_post(self, post_id: str) -> Post | None:
        self._check("get_post", post_id)
        stored = self.posts.get(post_id)
        if stored is None:
            return None
        return Post(id=stored.id, embedding=stored.embedding, hashtags=list(stored.hashtags))

    async def assign_post_to_category(self, post_id: str, category_id: str) -> None:
        self._check("assign_post_to_category", post_id)
        self.edges.add((post_id, category_id))

    async def get_category_post_ids(self, category_id: str) -> list[str]:
        self._check("get_category_post_ids", category_id)
        return sorted(p for p, c in self.edges if c == category_id)

    async def filter_posts_linked_to_any(
        self,
        post_ids: list[str],
        category_ids: list[str],
    ) -> set[str]:
        self.calls.append("filter_posts_linked_to_any")
        wanted = set(category_ids)
        return {p for p, c in self.edges if p in post_ids and c in wanted}

    async def remove_category_links(self, category_id: str, post_ids: list[str]) -> int:
        self._check("remove_category_links", category_id)
        removed = {(p, category_id) for p in post_ids} & self.edges
        self.edges -= removed
        return len(removed)

    async def assign_posts_to_category(self, post_ids: list[str], category_id: str) -> int:
        self._check("assign_posts_to_category", category_id)
        for post_id in post_ids:
            self.edges.add((post_id, category_id))
        return len(post_ids)


@pytest.fixture
def fake_store() -> FakeCategoryStore:
    """Provide an empty in-memory category store.

    Returns:
        FakeCategoryStore instance.
    """
    return FakeCategoryStore()


# =============================================================================
# EMBEDDING AND ORACLE FAKES
# =============================================================================


class FakeEmbedder(Embedder):
    """Embedder returning fixed vectors by text.

    Texts without a configured vector get a fresh one-hot vector, so they
    never look similar to anything else.
    """

    provider = "fake"

    def __init__(self, vectors: dict[str, list[float]] | None = None, dimensions: int = 8) -> None:
        self.vectors = dict(vectors or {})
        self.dimensions = dimensions
        self.batches: list[list[str]] = []
        self._next_axis = 0

    def _vector_for(self, text: str) -> list[float]:
        if text not in self.vectors:
            vector = [0.0] * self.dimensions
            vector[self._next_axis % self.dimensions] = 1.0
            self._next_axis += 1
            self.vectors[text] = vector
        return self.vectors[text]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.batches.append(list(texts))
        positions, non_empty = self._split_empty(texts)
        return self._scatter(len(texts), positions, [self._vector_for(t) for t in non_empty])


class FakeOracle:
    """Oracle returning canned responses and recording its inputs."""

    def __init__(
        self,
        merges: ClusterMergeResponse | None = None,
        hierarchy: HierarchyProposal | None = None,
    ) -> None:
        self.merges = merges or ClusterMergeResponse()
        self.hierarchy = hierarchy or HierarchyProposal()
        self.merge_calls: list[list[str]] = []
        self.hierarchy_calls: list[list[str]] = []

    async def merge_similar_clusters(self, clusters: list) -> ClusterMergeResponse:
        self.merge_calls.append([cluster.id for cluster in clusters])
        return self.merges

    async def create_category_hierarchy(self, category_names: list[str]) -> HierarchyProposal:
        self.hierarchy_calls.append(list(category_names))
        return self.hierarchy


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    """Provide an embedder with no preset vectors.

    Returns:
        FakeEmbedder instance.
    """
    return FakeEmbedder()


@pytest.fixture
def fake_oracle() -> FakeOracle:
    """Provide an oracle proposing no merges and no hierarchy.

    Returns:
        FakeOracle instance.
    """
    return FakeOracle()


# =============================================================================
# ENVIRONMENT FIXTURES
# =============================================================================


@pytest.fixture
def mock_env_vars(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Provide mock environment variables for testing.

    Returns:
        Dictionary of environment variables that were set.
    """
    env_vars = {
        "NEO4J_URI": "bolt://localhost:7687",
        "NEO4J_USERNAME": "neo4j",
        "NEO4J_PASSWORD": "testpassword",
        "NEO4J_DATABASE": "neo4j",
        "OPENAI_API_KEY": "sk-test-key-123",
        "EMBEDDING_PROVIDER": "openai",
    }
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    # Set optional keys to empty so load_dotenv() won't refill from .env
    monkeypatch.setenv("VOYAGE_API_KEY", "")
    monkeypatch.delenv("EMBEDDING_MODEL", raising=False)
    monkeypatch.delenv("EMBEDDING_DIMENSIONS", raising=False)
    monkeypatch.delenv("ORACLE_MODEL", raising=False)
    return env_vars

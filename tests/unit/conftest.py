"""Shared fixtures for recordmap unit tests."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import pytest

from recordmap.runtime.manager import RecordManager
from recordmap.runtime.query_builder import SelectQuery
from recordmap.runtime.registry import ManagerRegistry
from recordmap.runtime.storage import SQLiteStorage
from recordmap.specs.record import RecordSpec

# =============================================================================
# Specs
# =============================================================================


@pytest.fixture
def user_spec() -> RecordSpec:
    """User records with one 'many' relation to posts."""
    return RecordSpec(
        name="User",
        fields={"id": "int", "name": "str", "email": "str", "active": "bool"},
        relations={
            "posts": {
                "target": "Post",
                "cardinality": "many",
                "conditions": [
                    {"expression": "t.user_id", "value": "entity.id"},
                    {"expression": "t.deleted_at IS NULL"},
                ],
            },
            "latest_post": {
                "target": "Post",
                "cardinality": "one",
                "conditions": {"expression": "t.user_id = ?", "value": "entity.id"},
            },
        },
    )


@pytest.fixture
def post_spec() -> RecordSpec:
    """Post records with one 'one' relation back to their author."""
    return RecordSpec(
        name="Post",
        fields={"id": "int", "user_id": "int", "title": "str", "deleted_at": "datetime"},
        relations={
            "author": {
                "target": "User",
                "cardinality": "one",
                "conditions": [{"condition": "t.id", "value": "entity.user_id"}],
            },
        },
    )


# =============================================================================
# Storage and Managers
# =============================================================================


@pytest.fixture
def storage(tmp_path: Path) -> SQLiteStorage:
    """File-backed SQLite storage in a temp directory."""
    return SQLiteStorage(tmp_path / "test.db")


@pytest.fixture
def registry(
    storage: SQLiteStorage, user_spec: RecordSpec, post_spec: RecordSpec
) -> ManagerRegistry:
    """Registry with User and Post managers and their tables created."""
    registry = ManagerRegistry()
    registry.register_all([user_spec, post_spec], storage)
    for name in ("User", "Post"):
        registry.resolve(name).create_table()
    return registry


@pytest.fixture
def users(registry: ManagerRegistry) -> RecordManager:
    return registry.resolve("User")


@pytest.fixture
def posts(registry: ManagerRegistry) -> RecordManager:
    return registry.resolve("Post")


# =============================================================================
# Recording Storage
# =============================================================================


class RecordingStorage:
    """
    In-memory StorageBackend that records every call.

    Rows to return are queued via ``one_results`` / ``all_results``;
    ``affected`` is the row count reported by insert and execute.
    """

    def __init__(self, affected: int = 1, generated_id: Any = 1):
        self.affected = affected
        self.generated_id = generated_id
        self.calls: list[tuple[str, Any, list[Any]]] = []
        self.one_results: list[dict[str, Any] | None] = []
        self.all_results: list[list[dict[str, Any]]] = []

    @property
    def writes(self) -> list[tuple[str, Any, list[Any]]]:
        return [c for c in self.calls if c[0] in ("insert", "execute")]

    def insert(self, table: str, fields: Mapping[str, Any]) -> int:
        self.calls.append(("insert", table, [dict(fields)]))
        return self.affected

    def fetch_one(self, query: str, params: Sequence[Any] = ()) -> dict[str, Any] | None:
        self.calls.append(("fetch_one", query, list(params)))
        return self.one_results.pop(0) if self.one_results else None

    def fetch_all(self, query: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        self.calls.append(("fetch_all", query, list(params)))
        return self.all_results.pop(0) if self.all_results else []

    def execute(self, query: str, params: Sequence[Any] = ()) -> int:
        self.calls.append(("execute", query, list(params)))
        return self.affected

    def last_generated_id(self) -> Any:
        return self.generated_id

    def build_query(self, table: str) -> SelectQuery:
        return SelectQuery(table=table)

    def describe(self, table: str) -> list[dict[str, Any]]:
        return []


@pytest.fixture
def recording() -> RecordingStorage:
    return RecordingStorage()


@pytest.fixture
def recording_registry(
    recording: RecordingStorage, user_spec: RecordSpec, post_spec: RecordSpec
) -> ManagerRegistry:
    """Registry whose managers all run against the recording storage."""
    registry = ManagerRegistry()
    registry.register_all([user_spec, post_spec], recording)
    return registry

"""
Storage backends.

``StorageBackend`` is the interface record managers consume: parameterized
statements in, row mappings and affected-row counts out. ``SQLiteStorage``
implements it on the standard library sqlite3 module.

Storage errors (``sqlite3.Error``) are never caught here.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from recordmap.config import RecordMapConfig, get_config
from recordmap.runtime.conversion import column_type, to_storage
from recordmap.runtime.logging import get_storage_logger, log_with_context
from recordmap.runtime.query_builder import SelectQuery, quote_identifier

if TYPE_CHECKING:
    from recordmap.specs.record import FieldSpec, RecordSpec

MEMORY_DB = ":memory:"

logger = get_storage_logger()


# =============================================================================
# Interface
# =============================================================================


@runtime_checkable
class StorageBackend(Protocol):
    """Statement execution capability used by record managers."""

    def insert(self, table: str, fields: Mapping[str, Any]) -> int:
        """Insert one row; returns the affected-row count."""
        ...

    def fetch_one(self, query: str, params: Sequence[Any] = ()) -> dict[str, Any] | None:
        ...

    def fetch_all(self, query: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        ...

    def execute(self, query: str, params: Sequence[Any] = ()) -> int:
        """Run a modifying statement; returns the affected-row count."""
        ...

    def last_generated_id(self) -> Any:
        """Identifier generated by the calling thread's most recent insert."""
        ...

    def build_query(self, table: str) -> SelectQuery:
        ...

    def describe(self, table: str) -> list[dict[str, Any]]:
        """Column metadata for a table."""
        ...


# =============================================================================
# SQLite
# =============================================================================


class SQLiteStorage:
    """
    SQLite implementation of StorageBackend.

    File databases open one connection per operation. ``:memory:`` databases
    keep a single persistent connection guarded by a lock, since every new
    connection would see a different empty database.
    """

    def __init__(self, db_path: str | Path = MEMORY_DB, foreign_keys: bool = True):
        """
        Initialize the storage.

        Args:
            db_path: Path to SQLite database file, or ``:memory:``
            foreign_keys: Enforce foreign key constraints
        """
        self.db_path = str(db_path)
        self.foreign_keys = foreign_keys
        self._in_memory = self.db_path == MEMORY_DB
        self._lock = threading.RLock()
        self._local = threading.local()
        self._connection: sqlite3.Connection | None = None
        if not self._in_memory:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_config(cls, config: RecordMapConfig | None = None) -> SQLiteStorage:
        config = config or get_config()
        return cls(config.db_path, foreign_keys=config.foreign_keys)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=not self._in_memory)
        conn.row_factory = sqlite3.Row
        if self.foreign_keys:
            conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """
        Get a database connection context manager.

        Commits on success, rolls back and re-raises on error.

        Yields:
            SQLite connection
        """
        if self._in_memory:
            with self._lock:
                if self._connection is None:
                    self._connection = self._connect()
                conn = self._connection
                try:
                    yield conn
                    conn.commit()
                except Exception:
                    conn.rollback()
                    raise
            return

        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def close(self) -> None:
        """Close the persistent connection (in-memory databases lose their data)."""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    # -------------------------------------------------------------------------
    # StorageBackend
    # -------------------------------------------------------------------------

    def insert(self, table: str, fields: Mapping[str, Any]) -> int:
        quoted = quote_identifier(table)
        if fields:
            columns = ", ".join(quote_identifier(name) for name in fields)
            placeholders = ", ".join("?" for _ in fields)
            sql = f"INSERT INTO {quoted} ({columns}) VALUES ({placeholders})"
        else:
            sql = f"INSERT INTO {quoted} DEFAULT VALUES"

        with self.connection() as conn:
            cursor = conn.execute(sql, list(fields.values()))
            self._local.last_id = cursor.lastrowid
            rowcount = cursor.rowcount
        log_with_context(logger, logging.DEBUG, "insert", sql=sql, rows=rowcount)
        return rowcount

    def fetch_one(self, query: str, params: Sequence[Any] = ()) -> dict[str, Any] | None:
        with self.connection() as conn:
            row = conn.execute(query, list(params)).fetchone()
        log_with_context(logger, logging.DEBUG, "fetch_one", sql=query, found=row is not None)
        return dict(row) if row is not None else None

    def fetch_all(self, query: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        with self.connection() as conn:
            rows = conn.execute(query, list(params)).fetchall()
        log_with_context(logger, logging.DEBUG, "fetch_all", sql=query, rows=len(rows))
        return [dict(row) for row in rows]

    def execute(self, query: str, params: Sequence[Any] = ()) -> int:
        with self.connection() as conn:
            rowcount = conn.execute(query, list(params)).rowcount
        log_with_context(logger, logging.DEBUG, "execute", sql=query, rows=rowcount)
        return rowcount

    def last_generated_id(self) -> Any:
        return getattr(self._local, "last_id", None)

    def build_query(self, table: str) -> SelectQuery:
        return SelectQuery(table=table)

    def describe(self, table: str) -> list[dict[str, Any]]:
        """
        Column metadata from ``PRAGMA table_info``.

        Returns:
            One dict per column with name, type, nullable, default and
            primary_key; empty if the table does not exist
        """
        with self.connection() as conn:
            rows = conn.execute(f"PRAGMA table_info({quote_identifier(table)})").fetchall()
        return [
            {
                "name": row["name"],
                "type": row["type"],
                "nullable": not row["notnull"],
                "default": row["dflt_value"],
                "primary_key": bool(row["pk"]),
            }
            for row in rows
        ]

    # -------------------------------------------------------------------------
    # Schema helpers
    # -------------------------------------------------------------------------

    def table_exists(self, table: str) -> bool:
        """Check if a table exists."""
        with self.connection() as conn:
            row = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
            ).fetchone()
        return row is not None

    def create_table(self, spec: RecordSpec) -> None:
        """Create the table for a record type if it doesn't exist."""
        columns = ", ".join(self._build_column(f, f.name == spec.primary_key) for f in spec.fields)
        sql = f"CREATE TABLE IF NOT EXISTS {quote_identifier(spec.table)} ({columns})"
        with self.connection() as conn:
            conn.execute(sql)
        log_with_context(logger, logging.INFO, "create table", table=spec.table)

    def _build_column(self, field: FieldSpec, primary: bool) -> str:
        """Build a single column definition."""
        parts = [quote_identifier(field.name)]
        sqlite_type = column_type(field.type)
        if primary and sqlite_type in ("INTEGER", ""):
            # rowid alias, so inserts without a key get a generated one
            parts.append("INTEGER PRIMARY KEY")
            return " ".join(parts)
        if sqlite_type:
            parts.append(sqlite_type)
        if primary:
            parts.append("PRIMARY KEY")
        elif field.required:
            parts.append("NOT NULL")

        if field.default is not None:
            default_val = to_storage(field.default, field.type)
            if isinstance(default_val, str):
                escaped = default_val.replace("'", "''")
                parts.append(f"DEFAULT '{escaped}'")
            else:
                parts.append(f"DEFAULT {default_val}")
        return " ".join(parts)

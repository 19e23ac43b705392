"""
Record manager - CRUD orchestration for one record type.

The manager reads the dirty set of a record to build minimal writes and
folds confirmed values back into the record's ValueStore. It keeps no
per-call state, so one instance can serve concurrent callers.

Outcome policy:
- Nothing found or nothing to write: a ``Signal`` is returned
- Wrong argument shapes: ``InvalidArgumentError`` is raised
- Storage errors: logged and re-raised unchanged
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from recordmap.errors import InvalidArgumentError, RecordMapError
from recordmap.results import ABSENT, Signal
from recordmap.runtime.condition_translator import ConditionTranslator
from recordmap.runtime.conversion import from_storage, to_storage
from recordmap.runtime.logging import get_manager_logger, log_with_context
from recordmap.runtime.query_builder import SelectQuery, quote_identifier
from recordmap.runtime.record import Record, generate_record_class
from recordmap.runtime.relation_resolver import RelationshipResolver
from recordmap.runtime.value_store import ValueStore
from recordmap.specs.record import RecordSpec, ScalarType
from recordmap.specs.relation import ConditionClause

if TYPE_CHECKING:
    from recordmap.runtime.registry import ManagerRegistry
    from recordmap.runtime.storage import StorageBackend

logger = get_manager_logger()


class RecordManager:
    """
    Create, read, update, refresh, delete and fetch records of one type.

    Example:
        manager = RecordManager(post_spec, storage)
        post = manager.fresh({"title": "Hello"}, as_modified=True)
        manager.create(post)          # post.get("id") now holds the new key
        post.set("title", "Hi")
        manager.update(post)          # UPDATE "post" SET "title" = ? WHERE "id" = ?
    """

    def __init__(
        self,
        spec: RecordSpec,
        storage: StorageBackend,
        registry: ManagerRegistry | None = None,
    ):
        """
        Initialize the manager.

        Args:
            spec: Record type declaration
            storage: Storage backend executing statements
            registry: Registry used to resolve relation targets
        """
        if not isinstance(spec, RecordSpec):
            raise InvalidArgumentError(f"Expected a RecordSpec, got {type(spec).__name__}")
        self.spec = spec
        self.storage = storage
        self.registry = registry
        self.record_class = generate_record_class(spec)
        self.translator = ConditionTranslator(storage, spec.table)
        self._field_types: dict[str, ScalarType] = {f.name: f.type for f in spec.fields}

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def table(self) -> str:
        return self.spec.table

    @property
    def primary_key(self) -> str:
        return self.spec.primary_key

    def __repr__(self) -> str:
        return f"RecordManager({self.name!r}, table={self.table!r})"

    # =========================================================================
    # Helpers
    # =========================================================================

    def _check(self, record: Any) -> Record:
        if not isinstance(record, Record):
            raise InvalidArgumentError(
                f"{self.name} manager expects a record, got {type(record).__name__}"
            )
        if record.spec != self.spec:
            raise InvalidArgumentError(
                f"{self.name} manager cannot handle a {record.spec.name} record"
            )
        return record

    def _key_of(self, record: Record) -> Any:
        key = record.get(self.primary_key)
        if key is ABSENT or key is None:
            raise InvalidArgumentError(
                f"{self.name} record has no value for primary key '{self.primary_key}'"
            )
        return key

    def _to_row(self, values: Mapping[str, Any]) -> dict[str, Any]:
        return {k: to_storage(v, self._field_types.get(k)) for k, v in values.items()}

    def _from_row(self, row: Mapping[str, Any]) -> dict[str, Any]:
        return {k: from_storage(v, self._field_types.get(k)) for k, v in row.items()}

    def _key_param(self, key: Any) -> Any:
        return to_storage(key, self._field_types.get(self.primary_key))

    def _by_key(self, key: Any) -> SelectQuery:
        query = self.storage.build_query(self.table)
        column = f"{query.alias}.{quote_identifier(self.primary_key)}"
        return query.where(f"{column} = ?", self._key_param(key))

    @contextmanager
    def _operation(self, operation: str, **context: Any) -> Iterator[dict[str, Any]]:
        """Time one storage call; log failures and re-raise them untouched."""
        start = time.perf_counter()
        outcome: dict[str, Any] = {}
        try:
            yield outcome
        except RecordMapError:
            raise
        except Exception:
            log_with_context(
                logger,
                logging.ERROR,
                f"{operation} on {self.table} failed",
                exc_info=True,
                table=self.table,
                **context,
            )
            raise
        latency_ms = (time.perf_counter() - start) * 1000
        log_with_context(
            logger,
            logging.DEBUG,
            f"{operation} {self.table}",
            table=self.table,
            latency_ms=round(latency_ms, 3),
            **context,
            **outcome,
        )

    def _prepare(
        self, source: Any, params: Sequence[Any] | None, owner: Record | None
    ) -> tuple[str, list[Any]]:
        if isinstance(source, SelectQuery):
            sql, built = source.build()
            if params is None:
                return sql, built
            # explicit params replace the WHERE params only; LIMIT/OFFSET stay bound
            return sql, [*params, *built[len(source.parameters) :]]
        if isinstance(source, str):
            return source, list(params or ())
        if params is not None:
            raise InvalidArgumentError("Parameters cannot be combined with a condition tree")
        if isinstance(source, (Mapping, list, tuple, ConditionClause)):
            query, _ = self.translator.translate(source, owner=owner)
            return query.build()
        raise InvalidArgumentError(
            f"Expected a query, SQL string or condition tree, got {type(source).__name__}"
        )

    # =========================================================================
    # Construction
    # =========================================================================

    def fresh(self, data: Mapping[str, Any] | None = None, as_modified: bool = False) -> Record:
        """
        Build a new record of this type.

        Args:
            data: Initial values
            as_modified: Treat data as pending changes (for records about to be
                created) instead of persisted values

        Returns:
            New record; nothing is written

        Raises:
            InvalidArgumentError: If data is not a mapping
        """
        store = ValueStore(self.spec.field_names, data, as_modified=as_modified)
        return self.record_class(self, store)

    def relation_resolver(self, record: Record) -> RelationshipResolver:
        """Build the relationship resolver for one of this manager's records."""
        self._check(record)
        if self.registry is None and self.spec.relations:
            raise RecordMapError(
                f"{self.name} declares relations but its manager has no registry"
            )
        return RelationshipResolver(record, self.spec.relations, self.registry)

    # =========================================================================
    # CRUD
    # =========================================================================

    def create(self, record: Record) -> Record | Signal:
        """
        Insert the record's dirty fields.

        A primary key set to a value other than None is inserted as given;
        otherwise the generated key is merged in. The record is then reset to the
        persisted values, keeping its extras.

        Returns:
            The record, ``Signal.NOTHING_TO_PERSIST`` when nothing is dirty,
            or ``Signal.NO_EFFECT`` when the insert affected no row
        """
        self._check(record)
        dirty = record.dirty()
        if not dirty:
            log_with_context(
                logger, logging.DEBUG, f"create {self.table} skipped, nothing to persist"
            )
            return Signal.NOTHING_TO_PERSIST

        with self._operation("insert", fields=sorted(dirty)) as outcome:
            affected = self.storage.insert(self.table, self._to_row(dirty))
            outcome["rows"] = affected
        if affected < 1:
            return Signal.NO_EFFECT

        persisted = dict(dirty)
        if persisted.get(self.primary_key) is None:
            persisted[self.primary_key] = self.storage.last_generated_id()
        record.reset(persisted, clear_container=False)
        return record

    def read(self, key: Any) -> Record | Signal:
        """
        Load one record by primary key.

        Returns:
            Record populated as persisted values, or ``Signal.NOT_FOUND``
        """
        if key is None or key is ABSENT:
            raise InvalidArgumentError(f"{self.name}.read requires a primary key value")
        return self.fetch(self._by_key(key))

    def update(self, record: Record) -> Record | int:
        """
        Write the record's dirty fields by primary key.

        The primary key is never part of the SET list; the WHERE clause uses
        the record's current key value. The record is not reset: its changes
        move to the written layer (so a repeated update is a no-op) and the
        baseline stays as loaded until ``refresh``.

        Returns:
            The unchanged record when there is nothing to write, else the
            affected row count
        """
        self._check(record)
        dirty = record.dirty()
        if not dirty:
            return record
        key = self._key_of(record)
        changes = {k: v for k, v in dirty.items() if k != self.primary_key}
        if not changes:
            return record

        row = self._to_row(changes)
        assignments = ", ".join(f"{quote_identifier(k)} = ?" for k in row)
        sql = (
            f"UPDATE {quote_identifier(self.table)} SET {assignments} "
            f"WHERE {quote_identifier(self.primary_key)} = ?"
        )
        with self._operation("update", fields=sorted(changes)) as outcome:
            affected = self.storage.execute(sql, [*row.values(), self._key_param(key)])
            outcome["rows"] = affected
        if affected > 0:
            record.mark_written()
        return affected

    def refresh(self, record: Record) -> Record | Signal:
        """
        Re-read the record by its current primary key.

        Returns:
            The record reset to the stored row (extras kept, cached relations
            dropped), or ``Signal.NOT_FOUND`` with the record left untouched
        """
        self._check(record)
        sql, params = self._by_key(self._key_of(record)).build()
        with self._operation("refresh") as outcome:
            row = self.storage.fetch_one(sql, params)
            outcome["found"] = row is not None
        if row is None:
            return Signal.NOT_FOUND
        record.reset(self._from_row(row), clear_container=False)
        record.invalidate_relations()
        return record

    def delete(self, record: Record) -> int:
        """
        Delete the record's row by its current primary key.

        The record itself is left as it was.

        Returns:
            Affected row count
        """
        self._check(record)
        sql = (
            f"DELETE FROM {quote_identifier(self.table)} "
            f"WHERE {quote_identifier(self.primary_key)} = ?"
        )
        with self._operation("delete") as outcome:
            affected = self.storage.execute(sql, [self._key_param(self._key_of(record))])
            outcome["rows"] = affected
        return affected

    # =========================================================================
    # Fetching
    # =========================================================================

    def fetch(
        self,
        source: Any,
        params: Sequence[Any] | None = None,
        *,
        owner: Record | None = None,
    ) -> Record | Signal:
        """
        Fetch a single record.

        Args:
            source: SelectQuery, raw SQL string, or condition tree
            params: Parameters for a raw SQL string, or replacing a query's WHERE
                parameters (its LIMIT/OFFSET values are kept)
            owner: Record supplying deferred references in a condition tree

        Returns:
            Record populated as persisted values, or ``Signal.NOT_FOUND``
        """
        sql, bound = self._prepare(source, params, owner)
        with self._operation("fetch") as outcome:
            row = self.storage.fetch_one(sql, bound)
            outcome["found"] = row is not None
        if row is None:
            return Signal.NOT_FOUND
        return self.fresh(self._from_row(row))

    def fetch_all(
        self,
        source: Any,
        params: Sequence[Any] | None = None,
        *,
        owner: Record | None = None,
    ) -> list[Record]:
        """
        Fetch every matching record.

        Args:
            source: SelectQuery, raw SQL string, or condition tree
            params: Parameters for a raw SQL string, or replacing a query's WHERE
                parameters (its LIMIT/OFFSET values are kept)
            owner: Record supplying deferred references in a condition tree

        Returns:
            Records populated as persisted values; empty when nothing matches
        """
        sql, bound = self._prepare(source, params, owner)
        with self._operation("fetch_all") as outcome:
            rows = self.storage.fetch_all(sql, bound)
            outcome["rows"] = len(rows)
        return [self.fresh(self._from_row(row)) for row in rows]

    # =========================================================================
    # Schema
    # =========================================================================

    def describe(self) -> list[dict[str, Any]]:
        """Column metadata of this manager's table."""
        return self.storage.describe(self.table)

    def create_table(self) -> None:
        """Create this manager's table if the storage supports it."""
        create = getattr(self.storage, "create_table", None)
        if create is None:
            raise RecordMapError(f"{type(self.storage).__name__} cannot create tables")
        create(self.spec)

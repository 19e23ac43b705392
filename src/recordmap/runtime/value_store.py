"""
Layered value storage for a single record.

A record's values live in four layers:

- baseline: last confirmed persisted values, one entry per schema field
- written: values an update sent to storage that no re-read has confirmed yet
- modified: schema fields set since the last reset (the dirty set)
- container: names outside the schema, never persisted

Lookups resolve modified -> written -> baseline -> container -> ABSENT.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from recordmap.errors import InvalidArgumentError
from recordmap.results import ABSENT


class ValueStore:
    """
    Dirty-tracking value storage bound to a fixed field schema.

    Example:
        >>> store = ValueStore(["id", "name"], {"name": "a", "extra": 1})
        >>> store.get("name"), store.get("extra"), store.get("id")
        ('a', 1, ABSENT)
        >>> store.count()
        3
    """

    __slots__ = ("_fields", "_baseline", "_written", "_modified", "_container")

    def __init__(
        self,
        fields: Iterable[str],
        data: Mapping[str, Any] | None = None,
        as_modified: bool = False,
    ):
        """
        Initialize the store.

        Args:
            fields: Schema field names, in order
            data: Initial values; schema names are classified as baseline or
                modified, everything else goes to the container
            as_modified: Put schema values in the dirty set instead of baseline

        Raises:
            InvalidArgumentError: If data is not a mapping
        """
        self._fields: tuple[str, ...] = tuple(fields)
        self._baseline: dict[str, Any] = dict.fromkeys(self._fields, ABSENT)
        self._written: dict[str, Any] = {}
        self._modified: dict[str, Any] = {}
        self._container: dict[str, Any] = {}

        schema, extra = self._split(data if data is not None else {})
        if as_modified:
            self._modified.update(schema)
        else:
            self._baseline.update(schema)
        self._container.update(extra)

    def _split(self, data: Any) -> tuple[dict[str, Any], dict[str, Any]]:
        """Split data into (schema subset, extras)."""
        if not isinstance(data, Mapping):
            raise InvalidArgumentError(
                f"Record data must be a mapping, got {type(data).__name__}"
            )
        schema: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in data.items():
            if key in self._baseline:
                schema[key] = value
            else:
                extra[key] = value
        return schema, extra

    @property
    def fields(self) -> tuple[str, ...]:
        return self._fields

    def is_field(self, name: str) -> bool:
        return name in self._baseline

    # -------------------------------------------------------------------------
    # Access
    # -------------------------------------------------------------------------

    def get(self, name: str) -> Any:
        """Current value of ``name``, or ``ABSENT``."""
        for layer in (self._modified, self._written, self._baseline, self._container):
            if name in layer:
                return layer[name]
        return ABSENT

    def set(self, name: str, value: Any) -> None:
        """Schema fields go to the dirty set, anything else to the container."""
        if name in self._baseline:
            self._modified[name] = value
        else:
            self._container[name] = value

    def unset(self, name: str) -> None:
        """Drop a pending change, or an extra value. Baseline is never touched."""
        if name in self._modified:
            del self._modified[name]
        else:
            self._container.pop(name, None)

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        """Current schema values, pending changes taking precedence."""
        return {**self._baseline, **self._written, **self._modified}

    def dirty(self) -> dict[str, Any]:
        """Fields changed since the last reset."""
        return dict(self._modified)

    @property
    def is_dirty(self) -> bool:
        return bool(self._modified)

    def extras(self) -> dict[str, Any]:
        return dict(self._container)

    def count(self) -> int:
        return len(self.snapshot()) + len(self._container)

    def to_dict(self) -> dict[str, Any]:
        """Snapshot plus extras, without absent fields."""
        merged = {**self.snapshot(), **self._container}
        return {k: v for k, v in merged.items() if v is not ABSENT}

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def mark_written(self) -> None:
        """Move the dirty set to the written layer after an update reached storage."""
        self._written.update(self._modified)
        self._modified.clear()

    def reset(self, data: Mapping[str, Any], clear_container: bool = True) -> None:
        """
        Replace the baseline with confirmed values.

        Args:
            data: Confirmed values; extras are routed to the container
            clear_container: Replace the container instead of merging into it

        Raises:
            InvalidArgumentError: If data is not a mapping
        """
        schema, extra = self._split(data)
        self._baseline = dict.fromkeys(self._fields, ABSENT)
        self._baseline.update(schema)
        self._written.clear()
        self._modified.clear()
        if clear_container:
            self._container = extra
        else:
            self._container.update(extra)

    def __repr__(self) -> str:
        return (
            f"ValueStore(baseline={self._baseline!r}, written={self._written!r}, "
            f"modified={self._modified!r}, container={self._container!r})"
        )

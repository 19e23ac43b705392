"""
Record facade over a ValueStore.

Records are built only by ``RecordManager.fresh``. Each record type gets a
generated subclass with one property per schema field; names outside the
schema stay reachable through ``get``/``set``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from recordmap.errors import InvalidArgumentError
from recordmap.results import ABSENT
from recordmap.runtime.value_store import ValueStore

if TYPE_CHECKING:
    from recordmap.runtime.manager import RecordManager
    from recordmap.runtime.relation_resolver import RelationshipResolver
    from recordmap.specs.record import RecordSpec


class Record:
    """
    One in-memory record bound to its manager.

    Attributes:
        spec: Record type declaration, shared with the manager
    """

    spec: RecordSpec

    def __init__(self, manager: RecordManager, store: ValueStore):
        self._manager = manager
        self._store = store
        self._resolver: RelationshipResolver | None = None

    @property
    def manager(self) -> RecordManager:
        return self._manager

    # Value access

    def get(self, name: str) -> Any:
        return self._store.get(name)

    def set(self, name: str, value: Any) -> Record:
        self._store.set(name, value)
        return self

    def update_values(self, values: Mapping[str, Any]) -> Record:
        """Set several values at once."""
        if not isinstance(values, Mapping):
            raise InvalidArgumentError(f"Expected a mapping, got {type(values).__name__}")
        for name, value in values.items():
            self._store.set(name, value)
        return self

    def unset(self, name: str) -> Record:
        self._store.unset(name)
        return self

    def snapshot(self) -> dict[str, Any]:
        return self._store.snapshot()

    def dirty(self) -> dict[str, Any]:
        return self._store.dirty()

    @property
    def is_dirty(self) -> bool:
        return self._store.is_dirty

    def extras(self) -> dict[str, Any]:
        return self._store.extras()

    def count(self) -> int:
        return self._store.count()

    def to_dict(self) -> dict[str, Any]:
        return self._store.to_dict()

    def reset(self, data: Mapping[str, Any], clear_container: bool = True) -> Record:
        self._store.reset(data, clear_container=clear_container)
        return self

    def mark_written(self) -> None:
        self._store.mark_written()

    # Relations

    def related(self, name: str) -> Any:
        """
        Resolve a declared relation, fetching on first access.

        Returns:
            A record, a list of records, ``Signal.NOT_FOUND`` when a ``one``
            relation matches nothing, or ``Signal.NO_SUCH_RELATION``.
        """
        if self._resolver is None:
            self._resolver = self._manager.relation_resolver(self)
        return self._resolver.get(name)

    def invalidate_relations(self) -> None:
        """Discard every cached relation so the next access fetches again."""
        self._resolver = None

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._store.get(name) is not ABSENT

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._store.to_dict()!r})"


# =============================================================================
# Per-type Record Classes
# =============================================================================


def _field_property(name: str) -> property:
    def getter(self: Record) -> Any:
        return self._store.get(name)

    def setter(self: Record, value: Any) -> None:
        self._store.set(name, value)

    def deleter(self: Record) -> None:
        self._store.unset(name)

    return property(getter, setter, deleter, doc=f"Value of field '{name}'.")


def generate_record_class(spec: RecordSpec, base: type[Record] = Record) -> type[Record]:
    """
    Build a Record subclass exposing each schema field as a property.

    Fields whose names collide with existing Record attributes are skipped;
    they remain available via ``get``/``set``.

    Args:
        spec: Record type declaration
        base: Record base class to extend

    Returns:
        New Record subclass named after the record type
    """
    namespace: dict[str, Any] = {"spec": spec}
    for name in spec.field_names:
        if name.startswith("_") or name in namespace or hasattr(base, name):
            continue
        namespace[name] = _field_property(name)
    return type(spec.name, (base,), namespace)

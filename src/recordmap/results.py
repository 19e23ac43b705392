"""
Result values returned instead of raised.

``ABSENT`` marks a field with no value at all (distinct from ``None``).
``Signal`` members report outcomes the caller is expected to check: a
lookup that found nothing or a write with nothing to do. Both are falsy,
so ``if not result:`` works for every non-success path.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class _Absent:
    """Singleton type of ``ABSENT``."""

    _instance: _Absent | None = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"

    def __copy__(self) -> _Absent:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _Absent:
        return self

    def __reduce__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


class Signal(Enum):
    """Non-exceptional outcomes of manager and resolver operations."""

    NOT_FOUND = "not_found"
    NOTHING_TO_PERSIST = "nothing_to_persist"
    NO_EFFECT = "no_effect"
    NO_SUCH_RELATION = "no_such_relation"

    def __bool__(self) -> bool:
        return False


def is_absent(value: Any) -> bool:
    """True when ``value`` is the ``ABSENT`` sentinel."""
    return value is ABSENT

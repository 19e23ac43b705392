"""
Condition tree translation.

Turns a declarative condition tree into a SelectQuery against one table plus
its positional parameters. Clauses are applied depth-first in declaration
order, so parameter order always follows the tree.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from recordmap.errors import InvalidArgumentError
from recordmap.results import ABSENT
from recordmap.runtime.query_builder import SelectQuery
from recordmap.specs.relation import ConditionClause, FieldRef, Join, parse_conditions

if TYPE_CHECKING:
    from recordmap.runtime.record import Record
    from recordmap.runtime.storage import StorageBackend

__all__ = ["ConditionTranslator", "parse_conditions", "resolve_value"]


def resolve_value(clause: ConditionClause, owner: Record | None) -> Any:
    """
    Bound value of a clause, with deferred references read from ``owner``.

    An owner field that has no value binds as NULL.

    Raises:
        InvalidArgumentError: If the clause defers to an owner and none is given
    """
    value = clause.value
    if not isinstance(value, FieldRef):
        return value
    if owner is None:
        raise InvalidArgumentError(
            f"Condition '{clause.expression}' references '{value}' but no owning record was given"
        )
    resolved = owner.get(value.field)
    return None if resolved is ABSENT else resolved


class ConditionTranslator:
    """
    Translates condition trees into queries for one table.

    Example:
        translator = ConditionTranslator(storage, "post")
        query, params = translator.translate(
            [{"expression": "t.user_id", "value": "entity.id"},
             {"expression": "t.deleted_at IS NULL"}],
            owner=user,
        )
        # WHERE (t.user_id = ?) AND (t.deleted_at IS NULL), params [user.get("id")]
    """

    def __init__(self, storage: StorageBackend, table: str):
        self.storage = storage
        self.table = table

    def translate(self, tree: Any, owner: Record | None = None) -> tuple[SelectQuery, list[Any]]:
        """
        Build a query from a condition tree.

        Args:
            tree: Clause, mapping, or (nested) list of them
            owner: Record supplying values for deferred references

        Returns:
            Tuple of (query, parameters)

        Raises:
            MalformedDeclarationError: If the tree is structurally invalid
            InvalidArgumentError: If a deferred reference has no owner
        """
        query = self.storage.build_query(self.table)
        params: list[Any] = []
        for clause in parse_conditions(tree):
            expression = clause.render()
            bound: tuple[Any, ...] = ()
            if clause.has_value:
                bound = (resolve_value(clause, owner),)
                params.extend(bound)
            if clause.join is Join.OR:
                query.or_where(expression, *bound)
            else:
                query.and_where(expression, *bound)
        return query, params

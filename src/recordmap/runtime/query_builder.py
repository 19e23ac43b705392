"""
Select query builder.

Storage backends hand out a SelectQuery from ``build_query(table)``. The
condition translator appends predicates to it and the manager executes the
resulting ``(sql, params)`` pair. Parameters are tracked alongside the
predicates that bind them, so their order always matches the placeholders.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from recordmap.specs.relation import Join

# Valid SQL identifier pattern (alphanumeric and underscore, not starting with digit)
_VALID_IDENTIFIER_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

DEFAULT_ALIAS = "t"


def validate_sql_identifier(name: str, context: str = "identifier") -> str:
    """
    Validate that a string is a safe SQL identifier.

    Args:
        name: The identifier to validate
        context: Description of what's being validated (for error messages)

    Returns:
        The validated name

    Raises:
        ValueError: If the name contains invalid characters
    """
    if not name:
        raise ValueError(f"SQL {context} cannot be empty")
    if not _VALID_IDENTIFIER_PATTERN.match(name):
        raise ValueError(
            f"Invalid SQL {context} '{name}': must contain only letters, digits, "
            "and underscores, and cannot start with a digit"
        )
    return name


def quote_identifier(name: str) -> str:
    """Validate and double-quote an identifier."""
    return f'"{validate_sql_identifier(name)}"'


# =============================================================================
# Predicates
# =============================================================================


@dataclass
class _Composite:
    """Predicate parts joined by one connective."""

    join: Join
    parts: list[_Composite | str]

    def render(self) -> str:
        rendered = [p.render() if isinstance(p, _Composite) else p for p in self.parts]
        if len(rendered) == 1:
            return rendered[0]
        return "(" + f") {self.join.value} (".join(rendered) + ")"


@dataclass
class SortField:
    """A single sort field."""

    field: str
    descending: bool = False

    @classmethod
    def parse(cls, sort_str: str) -> SortField:
        """
        Parse a sort string into a SortField.

        Examples:
            - "created_at" -> SortField(field="created_at", descending=False)
            - "-created_at" -> SortField(field="created_at", descending=True)
        """
        descending = sort_str.startswith("-")
        if descending:
            sort_str = sort_str[1:]
        validate_sql_identifier(sort_str, "sort field")
        return cls(field=sort_str, descending=descending)

    def to_sql(self, table_alias: str | None = None) -> str:
        """Convert to SQL ORDER BY fragment."""
        field_ref = f"{table_alias}.{self.field}" if table_alias else self.field
        direction = "DESC" if self.descending else "ASC"
        return f"{field_ref} {direction}"


# =============================================================================
# Select Query
# =============================================================================


@dataclass
class SelectQuery:
    """
    Builds one SELECT statement against a single aliased table.

    Example:
        query = SelectQuery(table="post")
        query.where("t.user_id = ?", 7).or_where("t.pinned = 1")
        sql, params = query.build()
        # SELECT t.* FROM "post" t WHERE (t.user_id = ?) OR (t.pinned = 1), [7]
    """

    table: str
    alias: str = DEFAULT_ALIAS
    select_fields: list[str] = field(default_factory=list)
    sorts: list[SortField] = field(default_factory=list)
    limit: int | None = None
    offset: int = 0
    _predicate: _Composite | None = field(default=None, init=False, repr=False)
    _params: list[Any] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        """Validate table name and alias on initialization."""
        validate_sql_identifier(self.table, "table name")
        validate_sql_identifier(self.alias, "table alias")

    def select(self, *fields: str) -> SelectQuery:
        """Replace the selected columns."""
        self.select_fields = list(fields)
        return self

    def where(self, expression: str, *params: Any) -> SelectQuery:
        """Replace the whole predicate with ``expression``."""
        self._predicate = _Composite(Join.AND, [expression])
        self._params = list(params)
        return self

    def and_where(self, expression: str, *params: Any) -> SelectQuery:
        return self._add(Join.AND, expression, params)

    def or_where(self, expression: str, *params: Any) -> SelectQuery:
        return self._add(Join.OR, expression, params)

    def _add(self, join: Join, expression: str, params: tuple[Any, ...]) -> SelectQuery:
        if self._predicate is None:
            return self.where(expression, *params)
        if self._predicate.join == join or len(self._predicate.parts) == 1:
            self._predicate.join = join
            self._predicate.parts.append(expression)
        else:
            self._predicate = _Composite(join, [self._predicate, expression])
        self._params.extend(params)
        return self

    def add_sort(self, sort_str: str) -> SelectQuery:
        """Add a sort field, ``-name`` for descending."""
        self.sorts.append(SortField.parse(sort_str))
        return self

    def set_limit(self, limit: int | None, offset: int = 0) -> SelectQuery:
        self.limit = limit
        self.offset = max(0, offset)
        return self

    @property
    def parameters(self) -> list[Any]:
        """Bound parameters in placeholder order (WHERE only)."""
        return list(self._params)

    def where_sql(self) -> str:
        return self._predicate.render() if self._predicate else ""

    def build(self) -> tuple[str, list[Any]]:
        """
        Build the complete SELECT statement.

        Returns:
            Tuple of (sql, parameters)
        """
        params = list(self._params)
        columns = self.select_fields or [f"{self.alias}.*"]
        parts = [
            f"SELECT {', '.join(columns)} "
            f"FROM {quote_identifier(self.table)} {self.alias}"
        ]
        if self._predicate:
            parts.append(f"WHERE {self._predicate.render()}")
        if self.sorts:
            parts.append("ORDER BY " + ", ".join(s.to_sql(self.alias) for s in self.sorts))
        if self.limit is not None:
            parts.append("LIMIT ? OFFSET ?")
            params.extend([self.limit, self.offset])
        return " ".join(parts), params

    def __str__(self) -> str:
        return self.build()[0]

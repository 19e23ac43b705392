"""
Relationship declarations.

Defines the condition clauses that make up a condition tree and the
relation specs that tie a record type to a target manager.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import Enum, StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from recordmap.errors import MalformedDeclarationError
from recordmap.results import ABSENT

PLACEHOLDER = "?"
FIELD_REF_PREFIX = "entity."

# Alternate declaration keys accepted alongside the canonical ones
_KEY_ALIASES = {
    "condition": "expression",
    "boundValue": "value",
    "bound_value": "value",
    "type": "join",
}


def _reject_unknown_keys(kind: str, data: Mapping[str, Any], allowed: set[str]) -> None:
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise MalformedDeclarationError(
            f"Unknown {kind} keys {unknown}, expected {sorted(allowed)}",
            detail={kind: dict(data)},
        )


# =============================================================================
# Enums
# =============================================================================


class Cardinality(StrEnum):
    """How many target records a relation yields."""

    ONE = "one"
    MANY = "many"


class Join(str, Enum):
    """How a clause combines with the predicate accumulated so far."""

    AND = "AND"
    OR = "OR"


# =============================================================================
# Deferred References
# =============================================================================


class FieldRef(BaseModel):
    """
    Reference to a field of the owning record.

    Resolved when a relation is fetched, so one declaration serves every
    owning record. ``"entity.user_id"`` in a clause value is shorthand for
    ``FieldRef("user_id")``.
    """

    field: str = Field(description="Field name on the owning record")

    model_config = ConfigDict(frozen=True)

    def __init__(self, field: str | None = None, /, **data: Any):
        if field is not None:
            data["field"] = field
        super().__init__(**data)

    @field_validator("field")
    @classmethod
    def validate_field(cls, v: str) -> str:
        if not v or not v.isidentifier():
            raise MalformedDeclarationError(f"Field reference '{v}' is not a valid field name")
        return v

    @classmethod
    def parse(cls, value: Any) -> Any:
        """Turn ``"entity.x"`` into ``FieldRef("x")``; other values pass through."""
        if isinstance(value, str) and value.startswith(FIELD_REF_PREFIX):
            return cls(value[len(FIELD_REF_PREFIX) :])
        return value

    def __str__(self) -> str:
        return f"{FIELD_REF_PREFIX}{self.field}"


# =============================================================================
# Condition Clauses
# =============================================================================


class ConditionClause(BaseModel):
    """
    One predicate of a condition tree.

    Attributes:
        expression: SQL predicate, with at most one ``?`` placeholder. With no
            placeholder and a value, ``= ?`` is implied.
        value: Bound parameter, a ``FieldRef``, or ``ABSENT`` for a pure
            expression such as ``t.deleted_at IS NULL``.
        join: Whether the clause is AND-ed or OR-ed onto the predicate.
    """

    expression: str = Field(description="SQL predicate expression")
    value: Any = Field(default=ABSENT, description="Bound value or deferred field reference")
    join: Join = Field(default=Join.AND, description="Conjunction with previous clauses")

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="before")
    @classmethod
    def normalize_keys(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        normalized: dict[str, Any] = {}
        for key, value in data.items():
            canonical = _KEY_ALIASES.get(key, key)
            if canonical in normalized:
                raise MalformedDeclarationError(
                    f"Condition clause sets '{canonical}' more than once",
                    detail={"clause": dict(data)},
                )
            normalized[canonical] = value
        _reject_unknown_keys("clause", normalized, set(cls.model_fields))
        expression = normalized.get("expression")
        if not isinstance(expression, str) or not expression.strip():
            raise MalformedDeclarationError(
                "Condition clause requires a non-empty 'expression'",
                detail={"clause": dict(data)},
            )
        join = normalized.get("join", Join.AND)
        if isinstance(join, str) and not isinstance(join, Join):
            try:
                normalized["join"] = Join(join.upper())
            except ValueError:
                raise MalformedDeclarationError(
                    f"Unknown join '{join}', expected AND or OR"
                ) from None
        return normalized

    @field_validator("value")
    @classmethod
    def parse_field_ref(cls, v: Any) -> Any:
        return FieldRef.parse(v)

    @model_validator(mode="after")
    def check_placeholders(self) -> ConditionClause:
        count = self.expression.count(PLACEHOLDER)
        if count > 1:
            raise MalformedDeclarationError(
                f"Condition '{self.expression}' has {count} placeholders, at most one is allowed"
            )
        if count == 1 and not self.has_value:
            raise MalformedDeclarationError(
                f"Condition '{self.expression}' has a placeholder but no value"
            )
        return self

    @property
    def has_value(self) -> bool:
        return self.value is not ABSENT

    @property
    def is_deferred(self) -> bool:
        return isinstance(self.value, FieldRef)

    def render(self) -> str:
        """Expression with the implied ``= ?`` appended when needed."""
        if self.has_value and PLACEHOLDER not in self.expression:
            return f"{self.expression} = {PLACEHOLDER}"
        return self.expression


def parse_conditions(tree: Any) -> tuple[ConditionClause, ...]:
    """
    Flatten a condition tree into clauses, depth-first in declaration order.

    A node is a ``ConditionClause``, a mapping describing one, or a list of
    nodes. A mapping holding only a ``where`` key wraps a tree.

    Raises:
        MalformedDeclarationError: If any node is structurally invalid
    """
    clauses: list[ConditionClause] = []
    _collect(tree, clauses)
    return tuple(clauses)


def _collect(node: Any, out: list[ConditionClause]) -> None:
    if isinstance(node, ConditionClause):
        out.append(node)
    elif isinstance(node, Mapping):
        if set(node) == {"where"}:
            _collect(node["where"], out)
        else:
            out.append(ConditionClause.model_validate(dict(node)))
    elif isinstance(node, Sequence) and not isinstance(node, (str, bytes)):
        for child in node:
            _collect(child, out)
    else:
        raise MalformedDeclarationError(
            f"Condition node must be a clause, mapping or list, got {type(node).__name__}"
        )


# =============================================================================
# Relations
# =============================================================================


class RelationSpec(BaseModel):
    """
    Declaration of a named relation from one record type to another.

    Attributes:
        target: Registry name of the target manager
        cardinality: ``one`` fetches a single record, ``many`` a list
        conditions: Flattened condition tree evaluated against the target table
    """

    target: str = Field(description="Registry name of the target manager")
    cardinality: Cardinality = Field(default=Cardinality.ONE, description="one or many")
    conditions: tuple[ConditionClause, ...] = Field(
        default=(), description="Condition clauses, in evaluation order"
    )

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="before")
    @classmethod
    def flatten_conditions(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        _reject_unknown_keys("relation", data, set(cls.model_fields))
        data = dict(data)
        if "conditions" in data:
            data["conditions"] = parse_conditions(data["conditions"])
        return data

    @field_validator("target")
    @classmethod
    def validate_target(cls, v: str) -> str:
        if not v.strip():
            raise MalformedDeclarationError("Relation target must not be empty")
        return v

    @property
    def field_refs(self) -> tuple[FieldRef, ...]:
        """Owning-record fields this relation reads at fetch time."""
        return tuple(c.value for c in self.conditions if c.is_deferred)

"""
Record type declarations.

A RecordSpec is the static description of one record type: its table,
primary key, field schema and relations. Specs are frozen and shared by
every record and manager of that type.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from recordmap.errors import MalformedDeclarationError
from recordmap.specs.relation import RelationSpec

IDENTIFIER_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def to_table_name(name: str) -> str:
    """Derive a table name from a record type name: ``BlogPost`` -> ``blog_post``."""
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", name).lower()


# =============================================================================
# Fields
# =============================================================================


class ScalarType(str, Enum):
    """Storage types a field can declare."""

    ANY = "any"
    STR = "str"
    INT = "int"
    FLOAT = "float"
    DECIMAL = "decimal"
    BOOL = "bool"
    DATE = "date"
    DATETIME = "datetime"
    UUID = "uuid"
    JSON = "json"


class FieldSpec(BaseModel):
    """
    Field specification for a record type.

    The type drives storage conversion and table creation only. Values are
    never checked against it when set.

    Attributes:
        name: Field identifier
        type: Declared scalar type
        required: Whether the column is NOT NULL
        default: Column default
    """

    name: str = Field(description="Field name")
    type: ScalarType = Field(default=ScalarType.ANY, description="Declared scalar type")
    required: bool = Field(default=False, description="Is this field required?")
    default: Any | None = Field(default=None, description="Column default")

    model_config = ConfigDict(frozen=True)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Ensure field name is a valid identifier."""
        if not IDENTIFIER_PATTERN.match(v):
            raise MalformedDeclarationError(f"Field name '{v}' must be a valid identifier")
        return v


def _to_field(name: str | None, value: Any) -> FieldSpec:
    if isinstance(value, FieldSpec):
        return value
    if isinstance(value, str) and name is None:
        return FieldSpec(name=value)
    if isinstance(value, (str, ScalarType)):
        try:
            scalar = ScalarType(value)
        except ValueError:
            raise MalformedDeclarationError(f"Unknown type {value!r} for field '{name}'") from None
        return FieldSpec(name=name, type=scalar)
    if isinstance(value, Mapping):
        return FieldSpec(**({"name": name, **value} if name else dict(value)))
    if value is None and name is not None:
        return FieldSpec(name=name)
    raise MalformedDeclarationError(f"Cannot build a field from {value!r}")


# =============================================================================
# Record Spec
# =============================================================================


class RecordSpec(BaseModel):
    """
    Static description of a record type.

    ``fields`` accepts FieldSpecs, bare names, or a mapping of name to type.
    If the primary key is not declared it is added as an integer field.

    Example:
        RecordSpec(
            name="Post",
            fields={"id": "int", "user_id": "int", "title": "str"},
            relations={"author": {"target": "User", "conditions": [
                {"expression": "t.id", "value": "entity.user_id"}]}},
        )
    """

    name: str = Field(description="Record type name, also its registry name")
    table: str = Field(description="Backing table")
    primary_key: str = Field(default="id", description="Primary key field")
    fields: tuple[FieldSpec, ...] = Field(default=(), description="Field schema, in order")
    relations: dict[str, RelationSpec] = Field(default_factory=dict, description="Named relations")

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def normalize(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        name = data.get("name")
        if not isinstance(name, str) or not IDENTIFIER_PATTERN.match(name):
            raise MalformedDeclarationError(f"Record name {name!r} must be a valid identifier")
        data.setdefault("table", to_table_name(name))

        raw = data.get("fields", ())
        if isinstance(raw, Mapping):
            fields = [_to_field(k, v) for k, v in raw.items()]
        else:
            fields = [_to_field(None, v) for v in raw]

        primary_key = data.get("primary_key", "id")
        if primary_key not in {f.name for f in fields}:
            fields.insert(0, FieldSpec(name=primary_key, type=ScalarType.INT))
        data["fields"] = tuple(fields)
        return data

    @field_validator("table")
    @classmethod
    def validate_table(cls, v: str) -> str:
        if not IDENTIFIER_PATTERN.match(v):
            raise MalformedDeclarationError(f"Table name '{v}' must be a valid identifier")
        return v

    @model_validator(mode="after")
    def check_names(self) -> RecordSpec:
        seen: set[str] = set()
        for field in self.fields:
            if field.name in seen:
                raise MalformedDeclarationError(
                    f"Field '{field.name}' declared twice on {self.name}"
                )
            seen.add(field.name)
        clashes = seen.intersection(self.relations)
        if clashes:
            raise MalformedDeclarationError(
                f"Relations {sorted(clashes)} on {self.name} collide with field names"
            )
        return self

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    def get_field(self, name: str) -> FieldSpec | None:
        for field in self.fields:
            if field.name == name:
                return field
        return None

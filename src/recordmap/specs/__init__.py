"""
Declarations for recordmap.

Frozen pydantic models describing record types, their fields and the
relations between them.
"""

from recordmap.specs.record import (
    FieldSpec,
    RecordSpec,
    ScalarType,
    to_table_name,
)
from recordmap.specs.relation import (
    Cardinality,
    ConditionClause,
    FieldRef,
    Join,
    RelationSpec,
    parse_conditions,
)

__all__ = [
    # Records
    "FieldSpec",
    "RecordSpec",
    "ScalarType",
    "to_table_name",
    # Relations
    "Cardinality",
    "ConditionClause",
    "FieldRef",
    "Join",
    "RelationSpec",
    "parse_conditions",
]

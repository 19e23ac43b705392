"""
Value conversion between Python objects and storage column values.

Driven by the declared ScalarType of each field. Undeclared (``any``)
fields and extras pass through untouched on read.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from recordmap.specs.record import ScalarType

# =============================================================================
# Type Mapping
# =============================================================================

SQLITE_COLUMN_TYPES: dict[ScalarType, str] = {
    ScalarType.ANY: "",
    ScalarType.STR: "TEXT",
    ScalarType.INT: "INTEGER",
    ScalarType.FLOAT: "REAL",
    ScalarType.DECIMAL: "REAL",
    ScalarType.BOOL: "INTEGER",  # 0/1
    ScalarType.DATE: "TEXT",  # ISO format
    ScalarType.DATETIME: "TEXT",  # ISO format
    ScalarType.UUID: "TEXT",
    ScalarType.JSON: "TEXT",
}


def column_type(scalar_type: ScalarType) -> str:
    """Map a scalar type to a SQLite column type (empty for untyped)."""
    return SQLITE_COLUMN_TYPES.get(scalar_type, "TEXT")


# =============================================================================
# Conversion
# =============================================================================


def to_storage(value: Any, scalar_type: ScalarType | None = None) -> Any:
    """Convert a Python value to a storage-compatible value."""
    if value is None:
        return None
    elif isinstance(value, UUID):
        return str(value)
    elif isinstance(value, (datetime, date)):
        return value.isoformat()
    elif isinstance(value, Decimal):
        return float(value)
    elif isinstance(value, bool):
        return 1 if value else 0
    elif isinstance(value, (dict, list)):
        return json.dumps(value)
    elif scalar_type == ScalarType.JSON and not isinstance(value, str):
        return json.dumps(value)
    else:
        return value


def from_storage(value: Any, scalar_type: ScalarType | None = None) -> Any:
    """Convert a stored value back to the Python type of its field."""
    if value is None or scalar_type is None:
        return value

    if scalar_type == ScalarType.UUID:
        return UUID(value) if value else None
    elif scalar_type == ScalarType.DATETIME:
        return datetime.fromisoformat(value) if value else None
    elif scalar_type == ScalarType.DATE:
        return date.fromisoformat(value) if value else None
    elif scalar_type == ScalarType.DECIMAL:
        return Decimal(str(value))
    elif scalar_type == ScalarType.BOOL:
        return bool(value)
    elif scalar_type == ScalarType.JSON:
        return json.loads(value) if isinstance(value, (str, bytes)) and value else value
    else:
        return value

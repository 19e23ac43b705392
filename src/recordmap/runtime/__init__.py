"""
Runtime for recordmap.

Value storage, records, storage backends, condition translation, record
managers, relationship resolution and the manager registry.
"""

from recordmap.runtime.condition_translator import ConditionTranslator, resolve_value
from recordmap.runtime.manager import RecordManager
from recordmap.runtime.query_builder import (
    SelectQuery,
    SortField,
    quote_identifier,
    validate_sql_identifier,
)
from recordmap.runtime.record import Record, generate_record_class
from recordmap.runtime.registry import ManagerFactory, ManagerRegistry
from recordmap.runtime.relation_resolver import RelationshipResolver
from recordmap.runtime.storage import SQLiteStorage, StorageBackend
from recordmap.runtime.value_store import ValueStore

__all__ = [
    # Values
    "ValueStore",
    "Record",
    "generate_record_class",
    # Queries
    "SelectQuery",
    "SortField",
    "quote_identifier",
    "validate_sql_identifier",
    "ConditionTranslator",
    "resolve_value",
    # Storage
    "StorageBackend",
    "SQLiteStorage",
    # Managers
    "RecordManager",
    "ManagerFactory",
    "ManagerRegistry",
    "RelationshipResolver",
]

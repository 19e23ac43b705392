"""
recordmap - record mapping with dirty tracking and declarative relationships.

Records keep their last persisted values apart from pending changes and
unmodeled extras. Managers turn the pending changes into minimal writes and
resolve declared relations lazily, one owning record at a time.
"""

from recordmap.config import RecordMapConfig, get_config
from recordmap.errors import (
    InvalidArgumentError,
    MalformedDeclarationError,
    ManagerNotRegisteredError,
    RecordMapError,
)
from recordmap.results import ABSENT, Signal
from recordmap.runtime import (
    ConditionTranslator,
    ManagerRegistry,
    Record,
    RecordManager,
    RelationshipResolver,
    SelectQuery,
    SQLiteStorage,
    StorageBackend,
    ValueStore,
)
from recordmap.specs import (
    Cardinality,
    ConditionClause,
    FieldRef,
    FieldSpec,
    Join,
    RecordSpec,
    RelationSpec,
    ScalarType,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Config
    "RecordMapConfig",
    "get_config",
    # Errors and results
    "RecordMapError",
    "InvalidArgumentError",
    "MalformedDeclarationError",
    "ManagerNotRegisteredError",
    "ABSENT",
    "Signal",
    # Declarations
    "Cardinality",
    "ConditionClause",
    "FieldRef",
    "FieldSpec",
    "Join",
    "RecordSpec",
    "RelationSpec",
    "ScalarType",
    # Runtime
    "ConditionTranslator",
    "ManagerRegistry",
    "Record",
    "RecordManager",
    "RelationshipResolver",
    "SelectQuery",
    "SQLiteStorage",
    "StorageBackend",
    "ValueStore",
]

"""Core components for DynaRecord."""

from dynarecord.core.config import Settings
from dynarecord.core.connection import DatabaseConnection
from dynarecord.core.types import (
    BackendType,
    EntityInfo,
    FieldInfo,
    FieldSpec,
    FieldType,
    SchemaContext,
    StoredRecord,
)

__all__ = [
    "DatabaseConnection",
    "Settings",
    "BackendType",
    "FieldType",
    "FieldSpec",
    "FieldInfo",
    "EntityInfo",
    "SchemaContext",
    "StoredRecord",
]

"""Schema metadata for DynaRecord."""

from dynarecord.schema.models import AuditLog, EntityDefinition, FieldDefinition, RecordRow
from dynarecord.schema.reader import MetadataReader
from dynarecord.schema.store import SchemaStore

__all__ = [
    "SchemaStore",
    "MetadataReader",
    "EntityDefinition",
    "FieldDefinition",
    "AuditLog",
    "RecordRow",
]

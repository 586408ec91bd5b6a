"""DynaRecord - Metadata-Driven Dynamic Record Store.

Entities ("tables") and their typed fields are rows of metadata, created and
changed at runtime without migrations. Records are validated against that
metadata and stored in a relational (SQL) or document (MongoDB) backend,
chosen per entity by static routing configuration.

Example:
    from dynarecord import DynaRecord

    db = DynaRecord("sqlite:///./dynarecord.db")

    db.create_entity(
        "Customer",
        fields=[
            {"name": "fullName", "type": "string", "required": True},
            {"name": "email", "type": "string", "pattern": r"[^@]+@[^@]+"},
            {
                "name": "status",
                "type": "enum",
                "options": [{"value": "active"}, {"value": "inactive"}],
            },
        ],
        if_not_exists=True,
    )

    record = db.create_record("Customer", {"FullName": "Ada", "status": "active"})
    page = db.list_records("Customer", page=1, page_size=10)
"""

from dynarecord.core.config import Settings
from dynarecord.core.engine import DynaRecord
from dynarecord.core.types import (
    AuditEntry,
    BackendType,
    EntityInfo,
    EntitySpec,
    FieldInfo,
    FieldOption,
    FieldSpec,
    FieldType,
    FieldViolation,
    PaginatedRecords,
    SchemaContext,
    StoredRecord,
    ViolationCode,
)
from dynarecord.exceptions import (
    ConfigurationWarning,
    DynaRecordError,
    EntityAlreadyExistsError,
    EntityNotFoundError,
    FieldAlreadyExistsError,
    FieldNotFoundError,
    InvalidFieldSpecError,
    InvalidFieldTypeError,
    RecordNotFoundError,
    RoutingConfigurationError,
    SchemaNotFoundError,
    StorageError,
    ValidationError,
    http_status_for,
)

__version__ = "0.1.0"

__all__ = [
    # Main classes
    "DynaRecord",
    "Settings",
    # Types
    "AuditEntry",
    "BackendType",
    "EntityInfo",
    "EntitySpec",
    "FieldInfo",
    "FieldOption",
    "FieldSpec",
    "FieldType",
    "FieldViolation",
    "PaginatedRecords",
    "SchemaContext",
    "StoredRecord",
    "ViolationCode",
    # Exceptions
    "ConfigurationWarning",
    "DynaRecordError",
    "EntityAlreadyExistsError",
    "EntityNotFoundError",
    "FieldAlreadyExistsError",
    "FieldNotFoundError",
    "InvalidFieldSpecError",
    "InvalidFieldTypeError",
    "RecordNotFoundError",
    "RoutingConfigurationError",
    "SchemaNotFoundError",
    "StorageError",
    "ValidationError",
    "http_status_for",
    # Version
    "__version__",
]

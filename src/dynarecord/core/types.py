"""Core types and specifications for DynaRecord.

All types are pydantic models so they serialize cleanly at the transport
boundary. Descriptors handed out by the metadata reader are frozen.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class FieldType(StrEnum):
    """Supported field types."""

    STRING = "string"
    INTEGER = "integer"
    DECIMAL = "decimal"
    DATETIME = "datetime"
    BOOLEAN = "boolean"
    ENUM = "enum"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid field type values."""
        return [t.value for t in cls]


class BackendType(StrEnum):
    """Physical storage backends a record can live in."""

    RELATIONAL = "relational"  # SQL table, data serialized to a JSON text column
    DOCUMENT = "document"  # MongoDB collection, data stored as a nested document

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid backend values."""
        return [b.value for b in cls]

    @classmethod
    def parse(cls, name: str) -> BackendType:
        """Resolve a backend name, accepting common driver aliases.

        Raises:
            ValueError: If the name is neither a backend nor a known alias
        """
        key = name.strip().lower()
        return cls(_BACKEND_ALIASES.get(key, key))


_BACKEND_ALIASES = {
    "sql": "relational",
    "sqlite": "relational",
    "mysql": "relational",
    "postgres": "relational",
    "postgresql": "relational",
    "mongo": "document",
    "mongodb": "document",
}


class ViolationCode(StrEnum):
    """Kinds of field constraint violations."""

    REQUIRED_FIELD_MISSING = "required_field_missing"
    DUPLICATE_FIELD_KEY = "duplicate_field_key"
    NOT_A_STRING = "not_a_string"
    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"
    PATTERN_MISMATCH = "pattern_mismatch"
    NOT_AN_INTEGER = "not_an_integer"
    NOT_A_DECIMAL = "not_a_decimal"
    NOT_A_BOOLEAN = "not_a_boolean"
    NOT_A_DATETIME = "not_a_datetime"
    INVALID_ENUM_VALUE = "invalid_enum_value"


class FieldViolation(BaseModel):
    """A single constraint violation reported by the validation engine."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    field_name: str
    code: ViolationCode
    message: str


# === Schema administration input ===


class FieldOption(BaseModel):
    """One allowed value of an enum field."""

    value: Any
    label: str | None = None


class FieldSpec(BaseModel):
    """Specification for a field definition.

    This is the input format for creating fields; callers pass it as a dict.
    """

    name: str = Field(..., min_length=1, max_length=255, description="Field name")
    type: str = Field(default=FieldType.STRING.value, description="Field data type")
    display_name: str | None = Field(default=None, description="Label shown in UIs")
    required: bool = Field(default=False, description="Whether field is required")
    unique: bool = Field(default=False, description="Whether field values should be unique")
    max_length: int | None = Field(default=None, ge=0)
    min_length: int | None = Field(default=None, ge=0)
    pattern: str | None = Field(default=None, description="Regex, string fields only")
    default: Any = Field(default=None, description="Default value applied on create")
    options: list[FieldOption] | None = Field(default=None, description="Enum fields only")
    display_order: int | None = Field(
        default=None, description="Validation and display order; defaults to after the last field"
    )


class EntitySpec(BaseModel):
    """Specification for creating an entity."""

    name: str = Field(..., min_length=1, max_length=255)
    display_name: str | None = None
    storage_target: str | None = None
    description: str | None = None
    fields: list[FieldSpec] = Field(default_factory=list)


# === Schema descriptors (output) ===


class FieldInfo(BaseModel):
    """Immutable snapshot of an active field definition."""

    model_config = ConfigDict(frozen=True)

    id: str
    entity_id: str
    name: str
    display_name: str
    type: str
    required: bool = False
    unique: bool = False
    max_length: int | None = None
    min_length: int | None = None
    pattern: str | None = None
    default_value: str | None = None  # JSON text
    options: str | None = None  # JSON text: [{"value": ..., "label": ...}, ...]
    display_order: int = 0
    created_at: datetime | None = None


class EntityInfo(BaseModel):
    """Immutable snapshot of an entity definition."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    display_name: str
    storage_target: str
    description: str | None = None
    fields: tuple[FieldInfo, ...] = ()
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SchemaContext(BaseModel):
    """Resolved entity plus its ordered, active fields for one operation."""

    model_config = ConfigDict(frozen=True)

    entity: EntityInfo
    fields: tuple[FieldInfo, ...]

    @property
    def entity_name(self) -> str:
        return self.entity.name

    def field_for_key(self, key: str) -> FieldInfo | None:
        """Find the field a payload key refers to, ignoring case."""
        lowered = key.lower()
        for field in self.fields:
            if field.name.lower() == lowered:
                return field
        return None


# === Records ===


class StoredRecord(BaseModel):
    """Uniform record shape returned by every storage adapter."""

    id: str
    entity_id: str
    data: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime
    is_deleted: bool = False


class PaginatedRecords(BaseModel):
    """One page of records, newest first."""

    records: list[StoredRecord]
    total: int
    page: int
    page_size: int
    total_pages: int


class AuditEntry(BaseModel):
    """A schema administration audit log entry."""

    id: str
    timestamp: datetime
    operation: str
    entity_name: str
    field_name: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    created_by: str | None = None
    reason: str | None = None

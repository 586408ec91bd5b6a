"""SQLAlchemy ORM models for DynaRecord meta-tables and the relational record store.

Entity and field definitions are stored as rows, so defining a new record
shape is a metadata insert rather than DDL. Uniqueness of entity names and
of field names per entity only applies to live rows, which is why those
columns carry plain indexes and the checks live in the schema store.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def generate_uuid() -> str:
    """Generate a new UUID as string."""
    return str(uuid4())


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive timestamps read back from SQLite or MongoDB."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _isoformat(value: datetime | None) -> str | None:
    normalized = as_utc(value)
    return normalized.isoformat() if normalized else None


class Base(DeclarativeBase):
    """Base class for all DynaRecord models."""

    pass


class EntityDefinition(Base):
    """Stores entity definitions (like Customer, Product, Order)."""

    __tablename__ = "dr_entity_definitions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    entity_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_target: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    fields: Mapped[list[FieldDefinition]] = relationship(
        "FieldDefinition", back_populates="entity", cascade="all, delete-orphan"
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "entity_name": self.entity_name,
            "display_name": self.display_name,
            "storage_target": self.storage_target,
            "description": self.description,
            "is_deleted": self.is_deleted,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
            "created_by": self.created_by,
        }


class FieldDefinition(Base):
    """Stores field definitions for entities."""

    __tablename__ = "dr_field_definitions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    entity_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("dr_entity_definitions.id", ondelete="CASCADE"), nullable=False
    )
    field_name: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    field_type: Mapped[str] = mapped_column(String(50), nullable=False)
    is_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_unique: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    max_length: Mapped[int | None] = mapped_column(Integer, nullable=True)
    min_length: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pattern: Mapped[str | None] = mapped_column(Text, nullable=True)
    default_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    options: Mapped[str | None] = mapped_column(Text, nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    entity: Mapped[EntityDefinition] = relationship("EntityDefinition", back_populates="fields")

    __table_args__ = (
        Index("ix_dr_field_entity_name", "entity_id", "field_name"),
        Index("ix_dr_field_is_deleted", "is_deleted"),
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "entity_id": self.entity_id,
            "field_name": self.field_name,
            "display_name": self.display_name,
            "field_type": self.field_type,
            "is_required": self.is_required,
            "is_unique": self.is_unique,
            "max_length": self.max_length,
            "min_length": self.min_length,
            "pattern": self.pattern,
            "default_value": self.default_value,
            "options": self.options,
            "display_order": self.display_order,
            "is_deleted": self.is_deleted,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
            "created_by": self.created_by,
        }


class AuditLog(Base):
    """Audit trail for schema administration changes."""

    __tablename__ = "dr_audit_log"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False, index=True
    )
    operation: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    field_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    old_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    new_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)


class RecordRow(Base):
    """A record stored by the relational adapter.

    All field values live in one JSON text column; the row itself only knows
    which entity it belongs to.
    """

    __tablename__ = "dr_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    entity_id: Mapped[str] = mapped_column(String(36), nullable=False)
    storage_target: Mapped[str] = mapped_column(String(255), nullable=False)
    data: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("ix_dr_records_entity", "entity_id", "is_deleted"),
        Index("ix_dr_records_created_at", "created_at"),
    )

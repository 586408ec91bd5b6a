"""Schema store for managing entity and field definitions.

This is the administrative side of the metadata: the record engine only
ever reads what is written here.
"""

from __future__ import annotations

import json
import logging
import re
from types import EllipsisType
from typing import TYPE_CHECKING, Any

from sqlalchemy.orm import Session

from dynarecord.core.types import (
    AuditEntry,
    EntityInfo,
    FieldInfo,
    FieldOption,
    FieldSpec,
    FieldType,
)
from dynarecord.exceptions import (
    EntityAlreadyExistsError,
    FieldAlreadyExistsError,
    FieldNotFoundError,
    InvalidFieldSpecError,
    InvalidFieldTypeError,
    SchemaNotFoundError,
)
from dynarecord.schema.models import (
    AuditLog,
    Base,
    EntityDefinition,
    FieldDefinition,
    as_utc,
)

if TYPE_CHECKING:
    from dynarecord.core.connection import DatabaseConnection

logger = logging.getLogger(__name__)

_META_TABLES = [EntityDefinition.__table__, FieldDefinition.__table__, AuditLog.__table__]


def to_storage_target(entity_name: str) -> str:
    """Convert an entity name to a storage target (e.g. CustomerOrder -> customer_order)."""
    result = []
    for i, char in enumerate(entity_name):
        if char.isupper() and i > 0 and not entity_name[i - 1].isupper():
            result.append("_")
        result.append(char.lower())
    safe_name = "".join(result).replace(" ", "_").replace("-", "_")
    while "__" in safe_name:
        safe_name = safe_name.replace("__", "_")
    return safe_name


def field_info_from_row(field: FieldDefinition) -> FieldInfo:
    """Snapshot an ORM field row."""
    return FieldInfo(
        id=field.id,
        entity_id=field.entity_id,
        name=field.field_name,
        display_name=field.display_name,
        type=field.field_type,
        required=field.is_required,
        unique=field.is_unique,
        max_length=field.max_length,
        min_length=field.min_length,
        pattern=field.pattern,
        default_value=field.default_value,
        options=field.options,
        display_order=field.display_order,
        created_at=as_utc(field.created_at),
    )


def entity_info_from_row(
    entity: EntityDefinition, fields: list[FieldDefinition] | None = None
) -> EntityInfo:
    """Snapshot an ORM entity row together with its active fields."""
    return EntityInfo(
        id=entity.id,
        name=entity.entity_name,
        display_name=entity.display_name,
        storage_target=entity.storage_target,
        description=entity.description,
        fields=tuple(field_info_from_row(f) for f in fields or []),
        created_at=as_utc(entity.created_at),
        updated_at=as_utc(entity.updated_at),
    )


def _dump_options(options: list[FieldOption] | list[dict[str, Any]] | None) -> str | None:
    if options is None:
        return None
    parsed = [o if isinstance(o, FieldOption) else FieldOption(**o) for o in options]
    return json.dumps([o.model_dump() for o in parsed])


class SchemaStore:
    """Manages schema definitions stored in meta-tables.

    Handles CRUD on EntityDefinition and FieldDefinition rows. Nothing is
    ever hard-deleted; drops flip ``is_deleted`` and leave an audit entry.
    """

    def __init__(self, connection: DatabaseConnection) -> None:
        """Initialize the schema store.

        Args:
            connection: Database connection to use
        """
        self._connection = connection
        self._initialized = False

    def initialize(self) -> None:
        """Create meta-tables if they don't exist."""
        if not self._initialized:
            Base.metadata.create_all(self._connection.engine, tables=_META_TABLES)
            self._initialized = True

    def _get_session(self) -> Session:
        return self._connection.get_session()

    def _live_entity_names(self, session: Session) -> list[str]:
        rows = session.query(EntityDefinition.entity_name).filter_by(is_deleted=False).all()
        return [r[0] for r in rows]

    def _require_entity(self, session: Session, entity_name: str) -> EntityDefinition:
        entity = (
            session.query(EntityDefinition)
            .filter_by(entity_name=entity_name, is_deleted=False)
            .first()
        )
        if not entity:
            raise SchemaNotFoundError(entity_name, self._live_entity_names(session))
        return entity

    def _active_fields(self, session: Session, entity_id: str) -> list[FieldDefinition]:
        return (
            session.query(FieldDefinition)
            .filter_by(entity_id=entity_id, is_deleted=False)
            .order_by(FieldDefinition.display_order, FieldDefinition.created_at)
            .all()
        )

    def _require_field(
        self, session: Session, entity: EntityDefinition, field_name: str
    ) -> FieldDefinition:
        field = (
            session.query(FieldDefinition)
            .filter_by(entity_id=entity.id, field_name=field_name, is_deleted=False)
            .first()
        )
        if not field:
            available = [f.field_name for f in self._active_fields(session, entity.id)]
            raise FieldNotFoundError(field_name, entity.entity_name, available)
        return field

    def _check_field_definition(
        self,
        name: str,
        field_type: str,
        pattern: str | None,
        options: str | None,
        min_length: int | None,
        max_length: int | None,
    ) -> None:
        """Reject definitions the validation engine could not apply meaningfully."""
        try:
            kind = FieldType(field_type)
        except ValueError as e:
            raise InvalidFieldTypeError(field_type) from e

        if pattern is not None:
            if kind != FieldType.STRING:
                raise InvalidFieldSpecError(name, "pattern is only allowed on string fields")
            try:
                re.compile(pattern)
            except re.error as e:
                raise InvalidFieldSpecError(name, f"invalid pattern: {e}") from e

        if options is not None and kind != FieldType.ENUM:
            raise InvalidFieldSpecError(name, "options are only allowed on enum fields")
        if kind == FieldType.ENUM and not (options and json.loads(options)):
            raise InvalidFieldSpecError(name, "enum fields need at least one option")

        if min_length is not None and max_length is not None and min_length > max_length:
            raise InvalidFieldSpecError(name, "min_length is greater than max_length")

    def _log_change(
        self,
        session: Session,
        operation: str,
        entity_name: str,
        field_name: str | None = None,
        old_value: Any = None,
        new_value: Any = None,
        created_by: str | None = None,
        reason: str | None = None,
    ) -> None:
        """Record a schema change in the audit log."""
        entry = AuditLog(
            operation=operation,
            entity_name=entity_name,
            field_name=field_name,
            old_value=json.dumps(old_value, default=str) if old_value is not None else None,
            new_value=json.dumps(new_value, default=str) if new_value is not None else None,
            created_by=created_by,
            reason=reason,
        )
        session.add(entry)

    def _new_field_row(
        self,
        entity: EntityDefinition,
        spec: FieldSpec,
        display_order: int,
        created_by: str | None,
    ) -> FieldDefinition:
        options = _dump_options(spec.options)
        self._check_field_definition(
            spec.name, spec.type, spec.pattern, options, spec.min_length, spec.max_length
        )
        return FieldDefinition(
            entity_id=entity.id,
            field_name=spec.name,
            display_name=spec.display_name or spec.name,
            field_type=spec.type,
            is_required=spec.required,
            is_unique=spec.unique,
            max_length=spec.max_length,
            min_length=spec.min_length,
            pattern=spec.pattern,
            default_value=json.dumps(spec.default) if spec.default is not None else None,
            options=options,
            display_order=display_order,
            created_by=created_by,
        )

    # === Entities ===

    def list_entities(self) -> list[str]:
        """List all live entity names."""
        self.initialize()
        with self._get_session() as session:
            return self._live_entity_names(session)

    def get_entity(self, name: str) -> EntityInfo | None:
        """Get a live entity (with its active fields) by exact name, or None."""
        self.initialize()
        with self._get_session() as session:
            entity = (
                session.query(EntityDefinition)
                .filter_by(entity_name=name, is_deleted=False)
                .first()
            )
            if not entity:
                return None
            return entity_info_from_row(entity, self._active_fields(session, entity.id))

    def entity_exists(self, name: str) -> bool:
        """Check if a live entity exists."""
        return self.get_entity(name) is not None

    def create_entity(
        self,
        name: str,
        fields: list[dict[str, Any] | FieldSpec] | None = None,
        display_name: str | None = None,
        storage_target: str | None = None,
        description: str | None = None,
        created_by: str | None = None,
        if_not_exists: bool = False,
    ) -> EntityInfo:
        """Create a new entity definition.

        Args:
            name: Entity name (case-sensitive lookup key)
            fields: List of field specifications
            display_name: Label for UIs (defaults to name)
            storage_target: Collection/table name (defaults to snake_case name)
            description: Human-readable description
            created_by: Who/what created this entity
            if_not_exists: If True, return existing entity instead of raising error

        Returns:
            The created or existing entity

        Raises:
            EntityAlreadyExistsError: If entity exists and if_not_exists=False
            InvalidFieldTypeError: If a field has an unknown type
            InvalidFieldSpecError: If a field definition is inconsistent
        """
        self.initialize()
        specs = [f if isinstance(f, FieldSpec) else FieldSpec(**f) for f in fields or []]

        with self._get_session() as session:
            existing = (
                session.query(EntityDefinition)
                .filter_by(entity_name=name, is_deleted=False)
                .first()
            )
            if existing:
                if if_not_exists:
                    return entity_info_from_row(
                        existing, self._active_fields(session, existing.id)
                    )
                raise EntityAlreadyExistsError(name)

            entity = EntityDefinition(
                entity_name=name,
                display_name=display_name or name,
                storage_target=storage_target or to_storage_target(name),
                description=description,
                created_by=created_by,
            )
            session.add(entity)
            session.flush()

            # Field names are matched case-insensitively against payload keys
            seen: set[str] = set()
            for position, spec in enumerate(specs):
                if spec.name.lower() in seen:
                    raise FieldAlreadyExistsError(spec.name, name)
                seen.add(spec.name.lower())
                order = spec.display_order if spec.display_order is not None else position
                session.add(self._new_field_row(entity, spec, order, created_by))

            self._log_change(
                session,
                operation="create_entity",
                entity_name=name,
                new_value={
                    "storage_target": entity.storage_target,
                    "fields": [s.model_dump() for s in specs],
                },
                created_by=created_by,
            )

            session.commit()
            logger.info("Entity created: %s", name)
            return entity_info_from_row(entity, self._active_fields(session, entity.id))

    def update_entity(
        self,
        name: str,
        new_name: str | None = None,
        display_name: str | None = None,
        storage_target: str | None = None,
        description: str | None | EllipsisType = ...,
        created_by: str | None = None,
        reason: str | None = None,
    ) -> EntityInfo:
        """Update an entity definition.

        Args:
            name: Current entity name
            new_name: Rename to this (must not collide with another live entity)
            display_name: New display name (or None to keep)
            storage_target: New storage target (or None to keep)
            description: New description (or ... to keep, None to clear)

        Raises:
            SchemaNotFoundError: If entity doesn't exist
            EntityAlreadyExistsError: If new_name is taken
        """
        self.initialize()

        with self._get_session() as session:
            entity = self._require_entity(session, name)
            old_values: dict[str, Any] = {}
            new_values: dict[str, Any] = {}

            if new_name is not None and new_name != entity.entity_name:
                clash = (
                    session.query(EntityDefinition)
                    .filter_by(entity_name=new_name, is_deleted=False)
                    .first()
                )
                if clash:
                    raise EntityAlreadyExistsError(new_name)
                old_values["entity_name"] = entity.entity_name
                new_values["entity_name"] = new_name
                entity.entity_name = new_name

            if display_name is not None and display_name != entity.display_name:
                old_values["display_name"] = entity.display_name
                new_values["display_name"] = display_name
                entity.display_name = display_name

            if storage_target is not None and storage_target != entity.storage_target:
                old_values["storage_target"] = entity.storage_target
                new_values["storage_target"] = storage_target
                entity.storage_target = storage_target

            if description is not ... and description != entity.description:
                old_values["description"] = entity.description
                new_values["description"] = description
                entity.description = description

            if new_values:
                self._log_change(
                    session,
                    operation="update_entity",
                    entity_name=name,
                    old_value=old_values,
                    new_value=new_values,
                    created_by=created_by,
                    reason=reason,
                )

            session.commit()
            return entity_info_from_row(entity, self._active_fields(session, entity.id))

    def drop_entity(
        self,
        name: str,
        created_by: str | None = None,
        reason: str | None = None,
    ) -> bool:
        """Soft-delete an entity. Its field rows stay for audit.

        Raises:
            SchemaNotFoundError: If entity doesn't exist
        """
        self.initialize()

        with self._get_session() as session:
            entity = self._require_entity(session, name)
            entity.is_deleted = True

            self._log_change(
                session,
                operation="drop_entity",
                entity_name=name,
                old_value=entity.to_dict(),
                created_by=created_by,
                reason=reason,
            )

            session.commit()
            logger.info("Entity dropped: %s", name)
            return True

    def describe_entity(self, entity_name: str) -> EntityInfo:
        """Get a live entity with its ordered, active fields.

        Raises:
            SchemaNotFoundError: If entity doesn't exist
        """
        self.initialize()
        with self._get_session() as session:
            entity = self._require_entity(session, entity_name)
            return entity_info_from_row(entity, self._active_fields(session, entity.id))

    # === Fields ===

    def get_fields(self, entity_name: str) -> list[FieldInfo]:
        """Get the active fields of an entity, ordered by display_order.

        Raises:
            SchemaNotFoundError: If entity doesn't exist
        """
        return list(self.describe_entity(entity_name).fields)

    def field_exists(self, entity_name: str, field_name: str) -> bool:
        """Check if an active field exists on a live entity."""
        entity = self.get_entity(entity_name)
        if entity is None:
            return False
        return any(f.name == field_name for f in entity.fields)

    def add_field(
        self,
        entity_name: str,
        spec: FieldSpec | dict[str, Any],
        created_by: str | None = None,
        reason: str | None = None,
        if_not_exists: bool = False,
    ) -> FieldInfo:
        """Add a field to an entity.

        Raises:
            SchemaNotFoundError: If entity doesn't exist
            FieldAlreadyExistsError: If field exists and if_not_exists=False
            InvalidFieldTypeError: If the field type is invalid
            InvalidFieldSpecError: If the definition is inconsistent
        """
        self.initialize()
        if not isinstance(spec, FieldSpec):
            spec = FieldSpec(**spec)

        with self._get_session() as session:
            entity = self._require_entity(session, entity_name)

            active = self._active_fields(session, entity.id)
            existing = next((f for f in active if f.field_name.lower() == spec.name.lower()), None)
            if existing:
                if if_not_exists:
                    return field_info_from_row(existing)
                raise FieldAlreadyExistsError(spec.name, entity_name)

            order = spec.display_order
            if order is None:
                order = max((f.display_order for f in active), default=-1) + 1
            field = self._new_field_row(entity, spec, order, created_by)
            session.add(field)

            self._log_change(
                session,
                operation="add_field",
                entity_name=entity_name,
                field_name=spec.name,
                new_value=spec.model_dump(),
                created_by=created_by,
                reason=reason,
            )

            session.commit()
            logger.info("Field created: %s.%s", entity_name, spec.name)
            return field_info_from_row(field)

    def update_field(
        self,
        entity_name: str,
        field_name: str,
        display_name: str | None = None,
        field_type: str | None = None,
        required: bool | None = None,
        unique: bool | None = None,
        max_length: int | None | EllipsisType = ...,
        min_length: int | None | EllipsisType = ...,
        pattern: str | None | EllipsisType = ...,
        default: Any | EllipsisType = ...,
        options: list[FieldOption] | list[dict[str, Any]] | None | EllipsisType = ...,
        display_order: int | None = None,
        created_by: str | None = None,
        reason: str | None = None,
    ) -> FieldInfo:
        """Modify field properties.

        Arguments left as None (or ``...`` for nullable properties) keep their
        current value; passing None to a nullable property clears it.

        Raises:
            SchemaNotFoundError: If entity doesn't exist
            FieldNotFoundError: If field doesn't exist
            InvalidFieldTypeError: If the new type is invalid
            InvalidFieldSpecError: If the result is inconsistent
        """
        self.initialize()

        with self._get_session() as session:
            entity = self._require_entity(session, entity_name)
            field = self._require_field(session, entity, field_name)

            proposed: dict[str, Any] = {}
            if display_name is not None:
                proposed["display_name"] = display_name
            if field_type is not None:
                proposed["field_type"] = field_type
            if required is not None:
                proposed["is_required"] = required
            if unique is not None:
                proposed["is_unique"] = unique
            if max_length is not ...:
                proposed["max_length"] = max_length
            if min_length is not ...:
                proposed["min_length"] = min_length
            if pattern is not ...:
                proposed["pattern"] = pattern
            if default is not ...:
                proposed["default_value"] = json.dumps(default) if default is not None else None
            if options is not ...:
                proposed["options"] = _dump_options(options)  # type: ignore[arg-type]
            if display_order is not None:
                proposed["display_order"] = display_order

            old_values: dict[str, Any] = {}
            new_values: dict[str, Any] = {}
            for attr, value in proposed.items():
                if getattr(field, attr) != value:
                    old_values[attr] = getattr(field, attr)
                    new_values[attr] = value
                    setattr(field, attr, value)

            self._check_field_definition(
                field.field_name,
                field.field_type,
                field.pattern,
                field.options,
                field.min_length,
                field.max_length,
            )

            if new_values:
                self._log_change(
                    session,
                    operation="update_field",
                    entity_name=entity_name,
                    field_name=field_name,
                    old_value=old_values,
                    new_value=new_values,
                    created_by=created_by,
                    reason=reason,
                )

            session.commit()
            return field_info_from_row(field)

    def drop_field(
        self,
        entity_name: str,
        field_name: str,
        created_by: str | None = None,
        reason: str | None = None,
    ) -> bool:
        """Soft-delete a field.

        Raises:
            SchemaNotFoundError: If entity doesn't exist
            FieldNotFoundError: If field doesn't exist
        """
        self.initialize()

        with self._get_session() as session:
            entity = self._require_entity(session, entity_name)
            field = self._require_field(session, entity, field_name)
            field.is_deleted = True

            self._log_change(
                session,
                operation="drop_field",
                entity_name=entity_name,
                field_name=field_name,
                old_value=field.to_dict(),
                created_by=created_by,
                reason=reason,
            )

            session.commit()
            logger.info("Field dropped: %s.%s", entity_name, field_name)
            return True

    # === Audit ===

    def get_audit_log(self, entity_name: str | None = None, limit: int = 100) -> list[AuditEntry]:
        """Get schema audit entries, newest first."""
        self.initialize()

        with self._get_session() as session:
            query = session.query(AuditLog).order_by(AuditLog.timestamp.desc())
            if entity_name:
                query = query.filter_by(entity_name=entity_name)

            entries = []
            for row in query.limit(limit).all():
                details: dict[str, Any] = {}
                if row.old_value:
                    details["old"] = json.loads(row.old_value)
                if row.new_value:
                    details["new"] = json.loads(row.new_value)
                entries.append(
                    AuditEntry(
                        id=row.id,
                        timestamp=as_utc(row.timestamp),  # type: ignore[arg-type]
                        operation=row.operation,
                        entity_name=row.entity_name,
                        field_name=row.field_name,
                        details=details,
                        created_by=row.created_by,
                        reason=row.reason,
                    )
                )
            return entries

"""Custom exceptions for DynaRecord.

Every error carries a human-readable message plus a JSON-serializable context
so the transport layer can render it without knowing the concrete type.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from dynarecord.core.types import FieldViolation


class DynaRecordError(Exception):
    """Base exception for all DynaRecord errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Return error as JSON-serializable dict."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ConfigurationWarning(UserWarning):
    """Malformed metadata (bad regex, bad enum options) that degrades to no constraint.

    Only used as a logging category; it is never raised.
    """


class ConnectionError(DynaRecordError):
    """Failed to connect to the database."""

    pass


class SchemaNotFoundError(DynaRecordError):
    """No live entity definition matches the requested name."""

    def __init__(self, entity_name: str, available_entities: list[str] | None = None) -> None:
        available = available_entities or []
        if available:
            message = (
                f"Entity '{entity_name}' not found. Available entities: {', '.join(available)}"
            )
        else:
            message = f"Entity '{entity_name}' not found. No entities exist yet."

        super().__init__(message, {"entity_name": entity_name, "available_entities": available})
        self.entity_name = entity_name
        self.available_entities = available


EntityNotFoundError = SchemaNotFoundError


class EntityAlreadyExistsError(DynaRecordError):
    """Entity already exists (when if_not_exists=False)."""

    def __init__(self, entity_name: str) -> None:
        message = (
            f"Entity '{entity_name}' already exists. "
            f"Use if_not_exists=True to skip creation if it exists."
        )
        super().__init__(message, {"entity_name": entity_name})
        self.entity_name = entity_name


class FieldNotFoundError(DynaRecordError):
    """Field does not exist on entity."""

    def __init__(
        self, field_name: str, entity_name: str, available_fields: list[str] | None = None
    ) -> None:
        available = available_fields or []
        if available:
            message = (
                f"Field '{field_name}' not found on '{entity_name}'. "
                f"Available fields: {', '.join(available)}"
            )
        else:
            message = f"Field '{field_name}' not found on '{entity_name}'. No fields defined."

        super().__init__(
            message,
            {
                "field_name": field_name,
                "entity_name": entity_name,
                "available_fields": available,
            },
        )
        self.field_name = field_name
        self.entity_name = entity_name
        self.available_fields = available


class FieldAlreadyExistsError(DynaRecordError):
    """Field already exists on entity."""

    def __init__(self, field_name: str, entity_name: str) -> None:
        message = f"Field '{field_name}' already exists on '{entity_name}'."
        super().__init__(message, {"field_name": field_name, "entity_name": entity_name})
        self.field_name = field_name
        self.entity_name = entity_name


class InvalidFieldTypeError(DynaRecordError):
    """Invalid field type specified."""

    VALID_TYPES = ["string", "integer", "decimal", "datetime", "boolean", "enum"]

    def __init__(self, field_type: str) -> None:
        message = f"Invalid field type '{field_type}'. Valid types: {', '.join(self.VALID_TYPES)}"
        super().__init__(message, {"field_type": field_type, "valid_types": self.VALID_TYPES})
        self.field_type = field_type


class InvalidFieldSpecError(DynaRecordError):
    """Field definition is internally inconsistent (e.g. pattern on a non-string)."""

    def __init__(self, field_name: str, reason: str) -> None:
        super().__init__(
            f"Invalid definition for field '{field_name}': {reason}",
            {"field_name": field_name, "reason": reason},
        )
        self.field_name = field_name
        self.reason = reason


class ValidationError(DynaRecordError):
    """One or more field constraints were violated.

    Always carries the complete list of violations, never just the first.
    """

    def __init__(self, entity_name: str, violations: list[FieldViolation]) -> None:
        count = len(violations)
        message = f"Validation failed for '{entity_name}' with {count} violation(s)"
        super().__init__(
            message,
            {
                "entity_name": entity_name,
                "violations": [v.model_dump() for v in violations],
            },
        )
        self.entity_name = entity_name
        self.violations = list(violations)

    @property
    def messages(self) -> list[str]:
        """One message per violation, in field display order."""
        return [v.message for v in self.violations]


class RecordNotFoundError(DynaRecordError):
    """Record with given ID does not exist or is soft-deleted."""

    def __init__(self, record_id: str, entity_name: str) -> None:
        message = f"Record '{record_id}' not found in '{entity_name}'."
        super().__init__(message, {"record_id": record_id, "entity_name": entity_name})
        self.record_id = record_id
        self.entity_name = entity_name


class StorageError(DynaRecordError):
    """Backend failure (connectivity, constraint violation, driver error)."""

    def __init__(self, backend: str, operation: str, cause: BaseException) -> None:
        message = f"{backend} backend failed during {operation}: {cause}"
        super().__init__(
            message,
            {"backend": backend, "operation": operation, "cause": type(cause).__name__},
        )
        self.backend = backend
        self.operation = operation
        self.cause = cause


class RoutingConfigurationError(DynaRecordError):
    """Routing table references a backend that is not registered."""

    def __init__(self, backend: str, available_backends: list[str]) -> None:
        message = (
            f"Unknown storage backend '{backend}'. "
            f"Registered backends: {', '.join(available_backends) or 'none'}"
        )
        super().__init__(
            message, {"backend": backend, "available_backends": available_backends}
        )
        self.backend = backend
        self.available_backends = available_backends


def http_status_for(error: BaseException) -> int:
    """Map an engine error to the status code a transport layer should return."""
    if isinstance(error, SchemaNotFoundError | RecordNotFoundError):
        return 404
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, StorageError):
        return 502
    return 500

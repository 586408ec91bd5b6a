"""Storage-neutral operation descriptors.

The builder describes *what* a storage action should do (target collection,
filter, payload, pagination, ordering) without touching any backend. Each
adapter translates descriptors into its own native calls.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from dynarecord.core.types import SchemaContext

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

# Newest first; id breaks ties between records created in the same instant
DEFAULT_ORDERING: tuple[tuple[str, str], ...] = (("created_at", "desc"), ("id", "desc"))


class OperationKind(StrEnum):
    """Record operations a storage adapter can execute."""

    FIND_MANY = "find_many"
    FIND_ONE = "find_one"
    COUNT = "count"
    CREATE = "create"
    UPDATE = "update"
    SOFT_DELETE = "soft_delete"
    HARD_DELETE = "hard_delete"


def _frozen(mapping: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class OperationDescriptor:
    """Intent-only description of one storage action."""

    kind: OperationKind
    """What to do."""

    target: str
    """Collection/table identifier, from the entity's storage target."""

    entity_id: str
    """Owning entity definition."""

    entity_name: str
    """Entity name, for error messages and logs."""

    filter: Mapping[str, Any] = field(default_factory=lambda: _frozen(None))
    """Equality filter on record attributes (entity_id, id, is_deleted)."""

    payload: Mapping[str, Any] | None = None
    """Record data to persist (create/update only)."""

    skip: int | None = None
    take: int | None = None
    order_by: tuple[tuple[str, str], ...] = ()

    @property
    def record_id(self) -> str | None:
        """The targeted record for single-record operations."""
        return self.filter.get("id")


def coerce_pagination(page: Any, page_size: Any) -> tuple[int, int]:
    """Coerce page and page size to usable integers.

    Both are at least 1; the page size is capped at MAX_PAGE_SIZE. Values
    that are not numbers fall back to the first page / default size.
    """
    try:
        page_number = int(page)
    except (TypeError, ValueError):
        page_number = 1
    try:
        size = int(page_size)
    except (TypeError, ValueError):
        size = DEFAULT_PAGE_SIZE
    return max(page_number, 1), min(max(size, 1), MAX_PAGE_SIZE)


class DescriptorBuilder:
    """Builds operation descriptors from a schema context. Never blocks."""

    def _live_filter(self, context: SchemaContext, **extra: Any) -> Mapping[str, Any]:
        return _frozen({"entity_id": context.entity.id, "is_deleted": False, **extra})

    def _descriptor(
        self, kind: OperationKind, context: SchemaContext, **kwargs: Any
    ) -> OperationDescriptor:
        return OperationDescriptor(
            kind=kind,
            target=context.entity.storage_target,
            entity_id=context.entity.id,
            entity_name=context.entity.name,
            **kwargs,
        )

    def build_list(
        self, context: SchemaContext, page: Any = 1, page_size: Any = DEFAULT_PAGE_SIZE
    ) -> OperationDescriptor:
        """Page through live records, newest first."""
        page_number, size = coerce_pagination(page, page_size)
        return self._descriptor(
            OperationKind.FIND_MANY,
            context,
            filter=self._live_filter(context),
            skip=(page_number - 1) * size,
            take=size,
            order_by=DEFAULT_ORDERING,
        )

    def build_count(self, context: SchemaContext) -> OperationDescriptor:
        """Count live records of the entity."""
        return self._descriptor(OperationKind.COUNT, context, filter=self._live_filter(context))

    def build_get(self, context: SchemaContext, record_id: str) -> OperationDescriptor:
        """Fetch one live record."""
        return self._descriptor(
            OperationKind.FIND_ONE, context, filter=self._live_filter(context, id=record_id)
        )

    def build_create(
        self, context: SchemaContext, normalized_payload: Mapping[str, Any]
    ) -> OperationDescriptor:
        """Persist a new record with an already validated, normalized payload."""
        return self._descriptor(
            OperationKind.CREATE,
            context,
            filter=_frozen({"entity_id": context.entity.id}),
            payload=_frozen(normalized_payload),
        )

    def build_update(
        self, context: SchemaContext, record_id: str, merged_payload: Mapping[str, Any]
    ) -> OperationDescriptor:
        """Replace a live record's data with the merged payload."""
        return self._descriptor(
            OperationKind.UPDATE,
            context,
            filter=self._live_filter(context, id=record_id),
            payload=_frozen(merged_payload),
        )

    def build_soft_delete(self, context: SchemaContext, record_id: str) -> OperationDescriptor:
        """Flag a live record as deleted, keeping its data."""
        return self._descriptor(
            OperationKind.SOFT_DELETE, context, filter=self._live_filter(context, id=record_id)
        )

    def build_hard_delete(self, context: SchemaContext, record_id: str) -> OperationDescriptor:
        """Physically remove a record, deleted or not."""
        return self._descriptor(
            OperationKind.HARD_DELETE,
            context,
            filter=_frozen({"entity_id": context.entity.id, "id": record_id}),
        )

"""Record service: the public record operations.

Each call runs the same pipeline:
resolve schema -> validate -> build descriptor -> route -> execute.
Nothing is kept between calls.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from dynarecord.core.types import PaginatedRecords, StoredRecord
from dynarecord.query.descriptor import DEFAULT_PAGE_SIZE, coerce_pagination

if TYPE_CHECKING:
    from dynarecord.query.descriptor import DescriptorBuilder
    from dynarecord.routing.policy import RoutingPolicy
    from dynarecord.schema.reader import MetadataReader
    from dynarecord.validation.engine import ValidationEngine

logger = logging.getLogger(__name__)


class RecordService:
    """Orchestrates record CRUD for dynamic entities."""

    def __init__(
        self,
        reader: MetadataReader,
        validator: ValidationEngine,
        builder: DescriptorBuilder,
        routing: RoutingPolicy,
    ) -> None:
        self._reader = reader
        self._validator = validator
        self._builder = builder
        self._routing = routing

    def list_records(
        self, entity_name: str, page: Any = 1, page_size: Any = DEFAULT_PAGE_SIZE
    ) -> PaginatedRecords:
        """List live records, newest first.

        Args:
            entity_name: Entity name
            page: 1-based page number
            page_size: Records per page (capped)

        Returns:
            One page of records with totals

        Raises:
            SchemaNotFoundError: If the entity doesn't exist
            StorageError: If the backend fails
        """
        context = self._reader.load_context(entity_name)
        adapter = self._routing.resolve_adapter(entity_name)
        page_number, size = coerce_pagination(page, page_size)

        records = adapter.execute(self._builder.build_list(context, page_number, size))
        total = adapter.execute(self._builder.build_count(context))

        logger.debug(
            "Listed %d of %d %s record(s), page %d", len(records), total, entity_name, page_number
        )
        return PaginatedRecords(
            records=records,
            total=total,
            page=page_number,
            page_size=size,
            total_pages=math.ceil(total / size),
        )

    def get_record(self, entity_name: str, record_id: str) -> StoredRecord:
        """Get one live record.

        Raises:
            SchemaNotFoundError: If the entity doesn't exist
            RecordNotFoundError: If the record is absent or deleted
        """
        context = self._reader.load_context(entity_name)
        adapter = self._routing.resolve_adapter(entity_name)
        return adapter.execute(self._builder.build_get(context, record_id))

    def create_record(self, entity_name: str, payload: Mapping[str, Any]) -> StoredRecord:
        """Validate and store a new record.

        Field keys are stored in the metadata's casing; unknown keys pass
        through unvalidated.

        Raises:
            SchemaNotFoundError: If the entity doesn't exist
            ValidationError: With every violation of the payload
            StorageError: If the backend fails
        """
        context = self._reader.load_context(entity_name)
        data = self._validator.apply_defaults(context, payload)
        self._validator.validate(context, data)
        normalized = self._validator.normalize(context, data)

        adapter = self._routing.resolve_adapter(entity_name)
        record = adapter.execute(self._builder.build_create(context, normalized))

        logger.info("Created %s record %s on %s", entity_name, record.id, adapter.backend_name)
        return record

    def update_record(
        self, entity_name: str, record_id: str, payload: Mapping[str, Any]
    ) -> StoredRecord:
        """Merge a partial payload into a record and store the result.

        The merged data is validated as a whole, so an update can't leave a
        required field empty.

        Raises:
            SchemaNotFoundError: If the entity doesn't exist
            RecordNotFoundError: If the record is absent or deleted
            ValidationError: With every violation of the merged data
            StorageError: If the backend fails
        """
        context = self._reader.load_context(entity_name)
        adapter = self._routing.resolve_adapter(entity_name)

        existing = adapter.execute(self._builder.build_get(context, record_id))
        merged = self._validator.merge(context, existing.data, payload)
        self._validator.validate(context, merged)

        record = adapter.execute(self._builder.build_update(context, record_id, merged))
        logger.info("Updated %s record %s", entity_name, record_id)
        return record

    def delete_record(self, entity_name: str, record_id: str) -> None:
        """Soft-delete a record. A second delete raises RecordNotFoundError.

        Raises:
            SchemaNotFoundError: If the entity doesn't exist
            RecordNotFoundError: If the record is absent or already deleted
        """
        context = self._reader.load_context(entity_name)
        adapter = self._routing.resolve_adapter(entity_name)
        adapter.execute(self._builder.build_soft_delete(context, record_id))
        logger.info("Soft-deleted %s record %s", entity_name, record_id)

    def purge_record(self, entity_name: str, record_id: str) -> None:
        """Physically remove a record, including soft-deleted ones.

        Raises:
            SchemaNotFoundError: If the entity doesn't exist
            RecordNotFoundError: If no such record exists
        """
        context = self._reader.load_context(entity_name)
        adapter = self._routing.resolve_adapter(entity_name)
        adapter.execute(self._builder.build_hard_delete(context, record_id))
        logger.info("Purged %s record %s", entity_name, record_id)

    def describe_routing(self, entity_name: str) -> dict[str, Any]:
        """Which backend serves an entity."""
        return self._routing.describe(entity_name)

"""Metadata reader: resolves an entity name into a schema context."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from dynarecord.core.types import SchemaContext
from dynarecord.exceptions import SchemaNotFoundError
from dynarecord.schema.models import EntityDefinition, FieldDefinition
from dynarecord.schema.store import entity_info_from_row, field_info_from_row

if TYPE_CHECKING:
    from dynarecord.core.connection import DatabaseConnection

logger = logging.getLogger(__name__)


class MetadataReader:
    """Loads an entity's full schema for one operation.

    Contexts are built fresh on every call so that field or entity changes
    are visible to the very next request. Nothing is cached.
    """

    def __init__(self, connection: DatabaseConnection) -> None:
        self._connection = connection

    def load_context(self, entity_name: str) -> SchemaContext:
        """Load the entity descriptor and its ordered, active fields.

        Args:
            entity_name: Exact (case-sensitive) entity name

        Returns:
            Immutable SchemaContext

        Raises:
            SchemaNotFoundError: If no live entity has this name
        """
        logger.debug("Loading metadata context for entity %s", entity_name)

        with self._connection.get_session() as session:
            entity = (
                session.query(EntityDefinition)
                .filter_by(entity_name=entity_name, is_deleted=False)
                .first()
            )
            if entity is None:
                available = [
                    r[0]
                    for r in session.query(EntityDefinition.entity_name)
                    .filter_by(is_deleted=False)
                    .all()
                ]
                raise SchemaNotFoundError(entity_name, available)

            fields = (
                session.query(FieldDefinition)
                .filter_by(entity_id=entity.id, is_deleted=False)
                .order_by(FieldDefinition.display_order, FieldDefinition.created_at)
                .all()
            )

            return SchemaContext(
                entity=entity_info_from_row(entity),
                fields=tuple(field_info_from_row(f) for f in fields),
            )

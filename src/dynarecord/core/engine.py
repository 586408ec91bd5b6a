"""Main DynaRecord facade."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from dynarecord.core.config import Settings
from dynarecord.core.connection import DatabaseConnection
from dynarecord.core.types import (
    AuditEntry,
    BackendType,
    EntityInfo,
    FieldInfo,
    FieldSpec,
    PaginatedRecords,
    StoredRecord,
)
from dynarecord.exceptions import ConnectionError
from dynarecord.query.descriptor import DEFAULT_PAGE_SIZE, DescriptorBuilder
from dynarecord.records.service import RecordService
from dynarecord.routing.policy import RoutingPolicy
from dynarecord.schema.reader import MetadataReader
from dynarecord.schema.store import SchemaStore
from dynarecord.storage.relational import RelationalAdapter
from dynarecord.validation.engine import ValidationEngine

if TYPE_CHECKING:
    from pymongo import MongoClient

    from dynarecord.storage.base import StorageAdapter

logger = logging.getLogger(__name__)


class DynaRecord:
    """Metadata-driven record store.

    Entities and their fields are data, defined at runtime; records of each
    entity are validated against that metadata and stored in whichever
    backend the routing configuration assigns to the entity.

    Example:
        db = DynaRecord("sqlite:///./app.db")
        db.create_entity(
            "Product",
            fields=[
                {"name": "productName", "type": "string", "required": True, "max_length": 255},
                {"name": "price", "type": "decimal", "required": True},
            ],
        )
        record = db.create_record("Product", {"productName": "Mouse", "price": 29.99})
        print(db.get_record("Product", record.id).data)
    """

    def __init__(
        self,
        url: str | None = None,
        echo: bool = False,
        settings: Settings | None = None,
        mongo_client: MongoClient[Any] | None = None,
    ) -> None:
        """Initialize DynaRecord.

        Args:
            url: Database URL for metadata and relational records. When neither
                url nor settings is given, settings are read from the environment.
            echo: Whether to echo SQL statements (for debugging)
            settings: Full settings, including routing
            mongo_client: Client for the document backend; overrides
                settings.mongodb_url

        Raises:
            RoutingConfigurationError: If routing names an unavailable backend
        """
        if settings is None:
            settings = Settings(database_url=url, echo=echo) if url else Settings.from_env()
        self._settings = settings

        self._connection = DatabaseConnection(settings.database_url, echo=settings.echo)
        adapters: dict[str, StorageAdapter] = {}
        try:
            self._schema_store = SchemaStore(self._connection)
            self._schema_store.initialize()

            relational = RelationalAdapter(self._connection)
            relational.initialize()
            adapters[BackendType.RELATIONAL.value] = relational
            document = self._document_adapter(settings, mongo_client)
            if document is not None:
                adapters[BackendType.DOCUMENT.value] = document

            self._routing = RoutingPolicy(adapters, settings.routing, settings.default_backend)
        except Exception:
            for adapter in adapters.values():
                adapter.close()
            self._connection.close()
            raise
        self._records = RecordService(
            MetadataReader(self._connection),
            ValidationEngine(),
            DescriptorBuilder(),
            self._routing,
        )
        logger.debug(
            "DynaRecord ready: backends=%s default=%s",
            self._routing.available_backends(),
            self._routing.default_backend,
        )

    @staticmethod
    def _document_adapter(
        settings: Settings, client: MongoClient[Any] | None
    ) -> StorageAdapter | None:
        if client is None and not settings.mongodb_url:
            return None

        from dynarecord.storage.document import DocumentAdapter

        if client is None:
            from pymongo import MongoClient

            client = MongoClient(settings.mongodb_url, serverSelectionTimeoutMS=5000)
        return DocumentAdapter(client, settings.mongodb_database)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def schema(self) -> SchemaStore:
        """Schema administration (entities, fields, audit log)."""
        return self._schema_store

    @property
    def records(self) -> RecordService:
        return self._records

    @property
    def routing(self) -> RoutingPolicy:
        return self._routing

    def close(self) -> None:
        """Close all backend connections."""
        self._routing.close()
        self._connection.close()

    def __enter__(self) -> DynaRecord:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        """Context manager exit."""
        self.close()

    # === Schema administration ===

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
        """Create an entity. See SchemaStore.create_entity."""
        return self._schema_store.create_entity(
            name,
            fields=fields,
            display_name=display_name,
            storage_target=storage_target,
            description=description,
            created_by=created_by,
            if_not_exists=if_not_exists,
        )

    def list_entities(self) -> list[str]:
        return self._schema_store.list_entities()

    def describe_entity(self, name: str) -> EntityInfo:
        return self._schema_store.describe_entity(name)

    def drop_entity(
        self, name: str, created_by: str | None = None, reason: str | None = None
    ) -> bool:
        return self._schema_store.drop_entity(name, created_by=created_by, reason=reason)

    def add_field(
        self,
        entity_name: str,
        spec: FieldSpec | dict[str, Any],
        created_by: str | None = None,
        reason: str | None = None,
        if_not_exists: bool = False,
    ) -> FieldInfo:
        return self._schema_store.add_field(
            entity_name, spec, created_by=created_by, reason=reason, if_not_exists=if_not_exists
        )

    def drop_field(
        self,
        entity_name: str,
        field_name: str,
        created_by: str | None = None,
        reason: str | None = None,
    ) -> bool:
        return self._schema_store.drop_field(
            entity_name, field_name, created_by=created_by, reason=reason
        )

    def get_audit_log(self, entity_name: str | None = None, limit: int = 100) -> list[AuditEntry]:
        return self._schema_store.get_audit_log(entity_name, limit)

    # === Records ===

    def list_records(
        self, entity_name: str, page: Any = 1, page_size: Any = DEFAULT_PAGE_SIZE
    ) -> PaginatedRecords:
        return self._records.list_records(entity_name, page, page_size)

    def get_record(self, entity_name: str, record_id: str) -> StoredRecord:
        return self._records.get_record(entity_name, record_id)

    def create_record(self, entity_name: str, payload: Mapping[str, Any]) -> StoredRecord:
        return self._records.create_record(entity_name, payload)

    def update_record(
        self, entity_name: str, record_id: str, payload: Mapping[str, Any]
    ) -> StoredRecord:
        return self._records.update_record(entity_name, record_id, payload)

    def delete_record(self, entity_name: str, record_id: str) -> None:
        self._records.delete_record(entity_name, record_id)

    def purge_record(self, entity_name: str, record_id: str) -> None:
        self._records.purge_record(entity_name, record_id)

    # === Operations ===

    def describe_routing(self, entity_name: str) -> dict[str, Any]:
        return self._records.describe_routing(entity_name)

    def reload_routing(self, routes: Mapping[str, str], default: str | None = None) -> None:
        """Swap in a new routing table. See RoutingPolicy.reload."""
        self._routing.reload(routes, default)

    def health(self) -> dict[str, Any]:
        """Health of the metadata database and every storage backend."""
        backends = self._routing.health()
        try:
            metadata = self._connection.test_connection()
        except ConnectionError:
            logger.error("Metadata database health check failed", exc_info=True)
            metadata = False
        return {
            "status": "ok" if metadata and all(backends.values()) else "degraded",
            "metadata": metadata,
            "backends": backends,
            "default_backend": self._routing.default_backend,
            "routes": dict(self._routing.routes),
        }

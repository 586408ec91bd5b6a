"""Document storage adapter backed by MongoDB.

Each entity's storage target is a collection. Records are stored as::

    {_id: ObjectId, entity_id, data: {...}, created_at, updated_at, is_deleted}

and surface with the ObjectId rendered as a hex string.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from bson import ObjectId
from bson.errors import BSONError, InvalidId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from dynarecord.core.types import BackendType, StoredRecord
from dynarecord.exceptions import RecordNotFoundError
from dynarecord.query.descriptor import OperationDescriptor, OperationKind
from dynarecord.schema.models import as_utc, utc_now
from dynarecord.storage.base import StorageAdapter, to_json_compatible

if TYPE_CHECKING:
    from datetime import datetime

    from pymongo import MongoClient
    from pymongo.collection import Collection

logger = logging.getLogger(__name__)


def _now() -> datetime:
    # BSON dates carry millisecond precision
    now = utc_now()
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


class DocumentAdapter(StorageAdapter):
    """Stores records as nested documents, one collection per entity."""

    # bson raises a bare OverflowError for ints wider than 8 bytes
    driver_errors = (PyMongoError, BSONError, OverflowError)

    def __init__(self, client: MongoClient[Any], database: str = "dynarecord") -> None:
        """Initialize the adapter.

        Args:
            client: Connected MongoClient; the adapter takes ownership of it
            database: Database holding the entity collections
        """
        self._client = client
        self._db = client[database]
        self._indexed: set[str] = set()
        self._index_lock = threading.Lock()

    @property
    def backend_name(self) -> str:
        return BackendType.DOCUMENT.value

    @property
    def database_name(self) -> str:
        return self._db.name

    def _collection(self, descriptor: OperationDescriptor) -> Collection[Any]:
        collection = self._db[descriptor.target]
        if descriptor.target not in self._indexed:
            collection.create_index(
                [("entity_id", ASCENDING), ("is_deleted", ASCENDING), ("created_at", DESCENDING)]
            )
            with self._index_lock:
                self._indexed.add(descriptor.target)
        return collection

    def _not_found(self, descriptor: OperationDescriptor) -> RecordNotFoundError:
        return RecordNotFoundError(str(descriptor.record_id), descriptor.entity_name)

    def _filter(self, descriptor: OperationDescriptor) -> dict[str, Any]:
        """Translate the descriptor filter into a Mongo query.

        Raises:
            RecordNotFoundError: If the targeted id is not a valid ObjectId
        """
        query: dict[str, Any] = {}
        for key, value in descriptor.filter.items():
            if key == "id":
                try:
                    query["_id"] = ObjectId(value)
                except (InvalidId, TypeError) as e:
                    raise self._not_found(descriptor) from e
            else:
                query[key] = value
        return query

    def _to_record(self, doc: dict[str, Any]) -> StoredRecord:
        return StoredRecord(
            id=str(doc["_id"]),
            entity_id=doc["entity_id"],
            data=dict(doc.get("data") or {}),
            created_at=as_utc(doc["created_at"]),  # type: ignore[arg-type]
            updated_at=as_utc(doc["updated_at"]),  # type: ignore[arg-type]
            is_deleted=bool(doc.get("is_deleted", False)),
        )

    def create(self, descriptor: OperationDescriptor) -> StoredRecord:
        self._expect(descriptor, OperationKind.CREATE)
        now = _now()
        doc = {
            "_id": ObjectId(),
            "entity_id": descriptor.entity_id,
            "data": to_json_compatible(descriptor.payload),
            "created_at": now,
            "updated_at": now,
            "is_deleted": False,
        }

        with self._storage_errors("create", descriptor):
            self._collection(descriptor).insert_one(doc)
        return self._to_record(doc)

    def find_many(self, descriptor: OperationDescriptor) -> list[StoredRecord]:
        self._expect(descriptor, OperationKind.FIND_MANY)
        sort = [
            ("_id" if column == "id" else column, DESCENDING if direction == "desc" else ASCENDING)
            for column, direction in descriptor.order_by
        ]

        with self._storage_errors("find_many", descriptor):
            cursor = self._collection(descriptor).find(self._filter(descriptor))
            if sort:
                cursor = cursor.sort(sort)
            if descriptor.skip:
                cursor = cursor.skip(descriptor.skip)
            if descriptor.take is not None:
                cursor = cursor.limit(descriptor.take)
            return [self._to_record(doc) for doc in cursor]

    def find_one(self, descriptor: OperationDescriptor) -> StoredRecord:
        self._expect(descriptor, OperationKind.FIND_ONE)
        query = self._filter(descriptor)

        with self._storage_errors("find_one", descriptor):
            doc = self._collection(descriptor).find_one(query)
        if doc is None:
            raise self._not_found(descriptor)
        return self._to_record(doc)

    def count(self, descriptor: OperationDescriptor) -> int:
        self._expect(descriptor, OperationKind.COUNT)

        with self._storage_errors("count", descriptor):
            return self._collection(descriptor).count_documents(self._filter(descriptor))

    def update(self, descriptor: OperationDescriptor) -> StoredRecord:
        self._expect(descriptor, OperationKind.UPDATE)
        query = self._filter(descriptor)
        changes = {"data": to_json_compatible(descriptor.payload), "updated_at": _now()}

        with self._storage_errors("update", descriptor):
            doc = self._collection(descriptor).find_one_and_update(
                query, {"$set": changes}, return_document=ReturnDocument.AFTER
            )
        if doc is None:
            raise self._not_found(descriptor)
        return self._to_record(doc)

    def soft_delete(self, descriptor: OperationDescriptor) -> None:
        self._expect(descriptor, OperationKind.SOFT_DELETE)
        query = self._filter(descriptor)

        with self._storage_errors("soft_delete", descriptor):
            result = self._collection(descriptor).update_one(
                query, {"$set": {"is_deleted": True, "updated_at": _now()}}
            )
        if result.matched_count == 0:
            raise self._not_found(descriptor)

    def hard_delete(self, descriptor: OperationDescriptor) -> None:
        self._expect(descriptor, OperationKind.HARD_DELETE)
        query = self._filter(descriptor)

        with self._storage_errors("hard_delete", descriptor):
            result = self._collection(descriptor).delete_one(query)
        if result.deleted_count == 0:
            raise self._not_found(descriptor)

    def health_check(self) -> bool:
        try:
            self._client.admin.command("ping")
            return True
        except PyMongoError:
            logger.error("Document health check failed", exc_info=True)
            return False

    def close(self) -> None:
        self._client.close()

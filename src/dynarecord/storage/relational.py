"""Relational storage adapter.

All records of every entity routed here share the ``dr_records`` table;
field values are serialized into a single JSON text column, so defining a
new entity never needs DDL.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from dynarecord.core.types import BackendType, StoredRecord
from dynarecord.exceptions import RecordNotFoundError
from dynarecord.query.descriptor import OperationDescriptor, OperationKind
from dynarecord.schema.models import Base, RecordRow, as_utc, generate_uuid, utc_now
from dynarecord.storage.base import StorageAdapter, dump_data

if TYPE_CHECKING:
    from dynarecord.core.connection import DatabaseConnection

logger = logging.getLogger(__name__)


class RelationalAdapter(StorageAdapter):
    """Stores records as JSON text blobs in a SQL table (SQLite, PostgreSQL, MySQL)."""

    driver_errors = (SQLAlchemyError,)

    def __init__(self, connection: DatabaseConnection) -> None:
        """Initialize the adapter.

        Args:
            connection: Database connection to use
        """
        self._connection = connection
        self._initialized = False

    @property
    def backend_name(self) -> str:
        return BackendType.RELATIONAL.value

    def initialize(self) -> None:
        """Create the records table if it doesn't exist. Idempotent."""
        if self._initialized:
            return
        with self._storage_errors("initialize"):
            Base.metadata.create_all(
                self._connection.engine,
                tables=[RecordRow.__table__],  # type: ignore[list-item]
            )
        self._initialized = True

    def _session(self) -> Session:
        self.initialize()
        return self._connection.get_session()

    def _conditions(self, descriptor: OperationDescriptor) -> list[Any]:
        return [getattr(RecordRow, column) == value for column, value in descriptor.filter.items()]

    def _query(self, session: Session, descriptor: OperationDescriptor) -> Query[RecordRow]:
        return session.query(RecordRow).filter(*self._conditions(descriptor))

    def _not_found(self, descriptor: OperationDescriptor) -> RecordNotFoundError:
        return RecordNotFoundError(str(descriptor.record_id), descriptor.entity_name)

    def _to_record(self, row: RecordRow) -> StoredRecord:
        try:
            data = json.loads(row.data) if row.data else {}
        except ValueError:
            logger.warning("Failed to parse JSON data of record %s", row.id)
            data = {}
        return StoredRecord(
            id=row.id,
            entity_id=row.entity_id,
            data=data,
            created_at=as_utc(row.created_at),  # type: ignore[arg-type]
            updated_at=as_utc(row.updated_at),  # type: ignore[arg-type]
            is_deleted=row.is_deleted,
        )

    def create(self, descriptor: OperationDescriptor) -> StoredRecord:
        self._expect(descriptor, OperationKind.CREATE)
        now = utc_now()

        with self._storage_errors("create", descriptor), self._session() as session:
            row = RecordRow(
                id=generate_uuid(),
                entity_id=descriptor.entity_id,
                storage_target=descriptor.target,
                data=dump_data(descriptor.payload),
                created_at=now,
                updated_at=now,
                is_deleted=False,
            )
            session.add(row)
            session.commit()
            return self._to_record(row)

    def find_many(self, descriptor: OperationDescriptor) -> list[StoredRecord]:
        self._expect(descriptor, OperationKind.FIND_MANY)

        with self._storage_errors("find_many", descriptor), self._session() as session:
            query = self._query(session, descriptor)
            for column, direction in descriptor.order_by:
                attr = getattr(RecordRow, column)
                query = query.order_by(attr.desc() if direction == "desc" else attr.asc())
            if descriptor.skip:
                query = query.offset(descriptor.skip)
            if descriptor.take is not None:
                query = query.limit(descriptor.take)
            return [self._to_record(row) for row in query.all()]

    def find_one(self, descriptor: OperationDescriptor) -> StoredRecord:
        self._expect(descriptor, OperationKind.FIND_ONE)

        with self._storage_errors("find_one", descriptor), self._session() as session:
            row = self._query(session, descriptor).first()
            if row is None:
                raise self._not_found(descriptor)
            return self._to_record(row)

    def count(self, descriptor: OperationDescriptor) -> int:
        self._expect(descriptor, OperationKind.COUNT)

        with self._storage_errors("count", descriptor), self._session() as session:
            return self._query(session, descriptor).count()

    def update(self, descriptor: OperationDescriptor) -> StoredRecord:
        self._expect(descriptor, OperationKind.UPDATE)

        with self._storage_errors("update", descriptor), self._session() as session:
            result = session.execute(
                update(RecordRow)
                .where(*self._conditions(descriptor))
                .values(data=dump_data(descriptor.payload), updated_at=utc_now())
            )
            if result.rowcount == 0:
                session.rollback()
                raise self._not_found(descriptor)
            session.commit()
            row = session.get(RecordRow, descriptor.record_id, populate_existing=True)
            if row is None:
                raise self._not_found(descriptor)
            return self._to_record(row)

    def soft_delete(self, descriptor: OperationDescriptor) -> None:
        self._expect(descriptor, OperationKind.SOFT_DELETE)

        with self._storage_errors("soft_delete", descriptor), self._session() as session:
            result = session.execute(
                update(RecordRow)
                .where(*self._conditions(descriptor))
                .values(is_deleted=True, updated_at=utc_now())
            )
            if result.rowcount == 0:
                session.rollback()
                raise self._not_found(descriptor)
            session.commit()

    def hard_delete(self, descriptor: OperationDescriptor) -> None:
        self._expect(descriptor, OperationKind.HARD_DELETE)

        with self._storage_errors("hard_delete", descriptor), self._session() as session:
            result = session.execute(delete(RecordRow).where(*self._conditions(descriptor)))
            if result.rowcount == 0:
                session.rollback()
                raise self._not_found(descriptor)
            session.commit()

    def health_check(self) -> bool:
        try:
            with self._connection.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception:
            logger.error("Relational health check failed", exc_info=True)
            return False

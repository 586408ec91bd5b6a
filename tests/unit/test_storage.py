"""Tests for the storage adapters.

Both adapters run the same scenarios; the document adapter uses mongomock.
"""

from datetime import UTC, datetime
from decimal import Decimal

import pytest
from pymongo.errors import PyMongoError

from dynarecord.exceptions import RecordNotFoundError, StorageError
from dynarecord.query.descriptor import DescriptorBuilder
from dynarecord.schema.models import RecordRow
from dynarecord.storage.base import to_json_compatible
from dynarecord.storage.document import DocumentAdapter
from dynarecord.storage.relational import RelationalAdapter


@pytest.fixture(params=["relational", "document"])
def adapter(request, connection, mongo_client):
    if request.param == "relational":
        relational = RelationalAdapter(connection)
        relational.initialize()
        return relational
    return DocumentAdapter(mongo_client, database="test_records")


@pytest.fixture
def builder() -> DescriptorBuilder:
    return DescriptorBuilder()


def _create(adapter, builder, context, **data):
    return adapter.execute(builder.build_create(context, data))


class TestJsonCompatible:
    """Payload reduction to JSON values."""

    def test_converts_dates_and_decimals(self):
        result = to_json_compatible(
            {"when": datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC), "price": Decimal("9.99"), "n": 1}
        )
        assert result == {"when": "2024-01-02T03:04:05+00:00", "price": 9.99, "n": 1}

    def test_none(self):
        assert to_json_compatible(None) == {}


class TestAdapters:
    """Record operations on every backend."""

    def test_create_and_find_one(self, adapter, builder, product_context):
        created = _create(adapter, builder, product_context, productName="Widget", price=9.5)

        assert created.id
        assert created.entity_id == product_context.entity.id
        assert created.data == {"productName": "Widget", "price": 9.5}
        assert created.is_deleted is False
        assert created.created_at.tzinfo is not None

        found = adapter.execute(builder.build_get(product_context, created.id))
        assert found.id == created.id
        assert found.data == created.data

    def test_find_one_missing(self, adapter, builder, product_context):
        with pytest.raises(RecordNotFoundError):
            adapter.execute(builder.build_get(product_context, "000000000000000000000000"))

    def test_malformed_id_is_not_found(self, adapter, builder, product_context):
        with pytest.raises(RecordNotFoundError):
            adapter.execute(builder.build_get(product_context, "not-an-id"))

    def test_find_many_pages_newest_first(self, adapter, builder, product_context):
        for i in range(5):
            _create(adapter, builder, product_context, productName=f"P{i}", price=i)

        first = adapter.execute(builder.build_list(product_context, page=1, page_size=2))
        second = adapter.execute(builder.build_list(product_context, page=2, page_size=2))
        third = adapter.execute(builder.build_list(product_context, page=3, page_size=2))

        assert [len(first), len(second), len(third)] == [2, 2, 1]
        records = first + second + third
        assert len({r.id for r in records}) == 5
        timestamps = [r.created_at for r in records]
        assert timestamps == sorted(timestamps, reverse=True)

    def test_count(self, adapter, builder, product_context):
        assert adapter.execute(builder.build_count(product_context)) == 0
        for i in range(3):
            _create(adapter, builder, product_context, productName=f"P{i}", price=i)
        assert adapter.execute(builder.build_count(product_context)) == 3

    def test_update_replaces_data(self, adapter, builder, product_context):
        created = _create(adapter, builder, product_context, productName="Widget", price=1)
        updated = adapter.execute(
            builder.build_update(product_context, created.id, {"productName": "Gadget"})
        )

        assert updated.id == created.id
        assert updated.data == {"productName": "Gadget"}
        assert updated.updated_at >= created.updated_at
        assert adapter.execute(builder.build_get(product_context, created.id)).data == {
            "productName": "Gadget"
        }

    def test_update_missing(self, adapter, builder, product_context):
        with pytest.raises(RecordNotFoundError):
            adapter.execute(
                builder.build_update(product_context, "000000000000000000000000", {"price": 1})
            )

    def test_soft_delete(self, adapter, builder, product_context):
        """Soft-deleted records vanish from reads and counts; deleting twice fails."""
        created = _create(adapter, builder, product_context, productName="Widget", price=1)
        adapter.execute(builder.build_soft_delete(product_context, created.id))

        with pytest.raises(RecordNotFoundError):
            adapter.execute(builder.build_get(product_context, created.id))
        assert adapter.execute(builder.build_count(product_context)) == 0
        assert adapter.execute(builder.build_list(product_context)) == []

        with pytest.raises(RecordNotFoundError):
            adapter.execute(builder.build_soft_delete(product_context, created.id))
        with pytest.raises(RecordNotFoundError):
            adapter.execute(builder.build_update(product_context, created.id, {"price": 2}))

    def test_hard_delete(self, adapter, builder, product_context):
        created = _create(adapter, builder, product_context, productName="Widget", price=1)
        adapter.execute(builder.build_soft_delete(product_context, created.id))

        # Soft-deleted records can still be purged
        adapter.execute(builder.build_hard_delete(product_context, created.id))
        with pytest.raises(RecordNotFoundError):
            adapter.execute(builder.build_hard_delete(product_context, created.id))

    def test_wrong_descriptor_kind(self, adapter, builder, product_context):
        with pytest.raises(ValueError):
            adapter.find_one(builder.build_count(product_context))

    def test_health_check(self, adapter):
        if isinstance(adapter, DocumentAdapter):
            pytest.skip("mongomock does not implement the ping command")
        assert adapter.health_check() is True


class TestRelationalAdapter:
    """Relational specifics."""

    def test_records_share_one_table(self, connection, builder, product_context):
        adapter = RelationalAdapter(connection)
        created = _create(adapter, builder, product_context, productName="Widget", price=1)

        with connection.get_session() as session:
            row = session.get(RecordRow, created.id)
            assert row.storage_target == "product"
            assert row.entity_id == product_context.entity.id

    def test_driver_errors_become_storage_errors(self, connection, builder, product_context):
        adapter = RelationalAdapter(connection)
        adapter.initialize()
        RecordRow.__table__.drop(connection.engine)

        with pytest.raises(StorageError) as exc_info:
            _create(adapter, builder, product_context, productName="Widget", price=1)
        assert exc_info.value.backend == "relational"
        assert exc_info.value.operation == "create"


class _BrokenCollection:
    def insert_one(self, doc):
        raise PyMongoError("connection refused")


class TestDocumentAdapter:
    """Document specifics."""

    def test_one_collection_per_target(self, mongo_client, builder, product_context):
        adapter = DocumentAdapter(mongo_client, database="test_records")
        created = _create(adapter, builder, product_context, productName="Widget", price=1)

        doc = mongo_client["test_records"]["product"].find_one()
        assert str(doc["_id"]) == created.id
        assert doc["data"] == {"productName": "Widget", "price": 1}
        assert doc["is_deleted"] is False
        assert adapter.database_name == "test_records"

    def test_driver_errors_become_storage_errors(
        self, mongo_client, builder, product_context, monkeypatch
    ):
        adapter = DocumentAdapter(mongo_client)
        monkeypatch.setattr(adapter, "_collection", lambda descriptor: _BrokenCollection())

        with pytest.raises(StorageError) as exc_info:
            _create(adapter, builder, product_context, productName="Widget", price=1)
        assert exc_info.value.backend == "document"
        assert isinstance(exc_info.value.cause, PyMongoError)

    def test_oversized_integer_becomes_storage_error(self, mongo_client, builder, product_context):
        adapter = DocumentAdapter(mongo_client)

        with pytest.raises(StorageError) as exc_info:
            _create(adapter, builder, product_context, productName="Widget", price=2**70)
        assert exc_info.value.backend == "document"
        assert exc_info.value.operation == "create"
        assert isinstance(exc_info.value.cause, OverflowError)
        assert mongo_client["dynarecord"]["product"].count_documents({}) == 0

"""Tests for operation descriptors."""

import dataclasses

import pytest

from dynarecord.query.descriptor import (
    DEFAULT_ORDERING,
    MAX_PAGE_SIZE,
    DescriptorBuilder,
    OperationKind,
    coerce_pagination,
)


@pytest.fixture
def builder() -> DescriptorBuilder:
    return DescriptorBuilder()


class TestPagination:
    """Page/page size coercion."""

    @pytest.mark.parametrize(
        "page,page_size,expected",
        [
            (1, 10, (1, 10)),
            (3, 25, (3, 25)),
            (0, 10, (1, 10)),
            (-4, 10, (1, 10)),
            (1, 0, (1, 1)),
            (1, 1000, (1, MAX_PAGE_SIZE)),
            ("2", "5", (2, 5)),
            ("abc", None, (1, 10)),
        ],
    )
    def test_coerce_pagination(self, page, page_size, expected):
        assert coerce_pagination(page, page_size) == expected


class TestDescriptorBuilder:
    """Building descriptors from a schema context."""

    def test_build_list(self, builder, product_context):
        descriptor = builder.build_list(product_context, page=2, page_size=10)

        assert descriptor.kind == OperationKind.FIND_MANY
        assert descriptor.target == "product"
        assert descriptor.entity_name == "Product"
        assert dict(descriptor.filter) == {
            "entity_id": product_context.entity.id,
            "is_deleted": False,
        }
        assert descriptor.skip == 10
        assert descriptor.take == 10
        assert descriptor.order_by == DEFAULT_ORDERING

    def test_build_list_caps_page_size(self, builder, product_context):
        descriptor = builder.build_list(product_context, page=1, page_size=500)
        assert descriptor.take == MAX_PAGE_SIZE
        assert descriptor.skip == 0

    def test_build_count(self, builder, product_context):
        descriptor = builder.build_count(product_context)
        assert descriptor.kind == OperationKind.COUNT
        assert descriptor.skip is None
        assert descriptor.take is None

    def test_build_get(self, builder, product_context):
        descriptor = builder.build_get(product_context, "abc")
        assert descriptor.kind == OperationKind.FIND_ONE
        assert descriptor.record_id == "abc"
        assert descriptor.filter["is_deleted"] is False

    def test_build_create(self, builder, product_context):
        payload = {"productName": "Widget", "price": 9.5}
        descriptor = builder.build_create(product_context, payload)

        assert descriptor.kind == OperationKind.CREATE
        assert dict(descriptor.payload) == payload
        assert descriptor.record_id is None

        # The descriptor keeps its own copy
        payload["price"] = 1
        assert descriptor.payload["price"] == 9.5

    def test_build_update(self, builder, product_context):
        descriptor = builder.build_update(product_context, "abc", {"price": 3})
        assert descriptor.kind == OperationKind.UPDATE
        assert descriptor.record_id == "abc"
        assert dict(descriptor.payload) == {"price": 3}

    def test_build_soft_delete_only_targets_live_records(self, builder, product_context):
        descriptor = builder.build_soft_delete(product_context, "abc")
        assert descriptor.kind == OperationKind.SOFT_DELETE
        assert descriptor.filter["is_deleted"] is False

    def test_build_hard_delete_ignores_deleted_flag(self, builder, product_context):
        descriptor = builder.build_hard_delete(product_context, "abc")
        assert descriptor.kind == OperationKind.HARD_DELETE
        assert "is_deleted" not in descriptor.filter

    def test_descriptors_are_immutable(self, builder, product_context):
        descriptor = builder.build_get(product_context, "abc")
        with pytest.raises(dataclasses.FrozenInstanceError):
            descriptor.target = "other"  # type: ignore[misc]
        with pytest.raises(TypeError):
            descriptor.filter["id"] = "xyz"  # type: ignore[index]

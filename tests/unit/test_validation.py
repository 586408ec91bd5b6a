"""Tests for the validation engine."""

import json
from datetime import UTC, datetime
from decimal import Decimal

import pytest

from dynarecord.core.types import (
    EntityInfo,
    FieldInfo,
    SchemaContext,
    ViolationCode,
)
from dynarecord.exceptions import ValidationError
from dynarecord.validation.engine import ValidationEngine

VALID_CUSTOMER = {
    "fullname": "Ada Lovelace",
    "email": "ada@example.com",
    "age": 36,
    "vip": True,
    "joined": "2024-03-01T10:00:00",
    "status": "active",
}


def _context(*fields: FieldInfo) -> SchemaContext:
    entity = EntityInfo(id="e1", name="Thing", display_name="Thing", storage_target="thing")
    return SchemaContext(entity=entity, fields=fields)


def _field(name: str, type: str = "string", **kwargs) -> FieldInfo:
    return FieldInfo(
        id=f"f-{name}", entity_id="e1", name=name, display_name=name, type=type, **kwargs
    )


def _codes(engine, context, payload):
    return [(v.field_name, v.code) for v in engine.collect_violations(context, payload)]


@pytest.fixture
def engine() -> ValidationEngine:
    return ValidationEngine()


class TestRequired:
    """Presence checks."""

    def test_valid_payload(self, engine, customer_context):
        engine.validate(customer_context, VALID_CUSTOMER)

    def test_missing_required(self, engine, product_context):
        """The Product scenario: price alone is missing productName."""
        with pytest.raises(ValidationError) as exc_info:
            engine.validate(product_context, {"price": 29.99})

        violations = exc_info.value.violations
        assert len(violations) == 1
        assert violations[0].field_name == "productName"
        assert violations[0].code == ViolationCode.REQUIRED_FIELD_MISSING

    @pytest.mark.parametrize("blank", [None, ""])
    def test_blank_counts_as_missing(self, engine, product_context, blank):
        violations = engine.collect_violations(
            product_context, {"productName": blank, "price": 1}
        )
        assert [v.code for v in violations] == [ViolationCode.REQUIRED_FIELD_MISSING]

    def test_blank_optional_field_is_skipped(self, engine, customer_context):
        payload = dict(VALID_CUSTOMER, age=None, vip="", status=None)
        assert engine.collect_violations(customer_context, payload) == []

    def test_unknown_keys_are_ignored(self, engine, product_context):
        payload = {"productName": "Widget", "price": 5, "colour": "red"}
        assert engine.collect_violations(product_context, payload) == []


class TestAllViolationsCollected:
    """Every failing field is reported, in field order."""

    def test_collects_every_field(self, engine, customer_context):
        payload = {
            "fullname": "A",
            "email": "not-an-email",
            "age": "thirty",
            "vip": "yes",
            "joined": "yesterday",
            "status": "pending",
        }
        assert _codes(engine, customer_context, payload) == [
            ("fullname", ViolationCode.TOO_SHORT),
            ("email", ViolationCode.PATTERN_MISMATCH),
            ("age", ViolationCode.NOT_AN_INTEGER),
            ("vip", ViolationCode.NOT_A_BOOLEAN),
            ("joined", ViolationCode.NOT_A_DATETIME),
            ("status", ViolationCode.INVALID_ENUM_VALUE),
        ]

    def test_error_messages_use_display_name(self, engine):
        field = _field("fullname", required=True).model_copy(update={"display_name": "Full name"})
        with pytest.raises(ValidationError) as exc_info:
            engine.validate(_context(field), {})
        assert exc_info.value.messages == ["Field 'Full name' is required"]


class TestTypes:
    """Per-type checks."""

    @pytest.mark.parametrize(
        "value,ok",
        [("x" * 5, True), ("x" * 6, False), (5, False), ("ab", True), ("a", False)],
    )
    def test_string(self, engine, value, ok):
        context = _context(_field("code", max_length=5, min_length=2))
        assert (engine.collect_violations(context, {"code": value}) == []) is ok

    def test_pattern_must_match_whole_value(self, engine):
        context = _context(_field("code", pattern=r"\d{3}"))
        assert engine.collect_violations(context, {"code": "123"}) == []
        assert _codes(engine, context, {"code": "1234"}) == [
            ("code", ViolationCode.PATTERN_MISMATCH)
        ]

    def test_invalid_pattern_is_not_enforced(self, engine):
        context = _context(_field("code", pattern="[unclosed"))
        assert engine.collect_violations(context, {"code": "anything"}) == []

    @pytest.mark.parametrize(
        "value,ok",
        [
            (3, True),
            (3.0, True),
            (Decimal("4"), True),
            (10**400, True),
            (3.5, False),
            (float("inf"), False),
            (Decimal("sNaN"), False),
            ("3", False),
            (True, False),
        ],
    )
    def test_integer(self, engine, value, ok):
        context = _context(_field("count", "integer"))
        assert (engine.collect_violations(context, {"count": value}) == []) is ok

    @pytest.mark.parametrize(
        "value,ok",
        [
            (29.99, True),
            (3, True),
            ("12.50", True),
            (Decimal("1.1"), True),
            (10**400, True),
            ("1e400", True),
            ("abc", False),
            (float("nan"), False),
            (float("inf"), False),
            (Decimal("sNaN"), False),
            ("NaN", False),
            (False, False),
        ],
    )
    def test_decimal(self, engine, value, ok):
        context = _context(_field("price", "decimal"))
        assert (engine.collect_violations(context, {"price": value}) == []) is ok

    @pytest.mark.parametrize("value,ok", [(True, True), (False, True), ("true", False), (1, False)])
    def test_boolean(self, engine, value, ok):
        context = _context(_field("flag", "boolean"))
        assert (engine.collect_violations(context, {"flag": value}) == []) is ok

    @pytest.mark.parametrize(
        "value,ok",
        [
            ("2024-01-31", True),
            ("2024-01-31T12:30:00+00:00", True),
            (datetime(2024, 1, 31, tzinfo=UTC), True),
            ("31/01/2024", False),
            (20240131, False),
        ],
    )
    def test_datetime(self, engine, value, ok):
        context = _context(_field("when", "datetime"))
        assert (engine.collect_violations(context, {"when": value}) == []) is ok


class TestEnum:
    """Enum membership."""

    def test_enum_membership(self, engine, customer_context):
        base = dict(VALID_CUSTOMER)
        assert engine.collect_violations(customer_context, dict(base, status="inactive")) == []
        assert _codes(engine, customer_context, dict(base, status="pending")) == [
            ("status", ViolationCode.INVALID_ENUM_VALUE)
        ]

    def test_bool_does_not_match_int_option(self, engine):
        options = json.dumps([{"value": 1, "label": "One"}])
        context = _context(_field("level", "enum", options=options))
        assert engine.collect_violations(context, {"level": 1}) == []
        assert len(engine.collect_violations(context, {"level": True})) == 1

    @pytest.mark.parametrize("options", [None, "not json", json.dumps([{"label": "x"}])])
    def test_malformed_options_accept_nothing(self, engine, options):
        context = _context(_field("level", "enum", options=options))
        assert _codes(engine, context, {"level": "x"}) == [
            ("level", ViolationCode.INVALID_ENUM_VALUE)
        ]


class TestKeyCasing:
    """Payload keys match fields case-insensitively."""

    def test_case_insensitive_match(self, engine, product_context):
        assert engine.collect_violations(product_context, {"PRODUCTNAME": "W", "Price": 2}) == []

    def test_colliding_keys_are_rejected(self, engine, product_context):
        payload = {"productName": "A", "productname": "B", "price": 1}
        assert _codes(engine, product_context, payload) == [
            ("productName", ViolationCode.DUPLICATE_FIELD_KEY)
        ]

    def test_normalize_renames_to_declared_casing(self, engine, customer_context):
        normalized = engine.normalize(
            customer_context, {"FullName": "Ada", "EMAIL": "ada@example.com", "extra": 1}
        )
        assert normalized == {"fullname": "Ada", "email": "ada@example.com", "extra": 1}

    def test_normalize_rejects_collisions(self, engine, product_context):
        with pytest.raises(ValidationError):
            engine.normalize(product_context, {"price": 1, "PRICE": 2})


class TestPayloadShaping:
    """Defaults and merges."""

    def test_apply_defaults(self, engine, customer_context):
        result = engine.apply_defaults(customer_context, {"fullname": "Ada"})
        assert result == {"fullname": "Ada", "status": "active"}

    def test_defaults_do_not_override_supplied_values(self, engine, customer_context):
        result = engine.apply_defaults(customer_context, {"STATUS": "inactive"})
        assert result == {"STATUS": "inactive"}

    def test_merge_replaces_and_keeps(self, engine, product_context):
        existing = {"productName": "Widget", "price": 10, "notes": "x"}
        merged = engine.merge(product_context, existing, {"PRICE": 12})
        assert merged == {"productName": "Widget", "price": 12, "notes": "x"}

    def test_merge_adds_new_keys(self, engine, product_context):
        merged = engine.merge(product_context, {"productName": "Widget"}, {"price": 3})
        assert merged == {"productName": "Widget", "price": 3}

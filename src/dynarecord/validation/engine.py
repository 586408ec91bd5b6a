"""Validation engine for dynamic record payloads.

Checks an untyped key/value payload against the fields of a schema context:
- Keys are matched to fields case-insensitively
- Every violation across every field is collected, never just the first
- Broken metadata (invalid regex, malformed enum options) degrades to
  "constraint not enforced" and is logged instead of failing the request
"""

from __future__ import annotations

import json
import logging
import math
import re
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Any

from dynarecord.core.types import (
    FieldInfo,
    FieldType,
    FieldViolation,
    SchemaContext,
    ViolationCode,
)
from dynarecord.exceptions import ConfigurationWarning, ValidationError

logger = logging.getLogger(__name__)

_MISSING = object()


def _config_warning(message: str, *args: Any) -> None:
    logger.warning(message, *args, extra={"category": ConfigurationWarning.__name__})


@lru_cache(maxsize=256)
def _compile_pattern(pattern: str) -> re.Pattern[str] | None:
    try:
        return re.compile(pattern)
    except re.error as e:
        _config_warning("Ignoring invalid pattern %r: %s", pattern, e)
        return None


def _is_blank(value: Any) -> bool:
    return value is None or value is _MISSING or value == ""


def _violation(field: FieldInfo, code: ViolationCode, message: str) -> FieldViolation:
    return FieldViolation(field_name=field.name, code=code, message=message)


class ValidationEngine:
    """Validates and normalizes payloads against a schema context.

    Pure: no I/O, no state between calls.
    """

    def _field_index(self, context: SchemaContext) -> dict[str, FieldInfo]:
        index: dict[str, FieldInfo] = {}
        for field in context.fields:
            index.setdefault(field.name.lower(), field)
        return index

    def _resolve(
        self, context: SchemaContext, payload: Mapping[str, Any]
    ) -> tuple[dict[str, Any], dict[str, list[str]]]:
        """Map field name -> payload value, plus field name -> colliding keys."""
        index = self._field_index(context)
        values: dict[str, Any] = {}
        keys_seen: dict[str, list[str]] = {}

        for key, value in payload.items():
            field = index.get(key.lower())
            if field is None:
                continue
            keys_seen.setdefault(field.name, []).append(key)
            values[field.name] = value

        collisions = {name: keys for name, keys in keys_seen.items() if len(keys) > 1}
        return values, collisions

    def _collision_violations(
        self, context: SchemaContext, collisions: dict[str, list[str]]
    ) -> list[FieldViolation]:
        violations = []
        for field in context.fields:
            keys = collisions.get(field.name)
            if keys:
                violations.append(
                    _violation(
                        field,
                        ViolationCode.DUPLICATE_FIELD_KEY,
                        f"Field '{field.display_name}' was supplied more than once "
                        f"with different casing: {', '.join(keys)}",
                    )
                )
        return violations

    def collect_violations(
        self, context: SchemaContext, payload: Mapping[str, Any]
    ) -> list[FieldViolation]:
        """Return every violation of the payload, in field display order."""
        values, collisions = self._resolve(context, payload)
        violations = self._collision_violations(context, collisions)

        for field in context.fields:
            if field.name in collisions:
                continue
            value = values.get(field.name, _MISSING)

            if _is_blank(value):
                if field.required:
                    violations.append(
                        _violation(
                            field,
                            ViolationCode.REQUIRED_FIELD_MISSING,
                            f"Field '{field.display_name}' is required",
                        )
                    )
                continue

            violation = self._check_value(field, value)
            if violation is not None:
                violations.append(violation)

        return violations

    def validate(self, context: SchemaContext, payload: Mapping[str, Any]) -> None:
        """Validate a payload.

        Raises:
            ValidationError: Carrying every violation found
        """
        violations = self.collect_violations(context, payload)
        if violations:
            logger.debug(
                "Payload for %s rejected with %d violation(s)",
                context.entity_name,
                len(violations),
            )
            raise ValidationError(context.entity_name, violations)

    # === Type checks ===

    def _check_value(self, field: FieldInfo, value: Any) -> FieldViolation | None:
        try:
            kind = FieldType(field.type)
        except ValueError:
            _config_warning("Field %s has unknown type %r; not validated", field.name, field.type)
            return None

        if kind == FieldType.STRING:
            return self._check_string(field, value)
        if kind == FieldType.INTEGER:
            return self._check_integer(field, value)
        if kind == FieldType.DECIMAL:
            return self._check_decimal(field, value)
        if kind == FieldType.BOOLEAN:
            if isinstance(value, bool):
                return None
            return _violation(
                field,
                ViolationCode.NOT_A_BOOLEAN,
                f"Field '{field.display_name}' must be a boolean",
            )
        if kind == FieldType.DATETIME:
            return self._check_datetime(field, value)
        return self._check_enum(field, value)

    def _check_string(self, field: FieldInfo, value: Any) -> FieldViolation | None:
        if not isinstance(value, str):
            return _violation(
                field, ViolationCode.NOT_A_STRING, f"Field '{field.display_name}' must be a string"
            )
        if field.max_length is not None and len(value) > field.max_length:
            return _violation(
                field,
                ViolationCode.TOO_LONG,
                f"Field '{field.display_name}' exceeds maximum length of {field.max_length}",
            )
        if field.min_length is not None and len(value) < field.min_length:
            return _violation(
                field,
                ViolationCode.TOO_SHORT,
                f"Field '{field.display_name}' is below minimum length of {field.min_length}",
            )
        if field.pattern:
            compiled = _compile_pattern(field.pattern)
            if compiled is not None and compiled.fullmatch(value) is None:
                return _violation(
                    field,
                    ViolationCode.PATTERN_MISMATCH,
                    f"Field '{field.display_name}' format is invalid",
                )
        return None

    def _check_integer(self, field: FieldInfo, value: Any) -> FieldViolation | None:
        if isinstance(value, bool):
            ok = False
        elif isinstance(value, int):
            ok = True
        elif isinstance(value, float):
            ok = value.is_integer()
        elif isinstance(value, Decimal):
            ok = value.is_finite() and value == value.to_integral_value()
        else:
            ok = False
        if ok:
            return None
        return _violation(
            field, ViolationCode.NOT_AN_INTEGER, f"Field '{field.display_name}' must be an integer"
        )

    def _check_decimal(self, field: FieldInfo, value: Any) -> FieldViolation | None:
        if isinstance(value, bool):
            ok = False
        elif isinstance(value, int):
            ok = True
        elif isinstance(value, float):
            ok = math.isfinite(value)
        elif isinstance(value, Decimal):
            ok = value.is_finite()
        elif isinstance(value, str) and value.strip():
            try:
                ok = Decimal(value.strip()).is_finite()
            except InvalidOperation:
                ok = False
        else:
            ok = False

        if ok:
            return None
        return _violation(
            field,
            ViolationCode.NOT_A_DECIMAL,
            f"Field '{field.display_name}' must be a decimal number",
        )

    def _check_datetime(self, field: FieldInfo, value: Any) -> FieldViolation | None:
        if isinstance(value, datetime | date):
            return None
        if isinstance(value, str):
            try:
                datetime.fromisoformat(value.strip())
                return None
            except ValueError:
                pass
        return _violation(
            field,
            ViolationCode.NOT_A_DATETIME,
            f"Field '{field.display_name}' must be a valid date",
        )

    def enum_values(self, field: FieldInfo) -> list[Any]:
        """Allowed values of an enum field; malformed options allow nothing."""
        if not field.options:
            _config_warning("Enum field %s has no options; no value is valid", field.name)
            return []
        try:
            options = json.loads(field.options)
            return [option["value"] for option in options]
        except (ValueError, TypeError, KeyError) as e:
            _config_warning("Failed to parse enum options for field %s: %s", field.name, e)
            return []

    def _check_enum(self, field: FieldInfo, value: Any) -> FieldViolation | None:
        # bool is an int subclass; keep True from matching 1
        is_bool = isinstance(value, bool)
        if any(v == value and isinstance(v, bool) == is_bool for v in self.enum_values(field)):
            return None
        return _violation(
            field,
            ViolationCode.INVALID_ENUM_VALUE,
            f"Field '{field.display_name}' has invalid value",
        )

    # === Payload shaping ===

    def normalize(self, context: SchemaContext, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Rename field keys to the metadata's declared casing.

        Unknown keys pass through unchanged and in their original position.

        Raises:
            ValidationError: If two keys name the same field with different casing
        """
        _, collisions = self._resolve(context, payload)
        if collisions:
            raise ValidationError(
                context.entity_name, self._collision_violations(context, collisions)
            )

        index = self._field_index(context)
        normalized: dict[str, Any] = {}
        for key, value in payload.items():
            field = index.get(key.lower())
            normalized[field.name if field else key] = value
        return normalized

    def apply_defaults(
        self, context: SchemaContext, payload: Mapping[str, Any]
    ) -> dict[str, Any]:
        """Fill in declared default values for fields the payload omits."""
        index = self._field_index(context)
        present = {index[k.lower()].name for k in payload if k.lower() in index}
        result = dict(payload)

        for field in context.fields:
            if field.default_value is None or field.name in present:
                continue
            try:
                result[field.name] = json.loads(field.default_value)
            except ValueError:
                _config_warning(
                    "Default for field %s is not JSON; using it as a string", field.name
                )
                result[field.name] = field.default_value
        return result

    def merge(
        self,
        context: SchemaContext,
        existing: Mapping[str, Any],
        incoming: Mapping[str, Any],
    ) -> dict[str, Any]:
        """Merge an update into existing record data.

        Incoming keys replace existing keys of the same field regardless of
        casing; keys the update omits are kept.

        Raises:
            ValidationError: If the update names one field twice with different casing
        """
        updates = self.normalize(context, incoming)
        index = self._field_index(context)

        def slot(key: str) -> str:
            field = index.get(key.lower())
            return field.name if field else key

        pending = dict(updates)
        merged: dict[str, Any] = {}
        for key, value in existing.items():
            target = slot(key)
            if target in pending:
                if target not in merged:
                    merged[target] = pending.pop(target)
            elif target in updates:
                continue
            else:
                merged[key] = value
        merged.update(pending)
        return merged

"""Input parsing utilities for CLI commands."""

import json
from pathlib import Path
from typing import Any

_FLAGS = ("required", "unique")
_INT_MODIFIERS = {"max": "max_length", "min": "min_length", "order": "display_order"}


def _json_or_text(value: str) -> Any:
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


def parse_field_spec(spec: str) -> dict[str, Any]:
    """Parse field specification string.

    Format: name:type[:modifier1][:modifier2]...

    Modifiers: required, unique, max=N, min=N, order=N, default=value,
    options=a|b|c (enum), label=Display Name, pattern=REGEX. ``pattern``
    takes the rest of the spec, colons included, so it must come last.

    Examples:
        "email:string:required:max=255"
        "status:enum:options=active|inactive:default=\"active\""
        "code:string:pattern=[A-Z]{3}-\\d+"

    Args:
        spec: Field specification string

    Returns:
        Field dictionary accepted by FieldSpec

    Raises:
        ValueError: If spec format is invalid
    """
    parts = spec.split(":")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise ValueError(f"Invalid field spec: '{spec}'. Expected format: name:type[:modifier]...")

    field: dict[str, Any] = {
        "name": parts[0],
        "type": parts[1].lower(),
        "required": False,
        "unique": False,
    }

    modifiers = parts[2:]
    for i, modifier in enumerate(modifiers):
        if modifier.startswith("pattern="):
            field["pattern"] = ":".join([modifier[len("pattern=") :], *modifiers[i + 1 :]])
            break
        if modifier in _FLAGS:
            field[modifier] = True
        elif "=" in modifier:
            key, value = modifier.split("=", 1)
            if key in _INT_MODIFIERS:
                try:
                    field[_INT_MODIFIERS[key]] = int(value)
                except ValueError:
                    raise ValueError(f"Modifier '{key}' needs an integer, got '{value}'") from None
            elif key == "default":
                field["default"] = _json_or_text(value)
            elif key == "options":
                field["options"] = [{"value": v} for v in value.split("|") if v]
            elif key == "label":
                field["display_name"] = value
            else:
                raise ValueError(f"Invalid modifier: '{modifier}'")
        else:
            raise ValueError(
                f"Invalid modifier: '{modifier}'. Supported: required, unique, max=N, min=N, "
                "order=N, default=value, options=a|b, label=text, pattern=regex"
            )

    return field


def parse_json_object(text: str) -> dict[str, Any]:
    """Parse an inline JSON object.

    Raises:
        ValueError: If the text is not a JSON object
    """
    value = json.loads(text)
    if not isinstance(value, dict):
        raise ValueError("Record data must be a JSON object")
    return value


def read_json_file(path: str) -> dict[str, Any]:
    """Read single JSON object from file.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON object

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If file contains invalid JSON or not an object
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    with file_path.open("r") as f:
        return parse_json_object(f.read())


def read_jsonl_file(path: str) -> list[dict[str, Any]]:
    """Read JSON Lines (JSONL) file.

    Each line should contain a separate JSON object.

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If any line is not a JSON object
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    records = []
    with file_path.open("r") as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                records.append(parse_json_object(line))
            except ValueError as e:
                raise ValueError(f"Invalid JSON object on line {line_num}: {e}") from e

    return records

from __future__ import annotations

import json
from typing import Any, Dict

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError

from .errors import SchemaValidationError


def is_json(text: str) -> bool:
    try:
        json.loads(text)
    except (TypeError, ValueError):
        return False
    return True


def parse_json_object(json_text: str) -> Dict[str, Any]:
    try:
        payload = json.loads(json_text)
    except (TypeError, ValueError) as exc:
        raise SchemaValidationError(f"invalid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise SchemaValidationError("invalid JSON: top-level value must be an object")
    return payload


class SchemaValidator:
    """Validates model output against a template's JSON Schema (draft 7)."""

    def __init__(self, max_reported_errors: int = 5) -> None:
        self.max_reported_errors = max_reported_errors

    def validate(self, json_text: str, schema: Dict[str, Any]) -> None:
        try:
            payload = json.loads(json_text)
        except (TypeError, ValueError) as exc:
            raise SchemaValidationError(f"invalid JSON: {exc}") from exc
        try:
            Draft7Validator.check_schema(schema)
        except SchemaError as exc:
            raise SchemaValidationError(f"invalid schema: {exc.message}") from exc
        validator = Draft7Validator(schema)
        errors = sorted(
            validator.iter_errors(payload), key=lambda err: [str(part) for part in err.path]
        )
        if not errors:
            return
        first_field = "/".join(map(str, errors[0].path))
        messages = "; ".join(
            f"{'/'.join(map(str, err.path)) or '<root>'}: {err.message}"
            for err in errors[: self.max_reported_errors]
        )
        if first_field:
            detail = f"validation failed at field '{first_field}': {messages}"
        else:
            detail = f"validation failed: {messages}"
        raise SchemaValidationError(detail, field=first_field)

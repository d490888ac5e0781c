from __future__ import annotations

import json
import re
from typing import Any, Dict, Mapping

FIELD_PATTERN = re.compile(r'<!--\s*data-field="([^"]+)"\s*-->')


def flatten_fields(fields: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    for key, value in fields.items():
        full_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(flatten_fields(value, full_key))
        else:
            flat[full_key] = value
    return flat


def render_html(html_template: str, fields: Mapping[str, Any]) -> str:
    """Replace `<!-- data-field="a.b" -->` markers; unknown markers stay as they are."""
    flat = flatten_fields(fields)

    def replace(match: re.Match) -> str:
        path = match.group(1)
        if path not in flat:
            return match.group(0)
        value = flat[path]
        if isinstance(value, str):
            return value
        return json.dumps(value, ensure_ascii=False)

    return FIELD_PATTERN.sub(replace, html_template)

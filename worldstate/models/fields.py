"""
Shared field types for world-state models.

Free-form maps (location state, world state, item properties, event payloads)
are stored as JSON text at the storage boundary. Reading them back is lenient:
a missing or malformed payload becomes an empty map instead of an error.
"""

from __future__ import annotations

import json
from typing import Annotated, Any

from pydantic import BeforeValidator


def parse_json_map(value: Any) -> dict[str, Any]:
    """Coerce a stored payload into a string-keyed map."""
    if value is None:
        return {}
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="replace")
    if isinstance(value, str):
        if not value.strip():
            return {}
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return {}
    if not isinstance(value, dict):
        return {}
    return {str(key): item for key, item in value.items()}


JsonMap = Annotated[dict[str, Any], BeforeValidator(parse_json_map)]
"""A string-keyed map of JSON-compatible values, parsed leniently."""

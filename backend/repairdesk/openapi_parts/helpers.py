"""Helper functions for the OpenAPI builder."""
from typing import Any, Dict

from .constants import SCHEMA_FIELDS, SCHEMA_TRANSITIONS


def entity_schema(name: str) -> Dict[str, Any]:
    props: Dict[str, Any] = {"id": {"type": "integer"}}
    for field, typ in SCHEMA_FIELDS.get(name, {}).items():
        props[field] = {"type": typ}
    schema: Dict[str, Any] = {"type": "object", "properties": props, "required": ["id"]}
    if name in SCHEMA_TRANSITIONS:
        schema["x-transitions"] = list(SCHEMA_TRANSITIONS[name])
    return schema


def caching_headers() -> Dict[str, Any]:
    return {
        "ETag": {"schema": {"type": "string"}},
        "Last-Modified": {"schema": {"type": "string"}},
        "X-Last-Modified-ISO": {"schema": {"type": "string"}},
    }


def path_param(name: str) -> Dict[str, Any]:
    return {"name": name, "in": "path", "required": True, "schema": {"type": "integer"}}


__all__ = ["entity_schema", "caching_headers", "path_param"]

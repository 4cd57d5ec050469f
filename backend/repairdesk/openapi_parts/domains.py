"""Per-entity path builders for the OpenAPI document.

Fragments are emitted in a fixed order:
- list path first (GET, HEAD, POST)
- single-resource path next (GET, HEAD, PUT, DELETE)
- then action endpoints in registry order

Keeping the order stable keeps the generated document diffable.
"""
from typing import Any, Dict, List

from .constants import ACTION_REGISTRY, MANAGE_PERMISSION, SORT_PARAM_MAP
from .helpers import caching_headers, path_param


def _ref(schema_name: str) -> Dict[str, Any]:
    return {"$ref": f"#/components/schemas/{schema_name}"}


def build_entity_paths(schema_name: str, list_path: str, id_param: str, read_perm: str) -> Dict[str, Any]:
    paths: Dict[str, Any] = {}
    single_path = f"{list_path}/{{{id_param}}}"
    coll = list_path.rstrip("/").rsplit("/", 1)[-1]
    writes = MANAGE_PERMISSION.get(schema_name, {})

    list_params: List[Dict[str, Any]] = [
        {"$ref": "#/components/parameters/LimitParam"},
        {"$ref": "#/components/parameters/OffsetParam"},
        {"$ref": "#/components/parameters/SearchParam"},
    ]
    if SORT_PARAM_MAP.get(schema_name):
        list_params.append({"$ref": f"#/components/parameters/{SORT_PARAM_MAP[schema_name]}"})

    paths[list_path] = {
        "get": {
            "summary": f"List {coll.replace('-', ' ')}",
            "parameters": list_params,
            "responses": {
                "200": {
                    "description": "OK",
                    "headers": caching_headers(),
                    "content": {
                        "application/json": {
                            "schema": {
                                "type": "object",
                                "properties": {
                                    "data": {"type": "array", "items": _ref(schema_name)},
                                    "pagination": {"$ref": "#/components/schemas/Pagination"},
                                },
                            }
                        }
                    },
                },
                "304": {"description": "Not Modified"},
                "400": {"$ref": "#/components/responses/BadRequest"},
            },
            "x-required-permissions": [read_perm],
        },
        "head": {
            "summary": f"{schema_name} list validators",
            "responses": {
                "200": {"description": "Headers only", "headers": caching_headers()},
                "304": {"description": "Not Modified"},
            },
            "x-required-permissions": [read_perm],
        },
    }
    if "post" in writes:
        paths[list_path]["post"] = {
            "summary": f"Create {schema_name}",
            "requestBody": {"content": {"application/json": {"schema": _ref(schema_name)}}},
            "responses": {
                "201": {"description": "Created", "content": {"application/json": {"schema": _ref(schema_name)}}},
                "400": {"$ref": "#/components/responses/BadRequest"},
            },
            "x-required-permissions": [writes["post"]],
        }

    params = [path_param(id_param)]
    paths[single_path] = {
        "get": {
            "summary": f"Get {schema_name}",
            "parameters": params,
            "responses": {
                "200": {
                    "description": "OK",
                    "headers": caching_headers(),
                    "content": {"application/json": {"schema": _ref(schema_name)}},
                },
                "304": {"description": "Not Modified"},
                "404": {"$ref": "#/components/responses/NotFound"},
            },
            "x-required-permissions": [read_perm],
        },
        "head": {
            "summary": f"{schema_name} validators",
            "parameters": params,
            "responses": {
                "200": {"description": "Headers only", "headers": caching_headers()},
                "304": {"description": "Not Modified"},
                "404": {"$ref": "#/components/responses/NotFound"},
            },
            "x-required-permissions": [read_perm],
        },
    }
    if "put" in writes:
        paths[single_path]["put"] = {
            "summary": f"Update {schema_name}",
            "parameters": params,
            "requestBody": {"content": {"application/json": {"schema": _ref(schema_name)}}},
            "responses": {
                "200": {"description": "OK", "content": {"application/json": {"schema": _ref(schema_name)}}},
                "400": {"$ref": "#/components/responses/BadRequest"},
                "404": {"$ref": "#/components/responses/NotFound"},
            },
            "x-required-permissions": [writes["put"]],
        }
    if "delete" in writes:
        paths[single_path]["delete"] = {
            "summary": f"Delete {schema_name}",
            "parameters": params,
            "responses": {
                "200": {"description": "Deleted"},
                "404": {"$ref": "#/components/responses/NotFound"},
            },
            "x-required-permissions": [writes["delete"]],
        }

    for spec in ACTION_REGISTRY.get(schema_name, []):
        act_path = f"{single_path}/{spec['action']}"
        paths[act_path] = {
            spec["method"]: {
                "summary": spec["summary"],
                "parameters": params,
                "responses": {
                    "200": {"description": "OK", "content": {"application/json": {"schema": _ref(schema_name)}}},
                    "400": {"$ref": "#/components/responses/BadRequest"},
                    "404": {"$ref": "#/components/responses/NotFound"},
                },
                "x-required-permissions": [spec["permission"]],
            }
        }

    return paths


__all__ = ["build_entity_paths"]

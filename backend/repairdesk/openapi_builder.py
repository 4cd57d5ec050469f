"""Deterministic OpenAPI document builder.

Scope:
- Auth endpoints: /iam/auth/login (POST), /iam/auth/me (GET)
- For each tracked entity: list, single resource and action endpoints with caching headers
- Read-only report and navigation endpoints, plus the job parts and repair log subresources
- Per-user state endpoints under /state

This is the canonical builder module; `repairdesk/openapi.py` re-exports from here.
"""
from typing import Any, Dict
from .openapi_parts.constants import ENTITIES, SORT_DETAILS, EXTRA_GETS
from .openapi_parts.helpers import entity_schema, caching_headers, path_param
from .openapi_parts.domains import build_entity_paths

__all__ = ["build_openapi_spec"]


def _state_paths() -> Dict[str, Any]:
    key_param = {"name": "key", "in": "path", "required": True, "schema": {"type": "string", "maxLength": 128}}
    return {
        "/state": {"get": {"summary": "List stored state keys", "responses": {"200": {"description": "OK"}}}},
        "/state/{key}": {
            "get": {"summary": "Read a stored value", "parameters": [key_param], "responses": {"200": {"description": "OK"}}},
            "put": {
                "summary": "Store a value",
                "parameters": [key_param],
                "responses": {
                    "200": {"description": "OK"},
                    "400": {"$ref": "#/components/responses/BadRequest"},
                    "503": {"description": "State not saved"},
                },
            },
            "delete": {"summary": "Remove a stored value", "parameters": [key_param], "responses": {"200": {"description": "OK"}}},
        },
    }


def _job_subresource_paths() -> Dict[str, Any]:
    return {
        "/jobs/{job_id}/parts/{item_id}": {
            "delete": {
                "summary": "Detach a part and restore stock",
                "parameters": [path_param("job_id"), path_param("item_id")],
                "responses": {"200": {"description": "OK"}, "404": {"$ref": "#/components/responses/NotFound"}},
                "x-required-permissions": ["INV.USE"],
            }
        },
        "/jobs/{job_id}/log": {
            "get": {
                "summary": "Repair log with total minutes and external cost",
                "parameters": [path_param("job_id")],
                "responses": {"200": {"description": "OK"}, "404": {"$ref": "#/components/responses/NotFound"}},
                "x-required-permissions": ["JOB.READ"],
            },
            "post": {
                "summary": "Append a repair log entry",
                "parameters": [path_param("job_id")],
                "responses": {
                    "201": {"description": "Created"},
                    "400": {"$ref": "#/components/responses/BadRequest"},
                    "404": {"$ref": "#/components/responses/NotFound"},
                },
                "x-required-permissions": ["JOB.UPDATE"],
            },
        },
    }


def build_openapi_spec() -> Dict[str, Any]:
    schemas = {e[0]: entity_schema(e[0]) for e in ENTITIES}

    components: Dict[str, Any] = {
        "schemas": schemas
        | {
            "Pagination": {
                "type": "object",
                "properties": {
                    "total": {"type": "integer"},
                    "limit": {"type": "integer"},
                    "offset": {"type": "integer"},
                    "returned": {"type": "integer"},
                },
                "required": ["total", "limit", "offset", "returned"],
            },
            "Error": {
                "type": "object",
                "properties": {
                    "error": {
                        "type": "object",
                        "properties": {
                            "status": {"type": "integer"},
                            "title": {"type": "string"},
                            "detail": {"type": "string"},
                        },
                    }
                },
                "required": ["error"],
            },
        },
        "responses": {"NotFound": {"description": "Not Found"}, "BadRequest": {"description": "Bad Request"}},
        "securitySchemes": {"BearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}},
        "parameters": {},
    }

    params = components["parameters"]
    params.update({
        "LimitParam": {"name": "limit", "in": "query", "schema": {"type": "integer", "default": 50}},
        "OffsetParam": {"name": "offset", "in": "query", "schema": {"type": "integer", "default": 0}},
        "SearchParam": {"name": "q", "in": "query", "schema": {"type": "string"}, "description": "Case-insensitive search"},
    })
    for pname, desc in SORT_DETAILS.items():
        params[pname] = {"name": "sort", "in": "query", "schema": {"type": "string"}, "description": desc}

    paths: Dict[str, Any] = {
        "/iam/auth/login": {"post": {"summary": "Login", "security": [], "responses": {"200": {"description": "JWT issued"}}}},
        "/iam/auth/me": {"get": {"summary": "Current user", "responses": {"200": {"description": "OK"}}}},
    }

    for schema_name, list_path, id_param, read_perm in ENTITIES:
        for k, v in build_entity_paths(schema_name, list_path, id_param, read_perm).items():
            paths[k] = v

    paths.update(_job_subresource_paths())
    for path, (summary, perm) in EXTRA_GETS.items():
        op: Dict[str, Any] = {
            "summary": summary,
            "responses": {"200": {"description": "OK", "headers": caching_headers()}},
        }
        if perm:
            op["x-required-permissions"] = [perm]
        paths.setdefault(path, {})["get"] = op
    paths.update(_state_paths())

    # operationIds & tags
    tag_desc: Dict[str, str] = {}
    for path, ops in paths.items():
        tag = path.split("/")[1].capitalize()
        for method, od in ops.items():
            rid = path.strip("/").replace("/", "_").replace("{", "").replace("}", "").replace("-", "_")
            od["operationId"] = f"auto_{method}_{rid}"
            od["tags"] = [tag]
        tag_desc[tag] = f"{tag} endpoints"

    return {
        "openapi": "3.0.3",
        "info": {"title": "RepairDesk API", "version": "0.1.0"},
        "paths": paths,
        "components": components,
        "security": [{"BearerAuth": []}],
        "tags": [{"name": n, "description": d} for n, d in sorted(tag_desc.items())],
    }

"""OpenAPI schema enrichment.

Declares the admin token header as a security scheme, attaches it to the
mutating operations (reads stay public) and adds tag descriptions.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

ADMIN_SCHEME = "AdminToken"
_MUTATING_METHODS = frozenset({"post", "put", "patch", "delete"})

_ADMIN_SECURITY_SCHEME = {
    "type": "apiKey",
    "in": "header",
    "name": "X-Admin-Token",
    "description": "Admin token, required by the bulk upload endpoint. "
    "`Authorization: Bearer <token>` is accepted as well.",
}

TAGS_METADATA = (
    {"name": "Chapters", "description": "Chapter listing, lookup and bulk upload."},
    {"name": "Health", "description": "Welcome and liveness endpoints."},
)


def _add_tags(schema: Dict[str, Any]) -> None:
    tags = schema.setdefault("tags", [])
    known = {tag.get("name") for tag in tags}
    tags.extend(dict(tag) for tag in TAGS_METADATA if tag["name"] not in known)


def _secure_mutating_operations(schema: Dict[str, Any]) -> None:
    for operations in schema.get("paths", {}).values():
        for method, operation in operations.items():
            if method in _MUTATING_METHODS and isinstance(operation, dict):
                operation["security"] = [{ADMIN_SCHEME: []}]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Wrap ``app.openapi`` so the generated schema carries the extras."""

    generate = app.openapi

    def openapi_with_extras() -> Dict[str, Any]:
        schema = generate()
        schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
        schemes.setdefault(ADMIN_SCHEME, dict(_ADMIN_SECURITY_SCHEME))
        _add_tags(schema)
        _secure_mutating_operations(schema)
        return schema

    app.openapi = openapi_with_extras  # type: ignore[assignment]

"""OpenAPI customization utilities.

Enriches the generated schema with tag descriptions and documents the
``429 Too Many Requests`` response on every rate-limited operation.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

TAGS_METADATA = [
    {
        "name": "Rate Limits",
        "description": "Configured per-client request policies.",
    },
    {
        "name": "Health",
        "description": "Liveness checks. Not rate limited.",
    },
]

TOO_MANY_REQUESTS_RESPONSE: Dict[str, Any] = {
    "description": "Rate limit exceeded. Retry after the number of seconds "
    "given in the Retry-After header.",
    "headers": {
        "Retry-After": {
            "description": "Seconds until the client's current window ends.",
            "schema": {"type": "integer"},
        }
    },
}


def apply_openapi_customizations(app: FastAPI, *, limited_prefix: str = "/api") -> None:
    """Patch FastAPI's OpenAPI generation to add tags and 429 responses.

    Args:
        app: Application whose schema is patched.
        limited_prefix: Paths under this prefix get the 429 response documented.
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing = {t.get("name") for t in tags}
        tags.extend(t for t in TAGS_METADATA if t["name"] not in existing)

        for path, methods in schema.get("paths", {}).items():
            if not path.startswith(limited_prefix):
                continue
            for operation in methods.values():
                if isinstance(operation, dict):
                    operation.setdefault("responses", {}).setdefault(
                        "429", TOO_MANY_REQUESTS_RESPONSE
                    )

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]

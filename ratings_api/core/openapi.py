"""OpenAPI customization utilities.

Enriches the generated schema with tag descriptions and documents the 429
response shared by every rate-limited operation. Kept apart from the app
factory so documentation concerns stay out of app construction.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_TAGS = [
    {
        "name": "Companies",
        "description": "Anonymous votes on employers and aggregate reads.",
    },
    {
        "name": "Health",
        "description": "Liveness check.",
    },
]

_RATE_LIMITED_RESPONSE = {
    "description": "Too many requests for this action class in the current window.",
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and 429 responses."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        tags.extend(tag for tag in _TAGS if tag["name"] not in existing_tag_names)

        for path, methods in schema.get("paths", {}).items():
            if path.endswith("/health"):
                continue
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj.setdefault("responses", {}).setdefault("429", _RATE_LIMITED_RESPONSE)

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]

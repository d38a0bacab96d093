"""OpenAPI metadata and customization utilities.

Enriches the generated OpenAPI schema with:
- tags metadata
- a shared ``RateLimitExceeded`` response and ``X-RateLimit-*`` header
  components, attached to every operation under a rate limited prefix

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from school_api.services.limiter_registry import path_matches

_RATE_LIMIT_HEADERS: Dict[str, Dict[str, Any]] = {
    "X-RateLimit-Limit": {
        "description": "Requests allowed per window.",
        "schema": {"type": "integer"},
    },
    "X-RateLimit-Remaining": {
        "description": "Requests left in the current window (never negative).",
        "schema": {"type": "integer"},
    },
    "X-RateLimit-Reset": {
        "description": "UNIX epoch milliseconds when the window resets.",
        "schema": {"type": "integer"},
    },
}

_TAGS = [
    {"name": "Rate limits", "description": "Configured limiters and their usage."},
    {"name": "Health", "description": "Liveness checks (never rate limited)."},
]


def _rate_limited_prefixes(app: FastAPI) -> list[str]:
    registry = getattr(app.state, "rate_limiters", None)
    if registry is None:
        return []
    return [prefix for name in registry.names() for prefix in registry.paths_for(name)]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to document throttling.

    - Adds ``components.headers`` for the rate limit headers and a
      ``components.responses.RateLimitExceeded`` (429) response
    - References the 429 response from every operation whose path is guarded
      by a mounted limiter
    - Adds tags metadata if not present
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        components = schema.setdefault("components", {})
        headers = components.setdefault("headers", {})
        for name, header in _RATE_LIMIT_HEADERS.items():
            headers.setdefault(name, header)

        responses = components.setdefault("responses", {})
        responses.setdefault(
            "RateLimitExceeded",
            {
                "description": "Too many requests from this client in the current window.",
                "headers": {
                    "Retry-After": {
                        "description": "Seconds until the window resets.",
                        "schema": {"type": "integer"},
                    },
                    **{name: {"$ref": f"#/components/headers/{name}"} for name in _RATE_LIMIT_HEADERS},
                },
                "content": {
                    "application/json": {
                        "example": {
                            "success": False,
                            "message": "Too many API requests. Please wait a moment.",
                            "code": "RATE_LIMIT_EXCEEDED",
                            "retryAfter": 42,
                        }
                    }
                },
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in _TAGS:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        prefixes = _rate_limited_prefixes(app)
        for path, methods in schema.get("paths", {}).items():
            if not any(path_matches(path, prefix) for prefix in prefixes):
                continue
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj.setdefault("responses", {})["429"] = {
                        "$ref": "#/components/responses/RateLimitExceeded"
                    }

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]

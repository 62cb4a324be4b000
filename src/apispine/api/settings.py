"""
API-specific settings.

Extends :class:`~apispine.core.settings.ApiSpineBaseSettings` with the
parameters that govern the HTTP transport (bind address, prefix, CORS).

All values can be overridden via environment variables prefixed with
``APISPINE_``.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field

from apispine.core.settings import ApiSpineBaseSettings


class ApiSettings(ApiSpineBaseSettings):
    """Settings for the HTTP adapter.

    Order of precedence (highest → lowest):
        1. Environment variables (``APISPINE_API_PREFIX``, etc.)
        2. ``.env`` file
        3. Defaults below
    """

    # ── Server ───────────────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8000, description="Bind port")

    # ── API ──────────────────────────────────────────────────────────────
    api_prefix: str = Field(default="/api", description="URL prefix in front of /v{version}/{controller}/{action}")
    api_title: str = Field(default="api-spine", description="OpenAPI title")
    api_version: str = Field(default="0.1.0", description="OpenAPI version string")

    # ── CORS ─────────────────────────────────────────────────────────────
    cors_origins: list[str] = Field(default=["*"], description="Allowed CORS origins")


@lru_cache(maxsize=1)
def get_settings() -> ApiSettings:
    """Cached settings: loaded once per process."""
    return ApiSettings()

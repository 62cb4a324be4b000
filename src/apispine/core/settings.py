"""Shared base settings for api-spine.

Every process hosting an api-spine registry shares a few configuration
needs (log level and format, runtime environment, registry reload mode).
``ApiSpineBaseSettings`` provides these as a base class so the transport
adapter only declares its own fields.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked at startup, not runtime
    - **Environment-driven:** Reads ``APISPINE_*`` env vars and .env files
    - **Sensible defaults:** Works out of the box for development

Examples:
    >>> from apispine.core.settings import ApiSpineBaseSettings
    >>> ApiSpineBaseSettings(environment="development").include_error_details
    True

Tags:
    settings, configuration, pydantic, environment, api-spine
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ApiSpineBaseSettings(BaseSettings):
    """Common settings shared by the dispatcher, the API and the CLI.

    Fields
    ──────
    debug                  : Force DEBUG logging regardless of ``log_level``
    log_level              : Structlog log level
    log_format             : ``console`` for development, ``json`` for aggregation
    environment            : ``development`` exposes internal error details
    reload_on_each_request : Rebuild the registry before every dispatch
    """

    model_config = SettingsConfigDict(
        env_prefix="APISPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    debug: bool = False
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"

    # ── Runtime ──────────────────────────────────────────────────
    environment: Literal["development", "production"] = "production"
    reload_on_each_request: bool = Field(
        default=False,
        description="Rebuild the registry from its loader before every request",
    )

    @property
    def include_error_details(self) -> bool:
        return self.environment == "development"

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug else self.log_level.upper()


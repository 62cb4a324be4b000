"""
api-spine core - error taxonomy and shared settings.

Settings are imported lazily (``from apispine.core.settings import ...``)
so the error module stays importable without pydantic-settings loaded.
"""

from apispine.core.errors import (
    AccessDeniedError,
    ApiSpineError,
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
    HelperNotFoundError,
    InternalError,
    NotFoundError,
    ParameterError,
    RequestError,
    RoutingError,
    ValidationError,
    error_for,
)

__all__ = [
    "ApiSpineError",
    "ErrorCategory",
    "ErrorContext",
    "RequestError",
    "NotFoundError",
    "AccessDeniedError",
    "ValidationError",
    "ParameterError",
    "ConfigurationError",
    "HelperNotFoundError",
    "RoutingError",
    "InternalError",
    "error_for",
]

"""
api-spine - versioned structures and actions for JSON APIs.

Declare named, versioned serializers ("structures") and request handlers
("actions") once; api-spine handles detail levels, client-negotiated
expansions, access checks, parameter defaults and error envelopes.
"""

__version__ = "0.1.0"

from apispine.core.errors import (
    AccessDeniedError,
    ApiSpineError,
    ConfigurationError,
    NotFoundError,
    ParameterError,
    RequestError,
    ValidationError,
)
from apispine.framework import (
    Dispatcher,
    EvalContext,
    ParamDef,
    Registry,
    RegistryBuilder,
    RegistryHolder,
    Request,
)

__all__ = [
    "__version__",
    "ApiSpineError",
    "RequestError",
    "NotFoundError",
    "AccessDeniedError",
    "ValidationError",
    "ParameterError",
    "ConfigurationError",
    "Dispatcher",
    "EvalContext",
    "ParamDef",
    "Registry",
    "RegistryBuilder",
    "RegistryHolder",
    "Request",
]

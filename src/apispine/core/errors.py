"""
Structured error types for api-spine.

Every failure that can leave the dispatch pipeline is one of the classes
below. Each carries a wire ``kind`` (the ``status`` string placed in the
response envelope), an ``ErrorCategory`` for logging and routing, an
``ErrorContext`` with dispatch metadata, and an optional chained cause.

Manifesto:
    - **Typed taxonomy:** Client errors, definition errors and internal
      failures are distinct classes, never inferred from messages
    - **Accumulating detail:** Validation and parameter errors carry every
      ``{field, message}`` violation found, not just the first
    - **Rich context:** Errors know which controller/action raised them
    - **Error chaining:** Unexpected exceptions are wrapped, not swallowed

Architecture:
    ::

        ApiSpineError
        ├── RequestError            (kind: error)
        │   ├── NotFoundError       (kind: not-found)
        │   ├── AccessDeniedError   (kind: access-denied)
        │   ├── ValidationError     (kind: validation-error)
        │   └── ParameterError      (kind: parameter-error)
        ├── ConfigurationError      (kind: configuration-error)
        │   └── HelperNotFoundError (also an AttributeError)
        ├── RoutingError            (kind: invalid-controller-or-action)
        └── InternalError           (kind: internal-server-error)

Examples:
    >>> error = error_for("not_found", "User not found")
    >>> isinstance(error, NotFoundError)
    True
    >>> error.to_dict()["kind"]
    'not-found'

    >>> ParameterError([{"field": "page", "message": "is required"}]).errors
    [{'field': 'page', 'message': 'is required'}]

Tags:
    error-handling, exception-hierarchy, error-context, api-spine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and log routing."""

    # Client errors
    NOT_FOUND = "NOT_FOUND"
    ACCESS = "ACCESS"
    VALIDATION = "VALIDATION"
    PARAMETER = "PARAMETER"
    REQUEST = "REQUEST"
    ROUTING = "ROUTING"

    # Definition errors (never the client's fault)
    CONFIG = "CONFIG"

    # Bugs, unexpected state
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Dispatch metadata attached to an error.

    Attributes:
        version: API version of the request
        controller: Controller name being dispatched
        action: Action name being dispatched
        stage: Pipeline stage in which the error was raised
        structure: Structure name being rendered, if any
        metadata: Additional key-value pairs
    """

    version: int | None = None
    controller: str | None = None
    action: str | None = None
    stage: str | None = None
    structure: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["version", "controller", "action", "stage", "structure"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class ApiSpineError(Exception):
    """
    Base exception for all api-spine errors.

    Subclasses set ``kind`` (the wire status string) and
    ``default_category``. ``detail`` is the JSON-encodable payload placed in
    the ``data`` member of an error envelope; it defaults to
    ``{"message": message}``.
    """

    kind: str = "error"
    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    @property
    def detail(self) -> Any:
        return {"message": self.message}

    def with_context(self, **kwargs: Any) -> ApiSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise NotFoundError("No such user").with_context(controller="users")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "kind": self.kind,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, kind={self.kind})"


# =============================================================================
# REQUEST ERRORS (raised deliberately by user computations)
# =============================================================================


class RequestError(ApiSpineError):
    """
    A failure raised on purpose by an action, filter, predicate or helper.

    The pipeline turns these into an error envelope that still carries the
    headers and flags set on the evaluation context before the failure.
    """

    kind = "error"
    default_category = ErrorCategory.REQUEST


class NotFoundError(RequestError):
    """The requested object does not exist."""

    kind = "not-found"
    default_category = ErrorCategory.NOT_FOUND


class AccessDeniedError(RequestError):
    """The resolved identity may not perform this action."""

    kind = "access-denied"
    default_category = ErrorCategory.ACCESS


def _field_errors(errors: Any) -> list[dict[str, Any]]:
    """Normalize a message, mapping or list of either into ``{field, message}`` dicts."""
    if errors is None:
        return []
    if isinstance(errors, str):
        return [{"field": None, "message": errors}]
    if isinstance(errors, Mapping):
        if "message" in errors:
            return [{"field": errors.get("field"), "message": errors["message"]}]
        return [{"field": key, "message": str(value)} for key, value in errors.items()]
    result = []
    for error in errors:
        result.extend(_field_errors(error))
    return result


class ValidationError(RequestError):
    """
    One or more fields of the submitted data are invalid.

    Carries every violation as a ``{field, message}`` dict.
    """

    kind = "validation-error"
    default_category = ErrorCategory.VALIDATION

    def __init__(
        self,
        errors: str | Mapping[str, Any] | Iterable[Any] | None = None,
        message: str | None = None,
        **kwargs: Any,
    ):
        self.errors = _field_errors(errors)
        if message is None:
            message = "; ".join(
                f"{e['field']}: {e['message']}" if e["field"] else e["message"]
                for e in self.errors
            ) or "Validation failed"
        super().__init__(message, **kwargs)

    @property
    def detail(self) -> Any:
        return {"errors": self.errors}

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["errors"] = self.errors
        return result


class ParameterError(ValidationError):
    """One or more declared parameters are missing or invalid."""

    kind = "parameter-error"
    default_category = ErrorCategory.PARAMETER


# =============================================================================
# DEFINITION / ROUTING / INTERNAL ERRORS
# =============================================================================


class ConfigurationError(ApiSpineError):
    """
    A definition refers to something that does not exist.

    Unknown structures, helpers or invariant violations in the loaded
    definitions. These are programming errors, not client errors.
    """

    kind = "configuration-error"
    default_category = ErrorCategory.CONFIG


class HelperNotFoundError(ConfigurationError, AttributeError):
    """No context accessor or helper matches the requested name."""

    def __init__(self, name: str, controller: str | None = None):
        self.helper_name = name
        self.controller = controller
        scope = f" (controller '{controller}')" if controller else ""
        super().__init__(f"No helper or accessor named '{name}'{scope}")


class RoutingError(ApiSpineError):
    """The (version, controller, action) triple does not resolve."""

    kind = "invalid-controller-or-action"
    default_category = ErrorCategory.ROUTING

    def __init__(self, controller: str | None, action: str | None, message: str | None = None):
        self.controller_name = controller
        self.action_name = action
        super().__init__(message or f"No action '{action}' on controller '{controller}'")


class InternalError(ApiSpineError):
    """An unexpected exception escaped a user computation."""

    kind = "internal-server-error"
    default_category = ErrorCategory.INTERNAL

    @classmethod
    def wrap(cls, exc: Exception) -> InternalError:
        return cls(f"{type(exc).__name__}: {exc}", cause=exc)


# =============================================================================
# KIND LOOKUP
# =============================================================================

ERROR_KINDS: dict[str, type[RequestError]] = {
    "not_found": NotFoundError,
    "access_denied": AccessDeniedError,
    "validation_error": ValidationError,
    "parameter_error": ParameterError,
}


def error_for(kind: str, detail: Any = None) -> RequestError:
    """
    Build the typed error for a symbolic kind.

    ``kind`` may use ``_`` or ``-`` separators. Unknown kinds produce a
    plain ``RequestError``. For validation and parameter errors ``detail``
    is the list of ``{field, message}`` violations; for everything else it
    is the message.
    """
    error_cls = ERROR_KINDS.get(str(kind).replace("-", "_"))
    if error_cls is not None and issubclass(error_cls, ValidationError):
        return error_cls(detail)
    message = detail if isinstance(detail, str) else str(detail or kind)
    return (error_cls or RequestError)(message)

"""
Logging context management using contextvars.

Every dispatch sets a ``LogContext`` (request id, version, controller,
action) that is attached automatically to all log entries emitted while
the pipeline runs, including those from inside user computations.

Design choice: contextvars
- Thread-safe and asyncio-compatible
- No need to pass context through every function
- Clean integration with structlog processors
"""

import uuid
from contextvars import ContextVar
from dataclasses import asdict, dataclass
from typing import Any

import structlog


def generate_request_id() -> str:
    """Generate a request identifier (32 hex chars)."""
    return uuid.uuid4().hex


@dataclass
class LogContext:
    """
    Dispatch context attached to all log entries.

    Core identifiers:
        request_id: Unique id of the inbound request
        version: Requested API version

    Routing:
        controller: Controller name
        action: Action name

    Tracing (for nested timing blocks):
        span_id: Current span identifier
        parent_span_id: Parent span for nested operations
        step: Current timed step name

    Pipeline:
        stage: Current pipeline stage
    """

    request_id: str | None = None
    version: int | None = None

    controller: str | None = None
    action: str | None = None

    span_id: str | None = None
    parent_span_id: str | None = None
    step: str | None = None

    stage: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def merge(self, **kwargs) -> "LogContext":
        """Create new context with merged values."""
        current = asdict(self)
        current.update({k: v for k, v in kwargs.items() if v is not None and k in current})
        return LogContext(**current)


_log_context: ContextVar[LogContext] = ContextVar("apispine_log_context")  # noqa: B039


def get_context() -> LogContext:
    """Get the current log context."""
    return _log_context.get(LogContext())


def set_context(
    request_id: str | None = None,
    version: int | None = None,
    controller: str | None = None,
    action: str | None = None,
    stage: str | None = None,
) -> LogContext:
    """
    Set the current log context.

    This replaces the current context. Use bind_context() to add to existing.
    """
    ctx = LogContext(
        request_id=request_id,
        version=version,
        controller=controller,
        action=action,
        stage=stage,
    )
    _log_context.set(ctx)
    return ctx


def bind_context(**kwargs) -> LogContext:
    """Bind additional values to the current context."""
    updated = get_context().merge(**kwargs)
    _log_context.set(updated)
    return updated


def clear_context() -> None:
    """Clear the current context (reset to empty)."""
    _log_context.set(LogContext())


class _ContextToken:
    """Token for restoring context after a scoped operation."""

    def __init__(self, token):
        self._token = token

    def restore(self):
        """Restore the previous context."""
        _log_context.reset(self._token)


def push_context(**kwargs) -> _ContextToken:
    """
    Push new context values, returning a token to restore later.

    Usage:
        token = push_context(stage="access_check")
        try:
            check()
        finally:
            token.restore()
    """
    updated = get_context().merge(**kwargs)
    return _ContextToken(_log_context.set(updated))


def add_context_processor(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """
    Structlog processor that adds the dispatch context to every log entry.

    Explicit keys on the event win over context keys.
    """
    for key, value in get_context().to_dict().items():
        if key not in event_dict:
            event_dict[key] = value
    return event_dict


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (typically ``get_logger(__name__)``)."""
    return structlog.get_logger(name)

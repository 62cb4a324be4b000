"""
api-spine Logging - Structured, dispatch-aware logging.

This module provides:
- Structured logging with structlog
- Dispatch context propagation via contextvars
- Timing utilities for pipeline stages
- Environment-based configuration

Usage:
    from apispine.framework.logging import get_logger, configure_logging, log_step, set_context

    configure_logging()
    log = get_logger(__name__)

    set_context(request_id="abc-123", controller="users", action="list")

    with log_step("dispatch.execute"):
        run_action()
"""

from apispine.framework.logging.config import configure_logging
from apispine.framework.logging.context import (
    LogContext,
    bind_context,
    clear_context,
    generate_request_id,
    get_context,
    get_logger,
    push_context,
    set_context,
)
from apispine.framework.logging.timing import TimingResult, log_step

__all__ = [
    # Configuration
    "configure_logging",
    # Context
    "get_logger",
    "set_context",
    "clear_context",
    "get_context",
    "bind_context",
    "push_context",
    "generate_request_id",
    "LogContext",
    # Timing
    "log_step",
    "TimingResult",
]

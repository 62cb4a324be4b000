"""
Timing utilities for performance logging.

- Context manager: with log_step("dispatch.execute"):

Design:
- Logs start at DEBUG, end at the requested level (with duration)
- Includes the dispatch context automatically
- Lightweight tracing with span_id/parent_span_id
- Exceptions listed in ``expected`` are logged as ``.aborted`` at the
  step's level instead of ``.error``
"""

import time
import traceback
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from apispine.framework.logging.context import get_context, get_logger, push_context


def _generate_span_id() -> str:
    """Generate a short span ID (8 hex chars)."""
    return uuid.uuid4().hex[:8]


@dataclass
class TimingResult:
    """Result of a timed operation with tracing support."""

    step: str
    span_id: str = field(default_factory=_generate_span_id)
    parent_span_id: str | None = None
    started_at: float = field(default_factory=time.perf_counter)
    ended_at: float | None = None
    metrics: dict[str, Any] = field(default_factory=dict)
    status: str = "ok"  # ok, aborted, error
    error_info: dict[str, Any] | None = None

    def stop(self) -> "TimingResult":
        """Record end time."""
        if self.ended_at is None:
            self.ended_at = time.perf_counter()
        return self

    @property
    def duration_seconds(self) -> float:
        if self.ended_at is None:
            return time.perf_counter() - self.started_at
        return self.ended_at - self.started_at

    @property
    def duration_ms(self) -> float:
        return self.duration_seconds * 1000

    def add_metric(self, key: str, value: Any) -> "TimingResult":
        """Add a metric to include in the log output."""
        self.metrics[key] = value
        return self

    def set_error(self, e: Exception, *, expected: bool = False) -> "TimingResult":
        """Record error information."""
        self.status = "aborted" if expected else "error"
        self.error_info = {
            "error_type": type(e).__name__,
            "error_message": str(e),
        }
        if not expected:
            self.error_info["error_stack"] = traceback.format_exc()
        return self

    def to_log_dict(self) -> dict[str, Any]:
        """Convert to dict for logging."""
        result = {
            "duration_ms": round(self.duration_ms, 2),
            "span_id": self.span_id,
        }
        if self.parent_span_id:
            result["parent_span_id"] = self.parent_span_id
        result.update(self.metrics)
        return result

    def to_error_dict(self) -> dict[str, Any]:
        """Convert to dict for error logging."""
        result = self.to_log_dict()
        result["status"] = self.status
        if self.error_info:
            result.update(self.error_info)
        return result


@contextmanager
def log_step(
    event: str,
    log_start: bool = True,
    level: str = "info",
    expected: tuple[type[BaseException], ...] = (),
    **extra_metrics,
) -> Iterator[TimingResult]:
    """
    Context manager that logs step start/end with timing and tracing.

    Logs:
    - Start: DEBUG level (event.start) with span_id
    - End: ``level`` (event.end) with duration_ms, span_id
    - Failure: ERROR (event.error), or ``level`` (event.aborted) when the
      exception is an instance of ``expected``

    The span_id is propagated to nested steps as parent_span_id.

    Usage:
        with log_step("dispatch.execute", expected=(RequestError,)) as timer:
            result = action.body(ctx)
            timer.add_metric("result_type", type(result).__name__)
    """
    log = get_logger("apispine.timing")

    parent_span = get_context().span_id
    timer = TimingResult(step=event, parent_span_id=parent_span, metrics=dict(extra_metrics))
    context_token = push_context(span_id=timer.span_id, parent_span_id=parent_span, step=event)

    try:
        if log_start:
            start_fields = {"span_id": timer.span_id}
            if parent_span:
                start_fields["parent_span_id"] = parent_span
            start_fields.update(extra_metrics)
            log.debug(f"{event}.start", **start_fields)

        yield timer

    except Exception as e:
        timer.stop()
        if expected and isinstance(e, expected):
            timer.set_error(e, expected=True)
            getattr(log, level)(f"{event}.aborted", **timer.to_error_dict())
        else:
            timer.set_error(e)
            log.error(f"{event}.error", **timer.to_error_dict())
        raise

    finally:
        timer.stop()
        context_token.restore()

    getattr(log, level)(f"{event}.end", **timer.to_log_dict())

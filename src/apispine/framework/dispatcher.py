"""
Dispatcher - resolve a request to an action and run the request pipeline.

Each dispatch walks a fixed sequence of stages inside a single evaluation
context:

    RESOLVED -> BEFORE_FILTERS -> ACCESS_CHECK -> PARAM_VALIDATION
             -> EXECUTING -> COMPLETED

and ends either COMPLETED with the action's result or FAILED with exactly
one typed error. The pipeline never retries. A request whose controller or
action does not resolve raises ``RoutingError`` and never enters the
pipeline.
"""

from __future__ import annotations

import traceback
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from apispine.core.errors import (
    AccessDeniedError,
    ApiSpineError,
    ConfigurationError,
    InternalError,
    ParameterError,
    RequestError,
    RoutingError,
)
from apispine.framework.context import EvalContext
from apispine.framework.controllers import Action
from apispine.framework.logging import bind_context, clear_context, get_logger, log_step, set_context
from apispine.framework.registry import Registry, RegistryHolder
from apispine.framework.request import Request

log = get_logger(__name__)

ErrorCallback = Callable[[Request, Exception], Any]


class PipelineStage(str, Enum):
    """Stage of the request pipeline."""

    RESOLVED = "resolved"
    BEFORE_FILTERS = "before_filters"
    ACCESS_CHECK = "access_check"
    PARAM_VALIDATION = "param_validation"
    EXECUTING = "executing"
    COMPLETED = "completed"


class DispatchStatus(str, Enum):
    """Terminal state of a dispatch."""

    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class DispatchResult:
    """
    Outcome of one dispatch.

    ``stage`` is the last stage entered: ``COMPLETED`` on success, the
    failing stage otherwise. Headers and flags set before a request error
    are kept; configuration and internal failures carry none.
    """

    status: DispatchStatus
    stage: PipelineStage
    request_id: str
    result: Any = None
    headers: dict[str, Any] = field(default_factory=dict)
    flags: dict[str, Any] = field(default_factory=dict)
    error: ApiSpineError | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None

    @property
    def ok(self) -> bool:
        return self.status == DispatchStatus.COMPLETED

    @property
    def kind(self) -> str:
        """Wire status string: ``success`` or the error's kind."""
        return "success" if self.ok else self.error.kind

    @property
    def duration_seconds(self) -> float | None:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def to_dict(self, *, include_error_details: bool = False) -> dict[str, Any]:
        """
        Build the JSON-encodable response envelope.

        ``{"status": ..., "time": ..., "flags": {...}, "data": ...}`` where
        ``data`` is the action result on success and the error detail on
        failure. Internal failures only expose the exception class, message
        and the first six traceback lines when ``include_error_details``.
        """
        if self.ok:
            data = self.result
        elif isinstance(self.error, InternalError):
            data = {}
            cause = self.error.cause
            if include_error_details and cause is not None:
                data = {
                    "error": type(cause).__name__,
                    "message": str(cause),
                    "backtrace": traceback.format_tb(cause.__traceback__)[:6],
                }
        else:
            data = self.error.detail

        return {
            "status": self.kind,
            "time": round(self.duration_seconds or 0.0, 4),
            "flags": dict(self.flags),
            "data": data,
        }


class Dispatcher:
    """
    Runs requests against the current registry.

    Args:
        registry: A Registry, or a RegistryHolder for reloadable setups
        reload_on_each_request: Rebuild the registry before every dispatch
        error_callbacks: Called with ``(request, exception)`` for every
            unexpected exception caught at the pipeline boundary
    """

    def __init__(
        self,
        registry: Registry | RegistryHolder,
        *,
        reload_on_each_request: bool = False,
        error_callbacks: Iterable[ErrorCallback] = (),
    ) -> None:
        self.holder = registry if isinstance(registry, RegistryHolder) else RegistryHolder(registry)
        self.reload_on_each_request = reload_on_each_request
        self.error_callbacks = list(error_callbacks)

    @property
    def registry(self) -> Registry:
        return self.holder.current

    def resolve(self, request: Request, registry: Registry | None = None) -> Action:
        """
        Find the action for ``request``.

        Raises:
            RoutingError: invalid version or names, or no such controller/action
        """
        registry = registry or self.registry
        if not request.is_valid():
            raise RoutingError(request.controller_name, request.action_name, f"Invalid API path for {request!r}")
        controller = registry.controller(request.controller_name)
        if controller is None:
            raise RoutingError(
                request.controller_name,
                request.action_name,
                f"No controller named '{request.controller_name}'",
            )
        action = controller.action(request.action_name)
        if action is None:
            raise RoutingError(request.controller_name, request.action_name)
        return action

    def dispatch(self, request: Request) -> DispatchResult:
        """
        Resolve and run ``request``.

        Returns:
            DispatchResult, COMPLETED or FAILED

        Raises:
            RoutingError: the request does not resolve to an action
        """
        if self.reload_on_each_request and self.holder.can_reload:
            self.holder.reload()

        # One read of the reference: the whole dispatch sees one registry
        registry = self.holder.current
        if request.authenticator is None:
            request.authenticator = registry.authenticator

        set_context(
            request_id=request.request_id,
            version=request.version,
            controller=request.controller_name,
            action=request.action_name,
        )
        try:
            try:
                action = self.resolve(request, registry)
            except RoutingError as e:
                log.warning("dispatch.routing_failed", error_message=e.message)
                raise
            return self._run_pipeline(registry, action, request)
        finally:
            clear_context()

    def _run_pipeline(self, registry: Registry, action: Action, request: Request) -> DispatchResult:
        ctx = EvalContext(registry, request, action)
        controller = registry.controller(action.controller_name)
        started_at = datetime.now(UTC)
        stage = PipelineStage.RESOLVED

        log.info("dispatch.started")

        try:
            stage = self._enter(PipelineStage.BEFORE_FILTERS)
            with log_step("dispatch.before_filters", level="debug", expected=(RequestError,)) as timer:
                filters = controller.before_filters_for(action.name)
                timer.add_metric("filters", len(filters))
                for before in filters:
                    before.func(ctx)

            stage = self._enter(PipelineStage.ACCESS_CHECK)
            with log_step("dispatch.access_check", level="debug", expected=(RequestError,)):
                self._check_access(ctx, action, registry)

            stage = self._enter(PipelineStage.PARAM_VALIDATION)
            with log_step("dispatch.param_validation", level="debug", expected=(RequestError,)):
                errors = action.param_spec.validate(ctx.params)
                if errors:
                    raise ParameterError(errors)

            stage = self._enter(PipelineStage.EXECUTING)
            with log_step("dispatch.execute", level="debug", expected=(RequestError,)):
                result = action.body(ctx)

        except RequestError as e:
            return self._failed(request, stage, started_at, e, ctx)

        except ConfigurationError as e:
            return self._failed(request, stage, started_at, e)

        except Exception as e:
            internal = InternalError.wrap(e)
            for callback in self.error_callbacks:
                try:
                    callback(request, e)
                except Exception as callback_error:
                    log.warning(
                        "dispatch.error_callback_failed",
                        error_type=type(callback_error).__name__,
                        error_message=str(callback_error),
                    )
            return self._failed(request, stage, started_at, internal)

        completed = DispatchResult(
            status=DispatchStatus.COMPLETED,
            stage=PipelineStage.COMPLETED,
            request_id=request.request_id,
            result=result,
            headers=dict(ctx.headers),
            flags=dict(ctx.flags),
            started_at=started_at,
            completed_at=datetime.now(UTC),
        )
        log.info("dispatch.completed", duration_ms=round(completed.duration_seconds * 1000, 2))
        return completed

    @staticmethod
    def _enter(stage: PipelineStage) -> PipelineStage:
        bind_context(stage=stage.value)
        return stage

    @staticmethod
    def _check_access(ctx: EvalContext, action: Action, registry: Registry) -> None:
        """Deny without an identity; otherwise the predicate must be truthy."""
        if not ctx.request.identity:
            raise AccessDeniedError("Access denied: request is not authenticated")
        predicate = action.access or registry.default_access
        if predicate is not None and not predicate(ctx):
            raise AccessDeniedError(f"Access denied to {action.controller_name}/{action.name}")

    def _failed(
        self,
        request: Request,
        stage: PipelineStage,
        started_at: datetime,
        error: ApiSpineError,
        ctx: EvalContext | None = None,
    ) -> DispatchResult:
        error.with_context(
            version=request.version,
            controller=request.controller_name,
            action=request.action_name,
            stage=stage.value,
        )

        fields = {
            "status": "failed",
            "stage": stage.value,
            "error_type": type(error).__name__,
            "error_kind": error.kind,
            "error_message": error.message,
        }
        if isinstance(error, RequestError):
            log.info("dispatch.failed", **fields)
        elif isinstance(error, InternalError):
            fields["error_stack"] = "".join(traceback.format_exception(error.cause))
            log.error("dispatch.failed", **fields)
        else:
            log.error("dispatch.failed", **fields)

        return DispatchResult(
            status=DispatchStatus.FAILED,
            stage=stage,
            request_id=request.request_id,
            headers=dict(ctx.headers) if ctx else {},
            flags=dict(ctx.flags) if ctx else {},
            error=error,
            started_at=started_at,
            completed_at=datetime.now(UTC),
        )

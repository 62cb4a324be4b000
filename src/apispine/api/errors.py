"""
Error mapping: turns dispatch outcomes into HTTP responses.

The core only reports typed failures; the HTTP status is decided here.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from apispine.framework.dispatcher import DispatchResult
from apispine.framework.logging import get_logger

log = get_logger(__name__)

# ── Error kind → HTTP status mapping ─────────────────────────────────────

KIND_TO_STATUS: dict[str, int] = {
    "success": 200,
    "not-found": 404,
    "access-denied": 403,
    "validation-error": 422,
    "parameter-error": 400,
    "error": 400,
    "invalid-controller-or-action": 400,
    "invalid-json": 400,
    "configuration-error": 500,
    "internal-server-error": 500,
}


def status_for_kind(kind: str) -> int:
    """Resolve an envelope status to an HTTP status, defaulting to 500."""
    return KIND_TO_STATUS.get(kind, 500)


def error_response(kind: str, headers: dict[str, str] | None = None, **body: Any) -> JSONResponse:
    """Build an error response for failures raised outside the pipeline."""
    return JSONResponse(
        status_code=status_for_kind(kind),
        content={"status": kind, **body},
        headers=headers,
    )


def dispatch_response(result: DispatchResult, *, include_error_details: bool = False) -> JSONResponse:
    """Build the response for a completed or failed dispatch."""
    headers = {str(k): str(v) for k, v in result.headers.items()}
    headers["X-Request-ID"] = result.request_id
    return JSONResponse(
        status_code=status_for_kind(result.kind),
        content=result.to_dict(include_error_details=include_error_details),
        headers=headers,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for exceptions raised by the adapter itself; returns 500."""
    log.error(
        "api.unhandled_exception",
        path=request.url.path,
        error_type=type(exc).__name__,
        error_message=str(exc),
    )
    body: dict[str, Any] = {}
    if request.app.state.settings.include_error_details:
        body = {"error": type(exc).__name__, "message": str(exc)}
    return error_response("internal-server-error", **body)

"""Request-ID middleware: injects ``X-Request-ID`` on every request.

Manifesto:
    Every request gets a unique ID so logs and error reports can be
    correlated. The same ID is handed to the dispatcher and therefore
    appears in every log entry of the pipeline.

Tags:
    api-spine, api, middleware, request-id, tracing, correlation
"""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from apispine.framework.logging import generate_request_id


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a unique request ID to every request/response cycle."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

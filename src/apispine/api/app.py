"""
FastAPI application factory.

``create_app()`` wires middleware, the API route, error handlers and
lifespan events around a ``Dispatcher``. Every API call arrives at
``{api_prefix}/v{version}/{controller}/{action}``.

Manifesto:
    The app factory is the single composition root for the HTTP
    transport. The dispatcher never sees Starlette objects; this module
    turns an HTTP request into a ``Request`` and a ``DispatchResult``
    back into a response.

Tags:
    api-spine, api, app-factory, composition-root, FastAPI

Doc-Types:
    api-reference
"""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi import Request as HTTPRequest
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, Response
from starlette.concurrency import run_in_threadpool

from apispine.api.errors import dispatch_response, error_response, unhandled_exception_handler
from apispine.api.middleware.request_id import RequestIDMiddleware
from apispine.api.settings import ApiSettings, get_settings
from apispine.core.errors import RoutingError
from apispine.framework.dispatcher import Dispatcher
from apispine.framework.logging import configure_logging, get_logger
from apispine.framework.registry import Registry, RegistryHolder
from apispine.framework.request import Request

log = get_logger("apispine.api")


class InvalidParams(ValueError):
    """The request parameters are not a JSON object."""


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup / shutdown hooks."""
    registry = app.state.dispatcher.registry
    log.info(
        "api-spine starting",
        version=app.version,
        controllers=len(registry.controllers),
        structures=len(registry.structures),
    )
    yield
    log.info("api-spine shutting down")


async def read_params(request: HTTPRequest) -> dict[str, Any]:
    """
    Extract request parameters.

    POST/PUT/PATCH: the JSON body. GET: a JSON-encoded ``params`` query
    argument, or else the plain query arguments.

    Raises:
        json.JSONDecodeError: malformed JSON
        InvalidParams: JSON that is not an object
    """
    if request.method in ("POST", "PUT", "PATCH"):
        body = await request.body()
        data = json.loads(body) if body.strip() else {}
    elif "params" in request.query_params:
        data = json.loads(request.query_params["params"])
    else:
        data = dict(request.query_params)

    if not isinstance(data, dict):
        raise InvalidParams(f"Parameters must be a JSON object, got {type(data).__name__}")
    return data


def create_app(
    source: Dispatcher | RegistryHolder | Registry,
    *,
    settings: ApiSettings | None = None,
) -> FastAPI:
    """Build and return a fully-configured FastAPI application.

    Parameters
    ----------
    source : Dispatcher | RegistryHolder | Registry
        What to serve. A registry or holder is wrapped in a Dispatcher
        configured from ``settings``.
    settings : ApiSettings | None
        Override settings (useful for testing). When ``None`` the cached
        singleton from :func:`get_settings` is used.
    """
    settings = settings or get_settings()
    configure_logging(level=settings.effective_log_level, format=settings.log_format)

    if isinstance(source, Dispatcher):
        dispatcher = source
    else:
        dispatcher = Dispatcher(source, reload_on_each_request=settings.reload_on_each_request)

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
    )
    app.state.settings = settings
    app.state.dispatcher = dispatcher

    # ── Middleware (outermost → innermost) ────────────────────────────
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Exception handlers ───────────────────────────────────────────
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ── API route ────────────────────────────────────────────────────
    prefix = settings.api_prefix.rstrip("/")

    @app.api_route(f"{prefix}/{{path:path}}", methods=["GET", "POST", "OPTIONS"])
    async def handle_api_request(path: str, request: HTTPRequest) -> Response:
        if request.method == "OPTIONS":
            return PlainTextResponse("OK")

        try:
            params = await read_params(request)
        except (json.JSONDecodeError, InvalidParams) as e:
            return error_response("invalid-json", details=str(e))

        try:
            api_request = Request.from_path(
                path,
                params,
                headers=dict(request.headers),
                request_id=getattr(request.state, "request_id", None),
            )
            result = await run_in_threadpool(dispatcher.dispatch, api_request)
        except RoutingError as e:
            return error_response("invalid-controller-or-action", details=e.message)

        return dispatch_response(result, include_error_details=settings.include_error_details)

    return app

"""Inbound request model: the (version, controller, action) triple plus params.

The transport adapter builds a ``Request`` from whatever its HTTP stack
gives it; the dispatcher only ever sees this object.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from typing import Any

from apispine.core.errors import RoutingError
from apispine.framework.logging import generate_request_id
from apispine.framework.params import ParamSet

NAME_PATTERN = re.compile(r"\A[\w\-.]+\Z")

_UNRESOLVED = object()


def parse_path(path: str) -> tuple[int, str, str]:
    """
    Split ``/v{version}/{controller}/{action}`` into its parts.

    Non-digit characters are dropped from the version segment, so ``v2``
    gives ``2`` and a segment without digits gives ``0``.

    Raises:
        RoutingError: the path does not have exactly three segments
    """
    parts = [p for p in path.strip("/").split("/") if p]
    if len(parts) != 3:
        raise RoutingError(None, None, f"Malformed API path: {path!r}")
    version_part, controller, action = parts
    digits = re.sub(r"[^0-9]", "", version_part)
    return int(digits or 0), controller, action


class Request:
    """
    One inbound API call.

    ``identity`` is resolved lazily by calling ``authenticator(request)``
    once; the result is opaque to the framework. Passing ``identity``
    directly skips the authenticator.
    """

    def __init__(
        self,
        version: int,
        controller_name: str,
        action_name: str,
        params: ParamSet | Mapping[str, Any] | None = None,
        *,
        headers: Mapping[str, str] | None = None,
        authenticator: Callable[[Request], Any] | None = None,
        identity: Any = _UNRESOLVED,
        request_id: str | None = None,
    ):
        self.version = int(version)
        self.controller_name = controller_name
        self.action_name = action_name
        self.params = params if isinstance(params, ParamSet) else ParamSet(params)
        self.headers = {k.lower(): v for k, v in (headers or {}).items()}
        self.authenticator = authenticator
        self.request_id = request_id or generate_request_id()
        self._identity = identity

    @classmethod
    def from_path(cls, path: str, params: ParamSet | Mapping[str, Any] | None = None, **kwargs: Any) -> Request:
        version, controller, action = parse_path(path)
        return cls(version, controller, action, params, **kwargs)

    @property
    def identity(self) -> Any:
        if self._identity is _UNRESOLVED:
            self._identity = self.authenticator(self) if self.authenticator else None
        return self._identity

    def header(self, name: str, default: str | None = None) -> str | None:
        return self.headers.get(name.lower(), default)

    def is_valid(self) -> bool:
        """Positive version and controller/action names of word chars, ``-`` and ``.``."""
        return (
            self.version > 0
            and bool(NAME_PATTERN.match(self.controller_name or ""))
            and bool(NAME_PATTERN.match(self.action_name or ""))
        )

    def __repr__(self) -> str:
        return f"Request(v{self.version}/{self.controller_name}/{self.action_name})"

"""Evaluation context: the scope every user computation runs in.

Access predicates, before-filters, action bodies, structure conditions,
values and expansions all receive an ``EvalContext`` as their single
argument. It exposes the request metadata, the parameter bag, a
response-time side channel for headers and flags, structure rendering, and
typed error raising.

Names that are not methods of the context resolve in a fixed order:

1. context-local accessors (``ctx.o`` is the object being rendered)
2. a helper registered for the dispatching action's controller
3. a global helper

and fail with ``HelperNotFoundError`` when nothing matches.

A context belongs to one evaluation. Headers and flags accumulate until
``reset()`` is called and are never shared between requests.

Tags:
    api-spine, framework, context, helpers
"""

from __future__ import annotations

import functools
import re
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any, NoReturn

from apispine.core.errors import ConfigurationError, HelperNotFoundError, error_for
from apispine.framework.params import ParamSet
from apispine.framework.structures.engine import RenderOptions, StructureEngine
from apispine.framework.structures.model import Structure

if TYPE_CHECKING:
    from apispine.framework.controllers import Action
    from apispine.framework.registry import Registry
    from apispine.framework.request import Request

_NOT_GIVEN = object()


def structure_name_for(obj: Any) -> str:
    """``BlogPost`` instances map to the ``blog_post`` structure."""
    name = type(obj).__name__
    return re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", name).lower()


class EvalContext:
    """Per-evaluation scope handed to every user computation."""

    def __init__(
        self,
        registry: Registry,
        request: Request | None = None,
        action: Action | None = None,
        accessors: Mapping[str, Any] | None = None,
        engine: StructureEngine | None = None,
    ):
        self._accessors = dict(accessors or {})
        self.registry = registry
        self.request = request
        self.action = action
        self.engine = engine or registry.engine
        self.default_params: dict[str, Any] = action.default_params if action else {}
        self._params: ParamSet | None = None
        self.reset()

    # ── Request metadata ────────────────────────────────────────

    @property
    def version(self) -> int:
        """Requested API version; 1 when no request is bound."""
        return self.request.version if self.request else 1

    @property
    def identity(self) -> Any:
        return self.request.identity if self.request else None

    @property
    def object(self) -> Any:
        """The object being rendered, when evaluating a structure."""
        return self._accessors.get("o")

    @property
    def params(self) -> ParamSet:
        """Request parameters with the action's declared defaults (memoized)."""
        if self._params is None:
            base = self.request.params if self.request else ParamSet()
            self._params = base.with_defaults(self.default_params)
        return self._params

    # ── Response side channel ───────────────────────────────────

    def set_header(self, name: str, value: Any) -> None:
        """Set a header to be returned to the client."""
        self.headers[str(name)] = value

    def set_flag(self, name: str, value: Any) -> None:
        """Set a flag to be returned in the response envelope."""
        self.flags[str(name)] = value

    def reset(self) -> None:
        """Clear all headers and flags."""
        self.headers: dict[str, Any] = {}
        self.flags: dict[str, Any] = {}

    # ── Structures ──────────────────────────────────────────────

    def resolve_structure(self, ref: Structure | str) -> Structure | None:
        if isinstance(ref, Structure):
            return ref
        if isinstance(ref, str):
            return self.registry.structure(ref)
        return None

    def has_structure(self, ref: Structure | str) -> bool:
        return self.resolve_structure(ref) is not None

    def serialize(
        self,
        ref: Structure | str | Any,
        obj: Any = _NOT_GIVEN,
        *,
        full: bool | None = None,
        expansions: bool | Iterable[str] | None = None,
        paramable: bool | Mapping[str, Any] | None = None,
        returns: bool = False,
    ) -> dict[str, Any] | None:
        """
        Render ``obj`` through a structure.

        ``ref`` is a structure name or a Structure. Called with a single
        object instead, the structure named after the object's class is
        used. ``paramable`` lets the client's ``_expansions``/``_full``
        parameters adjust the options (see ``negotiate_options``).
        ``returns=True`` with no other options uses the action's declared
        return ``structure_opts``.

        Raises:
            ConfigurationError: no structure matches ``ref``
        """
        if obj is _NOT_GIVEN:
            if isinstance(ref, (str, Structure)):
                raise ConfigurationError("serialize() needs an object to render")
            ref, obj = structure_name_for(ref), ref

        if obj is None:
            return None

        structure = self.resolve_structure(ref)
        if structure is None:
            raise ConfigurationError(f"No structure found named '{ref}'").with_context(structure=str(ref))

        options: dict[str, Any] = {}
        if full is not None:
            options["full"] = full
        if expansions is not None:
            options["expansions"] = expansions
        if paramable is not None:
            options["paramable"] = paramable

        if returns and not options and self.action is not None:
            options = dict(self.action.return_structure_opts or {})

        return self.engine.render(structure, obj, self.negotiate_options(options), request=self.request)

    def negotiate_options(self, options: Mapping[str, Any]) -> RenderOptions:
        """
        Apply the client's ``_expansions`` and ``_full`` parameters.

        Only call sites that pass ``paramable`` are negotiable:

        - ``paramable=True``: the client controls both expansions and full
        - ``paramable={"expansions": [...], "full": ...}``: the mapping sets
          the defaults; a list is also the whitelist of expansions the
          client may ask for; only the keys present are client-controlled

        ``_expansions`` as a list is intersected with the whitelist;
        ``true`` selects the whitelist (or every expansion); ``false``
        turns expansions off. ``_full`` counts only when it is a boolean.
        """
        full = options.get("full", False)
        expansions = options.get("expansions")
        paramable = options.get("paramable")

        if self.request is not None and paramable:
            whitelist = None
            if isinstance(paramable, Mapping):
                expansions = paramable.get("expansions")
                full = paramable.get("full", False)
                if isinstance(paramable.get("expansions"), (list, tuple, set, frozenset)):
                    whitelist = {str(e) for e in paramable["expansions"]}

            params = self.request.params
            if paramable is True or (isinstance(paramable, Mapping) and "expansions" in paramable):
                requested = params.get("_expansions")
                if isinstance(requested, list):
                    expansions = [str(e) for e in requested]
                    if whitelist is not None:
                        expansions = [e for e in expansions if e in whitelist]
                elif requested is True:
                    if whitelist is not None:
                        expansions = sorted(whitelist)
                    else:
                        expansions = True
                elif requested is False:
                    expansions = None

            requested_full = params.get("_full")
            if isinstance(requested_full, bool):
                if paramable is True or (isinstance(paramable, Mapping) and "full" in paramable):
                    full = requested_full

        return RenderOptions.coerce({"full": full, "expansions": expansions})

    # ── Errors ──────────────────────────────────────────────────

    def raise_error(self, kind: str, detail: Any = None) -> NoReturn:
        """
        Abort the current stage with a typed error.

        ``kind`` is ``not_found``, ``access_denied``, ``validation_error``,
        ``parameter_error`` or anything else (a plain ``RequestError``).
        """
        error = error_for(kind, detail)
        if self.action is not None:
            error.with_context(controller=self.action.controller_name, action=self.action.name)
        raise error

    # ── Parameters onto objects ─────────────────────────────────

    def apply_params(self, obj: Any, names: Iterable[str] | None = None) -> Any:
        """Copy supplied parameters onto same-named attributes of ``obj``."""
        candidates = names if names is not None else [p.name for p in (self.action.params if self.action else ())]
        for name in candidates:
            if self.params.has(name) and hasattr(obj, name):
                setattr(obj, name, self.params[name])
        return obj

    # ── Helpers ─────────────────────────────────────────────────

    def helper(self, name: str) -> Any:
        """Return helper ``name`` bound to this context."""
        controller = self.action.controller_name if self.action else None
        helper = self.registry.helper(name, controller)
        if helper is None:
            raise HelperNotFoundError(name, controller)
        return functools.partial(helper.func, self)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__") or hasattr(type(self), name):
            raise AttributeError(name)
        accessors = self.__dict__.get("_accessors", {})
        if name in accessors:
            return accessors[name]
        if "registry" not in self.__dict__:
            raise AttributeError(name)
        return self.helper(name)

    def __repr__(self) -> str:
        target = f"{self.action.controller_name}/{self.action.name}" if self.action else "structure"
        return f"EvalContext(v{self.version}, {target})"

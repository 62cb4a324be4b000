"""Registry of structures, controllers and helpers.

Manifesto:
    Definitions are loaded once and then only read. A ``Registry`` is an
    immutable value handed to the dispatcher and every evaluation context.
    Reloading builds a new registry and swaps the reference held by a
    ``RegistryHolder``; an in-flight request keeps the registry it started
    with and never observes a half-updated one.

Tags:
    api-spine, framework, registry, lookup, reload

Doc-Types:
    api-reference
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from functools import cached_property
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from apispine.core.errors import ConfigurationError
from apispine.framework.controllers import Action, Controller, Helper
from apispine.framework.logging import get_logger
from apispine.framework.structures.model import Structure

if TYPE_CHECKING:
    from apispine.framework.context import EvalContext
    from apispine.framework.request import Request
    from apispine.framework.structures.engine import StructureEngine

logger = get_logger(__name__)


@dataclass(frozen=True, eq=False)
class Registry:
    """
    Immutable lookup tables for one loaded API definition.

    Attributes:
        structures: Structure name -> Structure
        controllers: Controller name -> Controller
        helpers: Named helpers, global or controller-scoped
        authenticator: Resolves a request's identity; result is opaque
        default_access: Access predicate for actions that declare none
    """

    structures: Mapping[str, Structure] = field(default_factory=dict)
    controllers: Mapping[str, Controller] = field(default_factory=dict)
    helpers: tuple[Helper, ...] = ()
    authenticator: Callable[[Request], Any] | None = None
    default_access: Callable[[EvalContext], Any] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "structures", MappingProxyType(dict(self.structures)))
        object.__setattr__(self, "controllers", MappingProxyType(dict(self.controllers)))
        object.__setattr__(self, "helpers", tuple(self.helpers))

    @classmethod
    def build(
        cls,
        structures: Iterable[Structure] = (),
        controllers: Iterable[Controller] = (),
        helpers: Iterable[Helper] = (),
        authenticator: Callable[[Request], Any] | None = None,
        default_access: Callable[[EvalContext], Any] | None = None,
    ) -> Registry:
        """Index definitions by name, rejecting duplicates."""
        structure_index = _unique("structure", ((s.name, s) for s in structures))
        controller_index = _unique("controller", ((c.name, c) for c in controllers))
        helper_list = list(helpers)
        _unique("helper", (((h.controller, h.name), h) for h in helper_list))

        registry = cls(
            structures=structure_index,
            controllers=controller_index,
            helpers=tuple(helper_list),
            authenticator=authenticator,
            default_access=default_access,
        )
        logger.debug(
            "registry.built",
            structures=len(structure_index),
            controllers=len(controller_index),
            helpers=len(helper_list),
        )
        return registry

    # ── Structures ──────────────────────────────────────────────

    def structure(self, name: str) -> Structure | None:
        return self.structures.get(str(name))

    def has_structure(self, name: str) -> bool:
        return str(name) in self.structures

    def resolve_structure(self, ref: Structure | str) -> Structure:
        """Return ``ref`` itself if it is a Structure, else look it up by name."""
        if isinstance(ref, Structure):
            return ref
        structure = self.structure(ref)
        if structure is None:
            available = ", ".join(sorted(self.structures)) or "none"
            raise ConfigurationError(
                f"No structure found named '{ref}'. Available: {available}"
            ).with_context(structure=str(ref))
        return structure

    @cached_property
    def engine(self) -> StructureEngine:
        from apispine.framework.structures.engine import StructureEngine

        return StructureEngine(self)

    # ── Controllers ─────────────────────────────────────────────

    def controller(self, name: str) -> Controller | None:
        return self.controllers.get(str(name))

    def action(self, controller_name: str, action_name: str) -> Action | None:
        controller = self.controller(controller_name)
        return controller.action(action_name) if controller else None

    # ── Helpers ─────────────────────────────────────────────────

    def helper(self, name: str, controller: str | None = None) -> Helper | None:
        """Controller-scoped helpers shadow global helpers of the same name."""
        fallback = None
        for helper in self.helpers:
            if helper.name != name:
                continue
            if controller is not None and helper.controller == controller:
                return helper
            if helper.controller is None:
                fallback = helper
        return fallback


def _unique(kind: str, items: Iterable[tuple[Any, Any]]) -> dict[Any, Any]:
    index: dict[Any, Any] = {}
    for key, value in items:
        if key in index:
            raise ConfigurationError(f"Duplicate {kind} definition: {key!r}")
        index[key] = value
    return index


class RegistryHolder:
    """
    Holds the current registry and swaps it atomically on reload.

    Readers take ``holder.current`` once per request and keep using that
    value; writers replace the reference under a lock.
    """

    def __init__(
        self,
        registry: Registry | None = None,
        loader: Callable[[], Registry] | None = None,
    ):
        if registry is None and loader is None:
            raise ConfigurationError("RegistryHolder needs a registry or a loader")
        self._loader = loader
        self._lock = threading.Lock()
        self._registry = registry if registry is not None else loader()

    @property
    def current(self) -> Registry:
        return self._registry

    @property
    def can_reload(self) -> bool:
        return self._loader is not None

    def swap(self, registry: Registry) -> Registry:
        """Install ``registry`` and return the one it replaced."""
        with self._lock:
            previous, self._registry = self._registry, registry
        return previous

    def reload(self) -> Registry:
        """Build a fresh registry from the loader and install it."""
        if self._loader is None:
            raise ConfigurationError("Registry has no loader to reload from")
        registry = self._loader()
        self.swap(registry)
        logger.info(
            "registry.reloaded",
            structures=len(registry.structures),
            controllers=len(registry.controllers),
        )
        return registry

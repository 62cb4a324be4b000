"""Programmatic builders that produce registry definitions.

Definitions are declared with plain Python: builder methods for structure
attributes, context managers for groups and condition scopes, and
decorators for actions, filters, helpers and computations. ``build()``
freezes everything into an immutable ``Registry``.

Usage::

    api = RegistryBuilder()

    user = api.structure("user")
    user.basic("id")
    user.basic("username")
    with user.group("profile"):
        user.full("email")

    @user.expands("animals")
    def user_animals(ctx):
        return [ctx.serialize("animal", a) for a in ctx.o.animals]

    users = api.controller("users")

    @users.action("list", params=[ParamDef("page", default=1)], access=lambda ctx: ctx.identity.admin)
    def list_users(ctx):
        return [ctx.serialize("user", u) for u in USERS]

    registry = api.build()

Tags:
    api-spine, framework, builder, definitions
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from apispine.core.errors import ConfigurationError
from apispine.framework.controllers import Action, BeforeFilter, Controller, Helper
from apispine.framework.params import ParamDef
from apispine.framework.registry import Registry
from apispine.framework.structures.model import Attribute, Expansion, Structure, Tier
from apispine.framework.values import Computed, ValueSource, as_condition

Func = Callable[..., Any]


def _all_of(conditions: list[ValueSource]) -> ValueSource | None:
    if not conditions:
        return None
    if len(conditions) == 1:
        return conditions[0]
    frozen = tuple(conditions)
    return Computed(lambda ctx: all(c.evaluate(ctx) for c in frozen))


class StructureBuilder:
    """Collects the attributes, groups and expansions of one structure."""

    def __init__(self, name: str, description: str | None = None):
        self.name = name
        self.description = description
        self._attributes: list[Attribute] = []
        self._expansions: list[Expansion] = []
        self._group_path: list[str] = []
        self._conditions: list[ValueSource] = []
        self._basic: Func | None = None
        self._full: Func | None = None

    # ── Attributes ──────────────────────────────────────────────

    def attribute(
        self,
        tier: Tier | str,
        name: str,
        description: str | None = None,
        *,
        condition: Any = None,
        **options: Any,
    ) -> Attribute:
        conditions = list(self._conditions)
        if condition is not None:
            conditions.append(as_condition(condition))
        attribute = Attribute(
            name=name,
            tier=Tier(tier),
            description=description,
            condition=_all_of(conditions),
            group=tuple(self._group_path),
            **options,
        )
        self._attributes.append(attribute)
        return attribute

    def basic(self, name: str, description: str | None = None, **options: Any) -> Attribute:
        return self.attribute(Tier.BASIC, name, description, **options)

    def full(self, name: str, description: str | None = None, **options: Any) -> Attribute:
        return self.attribute(Tier.FULL, name, description, **options)

    def expansion(
        self,
        name: str,
        computation: Func | None = None,
        description: str | None = None,
        **options: Any,
    ) -> Attribute | Expansion:
        """
        Declare an expansion.

        With a computation this is a named expansion whose result is placed
        under ``name``; without one it is an expansion-tier attribute (for
        example an embedded structure).
        """
        if computation is None:
            return self.attribute(Tier.EXPANSION, name, description, **options)
        if options:
            raise ConfigurationError(f"Expansion '{name}' takes either a computation or attribute options")
        expansion = Expansion(name=name, computation=Computed(computation), description=description)
        self._expansions.append(expansion)
        return expansion

    def expands(self, name: str, description: str | None = None) -> Callable[[Func], Func]:
        """Decorator form of a named expansion."""

        def decorator(func: Func) -> Func:
            self.expansion(name, func, description)
            return func

        return decorator

    # ── Bulk computations ───────────────────────────────────────

    def basic_data(self, func: Func) -> Func:
        """Decorator: a computation returning a mapping merged into every rendering."""
        self._basic = func
        return func

    def full_data(self, func: Func) -> Func:
        """Decorator: a computation returning a mapping merged at full detail."""
        self._full = func
        return func

    # ── Scopes ──────────────────────────────────────────────────

    @contextmanager
    def group(self, name: str) -> Iterator[StructureBuilder]:
        """Nest attributes declared inside the block under ``name``."""
        self._group_path.append(name)
        try:
            yield self
        finally:
            self._group_path.pop()

    @contextmanager
    def condition(self, predicate: Any) -> Iterator[StructureBuilder]:
        """Only include attributes declared inside the block when ``predicate`` holds."""
        self._conditions.append(as_condition(predicate))
        try:
            yield self
        finally:
            self._conditions.pop()

    def build(self) -> Structure:
        return Structure(
            name=self.name,
            attributes=tuple(self._attributes),
            expansions=tuple(self._expansions),
            basic=Computed(self._basic) if self._basic else None,
            full=Computed(self._full) if self._full else None,
            description=self.description,
        )


class ControllerBuilder:
    """Collects the actions, before-filters and helpers of one controller."""

    def __init__(self, name: str, description: str | None = None):
        self.name = name
        self.description = description
        self._actions: list[Action] = []
        self._befores: list[BeforeFilter] = []
        self._helpers: list[Helper] = []

    def action(
        self,
        name: str,
        *,
        description: str = "",
        params: Iterable[ParamDef] = (),
        access: Func | None = None,
        returns: Mapping[str, Any] | None = None,
    ) -> Callable[[Func], Func]:
        """Decorator registering the body of action ``name``."""

        def decorator(func: Func) -> Func:
            self._actions.append(Action(
                name=name,
                controller_name=self.name,
                body=func,
                description=description or (func.__doc__ or "").strip(),
                params=tuple(params),
                access=access,
                returns=returns,
            ))
            return func

        return decorator

    def before(self, *actions: str) -> Callable[[Func], Func]:
        """Decorator registering a before-filter, optionally limited to ``actions``."""

        def decorator(func: Func) -> Func:
            self._befores.append(BeforeFilter(func=func, actions=frozenset(actions)))
            return func

        return decorator

    def helper(self, name: str | None = None) -> Callable[[Func], Func]:
        """Decorator registering a helper visible only to this controller's actions."""

        def decorator(func: Func) -> Func:
            self._helpers.append(Helper(name=name or func.__name__, func=func, controller=self.name))
            return func

        return decorator

    def build(self) -> Controller:
        return Controller(
            name=self.name,
            actions=tuple(self._actions),
            befores=tuple(self._befores),
            description=self.description,
        )

    @property
    def helpers(self) -> list[Helper]:
        return list(self._helpers)


class RegistryBuilder:
    """Collects every definition of an API and builds the Registry."""

    def __init__(self) -> None:
        self._structures: dict[str, StructureBuilder] = {}
        self._controllers: dict[str, ControllerBuilder] = {}
        self._helpers: list[Helper] = []
        self._authenticator: Func | None = None
        self._default_access: Func | None = None

    def structure(self, name: str, description: str | None = None) -> StructureBuilder:
        if name in self._structures:
            raise ConfigurationError(f"Duplicate structure definition: '{name}'")
        builder = StructureBuilder(name, description)
        self._structures[name] = builder
        return builder

    def controller(self, name: str, description: str | None = None) -> ControllerBuilder:
        """Return the builder for ``name``, creating it on first use."""
        if name not in self._controllers:
            self._controllers[name] = ControllerBuilder(name, description)
        return self._controllers[name]

    def helper(self, name: str | None = None) -> Callable[[Func], Func]:
        """Decorator registering a global helper."""

        def decorator(func: Func) -> Func:
            self._helpers.append(Helper(name=name or func.__name__, func=func))
            return func

        return decorator

    def authenticator(self, func: Func) -> Func:
        """Decorator: ``func(request)`` returns the request's identity or ``None``."""
        self._authenticator = func
        return func

    def default_access(self, func: Func) -> Func:
        """Decorator: access predicate for actions that declare none."""
        self._default_access = func
        return func

    def build(self) -> Registry:
        helpers = list(self._helpers)
        for controller in self._controllers.values():
            helpers.extend(controller.helpers)
        return Registry.build(
            structures=[s.build() for s in self._structures.values()],
            controllers=[c.build() for c in self._controllers.values()],
            helpers=helpers,
            authenticator=self._authenticator,
            default_access=self._default_access,
        )

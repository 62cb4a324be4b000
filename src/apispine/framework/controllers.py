"""Controllers, actions, before-filters and helpers.

Tags:
    api-spine, framework, controllers, actions
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from apispine.core.errors import ConfigurationError
from apispine.framework.params import ParamDef, ParameterSpec

if TYPE_CHECKING:
    from apispine.framework.context import EvalContext

Computation = Callable[["EvalContext"], Any]


@dataclass(frozen=True, eq=False)
class Action:
    """
    A single request handler belonging to one controller.

    ``access`` is the access predicate; ``None`` defers to the registry's
    default predicate. ``returns`` optionally describes the returned value
    and may carry ``structure_opts`` used by ``EvalContext.serialize(...,
    returns=True)``.
    """

    name: str
    controller_name: str
    body: Computation
    description: str = ""
    params: tuple[ParamDef, ...] = ()
    access: Computation | None = None
    returns: Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", tuple(self.params))

    @property
    def param_spec(self) -> ParameterSpec:
        return ParameterSpec(self.params)

    @property
    def default_params(self) -> dict[str, Any]:
        return self.param_spec.defaults()

    @property
    def return_structure_opts(self) -> Mapping[str, Any] | None:
        if self.returns and isinstance(self.returns.get("structure_opts"), Mapping):
            return self.returns["structure_opts"]
        return None


@dataclass(frozen=True, eq=False)
class BeforeFilter:
    """A computation run before access and parameter checks."""

    func: Computation
    actions: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "actions", frozenset(str(a) for a in self.actions))

    def applies_to(self, action_name: str) -> bool:
        return not self.actions or action_name in self.actions


@dataclass(frozen=True, eq=False)
class Helper:
    """
    Shared logic callable by name from any evaluation context.

    ``controller`` restricts the helper to contexts dispatching an action
    of that controller; ``None`` makes it global.
    """

    name: str
    func: Callable[..., Any]
    controller: str | None = None


@dataclass(frozen=True, eq=False)
class Controller:
    """A named set of actions and the before-filters that guard them."""

    name: str
    actions: Mapping[str, Action] = field(default_factory=dict)
    befores: tuple[BeforeFilter, ...] = ()
    description: str | None = None

    def __post_init__(self) -> None:
        actions = self.actions
        if not isinstance(actions, Mapping):
            actions = _index_actions(self.name, actions)
        for action_name, action in actions.items():
            if action.controller_name != self.name:
                raise ConfigurationError(
                    f"Action '{action_name}' belongs to '{action.controller_name}', not '{self.name}'"
                )
        object.__setattr__(self, "actions", MappingProxyType(dict(actions)))
        object.__setattr__(self, "befores", tuple(self.befores))

    def action(self, name: str) -> Action | None:
        return self.actions.get(name)

    def before_filters_for(self, action_name: str) -> list[BeforeFilter]:
        """Filters that apply to ``action_name``, in declaration order."""
        return [f for f in self.befores if f.applies_to(action_name)]


def _index_actions(controller_name: str, actions: Iterable[Action]) -> dict[str, Action]:
    index: dict[str, Action] = {}
    for action in actions:
        if action.name in index:
            raise ConfigurationError(f"Controller '{controller_name}' defines action '{action.name}' twice")
        index[action.name] = action
    return index

"""Deferred values used by structure attributes, conditions and expansions.

A stored value is one of three explicit variants rather than an opaque
callable, so each evaluation contract can be tested in isolation:

- ``Fixed``: a static value, returned as-is
- ``Accessor``: read a named attribute (or mapping key) from the target object
- ``Computed``: call a function with the evaluation context

Tags:
    api-spine, framework, structures, values
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from apispine.core.errors import ConfigurationError

if TYPE_CHECKING:
    from apispine.framework.context import EvalContext

Computation = Callable[["EvalContext"], Any]


class ValueSource(ABC):
    """A value that is resolved against an evaluation context."""

    @abstractmethod
    def evaluate(self, ctx: EvalContext) -> Any: ...


@dataclass(frozen=True)
class Fixed(ValueSource):
    value: Any

    def evaluate(self, ctx: EvalContext) -> Any:
        return self.value


@dataclass(frozen=True)
class Accessor(ValueSource):
    """Read ``name`` from the context's target object."""

    name: str

    def evaluate(self, ctx: EvalContext) -> Any:
        obj = ctx.object
        if isinstance(obj, Mapping):
            if self.name in obj:
                return obj[self.name]
        elif hasattr(obj, self.name):
            return getattr(obj, self.name)
        raise ConfigurationError(
            f"{type(obj).__name__} has no attribute '{self.name}'"
        )


@dataclass(frozen=True)
class Computed(ValueSource):
    """Call ``func(ctx)``."""

    func: Computation

    def evaluate(self, ctx: EvalContext) -> Any:
        return self.func(ctx)


def as_value_source(value: Any) -> ValueSource:
    """Wrap a definition value: callables become ``Computed``, the rest ``Fixed``."""
    if isinstance(value, ValueSource):
        return value
    if callable(value):
        return Computed(value)
    return Fixed(value)


def as_condition(value: Any) -> ValueSource | None:
    if value is None:
        return None
    return as_value_source(value)

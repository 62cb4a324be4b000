"""Parameter declarations and the per-request parameter bag.

Manifesto:
    Actions declare their parameters up front (name, description, default,
    required flag) so validation is consistent and self-documenting, and
    action bodies never re-implement default handling.

Tags:
    api-spine, framework, params, validation, defaults

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

REQUIRED_MESSAGE = "is required"


@dataclass(frozen=True)
class ParamDef:
    """Definition of an action parameter."""

    name: str
    description: str = ""
    default: Any = None
    required: bool = False
    type: type | tuple[type, ...] | None = None
    validator: Callable[[Any], bool] | None = None
    error_message: str | None = None

    @property
    def has_default(self) -> bool:
        return self.default is not None

    def validate(self, value: Any) -> tuple[bool, str | None]:
        """
        Validate a supplied parameter value.

        ``None`` always passes; absence is the concern of ``required``.

        Returns:
            (is_valid, error_message)
        """
        if value is None:
            return True, None

        if self.type is not None and not isinstance(value, self.type):
            # bool is an int subclass, but "true" is never a valid page number
            if not (isinstance(value, bool) and self.type is int):
                expected = (
                    " or ".join(t.__name__ for t in self.type)
                    if isinstance(self.type, tuple)
                    else self.type.__name__
                )
                return False, f"Expected type {expected}, got {type(value).__name__}"

        if self.validator is not None:
            try:
                if not self.validator(value):
                    return False, self.error_message or f"Validation failed for {self.name}"
            except (TypeError, ValueError) as e:
                return False, str(e)

        return True, None


class ParamSet:
    """
    The parameter bag for one evaluation.

    Holds the raw request parameters plus a defaults map. A lookup falls
    back to the defaults only when the key is absent from the raw
    parameters; an explicitly supplied value always wins, even when it is
    ``None``, ``""``, ``0`` or ``False``. Missing keys read as ``None``.
    """

    def __init__(self, params: Mapping[str, Any] | None = None, defaults: Mapping[str, Any] | None = None):
        self._raw: dict[str, Any] = {str(k): v for k, v in (params or {}).items()}
        self._defaults: dict[str, Any] = {str(k): v for k, v in (defaults or {}).items()}

    @property
    def raw(self) -> dict[str, Any]:
        return dict(self._raw)

    @property
    def defaults(self) -> dict[str, Any]:
        return dict(self._defaults)

    def with_defaults(self, defaults: Mapping[str, Any] | None) -> ParamSet:
        """Return a new bag over the same raw values with ``defaults``."""
        return ParamSet(self._raw, defaults)

    def has(self, key: str) -> bool:
        """True if ``key`` was supplied by the client (defaults do not count)."""
        return str(key) in self._raw

    def get(self, key: str, default: Any = None) -> Any:
        key = str(key)
        if key in self._raw:
            return self._raw[key]
        return self._defaults.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self.get(key)

    def __contains__(self, key: object) -> bool:
        return str(key) in self._raw or str(key) in self._defaults

    def keys(self) -> list[str]:
        return list(dict.fromkeys([*self._raw, *self._defaults]))

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self.keys())

    def to_dict(self) -> dict[str, Any]:
        return {key: self.get(key) for key in self.keys()}

    def __repr__(self) -> str:
        return f"ParamSet({self.to_dict()!r})"


class ParameterSpec:
    """Ordered set of parameters declared by an action."""

    def __init__(self, params: Iterable[ParamDef] = ()):
        self.params: dict[str, ParamDef] = {}
        for param in params:
            self.params[param.name] = param

    def __iter__(self) -> Iterator[ParamDef]:
        return iter(self.params.values())

    def __len__(self) -> int:
        return len(self.params)

    def defaults(self) -> dict[str, Any]:
        """Defaults for every parameter that declares one."""
        return {name: p.default for name, p in self.params.items() if p.has_default}

    def validate(self, params: ParamSet) -> list[dict[str, Any]]:
        """
        Validate a parameter bag against this spec.

        Every violation is collected: one ``{field, message}`` entry per
        required parameter absent from both the raw values and the
        defaults, and one per supplied value failing its type or validator.
        """
        errors: list[dict[str, Any]] = []

        for name, param in self.params.items():
            if name not in params:
                if param.required:
                    errors.append({"field": name, "message": REQUIRED_MESSAGE})
                continue

            is_valid, error = param.validate(params.get(name))
            if not is_valid:
                errors.append({"field": name, "message": error})

        return errors


# =============================================================================
# Built-in Validators
# =============================================================================


def enum_value(enum_class: type[Enum]) -> Callable[[Any], bool]:
    """Create a validator for enum values."""

    def validator(value: Any) -> bool:
        try:
            enum_class(value)
            return True
        except (ValueError, KeyError):
            return False

    return validator


def positive_int(value: Any) -> bool:
    """Validate that an integer is positive."""
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def non_negative_int(value: Any) -> bool:
    """Validate that an integer is non-negative."""
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0

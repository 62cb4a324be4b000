"""Structure definitions: attributes, groups, expansions.

A ``Structure`` describes how one kind of object is turned into a mapping.
Its attributes sit in three tiers (basic, full, expansion) and may be
nested under a group path. Definitions are immutable once built; a reload
replaces the whole registry instead of editing a structure in place.

Tags:
    api-spine, framework, structures, data-model
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from apispine.core.errors import ConfigurationError
from apispine.framework.values import Accessor, ValueSource, as_condition, as_value_source


class Tier(str, Enum):
    """Detail tier of an attribute."""

    BASIC = "basic"
    FULL = "full"
    EXPANSION = "expansion"


@dataclass(frozen=True, eq=False)
class Attribute:
    """
    One output key of a structure.

    The value comes from, in order of precedence, ``value`` (a static value
    or computation) or the ``source_attribute`` accessor on the target
    object (defaulting to the attribute's own name). When ``structure`` is
    set, that value is itself rendered through the named structure with
    ``structure_opts``.
    """

    name: str
    tier: Tier = Tier.BASIC
    source_attribute: str | None = None
    value: ValueSource | None = None
    condition: ValueSource | None = None
    structure: Any = None
    structure_opts: Mapping[str, Any] = field(default_factory=dict)
    group: tuple[str, ...] = ()

    # Documentation only
    description: str | None = None
    type: Any = None
    example: Any = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "tier", Tier(self.tier))
        object.__setattr__(self, "group", tuple(self.group))
        if self.value is not None:
            object.__setattr__(self, "value", as_value_source(self.value))
        object.__setattr__(self, "condition", as_condition(self.condition))

    @property
    def source(self) -> str:
        return self.source_attribute or self.name

    def value_source(self) -> ValueSource:
        return self.value if self.value is not None else Accessor(self.source)


@dataclass(frozen=True, eq=False)
class Expansion:
    """A named computation included only when that expansion is requested."""

    name: str
    computation: ValueSource
    description: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "computation", as_value_source(self.computation))


@dataclass(frozen=True, eq=False)
class Group:
    """A read-only view of one nesting level of a structure."""

    name: str
    path: tuple[str, ...]
    attributes: Mapping[Tier, tuple[Attribute, ...]]
    groups: tuple[Group, ...] = ()


@dataclass(frozen=True, eq=False)
class Structure:
    """
    A named, reusable serializer definition.

    Attributes:
        name: Unique name within a registry
        attributes: Every attribute, each carrying its tier and group path
        expansions: Named expansion computations
        basic: Optional bulk computation merged into every rendering
        full: Optional bulk computation merged when full detail is requested
    """

    name: str
    attributes: tuple[Attribute, ...] = ()
    expansions: Mapping[str, Expansion] = field(default_factory=dict)
    basic: ValueSource | None = None
    full: ValueSource | None = None
    description: str | None = None

    _buckets: Mapping[Tier, tuple[Attribute, ...]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", str(self.name))
        object.__setattr__(self, "attributes", tuple(self.attributes))
        if self.basic is not None:
            object.__setattr__(self, "basic", as_value_source(self.basic))
        if self.full is not None:
            object.__setattr__(self, "full", as_value_source(self.full))

        expansions = self.expansions
        if not isinstance(expansions, Mapping):
            expansions = _index_expansions(self.name, expansions)
        object.__setattr__(self, "expansions", MappingProxyType(dict(expansions)))

        self._check_scopes()
        buckets = {tier: tuple(a for a in self.attributes if a.tier is tier) for tier in Tier}
        object.__setattr__(self, "_buckets", MappingProxyType(buckets))

    def _check_scopes(self) -> None:
        seen: set[tuple[tuple[str, ...], str]] = set()
        for attribute in self.attributes:
            key = (attribute.group, attribute.name)
            if key in seen:
                where = ".".join(attribute.group) or "top level"
                raise ConfigurationError(
                    f"Structure '{self.name}' defines attribute '{attribute.name}' twice ({where})"
                )
            seen.add(key)
        for attribute in self.attributes:
            for depth in range(len(attribute.group)):
                path, name = attribute.group[:depth], attribute.group[depth]
                if (path, name) in seen:
                    raise ConfigurationError(
                        f"Structure '{self.name}' uses '{name}' as both an attribute and a group"
                    )

    def bucket(self, tier: Tier | str) -> tuple[Attribute, ...]:
        """All attributes of ``tier``, across every group, in declaration order."""
        return self._buckets[Tier(tier)]

    def attribute(self, name: str, group: Iterable[str] = ()) -> Attribute | None:
        group = tuple(group)
        for attribute in self.attributes:
            if attribute.name == name and attribute.group == group:
                return attribute
        return None

    @property
    def groups(self) -> tuple[Group, ...]:
        """The group tree, rebuilt from the attributes' group paths."""
        return _build_groups(self.attributes, ())

    def __repr__(self) -> str:
        return f"Structure({self.name!r}, attributes={len(self.attributes)}, expansions={list(self.expansions)})"


def _index_expansions(structure_name: str, expansions: Iterable[Expansion]) -> dict[str, Expansion]:
    index: dict[str, Expansion] = {}
    for expansion in expansions:
        if expansion.name in index:
            raise ConfigurationError(
                f"Structure '{structure_name}' defines expansion '{expansion.name}' twice"
            )
        index[expansion.name] = expansion
    return index


def _build_groups(attributes: tuple[Attribute, ...], path: tuple[str, ...]) -> tuple[Group, ...]:
    depth = len(path)
    names = list(dict.fromkeys(
        a.group[depth] for a in attributes if len(a.group) > depth and a.group[:depth] == path
    ))
    groups = []
    for name in names:
        group_path = path + (name,)
        direct = [a for a in attributes if a.group == group_path]
        groups.append(Group(
            name=name,
            path=group_path,
            attributes=MappingProxyType({tier: tuple(a for a in direct if a.tier is tier) for tier in Tier}),
            groups=_build_groups(attributes, group_path),
        ))
    return tuple(groups)

"""Deep merge of nested mappings, the composition primitive of the engine."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def deep_merge(base: Mapping[str, Any], other: Mapping[str, Any]) -> dict[str, Any]:
    """
    Merge ``other`` on top of ``base`` and return a new dict.

    When both sides hold a mapping under the same key the two are merged
    recursively; any other collision is won by ``other``. Neither input is
    mutated.

    >>> deep_merge({"a": {"x": 1, "y": 2}, "b": 1}, {"a": {"y": 3}, "b": {"z": 4}})
    {'a': {'x': 1, 'y': 3}, 'b': {'z': 4}}
    """
    result = dict(base)
    for key, value in other.items():
        current = result.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            result[key] = deep_merge(current, value)
        else:
            result[key] = value
    return result


def nest(path: tuple[str, ...], key: str, value: Any) -> dict[str, Any]:
    """
    Build ``{path[0]: {path[1]: ... {key: value}}}``.

    >>> nest(("colors", "eyes"), "left", "green")
    {'colors': {'eyes': {'left': 'green'}}}
    """
    result: dict[str, Any] = {key: value}
    for name in reversed(path):
        result = {name: result}
    return result

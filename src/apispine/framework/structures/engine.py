"""Structure engine: render an object through a Structure definition.

Manifesto:
    Rendering is deterministic. Given the same structure, object and
    options, the engine composes the result in a fixed order so later
    tiers can refine what earlier tiers wrote:

    1. basic attributes (every group, conditions applied)
    2. the structure's bulk ``basic`` computation
    3. full attributes and the bulk ``full`` computation (when ``full``)
    4. expansion attributes, then named expansions (when ``expansions``)

    Each step is deep-merged on top of the previous result.

Tags:
    api-spine, framework, structures, serialization, engine

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from apispine.core.errors import ConfigurationError
from apispine.framework.logging import get_logger
from apispine.framework.structures.merge import deep_merge, nest
from apispine.framework.structures.model import Attribute, Structure, Tier
from apispine.framework.values import ValueSource

if TYPE_CHECKING:
    from apispine.framework.context import EvalContext
    from apispine.framework.registry import Registry
    from apispine.framework.request import Request

log = get_logger(__name__)


@dataclass(frozen=True)
class RenderOptions:
    """
    Detail level for one rendering.

    ``expansions`` is ``None``/``False`` (no expansions), ``True`` (every
    expansion) or a frozenset of expansion names.
    """

    full: bool = False
    expansions: bool | frozenset[str] | None = None

    @classmethod
    def coerce(cls, options: RenderOptions | Mapping[str, Any] | None = None) -> RenderOptions:
        if isinstance(options, RenderOptions):
            return options
        options = options or {}
        return cls(
            full=bool(options.get("full", False)),
            expansions=_normalize_expansions(options.get("expansions")),
        )

    @property
    def is_finite(self) -> bool:
        return isinstance(self.expansions, frozenset)

    def allows(self, name: str) -> bool:
        """True if the expansion (or structure) ``name`` passes the expansion filter."""
        if self.is_finite:
            return name in self.expansions
        return self.expansions is True


def _normalize_expansions(value: Any) -> bool | frozenset[str] | None:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str):
        return frozenset([value])
    if isinstance(value, Iterable):
        return frozenset(str(v) for v in value)
    return bool(value)


class StructureEngine:
    """Renders objects through structures looked up in a registry."""

    def __init__(self, registry: Registry):
        self.registry = registry

    def render(
        self,
        structure: Structure | str,
        obj: Any,
        options: RenderOptions | Mapping[str, Any] | None = None,
        *,
        request: Request | None = None,
    ) -> dict[str, Any] | None:
        """
        Compute the mapping for ``obj``.

        A ``None`` object renders as ``None`` without building a context.

        Raises:
            ConfigurationError: unknown structure name, or a bulk
                computation that does not return a mapping
        """
        if obj is None:
            return None

        structure = self.registry.resolve_structure(structure)
        options = RenderOptions.coerce(options)
        ctx = self._context_for(obj, request)

        result = self._hash_for_attributes(structure.bucket(Tier.BASIC), ctx, request)
        result = self._merge_bulk(result, structure, structure.basic, ctx)

        if options.full:
            result = deep_merge(result, self._hash_for_attributes(structure.bucket(Tier.FULL), ctx, request))
            result = self._merge_bulk(result, structure, structure.full, ctx)

        if options.expansions:
            if options.allows(structure.name):
                for attribute in structure.bucket(Tier.EXPANSION):
                    result = deep_merge(result, self._hash_for_attributes((attribute,), ctx, request))

            for name, expansion in structure.expansions.items():
                if options.is_finite and not options.allows(name):
                    continue
                result = deep_merge(result, {name: expansion.computation.evaluate(ctx)})

        log.debug(
            "structure.rendered",
            structure=structure.name,
            full=options.full,
            keys=len(result),
        )
        return result

    def render_many(
        self,
        structure: Structure | str,
        objects: Iterable[Any],
        options: RenderOptions | Mapping[str, Any] | None = None,
        *,
        request: Request | None = None,
    ) -> list[dict[str, Any] | None]:
        structure = self.registry.resolve_structure(structure)
        return [self.render(structure, obj, options, request=request) for obj in objects]

    def _context_for(self, obj: Any, request: Request | None) -> EvalContext:
        from apispine.framework.context import EvalContext

        return EvalContext(self.registry, request, accessors={"o": obj}, engine=self)

    def _hash_for_attributes(
        self,
        attributes: Iterable[Attribute],
        ctx: EvalContext,
        request: Request | None,
    ) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for attribute in attributes:
            if attribute.condition is not None and not attribute.condition.evaluate(ctx):
                continue
            value = self._value_for_attribute(attribute, ctx, request)
            result = deep_merge(result, nest(attribute.group, attribute.name, value))
        return result

    def _value_for_attribute(self, attribute: Attribute, ctx: EvalContext, request: Request | None) -> Any:
        value = attribute.value_source().evaluate(ctx)
        if attribute.structure is None:
            return value

        structure = self.registry.resolve_structure(attribute.structure)
        options = RenderOptions.coerce(attribute.structure_opts)
        if isinstance(value, (list, tuple)):
            return [self.render(structure, item, options, request=request) for item in value]
        return self.render(structure, value, options, request=request)

    def _merge_bulk(
        self,
        result: dict[str, Any],
        structure: Structure,
        computation: ValueSource | None,
        ctx: EvalContext,
    ) -> dict[str, Any]:
        if computation is None:
            return result
        extra = computation.evaluate(ctx)
        if extra is None:
            return result
        if not isinstance(extra, Mapping):
            raise ConfigurationError(
                f"Bulk computation of structure '{structure.name}' returned "
                f"{type(extra).__name__}, expected a mapping"
            ).with_context(structure=structure.name)
        return deep_merge(result, extra)

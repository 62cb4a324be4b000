"""Structure definitions and the engine that renders them."""

from apispine.framework.structures.engine import RenderOptions, StructureEngine
from apispine.framework.structures.merge import deep_merge
from apispine.framework.structures.model import Attribute, Expansion, Group, Structure, Tier

__all__ = [
    "Attribute",
    "Expansion",
    "Group",
    "RenderOptions",
    "Structure",
    "StructureEngine",
    "Tier",
    "deep_merge",
]

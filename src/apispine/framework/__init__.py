"""
api-spine Framework - structures, actions and the dispatch pipeline.

This module provides:
- Structure definitions and the rendering engine
- Controllers, actions, before-filters and helpers
- The immutable registry and its reloadable holder
- The evaluation context handed to user computations
- The request dispatcher
- Definition builders
- Structured logging with dispatch context

The transport adapter lives in ``apispine.api`` and is imported separately.
"""

from apispine.framework.builder import ControllerBuilder, RegistryBuilder, StructureBuilder
from apispine.framework.context import EvalContext
from apispine.framework.controllers import Action, BeforeFilter, Controller, Helper
from apispine.framework.dispatcher import DispatchResult, DispatchStatus, Dispatcher, PipelineStage
from apispine.framework.params import ParamDef, ParameterSpec, ParamSet
from apispine.framework.registry import Registry, RegistryHolder
from apispine.framework.request import Request, parse_path
from apispine.framework.structures import (
    Attribute,
    Expansion,
    RenderOptions,
    Structure,
    StructureEngine,
    Tier,
    deep_merge,
)
from apispine.framework.values import Accessor, Computed, Fixed

__all__ = [
    # Structures
    "Attribute",
    "Expansion",
    "Structure",
    "StructureEngine",
    "RenderOptions",
    "Tier",
    "deep_merge",
    # Values
    "Fixed",
    "Accessor",
    "Computed",
    # Params
    "ParamDef",
    "ParamSet",
    "ParameterSpec",
    # Controllers
    "Action",
    "BeforeFilter",
    "Controller",
    "Helper",
    # Registry
    "Registry",
    "RegistryHolder",
    # Evaluation
    "EvalContext",
    "Request",
    "parse_path",
    # Dispatch
    "Dispatcher",
    "DispatchResult",
    "DispatchStatus",
    "PipelineStage",
    # Builders
    "RegistryBuilder",
    "StructureBuilder",
    "ControllerBuilder",
]

"""
CLI utility helpers: registry loading and output.
"""

from __future__ import annotations

import importlib
from collections.abc import Callable

import typer
from rich.console import Console

from apispine.core.errors import ConfigurationError
from apispine.framework.registry import Registry, RegistryHolder

console = Console()
err_console = Console(stderr=True)


def import_target(target: str) -> object:
    """Import ``package.module:attribute``."""
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise ConfigurationError(f"Expected MODULE:ATTRIBUTE, got {target!r}")
    module = importlib.import_module(module_name)
    try:
        return getattr(module, attribute)
    except AttributeError:
        raise ConfigurationError(f"Module '{module_name}' has no attribute '{attribute}'") from None


def load_holder(target: str) -> RegistryHolder:
    """
    Build a RegistryHolder from ``MODULE:ATTRIBUTE``.

    The attribute is a Registry, or a zero-argument callable returning one
    (which also makes the holder reloadable).
    """
    obj = import_target(target)
    if isinstance(obj, Registry):
        return RegistryHolder(obj)
    if callable(obj):
        loader: Callable[[], Registry] = obj
        registry = loader()
        if not isinstance(registry, Registry):
            raise ConfigurationError(f"{target} returned {type(registry).__name__}, expected a Registry")
        return RegistryHolder(registry, loader=loader)
    raise ConfigurationError(f"{target} is neither a Registry nor a callable returning one")


def load_or_exit(target: str) -> RegistryHolder:
    try:
        return load_holder(target)
    except (ConfigurationError, ImportError) as e:
        err_console.print(f"[red]Could not load registry:[/red] {e}")
        raise typer.Exit(code=1) from e

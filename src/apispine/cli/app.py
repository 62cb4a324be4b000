"""
Root Typer application for the api-spine CLI.

    apispine routes     MODULE:ATTR   list controllers, actions and params
    apispine structures MODULE:ATTR   list structures and their attributes
    apispine serve      MODULE:ATTR   serve the registry over HTTP
"""

from __future__ import annotations

import typer
from rich.table import Table

from apispine.cli.utils import console, err_console, load_or_exit
from apispine.framework.structures.model import Tier

app = typer.Typer(
    name="apispine",
    help="api-spine: versioned structures and actions for JSON APIs.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from apispine import __version__

        typer.echo(f"api-spine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """api-spine CLI: inspect and serve API definitions."""


@app.command("routes")
def routes(
    target: str = typer.Argument(..., help="MODULE:ATTR naming a Registry or a callable returning one"),
    version: int = typer.Option(1, "--version-number", "-v", help="API version shown in paths"),
) -> None:
    """List every controller action with its path and parameters."""
    registry = load_or_exit(target).current

    table = Table(title="Actions")
    table.add_column("Path", style="cyan")
    table.add_column("Description")
    table.add_column("Params")
    table.add_column("Filters", justify="right")

    for controller_name in sorted(registry.controllers):
        controller = registry.controllers[controller_name]
        for action_name in sorted(controller.actions):
            action = controller.actions[action_name]
            params = ", ".join(
                f"{p.name}{'*' if p.required else ''}" + (f"={p.default!r}" if p.has_default else "")
                for p in action.params
            )
            table.add_row(
                f"/v{version}/{controller_name}/{action_name}",
                action.description,
                params or "-",
                str(len(controller.before_filters_for(action_name))),
            )

    console.print(table)


@app.command("structures")
def structures(
    target: str = typer.Argument(..., help="MODULE:ATTR naming a Registry or a callable returning one"),
) -> None:
    """List every structure with its attributes by tier."""
    registry = load_or_exit(target).current

    table = Table(title="Structures")
    table.add_column("Structure", style="cyan")
    for tier in Tier:
        table.add_column(tier.value.capitalize())
    table.add_column("Expansions")

    for name in sorted(registry.structures):
        structure = registry.structures[name]
        cells = [
            ", ".join(".".join((*a.group, a.name)) for a in structure.bucket(tier)) or "-"
            for tier in Tier
        ]
        table.add_row(name, *cells, ", ".join(structure.expansions) or "-")

    console.print(table)


@app.command("serve")
def serve(
    target: str = typer.Argument(..., help="MODULE:ATTR naming a Registry or a callable returning one"),
    host: str | None = typer.Option(None, "--host", "-h", help="Bind address"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port"),
    reload_definitions: bool = typer.Option(
        False, "--reload-definitions", help="Rebuild the registry on every request"
    ),
) -> None:
    """Serve the registry over HTTP."""
    import uvicorn

    from apispine.api.app import create_app
    from apispine.api.settings import get_settings
    from apispine.framework.dispatcher import Dispatcher

    settings = get_settings()
    holder = load_or_exit(target)
    reload_each = reload_definitions or settings.reload_on_each_request
    if reload_each and not holder.can_reload:
        err_console.print("[red]Reloading needs MODULE:ATTR to name a callable returning a Registry[/red]")
        raise typer.Exit(code=1)

    dispatcher = Dispatcher(holder, reload_on_each_request=reload_each)
    bind_host, bind_port = host or settings.host, port or settings.port
    console.print(f"[bold green]Starting api-spine[/bold green] on {bind_host}:{bind_port}")
    uvicorn.run(create_app(dispatcher, settings=settings), host=bind_host, port=bind_port)

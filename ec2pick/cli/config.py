"""Configuration-related CLI commands."""

from __future__ import annotations

import json

import typer

from ec2pick.cli._shared import fail, show_help_if_no_subcommand
from ec2pick.config import SETTABLE_KEYS, ConfigStore
from ec2pick.core.filters import parse_filter

config_app = typer.Typer(help="Manage default pick options")

_KEYS_HELP = f"One of: {', '.join(SETTABLE_KEYS)}."


@config_app.callback(invoke_without_command=True)
def config_root(ctx: typer.Context) -> None:
    """Display contextual help when no subcommand is provided."""

    show_help_if_no_subcommand(ctx)


@config_app.command("show")
def show_config() -> None:
    """Display the current configuration."""

    store = ConfigStore()
    config = store.load()
    typer.echo(json.dumps(config.to_payload(), indent=2, sort_keys=True))


@config_app.command("path")
def show_path() -> None:
    """Print the location of the configuration file."""

    typer.echo(str(ConfigStore().path))


@config_app.command("add-filter")
def add_filter(
    token: str = typer.Argument(
        ...,
        metavar="NAME=VALUE",
        help="Filter applied when no --filter option is given.",
    ),
) -> None:
    """Persist a default instance filter."""

    store = ConfigStore()
    config = store.load()
    try:
        parse_filter(token.strip())
        added = config.add_filter(token)
    except ValueError as exc:
        fail(str(exc), 2)
    store.save(config)
    if added:
        typer.echo(f"Added default filter: {token}")
    else:
        typer.echo("Filter already present; configuration unchanged.")


@config_app.command("remove-filter")
def remove_filter(
    token: str = typer.Argument(..., metavar="NAME=VALUE", help="Default filter to remove."),
) -> None:
    """Remove a default instance filter if it exists."""

    store = ConfigStore()
    config = store.load()
    if not config.remove_filter(token):
        fail("Filter was not configured.")
    store.save(config)
    typer.echo(f"Removed default filter: {token}")


@config_app.command("set")
def set_value(
    key: str = typer.Argument(..., metavar="KEY", help=_KEYS_HELP),
    value: str = typer.Argument(..., metavar="VALUE"),
) -> None:
    """Store a default profile, region, name tag or command template."""

    store = ConfigStore()
    config = store.load()
    try:
        config.set_value(key, value)
    except ValueError as exc:
        fail(str(exc), 2)
    store.save(config)
    typer.echo(f"Set {key} = {value}")


@config_app.command("unset")
def unset_value(
    key: str = typer.Argument(..., metavar="KEY", help=_KEYS_HELP),
) -> None:
    """Clear a stored default."""

    store = ConfigStore()
    config = store.load()
    try:
        config.set_value(key, None)
    except ValueError as exc:
        fail(str(exc), 2)
    store.save(config)
    typer.echo(f"Cleared {key}")

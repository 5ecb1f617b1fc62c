"""Command-line entry point: pick an EC2 instance, then print or act on it."""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import typer

from ec2pick import __version__
from ec2pick.cli.command_runner import ExecError, execute
from ec2pick.cli.config import config_app
from ec2pick.cli.picker import InstancePicker
from ec2pick.config import AppConfig, ConfigStore
from ec2pick.core.filters import build_filters
from ec2pick.core.inventory import InventoryClient, create_ec2_client, fetch_instances
from ec2pick.core.items import SelectionError, selected_output
from ec2pick.core.naming import name_rule_from_options
from ec2pick.core.stream import start_fetch
from ec2pick.logs import configure_logging

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str | None, str | None], InventoryClient]

app = typer.Typer(help="Fuzzy-pick an EC2 instance and print its id or run a command on it.")
app.add_typer(config_app, name="config", help="Inspect and adjust default options")


@dataclass(slots=True)
class PickOptions:
    """Options collected from the command line for a single pick."""

    filters: list[str] = field(default_factory=list)
    name_tag: str | None = None
    name_host: bool = False
    name_id: bool = False
    command: str | None = None
    profile: str | None = None
    region: str | None = None

    def merged_with(self, config: AppConfig) -> PickOptions:
        """Fill unset options from stored defaults; explicit flags always win."""

        explicit_rule = bool(self.name_tag or self.name_host or self.name_id)
        return PickOptions(
            filters=list(self.filters) or list(config.filters),
            name_tag=self.name_tag if explicit_rule else config.name_tag,
            name_host=self.name_host,
            name_id=self.name_id,
            command=self.command or config.command,
            profile=self.profile or config.profile,
            region=self.region or config.region,
        )


@app.callback(invoke_without_command=True)
def cli(
    ctx: typer.Context,
    filters: list[str] | None = typer.Option(
        None,
        "--filter",
        "-f",
        metavar="NAME=VALUE",
        help="Instance filter (repeatable). Defaults to instance-state-name=running.",
    ),
    name_tag: str | None = typer.Option(
        None,
        "--name-tag",
        "-n",
        metavar="NAME",
        help="Display instances by this tag (default: Name).",
    ),
    name_host: bool = typer.Option(
        False,
        "--name-host",
        help="Display instances by public DNS name, falling back to the private one.",
    ),
    name_id: bool = typer.Option(
        False,
        "--name-id",
        help="Display instances by instance id.",
    ),
    command: str | None = typer.Option(
        None,
        "--command",
        "-c",
        metavar="COMMAND",
        help="Run COMMAND with the instance id substituted for {} (or appended).",
    ),
    profile: str | None = typer.Option(
        None, "--profile", "-p", metavar="PROFILE", help="AWS credential profile to use."
    ),
    region: str | None = typer.Option(
        None, "--region", "-r", metavar="REGION", help="AWS region to query."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log debug information to stderr."
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the application's version and exit.",
        is_eager=True,
    ),
) -> None:
    """Pick an instance interactively, then print its id or run a command."""
    if version:
        typer.echo(__version__)
        raise typer.Exit()

    if ctx.invoked_subcommand is not None or ctx.resilient_parsing:
        return

    configure_logging(debug=verbose)
    options = PickOptions(
        filters=list(filters or []),
        name_tag=name_tag,
        name_host=name_host,
        name_id=name_id,
        command=command,
        profile=profile,
        region=region,
    )
    exit_code = pick_instance(options)
    raise typer.Exit(exit_code)


def pick_instance(
    options: PickOptions,
    *,
    store: ConfigStore | None = None,
    client_factory: ClientFactory | None = None,
    picker: InstancePicker | None = None,
    runner: Callable[[str], int] | None = None,
) -> int:
    """Run one fetch, pick and action cycle, returning the process exit code."""

    resolved = options.merged_with((store if store is not None else ConfigStore()).load())
    try:
        predicates = build_filters(resolved.filters)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        return 2

    name_rule = name_rule_from_options(resolved.name_tag, resolved.name_host, resolved.name_id)
    factory = client_factory if client_factory is not None else create_ec2_client
    logger.debug(
        "Picking with rule=%s profile=%s region=%s", name_rule, resolved.profile, resolved.region
    )

    def fetch() -> list[dict]:
        client = factory(resolved.profile, resolved.region)
        return fetch_instances(client, predicates)

    channel = start_fetch(fetch, name_rule)
    try:
        item = (picker if picker is not None else InstancePicker()).run(channel)
        identifier = selected_output(item)
    except SelectionError as exc:
        typer.echo(str(exc), err=True)
        return 1

    try:
        return execute(identifier, resolved.command, runner=runner)
    except ExecError as exc:
        typer.echo(str(exc), err=True)
        return exc.status


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the ec2pick CLI."""

    args = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        result = app(args=args, standalone_mode=False)
    except typer.Exit as exc:  # exit path already handled by Typer
        return exc.exit_code
    except typer.Abort:
        typer.echo("Aborted.", err=True)
        return 1
    except Exception as exc:
        if _is_usage_error(exc):
            exc.show()
            return exc.exit_code
        typer.echo(str(exc), err=True)
        return 1
    return result if isinstance(result, int) else 0


def _is_usage_error(exc: Exception) -> bool:
    """Recognise parser errors, which carry their own exit code and renderer.

    Depending on the Typer release these come from Click or from Typer's
    bundled copy of it, so they are matched by shape rather than by class.
    """

    return isinstance(getattr(exc, "exit_code", None), int) and callable(
        getattr(exc, "show", None)
    )


if __name__ == "__main__":  # pragma: no cover - manual execution only
    raise SystemExit(main())

"""Helpers for acting on the selected instance id."""

from __future__ import annotations

import logging
import os
import shlex
import shutil
from collections.abc import Callable

import typer

__all__ = ["PLACEHOLDER", "ExecError", "build_command_line", "execute", "run_command"]

logger = logging.getLogger(__name__)

PLACEHOLDER = "{}"

OutputFn = Callable[[str], None]
RunnerFn = Callable[[str], int]


class ExecError(Exception):
    """Raised when the templated command exits with a nonzero status."""

    def __init__(self, status: int, command_line: str) -> None:
        super().__init__(f"Command exited with status {status}: {command_line}")
        self.status = status
        self.command_line = command_line


def build_command_line(template: str, identifier: str) -> str:
    """Insert the shell-quoted ``identifier`` into ``template``.

    Every ``{}`` placeholder is replaced; without one the id is appended as a
    trailing argument.
    """

    quoted = shlex.quote(identifier)
    if PLACEHOLDER in template:
        return template.replace(PLACEHOLDER, quoted)
    return f"{template} {quoted}"


def _normalize_exit_status(status: int) -> int:
    """Convert platform-specific wait status values to standard exit codes."""

    waitstatus_to_exitcode: Callable[[int], int] | None = getattr(
        os, "waitstatus_to_exitcode", None
    )
    if waitstatus_to_exitcode is not None:
        return waitstatus_to_exitcode(status)

    wifexited: Callable[[int], bool] | None = getattr(os, "WIFEXITED", None)
    if wifexited is not None and wifexited(status):
        exit_status: Callable[[int], int] = getattr(os, "WEXITSTATUS", lambda value: value)
        return exit_status(status)

    wifsignaled: Callable[[int], bool] | None = getattr(os, "WIFSIGNALED", None)
    if wifsignaled is not None and wifsignaled(status):
        wtermsig: Callable[[int], int] | None = getattr(os, "WTERMSIG", None)
        if wtermsig is not None:
            return 128 + wtermsig(status)

    return status


def _spawn(argv: list[str]) -> int:
    """Run ``argv`` attached to a pseudo-terminal when available."""

    try:
        import pty
    except ImportError as exc:  # pragma: no cover - platform specific
        msg = "PTY support is required to run interactive commands"
        raise RuntimeError(msg) from exc

    return pty.spawn(argv)


def run_command(command_line: str) -> int:
    """Execute ``command_line`` through ``sh -c`` and return its exit code."""

    shell_path = shutil.which("sh")
    if shell_path is None:
        typer.echo("sh command not found", err=True)
        return 1

    logger.debug("Running %s", command_line)
    try:
        status = _spawn([shell_path, "-c", command_line])
    except RuntimeError as exc:  # pragma: no cover - platform specific
        typer.echo(str(exc), err=True)
        return 1
    except OSError as exc:  # pragma: no cover - unexpected OS errors
        typer.echo(str(exc), err=True)
        return 1
    # waitstatus_to_exitcode reports signals as negative numbers.
    exit_code = _normalize_exit_status(status)
    return 128 - exit_code if exit_code < 0 else exit_code


def execute(
    identifier: str,
    template: str | None = None,
    *,
    output: OutputFn | None = None,
    runner: RunnerFn | None = None,
) -> int:
    """Print ``identifier`` or run ``template`` against it."""

    if not template:
        (output if output is not None else typer.echo)(identifier)
        return 0

    command_line = build_command_line(template, identifier)
    status = (runner if runner is not None else run_command)(command_line)
    if status != 0:
        raise ExecError(status, command_line)
    return 0

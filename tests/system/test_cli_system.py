"""System-level tests that exercise the CLI via subprocess execution."""

from __future__ import annotations

import json

import pytest

from ec2pick import __version__
from ec2pick.config import AppConfig, ConfigStore

pytestmark = pytest.mark.system


def test_version_flag_reports_package_version(run_cli) -> None:
    """The --version flag should report the installed package version."""

    result = run_cli(["--version"])

    assert result.returncode == 0
    assert result.stdout.strip() == __version__
    assert result.stderr == ""


def test_config_show_outputs_default_payload(run_cli) -> None:
    """The config show command should emit the default configuration."""

    result = run_cli(["config", "show"])

    assert result.returncode == 0
    payload = json.loads(result.stdout)
    assert payload == {"filters": []}


def test_config_show_respects_existing_config(run_cli, system_config_dir) -> None:
    """Pre-populated configuration files should be surfaced by the CLI."""

    store = ConfigStore(path=system_config_dir / "config.json")
    store.save(AppConfig(profile="staging", filters=["tag:env=prod"]))

    result = run_cli(["config", "show"])

    assert result.returncode == 0
    payload = json.loads(result.stdout)
    assert payload == {"filters": ["tag:env=prod"], "profile": "staging"}


def test_invalid_filter_is_a_usage_error(run_cli) -> None:
    """A filter without a name is rejected before any AWS call."""

    result = run_cli(["--filter", "=running"])

    assert result.returncode == 2
    assert "Invalid filter" in result.stderr
    assert result.stdout == ""


def test_fetch_failure_is_shown_and_cannot_be_selected(run_cli) -> None:
    """An unknown profile surfaces as the error entry; picking it fails the run."""

    result = run_cli(["--profile", "does-not-exist"], input_text="1\n")

    assert result.returncode == 1
    assert "error" in result.stderr
    assert "does-not-exist" in result.stderr
    assert result.stdout == ""

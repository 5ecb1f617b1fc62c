"""Fixtures supporting CLI system tests."""

from __future__ import annotations

import os
import subprocess
import sys
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

import pytest

RunCli = Callable[
    [Sequence[str] | None, Mapping[str, str] | None, str | None],
    subprocess.CompletedProcess[str],
]


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the repository root."""

    return Path(__file__).resolve().parents[2]


@pytest.fixture
def system_environment(
    tmp_path,
    project_root: Path,
) -> tuple[dict[str, str], Path]:
    """Provide an isolated environment for invoking the CLI as a subprocess.

    AWS lookups are pinned to files that do not exist and the instance
    metadata service is disabled, so no test can reach real credentials.
    """

    config_dir = tmp_path / "config"
    env = os.environ.copy()
    for key in [name for name in env if name.startswith("AWS_")]:
        env.pop(key)
    env["EC2PICK_CONFIG_DIR"] = str(config_dir)
    env["AWS_CONFIG_FILE"] = str(tmp_path / "aws-config")
    env["AWS_SHARED_CREDENTIALS_FILE"] = str(tmp_path / "aws-credentials")
    env["AWS_EC2_METADATA_DISABLED"] = "true"
    env["AWS_DEFAULT_REGION"] = "us-east-1"

    existing_path = env.get("PYTHONPATH")
    components = [str(project_root)]
    if existing_path:
        components.append(existing_path)
    env["PYTHONPATH"] = os.pathsep.join(components)

    return env, config_dir


@pytest.fixture
def run_cli(
    system_environment: tuple[dict[str, str], Path],
    project_root: Path,
) -> RunCli:
    """Return a helper that executes the CLI via ``python -m ec2pick``."""

    base_env, _ = system_environment

    def _run(
        args: Sequence[str] | None,
        extra_env: Mapping[str, str] | None = None,
        input_text: str | None = None,
    ) -> subprocess.CompletedProcess[str]:
        command = [sys.executable, "-m", "ec2pick"]
        if args:
            command.extend(args)

        env = base_env.copy()
        if extra_env:
            env.update(extra_env)

        return subprocess.run(
            command,
            cwd=project_root,
            env=env,
            input=input_text,
            text=True,
            capture_output=True,
            check=False,
            timeout=60,
        )

    return _run


@pytest.fixture
def system_config_dir(system_environment: tuple[dict[str, str], Path]) -> Path:
    """Expose the configuration directory used during system tests."""

    _, config_dir = system_environment
    return config_dir

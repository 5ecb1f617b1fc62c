"""Utilities for resolving filesystem locations used by ec2pick."""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import user_config_path

__all__ = ["config_dir"]


def config_dir() -> Path:
    """Return the directory that holds the user configuration file.

    The path defaults to the platform-specific user config directory exposed
    by :mod:`platformdirs`. When the ``EC2PICK_CONFIG_DIR`` environment
    variable is set the value is treated as an override, allowing tests or
    alternative deployments to isolate their state.
    """

    override = os.getenv("EC2PICK_CONFIG_DIR")
    path = Path(override).expanduser() if override else user_config_path("ec2pick")

    path.mkdir(parents=True, exist_ok=True)
    return path

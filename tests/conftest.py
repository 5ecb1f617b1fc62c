"""Shared pytest configuration for the test suite."""

from __future__ import annotations

from pathlib import Path

import pytest


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Tag every test that is not marked as system as a unit test."""

    for item in items:
        if "system" not in item.keywords:
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def isolated_config_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Keep every test away from the user's real configuration file."""

    config_dir = tmp_path / "ec2pick-config"
    monkeypatch.setenv("EC2PICK_CONFIG_DIR", str(config_dir))
    return config_dir

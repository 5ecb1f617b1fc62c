"""Configuration models and persistence helpers for ec2pick."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ec2pick.paths import config_dir

__all__ = ["AppConfig", "ConfigStore", "SETTABLE_KEYS", "default_config_path"]

_DEFAULT_CONFIG_FILENAME = "config.json"

SETTABLE_KEYS = ("profile", "region", "name_tag", "command")


def _clean_str(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    return normalized or None


@dataclass(slots=True)
class AppConfig:
    """Defaults applied to every pick unless overridden on the command line."""

    profile: str | None = None
    region: str | None = None
    name_tag: str | None = None
    command: str | None = None
    filters: list[str] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        """Serialize the configuration into a JSON-compatible structure."""

        payload: dict[str, Any] = {"filters": list(self.filters)}
        for key in SETTABLE_KEYS:
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        return payload

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> AppConfig:
        """Create a configuration instance from serialized data."""

        raw_filters = payload.get("filters", [])
        filters: list[str] = []
        if isinstance(raw_filters, list):
            for item in raw_filters:
                normalized = _clean_str(item)
                if normalized and normalized not in filters:
                    filters.append(normalized)
        return cls(
            profile=_clean_str(payload.get("profile")),
            region=_clean_str(payload.get("region")),
            name_tag=_clean_str(payload.get("name_tag")),
            command=_clean_str(payload.get("command")),
            filters=filters,
        )

    def add_filter(self, token: str) -> bool:
        """Add a default filter token, if absent."""

        normalized = token.strip()
        if not normalized:
            msg = "Filter must not be empty."
            raise ValueError(msg)
        if normalized in self.filters:
            return False
        self.filters.append(normalized)
        return True

    def remove_filter(self, token: str) -> bool:
        """Remove a default filter token if present."""

        try:
            self.filters.remove(token.strip())
        except ValueError:
            return False
        return True

    def set_value(self, key: str, value: str | None) -> None:
        """Assign one of the scalar defaults, clearing it when ``value`` is blank."""

        if key not in SETTABLE_KEYS:
            msg = f"Unknown setting '{key}'. Choose one of: {', '.join(SETTABLE_KEYS)}."
            raise ValueError(msg)
        setattr(self, key, _clean_str(value))


def default_config_path() -> Path:
    """Return the default location for the application's configuration file."""

    return config_dir() / _DEFAULT_CONFIG_FILENAME


class ConfigStore:
    """Manage persistence of the application configuration file."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path if path is not None else default_config_path()

    @property
    def path(self) -> Path:
        """Expose the backing configuration file path."""

        return self._path

    def load(self) -> AppConfig:
        """Load configuration from disk, returning defaults when absent."""

        if not self._path.exists():
            return AppConfig()
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError:
            return AppConfig()
        if not raw.strip():
            return AppConfig()
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            return AppConfig()
        if not isinstance(payload, dict):
            return AppConfig()
        return AppConfig.from_payload(payload)

    def save(self, config: AppConfig) -> None:
        """Persist the provided configuration to disk atomically."""

        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = json.dumps(config.to_payload(), indent=2, sort_keys=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(data, encoding="utf-8")
        tmp_path.replace(self._path)

"""Selectable entities handed to the interactive picker."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any, Protocol

import humanize

from ec2pick.core.naming import NameResolutionError, NameRule, resolve_name

__all__ = [
    "ERROR_DISPLAY_TEXT",
    "ErrorItem",
    "InstanceItem",
    "PreviewError",
    "Selectable",
    "SelectionError",
    "build_items",
    "selected_output",
]

logger = logging.getLogger(__name__)

ERROR_DISPLAY_TEXT = "error"

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    """Return a timezone-aware UTC timestamp."""
    return datetime.now(UTC)


class PreviewError(Exception):
    """Raised while formatting a preview; always degraded, never propagated."""


class SelectionError(Exception):
    """Raised when a pick does not produce a usable instance id."""


class Selectable(Protocol):
    """Contract every entry of the picker list satisfies."""

    def display_text(self) -> str: ...

    def preview_text(self) -> str: ...

    def output_value(self) -> str: ...


class ErrorItem:
    """Placeholder entry that surfaces a fetch failure inside the picker."""

    __slots__ = ("message",)

    def __init__(self, message: str) -> None:
        self.message = message

    def display_text(self) -> str:
        return ERROR_DISPLAY_TEXT

    def preview_text(self) -> str:
        return self.message

    def output_value(self) -> str:
        raise SelectionError(f"No instance selected: {self.message}")

    def __repr__(self) -> str:
        return f"ErrorItem(message={self.message!r})"


class InstanceItem:
    """An EC2 instance together with its resolved display name."""

    __slots__ = ("instance", "name_rule", "_display", "_clock")

    def __init__(
        self,
        instance: dict[str, Any],
        name_rule: NameRule,
        *,
        clock: Clock | None = None,
    ) -> None:
        self.instance = instance
        self.name_rule = name_rule
        self._clock = clock if clock is not None else _utcnow
        self._display = self._resolve_display()

    @property
    def instance_id(self) -> str:
        return self.instance.get("InstanceId") or ""

    def display_text(self) -> str:
        return self._display

    def output_value(self) -> str:
        return self.instance_id

    def preview_text(self) -> str:
        """Render the detail panel as key-sorted JSON.

        Formatting problems degrade to a short notice rather than raising, so
        one odd record cannot take the picker down.
        """

        try:
            payload = self._preview_payload()
            return json.dumps(payload, indent=2, sort_keys=True, default=str)
        except (PreviewError, AttributeError, TypeError, ValueError) as exc:
            logger.info("Preview failed for %s: %s", self.instance_id or "<unknown>", exc)
            return f"preview unavailable: {exc}\ninstance_id: {self.instance_id}"

    def _resolve_display(self) -> str:
        try:
            return resolve_name(self.name_rule, self.instance)
        except NameResolutionError as exc:
            logger.info("Falling back to instance id for %s: %s", self.instance_id, exc)
            return f"{self.instance_id} [{exc}]"

    def _preview_payload(self) -> dict[str, Any]:
        instance = self.instance
        state = instance.get("State") or {}
        placement = instance.get("Placement") or {}
        if not isinstance(state, dict) or not isinstance(placement, dict):
            raise PreviewError("malformed State or Placement block")
        return {
            "instance_id": instance.get("InstanceId"),
            "instance_type": instance.get("InstanceType"),
            "state": state.get("Name"),
            "uptime": self._uptime(instance.get("LaunchTime")),
            "public_dns_name": instance.get("PublicDnsName") or None,
            "private_dns_name": instance.get("PrivateDnsName") or None,
            "public_ip": instance.get("PublicIpAddress"),
            "private_ip": instance.get("PrivateIpAddress"),
            "availability_zone": placement.get("AvailabilityZone"),
            "tags": self._tags(instance.get("Tags")),
        }

    def _uptime(self, launch_time: Any) -> str:
        if launch_time is None:
            return ""
        if not isinstance(launch_time, datetime):
            raise PreviewError(f"unexpected LaunchTime {launch_time!r}")
        if launch_time.tzinfo is None:
            launch_time = launch_time.replace(tzinfo=UTC)
        return humanize.naturaltime(self._clock() - launch_time)

    @staticmethod
    def _tags(raw_tags: Any) -> dict[str, str]:
        tags: dict[str, str] = {}
        for tag in raw_tags or []:
            key = tag.get("Key")
            if key is None:
                raise PreviewError("tag without a key")
            tags[key] = tag.get("Value") or ""
        return dict(sorted(tags.items()))

    def __repr__(self) -> str:
        return f"InstanceItem(instance_id={self.instance_id!r}, display={self._display!r})"


def build_items(
    instances: Iterable[dict[str, Any]],
    name_rule: NameRule,
    *,
    clock: Clock | None = None,
) -> list[InstanceItem]:
    """Wrap fetched instances, resolving each display name exactly once."""

    return [InstanceItem(instance, name_rule, clock=clock) for instance in instances]


def selected_output(item: Selectable | None) -> str:
    """Return the instance id for a picked item.

    Aborted picks, the error placeholder and items without an id all raise
    :class:`SelectionError` so nothing but a real instance id reaches the
    action stage.
    """

    if item is None:
        raise SelectionError("No instance selected.")
    value = item.output_value()
    if not value:
        raise SelectionError("Selected entry has no instance id.")
    return value

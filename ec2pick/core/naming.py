"""Rules deciding which text represents an instance in the picker."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

__all__ = [
    "DEFAULT_NAME_TAG",
    "HostRule",
    "InstanceIdRule",
    "NameResolutionError",
    "NameRule",
    "TagMissingError",
    "TagRule",
    "name_rule_from_options",
    "resolve_name",
]

DEFAULT_NAME_TAG = "Name"


class NameResolutionError(Exception):
    """Base exception for instances whose display name cannot be derived."""


class TagMissingError(NameResolutionError):
    """Raised when the naming tag is absent or has no value."""

    def __init__(self, tag: str) -> None:
        super().__init__(f"missing tag: {tag}")
        self.tag = tag


@dataclass(frozen=True, slots=True)
class TagRule:
    """Name instances by the value of a tag."""

    tag: str = DEFAULT_NAME_TAG


@dataclass(frozen=True, slots=True)
class HostRule:
    """Name instances by their public DNS name, falling back to the private one."""


@dataclass(frozen=True, slots=True)
class InstanceIdRule:
    """Name instances by their instance id."""


NameRule = TagRule | HostRule | InstanceIdRule


def name_rule_from_options(
    name_tag: str | None = None,
    name_host: bool = False,
    name_id: bool = False,
) -> NameRule:
    """Pick the active rule; an explicit tag wins over host, host over id."""

    if name_tag:
        return TagRule(name_tag)
    if name_host:
        return HostRule()
    if name_id:
        return InstanceIdRule()
    return TagRule()


def _tag_value(instance: dict[str, Any], key: str) -> str | None:
    for tag in instance.get("Tags") or []:
        if tag.get("Key") == key:
            return tag.get("Value") or None
    return None


def resolve_name(rule: NameRule, instance: dict[str, Any]) -> str:
    """Return the display text ``rule`` derives from ``instance``.

    Only :class:`TagRule` can fail; the host and id rules fall back to an
    empty string instead.
    """

    match rule:
        case TagRule(tag=tag):
            value = _tag_value(instance, tag)
            if value is None:
                raise TagMissingError(tag)
            return value
        case HostRule():
            return instance.get("PublicDnsName") or instance.get("PrivateDnsName") or ""
        case InstanceIdRule():
            return instance.get("InstanceId") or ""
    msg = f"Unsupported name rule: {rule!r}"
    raise TypeError(msg)

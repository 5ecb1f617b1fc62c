"""Tests for the selectable item contract and preview formatting."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from ec2pick.core import items as items_module
from ec2pick.core.items import (
    ERROR_DISPLAY_TEXT,
    ErrorItem,
    InstanceItem,
    SelectionError,
    build_items,
    selected_output,
)
from ec2pick.core.naming import HostRule, InstanceIdRule, TagRule

_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def _clock() -> datetime:
    return _NOW


def _make_instance(
    instance_id: str = "i-0123",
    *,
    name: str | None = "web-1",
    launched: datetime | None = _NOW - timedelta(hours=3),
    **extra: Any,
) -> dict[str, Any]:
    instance: dict[str, Any] = {
        "InstanceId": instance_id,
        "InstanceType": "t3.micro",
        "State": {"Code": 16, "Name": "running"},
        "PublicDnsName": "",
        "PrivateDnsName": "ip-10-0-0-5.ec2.internal",
        "Tags": [{"Key": "env", "Value": "prod"}],
    }
    if name is not None:
        instance["Tags"].append({"Key": "Name", "Value": name})
    if launched is not None:
        instance["LaunchTime"] = launched
    instance.update(extra)
    return instance


def test_instance_item_uses_name_rule_for_display() -> None:
    instance = _make_instance()

    assert InstanceItem(instance, TagRule()).display_text() == "web-1"
    assert InstanceItem(instance, HostRule()).display_text() == "ip-10-0-0-5.ec2.internal"
    assert InstanceItem(instance, InstanceIdRule()).display_text() == "i-0123"


@pytest.mark.parametrize("rule", [TagRule(), TagRule("Missing"), HostRule(), InstanceIdRule()])
def test_output_is_always_the_instance_id(rule: Any) -> None:
    """The output value does not depend on the active name rule."""

    item = InstanceItem(_make_instance("i-0abc"), rule)

    assert item.output_value() == "i-0abc"
    assert selected_output(item) == "i-0abc"


def test_missing_name_tag_falls_back_to_marked_id() -> None:
    """An unnamed instance stays in the list, labelled by its id."""

    items = build_items([_make_instance("i-1"), _make_instance("i-2", name=None)], TagRule())

    assert [item.display_text() for item in items] == ["web-1", "i-2 [missing tag: Name]"]
    assert items[1].output_value() == "i-2"


def test_display_is_resolved_once(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []

    def fake_resolve(rule: Any, instance: dict[str, Any]) -> str:
        calls.append(instance["InstanceId"])
        return "cached"

    monkeypatch.setattr(items_module, "resolve_name", fake_resolve)
    item = InstanceItem(_make_instance(), TagRule())

    assert item.display_text() == "cached"
    assert item.display_text() == "cached"
    assert calls == ["i-0123"]


def test_preview_is_sorted_json_with_uptime() -> None:
    item = InstanceItem(
        _make_instance(PublicIpAddress="203.0.113.7", Placement={"AvailabilityZone": "us-east-1a"}),
        TagRule(),
        clock=_clock,
    )

    text = item.preview_text()
    payload = json.loads(text)

    assert list(payload) == sorted(payload)
    assert payload["instance_id"] == "i-0123"
    assert payload["instance_type"] == "t3.micro"
    assert payload["state"] == "running"
    assert payload["uptime"] == "3 hours ago"
    assert payload["public_dns_name"] is None
    assert payload["private_dns_name"] == "ip-10-0-0-5.ec2.internal"
    assert payload["public_ip"] == "203.0.113.7"
    assert payload["availability_zone"] == "us-east-1a"
    assert payload["tags"] == {"Name": "web-1", "env": "prod"}
    assert list(payload["tags"]) == ["Name", "env"]


def test_preview_without_launch_time_has_empty_uptime() -> None:
    item = InstanceItem(_make_instance(launched=None), TagRule(), clock=_clock)

    assert json.loads(item.preview_text())["uptime"] == ""


def test_preview_is_idempotent() -> None:
    item = InstanceItem(_make_instance(), TagRule(), clock=_clock)

    assert item.preview_text() == item.preview_text()


@pytest.mark.parametrize(
    "overrides",
    [
        {"LaunchTime": "yesterday"},
        {"State": "running"},
        {"Tags": [{"Value": "orphan"}]},
    ],
)
def test_malformed_fields_degrade_the_preview(overrides: dict[str, Any]) -> None:
    """A broken record still renders something instead of raising."""

    instance = _make_instance()
    instance.update(overrides)
    item = InstanceItem(instance, InstanceIdRule(), clock=_clock)

    text = item.preview_text()

    assert text.startswith("preview unavailable:")
    assert "i-0123" in text


def test_error_item_contract() -> None:
    item = ErrorItem("describe_instances failed (AuthFailure): bad token")

    assert item.display_text() == ERROR_DISPLAY_TEXT
    assert item.preview_text() == "describe_instances failed (AuthFailure): bad token"
    with pytest.raises(SelectionError, match="bad token"):
        item.output_value()


def test_selected_output_rejects_non_instances() -> None:
    with pytest.raises(SelectionError):
        selected_output(None)
    with pytest.raises(SelectionError):
        selected_output(ErrorItem("boom"))
    with pytest.raises(SelectionError, match="no instance id"):
        selected_output(InstanceItem({}, InstanceIdRule()))


def test_preview_failure_is_logged_below_warning(caplog: pytest.LogCaptureFixture) -> None:
    item = InstanceItem(_make_instance(State="broken"), InstanceIdRule(), clock=_clock)

    with caplog.at_level(logging.DEBUG, logger="ec2pick.core.items"):
        item.preview_text()

    assert caplog.records
    assert all(record.levelno < logging.WARNING for record in caplog.records)

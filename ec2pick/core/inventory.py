"""Fetch EC2 instances and flatten the reservation grouping."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ec2pick.core.filters import FilterPredicate

__all__ = [
    "EmptyResponseError",
    "FetchError",
    "IncompleteResourceError",
    "InventoryClient",
    "TransportError",
    "create_ec2_client",
    "fetch_instances",
]

logger = logging.getLogger(__name__)

Instance = dict[str, Any]


class FetchError(Exception):
    """Base exception for failures while querying the inventory."""


class EmptyResponseError(FetchError):
    """Raised when the response carries no reservation structure at all."""


class TransportError(FetchError):
    """Raised when the underlying AWS call fails (network, auth, service)."""


class IncompleteResourceError(FetchError):
    """Raised when an instance record lacks its identifier."""


class InventoryClient(Protocol):
    """The slice of the boto3 EC2 client used to list instances."""

    def describe_instances(self, **kwargs: Any) -> dict[str, Any]: ...


def create_ec2_client(profile: str | None = None, region: str | None = None) -> InventoryClient:
    """Build an EC2 client from an explicit session.

    The credential profile is handed to the session rather than exported via
    ``AWS_PROFILE``, so the process environment is never modified.
    """

    try:
        session = boto3.Session(profile_name=profile, region_name=region)
        return session.client("ec2")
    except BotoCoreError as exc:
        raise TransportError(f"Unable to create EC2 client: {exc}") from exc


def fetch_instances(
    client: InventoryClient,
    predicates: Sequence[FilterPredicate],
) -> list[Instance]:
    """Run a single ``DescribeInstances`` query and flatten its reservations.

    Instances keep reservation order, then their order within each
    reservation. A response without a ``Reservations`` key is treated as an
    error, whereas an empty reservation list is simply an empty result.
    """

    filters = [predicate.to_api() for predicate in predicates]
    logger.debug("describe_instances filters=%s", filters)
    try:
        response = client.describe_instances(Filters=filters)
    except ClientError as exc:
        error = exc.response.get("Error", {})
        code = error.get("Code", "Unknown")
        message = error.get("Message", str(exc))
        raise TransportError(f"describe_instances failed ({code}): {message}") from exc
    except BotoCoreError as exc:
        raise TransportError(f"describe_instances failed: {exc}") from exc

    reservations = response.get("Reservations")
    if reservations is None:
        raise EmptyResponseError("describe_instances returned no reservations")

    instances: list[Instance] = []
    for reservation in reservations:
        for instance in reservation.get("Instances", []):
            if not instance.get("InstanceId"):
                raise IncompleteResourceError(
                    "describe_instances returned an instance without an InstanceId"
                )
            instances.append(instance)

    logger.debug(
        "Fetched %d instance(s) across %d reservation(s)", len(instances), len(reservations)
    )
    return instances

"""Translate ``NAME=VALUE`` command-line tokens into EC2 query filters."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

__all__ = ["DEFAULT_FILTERS", "FilterPredicate", "build_filters", "parse_filter"]

DEFAULT_FILTERS: tuple[str, ...] = ("instance-state-name=running",)


@dataclass(frozen=True, slots=True)
class FilterPredicate:
    """A named filter criterion sent to ``DescribeInstances``."""

    name: str
    values: tuple[str, ...] = ()

    def to_api(self) -> dict[str, Any]:
        """Return the boto3 ``Filters`` entry for this predicate."""

        return {"Name": self.name, "Values": list(self.values)}


def parse_filter(token: str) -> FilterPredicate:
    """Split ``token`` once on ``=``; a bare name carries no values."""

    name, separator, value = token.partition("=")
    if not name:
        msg = f"Invalid filter '{token}': expected NAME=VALUE or NAME."
        raise ValueError(msg)
    if not separator:
        return FilterPredicate(name=name)
    return FilterPredicate(name=name, values=(value,))


def build_filters(tokens: Iterable[str] | None = None) -> list[FilterPredicate]:
    """Build one predicate per token, preserving order and duplicates.

    When no tokens are supplied the running-instances default is used.
    """

    provided: Sequence[str] = list(tokens) if tokens is not None else []
    if not provided:
        provided = DEFAULT_FILTERS
    return [parse_filter(token) for token in provided]

"""Logging setup shared by the CLI entry points."""

from __future__ import annotations

import logging
import os
import sys

import structlog

__all__ = ["configure_logging"]

_DEFAULT_LEVEL = logging.WARNING


def _resolve_level(value: str | int | None, debug: bool) -> int:
    if debug:
        return logging.DEBUG
    if value is None:
        return _DEFAULT_LEVEL
    if isinstance(value, int):
        return value
    try:
        return int(value)
    except (TypeError, ValueError):
        pass
    return logging.getLevelNamesMapping().get(value.upper(), _DEFAULT_LEVEL)


def configure_logging(*, level: str | int | None = None, debug: bool = False) -> None:
    """Route stdlib logging to stderr through a structlog console formatter.

    Records stay quiet at WARNING by default so the full-screen picker is not
    interrupted. ``EC2PICK_LOG_LEVEL`` applies when ``level`` is not given.
    """

    resolved_level = _resolve_level(level or os.environ.get("EC2PICK_LOG_LEVEL"), debug)

    pre_chain = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(colors=False),
        foreign_pre_chain=pre_chain,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(resolved_level)

    # boto's own chatter is only interesting when explicitly debugging.
    for noisy in ("botocore", "boto3", "urllib3"):
        logging.getLogger(noisy).setLevel(max(resolved_level, logging.INFO))


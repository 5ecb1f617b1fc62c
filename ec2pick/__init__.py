"""Fuzzy-pick an EC2 instance and print its id or run a command against it."""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"

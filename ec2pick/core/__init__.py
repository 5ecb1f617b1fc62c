"""Inventory, naming and streaming primitives shared by the CLI."""

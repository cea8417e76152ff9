"""Delve - procedural dungeon generation and turn-based party combat."""

__version__ = "0.1.0"

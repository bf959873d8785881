"""Prune client-only assets from dedicated game server installations."""

__version__ = "0.1.0"

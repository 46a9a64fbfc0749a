"""Persistent storage backends."""
from __future__ import annotations

from .sqlite import SqliteFleetStore

__all__ = ["SqliteFleetStore"]

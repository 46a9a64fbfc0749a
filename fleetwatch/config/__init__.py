"""Configuration for fleetwatch."""
from __future__ import annotations

from .loader import load_settings
from .settings import FleetSettings

__all__ = ["FleetSettings", "load_settings"]

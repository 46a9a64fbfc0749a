"""Configuration loader for fleetwatch.

Loads settings from a JSON file and environment variables:
- ${ENV_VAR} substitution inside string values
- FLEETWATCH_* environment overrides (ADMIN_PUBLIC_KEY is accepted for the admin key)
"""

from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .settings import FleetSettings

logger = logging.getLogger(__name__)

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")

# env var -> settings field
ENV_OVERRIDES: dict[str, str] = {
    "FLEETWATCH_ADMIN_KEY": "admin_key",
    "FLEETWATCH_DATABASE_PATH": "database_path",
    "FLEETWATCH_STALENESS_MINUTES": "staleness_minutes",
    "FLEETWATCH_RATE_WINDOW_HOURS": "rate_window_hours",
    "FLEETWATCH_OPERATION_TIMEOUT": "operation_timeout_seconds",
    "FLEETWATCH_POST_LIMIT": "post_limit_per_day",
    "FLEETWATCH_VOTE_LIMIT": "vote_limit_per_day",
    "FLEETWATCH_HOST": "host",
    "FLEETWATCH_PORT": "port",
    "FLEETWATCH_LOG_LEVEL": "log_level",
}

LEGACY_ADMIN_KEY_ENV = "ADMIN_PUBLIC_KEY"


def _substitute_env_vars(obj: Any, env: Mapping[str, str]) -> Any:
    """Recursively replace ${VAR} with environment values (unresolved tokens stay as-is)."""
    if isinstance(obj, str):
        return _ENV_VAR_RE.sub(lambda m: env.get(m.group(1), m.group(0)), obj)
    if isinstance(obj, dict):
        return {k: _substitute_env_vars(v, env) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_substitute_env_vars(v, env) for v in obj]
    return obj


def _resolve_config_path(config_path: str | Path | None) -> Path | None:
    if config_path:
        return Path(config_path)

    candidates = [
        Path.cwd() / "fleetwatch.json",
        Path.cwd() / "config" / "fleetwatch.json",
        Path.home() / ".fleetwatch" / "config.json",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if env.get(LEGACY_ADMIN_KEY_ENV):
        overrides["admin_key"] = env[LEGACY_ADMIN_KEY_ENV]
    for var, field in ENV_OVERRIDES.items():
        value = env.get(var)
        if value is not None and value != "":
            overrides[field] = value
    return overrides


def load_config_raw(path: Path, env: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Read a JSON config file and substitute ${VAR} tokens."""
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError(f"Config root must be an object: {path}")
    return _substitute_env_vars(raw, os.environ if env is None else env)


def load_settings(
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> FleetSettings:
    """Build settings from file + environment.

    Args:
        config_path: Explicit config file. When omitted, well-known locations are searched.
        env: Environment mapping (defaults to os.environ).

    Raises:
        FileNotFoundError: An explicit config_path does not exist
        pydantic.ValidationError: A value fails validation
    """
    env = os.environ if env is None else env
    path = _resolve_config_path(config_path)

    data: dict[str, Any] = {}
    if path is not None:
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        data = load_config_raw(path, env)
        logger.info(f"Loaded config from {path} (keys={sorted(data)})")

    data.update(_env_overrides(env))
    return FleetSettings(**data)


__all__ = [
    "ENV_OVERRIDES",
    "LEGACY_ADMIN_KEY_ENV",
    "load_config_raw",
    "load_settings",
]

"""
Fleet settings schema.

Settings are built once (usually by ``load_settings``) and passed into each
component at construction.
"""
from __future__ import annotations

from datetime import timedelta
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from ..activity.policy import DEFAULT_POST_LIMIT_PER_DAY, DEFAULT_VOTE_LIMIT_PER_DAY, RateLimitPolicy


class FleetSettings(BaseModel):
    """Runtime configuration for the fleet tracker"""

    # Shared secret for admin routes; unset means admin routes reject everything
    admin_key: str | None = None

    # SQLite file; None keeps everything in memory
    database_path: Path | None = None

    staleness_minutes: float = Field(default=30, gt=0)
    rate_window_hours: float = Field(default=24, gt=0)
    admin_list_limit: int = Field(default=500, gt=0)
    operation_timeout_seconds: float | None = Field(default=10.0, gt=0)

    post_limit_per_day: int = Field(default=DEFAULT_POST_LIMIT_PER_DAY, ge=0)
    vote_limit_per_day: int = Field(default=DEFAULT_VOTE_LIMIT_PER_DAY, ge=0)

    host: str = "127.0.0.1"
    port: int = Field(default=8080, gt=0, lt=65536)
    log_level: str = "INFO"

    @field_validator("admin_key")
    @classmethod
    def _blank_key_is_unset(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @property
    def staleness_threshold(self) -> timedelta:
        return timedelta(minutes=self.staleness_minutes)

    @property
    def rate_window(self) -> timedelta:
        return timedelta(hours=self.rate_window_hours)

    def rate_limit_policy(self) -> RateLimitPolicy:
        return RateLimitPolicy(
            post_limit_per_day=self.post_limit_per_day,
            vote_limit_per_day=self.vote_limit_per_day,
        )


__all__ = ["FleetSettings"]

"""
Release registry: version -> changelog mapping shown to instances.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from pydantic import BaseModel

from .clock import Clock


class Release(BaseModel):
    version: str
    changelog: str
    released_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class ReleaseStore(Protocol):
    async def list_releases(self) -> list[Release]: ...

    async def latest_release(self) -> Release | None: ...

    async def upsert_release(self, version: str, changelog: str) -> Release: ...

    async def delete_release(self, version: str) -> bool: ...


class InMemoryReleaseStore:
    """Upserting a version replaces its changelog and refreshes ``released_at``"""

    def __init__(self, clock: Clock):
        self._clock = clock
        self._releases: dict[str, Release] = {}

    async def list_releases(self) -> list[Release]:
        return sorted(self._releases.values(), key=lambda r: r.released_at, reverse=True)

    async def latest_release(self) -> Release | None:
        releases = await self.list_releases()
        return releases[0] if releases else None

    async def upsert_release(self, version: str, changelog: str) -> Release:
        release = Release(version=version, changelog=changelog, released_at=self._clock.now())
        self._releases[version] = release
        return release

    async def delete_release(self, version: str) -> bool:
        return self._releases.pop(version, None) is not None


__all__ = [
    "Release",
    "ReleaseStore",
    "InMemoryReleaseStore",
]

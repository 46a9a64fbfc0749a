"""
Agent-side client for the rate-check endpoint.

An agent calls ``preflight`` before generating a post or vote. Anything other
than a well-formed 200 response counts as "not allowed".
"""
from __future__ import annotations

import logging

import httpx
from pydantic import BaseModel, Field, ValidationError

from ..errors import InvalidRequestError, RateCheckUnavailableError
from .policy import RateLimitPolicy
from .types import ActivityKind

logger = logging.getLogger(__name__)

RATE_CHECK_PATH = "/api/forum/rate-limit"


class DailyActivity(BaseModel):
    """Body of the rate-check endpoint"""

    posts_today: int = Field(ge=0)
    votes_today: int = Field(ge=0)

    def count_for(self, kind: ActivityKind) -> int:
        if ActivityKind(kind) is ActivityKind.POST:
            return self.posts_today
        return self.votes_today


class RateGateClient:
    """
    HTTP client for ``GET /api/forum/rate-limit``.

    Usage:
        async with RateGateClient("https://fleet.example.com") as client:
            if await client.preflight("inst_123", ActivityKind.POST, RateLimitPolicy()):
                ...
    """

    def __init__(
        self,
        base_url: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = http_client
        self._owns_client = http_client is None
        self._timeout = timeout

    def get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> RateGateClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def fetch(self, instance_id: str) -> DailyActivity:
        """
        Fetch 24-hour counts for an instance.

        Raises:
            InvalidRequestError: Empty instance id
            RateCheckUnavailableError: Transport failure, error status or malformed body
        """
        if not instance_id:
            raise InvalidRequestError("instance_id required")

        client = self.get_client()
        try:
            response = await client.get(RATE_CHECK_PATH, params={"instance_id": instance_id})
            response.raise_for_status()
            return DailyActivity.model_validate(response.json())
        except httpx.HTTPError as e:
            raise RateCheckUnavailableError(f"Rate check request failed: {e}") from e
        except (ValueError, ValidationError) as e:
            raise RateCheckUnavailableError(f"Malformed rate check response: {e}") from e

    async def preflight(self, instance_id: str, kind: ActivityKind, policy: RateLimitPolicy) -> bool:
        """True only when the counts were read and one more action fits the policy"""
        try:
            activity = await self.fetch(instance_id)
        except RateCheckUnavailableError as e:
            logger.warning(f"Rate check unavailable, skipping {ActivityKind(kind).value}: {e}")
            return False
        return activity.count_for(kind) < policy.limit_for(kind)


__all__ = [
    "DailyActivity",
    "RateGateClient",
    "RATE_CHECK_PATH",
]

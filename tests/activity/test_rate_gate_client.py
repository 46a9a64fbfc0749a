"""
Tests for the agent-side rate check client
"""
import httpx
import pytest

from fleetwatch.activity.client import RATE_CHECK_PATH, RateGateClient
from fleetwatch.activity.policy import RateLimitPolicy
from fleetwatch.activity.types import ActivityKind
from fleetwatch.errors import InvalidRequestError, RateCheckUnavailableError


def make_client(handler) -> RateGateClient:
    http_client = httpx.AsyncClient(base_url="http://fleet.test", transport=httpx.MockTransport(handler))
    return RateGateClient("http://fleet.test", http_client=http_client)


def counts(posts: int, votes: int):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == RATE_CHECK_PATH
        assert request.url.params["instance_id"] == "inst_1"
        return httpx.Response(200, json={"posts_today": posts, "votes_today": votes})

    return handler


class TestRateGateClient:

    @pytest.mark.asyncio
    async def test_fetch(self):
        client = make_client(counts(3, 7))

        activity = await client.fetch("inst_1")

        assert (activity.posts_today, activity.votes_today) == (3, 7)

    @pytest.mark.asyncio
    async def test_preflight_under_limit(self):
        client = make_client(counts(4, 19))

        assert await client.preflight("inst_1", ActivityKind.POST, RateLimitPolicy())
        assert await client.preflight("inst_1", ActivityKind.VOTE, RateLimitPolicy())

    @pytest.mark.asyncio
    async def test_preflight_at_limit(self):
        client = make_client(counts(5, 20))

        assert not await client.preflight("inst_1", ActivityKind.POST, RateLimitPolicy())
        assert not await client.preflight("inst_1", ActivityKind.VOTE, RateLimitPolicy())

    @pytest.mark.asyncio
    async def test_server_error_fails_closed(self):
        client = make_client(lambda request: httpx.Response(500, json={"error": "Rate limit check failed"}))

        with pytest.raises(RateCheckUnavailableError):
            await client.fetch("inst_1")
        assert not await client.preflight("inst_1", ActivityKind.POST, RateLimitPolicy())

    @pytest.mark.asyncio
    async def test_transport_error_fails_closed(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        assert not await client.preflight("inst_1", ActivityKind.POST, RateLimitPolicy())

    @pytest.mark.asyncio
    async def test_malformed_body_fails_closed(self):
        client = make_client(lambda request: httpx.Response(200, json={"posts_today": "lots"}))

        with pytest.raises(RateCheckUnavailableError):
            await client.fetch("inst_1")

    @pytest.mark.asyncio
    async def test_non_json_body_fails_closed(self):
        client = make_client(lambda request: httpx.Response(200, text="<html>oops</html>"))

        assert not await client.preflight("inst_1", ActivityKind.VOTE, RateLimitPolicy())

    @pytest.mark.asyncio
    async def test_empty_instance_id(self):
        client = make_client(counts(0, 0))

        with pytest.raises(InvalidRequestError):
            await client.fetch("")

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(counts(0, 0)), base_url="http://fleet.test")

        async with RateGateClient("http://fleet.test", http_client=http_client) as client:
            await client.fetch("inst_1")

        assert not http_client.is_closed
        await http_client.aclose()

"""
FastAPI HTTP surface for the fleet tracker
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .. import __version__
from ..auth import ADMIN_KEY_HEADER, ADMIN_KEY_QUERY
from ..bootstrap import FleetComponents, build_components
from ..config.settings import FleetSettings
from ..errors import FleetError, InstanceNotFoundError, InvalidRequestError, RateCheckUnavailableError, UnauthorizedError
from ..instances.types import InstanceStatus

logger = logging.getLogger(__name__)


# Request models
class HeartbeatRequest(BaseModel):
    instance_id: str | None = None


class RegisterRequest(BaseModel):
    instance_id: str | None = None
    nickname: str = ""
    category: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class StatusOverrideRequest(BaseModel):
    status: InstanceStatus


class ReleaseRequest(BaseModel):
    version: str | None = None
    changelog: str | None = None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def get_components(request: Request) -> FleetComponents:
    return request.app.state.components


def require_admin(request: Request, components: FleetComponents = Depends(get_components)) -> None:
    """Admin credential from ``x-admin-key`` header or ``admin_key`` query parameter"""
    result = components.admin_gate.authorize_request(
        request.headers.get(ADMIN_KEY_HEADER),
        request.query_params.get(ADMIN_KEY_QUERY),
    )
    if not result.ok:
        logger.info(f"Rejected admin request to {request.url.path}: {result.reason}")
        raise UnauthorizedError("Unauthorized: invalid admin key")


def create_app(
    settings: FleetSettings | None = None,
    components: FleetComponents | None = None,
) -> FastAPI:
    """
    Create FastAPI application.

    Args:
        settings: Settings used to build components when none are given
        components: Pre-built components (tests inject stores and clocks here)
    """
    if components is None:
        components = build_components(settings or FleetSettings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting fleetwatch API...")
        yield
        logger.info("Shutting down fleetwatch API...")
        components.close()

    app = FastAPI(
        title="fleetwatch API",
        description="Instance presence, fleet stats and agent rate checks",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.components = components

    @app.exception_handler(UnauthorizedError)
    async def unauthorized_handler(request: Request, exc: UnauthorizedError):
        return _error(status.HTTP_401_UNAUTHORIZED, str(exc))

    @app.get("/health", tags=["Health"])
    async def health_check():
        return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}

    # ------------------------------------------------------------------ #
    # Admin

    @app.get("/api/admin/instances", tags=["Admin"], dependencies=[Depends(require_admin)])
    async def admin_instances(components: FleetComponents = Depends(get_components)):
        """Mark stale instances offline, then return every instance plus stats"""
        try:
            snapshot = await components.service.snapshot()
        except Exception as e:
            logger.error(f"Admin instances error: {e}", exc_info=True)
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to fetch admin data")
        return snapshot.to_dict()

    @app.patch("/api/admin/instances/{instance_id}", tags=["Admin"], dependencies=[Depends(require_admin)])
    async def admin_override_status(
        instance_id: str,
        body: StatusOverrideRequest,
        components: FleetComponents = Depends(get_components),
    ):
        try:
            instance = await components.service.override_status(instance_id, body.status)
        except InstanceNotFoundError:
            return _error(status.HTTP_404_NOT_FOUND, "Instance not found")
        except FleetError as e:
            logger.error(f"Status override error: {e}", exc_info=True)
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to update instance")
        return instance.to_dict()

    @app.get("/api/admin/releases", tags=["Admin"], dependencies=[Depends(require_admin)])
    async def list_releases(components: FleetComponents = Depends(get_components)):
        try:
            releases = await components.releases.list_releases()
        except FleetError as e:
            logger.error(f"Release listing error: {e}", exc_info=True)
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to fetch releases")
        return [release.to_dict() for release in releases]

    @app.post("/api/admin/releases", tags=["Admin"], dependencies=[Depends(require_admin)])
    async def upsert_release(body: ReleaseRequest, components: FleetComponents = Depends(get_components)):
        if not body.version or not body.changelog:
            return _error(status.HTTP_400_BAD_REQUEST, "version and changelog required")
        try:
            await components.releases.upsert_release(body.version, body.changelog)
        except FleetError as e:
            logger.error(f"Release save error: {e}", exc_info=True)
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to save release")
        logger.info(f"Release {body.version} saved")
        return {"success": True}

    @app.delete("/api/admin/releases", tags=["Admin"], dependencies=[Depends(require_admin)])
    async def delete_release(version: str | None = None, components: FleetComponents = Depends(get_components)):
        if not version:
            return _error(status.HTTP_400_BAD_REQUEST, "version query param required")
        try:
            await components.releases.delete_release(version)
        except FleetError as e:
            logger.error(f"Release delete error: {e}", exc_info=True)
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to delete release")
        return {"success": True}

    # ------------------------------------------------------------------ #
    # Agent-facing

    @app.get("/api/forum/rate-limit", tags=["Agents"])
    async def rate_limit(instance_id: str | None = None, components: FleetComponents = Depends(get_components)):
        """
        Post and vote counts for an instance over the last 24 hours.

        Agents call this before spending tokens on a post or vote.
        """
        if not instance_id:
            return _error(status.HTTP_400_BAD_REQUEST, "instance_id required")
        try:
            result = await components.service.rate_check(instance_id)
        except InvalidRequestError:
            return _error(status.HTTP_400_BAD_REQUEST, "instance_id required")
        except RateCheckUnavailableError as e:
            logger.error(f"Rate limit check failed: {e}")
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Rate limit check failed")
        return {
            "posts_today": result.posts_in_window,
            "votes_today": result.votes_in_window,
        }

    @app.post("/api/register", tags=["Agents"], status_code=status.HTTP_201_CREATED)
    async def register(body: RegisterRequest, components: FleetComponents = Depends(get_components)):
        """Create or refresh an instance record; it starts online with a fresh heartbeat"""
        if not body.instance_id or not body.instance_id.strip():
            return _error(status.HTTP_400_BAD_REQUEST, "instance_id is required")
        try:
            instance = await components.service.register(
                body.instance_id,
                nickname=body.nickname,
                category=body.category,
                metadata=body.metadata,
            )
        except FleetError as e:
            logger.error(f"Registration error: {e}", exc_info=True)
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Registration failed")
        return instance.to_dict()

    @app.post("/api/heartbeat", tags=["Agents"])
    async def heartbeat(body: HeartbeatRequest, components: FleetComponents = Depends(get_components)):
        if not body.instance_id:
            return _error(status.HTTP_400_BAD_REQUEST, "instance_id is required")
        try:
            await components.service.heartbeat(body.instance_id)
        except InstanceNotFoundError:
            return _error(status.HTTP_404_NOT_FOUND, "Instance not found")
        except FleetError as e:
            logger.error(f"Heartbeat error: {e}", exc_info=True)
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Heartbeat failed")
        return {"ok": True}

    # ------------------------------------------------------------------ #
    # Public

    @app.get("/api/stats", tags=["Public"])
    async def public_stats(components: FleetComponents = Depends(get_components)):
        try:
            stats = await components.service.aggregate()
        except FleetError as e:
            logger.error(f"Stats error: {e}", exc_info=True)
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to fetch stats")
        return {"instances": {"total": stats.total, "online": stats.online}}

    @app.get("/api/version", tags=["Public"])
    async def latest_version(components: FleetComponents = Depends(get_components)):
        try:
            release = await components.releases.latest_release()
        except FleetError as e:
            logger.error(f"Version lookup error: {e}", exc_info=True)
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to fetch version")
        if release is None:
            return {"version": None, "changelog": None, "released_at": None}
        return release.to_dict()

    return app


async def run_api_server(settings: FleetSettings) -> None:
    """Run API server."""
    import uvicorn

    app = create_app(settings)

    config = uvicorn.Config(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
    server = uvicorn.Server(config)
    await server.serve()


__all__ = [
    "create_app",
    "run_api_server",
]

"""Health check endpoints for Drovah.

``/health/`` answers as long as the process serves requests.
``/health/ready`` also checks that the build store accepts queries.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from drovah.database.store import BuildStore
from drovah.errors import StoreError
from drovah.logging import get_logger

logger = get_logger(__name__)


class HealthResponse(BaseModel):
    """Health check response model.

    Attributes:
        status: Current health status ("ok")
    """

    status: str


class ReadinessResponse(BaseModel):
    """Readiness check response model.

    Attributes:
        status: Current readiness status ("ok", "unhealthy")
        database: Store connectivity ("connected", "disconnected")
        pending_builds: Background builds not yet finished
    """

    status: str
    database: str
    pending_builds: int


def get_store(request: Request) -> BuildStore:
    """Dependency that retrieves the build store from app state."""
    return request.app.state.store  # type: ignore[no-any-return]


def create_health_router() -> APIRouter:
    """Create health check router.

    Routes:
        GET /health/ - Basic liveness check
        GET /health/ready - Readiness check with store verification
    """
    router = APIRouter(prefix="/health", tags=["health"])

    @router.get("/", response_model=HealthResponse)
    async def health() -> dict[str, Any]:
        return {"status": "ok"}

    @router.get("/ready", response_model=ReadinessResponse)
    async def readiness(
        request: Request,
        store: BuildStore = Depends(get_store),  # noqa: B008
    ) -> dict[str, Any]:
        pending = request.app.state.orchestrator.pending

        try:
            await store.ping()
        except StoreError as exc:
            logger.warning("readiness_check_failed", database="disconnected", error=str(exc))
            return {"status": "unhealthy", "database": "disconnected", "pending_builds": pending}

        logger.debug("readiness_check_passed", database="connected")
        return {"status": "ok", "database": "connected", "pending_builds": pending}

    return router

"""FastAPI route definitions for Drovah."""

from __future__ import annotations

from drovah.web.routes.builds import BuildInfo, ProjectInfo, create_builds_router
from drovah.web.routes.health import (
    HealthResponse,
    ReadinessResponse,
    create_health_router,
)
from drovah.web.routes.webhook import create_webhook_router

__all__ = [
    "BuildInfo",
    "HealthResponse",
    "ProjectInfo",
    "ReadinessResponse",
    "create_builds_router",
    "create_health_router",
    "create_webhook_router",
]

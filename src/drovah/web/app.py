"""FastAPI application factory for Drovah.

The application exposes the push webhook, build information, badges,
archived artifacts and health checks. Application state carries:

- ``config``: the DrovahConfig in effect
- ``store``: the BuildStore shared by routes and builds
- ``orchestrator``: the BuildOrchestrator running background builds
- ``authenticator``: the WebhookAuthenticator for inbound pushes

Example usage:
    >>> from drovah.config import load_config
    >>> from drovah.web.app import create_app
    >>>
    >>> app = create_app(load_config())
    >>>
    >>> import uvicorn
    >>> uvicorn.run(app, host="127.0.0.1", port=8000)
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from drovah import __version__
from drovah.config import DrovahConfig, load_config
from drovah.database.connection import get_engine, get_session_factory
from drovah.database.store import BuildStore, SqlBuildStore
from drovah.logging import get_logger, setup_logging
from drovah.orchestrator.builder import BuildOrchestrator
from drovah.web.middleware import RequestLoggingMiddleware
from drovah.web.routes.builds import create_builds_router
from drovah.web.routes.health import create_health_router
from drovah.web.routes.webhook import create_webhook_router
from drovah.web.webhooks import WebhookAuthenticator

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = get_logger(__name__)

# Set by `drovah serve --reload` so reloaded workers load the same config
CONFIG_FILE_ENV = "DROVAH_CONFIG_FILE"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Wait for in-flight builds and release the database on shutdown."""
    config: DrovahConfig = app.state.config
    logger.info(
        "app_startup",
        host=config.web.host,
        port=config.web.port,
        projects_root=str(config.paths.projects_root),
        archive_root=str(config.paths.archive_root),
    )

    yield

    orchestrator: BuildOrchestrator = app.state.orchestrator
    logger.info("app_shutdown_begin", pending_builds=orchestrator.pending)
    await orchestrator.wait_idle()

    engine = app.state.engine
    if engine is not None:
        await engine.dispose()
        logger.info("database_pool_disposed")


def create_app(
    config: DrovahConfig | None = None,
    store: BuildStore | None = None,
) -> FastAPI:
    """Create and configure the Drovah FastAPI application.

    Args:
        config: Optional DrovahConfig. If None, creates default config.
        store: Optional BuildStore. If None, a SqlBuildStore over
            ``config.database`` is created.

    Returns:
        Configured FastAPI application instance.
    """
    if config is None:
        config = DrovahConfig()

    engine = None
    if store is None:
        engine = get_engine(config.database)
        store = SqlBuildStore(get_session_factory(engine))

    secret = config.webhook.secret
    authenticator = WebhookAuthenticator(
        secret.get_secret_value() if secret is not None else None
    )

    app = FastAPI(
        title="Drovah",
        version=__version__,
        description="Self-hosted continuous integration relay",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.engine = engine
    app.state.store = store
    app.state.orchestrator = BuildOrchestrator.from_config(config, store)
    app.state.authenticator = authenticator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.web.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(create_health_router())
    app.include_router(create_webhook_router())
    app.include_router(create_builds_router())

    logger.info(
        "app_created",
        cors_origins=config.web.cors_origins,
        signed_webhooks=authenticator.secret is not None,
        version=__version__,
    )
    return app


def create_app_from_env() -> FastAPI:
    """Application factory for uvicorn's reload mode.

    Reloaded workers start in a fresh process, so configuration and logging
    are set up again from the file named by ``DROVAH_CONFIG_FILE`` (or the
    default search path when it is unset).
    """
    config_file = os.environ.get(CONFIG_FILE_ENV)
    config = load_config(Path(config_file) if config_file else None)
    setup_logging(config.logging)
    return create_app(config)

"""Pytest fixtures for integration tests.

Provides an in-memory SQLite database (via aiosqlite) with the Drovah
schema, a SqlBuildStore over it, a temporary projects/archive layout and
an HTTP client for the FastAPI application. Production runs on PostgreSQL;
nothing Drovah stores depends on PostgreSQL-specific types.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from drovah.config import DrovahConfig, PathsConfig, PipelineConfig, WebhookConfig
from drovah.database.models import Base
from drovah.database.store import SqlBuildStore
from drovah.web.app import create_app

WEBHOOK_SECRET = "integration-secret"


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine; one shared connection keeps the data alive."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def sql_store(session_factory: async_sessionmaker[AsyncSession]) -> SqlBuildStore:
    return SqlBuildStore(session_factory)


@pytest.fixture
def config(tmp_path: Path) -> DrovahConfig:
    """Configuration rooted in the test's temporary directory."""
    paths = PathsConfig(
        projects_root=tmp_path / "projects",
        archive_root=tmp_path / "archive",
    )
    paths.projects_root.mkdir()
    paths.archive_root.mkdir()
    return DrovahConfig(
        paths=paths,
        pipeline=PipelineConfig(pull_command=""),
        webhook=WebhookConfig(secret=WEBHOOK_SECRET),
    )


@pytest.fixture
def make_project(config: DrovahConfig) -> Callable[..., Path]:
    """Factory creating a project checkout, optionally with a manifest."""

    def _make(name: str, manifest: str | None = None) -> Path:
        directory = config.paths.projects_root / name
        directory.mkdir(parents=True)
        if manifest is not None:
            (directory / ".drovah").write_text(manifest, encoding="utf-8")
        return directory

    return _make


@pytest.fixture
def app(config: DrovahConfig, sql_store: SqlBuildStore) -> FastAPI:
    return create_app(config, store=sql_store)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the application; waits for background builds on exit."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await app.state.orchestrator.wait_idle()

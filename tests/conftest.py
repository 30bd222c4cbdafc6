"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import typing as typ

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from repokeeper.registry import init_registry_storage

if typ.TYPE_CHECKING:
    from pathlib import Path


def _sqlite_url(tmp_path: Path, name: str) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / name}"


async def _setup_sqlite(tmp_path: Path) -> AsyncEngine:
    """Create a SQLite engine and initialise the registry tables."""
    engine = create_async_engine(_sqlite_url(tmp_path, "repokeeper_test.db"))
    try:
        await init_registry_storage(engine)
    except Exception:
        await engine.dispose()
        raise
    return engine


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """Return a URL for a database the code under test creates itself."""
    return _sqlite_url(tmp_path, "repokeeper_runtime.db")


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a fresh async session factory backed by sqlite."""
    engine = await _setup_sqlite(tmp_path)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        yield factory
    finally:
        await engine.dispose()

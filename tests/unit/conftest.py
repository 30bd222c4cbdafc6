"""Unit-test fixtures for the repository registry."""

from __future__ import annotations

import typing as typ
import uuid

import pytest
from sqlalchemy import select

from repokeeper.common.time import utcnow
from repokeeper.registry import (
    NEEDS_BACKFILL_SENTINEL,
    GitInitError,
    ProjectRepo,
    Repo,
    RepositoryRegistryService,
    WorkspaceRepo,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


class RecordingGitInitializer:
    """Git collaborator double that fakes ``git init`` with a .git directory."""

    def __init__(self, *, fail_with: str | None = None) -> None:
        """Optionally fail every call with ``fail_with`` as the detail."""
        self.fail_with = fail_with
        self.calls: list[Path] = []

    async def init_repository_at(self, path: Path) -> None:
        """Record the call, then create ``.git`` or raise GitInitError."""
        self.calls.append(path)
        if self.fail_with is not None:
            raise GitInitError(str(path), self.fail_with)
        (path / ".git").mkdir()


class InsertRepoFn(typ.Protocol):
    """Callable fixture for writing repository rows directly."""

    def __call__(
        self,
        path: str,
        *,
        name: str = ...,
        display_name: str = ...,
    ) -> cabc.Awaitable[str]:
        """Insert a ``repos`` row and return its id."""
        ...


class LinkFn(typ.Protocol):
    """Callable fixture for creating an owning association."""

    def __call__(self, repo_id: str) -> cabc.Awaitable[str]:
        """Link ``repo_id`` to a fresh owner and return the owner id."""
        ...


class FetchRepoFn(typ.Protocol):
    """Callable fixture for reading a row by path."""

    def __call__(self, path: str) -> cabc.Awaitable[Repo | None]:
        """Fetch a repository row by path."""
        ...


@pytest.fixture
def fake_git() -> RecordingGitInitializer:
    """Return a git collaborator that always succeeds."""
    return RecordingGitInitializer()


@pytest.fixture
def failing_git() -> RecordingGitInitializer:
    """Return a git collaborator that always fails."""
    return RecordingGitInitializer(fail_with="fatal: cannot init")


@pytest.fixture
def registry_service(
    session_factory: async_sessionmaker[AsyncSession],
    fake_git: RecordingGitInitializer,
) -> RepositoryRegistryService:
    """Return a RepositoryRegistryService wired to the fake git collaborator."""
    return RepositoryRegistryService(session_factory, fake_git)


@pytest.fixture
def insert_repo(session_factory: async_sessionmaker[AsyncSession]) -> InsertRepoFn:
    """Return a factory that writes legacy-style rows, bypassing registration."""

    async def _insert(
        path: str,
        *,
        name: str = NEEDS_BACKFILL_SENTINEL,
        display_name: str = NEEDS_BACKFILL_SENTINEL,
    ) -> str:
        repo_id = str(uuid.uuid4())
        now = utcnow()
        async with session_factory() as session, session.begin():
            session.add(
                Repo(
                    id=repo_id,
                    path=path,
                    name=name,
                    display_name=display_name,
                    created_at=now,
                    updated_at=now,
                )
            )
        return repo_id

    return _insert


@pytest.fixture
def link_workspace(session_factory: async_sessionmaker[AsyncSession]) -> LinkFn:
    """Return a factory that attaches a repository to a new workspace."""

    async def _link(repo_id: str) -> str:
        workspace_id = str(uuid.uuid4())
        async with session_factory() as session, session.begin():
            session.add(WorkspaceRepo(workspace_id=workspace_id, repo_id=repo_id))
        return workspace_id

    return _link


@pytest.fixture
def link_project(session_factory: async_sessionmaker[AsyncSession]) -> LinkFn:
    """Return a factory that attaches a repository to a new project."""

    async def _link(repo_id: str) -> str:
        project_id = str(uuid.uuid4())
        async with session_factory() as session, session.begin():
            session.add(ProjectRepo(project_id=project_id, repo_id=repo_id))
        return project_id

    return _link


@pytest.fixture
def fetch_repo(session_factory: async_sessionmaker[AsyncSession]) -> FetchRepoFn:
    """Return a factory for fetching rows by path."""

    async def _fetch(path: str) -> Repo | None:
        async with session_factory() as session:
            return await session.scalar(select(Repo).where(Repo.path == path))

    return _fetch


@pytest.fixture
def count_repos(
    session_factory: async_sessionmaker[AsyncSession],
) -> cabc.Callable[[], cabc.Awaitable[int]]:
    """Return a coroutine factory counting ``repos`` rows."""

    async def _count() -> int:
        async with session_factory() as session:
            rows = await session.scalars(select(Repo.id))
            return len(rows.all())

    return _count

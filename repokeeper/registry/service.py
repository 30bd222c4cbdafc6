"""Repository registry service.

The service is the entry point other subsystems use. It holds the session
factory and the git collaborator and delegates each operation to the module
that implements it.
"""

from __future__ import annotations

import collections.abc as cabc
import typing as typ

from repokeeper.registry.backfill import run_backfill
from repokeeper.registry.creation import init_repository
from repokeeper.registry.git import SubprocessGitInitializer
from repokeeper.registry.lookup import (
    RepositoryListOptions,
    find_repositories,
    get_repository,
    list_repositories,
)
from repokeeper.registry.reaper import delete_orphaned_repositories
from repokeeper.registry.registration import register_repository
from repokeeper.registry.updates import update_repository

if typ.TYPE_CHECKING:
    import os

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from repokeeper.registry.git import GitInitializer
    from repokeeper.registry.models import (
        BackfillResult,
        RepositoryInfo,
        RepositoryUpdate,
    )

    SessionFactory: typ.TypeAlias = async_sessionmaker[AsyncSession]


class RepositoryRegistryService:
    """Manages the registry of local repositories.

    Parameters
    ----------
    session_factory:
        Async session factory for the registry database.
    git:
        Collaborator used by :meth:`init_repo`. Defaults to running the
        ``git`` binary from ``PATH``.

    """

    def __init__(
        self,
        session_factory: SessionFactory,
        git: GitInitializer | None = None,
    ) -> None:
        """Configure the service with its database and git collaborator."""
        self._session_factory = session_factory
        self._git = git or SubprocessGitInitializer()

    async def register(
        self,
        path: str | os.PathLike[str],
        display_name: str | None = None,
        *,
        require_git: bool = False,
    ) -> RepositoryInfo:
        """Return the record for ``path``, creating it if absent.

        Concurrent calls for the same path all receive the same record.

        Raises
        ------
        InvalidRepositoryPathError
            If ``require_git`` is set and ``path`` is not a git checkout.
        RegistryDatabaseError
            If the store fails.

        """
        return await register_repository(
            self._session_factory, path, display_name, require_git=require_git
        )

    async def init_repo(
        self, parent_path: str | os.PathLike[str], folder_name: str
    ) -> RepositoryInfo:
        """Create and git-initialise ``parent_path/folder_name``, then register it.

        Raises
        ------
        PathConflictError
            If the target directory cannot be used.
        GitInitError
            If git initialisation fails.
        RegistryDatabaseError
            If the store fails.

        """
        return await init_repository(
            self._session_factory, self._git, parent_path, folder_name
        )

    async def get_by_id(self, repo_id: str) -> RepositoryInfo:
        """Return the record with ``repo_id``.

        Raises
        ------
        RepositoryNotFoundError
            If no such record exists.

        """
        return await get_repository(self._session_factory, repo_id)

    async def find_by_ids(self, repo_ids: cabc.Iterable[str]) -> list[RepositoryInfo]:
        """Return records for the ids that exist, omitting the rest."""
        return await find_repositories(self._session_factory, repo_ids)

    async def list_all(
        self,
        *,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[RepositoryInfo]:
        """Return all records sorted by display name.

        Notes
        -----
        Large registries should be paged with ``limit`` and ``offset``.

        """
        options = RepositoryListOptions(limit=limit, offset=offset)
        return await list_repositories(self._session_factory, options)

    async def update(self, repo_id: str, payload: RepositoryUpdate) -> RepositoryInfo:
        """Apply a partial update and return the updated record.

        Raises
        ------
        RepositoryNotFoundError
            If the record does not exist.
        RegistryDatabaseError
            If the store fails.

        """
        return await update_repository(self._session_factory, repo_id, payload)

    async def delete_orphaned(self) -> int:
        """Delete records no project or workspace references; return the count."""
        return await delete_orphaned_repositories(self._session_factory)

    async def run_backfill(self) -> BackfillResult:
        """Repair records that still carry the migration sentinel name."""
        return await run_backfill(self._session_factory)

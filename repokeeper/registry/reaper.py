"""Garbage collection of repository records nobody owns.

A record is owned while at least one ``project_repos`` or ``workspace_repos``
row points at it. :func:`delete_orphaned_repositories` removes the rest in a
single ``DELETE ... WHERE id NOT IN (...)`` statement, so the ownership check
and the delete observe the same snapshot.
"""

from __future__ import annotations

import asyncio
import typing as typ

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from repokeeper.logging import get_logger, log_debug, log_exception, log_info
from repokeeper.registry.errors import RegistryDatabaseError
from repokeeper.registry.storage import ProjectRepo, Repo, WorkspaceRepo

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    SessionFactory: typ.TypeAlias = async_sessionmaker[AsyncSession]

logger = get_logger(__name__)


async def delete_orphaned_repositories(session_factory: SessionFactory) -> int:
    """Delete every record with no project or workspace association.

    Returns
    -------
    int
        Number of records deleted.

    Raises
    ------
    RegistryDatabaseError
        If the delete fails.

    """
    stmt = (
        delete(Repo)
        .where(
            Repo.id.not_in(select(ProjectRepo.repo_id)),
            Repo.id.not_in(select(WorkspaceRepo.repo_id)),
        )
        .execution_options(synchronize_session=False)
    )
    try:
        async with session_factory() as session, session.begin():
            result = await session.execute(stmt)
    except SQLAlchemyError as exc:
        raise RegistryDatabaseError("delete_orphaned") from exc
    return result.rowcount


class OrphanReaper:
    """Run orphan sweeps on demand or on a fixed interval."""

    def __init__(self, session_factory: SessionFactory) -> None:
        """Bind the reaper to the registry database."""
        self._session_factory = session_factory

    async def sweep(self) -> int:
        """Delete orphaned records once and return how many were removed."""
        deleted = await delete_orphaned_repositories(self._session_factory)
        if deleted:
            log_info(logger, "Deleted %d orphaned repositories", deleted)
        else:
            log_debug(logger, "No orphaned repositories found")
        return deleted

    async def run(self, poll_interval: float, *, max_sweeps: int | None = None) -> None:
        """Sweep every ``poll_interval`` seconds until cancelled.

        A failed sweep is logged and retried on the next tick. ``max_sweeps``
        bounds the loop for one-off callers and tests.
        """
        completed = 0
        while True:
            try:
                await self.sweep()
            except RegistryDatabaseError as exc:
                log_exception(logger, "Orphan sweep failed", exc)
            completed += 1
            if max_sweeps is not None and completed >= max_sweeps:
                return
            await asyncio.sleep(poll_interval)

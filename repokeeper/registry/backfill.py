"""Startup repair of records migrated from the legacy store.

Records imported from the old storage format could not have their name
derived at migration time and carry :data:`NEEDS_BACKFILL_SENTINEL` instead.
:func:`run_backfill` is the one-shot pass that derives the real name from the
stored path. It is invoked by the runtime bootstrap before the registry is
handed to callers, and is safe to repeat: a repaired record no longer matches
the sentinel query.
"""

from __future__ import annotations

import typing as typ

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from repokeeper.common.paths import derive_repo_name
from repokeeper.common.time import utcnow
from repokeeper.logging import get_logger, log_exception, log_info, log_warning
from repokeeper.registry.errors import RegistryDatabaseError
from repokeeper.registry.models import BackfillResult
from repokeeper.registry.storage import NEEDS_BACKFILL_SENTINEL, Repo

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    SessionFactory: typ.TypeAlias = async_sessionmaker[AsyncSession]

logger = get_logger(__name__)


def _is_placeholder_display_name(display_name: str | None) -> bool:
    return (
        display_name is None
        or not display_name.strip()
        or display_name == NEEDS_BACKFILL_SENTINEL
    )


async def _load_pending(
    session_factory: SessionFactory,
) -> list[tuple[str, str, str | None]]:
    """Return ``(id, path, display_name)`` for every sentinel record."""
    try:
        async with session_factory() as session:
            rows = await session.execute(
                select(Repo.id, Repo.path, Repo.display_name).where(
                    Repo.name == NEEDS_BACKFILL_SENTINEL
                )
            )
            return [(row.id, row.path, row.display_name) for row in rows]
    except SQLAlchemyError as exc:
        raise RegistryDatabaseError("run_backfill") from exc


async def _repair_one(
    session_factory: SessionFactory,
    repo_id: str,
    path: str,
    display_name: str | None,
) -> bool:
    """Persist the derived name for one record; return False if it was gone."""
    name = derive_repo_name(path, fallback=repo_id)
    values: dict[str, object] = {"name": name, "updated_at": utcnow()}
    if _is_placeholder_display_name(display_name):
        values["display_name"] = name

    async with session_factory() as session, session.begin():
        result = await session.execute(
            update(Repo)
            .where(Repo.id == repo_id, Repo.name == NEEDS_BACKFILL_SENTINEL)
            .values(values)
            .execution_options(synchronize_session=False)
        )
    return result.rowcount == 1


async def run_backfill(session_factory: SessionFactory) -> BackfillResult:
    """Derive names for every record still carrying the migration sentinel.

    Each record is repaired in its own transaction. A failure on one record
    is logged and counted, and the pass moves on to the next.

    Parameters
    ----------
    session_factory
        Factory for creating async database sessions.

    Returns
    -------
    BackfillResult
        Counts of repaired, skipped and failed records.

    Raises
    ------
    RegistryDatabaseError
        If the initial query for sentinel records fails.

    """
    result = BackfillResult()
    pending = await _load_pending(session_factory)
    if not pending:
        return result

    log_info(logger, "Backfilling names for %d repositories", len(pending))
    for repo_id, path, display_name in pending:
        try:
            repaired = await _repair_one(session_factory, repo_id, path, display_name)
        except SQLAlchemyError as exc:
            result.failed += 1
            log_exception(logger, f"Failed to backfill repository {repo_id}", exc)
            continue

        if repaired:
            result.repaired += 1
        else:
            result.skipped += 1
            log_warning(
                logger, "Repository %s changed during backfill; skipped", repo_id
            )

    log_info(
        logger,
        "Backfill finished: %d repaired, %d skipped, %d failed",
        result.repaired,
        result.skipped,
        result.failed,
    )
    return result

"""Partial updates of repository records.

:func:`merge_repository_update` is the pure merge step; it knows nothing about
sessions. :func:`update_repository` loads the row, merges, and flushes inside
one transaction.
"""

from __future__ import annotations

import typing as typ

import msgspec
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from repokeeper.common.time import utcnow
from repokeeper.registry.errors import RegistryDatabaseError, RepositoryNotFoundError
from repokeeper.registry.mapping import to_repository_info
from repokeeper.registry.storage import Repo

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from repokeeper.registry.models import RepositoryInfo, RepositoryUpdate

    SessionFactory: typ.TypeAlias = async_sessionmaker[AsyncSession]

_NULLABLE_FIELDS: typ.Final = (
    "setup_script",
    "cleanup_script",
    "copy_files",
    "dev_server_script",
)


def _resolve_nullable(
    current: str | None, requested: str | None | msgspec.UnsetType
) -> str | None:
    """Apply one three-state field: UNSET keeps, None or blank clears."""
    if requested is msgspec.UNSET:
        return current
    if requested is None or not requested.strip():
        return None
    return requested


def merge_repository_update(
    repo: Repo, update: RepositoryUpdate, now: dt.datetime
) -> None:
    """Apply ``update`` to ``repo`` in place and stamp ``updated_at``.

    Parameters
    ----------
    repo
        Row to mutate. ``id``, ``path``, ``name`` and ``created_at`` are never
        touched.
    update
        Partial payload; see :class:`RepositoryUpdate` for field semantics.
        A blank ``display_name`` keeps the stored label.
    now
        Timestamp written to ``updated_at``.

    """
    if update.display_name is not None and update.display_name.strip():
        repo.display_name = update.display_name
    if update.parallel_setup_script is not None:
        repo.parallel_setup_script = update.parallel_setup_script

    for field in _NULLABLE_FIELDS:
        current = getattr(repo, field)
        setattr(repo, field, _resolve_nullable(current, getattr(update, field)))

    repo.updated_at = now


async def update_repository(
    session_factory: SessionFactory,
    repo_id: str,
    update: RepositoryUpdate,
) -> RepositoryInfo:
    """Merge ``update`` into the record ``repo_id`` and return the result.

    Raises
    ------
    RepositoryNotFoundError
        If the record does not exist, or is deleted between load and write.
        The row is never recreated.
    RegistryDatabaseError
        If the store fails.

    """
    try:
        async with session_factory() as session, session.begin():
            repo = await session.get(Repo, repo_id)
            if repo is None:
                raise RepositoryNotFoundError(repo_id)

            merge_repository_update(repo, update, utcnow())
            await session.flush()
            return to_repository_info(repo)
    except StaleDataError as exc:
        # The UPDATE matched no row: a concurrent sweep removed it.
        raise RepositoryNotFoundError(repo_id) from exc
    except SQLAlchemyError as exc:
        raise RegistryDatabaseError("update") from exc

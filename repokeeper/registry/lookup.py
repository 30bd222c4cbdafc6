"""Repository lookups and listing.

Example:
-------
List the first page of repositories in display order::

    options = RepositoryListOptions(limit=20)
    repos = await list_repositories(session_factory, options)

"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import typing as typ

from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError

from repokeeper.registry.errors import RegistryDatabaseError, RepositoryNotFoundError
from repokeeper.registry.mapping import to_repository_info
from repokeeper.registry.storage import Repo

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from repokeeper.registry.models import RepositoryInfo

    SessionFactory: typ.TypeAlias = async_sessionmaker[AsyncSession]

FIND_BATCH_SIZE = 500
"""Maximum number of ids bound into one ``IN (...)`` lookup."""


class NegativePaginationError(ValueError):
    """Raised when pagination parameters are negative."""

    def __init__(self, name: str) -> None:
        """Build a consistent error message for the invalid parameter."""
        msg = f"{name} must be non-negative"
        super().__init__(msg)


@dataclasses.dataclass(frozen=True, slots=True)
class RepositoryListOptions:
    """Repository listing options.

    Attributes
    ----------
    limit
        Type: ``int | None``. Default: ``None``.

        Optional maximum number of ordered repositories to return.
    offset
        Type: ``int | None``. Default: ``None``.

        Optional number of ordered rows to skip before returning results.

    """

    limit: int | None = None
    offset: int | None = None

    def validate(self) -> None:
        """Raise NegativePaginationError if limit or offset is negative."""
        if self.limit is not None and self.limit < 0:
            raise NegativePaginationError("limit")
        if self.offset is not None and self.offset < 0:
            raise NegativePaginationError("offset")


def _build_list_query(options: RepositoryListOptions) -> Select[tuple[Repo]]:
    query = select(Repo).order_by(Repo.display_name, Repo.path)
    if options.offset is not None:
        query = query.offset(options.offset)
    if options.limit is not None:
        query = query.limit(options.limit)
    return query


async def get_repository(
    session_factory: SessionFactory, repo_id: str
) -> RepositoryInfo:
    """Return the record with ``repo_id``.

    Raises
    ------
    RepositoryNotFoundError
        If no record has that id.
    RegistryDatabaseError
        If the lookup fails.

    """
    try:
        async with session_factory() as session:
            repo = await session.get(Repo, repo_id)
            info = to_repository_info(repo) if repo is not None else None
    except SQLAlchemyError as exc:
        raise RegistryDatabaseError("get_by_id") from exc

    if info is None:
        raise RepositoryNotFoundError(repo_id)
    return info


async def find_repositories(
    session_factory: SessionFactory, repo_ids: cabc.Iterable[str]
) -> list[RepositoryInfo]:
    """Return the records for whichever of ``repo_ids`` exist.

    Missing ids are skipped silently. Results follow the order in which ids
    first appear in ``repo_ids``.

    Ids are queried in batches of :data:`FIND_BATCH_SIZE` to stay under
    driver bind-parameter limits.
    """
    wanted = list(dict.fromkeys(repo_ids))
    if not wanted:
        return []

    found: dict[str, RepositoryInfo] = {}
    try:
        async with session_factory() as session:
            for start in range(0, len(wanted), FIND_BATCH_SIZE):
                chunk = wanted[start : start + FIND_BATCH_SIZE]
                rows = await session.scalars(select(Repo).where(Repo.id.in_(chunk)))
                found.update((repo.id, to_repository_info(repo)) for repo in rows)
    except SQLAlchemyError as exc:
        raise RegistryDatabaseError("find_by_ids") from exc

    return [found[repo_id] for repo_id in wanted if repo_id in found]


async def list_repositories(
    session_factory: SessionFactory,
    options: RepositoryListOptions | None = None,
) -> list[RepositoryInfo]:
    """List repositories sorted by display name.

    Parameters
    ----------
    session_factory
        Factory for creating async database sessions.
    options
        Pagination options; ``None`` returns every record.

    Returns
    -------
    list[RepositoryInfo]
        Records ordered by ``display_name`` then ``path``.

    Raises
    ------
    NegativePaginationError
        If limit or offset is negative.
    RegistryDatabaseError
        If the query fails.

    """
    list_options = options or RepositoryListOptions()
    list_options.validate()
    query = _build_list_query(list_options)

    try:
        async with session_factory() as session:
            repos = await session.scalars(query)
            return [to_repository_info(repo) for repo in repos]
    except SQLAlchemyError as exc:
        raise RegistryDatabaseError("list_all") from exc

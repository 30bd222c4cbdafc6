"""Race-free registration of repository paths.

Registration is a single ``INSERT ... ON CONFLICT (path) DO UPDATE ...
RETURNING`` statement. The conflict branch rewrites ``path`` with its own
value, which changes nothing but makes the statement return the existing row,
so concurrent callers registering the same path all receive the one record
that won the insert. No existence check precedes the insert.
"""

from __future__ import annotations

import asyncio
import typing as typ
import uuid
from pathlib import Path

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from repokeeper.common.paths import derive_repo_name, normalize_repo_path
from repokeeper.common.time import utcnow
from repokeeper.logging import get_logger, log_debug, log_info
from repokeeper.registry.errors import (
    InvalidRepositoryPathError,
    RegistryDatabaseError,
)
from repokeeper.registry.mapping import to_repository_info
from repokeeper.registry.storage import Repo

if typ.TYPE_CHECKING:
    import os

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
    from sqlalchemy.sql.dml import ReturningInsert

    from repokeeper.registry.models import RepositoryInfo

    SessionFactory: typ.TypeAlias = async_sessionmaker[AsyncSession]

logger = get_logger(__name__)


class UnsupportedDialectError(NotImplementedError):
    """Raised when the store's SQL dialect has no upsert support here."""

    def __init__(self, dialect_name: str) -> None:
        """Name the dialect that cannot run the registration upsert."""
        self.dialect_name = dialect_name
        super().__init__(f"registration upsert is not supported on {dialect_name}")


def validate_repository_path(path: str) -> None:
    """Ensure ``path`` is an existing directory containing a ``.git`` entry.

    Raises
    ------
    InvalidRepositoryPathError
        If the path is missing, is not a directory, or is not a git checkout.

    """
    candidate = Path(path)
    if not candidate.exists():
        raise InvalidRepositoryPathError.not_found(path)
    if not candidate.is_dir():
        raise InvalidRepositoryPathError.not_directory(path)
    # Worktrees and submodules use a .git file rather than a directory.
    if not (candidate / ".git").exists():
        raise InvalidRepositoryPathError.not_git_repository(path)


def _upsert_statement(
    dialect_name: str, values: dict[str, object]
) -> ReturningInsert[tuple[Repo]]:
    """Build the insert-or-return-existing statement for ``dialect_name``."""
    if dialect_name == "sqlite":
        stmt = sqlite.insert(Repo).values(values)
        upsert = stmt.on_conflict_do_update(
            index_elements=["path"], set_={"path": stmt.excluded.path}
        )
    elif dialect_name == "postgresql":
        stmt = postgresql.insert(Repo).values(values)
        upsert = stmt.on_conflict_do_update(
            index_elements=["path"], set_={"path": stmt.excluded.path}
        )
    else:
        raise UnsupportedDialectError(dialect_name)
    return upsert.returning(Repo)


def _new_repository_values(path: str, display_name: str | None) -> dict[str, object]:
    """Return column values for a record that may be inserted for ``path``."""
    repo_id = str(uuid.uuid4())
    name = derive_repo_name(path, fallback=repo_id)
    now = utcnow()
    return {
        "id": repo_id,
        "path": path,
        "name": name,
        "display_name": display_name or name,
        "parallel_setup_script": False,
        "created_at": now,
        "updated_at": now,
    }


async def register_repository(
    session_factory: SessionFactory,
    path: str | os.PathLike[str],
    display_name: str | None = None,
    *,
    require_git: bool = False,
) -> RepositoryInfo:
    """Return the record for ``path``, creating it on first use.

    Parameters
    ----------
    session_factory
        Factory for creating async database sessions.
    path
        Repository location. It is normalised before storage.
    display_name
        Label for a newly created record. Ignored when the path is already
        registered; defaults to the derived name.
    require_git
        When True, check that ``path`` is an existing git checkout first.

    Returns
    -------
    RepositoryInfo
        The single record associated with the normalised path.

    Raises
    ------
    InvalidRepositoryPathError
        If ``require_git`` is set and the path fails validation.
    RegistryDatabaseError
        If the store rejects the statement.

    """
    normalized = normalize_repo_path(path)
    if require_git:
        await asyncio.to_thread(validate_repository_path, normalized)

    values = _new_repository_values(normalized, display_name)

    try:
        async with session_factory() as session, session.begin():
            stmt = _upsert_statement(session.get_bind().dialect.name, values)
            result = await session.scalars(
                stmt, execution_options={"populate_existing": True}
            )
            info = to_repository_info(result.one())
    except SQLAlchemyError as exc:
        raise RegistryDatabaseError("register") from exc

    if info.id == values["id"]:
        log_info(logger, "Registered repository %s at %s", info.id, info.path)
    else:
        log_debug(logger, "Repository %s already registered at %s", info.id, info.path)
    return info

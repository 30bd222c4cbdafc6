"""Creating brand-new repositories and registering them."""

from __future__ import annotations

import asyncio
import shutil
import typing as typ
from pathlib import Path

from repokeeper.common.paths import is_valid_folder_name, normalize_repo_path
from repokeeper.logging import get_logger, log_error, log_info
from repokeeper.registry.errors import GitInitError, PathConflictError
from repokeeper.registry.registration import register_repository

if typ.TYPE_CHECKING:
    import os

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from repokeeper.registry.git import GitInitializer
    from repokeeper.registry.models import RepositoryInfo

    SessionFactory: typ.TypeAlias = async_sessionmaker[AsyncSession]

logger = get_logger(__name__)


def prepare_target_directory(
    parent_path: str | os.PathLike[str], folder_name: str
) -> tuple[Path, bool]:
    """Resolve and create the directory for a new repository.

    Parameters
    ----------
    parent_path
        Existing directory that will contain the repository.
    folder_name
        Single path segment naming the new repository directory.

    Returns
    -------
    tuple[Path, bool]
        The target directory and whether this call created it. An existing
        empty directory is reused.

    Raises
    ------
    PathConflictError
        If the folder name, the parent, or an existing target is unusable.

    """
    if not is_valid_folder_name(folder_name):
        raise PathConflictError.invalid_folder_name(folder_name)

    parent = Path(normalize_repo_path(parent_path))
    if not parent.exists():
        raise PathConflictError.parent_not_found(str(parent))
    if not parent.is_dir():
        raise PathConflictError.parent_not_directory(str(parent))

    target = parent / folder_name
    if target.exists():
        if not target.is_dir():
            raise PathConflictError.target_not_directory(str(target))
        if any(target.iterdir()):
            raise PathConflictError.directory_not_empty(str(target))
        return target, False

    try:
        target.mkdir()
    except FileExistsError as exc:
        raise PathConflictError.directory_not_empty(str(target)) from exc
    except OSError as exc:
        raise PathConflictError.create_failed(str(target), str(exc)) from exc
    return target, True


async def init_repository(
    session_factory: SessionFactory,
    git: GitInitializer,
    parent_path: str | os.PathLike[str],
    folder_name: str,
) -> RepositoryInfo:
    """Create ``parent_path/folder_name``, run git init, then register it.

    Nothing is written to the registry unless both the directory and the git
    repository exist. A directory created here is removed again when git
    initialisation fails.

    Raises
    ------
    PathConflictError
        If the target cannot be used.
    GitInitError
        If git initialisation fails.
    RegistryDatabaseError
        If registration fails.

    """
    target, created = await asyncio.to_thread(
        prepare_target_directory, parent_path, folder_name
    )

    try:
        await git.init_repository_at(target)
    except GitInitError as exc:
        log_error(logger, "git init failed for %s: %s", target, exc.detail)
        if created:
            await asyncio.to_thread(shutil.rmtree, target, ignore_errors=True)
        raise

    log_info(logger, "Initialised git repository at %s", target)
    return await register_repository(session_factory, target)

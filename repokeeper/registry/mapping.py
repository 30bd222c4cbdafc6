"""Mapping helpers for registry DTOs."""

from __future__ import annotations

import typing as typ

from repokeeper.registry.models import RepositoryInfo

if typ.TYPE_CHECKING:
    from repokeeper.registry.storage import Repo


def to_repository_info(repo: Repo) -> RepositoryInfo:
    """Convert a ``repos`` row into a RepositoryInfo DTO.

    Parameters
    ----------
    repo
        Row loaded (or returned) inside an open session.

    Returns
    -------
    RepositoryInfo
        Detached, immutable copy of the row.

    """
    return RepositoryInfo(
        id=repo.id,
        path=repo.path,
        name=repo.name,
        display_name=repo.display_name,
        setup_script=repo.setup_script,
        cleanup_script=repo.cleanup_script,
        copy_files=repo.copy_files,
        parallel_setup_script=repo.parallel_setup_script,
        dev_server_script=repo.dev_server_script,
        created_at=repo.created_at,
        updated_at=repo.updated_at,
    )

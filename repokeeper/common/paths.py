"""Filesystem path utilities for repository registration.

Registry paths are stored as plain strings. They are normalised once on the
way in so that ``/srv/app``, ``/srv/app/`` and ``/srv//app`` all map to the
same registry record.
"""

from __future__ import annotations

import os
from pathlib import Path


def normalize_repo_path(path: str | os.PathLike[str]) -> str:
    """Return the canonical string form of a repository path.

    ``~`` is expanded, relative paths are anchored at the current working
    directory and redundant separators or ``.`` segments are collapsed.
    Symlinks are left alone so that the registered path is the one the user
    chose.

    Examples
    --------
    >>> normalize_repo_path("/home/user/projects/my-app/")
    '/home/user/projects/my-app'

    """
    expanded = Path(path).expanduser()
    if not expanded.is_absolute():
        expanded = Path.cwd() / expanded
    normalized = os.path.normpath(expanded)
    # POSIX normpath keeps exactly two leading slashes.
    if os.name == "posix" and normalized.startswith("//"):
        normalized = normalized[1:]
    return normalized


def derive_repo_name(path: str | os.PathLike[str], fallback: str) -> str:
    """Derive a repository name from the final component of ``path``.

    Parameters
    ----------
    path:
        Repository path, normalised or not.
    fallback:
        Value to use when ``path`` has no final component (e.g. ``/``).

    Returns
    -------
    str
        The last path segment, or ``fallback`` when there is none.

    Examples
    --------
    >>> derive_repo_name("/home/user/projects/my-app", "x")
    'my-app'
    >>> derive_repo_name("/", "x")
    'x'

    """
    name = Path(os.path.normpath(path)).name
    return name or fallback


def is_valid_folder_name(folder_name: str) -> bool:
    """Return True when ``folder_name`` is a single usable path segment."""
    if not folder_name or not folder_name.strip():
        return False
    if folder_name in {".", ".."}:
        return False
    separators = {os.sep, "/"}
    if os.altsep:
        separators.add(os.altsep)
    return not any(sep in folder_name for sep in separators)

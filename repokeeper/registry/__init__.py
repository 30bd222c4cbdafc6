"""Repository registry for local development repositories.

The registry maps filesystem paths to stable repository records and keeps the
per-repository automation hooks (setup, cleanup and dev-server scripts, copy
rules). It provides:

- Race-free registration keyed on the repository path
- Creation of new git repositories followed by registration
- Lookups by id, batch lookups, and listing by display name
- Partial updates that distinguish "clear this field" from "leave it alone"
- A startup backfill for records migrated from the legacy store
- Removal of records no project or workspace references any more

Usage
-----
Register a checkout and configure its setup script::

    from repokeeper.registry import RepositoryRegistryService, RepositoryUpdate

    service = RepositoryRegistryService(session_factory)
    repo = await service.register("/home/user/projects/my-app")
    await service.update(repo.id, RepositoryUpdate(setup_script="npm install"))

Clear the cleanup script while leaving every other field untouched::

    await service.update(repo.id, RepositoryUpdate(cleanup_script=None))

"""

from repokeeper.registry.errors import (
    GitInitError,
    InvalidRepositoryPathError,
    InvalidUpdatePayloadError,
    PathConflictError,
    RegistryDatabaseError,
    RegistryError,
    RepositoryNotFoundError,
    RepositoryPathReason,
)
from repokeeper.registry.git import GitInitializer, SubprocessGitInitializer
from repokeeper.registry.lookup import NegativePaginationError
from repokeeper.registry.models import BackfillResult, RepositoryInfo, RepositoryUpdate
from repokeeper.registry.reaper import OrphanReaper
from repokeeper.registry.service import RepositoryRegistryService
from repokeeper.registry.storage import (
    NEEDS_BACKFILL_SENTINEL,
    ProjectRepo,
    Repo,
    WorkspaceRepo,
    init_registry_storage,
)

__all__ = [
    "NEEDS_BACKFILL_SENTINEL",
    "BackfillResult",
    "GitInitError",
    "GitInitializer",
    "InvalidRepositoryPathError",
    "InvalidUpdatePayloadError",
    "NegativePaginationError",
    "OrphanReaper",
    "PathConflictError",
    "ProjectRepo",
    "RegistryDatabaseError",
    "RegistryError",
    "Repo",
    "RepositoryInfo",
    "RepositoryNotFoundError",
    "RepositoryPathReason",
    "RepositoryRegistryService",
    "RepositoryUpdate",
    "SubprocessGitInitializer",
    "WorkspaceRepo",
    "init_registry_storage",
]

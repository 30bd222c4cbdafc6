"""Errors specific to the repository registry."""

from __future__ import annotations

import enum


class RegistryError(Exception):
    """Base class for registry errors."""


class RepositoryNotFoundError(RegistryError):
    """Raised when no repository record has the requested id."""

    def __init__(self, repo_id: str) -> None:
        """Initialise with the missing repository id."""
        self.repo_id = repo_id
        super().__init__(f"Repository not found: {repo_id}")


class RegistryDatabaseError(RegistryError):
    """Raised when the store fails underneath a registry operation."""

    def __init__(self, operation: str) -> None:
        """Initialise with the name of the failed operation."""
        self.operation = operation
        super().__init__(f"Database error during {operation}")


class RepositoryPathReason(enum.StrEnum):
    """Machine-readable reasons a repository path cannot be used."""

    NOT_FOUND = "not_found"
    NOT_DIRECTORY = "not_directory"
    NOT_GIT_REPOSITORY = "not_git_repository"
    PARENT_NOT_FOUND = "parent_not_found"
    PARENT_NOT_DIRECTORY = "parent_not_directory"
    INVALID_FOLDER_NAME = "invalid_folder_name"
    TARGET_NOT_DIRECTORY = "target_not_directory"
    DIRECTORY_NOT_EMPTY = "directory_not_empty"
    CREATE_FAILED = "create_failed"


class RepositoryPathError(RegistryError):
    """Base class for filesystem paths the registry refuses to use."""

    def __init__(self, path: str, reason: RepositoryPathReason, message: str) -> None:
        """Store the offending path and reason for programmatic handling."""
        super().__init__(message)
        self.path = path
        self.reason = reason


class InvalidRepositoryPathError(RepositoryPathError):
    """Raised when a path offered for registration is not a git repository."""

    @classmethod
    def not_found(cls, path: str) -> InvalidRepositoryPathError:
        """Create an error for a path that does not exist."""
        return cls(
            path,
            RepositoryPathReason.NOT_FOUND,
            f"Path does not exist: {path}",
        )

    @classmethod
    def not_directory(cls, path: str) -> InvalidRepositoryPathError:
        """Create an error for a path that is not a directory."""
        return cls(
            path,
            RepositoryPathReason.NOT_DIRECTORY,
            f"Path is not a directory: {path}",
        )

    @classmethod
    def not_git_repository(cls, path: str) -> InvalidRepositoryPathError:
        """Create an error for a directory without a .git entry."""
        return cls(
            path,
            RepositoryPathReason.NOT_GIT_REPOSITORY,
            f"Path is not a git repository: {path}",
        )


class PathConflictError(RepositoryPathError):
    """Raised when ``init_repo`` cannot create a repository at the target."""

    @classmethod
    def parent_not_found(cls, path: str) -> PathConflictError:
        """Create an error for a missing parent directory."""
        return cls(
            path,
            RepositoryPathReason.PARENT_NOT_FOUND,
            f"Parent directory does not exist: {path}",
        )

    @classmethod
    def parent_not_directory(cls, path: str) -> PathConflictError:
        """Create an error for a parent path that is a file."""
        return cls(
            path,
            RepositoryPathReason.PARENT_NOT_DIRECTORY,
            f"Parent path is not a directory: {path}",
        )

    @classmethod
    def invalid_folder_name(cls, folder_name: str) -> PathConflictError:
        """Create an error for a folder name that is not a single segment."""
        return cls(
            folder_name,
            RepositoryPathReason.INVALID_FOLDER_NAME,
            f"Invalid folder name: {folder_name!r}",
        )

    @classmethod
    def target_not_directory(cls, path: str) -> PathConflictError:
        """Create an error for a target path occupied by a file."""
        return cls(
            path,
            RepositoryPathReason.TARGET_NOT_DIRECTORY,
            f"Target path exists and is not a directory: {path}",
        )

    @classmethod
    def directory_not_empty(cls, path: str) -> PathConflictError:
        """Create an error for a non-empty target directory."""
        return cls(
            path,
            RepositoryPathReason.DIRECTORY_NOT_EMPTY,
            f"Target directory already exists and is not empty: {path}",
        )

    @classmethod
    def create_failed(cls, path: str, detail: str) -> PathConflictError:
        """Create an error for a target directory that could not be made."""
        return cls(
            path,
            RepositoryPathReason.CREATE_FAILED,
            f"Could not create directory {path}: {detail}",
        )


class GitInitError(RegistryError):
    """Raised when git repository initialisation fails."""

    def __init__(self, path: str, detail: str) -> None:
        """Initialise with the target path and the git failure detail."""
        self.path = path
        self.detail = detail
        super().__init__(f"git init failed for {path}: {detail}")


class InvalidUpdatePayloadError(RegistryError):
    """Raised when an encoded update payload cannot be decoded."""

    def __init__(self, detail: str) -> None:
        """Initialise with the decoder's description of the problem."""
        self.detail = detail
        super().__init__(f"Invalid repository update payload: {detail}")

"""Git initialisation used when the registry creates a new repository."""

from __future__ import annotations

import asyncio
import shutil
import subprocess
import typing as typ

from repokeeper.registry.errors import GitInitError

if typ.TYPE_CHECKING:
    from pathlib import Path


class GitInitializer(typ.Protocol):
    """Creates a git repository in an existing directory."""

    async def init_repository_at(self, path: Path) -> None:
        """Initialise ``path`` as a git repository.

        Raises
        ------
        GitInitError
            If initialisation fails.

        """
        ...


class SubprocessGitInitializer:
    """Run ``git init`` from ``PATH`` in a worker thread."""

    def __init__(
        self, *, timeout: float = 30.0, initial_branch: str | None = None
    ) -> None:
        """Configure the command timeout and optional initial branch name."""
        self.timeout = timeout
        self.initial_branch = initial_branch

    def _command(self, git_executable: str, path: Path) -> list[str]:
        command = [git_executable, "init", "--quiet"]
        if self.initial_branch:
            command.extend(["--initial-branch", self.initial_branch])
        command.append(str(path))
        return command

    def _run(self, path: Path) -> None:
        git_executable = shutil.which("git")
        if git_executable is None:
            raise GitInitError(str(path), "git executable not found on PATH")

        try:
            subprocess.run(  # noqa: S603  # fixed argv against a local directory
                self._command(git_executable, path),
                check=True,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.CalledProcessError as exc:
            output = (exc.stderr or exc.stdout or "").strip()
            detail = output or f"exit status {exc.returncode}"
            raise GitInitError(str(path), detail) from exc
        except subprocess.TimeoutExpired as exc:
            raise GitInitError(str(path), f"timed out after {self.timeout}s") from exc
        except OSError as exc:
            raise GitInitError(str(path), str(exc)) from exc

    async def init_repository_at(self, path: Path) -> None:
        """Initialise ``path`` without blocking the event loop."""
        await asyncio.to_thread(self._run, path)

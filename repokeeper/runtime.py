"""Process bootstrap and command-line entrypoint for the registry.

:func:`bootstrap` is the one place that wires the registry together: it
creates the engine, ensures the tables exist, runs the startup backfill, and
only then returns the service to the caller. Host processes embed the
registry through it; the ``repokeeper`` command drives it from a shell.

Configuration is driven by environment variables (see
:class:`repokeeper.config.RegistryConfig`):

- ``REPOKEEPER_DATABASE_URL``: Database connection URL
- ``REPOKEEPER_LOG_LEVEL``: Log level (default ``INFO``)
- ``REPOKEEPER_ORPHAN_SWEEP_SECONDS``: Interval for ``reap --watch``
- ``REPOKEEPER_GIT_TIMEOUT_SECONDS``: Timeout for ``git init``

Run the command with ``python -m repokeeper.runtime``.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import sys
import typing as typ

import msgspec
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from repokeeper.config import RegistryConfig
from repokeeper.logging import configure_logging, get_logger, log_info, log_warning
from repokeeper.registry import (
    NegativePaginationError,
    OrphanReaper,
    RegistryError,
    RepositoryNotFoundError,
    RepositoryRegistryService,
    RepositoryUpdate,
    SubprocessGitInitializer,
    init_registry_storage,
)
from repokeeper.registry.backfill import run_backfill

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

    from repokeeper.registry import BackfillResult, GitInitializer

__all__ = ["RegistryRuntime", "bootstrap", "main"]

logger = get_logger(__name__)

_EXIT_ERROR = 1
_EXIT_NOT_FOUND = 2


@dataclasses.dataclass(slots=True)
class RegistryRuntime:
    """Live registry handles returned by :func:`bootstrap`."""

    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    service: RepositoryRegistryService
    reaper: OrphanReaper
    backfill: BackfillResult

    async def close(self) -> None:
        """Dispose of the engine and its pooled connections."""
        await self.engine.dispose()


async def bootstrap(
    config: RegistryConfig, *, git: GitInitializer | None = None
) -> RegistryRuntime:
    """Prepare the registry for use.

    Creates missing tables and runs the backfill before the service is
    returned, so callers never observe sentinel names left by the legacy
    migration (unless a record failed to repair, which is logged).

    Parameters
    ----------
    config
        Runtime configuration.
    git
        Optional git collaborator; defaults to the ``git`` binary with the
        configured timeout.

    Returns
    -------
    RegistryRuntime
        Engine, session factory, service, reaper, and the backfill summary.

    """
    engine = create_async_engine(config.database_url)
    try:
        await init_registry_storage(engine)
        session_factory = async_sessionmaker(engine, expire_on_commit=False)
        backfill = await run_backfill(session_factory)
    except BaseException:
        await engine.dispose()
        raise

    git_initializer = git or SubprocessGitInitializer(
        timeout=float(config.git_timeout_seconds)
    )
    return RegistryRuntime(
        engine=engine,
        session_factory=session_factory,
        service=RepositoryRegistryService(session_factory, git_initializer),
        reaper=OrphanReaper(session_factory),
        backfill=backfill,
    )


def _print_json(value: object) -> None:
    print(msgspec.json.encode(value).decode())


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repokeeper", description="Manage the local repository registry."
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Override REPOKEEPER_DATABASE_URL for this invocation",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    register = commands.add_parser("register", help="Register a repository path")
    register.add_argument("path", help="Repository directory")
    register.add_argument("--display-name", default=None)
    register.add_argument(
        "--require-git",
        action="store_true",
        help="Refuse paths that are not existing git checkouts",
    )

    init = commands.add_parser("init", help="Create, git-init and register a folder")
    init.add_argument("parent_path")
    init.add_argument("folder_name")

    show = commands.add_parser("show", help="Show one repository")
    show.add_argument("repo_id")

    listing = commands.add_parser("list", help="List repositories by display name")
    listing.add_argument("--limit", type=int, default=None)
    listing.add_argument("--offset", type=int, default=None)

    update = commands.add_parser("update", help="Apply a partial JSON update")
    update.add_argument("repo_id")
    update.add_argument(
        "payload",
        help='JSON object, e.g. \'{"cleanup_script": null}\' to clear a field',
    )

    reap = commands.add_parser("reap", help="Delete unreferenced repositories")
    reap.add_argument(
        "--watch",
        action="store_true",
        help="Keep sweeping every REPOKEEPER_ORPHAN_SWEEP_SECONDS",
    )

    commands.add_parser("backfill", help="Report the startup name backfill")
    return parser


async def _dispatch(
    args: argparse.Namespace, runtime: RegistryRuntime, config: RegistryConfig
) -> int:
    service = runtime.service
    match args.command:
        case "register":
            repo = await service.register(
                args.path, args.display_name, require_git=args.require_git
            )
            _print_json(repo)
        case "init":
            _print_json(await service.init_repo(args.parent_path, args.folder_name))
        case "show":
            _print_json(await service.get_by_id(args.repo_id))
        case "list":
            _print_json(await service.list_all(limit=args.limit, offset=args.offset))
        case "update":
            payload = RepositoryUpdate.decode(args.payload)
            _print_json(await service.update(args.repo_id, payload))
        case "reap":
            if args.watch:
                if config.orphan_sweep_seconds is None:
                    print(
                        "reap --watch requires REPOKEEPER_ORPHAN_SWEEP_SECONDS",
                        file=sys.stderr,
                    )
                    return _EXIT_ERROR
                await runtime.reaper.run(float(config.orphan_sweep_seconds))
            else:
                _print_json({"deleted": await runtime.reaper.sweep()})
        case "backfill":
            _print_json(runtime.backfill)
    return 0


async def _run(args: argparse.Namespace, config: RegistryConfig) -> int:
    runtime = await bootstrap(config)
    try:
        return await _dispatch(args, runtime, config)
    except RepositoryNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return _EXIT_NOT_FOUND
    except (RegistryError, NegativePaginationError) as exc:
        print(str(exc), file=sys.stderr)
        return _EXIT_ERROR
    finally:
        await runtime.close()


def main(argv: list[str] | None = None) -> int:
    """Run a registry command.

    Parameters
    ----------
    argv : list[str] | None, optional
        Command-line arguments. ``None`` defaults to ``sys.argv``.

    Returns
    -------
    int
        Exit code: 0 on success, 2 when a repository id is unknown, 1 for
        any other failure.

    """
    args = _build_parser().parse_args(argv)

    try:
        config = RegistryConfig.from_env()
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return _EXIT_ERROR
    if args.database_url:
        config = dataclasses.replace(config, database_url=args.database_url)

    normalized_level, invalid_level = configure_logging(config.log_level)
    if invalid_level:
        log_warning(
            logger,
            "Invalid REPOKEEPER_LOG_LEVEL %r, falling back to %s",
            config.log_level,
            normalized_level,
        )
    log_info(logger, "Running repokeeper %s", args.command)

    try:
        return asyncio.run(_run(args, config))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())

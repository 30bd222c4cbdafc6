"""Persistence models for the repository registry.

The ``repos`` table is the registry proper. ``project_repos`` and
``workspace_repos`` belong to the project and workspace subsystems; the
registry only reads them to decide which records are still owned. Models keep
to portable SQLAlchemy types so the same code works with SQLite in tests and
PostgreSQL in production.
"""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import typing as typ
import uuid

from sqlalchemy import Boolean, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from repokeeper.common.time import UTCDateTime, utcnow

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

NEEDS_BACKFILL_SENTINEL = "__NEEDS_BACKFILL__"
"""Placeholder name carried by records migrated from the legacy store."""


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base declarative class for registry persistence."""


class Repo(Base):
    """Local repository tracked by the registry."""

    __tablename__ = "repos"
    __table_args__ = (UniqueConstraint("path", name="uq_repos_path"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    path: Mapped[str] = mapped_column(Text())
    name: Mapped[str] = mapped_column(String(255))
    display_name: Mapped[str] = mapped_column(String(255))
    setup_script: Mapped[str | None] = mapped_column(Text(), default=None)
    cleanup_script: Mapped[str | None] = mapped_column(Text(), default=None)
    copy_files: Mapped[str | None] = mapped_column(Text(), default=None)
    parallel_setup_script: Mapped[bool] = mapped_column(Boolean, default=False)
    dev_server_script: Mapped[str | None] = mapped_column(Text(), default=None)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)


class ProjectRepo(Base):
    """Association between a project and one of its repositories."""

    __tablename__ = "project_repos"
    __table_args__ = (
        UniqueConstraint("project_id", "repo_id", name="uq_project_repos_pair"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    project_id: Mapped[str] = mapped_column(String(36), index=True)
    repo_id: Mapped[str] = mapped_column(
        ForeignKey("repos.id"), nullable=False, index=True
    )
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)


class WorkspaceRepo(Base):
    """Association between a workspace and a repository checked out in it."""

    __tablename__ = "workspace_repos"
    __table_args__ = (
        UniqueConstraint("workspace_id", "repo_id", name="uq_workspace_repos_pair"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    workspace_id: Mapped[str] = mapped_column(String(36), index=True)
    repo_id: Mapped[str] = mapped_column(
        ForeignKey("repos.id"), nullable=False, index=True
    )
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)


async def init_registry_storage(engine: AsyncEngine) -> None:
    """Create all registry tables if they are absent."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

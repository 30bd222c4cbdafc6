"""Runtime configuration for the repository registry.

Usage
-----
Create a configuration with defaults:

>>> config = RegistryConfig()
>>> config.git_timeout_seconds
30

Or load from environment variables:

>>> import os
>>> os.environ["REPOKEEPER_ORPHAN_SWEEP_SECONDS"] = "600"
>>> RegistryConfig.from_env().orphan_sweep_seconds
600

"""

from __future__ import annotations

import dataclasses as dc
import os

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///repokeeper.db"
DEFAULT_GIT_TIMEOUT_SECONDS = 30


@dc.dataclass(frozen=True, slots=True)
class RegistryConfig:
    """Settings read once at process start.

    Attributes
    ----------
    database_url
        SQLAlchemy async URL for the registry database.
    log_level
        femtologging level name. Invalid names fall back to ``INFO``.
    orphan_sweep_seconds
        Interval between periodic orphan sweeps. ``None`` disables the
        periodic sweep; ``delete_orphaned`` can still be called on demand.
    git_timeout_seconds
        Upper bound on a single ``git init`` invocation.

    """

    database_url: str = DEFAULT_DATABASE_URL
    log_level: str = "INFO"
    orphan_sweep_seconds: int | None = None
    git_timeout_seconds: int = DEFAULT_GIT_TIMEOUT_SECONDS

    @staticmethod
    def _parse_positive_int(env_var: str) -> int | None:
        """Read a positive integer env var; return None when unset or blank."""
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return None
        try:
            value = int(raw)
        except ValueError as exc:
            msg = f"{env_var} must be an integer, got: {raw!r}"
            raise ValueError(msg) from exc
        if value < 1:
            msg = f"{env_var} must be positive, got: {value}"
            raise ValueError(msg)
        return value

    @classmethod
    def from_env(cls) -> RegistryConfig:
        """Create configuration from environment variables.

        Reads the following environment variables:

        - ``REPOKEEPER_DATABASE_URL``: async database URL.
        - ``REPOKEEPER_LOG_LEVEL``: log level name.
        - ``REPOKEEPER_ORPHAN_SWEEP_SECONDS``: positive integer; unset
          disables periodic sweeping.
        - ``REPOKEEPER_GIT_TIMEOUT_SECONDS``: positive integer.

        Raises
        ------
        ValueError
            If an integer variable is malformed or not positive.

        """
        database_url = (
            os.environ.get("REPOKEEPER_DATABASE_URL", "").strip()
            or DEFAULT_DATABASE_URL
        )
        log_level = os.environ.get("REPOKEEPER_LOG_LEVEL", "INFO")
        sweep = cls._parse_positive_int("REPOKEEPER_ORPHAN_SWEEP_SECONDS")
        git_timeout = cls._parse_positive_int("REPOKEEPER_GIT_TIMEOUT_SECONDS")

        return cls(
            database_url=database_url,
            log_level=log_level,
            orphan_sweep_seconds=sweep,
            git_timeout_seconds=git_timeout or DEFAULT_GIT_TIMEOUT_SECONDS,
        )

"""Unit tests for the repokeeper.runtime module."""

from __future__ import annotations

import typing as typ
import uuid

import msgspec
import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from repokeeper.common.time import utcnow
from repokeeper.config import RegistryConfig
from repokeeper.registry import NEEDS_BACKFILL_SENTINEL, Repo, init_registry_storage
from repokeeper.runtime import bootstrap, main

if typ.TYPE_CHECKING:
    from pathlib import Path

_ENV_VARS = (
    "REPOKEEPER_DATABASE_URL",
    "REPOKEEPER_LOG_LEVEL",
    "REPOKEEPER_ORPHAN_SWEEP_SECONDS",
    "REPOKEEPER_GIT_TIMEOUT_SECONDS",
)


@pytest.fixture(autouse=True)
def _isolated_runtime(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(
        "repokeeper.runtime.configure_logging", lambda _level: ("INFO", False)
    )


async def _seed_legacy_row(database_url: str, path: str) -> str:
    engine = create_async_engine(database_url)
    repo_id = str(uuid.uuid4())
    now = utcnow()
    try:
        await init_registry_storage(engine)
        async with engine.begin() as conn:
            await conn.execute(
                Repo.__table__.insert().values(
                    id=repo_id,
                    path=path,
                    name=NEEDS_BACKFILL_SENTINEL,
                    display_name=NEEDS_BACKFILL_SENTINEL,
                    parallel_setup_script=False,
                    created_at=now,
                    updated_at=now,
                )
            )
    finally:
        await engine.dispose()
    return repo_id


def _run_cli(
    capsys: pytest.CaptureFixture[str], database_url: str, *argv: str
) -> tuple[int, typ.Any, str]:
    code = main(["--database-url", database_url, *argv])
    captured = capsys.readouterr()
    payload = msgspec.json.decode(captured.out) if captured.out.strip() else None
    return code, payload, captured.err


class TestBootstrap:
    """Tests for the bootstrap entrypoint."""

    @pytest.mark.asyncio
    async def test_bootstrap_creates_tables(self, database_url: str) -> None:
        """A fresh database is usable straight after bootstrap."""
        runtime = await bootstrap(RegistryConfig(database_url=database_url))
        try:
            assert await runtime.service.list_all() == []
            assert runtime.backfill.examined == 0
        finally:
            await runtime.close()

    @pytest.mark.asyncio
    async def test_bootstrap_runs_backfill_first(self, database_url: str) -> None:
        """Sentinel rows are repaired before the service is handed out."""
        repo_id = await _seed_legacy_row(database_url, "/srv/legacy/tool")

        runtime = await bootstrap(RegistryConfig(database_url=database_url))
        try:
            repo = await runtime.service.get_by_id(repo_id)
        finally:
            await runtime.close()

        assert runtime.backfill.repaired == 1
        assert repo.name == "tool"
        assert repo.display_name == "tool"


class TestCommandLine:
    """Tests for the repokeeper command."""

    def test_register_then_show(
        self, capsys: pytest.CaptureFixture[str], database_url: str
    ) -> None:
        """register prints the record and show reads it back."""
        code, created, _ = _run_cli(
            capsys, database_url, "register", "/srv/app", "--display-name", "App"
        )
        assert code == 0
        assert created["name"] == "app"
        assert created["display_name"] == "App"

        code, shown, _ = _run_cli(capsys, database_url, "show", created["id"])
        assert code == 0
        assert shown == created

    def test_show_unknown_id_exits_not_found(
        self, capsys: pytest.CaptureFixture[str], database_url: str
    ) -> None:
        """An unknown id exits with status 2."""
        code, payload, err = _run_cli(capsys, database_url, "show", "missing-id")

        assert code == 2
        assert payload is None
        assert "missing-id" in err

    def test_update_clears_field_with_null(
        self, capsys: pytest.CaptureFixture[str], database_url: str
    ) -> None:
        """update applies a JSON payload, treating null as clear."""
        _, created, _ = _run_cli(capsys, database_url, "register", "/srv/app")
        _run_cli(
            capsys, database_url, "update", created["id"], '{"setup_script": "make"}'
        )

        code, updated, _ = _run_cli(
            capsys,
            database_url,
            "update",
            created["id"],
            '{"setup_script": null, "copy_files": ".env"}',
        )

        assert code == 0
        assert updated["setup_script"] is None
        assert updated["copy_files"] == ".env"

    def test_update_rejects_unknown_fields(
        self, capsys: pytest.CaptureFixture[str], database_url: str
    ) -> None:
        """A malformed payload exits with status 1."""
        _, created, _ = _run_cli(capsys, database_url, "register", "/srv/app")

        code, _, err = _run_cli(
            capsys, database_url, "update", created["id"], '{"path": "/elsewhere"}'
        )

        assert code == 1
        assert "Invalid repository update payload" in err

    def test_list_and_reap(
        self, capsys: pytest.CaptureFixture[str], database_url: str
    ) -> None:
        """Unowned records are listed until a reap removes them."""
        _run_cli(capsys, database_url, "register", "/srv/b")
        _run_cli(capsys, database_url, "register", "/srv/a")

        _, listed, _ = _run_cli(capsys, database_url, "list")
        assert [repo["name"] for repo in listed] == ["a", "b"]

        code, reaped, _ = _run_cli(capsys, database_url, "reap")
        assert code == 0
        assert reaped == {"deleted": 2}

        _, listed, _ = _run_cli(capsys, database_url, "list")
        assert listed == []

    def test_list_rejects_negative_limit(
        self, capsys: pytest.CaptureFixture[str], database_url: str
    ) -> None:
        """Negative pagination exits with status 1."""
        code, _, err = _run_cli(capsys, database_url, "list", "--limit", "-1")

        assert code == 1
        assert "limit must be non-negative" in err

    def test_reap_watch_requires_interval(
        self, capsys: pytest.CaptureFixture[str], database_url: str
    ) -> None:
        """Watch mode needs a sweep interval."""
        code, _, err = _run_cli(capsys, database_url, "reap", "--watch")

        assert code == 1
        assert "REPOKEEPER_ORPHAN_SWEEP_SECONDS" in err

    def test_backfill_reports_startup_pass(
        self, capsys: pytest.CaptureFixture[str], database_url: str
    ) -> None:
        """backfill prints the counts from the startup pass."""
        code, summary, _ = _run_cli(capsys, database_url, "backfill")

        assert code == 0
        assert summary == {"repaired": 0, "skipped": 0, "failed": 0}

    def test_init_reports_path_conflict(
        self,
        capsys: pytest.CaptureFixture[str],
        database_url: str,
        tmp_path: Path,
    ) -> None:
        """init reports path conflicts with status 1."""
        (tmp_path / "taken").mkdir()
        (tmp_path / "taken" / "file").write_text("x")

        code, _, err = _run_cli(capsys, database_url, "init", str(tmp_path), "taken")

        assert code == 1
        assert "not empty" in err

    def test_invalid_configuration_exits_with_error(
        self,
        capsys: pytest.CaptureFixture[str],
        database_url: str,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A malformed environment variable stops the command early."""
        monkeypatch.setenv("REPOKEEPER_GIT_TIMEOUT_SECONDS", "slow")

        code, _, err = _run_cli(capsys, database_url, "list")

        assert code == 1
        assert "Invalid configuration" in err
        assert "REPOKEEPER_GIT_TIMEOUT_SECONDS" in err

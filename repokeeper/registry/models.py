"""Data transfer objects for the repository registry."""

from __future__ import annotations

import dataclasses
import datetime as dt  # noqa: TC003
import typing as typ

import msgspec

from repokeeper.registry.errors import InvalidUpdatePayloadError
from repokeeper.registry.storage import NEEDS_BACKFILL_SENTINEL


@dataclasses.dataclass(slots=True, frozen=True)
class RepositoryInfo:
    """Immutable view of a registry record handed to callers.

    Rows never leave a session; every registry operation converts them into
    this structure first so callers cannot lazily reload or mutate state.
    """

    id: str
    path: str
    name: str
    display_name: str
    setup_script: str | None
    cleanup_script: str | None
    copy_files: str | None
    parallel_setup_script: bool
    dev_server_script: str | None
    created_at: dt.datetime
    updated_at: dt.datetime

    @property
    def needs_backfill(self) -> bool:
        """Return True while the record still carries the migration sentinel."""
        return self.name == NEEDS_BACKFILL_SENTINEL


class RepositoryUpdate(
    msgspec.Struct, kw_only=True, frozen=True, forbid_unknown_fields=True
):
    """Partial update for a repository record.

    Attributes
    ----------
    display_name : str, optional
        New label. ``None`` or a blank string keeps the stored value.
    parallel_setup_script : bool, optional
        New flag value. ``None`` keeps the stored value.
    setup_script, cleanup_script, copy_files, dev_server_script
        Three-state fields. ``msgspec.UNSET`` (the default, and what an
        omitted JSON key decodes to) leaves the stored value untouched;
        ``None`` or a blank string clears it; any other string replaces it.

    """

    display_name: typ.Annotated[str, msgspec.Meta(min_length=1)] | None = None
    setup_script: str | None | msgspec.UnsetType = msgspec.UNSET
    cleanup_script: str | None | msgspec.UnsetType = msgspec.UNSET
    copy_files: str | None | msgspec.UnsetType = msgspec.UNSET
    parallel_setup_script: bool | None = None
    dev_server_script: str | None | msgspec.UnsetType = msgspec.UNSET

    @classmethod
    def decode(cls, payload: bytes | str) -> RepositoryUpdate:
        """Decode a JSON object into an update, keeping null distinct from absent.

        Raises
        ------
        InvalidUpdatePayloadError
            If the payload is not valid JSON or does not match the schema.

        """
        try:
            return msgspec.json.decode(payload, type=cls)
        except msgspec.DecodeError as exc:
            raise InvalidUpdatePayloadError(str(exc)) from exc


@dataclasses.dataclass(slots=True)
class BackfillResult:
    """Summary of a startup backfill pass."""

    repaired: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def examined(self) -> int:
        """Return the number of sentinel records the pass looked at."""
        return self.repaired + self.skipped + self.failed

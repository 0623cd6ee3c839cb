"""Sync-related domain entities: diffs, applied results, jobs and progress."""

from datetime import datetime
from enum import StrEnum
from typing import Any, Literal

import attrs
from attrs import define, field

from .shared import ensure_utc, utc_now

ChunkOperation = Literal["add", "remove"]


class JobKind(StrEnum):
    SMART_PLAYLIST = "smart_playlist"
    LIBRARY_MIRROR = "library_mirror"
    ONBOARDING = "onboarding"
    PLAY_IMPORT = "play_import"


class JobStatus(StrEnum):
    """Job lifecycle: waiting -> active -> completed | failed."""

    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@define(frozen=True, slots=True)
class PlaylistDiff:
    """Minimal add/remove operations that turn ``current`` into ``desired``.

    ``to_add`` keeps the desired order so new playlists are created in rule
    order; ``to_remove`` keeps the order items were found in.
    """

    playlist_external_id: str | None = None
    to_add: tuple[str, ...] = field(factory=tuple, converter=tuple)
    to_remove: tuple[str, ...] = field(factory=tuple, converter=tuple)
    unchanged_count: int = 0

    @property
    def has_changes(self) -> bool:
        return bool(self.to_add or self.to_remove)

    def api_call_estimate(self, chunk_size: int) -> int:
        """Number of write calls needed at the given per-call item limit."""
        return -(-len(self.to_add) // chunk_size) + -(-len(self.to_remove) // chunk_size)


@define(frozen=True, slots=True)
class ChunkError:
    """One failed write chunk."""

    operation: ChunkOperation
    item_ids: tuple[str, ...] = field(converter=tuple)
    message: str
    transient: bool = True

    def __str__(self) -> str:
        return f"{self.operation} of {len(self.item_ids)} items failed: {self.message}"


@define(frozen=True, slots=True)
class AppliedResult:
    """Outcome of applying a diff chunk by chunk."""

    added: tuple[str, ...] = field(factory=tuple, converter=tuple)
    removed: tuple[str, ...] = field(factory=tuple, converter=tuple)
    errors: tuple[ChunkError, ...] = field(factory=tuple, converter=tuple)
    calls_made: int = 0

    @property
    def is_complete(self) -> bool:
        return not self.errors

    @property
    def all_chunks_failed(self) -> bool:
        return bool(self.errors) and not self.added and not self.removed


@define(frozen=True, slots=True)
class SyncResult:
    """Operator-facing terminal result of a sync job."""

    total_tracks: int = 0
    new_tracks: int = 0
    updated_tracks: int = 0
    errors: tuple[str, ...] = field(factory=tuple, converter=tuple)

    def merge(self, other: "SyncResult") -> "SyncResult":
        return SyncResult(
            total_tracks=self.total_tracks + other.total_tracks,
            new_tracks=self.new_tracks + other.new_tracks,
            updated_tracks=self.updated_tracks + other.updated_tracks,
            errors=self.errors + other.errors,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalTracks": self.total_tracks,
            "newTracks": self.new_tracks,
            "updatedTracks": self.updated_tracks,
            "errors": list(self.errors),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncResult":
        return cls(
            total_tracks=data.get("totalTracks", 0),
            new_tracks=data.get("newTracks", 0),
            updated_tracks=data.get("updatedTracks", 0),
            errors=data.get("errors", ()),
        )


@define(frozen=True, slots=True)
class JobProgress:
    """Incremental progress of a long-running phase."""

    phase: str = ""
    current: int = 0
    total: int = 0
    message: str | None = None

    @property
    def percentage(self) -> float:
        if self.total <= 0:
            return 0.0
        return round(min(self.current / self.total, 1.0) * 100, 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase,
            "current": self.current,
            "total": self.total,
            "percentage": self.percentage,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "JobProgress":
        if not data:
            return cls()
        return cls(
            phase=data.get("phase", ""),
            current=data.get("current", 0),
            total=data.get("total", 0),
            message=data.get("message"),
        )


@define(frozen=True, slots=True)
class SyncJob:
    """Background sync job record."""

    id: str
    kind: JobKind = field(converter=JobKind)
    target: str
    status: JobStatus = field(default=JobStatus.WAITING, converter=JobStatus)
    progress: JobProgress = field(factory=JobProgress)
    result: SyncResult | None = None
    error: str | None = None
    idempotency_key: str | None = None
    payload: dict[str, Any] = field(factory=dict)
    created_at: datetime = field(factory=utc_now, converter=ensure_utc)
    started_at: datetime | None = field(default=None, converter=ensure_utc)
    finished_at: datetime | None = field(default=None, converter=ensure_utc)

    def start(self) -> "SyncJob":
        return attrs.evolve(self, status=JobStatus.ACTIVE, started_at=utc_now())

    def with_progress(self, progress: JobProgress) -> "SyncJob":
        return attrs.evolve(self, progress=progress)

    def complete(self, result: SyncResult) -> "SyncJob":
        return attrs.evolve(
            self, status=JobStatus.COMPLETED, result=result, finished_at=utc_now()
        )

    def fail(self, error: str, result: SyncResult | None = None) -> "SyncJob":
        return attrs.evolve(
            self,
            status=JobStatus.FAILED,
            error=error,
            result=result if result is not None else self.result,
            finished_at=utc_now(),
        )


@define(frozen=True, slots=True)
class SyncOptions:
    """Options for mirroring the remote library into the local one."""

    force_refresh_playlists: bool = False
    sync_albums: bool = True
    sync_liked_tracks: bool = True
    sync_playlists: bool = True
    sync_audio_features: bool = True


@define(frozen=True, slots=True)
class AffectedEntitySummary:
    """Entities touched during one sync pass."""

    track_ids: tuple[str, ...] = field(factory=tuple, converter=tuple)
    album_ids: tuple[str, ...] = field(factory=tuple, converter=tuple)
    artist_ids: tuple[str, ...] = field(factory=tuple, converter=tuple)

    @property
    def total_updates(self) -> int:
        return len(self.track_ids) + len(self.album_ids) + len(self.artist_ids)

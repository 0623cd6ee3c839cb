"""SQLAlchemy database models for Smartlists.

This module defines the library, smart playlist and sync job tables using
SQLAlchemy 2.0 patterns with type annotations and relationship definitions.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    MetaData,
    Select,
    String,
    Text,
    UniqueConstraint,
    select,
)
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from smartlists.config import get_logger

logger = get_logger(__name__)

# Define naming convention for constraints
convention = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",  # Index
    "uq": "uq_%(table_name)s_%(column_0_label)s",  # Unique constraint
    "ck": "ck_%(table_name)s_%(constraint_name)s",  # Check constraint
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",  # Foreign key
    "pk": "pk_%(table_name)s",  # Primary key
}

metadata = MetaData(naming_convention=convention)


class SmartlistsDBBase(AsyncAttrs, DeclarativeBase):
    """Base class for all database models with timestamps and soft delete."""

    metadata = metadata

    id: Mapped[int] = mapped_column(primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, default=None)

    def mark_soft_deleted(self) -> None:
        """Mark record as logically deleted (soft delete)."""
        self.is_deleted = True
        self.deleted_at = datetime.now(UTC)

    @classmethod
    def active_records(cls) -> Select:
        """Return a select statement for non-deleted records."""
        return select(cls).where(cls.is_deleted == False)  # noqa: E712


class DBTrack(SmartlistsDBBase):
    """Library track with user-owned rating and play statistics."""

    __tablename__ = "tracks"

    spotify_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    artist: Mapped[str] = mapped_column(String(255), nullable=False)
    album: Mapped[str] = mapped_column(String(255), default="")
    artist_spotify_id: Mapped[str | None] = mapped_column(String(64), index=True)
    album_spotify_id: Mapped[str | None] = mapped_column(String(64), index=True)
    duration_ms: Mapped[int] = mapped_column(default=0)
    release_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )
    rating: Mapped[float | None] = mapped_column(Float)
    rated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    play_count: Mapped[int] = mapped_column(default=0)
    last_played_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    audio_features: Mapped[dict[str, float] | None] = mapped_column(JSON, default=None)

    tags: Mapped[list["DBTrackTag"]] = relationship(
        back_populates="track",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    sources: Mapped[list["DBTrackSource"]] = relationship(
        back_populates="track",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("spotify_id"),
        Index(None, "title"),
    )


class DBTag(SmartlistsDBBase):
    """User-defined label."""

    __tablename__ = "tags"

    name: Mapped[str] = mapped_column(String(64), nullable=False)
    color: Mapped[str] = mapped_column(String(16), default="#6b7280")

    __table_args__ = (UniqueConstraint("name"),)


class DBTrackTag(SmartlistsDBBase):
    """Tag assignment."""

    __tablename__ = "track_tags"

    track_id: Mapped[int] = mapped_column(ForeignKey("tracks.id", ondelete="CASCADE"))
    tag_id: Mapped[int] = mapped_column(ForeignKey("tags.id", ondelete="CASCADE"))

    track: Mapped["DBTrack"] = relationship(back_populates="tags")

    __table_args__ = (UniqueConstraint("track_id", "tag_id"),)


class DBTrackSource(SmartlistsDBBase):
    """One way a track entered the library (liked songs, an album, a playlist)."""

    __tablename__ = "track_sources"

    track_id: Mapped[int] = mapped_column(ForeignKey("tracks.id", ondelete="CASCADE"))
    source_type: Mapped[str] = mapped_column(String(32))
    # Empty string rather than NULL so the unique constraint holds for liked songs
    source_id: Mapped[str] = mapped_column(String(64), default="")
    source_name: Mapped[str | None] = mapped_column(String(255))

    track: Mapped["DBTrack"] = relationship(back_populates="sources")

    __table_args__ = (
        UniqueConstraint("track_id", "source_type", "source_id"),
        Index(None, "source_type", "source_id"),
    )


class DBPlay(SmartlistsDBBase):
    """One listen imported from the recently-played history."""

    __tablename__ = "plays"

    track_id: Mapped[int] = mapped_column(ForeignKey("tracks.id", ondelete="CASCADE"))
    played_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_ms: Mapped[int] = mapped_column(default=0)

    # The history endpoint overlaps between polls; repeated imports must not double count
    __table_args__ = (UniqueConstraint("track_id", "played_at"),)


class DBAlbum(SmartlistsDBBase):
    """Album aggregate refreshed after mirroring."""

    __tablename__ = "albums"

    spotify_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), default="")
    artist_spotify_id: Mapped[str | None] = mapped_column(String(64))
    track_count: Mapped[int] = mapped_column(default=0)
    average_rating: Mapped[float | None] = mapped_column(Float)

    __table_args__ = (UniqueConstraint("spotify_id"),)


class DBArtist(SmartlistsDBBase):
    """Artist aggregate refreshed after mirroring."""

    __tablename__ = "artists"

    spotify_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), default="")
    track_count: Mapped[int] = mapped_column(default=0)
    average_rating: Mapped[float | None] = mapped_column(Float)

    __table_args__ = (UniqueConstraint("spotify_id"),)


class DBSmartPlaylist(SmartlistsDBBase):
    """Smart playlist with its criteria document and sync state."""

    __tablename__ = "smart_playlists"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000))
    criteria: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    spotify_playlist_id: Mapped[str | None] = mapped_column(String(64), index=True)
    track_count: Mapped[int] = mapped_column(default=0)
    fingerprint: Mapped[str | None] = mapped_column(String(64))
    synced_fingerprint: Mapped[str | None] = mapped_column(String(64))
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (UniqueConstraint("name"),)


class DBMirroredPlaylist(SmartlistsDBBase):
    """External playlist mirrored into the library, gated on snapshot ID."""

    __tablename__ = "mirrored_playlists"

    spotify_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), default="")
    snapshot_id: Mapped[str | None] = mapped_column(String(128))
    last_mirrored_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (UniqueConstraint("spotify_id"),)


class DBSyncJob(SmartlistsDBBase):
    """Background job record with progress and terminal result."""

    __tablename__ = "sync_jobs"

    job_id: Mapped[str] = mapped_column(String(36), nullable=False)
    kind: Mapped[str] = mapped_column(String(32))
    target: Mapped[str] = mapped_column(String(128), index=True)
    status: Mapped[str] = mapped_column(String(16), index=True)
    progress: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    result: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    error: Mapped[str | None] = mapped_column(Text)
    idempotency_key: Mapped[str | None] = mapped_column(String(128))
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint("job_id"),
        UniqueConstraint("idempotency_key"),
    )

"""Core domain entities: library tracks, criteria, smart playlists and sync jobs."""

from .criteria import (
    CATEGORY_OPERATORS,
    FIELD_CATEGORIES,
    ExistenceRule,
    FieldCategory,
    NumericRule,
    OrderDirection,
    OrderField,
    PlaylistCriteria,
    PlaylistRule,
    RelativeDateRule,
    RuleField,
    RuleLogic,
    RuleOperator,
    TagRule,
    TextRule,
    bind_tag_names,
    parse_rule,
)
from .library import LibraryView
from .playlist import (
    MaterializedResult,
    MirroredPlaylist,
    RemoteAlbum,
    RemotePlaylist,
    SmartPlaylist,
)
from .shared import ensure_utc, utc_now
from .sync import (
    AffectedEntitySummary,
    AppliedResult,
    ChunkError,
    JobKind,
    JobProgress,
    JobStatus,
    PlaylistDiff,
    SyncJob,
    SyncOptions,
    SyncResult,
)
from .track import PlayEvent, RemoteTrack, SourceType, Tag, Track, TrackSource

__all__ = [
    # Criteria
    "CATEGORY_OPERATORS",
    "FIELD_CATEGORIES",
    "ExistenceRule",
    "FieldCategory",
    "NumericRule",
    "OrderDirection",
    "OrderField",
    "PlaylistCriteria",
    "PlaylistRule",
    "RelativeDateRule",
    "RuleField",
    "RuleLogic",
    "RuleOperator",
    "TagRule",
    "TextRule",
    "bind_tag_names",
    "parse_rule",
    # Library
    "LibraryView",
    "PlayEvent",
    "RemoteTrack",
    "SourceType",
    "Tag",
    "Track",
    "TrackSource",
    # Playlists
    "MaterializedResult",
    "MirroredPlaylist",
    "RemoteAlbum",
    "RemotePlaylist",
    "SmartPlaylist",
    # Sync
    "AffectedEntitySummary",
    "AppliedResult",
    "ChunkError",
    "JobKind",
    "JobProgress",
    "JobStatus",
    "PlaylistDiff",
    "SyncJob",
    "SyncOptions",
    "SyncResult",
    # Shared utilities
    "ensure_utc",
    "utc_now",
]

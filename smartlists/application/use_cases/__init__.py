"""Application use cases - orchestrate smart playlist and sync operations."""

from .manage_playlists import (
    CreateSmartPlaylistCommand,
    CreateSmartPlaylistUseCase,
    UpdateSmartPlaylistCommand,
    UpdateSmartPlaylistUseCase,
)
from .library_edits import (
    AssignTagCommand,
    AssignTagUseCase,
    ImportRecentPlaysUseCase,
    RateTrackCommand,
    RateTrackUseCase,
    enqueue_play_import,
)
from .materialize_playlist import MaterializePlaylistUseCase
from .mirror_library import MirrorLibraryUseCase, enqueue_library_mirror
from .seed_playlists import (
    DEFAULT_SMART_PLAYLISTS,
    SeedDefaultPlaylistsUseCase,
    enqueue_onboarding,
)
from .sync_all_playlists import SyncAllPlaylistsUseCase
from .sync_smart_playlist import (
    SyncSmartPlaylistCommand,
    SyncSmartPlaylistResult,
    SyncSmartPlaylistUseCase,
    enqueue_smart_playlist_sync,
)

__all__ = [
    "DEFAULT_SMART_PLAYLISTS",
    "AssignTagCommand",
    "AssignTagUseCase",
    "CreateSmartPlaylistCommand",
    "CreateSmartPlaylistUseCase",
    "ImportRecentPlaysUseCase",
    "MaterializePlaylistUseCase",
    "MirrorLibraryUseCase",
    "RateTrackCommand",
    "RateTrackUseCase",
    "SeedDefaultPlaylistsUseCase",
    "SyncAllPlaylistsUseCase",
    "SyncSmartPlaylistCommand",
    "SyncSmartPlaylistResult",
    "SyncSmartPlaylistUseCase",
    "UpdateSmartPlaylistCommand",
    "UpdateSmartPlaylistUseCase",
    "enqueue_library_mirror",
    "enqueue_onboarding",
    "enqueue_play_import",
    "enqueue_smart_playlist_sync",
]

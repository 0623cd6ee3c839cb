"""Domain repository interfaces."""

from .interfaces import (
    AudioFeatureClient,
    LibraryRepositoryProtocol,
    MirrorRepositoryProtocol,
    PlaylistPlatform,
    PlaylistWriter,
    SmartPlaylistRepositoryProtocol,
    SyncJobRepositoryProtocol,
    UnitOfWorkProtocol,
)

__all__ = [
    "AudioFeatureClient",
    "LibraryRepositoryProtocol",
    "MirrorRepositoryProtocol",
    "PlaylistPlatform",
    "PlaylistWriter",
    "SmartPlaylistRepositoryProtocol",
    "SyncJobRepositoryProtocol",
    "UnitOfWorkProtocol",
]

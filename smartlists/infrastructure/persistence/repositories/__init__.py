"""Repository layer for database operations with SQLAlchemy 2.0."""

from smartlists.infrastructure.persistence.repositories.base_repo import (
    BaseModelMapper,
    BaseRepository,
    ModelMapper,
    filter_active,
)
from smartlists.infrastructure.persistence.repositories.jobs import SyncJobRepository
from smartlists.infrastructure.persistence.repositories.library import LibraryRepository
from smartlists.infrastructure.persistence.repositories.mirror import MirrorRepository
from smartlists.infrastructure.persistence.repositories.repo_decorator import db_operation
from smartlists.infrastructure.persistence.repositories.smart_playlist import (
    SmartPlaylistRepository,
)

__all__ = [
    "BaseModelMapper",
    "BaseRepository",
    "LibraryRepository",
    "MirrorRepository",
    "ModelMapper",
    "SmartPlaylistRepository",
    "SyncJobRepository",
    "db_operation",
    "filter_active",
]

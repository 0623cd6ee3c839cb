"""Repository for smart playlists and their sync state."""

from attrs import define
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from smartlists.config import get_logger
from smartlists.domain.entities import PlaylistCriteria, SmartPlaylist, utc_now
from smartlists.infrastructure.persistence.database.db_models import DBSmartPlaylist
from smartlists.infrastructure.persistence.repositories.base_repo import (
    BaseModelMapper,
    BaseRepository,
    filter_active,
)
from smartlists.infrastructure.persistence.repositories.repo_decorator import db_operation

logger = get_logger(__name__)


@define(frozen=True, slots=True)
class SmartPlaylistMapper(BaseModelMapper[DBSmartPlaylist, SmartPlaylist]):
    """Maps between DBSmartPlaylist and SmartPlaylist; criteria stored as JSON."""

    @staticmethod
    def to_domain(db_model: DBSmartPlaylist) -> SmartPlaylist:
        return SmartPlaylist(
            name=db_model.name,
            criteria=PlaylistCriteria.from_dict(db_model.criteria),
            description=db_model.description,
            is_active=db_model.is_active,
            spotify_playlist_id=db_model.spotify_playlist_id,
            track_count=db_model.track_count or 0,
            fingerprint=db_model.fingerprint,
            synced_fingerprint=db_model.synced_fingerprint,
            last_synced_at=db_model.last_synced_at,
            created_at=db_model.created_at,
            updated_at=db_model.updated_at,
            id=db_model.id,
        )

    @staticmethod
    def to_db(domain_model: SmartPlaylist) -> DBSmartPlaylist:
        return DBSmartPlaylist(
            id=domain_model.id,
            name=domain_model.name,
            description=domain_model.description,
            criteria=domain_model.criteria.to_dict(),
            is_active=domain_model.is_active,
            spotify_playlist_id=domain_model.spotify_playlist_id,
            track_count=domain_model.track_count,
            fingerprint=domain_model.fingerprint,
            synced_fingerprint=domain_model.synced_fingerprint,
            last_synced_at=domain_model.last_synced_at,
        )


class SmartPlaylistRepository(BaseRepository[DBSmartPlaylist, SmartPlaylist]):
    """Repository for smart playlist records."""

    entity_name = "SmartPlaylist"

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(
            session=session,
            model_class=DBSmartPlaylist,
            mapper=SmartPlaylistMapper(),
        )

    async def _update(self, playlist_id: int, **values) -> SmartPlaylist:
        db_model = await self._get_db_model(playlist_id)
        for attr, value in values.items():
            setattr(db_model, attr, value)
        return self.mapper.to_domain(await self._flush_and_refresh(db_model))

    @db_operation("create_smart_playlist")
    async def create(self, playlist: SmartPlaylist) -> SmartPlaylist:
        db_model = self.mapper.to_db(playlist)
        db_model.id = None
        created = self.mapper.to_domain(await self._flush_and_refresh(db_model))
        logger.debug(f"Created smart playlist '{created.name}'", playlist_id=created.id)
        return created

    @db_operation("find_smart_playlist_by_name")
    async def find_by_name(self, name: str) -> SmartPlaylist | None:
        return await self.find_one_by({"name": name})

    @db_operation("list_smart_playlists")
    async def list_playlists(self, active_only: bool = False) -> list[SmartPlaylist]:
        stmt = self.select().order_by(DBSmartPlaylist.id)
        if active_only:
            stmt = stmt.where(DBSmartPlaylist.is_active == True)  # noqa: E712
        rows = await self.session.execute(stmt)
        return self.mapper.map_collection(list(rows.scalars()))

    @db_operation("update_smart_playlist_criteria")
    async def update_criteria(self, playlist_id: int, criteria: PlaylistCriteria) -> SmartPlaylist:
        return await self._update(playlist_id, criteria=criteria.to_dict())

    @db_operation("set_smart_playlist_active")
    async def set_active(self, playlist_id: int, is_active: bool) -> SmartPlaylist:
        return await self._update(playlist_id, is_active=is_active)

    @db_operation("save_materialization")
    async def save_materialization(
        self, playlist_id: int, track_count: int, fingerprint: str
    ) -> SmartPlaylist:
        return await self._update(playlist_id, track_count=track_count, fingerprint=fingerprint)

    @db_operation("set_spotify_playlist_id")
    async def set_spotify_playlist_id(
        self, playlist_id: int, spotify_playlist_id: str
    ) -> SmartPlaylist:
        return await self._update(playlist_id, spotify_playlist_id=spotify_playlist_id)

    @db_operation("mark_smart_playlist_synced")
    async def mark_synced(
        self, playlist_id: int, spotify_playlist_id: str, synced_fingerprint: str
    ) -> SmartPlaylist:
        return await self._update(
            playlist_id,
            spotify_playlist_id=spotify_playlist_id,
            synced_fingerprint=synced_fingerprint,
            last_synced_at=utc_now(),
        )

    @db_operation("get_spotify_playlist_ids")
    async def get_spotify_playlist_ids(self) -> set[str]:
        """External IDs owned by any smart playlist, including disabled ones."""
        rows = await self.session.execute(
            select(DBSmartPlaylist.spotify_playlist_id).where(
                DBSmartPlaylist.spotify_playlist_id.is_not(None),
                filter_active(DBSmartPlaylist),
            )
        )
        return set(rows.scalars())

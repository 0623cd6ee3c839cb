"""Repository for mirrored external playlist snapshots."""

from attrs import define
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from smartlists.domain.entities import MirroredPlaylist
from smartlists.infrastructure.persistence.database.db_models import DBMirroredPlaylist
from smartlists.infrastructure.persistence.repositories.base_repo import (
    BaseModelMapper,
    BaseRepository,
)
from smartlists.infrastructure.persistence.repositories.repo_decorator import db_operation


@define(frozen=True, slots=True)
class MirroredPlaylistMapper(BaseModelMapper[DBMirroredPlaylist, MirroredPlaylist]):
    @staticmethod
    def to_domain(db_model: DBMirroredPlaylist) -> MirroredPlaylist:
        return MirroredPlaylist(
            external_id=db_model.spotify_id,
            name=db_model.name,
            snapshot_id=db_model.snapshot_id,
            last_mirrored_at=db_model.last_mirrored_at,
            id=db_model.id,
        )

    @staticmethod
    def to_db(domain_model: MirroredPlaylist) -> DBMirroredPlaylist:
        return DBMirroredPlaylist(
            id=domain_model.id,
            spotify_id=domain_model.external_id,
            name=domain_model.name,
            snapshot_id=domain_model.snapshot_id,
            last_mirrored_at=domain_model.last_mirrored_at,
        )


class MirrorRepository(BaseRepository[DBMirroredPlaylist, MirroredPlaylist]):
    """Snapshot bookkeeping for the inbound playlist mirror."""

    entity_name = "MirroredPlaylist"

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(
            session=session,
            model_class=DBMirroredPlaylist,
            mapper=MirroredPlaylistMapper(),
        )

    @db_operation("get_snapshot_ids")
    async def get_snapshot_ids(self) -> dict[str, str | None]:
        rows = await self.session.execute(
            self.select(DBMirroredPlaylist.spotify_id, DBMirroredPlaylist.snapshot_id)
        )
        return dict(rows.tuples().all())

    @db_operation("save_snapshot")
    async def save_snapshot(self, playlist: MirroredPlaylist) -> MirroredPlaylist:
        db_model = (
            await self.session.execute(
                select(DBMirroredPlaylist).where(
                    DBMirroredPlaylist.spotify_id == playlist.external_id
                )
            )
        ).scalar_one_or_none()

        if db_model is None:
            db_model = self.mapper.to_db(playlist)
            db_model.id = None
        else:
            db_model.name = playlist.name
            db_model.snapshot_id = playlist.snapshot_id
            db_model.last_mirrored_at = playlist.last_mirrored_at
            db_model.is_deleted = False

        return self.mapper.to_domain(await self._flush_and_refresh(db_model))

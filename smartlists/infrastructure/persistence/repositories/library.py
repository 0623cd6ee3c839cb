"""Library repository: tracks, tags, sources, plays and aggregates."""

from collections.abc import Iterable, Sequence
from datetime import datetime

from attrs import define
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from smartlists.config import get_logger
from smartlists.domain.entities import (
    LibraryView,
    PlayEvent,
    RemoteTrack,
    SourceType,
    Tag,
    Track,
    TrackSource,
    ensure_utc,
    utc_now,
)
from smartlists.domain.exceptions import NotFoundError, ValidationError
from smartlists.infrastructure.persistence.database.db_models import (
    DBAlbum,
    DBArtist,
    DBPlay,
    DBTag,
    DBTrack,
    DBTrackSource,
    DBTrackTag,
)
from smartlists.infrastructure.persistence.repositories.base_repo import (
    BaseModelMapper,
    BaseRepository,
    filter_active,
)
from smartlists.infrastructure.persistence.repositories.repo_decorator import db_operation

logger = get_logger(__name__)


@define(frozen=True, slots=True)
class TagMapper(BaseModelMapper[DBTag, Tag]):
    @staticmethod
    def to_domain(db_model: DBTag) -> Tag:
        return Tag(name=db_model.name, color=db_model.color, id=db_model.id)

    @staticmethod
    def to_db(domain_model: Tag) -> DBTag:
        return DBTag(id=domain_model.id, name=domain_model.name, color=domain_model.color)


@define(frozen=True, slots=True)
class TrackMapper(BaseModelMapper[DBTrack, Track]):
    """Maps DBTrack (with tags and sources loaded) to Track."""

    @staticmethod
    def to_domain(db_model: DBTrack) -> Track:
        return Track(
            external_id=db_model.spotify_id,
            title=db_model.title,
            artist=db_model.artist,
            album=db_model.album or "",
            duration_ms=db_model.duration_ms or 0,
            rating=db_model.rating,
            rated_at=db_model.rated_at,
            play_count=db_model.play_count or 0,
            last_played_at=db_model.last_played_at,
            added_at=db_model.added_at,
            release_date=db_model.release_date,
            tag_ids={link.tag_id for link in db_model.tags if not link.is_deleted},
            sources={
                TrackSource(
                    source_type=source.source_type,
                    source_id=source.source_id or None,
                    source_name=source.source_name,
                )
                for source in db_model.sources
                if not source.is_deleted
            },
            artist_id=db_model.artist_spotify_id,
            album_id=db_model.album_spotify_id,
            id=db_model.id,
        )

    @staticmethod
    def to_db(domain_model: Track) -> DBTrack:
        return DBTrack(
            id=domain_model.id,
            spotify_id=domain_model.external_id,
            title=domain_model.title,
            artist=domain_model.artist,
            album=domain_model.album,
            artist_spotify_id=domain_model.artist_id,
            album_spotify_id=domain_model.album_id,
            duration_ms=domain_model.duration_ms,
            release_date=domain_model.release_date,
            added_at=domain_model.added_at,
            rating=domain_model.rating,
            rated_at=domain_model.rated_at,
            play_count=domain_model.play_count,
            last_played_at=domain_model.last_played_at,
        )


def _source_filter(source: TrackSource) -> tuple:
    return (
        DBTrackSource.source_type == str(source.source_type),
        DBTrackSource.source_id == (source.source_id or ""),
    )


class LibraryRepository(BaseRepository[DBTrack, Track]):
    """Repository for library tracks, tags and album/artist aggregates."""

    entity_name = "Track"

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session=session, model_class=DBTrack, mapper=TrackMapper())

    def _select_tracks(self):
        return self.select().options(selectinload(DBTrack.tags), selectinload(DBTrack.sources))

    async def _track_ids_by_external_id(self, external_ids: Sequence[str]) -> dict[str, int]:
        if not external_ids:
            return {}
        rows = await self.session.execute(
            select(DBTrack.spotify_id, DBTrack.id).where(
                DBTrack.spotify_id.in_(list(external_ids)), filter_active(DBTrack)
            )
        )
        return dict(rows.tuples().all())

    # -------------------------------------------------------------------------
    # TRACKS
    # -------------------------------------------------------------------------

    @db_operation("load_library_view")
    async def load_library_view(self, include_detached: bool = False) -> LibraryView:
        """Load library tracks with tags and sources, plus all tags.

        A track belongs to the library while at least one source still holds
        it. Tracks that lost every source keep their ratings and play history
        in the database but are left out unless ``include_detached`` is set.
        """
        # Bulk source deletes bypass the identity map, so reload collections
        stmt = (
            self._select_tracks()
            .order_by(DBTrack.id)
            .execution_options(populate_existing=True)
        )
        if not include_detached:
            stmt = stmt.where(DBTrack.sources.any(filter_active(DBTrackSource)))
        db_tracks = (await self.session.execute(stmt)).scalars().all()
        tags = await self.list_tags()
        view = LibraryView(
            tracks=self.mapper.map_collection(list(db_tracks)),
            tags={tag.id: tag for tag in tags},
        )
        logger.debug(f"Loaded library view with {len(view)} tracks", tags=len(tags))
        return view

    @db_operation("get_track")
    async def get_track(self, track_id: int) -> Track:
        stmt = self._select_tracks().where(DBTrack.id == track_id)
        db_track = (await self.session.execute(stmt)).scalar_one_or_none()
        if db_track is None:
            raise NotFoundError("Track", track_id)
        return self.mapper.to_domain(db_track)

    @db_operation("save_track")
    async def save_track(self, track: Track) -> Track:
        """Insert or update a track by external ID, including its tag set."""
        stmt = self._select_tracks().where(DBTrack.spotify_id == track.external_id)
        db_track = (await self.session.execute(stmt)).scalar_one_or_none()

        if db_track is None:
            db_track = self.mapper.to_db(track)
            db_track.id = None
            db_track.tags = [DBTrackTag(tag_id=tag_id) for tag_id in sorted(track.tag_ids)]
            db_track.sources = [
                DBTrackSource(
                    source_type=str(source.source_type),
                    source_id=source.source_id or "",
                    source_name=source.source_name,
                )
                for source in track.sources
            ]
            self.session.add(db_track)
        else:
            db_track.title = track.title
            db_track.artist = track.artist
            db_track.album = track.album
            db_track.artist_spotify_id = track.artist_id
            db_track.album_spotify_id = track.album_id
            db_track.duration_ms = track.duration_ms
            db_track.release_date = track.release_date
            db_track.added_at = track.added_at
            db_track.rating = track.rating
            db_track.rated_at = track.rated_at
            db_track.play_count = track.play_count
            db_track.last_played_at = track.last_played_at
            current = {link.tag_id for link in db_track.tags}
            db_track.tags = [link for link in db_track.tags if link.tag_id in track.tag_ids]
            db_track.tags.extend(
                DBTrackTag(tag_id=tag_id) for tag_id in sorted(track.tag_ids - current)
            )

        await self.session.flush()
        refreshed = await self.session.execute(
            self._select_tracks()
            .where(DBTrack.id == db_track.id)
            .execution_options(populate_existing=True)
        )
        return self.mapper.to_domain(refreshed.scalar_one())

    @db_operation("upsert_remote_tracks")
    async def upsert_remote_tracks(
        self, tracks: Sequence[RemoteTrack]
    ) -> tuple[list[str], list[str]]:
        """Insert unknown tracks and refresh platform metadata on known ones.

        User-owned fields (rating, play statistics, tags) are never touched.
        """
        if not tracks:
            return [], []

        unique = {track.external_id: track for track in tracks}
        existing = {
            db_track.spotify_id: db_track
            for db_track in (
                await self.session.execute(
                    self.select().where(DBTrack.spotify_id.in_(list(unique)))
                )
            ).scalars()
        }

        new_ids: list[str] = []
        updated_ids: list[str] = []
        for external_id, remote in unique.items():
            db_track = existing.get(external_id)
            if db_track is None:
                self.session.add(
                    DBTrack(
                        spotify_id=external_id,
                        title=remote.title,
                        artist=remote.artist,
                        album=remote.album,
                        artist_spotify_id=remote.artist_id,
                        album_spotify_id=remote.album_id,
                        duration_ms=remote.duration_ms,
                        release_date=remote.release_date,
                        added_at=remote.added_at or utc_now(),
                    )
                )
                new_ids.append(external_id)
            else:
                db_track.title = remote.title
                db_track.artist = remote.artist
                db_track.album = remote.album
                db_track.artist_spotify_id = remote.artist_id
                db_track.album_spotify_id = remote.album_id
                db_track.duration_ms = remote.duration_ms
                db_track.release_date = remote.release_date
                updated_ids.append(external_id)

        await self._ensure_albums_and_artists(unique.values())
        await self.session.flush()
        return new_ids, updated_ids

    async def _ensure_albums_and_artists(self, tracks: Iterable[RemoteTrack]) -> None:
        albums = {t.album_id: t for t in tracks if t.album_id}
        artists = {t.artist_id: t for t in tracks if t.artist_id}

        if albums:
            known = set(
                (
                    await self.session.execute(
                        select(DBAlbum.spotify_id).where(DBAlbum.spotify_id.in_(list(albums)))
                    )
                ).scalars()
            )
            for album_id, track in albums.items():
                if album_id not in known:
                    self.session.add(
                        DBAlbum(
                            spotify_id=album_id,
                            name=track.album,
                            artist_spotify_id=track.artist_id,
                        )
                    )

        if artists:
            known = set(
                (
                    await self.session.execute(
                        select(DBArtist.spotify_id).where(DBArtist.spotify_id.in_(list(artists)))
                    )
                ).scalars()
            )
            for artist_id, track in artists.items():
                if artist_id not in known:
                    self.session.add(
                        DBArtist(spotify_id=artist_id, name=track.artist.split(", ")[0])
                    )

    # -------------------------------------------------------------------------
    # SOURCES
    # -------------------------------------------------------------------------

    @db_operation("get_source_track_ids")
    async def get_source_track_ids(self, source: TrackSource) -> list[str]:
        rows = await self.session.execute(
            select(DBTrack.spotify_id)
            .join(DBTrackSource, DBTrackSource.track_id == DBTrack.id)
            .where(*_source_filter(source), filter_active(DBTrack), filter_active(DBTrackSource))
            .order_by(DBTrackSource.id)
        )
        return list(rows.scalars())

    @db_operation("list_sources")
    async def list_sources(self, source_type: str) -> list[TrackSource]:
        rows = await self.session.execute(
            select(DBTrackSource.source_id, func.max(DBTrackSource.source_name))
            .where(
                DBTrackSource.source_type == str(source_type),
                filter_active(DBTrackSource),
            )
            .group_by(DBTrackSource.source_id)
            .order_by(DBTrackSource.source_id)
        )
        return [
            TrackSource(SourceType(source_type), source_id or None, name)
            for source_id, name in rows.tuples()
        ]

    @db_operation("attach_source")
    async def attach_source(self, external_ids: Sequence[str], source: TrackSource) -> int:
        track_ids = await self._track_ids_by_external_id(external_ids)
        if not track_ids:
            return 0

        already = set(
            (
                await self.session.execute(
                    select(DBTrackSource.track_id).where(
                        DBTrackSource.track_id.in_(list(track_ids.values())),
                        *_source_filter(source),
                    )
                )
            ).scalars()
        )
        links = [
            DBTrackSource(
                track_id=track_id,
                source_type=str(source.source_type),
                source_id=source.source_id or "",
                source_name=source.source_name,
            )
            for external_id in dict.fromkeys(external_ids)
            if (track_id := track_ids.get(external_id)) is not None and track_id not in already
        ]
        self.session.add_all(links)
        await self.session.flush()
        return len(links)

    @db_operation("detach_source")
    async def detach_source(self, external_ids: Sequence[str], source: TrackSource) -> int:
        track_ids = await self._track_ids_by_external_id(external_ids)
        if not track_ids:
            return 0
        result = await self.session.execute(
            delete(DBTrackSource).where(
                DBTrackSource.track_id.in_(list(track_ids.values())),
                *_source_filter(source),
            )
        )
        return result.rowcount or 0

    @db_operation("get_album_artist_ids")
    async def get_album_artist_ids(
        self, external_ids: Sequence[str]
    ) -> dict[str, tuple[str | None, str | None]]:
        if not external_ids:
            return {}
        rows = await self.session.execute(
            select(DBTrack.spotify_id, DBTrack.album_spotify_id, DBTrack.artist_spotify_id).where(
                DBTrack.spotify_id.in_(list(external_ids))
            )
        )
        return {spotify_id: (album_id, artist_id) for spotify_id, album_id, artist_id in rows}

    # -------------------------------------------------------------------------
    # AGGREGATES
    # -------------------------------------------------------------------------

    @db_operation("recompute_aggregates")
    async def recompute_aggregates(
        self, album_ids: Iterable[str], artist_ids: Iterable[str]
    ) -> int:
        """Refresh track counts and average ratings for the given albums and artists.

        Only tracks still attached to at least one source are counted.
        """
        updated = 0
        for model, column, ids in (
            (DBAlbum, DBTrack.album_spotify_id, list(album_ids)),
            (DBArtist, DBTrack.artist_spotify_id, list(artist_ids)),
        ):
            if not ids:
                continue
            in_library = select(DBTrackSource.track_id).where(filter_active(DBTrackSource))
            stats = {
                key: (count, avg)
                for key, count, avg in await self.session.execute(
                    select(column, func.count(DBTrack.id), func.avg(DBTrack.rating))
                    .where(
                        column.in_(ids),
                        filter_active(DBTrack),
                        DBTrack.id.in_(in_library),
                    )
                    .group_by(column)
                )
            }
            rows = (
                await self.session.execute(select(model).where(model.spotify_id.in_(ids)))
            ).scalars()
            for row in rows:
                row.track_count, row.average_rating = stats.get(row.spotify_id, (0, None))
                updated += 1

        await self.session.flush()
        logger.debug(f"Recomputed aggregates for {updated} albums and artists")
        return updated

    # -------------------------------------------------------------------------
    # TAGS
    # -------------------------------------------------------------------------

    @db_operation("create_tag")
    async def create_tag(self, name: str, color: str | None = None) -> Tag:
        name = name.strip()
        if not name:
            raise ValidationError("tag name must not be empty", "name")
        duplicate = await self.session.execute(
            select(DBTag.id).where(func.lower(DBTag.name) == name.lower(), filter_active(DBTag))
        )
        if duplicate.first() is not None:
            raise ValidationError(f"tag '{name}' already exists", "name")

        db_tag = DBTag(name=name, color=color or Tag(name=name).color)
        self.session.add(db_tag)
        await self.session.flush()
        return TagMapper.to_domain(db_tag)

    @db_operation("rename_tag")
    async def rename_tag(self, tag_id: int, name: str) -> Tag:
        db_tag = (
            await self.session.execute(
                select(DBTag).where(DBTag.id == tag_id, filter_active(DBTag))
            )
        ).scalar_one_or_none()
        if db_tag is None:
            raise NotFoundError("Tag", tag_id)
        db_tag.name = name.strip()
        await self.session.flush()
        return TagMapper.to_domain(db_tag)

    @db_operation("list_tags")
    async def list_tags(self) -> list[Tag]:
        rows = await self.session.execute(
            select(DBTag).where(filter_active(DBTag)).order_by(DBTag.name)
        )
        return TagMapper.map_collection(list(rows.scalars()))

    @db_operation("assign_tag")
    async def assign_tag(self, track_id: int, tag_id: int) -> None:
        exists = await self.session.execute(
            select(DBTrackTag.id).where(DBTrackTag.track_id == track_id, DBTrackTag.tag_id == tag_id)
        )
        if exists.first() is None:
            self.session.add(DBTrackTag(track_id=track_id, tag_id=tag_id))
            await self.session.flush()

    # -------------------------------------------------------------------------
    # PLAYS
    # -------------------------------------------------------------------------

    @db_operation("record_plays")
    async def record_plays(self, plays: Sequence[PlayEvent]) -> int:
        """Store plays not seen before and update play count and last played time.

        Plays of tracks that are not in the database are ignored. A play is
        identified by its track and timestamp, so overlapping history windows
        are counted once.
        """
        track_ids = await self._track_ids_by_external_id([play.external_id for play in plays])
        if not track_ids:
            return 0

        known = {
            (track_id, ensure_utc(played_at))
            for track_id, played_at in (
                await self.session.execute(
                    select(DBPlay.track_id, DBPlay.played_at).where(
                        DBPlay.track_id.in_(list(track_ids.values()))
                    )
                )
            ).tuples()
        }

        latest: dict[int, datetime] = {}
        counts: dict[int, int] = {}
        for play in plays:
            track_id = track_ids.get(play.external_id)
            if track_id is None or (track_id, play.played_at) in known:
                continue
            known.add((track_id, play.played_at))
            self.session.add(
                DBPlay(track_id=track_id, played_at=play.played_at, duration_ms=play.duration_ms)
            )
            counts[track_id] = counts.get(track_id, 0) + 1
            latest[track_id] = max(latest.get(track_id, play.played_at), play.played_at)

        if counts:
            rows = await self.session.execute(select(DBTrack).where(DBTrack.id.in_(list(counts))))
            for db_track in rows.scalars():
                db_track.play_count = (db_track.play_count or 0) + counts[db_track.id]
                previous = ensure_utc(db_track.last_played_at)
                played = latest[db_track.id]
                db_track.last_played_at = played if previous is None else max(previous, played)
            await self.session.flush()

        recorded = sum(counts.values())
        logger.debug(f"Recorded {recorded} plays", tracks=len(counts))
        return recorded

    # -------------------------------------------------------------------------
    # AUDIO FEATURES
    # -------------------------------------------------------------------------

    @db_operation("get_ids_missing_audio_features")
    async def get_ids_missing_audio_features(self) -> list[str]:
        rows = await self.session.execute(
            select(DBTrack.spotify_id)
            .where(
                DBTrack.audio_features.is_(None),
                filter_active(DBTrack),
                DBTrack.sources.any(filter_active(DBTrackSource)),
            )
            .order_by(DBTrack.id)
        )
        return list(rows.scalars())

    @db_operation("save_audio_features")
    async def save_audio_features(self, features: dict[str, dict[str, float] | None]) -> int:
        found = {key: value for key, value in features.items() if value}
        if not found:
            return 0
        rows = await self.session.execute(
            select(DBTrack).where(DBTrack.spotify_id.in_(list(found)))
        )
        saved = 0
        for db_track in rows.scalars():
            db_track.audio_features = found[db_track.spotify_id]
            saved += 1
        await self.session.flush()
        return saved

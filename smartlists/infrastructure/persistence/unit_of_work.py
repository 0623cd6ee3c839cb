"""Database Unit of Work implementation for transaction boundary management.

This module provides the concrete implementation of the UnitOfWork pattern,
handling transaction management and repository creation using a shared
database session.
"""

from typing import Self

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from smartlists.domain.repositories.interfaces import (
    LibraryRepositoryProtocol,
    MirrorRepositoryProtocol,
    SmartPlaylistRepositoryProtocol,
    SyncJobRepositoryProtocol,
)
from smartlists.infrastructure.persistence.database.db_connection import get_session_factory
from smartlists.infrastructure.persistence.repositories import (
    LibraryRepository,
    MirrorRepository,
    SmartPlaylistRepository,
    SyncJobRepository,
)


class DatabaseUnitOfWork:
    """Database implementation of the Unit of Work pattern.

    Repositories handed out by one unit of work share its session. Exiting
    commits on success and rolls back on error; use cases may also commit
    explicitly at intermediate checkpoints.
    """

    def __init__(self, session: AsyncSession, owns_session: bool = False) -> None:
        """Initialize with database session.

        Args:
            session: SQLAlchemy async session for database operations
            owns_session: Close the session on exit
        """
        self._session = session
        self._owns_session = owns_session

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        try:
            if exc_type is not None:
                await self.rollback()
            else:
                await self.commit()
        finally:
            if self._owns_session:
                await self._session.close()

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()

    def get_library_repository(self) -> LibraryRepositoryProtocol:
        return LibraryRepository(self._session)

    def get_smart_playlist_repository(self) -> SmartPlaylistRepositoryProtocol:
        return SmartPlaylistRepository(self._session)

    def get_mirror_repository(self) -> MirrorRepositoryProtocol:
        return MirrorRepository(self._session)

    def get_job_repository(self) -> SyncJobRepositoryProtocol:
        return SyncJobRepository(self._session)


def get_unit_of_work(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> DatabaseUnitOfWork:
    """Create a unit of work over a fresh session that is closed on exit."""
    factory = session_factory or get_session_factory()
    return DatabaseUnitOfWork(factory(), owns_session=True)

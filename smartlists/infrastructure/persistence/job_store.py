"""Database-backed job store for the sync job runner.

Each call runs in its own short transaction so job state is visible to other
processes (and survives restarts) independently of the job's own work.
"""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from smartlists.domain.entities import SyncJob
from smartlists.infrastructure.persistence.database.db_connection import get_session_factory
from smartlists.infrastructure.persistence.repositories import SyncJobRepository


class DatabaseJobStore:
    """Persists job records through ``SyncJobRepository``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory or get_session_factory()

    async def save(self, job: SyncJob) -> SyncJob:
        async with self._session_factory() as session:
            saved = await SyncJobRepository(session).save(job)
            await session.commit()
            return saved

    async def get(self, job_id: str) -> SyncJob | None:
        async with self._session_factory() as session:
            return await SyncJobRepository(session).get(job_id)

    async def claim(self, job: SyncJob) -> tuple[SyncJob, bool]:
        async with self._session_factory() as session:
            stored, created = await SyncJobRepository(session).claim(job)
            await session.commit()
            return stored, created

"""Repository for background sync job records."""

from attrs import define
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from smartlists.config import get_logger
from smartlists.domain.entities import JobProgress, SyncJob, SyncResult
from smartlists.infrastructure.persistence.database.db_models import DBSyncJob
from smartlists.infrastructure.persistence.repositories.base_repo import (
    BaseModelMapper,
    BaseRepository,
)
from smartlists.infrastructure.persistence.repositories.repo_decorator import db_operation

logger = get_logger(__name__)


@define(frozen=True, slots=True)
class SyncJobMapper(BaseModelMapper[DBSyncJob, SyncJob]):
    @staticmethod
    def to_domain(db_model: DBSyncJob) -> SyncJob:
        return SyncJob(
            id=db_model.job_id,
            kind=db_model.kind,
            target=db_model.target,
            status=db_model.status,
            progress=JobProgress.from_dict(db_model.progress or {}),
            result=SyncResult.from_dict(db_model.result) if db_model.result else None,
            error=db_model.error,
            idempotency_key=db_model.idempotency_key,
            payload=db_model.payload or {},
            created_at=db_model.created_at,
            started_at=db_model.started_at,
            finished_at=db_model.finished_at,
        )

    @staticmethod
    def to_db(domain_model: SyncJob) -> DBSyncJob:
        db_model = DBSyncJob(job_id=domain_model.id, created_at=domain_model.created_at)
        SyncJobMapper.apply(domain_model, db_model)
        return db_model

    @staticmethod
    def apply(job: SyncJob, db_model: DBSyncJob) -> None:
        """Copy mutable job state onto an existing row."""
        db_model.kind = str(job.kind)
        db_model.target = job.target
        db_model.status = str(job.status)
        db_model.progress = job.progress.to_dict()
        db_model.result = job.result.to_dict() if job.result else None
        db_model.error = job.error
        db_model.idempotency_key = job.idempotency_key
        db_model.payload = dict(job.payload)
        db_model.started_at = job.started_at
        db_model.finished_at = job.finished_at


class SyncJobRepository(BaseRepository[DBSyncJob, SyncJob]):
    """Job records keyed by job ID, with atomic idempotency-key claims."""

    entity_name = "SyncJob"

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session=session, model_class=DBSyncJob, mapper=SyncJobMapper())

    async def _find_row(self, **filters) -> DBSyncJob | None:
        stmt = select(DBSyncJob)
        for attr, value in filters.items():
            stmt = stmt.where(getattr(DBSyncJob, attr) == value)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    @db_operation("save_sync_job")
    async def save(self, job: SyncJob) -> SyncJob:
        db_model = await self._find_row(job_id=job.id)
        if db_model is None:
            db_model = SyncJobMapper.to_db(job)
        else:
            SyncJobMapper.apply(job, db_model)
        return self.mapper.to_domain(await self._flush_and_refresh(db_model))

    @db_operation("get_sync_job")
    async def get(self, job_id: str) -> SyncJob | None:
        db_model = await self._find_row(job_id=job_id)
        return self.mapper.to_domain(db_model) if db_model is not None else None

    @db_operation("claim_sync_job")
    async def claim(self, job: SyncJob) -> tuple[SyncJob, bool]:
        """Insert a job unless its idempotency key is already taken."""
        if job.idempotency_key is None:
            return await self.save(job), True

        existing = await self._find_row(idempotency_key=job.idempotency_key)
        if existing is not None:
            return self.mapper.to_domain(existing), False

        try:
            async with self.session.begin_nested():
                self.session.add(SyncJobMapper.to_db(job))
        except IntegrityError:
            # Another writer claimed the key between the check and the insert
            existing = await self._find_row(idempotency_key=job.idempotency_key)
            if existing is None:
                raise
            logger.info(
                "Lost idempotency race", idempotency_key=job.idempotency_key, job_id=existing.job_id
            )
            return self.mapper.to_domain(existing), False

        return job, True

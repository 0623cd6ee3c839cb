"""Repository base classes for SQLAlchemy 2.0 async repositories."""

from typing import Any, ClassVar, Protocol

from attrs import define
from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from smartlists.config import get_logger
from smartlists.domain.exceptions import NotFoundError
from smartlists.infrastructure.persistence.database.db_models import SmartlistsDBBase
from smartlists.infrastructure.persistence.repositories.repo_decorator import db_operation

logger = get_logger(__name__)


def filter_active(model_class: type[SmartlistsDBBase]) -> ColumnElement:
    """Return a filter expression for active (non-deleted) entities."""
    return model_class.is_deleted == False  # noqa: E712


class ModelMapper[TDBModel: SmartlistsDBBase, TDomainModel](Protocol):
    """Protocol for bidirectional mapping between models."""

    @staticmethod
    def to_domain(db_model: TDBModel) -> TDomainModel:
        """Convert database model to domain model."""
        ...

    @staticmethod
    def to_db(domain_model: TDomainModel) -> TDBModel:
        """Convert domain model to database model."""
        ...


@define(frozen=True, slots=True)
class BaseModelMapper[TDBModel: SmartlistsDBBase, TDomainModel]:
    """Base implementation of ModelMapper.

    Usage:
        @define(frozen=True, slots=True)
        class TagMapper(BaseModelMapper[DBTag, Tag]):
            @staticmethod
            def to_domain(db_model: DBTag) -> Tag:
                return Tag(name=db_model.name, color=db_model.color, id=db_model.id)
    """

    @staticmethod
    def to_domain(db_model: TDBModel) -> TDomainModel:
        raise NotImplementedError("Subclasses must implement to_domain")

    @staticmethod
    def to_db(domain_model: TDomainModel) -> TDBModel:
        raise NotImplementedError("Subclasses must implement to_db")

    @classmethod
    def map_collection(cls, db_models: list[TDBModel]) -> list[TDomainModel]:
        return [cls.to_domain(db_model) for db_model in db_models if db_model is not None]


class BaseRepository[TDBModel: SmartlistsDBBase, TDomainModel]:
    """Base repository with soft-delete aware selects and ID lookup."""

    entity_name: ClassVar[str] = "Entity"

    def __init__(
        self,
        session: AsyncSession,
        model_class: type[TDBModel],
        mapper: ModelMapper[TDBModel, TDomainModel],
    ) -> None:
        self.session = session
        self.model_class = model_class
        self.mapper = mapper

    # -------------------------------------------------------------------------
    # SELECT STATEMENT BUILDERS
    # -------------------------------------------------------------------------

    def select(self, *columns: Any) -> Select[tuple[Any, ...]]:
        """Create select statement for active records."""
        stmt = select(*columns) if columns else select(self.model_class)
        return stmt.where(filter_active(self.model_class))

    def select_by_id(self, id_: int) -> Select[tuple[TDBModel]]:
        return self.select().where(self.model_class.id == id_)

    # -------------------------------------------------------------------------
    # QUERIES
    # -------------------------------------------------------------------------

    async def _get_db_model(self, id_: int) -> TDBModel:
        db_model = (await self.session.execute(self.select_by_id(id_))).scalar_one_or_none()
        if db_model is None:
            raise NotFoundError(self.entity_name, id_)
        return db_model

    async def _flush_and_refresh(self, db_model: TDBModel) -> TDBModel:
        self.session.add(db_model)
        await self.session.flush()
        await self.session.refresh(db_model)
        return db_model

    @db_operation("get_by_id")
    async def get_by_id(self, id_: int) -> TDomainModel:
        """Get an entity by ID or raise NotFoundError."""
        return self.mapper.to_domain(await self._get_db_model(id_))

    @db_operation("find_one_by")
    async def find_one_by(self, filters: dict[str, Any]) -> TDomainModel | None:
        stmt = self.select()
        for attr, value in filters.items():
            stmt = stmt.where(getattr(self.model_class, attr) == value)
        db_model = (await self.session.execute(stmt.limit(1))).scalar_one_or_none()
        return self.mapper.to_domain(db_model) if db_model is not None else None

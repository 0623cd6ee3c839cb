"""Database engine, sessions and ORM models."""

from smartlists.infrastructure.persistence.database.db_connection import (
    create_db_engine,
    create_session_factory,
    dispose_engine,
    get_engine,
    get_session,
    get_session_factory,
    init_db,
)
from smartlists.infrastructure.persistence.database.db_models import SmartlistsDBBase

__all__ = [
    "SmartlistsDBBase",
    "create_db_engine",
    "create_session_factory",
    "dispose_engine",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_db",
]

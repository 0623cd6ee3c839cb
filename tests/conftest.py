import os

# Must be set before smartlists.config builds its settings singleton
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")

import pytest

from smartlists.config import settings
from smartlists.infrastructure.persistence.database.db_connection import (
    create_db_engine,
    create_session_factory,
    init_db,
)
from smartlists.infrastructure.persistence.unit_of_work import get_unit_of_work
from tests.fixtures.models import FakePlatform


@pytest.fixture(autouse=True)
def fast_external_calls(monkeypatch):
    """Disable rate-control sleeps and read retries for every test."""
    monkeypatch.setattr(settings.api, "spotify_chunk_delay", 0.0)
    monkeypatch.setattr(settings.api, "audio_features_delay", 0.0)
    monkeypatch.setattr(settings.api, "spotify_retry_count", 1)
    monkeypatch.setattr(settings.sync, "scheduled_playlist_delay", 0.0)


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_db_engine("sqlite+aiosqlite:///:memory:")
    try:
        await init_db(engine)
    except Exception as e:
        pytest.fail(f"Database initialization failed: {e}")
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def db_session(session_factory):
    """Provide a database session that is rolled back afterwards."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def uow_factory(session_factory):
    """Callable producing units of work over the test database."""
    return lambda: get_unit_of_work(session_factory)


@pytest.fixture
def platform():
    return FakePlatform()

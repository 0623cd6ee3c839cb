"""Async helpers for CLI commands to eliminate duplication."""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Coroutine
from contextlib import asynccontextmanager
from functools import wraps
from typing import Any, cast

from attrs import define

from smartlists.application.services.jobs import SyncJobRunner
from smartlists.domain.entities import SyncJob
from smartlists.domain.repositories import PlaylistPlatform, UnitOfWorkProtocol
from smartlists.infrastructure.cli.ui import JobProgressDisplay, command_error_handler
from smartlists.infrastructure.connectors.spotify import SpotifyConnector
from smartlists.infrastructure.persistence.database.db_connection import dispose_engine, init_db
from smartlists.infrastructure.persistence.job_store import DatabaseJobStore
from smartlists.infrastructure.persistence.unit_of_work import get_unit_of_work


def interactive_async_operation() -> Callable[[Callable[..., Awaitable[Any]]], Callable[..., None]]:
    """Decorator that runs an async command body under the CLI error handler."""

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., None]:
        @command_error_handler
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> None:
            coro = func(*args, **kwargs)
            return asyncio.run(cast("Coroutine[Any, Any, Any]", coro))

        return wrapper

    return decorator


@define(frozen=True, slots=True)
class SyncRuntime:
    """Collaborators a CLI command needs to trigger and await sync jobs."""

    runner: SyncJobRunner
    uow_factory: Callable[[], UnitOfWorkProtocol]
    platform: PlaylistPlatform | None = None

    async def wait_with_progress(self, job_ids: list[str]) -> list[SyncJob | None]:
        with JobProgressDisplay() as display:
            self.runner.add_listener(display)
            return [await self.runner.wait(job_id) for job_id in job_ids]


@asynccontextmanager
async def database_runtime() -> AsyncIterator[None]:
    """Ensure the schema exists and release the engine afterwards."""
    await init_db()
    try:
        yield
    finally:
        await dispose_engine()


@asynccontextmanager
async def sync_runtime(with_platform: bool = True) -> AsyncIterator[SyncRuntime]:
    """Database-backed job runner plus the Spotify connector."""
    async with database_runtime():
        runner = SyncJobRunner(store=DatabaseJobStore())
        try:
            yield SyncRuntime(
                runner=runner,
                uow_factory=get_unit_of_work,
                platform=SpotifyConnector() if with_platform else None,
            )
        finally:
            await runner.shutdown()

"""Background sync job runner.

Each sync runs as its own asyncio task. ``enqueue`` returns a job ID
immediately; callers then poll ``get``, await ``wait``, or register a listener.
Status moves ``waiting -> active -> completed | failed``.

At most one job is in flight per target (a smart playlist, or the library
mirror). A second trigger for a busy target joins the running job or is
rejected with ``ConcurrencyConflict``, depending on the conflict policy.

Jobs that carry an idempotency key are claimed atomically in the job store:
if a job with that key was ever recorded, the existing job is returned and no
new work is started.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Literal, Protocol
from uuid import uuid4

from smartlists.config import get_logger, settings
from smartlists.domain.entities.sync import JobKind, JobProgress, SyncJob, SyncResult
from smartlists.domain.exceptions import (
    ConcurrencyConflict,
    JobCancelledError,
    SmartlistsError,
    SyncFailedError,
)

logger = get_logger(__name__)

ConflictPolicy = Literal["join", "reject"]

LIBRARY_MIRROR_TARGET = "library"
ONBOARDING_TARGET = "onboarding"
PLAY_IMPORT_TARGET = "plays"


def playlist_target(playlist_id: int) -> str:
    """Lock key for a smart playlist."""
    return f"smart-playlist:{playlist_id}"


class JobStore(Protocol):
    """Persistence for job records."""

    async def save(self, job: SyncJob) -> SyncJob: ...

    async def get(self, job_id: str) -> SyncJob | None: ...

    async def claim(self, job: SyncJob) -> tuple[SyncJob, bool]: ...


class InMemoryJobStore:
    """Process-local job store."""

    def __init__(self) -> None:
        self._jobs: dict[str, SyncJob] = {}
        self._keys: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def save(self, job: SyncJob) -> SyncJob:
        self._jobs[job.id] = job
        if job.idempotency_key:
            self._keys.setdefault(job.idempotency_key, job.id)
        return job

    async def get(self, job_id: str) -> SyncJob | None:
        return self._jobs.get(job_id)

    async def claim(self, job: SyncJob) -> tuple[SyncJob, bool]:
        async with self._lock:
            if job.idempotency_key and job.idempotency_key in self._keys:
                return self._jobs[self._keys[job.idempotency_key]], False
            return await self.save(job), True


class JobContext:
    """Progress sink and cancellation flag handed to a job's work function."""

    def __init__(self, runner: "SyncJobRunner", job_id: str) -> None:
        self._runner = runner
        self.job_id = job_id
        self._cancelled = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def report(
        self,
        phase: str,
        current: int,
        total: int,
        message: str | None = None,
    ) -> None:
        self._runner._update_progress(
            self.job_id,
            JobProgress(phase=phase, current=current, total=total, message=message),
        )

    def check_cancelled(self) -> None:
        if self._cancelled.is_set():
            raise JobCancelledError(self.job_id)


JobWork = Callable[[JobContext], Awaitable[SyncResult]]
JobListener = Callable[[SyncJob], None]


class SyncJobRunner:
    """Runs sync jobs in the background with per-target mutual exclusion."""

    def __init__(
        self,
        store: JobStore | None = None,
        conflict_policy: ConflictPolicy | None = None,
    ) -> None:
        self._store: JobStore = store or InMemoryJobStore()
        self.conflict_policy: ConflictPolicy = conflict_policy or settings.sync.conflict_policy
        self._jobs: dict[str, SyncJob] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._contexts: dict[str, JobContext] = {}
        self._active_by_target: dict[str, str] = {}
        self._listeners: list[JobListener] = []
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # TRIGGERING
    # -------------------------------------------------------------------------

    async def enqueue(
        self,
        kind: JobKind,
        target: str,
        work: JobWork,
        *,
        payload: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
        on_conflict: ConflictPolicy | None = None,
    ) -> str:
        """Start a job and return its ID without waiting for it.

        Raises:
            ConcurrencyConflict: a job is active for ``target`` and the
                effective policy is ``reject``
        """
        async with self._lock:
            active_id = self._active_by_target.get(target)
            if active_id is not None:
                if (on_conflict or self.conflict_policy) == "reject":
                    raise ConcurrencyConflict(target, active_id)
                logger.info("Joining in-flight job", target=target, job_id=active_id)
                return active_id

            job = SyncJob(
                id=str(uuid4()),
                kind=kind,
                target=target,
                payload=payload or {},
                idempotency_key=idempotency_key,
            )

            if idempotency_key:
                stored, created = await self._store.claim(job)
                if not created:
                    logger.info(
                        "Idempotency key already claimed",
                        idempotency_key=idempotency_key,
                        job_id=stored.id,
                    )
                    self._jobs.setdefault(stored.id, stored)
                    return stored.id
            else:
                await self._store.save(job)

            context = JobContext(self, job.id)
            self._jobs[job.id] = job
            self._contexts[job.id] = context
            self._active_by_target[target] = job.id
            self._tasks[job.id] = asyncio.create_task(
                self._run(job.id, work, context), name=f"sync-job-{job.id}"
            )

        logger.info("Enqueued sync job", job_id=job.id, kind=str(kind), target=target)
        self._notify(job)
        return job.id

    # -------------------------------------------------------------------------
    # STATUS
    # -------------------------------------------------------------------------

    async def get(self, job_id: str) -> SyncJob | None:
        """Current job state, falling back to the store for finished jobs."""
        if job_id in self._jobs:
            return self._jobs[job_id]
        return await self._store.get(job_id)

    async def wait(self, job_id: str, timeout: float | None = None) -> SyncJob | None:
        """Wait until a job reaches a terminal state (or the timeout expires)."""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.wait({task}, timeout=timeout)
        return await self.get(job_id)

    def active_job_for(self, target: str) -> str | None:
        return self._active_by_target.get(target)

    def add_listener(self, listener: JobListener) -> None:
        """Register a callback invoked on every status or progress change."""
        self._listeners.append(listener)

    # -------------------------------------------------------------------------
    # CANCELLATION
    # -------------------------------------------------------------------------

    def cancel(self, job_id: str) -> bool:
        """Request cancellation; honored at the next chunk boundary."""
        context = self._contexts.get(job_id)
        if context is None:
            return False
        context.cancel()
        logger.info("Cancellation requested", job_id=job_id)
        return True

    async def shutdown(self) -> None:
        """Cancel every running job and wait for all of them to finish."""
        for context in list(self._contexts.values()):
            context.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)

    # -------------------------------------------------------------------------
    # EXECUTION
    # -------------------------------------------------------------------------

    async def _run(self, job_id: str, work: JobWork, context: JobContext) -> None:
        job = self._jobs[job_id]
        try:
            await self._transition(job.start())
            result = await work(context)
            await self._transition(self._jobs[job_id].complete(result))
            logger.info("Sync job completed", job_id=job_id, **result.to_dict())
        except JobCancelledError:
            logger.info("Sync job cancelled", job_id=job_id)
            await self._transition(self._jobs[job_id].fail("cancelled"))
        except SyncFailedError as e:
            logger.warning(f"Sync job failed: {e}", job_id=job_id)
            await self._transition(self._jobs[job_id].fail(e.message, e.result))
        except SmartlistsError as e:
            logger.warning(f"Sync job failed: {e}", job_id=job_id, error_type=type(e).__name__)
            await self._transition(self._jobs[job_id].fail(e.message))
        except asyncio.CancelledError:
            await self._transition(self._jobs[job_id].fail("cancelled"))
            raise
        except Exception as e:
            logger.exception(f"Unexpected error in sync job {job_id}")
            await self._transition(self._jobs[job_id].fail(f"Unexpected error: {e}"))
        finally:
            if self._active_by_target.get(job.target) == job_id:
                del self._active_by_target[job.target]
            self._contexts.pop(job_id, None)
            self._tasks.pop(job_id, None)

    async def _transition(self, job: SyncJob) -> None:
        self._jobs[job.id] = job
        try:
            await self._store.save(job)
        except Exception:
            # In-memory state stays authoritative for the running process
            logger.exception("Failed to persist job state", job_id=job.id)
        self._notify(job)

    def _update_progress(self, job_id: str, progress: JobProgress) -> None:
        job = self._jobs.get(job_id)
        if job is None or job.status.is_terminal:
            return
        updated = job.with_progress(progress)
        self._jobs[job_id] = updated
        self._notify(updated)

    def _notify(self, job: SyncJob) -> None:
        for listener in self._listeners:
            try:
                listener(job)
            except Exception:
                logger.exception("Job listener failed", job_id=job.id)

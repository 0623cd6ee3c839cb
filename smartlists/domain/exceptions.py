"""Domain exceptions.

Errors raised by the rule engine and the sync engine. Job-level failures are
captured by the job runner and surfaced as job status rather than propagated
to the caller that triggered the job.
"""

from typing import Any


class SmartlistsError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class ValidationError(SmartlistsError):
    """A rule, criteria document or track edit is malformed.

    Raised before any evaluation or external call takes place.
    """

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(f"{path}: {message}" if path else message)
        self.path = path


class ExternalServiceError(SmartlistsError):
    """An external platform call failed."""

    def __init__(
        self,
        message: str,
        service: str = "spotify",
        http_status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.service = service
        self.http_status = http_status


class TransientExternalError(ExternalServiceError):
    """Rate limit, timeout or server-side failure; safe to retry later."""


class FatalExternalError(ExternalServiceError):
    """Auth revoked or resource gone upstream; never retried automatically."""


class ConcurrencyConflict(SmartlistsError):
    """A sync job is already in flight for the same target."""

    def __init__(self, target: str, active_job_id: str) -> None:
        super().__init__(f"Sync already in progress for {target} (job {active_job_id})")
        self.target = target
        self.active_job_id = active_job_id


class JobCancelledError(SmartlistsError):
    """A job was cancelled; raised at the next chunk boundary."""

    def __init__(self, job_id: str | None = None) -> None:
        super().__init__("cancelled")
        self.job_id = job_id


class SyncFailedError(SmartlistsError):
    """A sync pass made no progress, e.g. every write chunk failed.

    Carries the partial result so it can be reported on the failed job.
    """

    def __init__(self, message: str, result: Any = None) -> None:
        super().__init__(message)
        self.result = result


class NotFoundError(SmartlistsError):
    """A requested record does not exist."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id

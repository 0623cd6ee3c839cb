"""Sync reconciler: diff desired against current and apply the diff in chunks.

The same reconciler drives both directions. Outbound, the writer is the
streaming platform and ``desired`` is a smart playlist's materialized set.
Inbound, the writer is the local library and ``desired`` is the remote
collection being mirrored.

Apply order is removals first, then additions, matching the
remove -> add sequencing used for external playlist updates. Existing members
are never reordered.
"""

import asyncio
from collections.abc import Callable, Sequence

from attrs import define, field

from smartlists.application.utilities.chunking import ChunkOutcome, process_in_chunks
from smartlists.application.utilities.progress import NoOpProgressReporter, ProgressReporter
from smartlists.config import get_logger, settings
from smartlists.domain.entities.sync import AppliedResult, ChunkError, ChunkOperation, PlaylistDiff
from smartlists.domain.exceptions import TransientExternalError
from smartlists.domain.repositories.interfaces import PlaylistWriter
from smartlists.domain.sync.diff import compute_diff

logger = get_logger(__name__)


def _chunk_errors(operation: ChunkOperation, outcomes: list[ChunkOutcome[str]]) -> list[ChunkError]:
    errors = []
    for outcome in outcomes:
        if outcome.error is None:
            continue
        message = str(outcome.error) or type(outcome.error).__name__
        errors.append(
            ChunkError(
                operation=operation,
                item_ids=outcome.items,
                message=message,
                transient=isinstance(outcome.error, TransientExternalError | TimeoutError),
            )
        )
    return errors


def _applied_items(outcomes: list[ChunkOutcome[str]]) -> list[str]:
    return [item for outcome in outcomes if outcome.succeeded for item in outcome.items]


@define(slots=True)
class PlaylistReconciler:
    """Computes and applies minimal add/remove diffs against a writer.

    Calls are sequential with ``chunk_delay`` seconds between them and each
    call is bounded by ``timeout``. Transient failures and timeouts are
    recorded per chunk; fatal errors and cancellation propagate.
    """

    writer: PlaylistWriter
    chunk_size: int = field(factory=lambda: settings.api.spotify_write_chunk_size)
    chunk_delay: float = field(factory=lambda: settings.api.spotify_chunk_delay)
    timeout: float | None = field(factory=lambda: settings.api.spotify_request_timeout)

    def reconcile(
        self,
        playlist_external_id: str | None,
        desired: Sequence[str],
        current: Sequence[str],
    ) -> PlaylistDiff:
        """Compute the diff between desired and current membership."""
        diff = compute_diff(playlist_external_id, desired, current)
        logger.debug(
            "Computed playlist diff",
            playlist_id=playlist_external_id,
            to_add=len(diff.to_add),
            to_remove=len(diff.to_remove),
            unchanged=diff.unchanged_count,
        )
        return diff

    async def apply(
        self,
        diff: PlaylistDiff,
        progress: ProgressReporter | None = None,
    ) -> AppliedResult:
        """Apply a diff chunk by chunk.

        Args:
            diff: Diff to apply
            progress: Receives per-chunk progress and is polled for
                cancellation before every chunk

        Returns:
            Items actually added and removed plus per-chunk errors

        Raises:
            FatalExternalError: the writer reported an unrecoverable error
            JobCancelledError: cancellation was requested between chunks
        """
        if not diff.has_changes:
            return AppliedResult()

        reporter = progress or NoOpProgressReporter()
        total_calls = diff.api_call_estimate(self.chunk_size)
        calls_done = 0

        def before_chunk(operation: str) -> Callable[[int, int], None]:
            def hook(index: int, chunks: int) -> None:
                nonlocal calls_done
                reporter.check_cancelled()
                reporter.report(
                    "apply",
                    calls_done,
                    total_calls,
                    f"{operation} chunk {index + 1}/{chunks}",
                )
                calls_done += 1

            return hook

        playlist_id = diff.playlist_external_id

        removed = await process_in_chunks(
            diff.to_remove,
            self.chunk_size,
            lambda chunk: self.writer.remove_items(playlist_id, chunk),
            delay=self.chunk_delay,
            timeout=self.timeout,
            before_chunk=before_chunk("remove"),
            operation="remove",
        )

        if removed and diff.to_add and self.chunk_delay > 0:
            await asyncio.sleep(self.chunk_delay)

        added = await process_in_chunks(
            diff.to_add,
            self.chunk_size,
            lambda chunk: self.writer.add_items(playlist_id, chunk),
            delay=self.chunk_delay,
            timeout=self.timeout,
            before_chunk=before_chunk("add"),
            operation="add",
        )

        reporter.report("apply", calls_done, total_calls, "applied")

        result = AppliedResult(
            added=_applied_items(added),
            removed=_applied_items(removed),
            errors=_chunk_errors("remove", removed) + _chunk_errors("add", added),
            calls_made=len(added) + len(removed),
        )

        logger.info(
            "Applied playlist diff",
            playlist_id=playlist_id,
            added=len(result.added),
            removed=len(result.removed),
            failed_chunks=len(result.errors),
            calls=result.calls_made,
        )
        return result

"""Sequential chunked execution with rate control.

Bulk external operations are split into bounded chunks issued one after
another with a fixed delay between calls. Failures of isolated exception types
are recorded per chunk and never abort the remaining chunks; anything else
propagates. Used by the sync reconciler and the audio-feature lookup.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from attrs import define, field
from toolz import partition_all

from smartlists.config import get_logger
from smartlists.domain.exceptions import TransientExternalError

logger = get_logger(__name__)

ISOLATED_ERRORS: tuple[type[BaseException], ...] = (TransientExternalError, TimeoutError)


def chunked[T](items: Sequence[T], size: int) -> list[list[T]]:
    """Split items into lists of at most ``size`` elements."""
    if size <= 0:
        raise ValueError(f"Chunk size must be positive, got {size}")
    return [list(chunk) for chunk in partition_all(size, items)]


@define(frozen=True, slots=True)
class ChunkOutcome[T]:
    """Result of one chunk call."""

    index: int
    items: tuple[T, ...] = field(converter=tuple)
    result: Any = None
    error: BaseException | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


async def process_in_chunks[T](
    items: Sequence[T],
    chunk_size: int,
    handler: Callable[[list[T]], Awaitable[Any]],
    *,
    delay: float = 0.0,
    timeout: float | None = None,
    before_chunk: Callable[[int, int], None] | None = None,
    isolate: tuple[type[BaseException], ...] = ISOLATED_ERRORS,
    operation: str = "chunk",
) -> list[ChunkOutcome[T]]:
    """Run ``handler`` once per chunk, sequentially.

    Args:
        items: Items to process
        chunk_size: Maximum items per call
        handler: Coroutine function receiving one chunk
        delay: Seconds to sleep between consecutive calls (not before the first)
        timeout: Per-call timeout; a timeout counts as a failed chunk
        before_chunk: Hook called with (index, total_chunks) before each call;
            may raise to stop processing, e.g. on cancellation
        isolate: Exception types recorded per chunk instead of propagated
        operation: Name used in log messages

    Returns:
        One outcome per chunk that was attempted
    """
    chunks = chunked(items, chunk_size)
    outcomes: list[ChunkOutcome[T]] = []

    for index, chunk in enumerate(chunks):
        if before_chunk is not None:
            before_chunk(index, len(chunks))
        if index > 0 and delay > 0:
            await asyncio.sleep(delay)

        try:
            call = handler(chunk)
            result = await asyncio.wait_for(call, timeout) if timeout else await call
            outcomes.append(ChunkOutcome(index=index, items=chunk, result=result))
        except isolate as e:
            logger.warning(
                f"{operation} chunk {index + 1}/{len(chunks)} failed: {e}",
                operation=operation,
                chunk_index=index,
                chunk_size=len(chunk),
                error_type=type(e).__name__,
            )
            outcomes.append(ChunkOutcome(index=index, items=chunk, error=e))

    return outcomes

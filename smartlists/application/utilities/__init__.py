"""Application utilities: chunked execution and progress reporting."""

from .chunking import ChunkOutcome, chunked, process_in_chunks
from .progress import NoOpProgressReporter, ProgressReporter

__all__ = [
    "ChunkOutcome",
    "NoOpProgressReporter",
    "ProgressReporter",
    "chunked",
    "process_in_chunks",
]

"""
Progress reporting abstraction for long-running sync phases.

Use cases report progress and poll for cancellation through a
``ProgressReporter`` so they stay independent of the job runner, the CLI, or
any future web interface.
"""

from typing import Protocol


class ProgressReporter(Protocol):
    """Protocol for progress sinks."""

    def report(
        self,
        phase: str,
        current: int,
        total: int,
        message: str | None = None,
    ) -> None:
        """Record progress within a phase.

        Args:
            phase: Phase name (e.g. "tracks", "albums", "playlists", "apply")
            current: Items processed so far
            total: Total items in the phase
            message: Optional human-readable status
        """
        ...

    def check_cancelled(self) -> None:
        """Raise JobCancelledError if cancellation was requested."""
        ...


class NoOpProgressReporter:
    """Progress reporter for headless/testing scenarios."""

    def report(
        self,
        phase: str,
        current: int,
        total: int,
        message: str | None = None,
    ) -> None:
        pass

    def check_cancelled(self) -> None:
        pass

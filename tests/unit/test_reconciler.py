"""Tests for the playlist reconciler: diff plus chunked apply."""

import asyncio

import pytest

from smartlists.application.services import PlaylistReconciler
from smartlists.domain.exceptions import (
    FatalExternalError,
    JobCancelledError,
    TransientExternalError,
)
from tests.fixtures.models import FakePlatform


def ids(prefix: str, count: int) -> list[str]:
    return [f"{prefix}{i:03d}" for i in range(count)]


@pytest.fixture
def writer():
    platform = FakePlatform()
    platform.playlists["pl"] = []
    return platform


def reconciler_for(writer, chunk_size=100, timeout=None) -> PlaylistReconciler:
    return PlaylistReconciler(writer=writer, chunk_size=chunk_size, chunk_delay=0, timeout=timeout)


class CancelAfter:
    """Progress reporter that requests cancellation after N chunk checks."""

    def __init__(self, checks: int) -> None:
        self.checks = checks
        self.reports = []

    def report(self, phase, current, total, message=None):
        self.reports.append((phase, current, total))

    def check_cancelled(self):
        if self.checks == 0:
            raise JobCancelledError("job-1")
        self.checks -= 1


class TestReconcile:
    def test_diff_against_current_membership(self, writer):
        diff = reconciler_for(writer).reconcile("pl", ["a", "b"], ["b", "c"])

        assert diff.playlist_external_id == "pl"
        assert diff.to_add == ("a",)
        assert diff.to_remove == ("c",)


class TestApply:
    async def test_failed_chunk_does_not_block_later_chunks(self, writer):
        desired = ids("t", 90)
        writer.failures[2] = TransientExternalError("rate limited", http_status=429)
        reconciler = reconciler_for(writer, chunk_size=40)

        result = await reconciler.apply(reconciler.reconcile("pl", desired, []))

        assert result.calls_made == 3
        assert list(result.added) == desired[:40] + desired[80:]
        assert len(result.errors) == 1
        assert result.errors[0].operation == "add"
        assert list(result.errors[0].item_ids) == desired[40:80]
        assert result.errors[0].transient
        assert not result.is_complete
        assert not result.all_chunks_failed
        assert writer.playlists["pl"] == desired[:40] + desired[80:]

    async def test_rediff_after_partial_failure_retries_only_missing(self, writer):
        desired = ids("t", 90)
        writer.failures[2] = TransientExternalError("rate limited", http_status=429)
        reconciler = reconciler_for(writer, chunk_size=40)
        await reconciler.apply(reconciler.reconcile("pl", desired, []))

        retry = reconciler.reconcile("pl", desired, writer.playlists["pl"])
        result = await reconciler.apply(retry)

        assert list(retry.to_add) == desired[40:80]
        assert retry.to_remove == ()
        assert result.is_complete
        assert sorted(writer.playlists["pl"]) == sorted(desired)

        final = reconciler.reconcile("pl", desired, writer.playlists["pl"])
        assert not final.has_changes

    async def test_removals_happen_before_additions(self, writer):
        writer.playlists["pl"] = ["old1", "old2", "keep"]
        reconciler = reconciler_for(writer)

        result = await reconciler.apply(
            reconciler.reconcile("pl", ["keep", "new1"], writer.playlists["pl"])
        )

        assert writer.call_names() == ["remove_items", "add_items"]
        assert result.removed == ("old1", "old2")
        assert result.added == ("new1",)
        assert writer.playlists["pl"] == ["keep", "new1"]

    async def test_no_changes_makes_no_calls(self, writer):
        writer.playlists["pl"] = ["a"]
        reconciler = reconciler_for(writer)

        result = await reconciler.apply(reconciler.reconcile("pl", ["a"], ["a"]))

        assert result.calls_made == 0
        assert writer.calls == []

    async def test_all_chunks_failed(self, writer):
        writer.failures = {
            1: TransientExternalError("503", http_status=503),
            2: TransientExternalError("503", http_status=503),
        }
        reconciler = reconciler_for(writer, chunk_size=1)

        result = await reconciler.apply(reconciler.reconcile("pl", ["a", "b"], []))

        assert result.all_chunks_failed
        assert writer.playlists["pl"] == []

    async def test_fatal_error_propagates(self, writer):
        writer.failures[1] = FatalExternalError("playlist not found", http_status=404)
        reconciler = reconciler_for(writer, chunk_size=1)

        with pytest.raises(FatalExternalError):
            await reconciler.apply(reconciler.reconcile("pl", ["a", "b"], []))

        assert len(writer.calls) == 1

    async def test_cancellation_between_chunks(self, writer):
        reconciler = reconciler_for(writer, chunk_size=10)
        progress = CancelAfter(checks=1)

        with pytest.raises(JobCancelledError):
            await reconciler.apply(reconciler.reconcile("pl", ids("t", 30), []), progress)

        assert len(writer.calls) == 1
        assert writer.playlists["pl"] == ids("t", 10)

    async def test_slow_chunk_times_out(self):
        class SlowWriter:
            async def add_items(self, playlist_id, item_ids):
                await asyncio.sleep(1)

            async def remove_items(self, playlist_id, item_ids):
                return None

        reconciler = PlaylistReconciler(
            writer=SlowWriter(), chunk_size=10, chunk_delay=0, timeout=0.01
        )

        result = await reconciler.apply(reconciler.reconcile("pl", ["a"], []))

        assert result.all_chunks_failed
        assert result.errors[0].transient

    async def test_reports_progress_per_call(self, writer):
        reconciler = reconciler_for(writer, chunk_size=2)
        progress = CancelAfter(checks=100)

        await reconciler.apply(reconciler.reconcile("pl", ids("t", 5), []), progress)

        assert progress.reports == [("apply", 0, 3), ("apply", 1, 3), ("apply", 2, 3), ("apply", 3, 3)]

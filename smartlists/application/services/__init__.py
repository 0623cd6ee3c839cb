"""Application services - job running, reconciliation and enrichment."""

from .enrichment import fetch_audio_features
from .jobs import (
    LIBRARY_MIRROR_TARGET,
    ONBOARDING_TARGET,
    PLAY_IMPORT_TARGET,
    InMemoryJobStore,
    JobContext,
    JobStore,
    SyncJobRunner,
    playlist_target,
)
from .reconciler import PlaylistReconciler

__all__ = [
    "LIBRARY_MIRROR_TARGET",
    "ONBOARDING_TARGET",
    "PLAY_IMPORT_TARGET",
    "InMemoryJobStore",
    "JobContext",
    "JobStore",
    "PlaylistReconciler",
    "SyncJobRunner",
    "fetch_audio_features",
    "playlist_target",
]

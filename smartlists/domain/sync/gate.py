"""Change-detection gate.

Outbound smart-playlist sync gates on the content fingerprint. Inbound
mirroring gates on the platform's opaque snapshot ID, which is available
before any track has been read.
"""

from smartlists.domain.entities.playlist import SmartPlaylist


def should_sync(playlist: SmartPlaylist, new_fingerprint: str, force: bool = False) -> bool:
    """Decide whether a smart playlist needs reconciling."""
    if force:
        return True
    if playlist.spotify_playlist_id is None or playlist.synced_fingerprint is None:
        return True
    return new_fingerprint != playlist.synced_fingerprint


def should_mirror(
    remote_snapshot_id: str | None,
    stored_snapshot_id: str | None,
    force: bool = False,
) -> bool:
    """Decide whether a remote playlist needs re-reading."""
    if force or remote_snapshot_id is None or stored_snapshot_id is None:
        return True
    return remote_snapshot_id != stored_snapshot_id

"""Service connectors for external music platforms."""

from smartlists.infrastructure.connectors.spotify import (
    SpotifyConnector,
    classify_spotify_error,
    convert_spotify_album,
    convert_spotify_playlist,
    convert_spotify_track,
)

__all__ = [
    "SpotifyConnector",
    "classify_spotify_error",
    "convert_spotify_album",
    "convert_spotify_playlist",
    "convert_spotify_track",
]

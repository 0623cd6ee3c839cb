"""Set-difference diff between desired and current membership."""

from collections.abc import Iterable

from smartlists.domain.entities.sync import PlaylistDiff


def _unique(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(items))


def compute_diff(
    playlist_external_id: str | None,
    desired: Iterable[str],
    current: Iterable[str],
) -> PlaylistDiff:
    """Compute ``to_add = desired - current`` and ``to_remove = current - desired``.

    Rule-governed playlists are exact mirrors of the rule output, so anything
    present but not desired is removed. Members in both sets are untouched.
    """
    desired_ids = _unique(desired)
    current_ids = _unique(current)
    desired_set = set(desired_ids)
    current_set = set(current_ids)

    return PlaylistDiff(
        playlist_external_id=playlist_external_id,
        to_add=[item for item in desired_ids if item not in current_set],
        to_remove=[item for item in current_ids if item not in desired_set],
        unchanged_count=len(desired_set & current_set),
    )

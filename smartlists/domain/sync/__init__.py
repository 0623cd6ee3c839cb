"""Pure sync primitives: fingerprinting, change detection, diffing, tracking."""

from .diff import compute_diff
from .fingerprint import fingerprint
from .gate import should_mirror, should_sync
from .tracking import AffectedEntityTracker

__all__ = [
    "AffectedEntityTracker",
    "compute_diff",
    "fingerprint",
    "should_mirror",
    "should_sync",
]

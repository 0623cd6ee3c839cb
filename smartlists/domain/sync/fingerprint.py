"""Order-independent content fingerprint of a set of external track IDs."""

from collections.abc import Iterable
import hashlib

FINGERPRINT_DELIMITER = "|"


def fingerprint(external_ids: Iterable[str]) -> str:
    """SHA-256 hex digest over the sorted, de-duplicated IDs joined with ``|``.

    Two collections with the same members always share a fingerprint no matter
    how they were enumerated.
    """
    canonical = FINGERPRINT_DELIMITER.join(sorted(set(external_ids)))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

"""Audio-feature lookup for mirrored tracks.

The enrichment client accepts at most 40 IDs per call. Lookups reuse the
reconciler's chunked executor, so calls are sequential with a short delay
between chunks and a failed chunk only loses its own IDs.
"""

from collections.abc import Sequence

from smartlists.application.utilities.chunking import process_in_chunks
from smartlists.config import get_logger, settings
from smartlists.domain.repositories.interfaces import AudioFeatureClient

logger = get_logger(__name__)

AudioFeatures = dict[str, float]


async def fetch_audio_features(
    client: AudioFeatureClient,
    external_ids: Sequence[str],
    batch_size: int | None = None,
    delay: float | None = None,
) -> dict[str, AudioFeatures | None]:
    """Look up audio features for every ID.

    IDs the service does not know, and IDs in failed chunks, map to None.
    """
    unique_ids = list(dict.fromkeys(external_ids))
    if not unique_ids:
        return {}

    outcomes = await process_in_chunks(
        unique_ids,
        batch_size or settings.api.audio_features_batch_size,
        client.get_audio_features,
        delay=settings.api.audio_features_delay if delay is None else delay,
        operation="audio_features",
    )

    features: dict[str, AudioFeatures | None] = dict.fromkeys(unique_ids)
    for outcome in outcomes:
        if outcome.succeeded and outcome.result:
            features.update({k: v for k, v in outcome.result.items() if k in features})

    found = sum(1 for value in features.values() if value is not None)
    logger.info(
        f"Fetched audio features for {found}/{len(unique_ids)} tracks",
        chunks=len(outcomes),
        failed_chunks=sum(1 for o in outcomes if not o.succeeded),
    )
    return features

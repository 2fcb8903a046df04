"""Unit-length rescaling of embeddings."""

import logging
from typing import Any, NamedTuple

import numpy as np

logger = logging.getLogger(__name__)


class NormalizedEmbedding(NamedTuple):
    vector: np.ndarray
    magnitude: float
    degenerate: bool


class VectorNormalizer:
    """Rescale vectors to unit Euclidean length so metrics are comparable."""

    def normalize(self, embedding: Any) -> NormalizedEmbedding:
        """
        Divide every component by the vector's magnitude.

        A zero vector cannot be scaled; it is returned as an unscaled copy with
        ``degenerate`` set so the caller can decide what to do with it.
        """
        vector = np.array(embedding, dtype=np.float64)
        magnitude = float(np.linalg.norm(vector))

        if magnitude == 0.0:
            logger.warning("Zero-magnitude embedding cannot be normalized, returning it unscaled")
            return NormalizedEmbedding(vector=vector, magnitude=0.0, degenerate=True)

        return NormalizedEmbedding(vector=vector / magnitude, magnitude=magnitude, degenerate=False)


_normalizer = VectorNormalizer()


def normalize(embedding: Any) -> np.ndarray:
    """Return the unit-length version of `embedding` (zero vectors unchanged)."""
    return _normalizer.normalize(embedding).vector

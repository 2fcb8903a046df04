"""
Similarity metrics between face embeddings.

Compares two embeddings with three metrics and blends them into a single
composite score in [0, 1]:

- cosine similarity (the most discriminative metric for this embedding family)
- Euclidean similarity: distance between unit vectors mapped linearly onto
  [0, 1] using the maximum distance sqrt(2)
- Pearson correlation, floored at 0 in the composite

Every metric is total: dimension mismatches, missing vectors and non-numeric
input give 0 instead of raising, so a search loop over stored data never
aborts halfway.
"""

import logging
import math
from typing import Any, NamedTuple, Optional

import numpy as np

from face_auth.matching.normalizer import VectorNormalizer
from face_auth.matching.thresholds import DEFAULT_WEIGHTS, SimilarityWeights
from face_auth.matching.types import EMBEDDING_DIMENSION
from face_auth.matching.validator import as_vector

logger = logging.getLogger(__name__)

MAX_UNIT_DISTANCE = math.sqrt(2.0)


class SimilarityBreakdown(NamedTuple):
    """The individual metrics behind one composite score."""

    cosine: float
    euclidean: float
    pearson: float
    composite: float


ZERO_SIMILARITY = SimilarityBreakdown(cosine=0.0, euclidean=0.0, pearson=0.0, composite=0.0)


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """dot(a, b) / (|a| |b|), or 0 when either magnitude is 0."""
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


def euclidean_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """max(0, 1 - |a - b| / sqrt(2)) for unit-length inputs."""
    distance = float(np.linalg.norm(a - b))
    return max(0.0, 1.0 - distance / MAX_UNIT_DISTANCE)


def pearson_correlation(a: np.ndarray, b: np.ndarray) -> float:
    """Mean-centered correlation of the two component sequences, 0 on zero variance."""
    centered_a = a - a.mean()
    centered_b = b - b.mean()
    variance_a = float(np.dot(centered_a, centered_a))
    variance_b = float(np.dot(centered_b, centered_b))
    if variance_a == 0 or variance_b == 0:
        return 0.0
    return float(np.dot(centered_a, centered_b) / math.sqrt(variance_a * variance_b))


class SimilarityEngine:
    """
    Composite similarity between two embeddings of the expected dimension.

    Args:
        weights: Blend of cosine, Euclidean and Pearson in the composite
        dimension: Required length of both vectors
    """

    def __init__(
        self,
        weights: SimilarityWeights = DEFAULT_WEIGHTS,
        dimension: int = EMBEDDING_DIMENSION,
        normalizer: Optional[VectorNormalizer] = None,
    ):
        self.weights = weights
        self.dimension = dimension
        self.normalizer = normalizer or VectorNormalizer()

    def compare(self, a: Any, b: Any) -> SimilarityBreakdown:
        """
        Compute every metric between `a` and `b`.

        Returns:
            SimilarityBreakdown; all zeros when the inputs are not two finite
            vectors of the expected dimension
        """
        vector_a = as_vector(a, self.dimension)
        vector_b = as_vector(b, self.dimension)
        if vector_a is None or vector_b is None:
            return ZERO_SIMILARITY
        if not (np.isfinite(vector_a).all() and np.isfinite(vector_b).all()):
            return ZERO_SIMILARITY

        unit_a = self.normalizer.normalize(vector_a).vector
        unit_b = self.normalizer.normalize(vector_b).vector

        cosine = cosine_similarity(unit_a, unit_b)
        euclidean = euclidean_similarity(unit_a, unit_b)
        pearson = pearson_correlation(unit_a, unit_b)

        composite = (
            self.weights.cosine * cosine
            + self.weights.euclidean * euclidean
            + self.weights.pearson * max(0.0, pearson)
        )
        composite = min(1.0, max(0.0, composite))

        return SimilarityBreakdown(
            cosine=cosine,
            euclidean=euclidean,
            pearson=pearson,
            composite=composite,
        )

    def similarity(self, a: Any, b: Any) -> float:
        """Composite score in [0, 1]."""
        return self.compare(a, b).composite

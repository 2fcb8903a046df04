"""
Structural sanity checks for face embeddings.

These checks catch corrupted or degenerate vectors (wrong length, zeros,
constant values, overflow). They say nothing about how good a face capture
is; that is the quality scorer's job.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Optional

import numpy as np

from face_auth.matching.thresholds import STORED_VECTOR_THRESHOLDS, ValidationThresholds
from face_auth.matching.types import QualityAssessment, RejectionReason

logger = logging.getLogger(__name__)


def as_vector(embedding: Any, dimension: int) -> Optional[np.ndarray]:
    """
    Convert an embedding to a 1-D float64 array of the expected length.

    Returns None when the input is not a sequence of `dimension` numbers.
    NaN/Inf values are preserved; callers check finiteness themselves.
    """
    if embedding is None or isinstance(embedding, (str, bytes, Mapping)):
        return None
    if not isinstance(embedding, (Sequence, np.ndarray)):
        return None
    if isinstance(embedding, np.ndarray) and embedding.ndim != 1:
        return None
    if len(embedding) != dimension:
        return None
    try:
        vector = np.asarray(embedding, dtype=np.float64)
    except (TypeError, ValueError, OverflowError):
        return None
    if vector.ndim != 1:
        return None
    return vector


def count_unique_values(vector: np.ndarray, decimals: int) -> int:
    """Number of distinct component values after rounding."""
    return int(np.unique(np.round(vector, decimals)).size)


class VectorValidator:
    """
    Validate embeddings against a set of structural thresholds.

    Two instances are normally in play: one with the stored-data limits and
    one with the looser limits for freshly captured vectors.
    """

    def __init__(self, thresholds: ValidationThresholds = STORED_VECTOR_THRESHOLDS):
        self.thresholds = thresholds

    def validate(self, embedding: Any) -> QualityAssessment:
        """
        Run the checks in order and stop at the first failure.

        Args:
            embedding: Candidate vector (list, tuple or numpy array)

        Returns:
            QualityAssessment with is_valid and the reason of the first failed check
        """
        limits = self.thresholds

        if embedding is None or isinstance(embedding, (str, bytes, Mapping)):
            return QualityAssessment.invalid(RejectionReason.WRONG_DIMENSION)
        if isinstance(embedding, np.ndarray) and embedding.ndim != 1:
            return QualityAssessment.invalid(RejectionReason.WRONG_DIMENSION)
        if not isinstance(embedding, (Sequence, np.ndarray)) or len(embedding) != limits.dimension:
            return QualityAssessment.invalid(RejectionReason.WRONG_DIMENSION)

        vector = as_vector(embedding, limits.dimension)
        if vector is None:
            return QualityAssessment.invalid(RejectionReason.NON_NUMERIC)

        if not np.isfinite(vector).all():
            return QualityAssessment.invalid(RejectionReason.NON_FINITE)

        magnitude = float(np.linalg.norm(vector))
        if magnitude < limits.min_magnitude:
            return QualityAssessment.invalid(RejectionReason.NEAR_ZERO_MAGNITUDE)

        if count_unique_values(vector, limits.rounding_decimals) < limits.min_unique_values:
            return QualityAssessment.invalid(RejectionReason.INSUFFICIENT_VARIABILITY)

        if np.any(np.abs(vector) > limits.max_abs_value):
            return QualityAssessment.invalid(RejectionReason.EXTREME_VALUES)

        return QualityAssessment.valid()

    def is_valid(self, embedding: Any) -> bool:
        return self.validate(embedding).is_valid

"""Quality score for an enrollment capture."""

import logging
import math
from typing import Any, Optional

import numpy as np

from face_auth.matching.thresholds import ENROLLMENT_QUALITY, QualityConstants
from face_auth.matching.validator import count_unique_values

logger = logging.getLogger(__name__)


class QualityScorer:
    """
    Score an already-validated embedding from its magnitude, spread and diversity.

    The score is computed on the raw vector (before normalization) since the
    magnitude is one of its inputs.
    """

    def __init__(self, constants: QualityConstants = ENROLLMENT_QUALITY):
        self.constants = constants

    def score(self, embedding: Any) -> float:
        """
        Compute the weighted quality score.

        Args:
            embedding: A vector that passed validation

        Returns:
            float: Quality in [0, 1]
        """
        c = self.constants
        vector = np.asarray(embedding, dtype=np.float64)

        magnitude = float(np.linalg.norm(vector))
        spread = math.sqrt(float(np.var(vector)))
        unique_values = count_unique_values(vector, c.rounding_decimals)

        magnitude_score = min(1.0, magnitude / c.magnitude_scale)
        spread_score = min(1.0, spread / c.spread_scale)
        diversity_score = min(1.0, unique_values / c.diversity_scale)

        quality = (
            c.magnitude_weight * magnitude_score
            + c.spread_weight * spread_score
            + c.diversity_weight * diversity_score
        )
        return min(1.0, max(0.0, quality))

    def final_score(self, embedding: Any, declared_quality: Optional[float] = None) -> float:
        """
        Combine the computed score with a caller-declared quality hint.

        The hint acts as a floor: it can raise the score, never lower it.
        """
        computed = self.score(embedding)
        if declared_quality is None:
            return computed

        try:
            hint = float(declared_quality)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring non-numeric declared quality: {declared_quality!r}")
            return computed
        if not math.isfinite(hint):
            return computed

        return max(computed, min(1.0, max(0.0, hint)))

    def meets_minimum(self, quality: float) -> bool:
        return quality >= self.constants.min_quality

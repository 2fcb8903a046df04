"""
Tunable constants for the matching engine.

Weights and thresholds here are empirically tuned policy. They are grouped in
frozen dataclasses so callers can substitute their own values (e.g. via
``dataclasses.replace``) without touching the algorithms.
"""

from dataclasses import dataclass

from face_auth.matching.types import EMBEDDING_DIMENSION


@dataclass(frozen=True)
class ValidationThresholds:
    """Structural sanity limits applied by the vector validator."""

    dimension: int = EMBEDDING_DIMENSION
    min_magnitude: float = 0.01
    min_unique_values: int = 10
    rounding_decimals: int = 4
    max_abs_value: float = 10.0


@dataclass(frozen=True)
class SimilarityWeights:
    """Blend of the three metrics in the composite score."""

    cosine: float = 0.6
    euclidean: float = 0.3
    pearson: float = 0.1


@dataclass(frozen=True)
class QualityConstants:
    """Weights, normalization scales and the acceptance floor of the quality score."""

    magnitude_weight: float = 0.6
    magnitude_scale: float = 2.0
    spread_weight: float = 0.4
    spread_scale: float = 0.15
    diversity_weight: float = 0.0
    diversity_scale: float = 50.0
    rounding_decimals: int = 4
    min_quality: float = 0.15


@dataclass(frozen=True)
class MatchThresholds:
    """Acceptance and confidence-tier cut-offs for a search."""

    similarity_threshold: float = 0.85
    min_confidence_threshold: float = 0.85

    def __post_init__(self):
        for name in ("similarity_threshold", "min_confidence_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0.0 and 1.0, got: {value}")


# Vectors about to be stored, and vectors read back from storage
STORED_VECTOR_THRESHOLDS = ValidationThresholds()

# Freshly captured vectors tolerate more noise before they are rejected
CAPTURED_VECTOR_THRESHOLDS = ValidationThresholds(
    min_magnitude=0.001,
    min_unique_values=5,
    max_abs_value=50.0,
)

ENROLLMENT_QUALITY = QualityConstants()

CAPTURE_QUALITY = QualityConstants(
    magnitude_weight=0.4,
    magnitude_scale=5.0,
    spread_weight=0.4,
    spread_scale=1.5,
    diversity_weight=0.2,
    diversity_scale=50.0,
    min_quality=0.05,
)

DEFAULT_WEIGHTS = SimilarityWeights()

DEFAULT_MATCH_THRESHOLDS = MatchThresholds()

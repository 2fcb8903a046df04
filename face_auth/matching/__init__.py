"""Embedding matching and enrollment-quality engine."""

from .curator import EnrollmentCurator, MIN_ACCEPTED_SAMPLES
from .normalizer import NormalizedEmbedding, VectorNormalizer, normalize
from .quality import QualityScorer
from .searcher import MatchSearcher
from .similarity import (
    SimilarityBreakdown,
    SimilarityEngine,
    cosine_similarity,
    euclidean_similarity,
    pearson_correlation,
)
from .thresholds import (
    CAPTURE_QUALITY,
    CAPTURED_VECTOR_THRESHOLDS,
    DEFAULT_MATCH_THRESHOLDS,
    DEFAULT_WEIGHTS,
    ENROLLMENT_QUALITY,
    STORED_VECTOR_THRESHOLDS,
    MatchThresholds,
    QualityConstants,
    SimilarityWeights,
    ValidationThresholds,
)
from .types import (
    EMBEDDING_DIMENSION,
    CaptureSample,
    CaptureType,
    ConfidenceTier,
    CurationResult,
    EnrolledRecord,
    FailureKind,
    MatchCandidate,
    MatchDecision,
    MatchReason,
    QualityAssessment,
    Rejection,
    RejectionReason,
)
from .validator import VectorValidator

__all__ = [
    "EnrollmentCurator",
    "MIN_ACCEPTED_SAMPLES",
    "NormalizedEmbedding",
    "VectorNormalizer",
    "normalize",
    "QualityScorer",
    "MatchSearcher",
    "SimilarityBreakdown",
    "SimilarityEngine",
    "cosine_similarity",
    "euclidean_similarity",
    "pearson_correlation",
    "CAPTURE_QUALITY",
    "CAPTURED_VECTOR_THRESHOLDS",
    "DEFAULT_MATCH_THRESHOLDS",
    "DEFAULT_WEIGHTS",
    "ENROLLMENT_QUALITY",
    "STORED_VECTOR_THRESHOLDS",
    "MatchThresholds",
    "QualityConstants",
    "SimilarityWeights",
    "ValidationThresholds",
    "EMBEDDING_DIMENSION",
    "CaptureSample",
    "CaptureType",
    "ConfidenceTier",
    "CurationResult",
    "EnrolledRecord",
    "FailureKind",
    "MatchCandidate",
    "MatchDecision",
    "MatchReason",
    "QualityAssessment",
    "Rejection",
    "RejectionReason",
    "VectorValidator",
]

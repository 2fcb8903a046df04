"""Data model shared by the matching and enrollment engine."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

import numpy as np

logger = logging.getLogger(__name__)

EMBEDDING_DIMENSION = 128


class CaptureType(str, Enum):
    """Pose or expression requested from the user for one enrollment capture."""

    NORMAL = "normal"
    SMILE = "smile"
    NOD = "nod"
    HEAD_RAISE = "headRaise"

    @classmethod
    def parse(cls, tag: Optional[str]) -> "CaptureType":
        """
        Map a free-form capture tag onto the enumeration.

        Accepts enum values, snake_case spellings and the legacy stored tags.
        Unknown or missing tags fall back to NORMAL.
        """
        if isinstance(tag, cls):
            return tag
        if not tag:
            return cls.NORMAL

        key = str(tag).strip().lower().replace("-", "_")
        capture_type = _CAPTURE_TAG_ALIASES.get(key)
        if capture_type is None:
            logger.warning(f"Unknown capture type tag {tag!r}, defaulting to {cls.NORMAL.value}")
            return cls.NORMAL
        return capture_type


_CAPTURE_TAG_ALIASES = {
    "normal": CaptureType.NORMAL,
    "smile": CaptureType.SMILE,
    "nod": CaptureType.NOD,
    "headraise": CaptureType.HEAD_RAISE,
    "head_raise": CaptureType.HEAD_RAISE,
    # Tags written by the first version of the enrollment client
    "sonrisa": CaptureType.SMILE,
    "asentir": CaptureType.NOD,
    "subir_cabeza": CaptureType.HEAD_RAISE,
}


class FailureKind(str, Enum):
    """Error taxonomy of the engine; outcomes carry a kind instead of raising."""

    MALFORMED_INPUT = "malformed_input"
    DEGENERATE_VECTOR = "degenerate_vector"
    INSUFFICIENT_QUALITY = "insufficient_quality"
    POPULATION_EMPTY = "population_empty"
    PERSISTENCE_FAILURE = "persistence_failure"


class RejectionReason(str, Enum):
    """Reason strings attached to a quality assessment or a rejected sample."""

    VALID = "valid"
    WRONG_DIMENSION = "wrong dimension"
    NON_NUMERIC = "non-numeric content"
    NON_FINITE = "non-finite values"
    NEAR_ZERO_MAGNITUDE = "near-zero magnitude"
    INSUFFICIENT_VARIABILITY = "insufficient variability"
    EXTREME_VALUES = "extreme values present"
    INSUFFICIENT_QUALITY = "insufficient quality"

    @property
    def kind(self) -> Optional[FailureKind]:
        return _REASON_KINDS.get(self)


_REASON_KINDS = {
    RejectionReason.WRONG_DIMENSION: FailureKind.MALFORMED_INPUT,
    RejectionReason.NON_NUMERIC: FailureKind.MALFORMED_INPUT,
    RejectionReason.NON_FINITE: FailureKind.MALFORMED_INPUT,
    RejectionReason.NEAR_ZERO_MAGNITUDE: FailureKind.DEGENERATE_VECTOR,
    RejectionReason.INSUFFICIENT_VARIABILITY: FailureKind.DEGENERATE_VECTOR,
    RejectionReason.EXTREME_VALUES: FailureKind.DEGENERATE_VECTOR,
    RejectionReason.INSUFFICIENT_QUALITY: FailureKind.INSUFFICIENT_QUALITY,
}


class MatchReason(str, Enum):
    """Why a search ended the way it did."""

    MATCHED = "matched"
    INVALID_PROBE = "invalid probe"
    POPULATION_EMPTY = "no enrolled population"
    NO_VALID_CANDIDATES = "no valid candidates"
    BELOW_THRESHOLD = "below threshold"


class ConfidenceTier(str, Enum):
    NONE = "none"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class QualityAssessment:
    """Result of validating (and optionally scoring) one embedding."""

    is_valid: bool
    reason: RejectionReason
    score: float = 0.0

    @property
    def kind(self) -> Optional[FailureKind]:
        return self.reason.kind

    @classmethod
    def valid(cls, score: float = 0.0) -> "QualityAssessment":
        return cls(is_valid=True, reason=RejectionReason.VALID, score=score)

    @classmethod
    def invalid(cls, reason: RejectionReason) -> "QualityAssessment":
        return cls(is_valid=False, reason=reason, score=0.0)


@dataclass(frozen=True)
class CaptureSample:
    """One embedding submitted during an enrollment request."""

    embedding: Any
    capture_type: CaptureType = CaptureType.NORMAL
    declared_quality: Optional[float] = None
    source_index: int = 0


@dataclass(frozen=True)
class EnrolledRecord:
    """An accepted embedding ready to be stored for its owner."""

    owner_id: str
    embedding: np.ndarray
    capture_type: CaptureType
    quality_score: float
    created_at: datetime


@dataclass(frozen=True)
class Rejection:
    """A sample the curator refused, keyed by its position in the request."""

    index: int
    reason: RejectionReason
    capture_type: CaptureType

    @property
    def kind(self) -> Optional[FailureKind]:
        return self.reason.kind


@dataclass(frozen=True)
class CurationResult:
    """Accepted records and rejections for one enrollment batch."""

    owner_id: str
    accepted: List[EnrolledRecord]
    rejected: List[Rejection]
    valid_count: int
    min_required: int

    @property
    def succeeded(self) -> bool:
        return len(self.accepted) >= self.min_required

    @property
    def failure_kind(self) -> Optional[FailureKind]:
        return None if self.succeeded else FailureKind.INSUFFICIENT_QUALITY

    @property
    def average_quality(self) -> float:
        if not self.accepted:
            return 0.0
        return sum(record.quality_score for record in self.accepted) / len(self.accepted)


@dataclass(frozen=True)
class MatchCandidate:
    """Read-only view of a stored embedding joined to its owner."""

    owner_id: str
    embedding: Any
    capture_type: CaptureType = CaptureType.NORMAL
    quality_score: Optional[float] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class MatchDecision:
    """Outcome of one authentication search."""

    matched: bool
    best_score: float
    reason: MatchReason
    confidence_tier: ConfidenceTier = ConfidenceTier.NONE
    owner_id: Optional[str] = None
    candidate: Optional[MatchCandidate] = field(default=None, compare=False)
    scanned: int = 0
    skipped: int = 0
    probe_assessment: Optional[QualityAssessment] = None

    @property
    def kind(self) -> Optional[FailureKind]:
        if self.matched:
            return None
        if self.reason is MatchReason.INVALID_PROBE and self.probe_assessment is not None:
            return self.probe_assessment.kind
        if self.reason is MatchReason.POPULATION_EMPTY:
            return FailureKind.POPULATION_EMPTY
        # Every stored vector was unusable: a data problem, not a policy rejection
        if self.reason is MatchReason.NO_VALID_CANDIDATES:
            return FailureKind.DEGENERATE_VECTOR
        return FailureKind.INSUFFICIENT_QUALITY

    @property
    def reason_text(self) -> str:
        """Structured reason string handed to the audit log."""
        if self.reason is MatchReason.INVALID_PROBE and self.probe_assessment is not None:
            return f"{self.reason.value}: {self.probe_assessment.reason.value}"
        if self.reason is MatchReason.BELOW_THRESHOLD:
            return f"{self.reason.value} (best score {self.best_score:.3f})"
        return self.reason.value

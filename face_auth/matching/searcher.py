"""
Best-match search of a probe embedding over the enrolled population.

The search is a plain linear scan: every candidate is compared with the
composite similarity and the highest score wins. Ties keep the candidate
seen first, so the result only depends on the probe and the candidate order.
"""

import logging
from typing import Any, Optional, Sequence

from face_auth.matching.similarity import SimilarityEngine
from face_auth.matching.thresholds import (
    CAPTURED_VECTOR_THRESHOLDS,
    DEFAULT_MATCH_THRESHOLDS,
    STORED_VECTOR_THRESHOLDS,
    MatchThresholds,
)
from face_auth.matching.types import (
    ConfidenceTier,
    MatchCandidate,
    MatchDecision,
    MatchReason,
)
from face_auth.matching.validator import VectorValidator

logger = logging.getLogger(__name__)


class MatchSearcher:
    """
    Decide whether a probe matches one of the enrolled candidates.

    Args:
        engine: Similarity engine used for every comparison
        probe_validator: Checks applied to the incoming probe (capture limits)
        candidate_validator: Checks applied to each stored embedding
        thresholds: Default acceptance / confidence cut-offs
    """

    def __init__(
        self,
        engine: Optional[SimilarityEngine] = None,
        probe_validator: Optional[VectorValidator] = None,
        candidate_validator: Optional[VectorValidator] = None,
        thresholds: MatchThresholds = DEFAULT_MATCH_THRESHOLDS,
    ):
        self.engine = engine or SimilarityEngine()
        self.probe_validator = probe_validator or VectorValidator(CAPTURED_VECTOR_THRESHOLDS)
        self.candidate_validator = candidate_validator or VectorValidator(STORED_VECTOR_THRESHOLDS)
        self.thresholds = thresholds

    def search(
        self,
        probe: Any,
        candidates: Sequence[MatchCandidate],
        thresholds: Optional[MatchThresholds] = None,
    ) -> MatchDecision:
        """
        Scan `candidates` for the best match to `probe`.

        Args:
            probe: Embedding captured for this authentication attempt
            candidates: Enrolled embeddings of active identities, in scan order
            thresholds: Per-call override of the instance thresholds

        Returns:
            MatchDecision. Non-matches carry the best score reached for diagnostics.

        Raises:
            TypeError: If a candidate is not a MatchCandidate
        """
        thresholds = thresholds or self.thresholds

        probe_assessment = self.probe_validator.validate(probe)
        if not probe_assessment.is_valid:
            return MatchDecision(
                matched=False,
                best_score=0.0,
                reason=MatchReason.INVALID_PROBE,
                probe_assessment=probe_assessment,
            )

        if not candidates:
            return MatchDecision(
                matched=False,
                best_score=0.0,
                reason=MatchReason.POPULATION_EMPTY,
                probe_assessment=probe_assessment,
            )

        best_candidate: Optional[MatchCandidate] = None
        best_score = 0.0
        scanned = 0
        skipped = 0

        for candidate in candidates:
            if not isinstance(candidate, MatchCandidate):
                raise TypeError(f"Expected MatchCandidate, got {type(candidate).__name__}")

            if not candidate.is_active or not self.candidate_validator.is_valid(candidate.embedding):
                skipped += 1
                continue

            scanned += 1
            score = self.engine.similarity(probe, candidate.embedding)
            if best_candidate is None or score > best_score:
                best_candidate = candidate
                best_score = score

        if skipped:
            logger.warning(f"Skipped {skipped} of {len(candidates)} stored embeddings during search")

        if best_candidate is None:
            return MatchDecision(
                matched=False,
                best_score=0.0,
                reason=MatchReason.NO_VALID_CANDIDATES,
                scanned=scanned,
                skipped=skipped,
                probe_assessment=probe_assessment,
            )

        if best_score < thresholds.similarity_threshold:
            logger.debug(
                f"Best score {best_score:.4f} below threshold {thresholds.similarity_threshold}"
            )
            return MatchDecision(
                matched=False,
                best_score=best_score,
                reason=MatchReason.BELOW_THRESHOLD,
                scanned=scanned,
                skipped=skipped,
                probe_assessment=probe_assessment,
            )

        tier = (
            ConfidenceTier.HIGH
            if best_score >= thresholds.min_confidence_threshold
            else ConfidenceTier.MEDIUM
        )
        return MatchDecision(
            matched=True,
            best_score=best_score,
            reason=MatchReason.MATCHED,
            confidence_tier=tier,
            owner_id=best_candidate.owner_id,
            candidate=best_candidate,
            scanned=scanned,
            skipped=skipped,
            probe_assessment=probe_assessment,
        )

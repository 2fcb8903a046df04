"""
Enrollment curation: split a batch of captures into accepted and rejected.

A user's enrolled set is only ever replaced as a whole, so the curator works
on the complete batch and refuses it outright when too few captures survive.
A single capture cannot be cross-checked against anything and may be an
outlier, hence the minimum of two.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

import numpy as np

from face_auth.matching.quality import QualityScorer
from face_auth.matching.thresholds import STORED_VECTOR_THRESHOLDS
from face_auth.matching.types import (
    CaptureSample,
    CurationResult,
    EnrolledRecord,
    Rejection,
    RejectionReason,
)
from face_auth.matching.validator import VectorValidator

logger = logging.getLogger(__name__)

MIN_ACCEPTED_SAMPLES = 2


class EnrollmentCurator:
    """
    Validate and score enrollment captures.

    Args:
        validator: Structural checks applied to every capture
        scorer: Quality scorer for captures that pass validation
        min_accepted: Smallest accepted batch that counts as a successful enrollment
    """

    def __init__(
        self,
        validator: Optional[VectorValidator] = None,
        scorer: Optional[QualityScorer] = None,
        min_accepted: int = MIN_ACCEPTED_SAMPLES,
    ):
        if min_accepted < 1:
            raise ValueError(f"min_accepted must be at least 1, got: {min_accepted}")
        self.validator = validator or VectorValidator(STORED_VECTOR_THRESHOLDS)
        self.scorer = scorer or QualityScorer()
        self.min_accepted = min_accepted

    def curate(
        self,
        owner_id: str,
        samples: Iterable[CaptureSample],
        created_at: Optional[datetime] = None,
    ) -> CurationResult:
        """
        Run every sample through validation and quality scoring.

        Args:
            owner_id: Identity the accepted records will belong to
            samples: Captures in request order
            created_at: Timestamp shared by the accepted records (defaults to now, UTC)

        Returns:
            CurationResult. When fewer than ``min_accepted`` samples survive,
            ``accepted`` is empty and ``succeeded`` is False.
        """
        created_at = created_at or datetime.now(timezone.utc)
        accepted: List[EnrolledRecord] = []
        rejected: List[Rejection] = []

        for sample in samples:
            assessment = self.validator.validate(sample.embedding)
            if not assessment.is_valid:
                logger.info(
                    f"Rejected capture {sample.source_index} ({sample.capture_type.value}) "
                    f"for {owner_id}: {assessment.reason.value}"
                )
                rejected.append(Rejection(
                    index=sample.source_index,
                    reason=assessment.reason,
                    capture_type=sample.capture_type,
                ))
                continue

            quality = self.scorer.final_score(sample.embedding, sample.declared_quality)
            if not self.scorer.meets_minimum(quality):
                logger.info(
                    f"Rejected capture {sample.source_index} ({sample.capture_type.value}) "
                    f"for {owner_id}: quality {quality:.3f} below {self.scorer.constants.min_quality}"
                )
                rejected.append(Rejection(
                    index=sample.source_index,
                    reason=RejectionReason.INSUFFICIENT_QUALITY,
                    capture_type=sample.capture_type,
                ))
                continue

            accepted.append(EnrolledRecord(
                owner_id=owner_id,
                embedding=np.array(sample.embedding, dtype=np.float64),
                capture_type=sample.capture_type,
                quality_score=quality,
                created_at=created_at,
            ))

        valid_count = len(accepted)
        if valid_count < self.min_accepted:
            logger.warning(
                f"Enrollment for {owner_id} refused: {valid_count} usable captures, "
                f"{self.min_accepted} required"
            )
            accepted = []

        return CurationResult(
            owner_id=owner_id,
            accepted=accepted,
            rejected=rejected,
            valid_count=valid_count,
            min_required=self.min_accepted,
        )

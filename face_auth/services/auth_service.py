"""
Authentication service for face enrollment and face login workflows.

This module provides the core business logic for:
- Face enrollment: curating capture samples and atomically replacing a user's stored embeddings
- Face login: searching the enrolled population for the live capture and minting a session
- Removal of a user's biometric data
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from postgrest.exceptions import APIError

from face_auth.clients.supabase_client import DatabaseManager
from face_auth.config import settings
from face_auth.matching import (
    CAPTURE_QUALITY,
    CaptureSample,
    EnrollmentCurator,
    FailureKind,
    MatchSearcher,
    MatchThresholds,
    QualityScorer,
    Rejection,
    SimilarityEngine,
    SimilarityWeights,
)
from face_auth.models.internal_models import (
    EnrollmentOutcome,
    FaceLoginResult,
    LoginAttempt,
)
from face_auth.services.session_service import SessionService, get_session_service

logger = logging.getLogger(__name__)

FACE_LOGIN_METHOD = "face"


class AuthenticationError(Exception):
    """Base exception for authentication service errors."""
    pass


class EnrollmentError(AuthenticationError):
    """Raised when face enrollment fails."""

    def __init__(self, message: str, kind: FailureKind, rejections: Optional[List[Rejection]] = None):
        super().__init__(message)
        self.kind = kind
        self.rejections = rejections or []


class PersistenceError(EnrollmentError):
    """Raised when accepted embeddings could not be stored."""

    def __init__(self, message: str, rejections: Optional[List[Rejection]] = None):
        super().__init__(message, FailureKind.PERSISTENCE_FAILURE, rejections)


class FaceLoginError(AuthenticationError):
    """Raised when face login fails unexpectedly."""
    pass


async def record_login_attempt(db: DatabaseManager, attempt: LoginAttempt) -> None:
    """
    Write a login attempt to the audit table.

    Failures are logged and swallowed: a broken audit write never changes the
    outcome of the login it describes.
    """
    try:
        await db.login_attempts.create_login_attempt(attempt)
        logger.debug(f"Logged {attempt.login_method} attempt for {attempt.email}: success={attempt.success}")
    except Exception as e:
        logger.error(f"Failed to log {attempt.login_method} attempt for {attempt.email}: {e}")


class FaceAuthService:
    """
    Face enrollment and face login.

    Engine objects are built from ``settings`` unless passed in explicitly.
    """

    def __init__(
        self,
        db_manager: Optional[DatabaseManager] = None,
        session_service: Optional[SessionService] = None,
        curator: Optional[EnrollmentCurator] = None,
        searcher: Optional[MatchSearcher] = None,
    ):
        """
        Initialize face authentication service.

        Args:
            db_manager: Database manager instance. If None, creates a new one.
            session_service: Session issuer. If None, uses the global one.
            curator: Enrollment curator. If None, built from settings.
            searcher: Match searcher. If None, built from settings.
        """
        self.db = db_manager or DatabaseManager()
        self.sessions = session_service or get_session_service()
        self.curator = curator or EnrollmentCurator(min_accepted=settings.min_enrollment_samples)
        self.searcher = searcher or MatchSearcher(
            engine=SimilarityEngine(
                weights=SimilarityWeights(
                    cosine=settings.cosine_weight,
                    euclidean=settings.euclidean_weight,
                    pearson=settings.pearson_weight,
                )
            ),
            thresholds=MatchThresholds(
                similarity_threshold=settings.similarity_threshold,
                min_confidence_threshold=settings.min_confidence_threshold,
            ),
        )
        self.probe_scorer = QualityScorer(CAPTURE_QUALITY)
        self.max_samples = settings.max_enrollment_samples

        logger.info(
            f"Face auth service initialized with similarity threshold: "
            f"{self.searcher.thresholds.similarity_threshold}"
        )

    async def enroll_faces(self, user_id: str, samples: Sequence[CaptureSample]) -> EnrollmentOutcome:
        """
        Enroll face captures for a user, replacing any previous enrollment.

        Workflow:
        1. Curate the samples (validation and quality scoring)
        2. Atomically replace the user's stored embeddings with the accepted ones
        3. Return how many were stored and which captures were refused

        Args:
            user_id: Owner of the enrollment
            samples: Captures in request order

        Returns:
            EnrollmentOutcome

        Raises:
            EnrollmentError: If too few samples are usable or too many were sent
            PersistenceError: If nothing could be stored
        """
        if len(samples) > self.max_samples:
            raise EnrollmentError(
                f"Too many captures: {len(samples)} (maximum {self.max_samples})",
                FailureKind.MALFORMED_INPUT,
            )

        logger.info(f"Starting face enrollment for user {user_id} with {len(samples)} captures")

        result = self.curator.curate(user_id, samples)
        if not result.succeeded:
            raise EnrollmentError(
                f"At least {result.min_required} valid face captures are required, "
                f"got {result.valid_count}",
                result.failure_kind,
                result.rejected,
            )

        try:
            stored = await self.db.face_embeddings.replace_for_user(user_id, result.accepted)
        except APIError as e:
            logger.error(f"Storing face embeddings failed for user {user_id}: {e}")
            raise PersistenceError(f"Failed to store face embeddings: {e.message}", result.rejected)

        if stored == 0:
            raise PersistenceError("No face embeddings could be stored", result.rejected)
        if stored < len(result.accepted):
            logger.warning(f"Only {stored}/{len(result.accepted)} face embeddings stored for user {user_id}")

        logger.info(
            f"Face enrollment completed for user {user_id}: {stored} stored, "
            f"{len(result.rejected)} rejected, average quality {result.average_quality:.3f}"
        )
        return EnrollmentOutcome(
            user_id=user_id,
            enrolled_count=stored,
            requested_count=len(result.accepted),
            average_quality=result.average_quality,
            rejected=result.rejected,
        )

    async def face_login(
        self,
        probe,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> FaceLoginResult:
        """
        Identify a user from a live face capture.

        Workflow:
        1. Load every enrolled embedding of active users
        2. Search them for the best match to the probe
        3. Log the attempt with the decision's reason and score
        4. Mint a session for the matched user

        Args:
            probe: 128-dimension embedding of the live capture
            ip_address: Client address, for the audit log
            user_agent: Client user agent, for the audit log

        Returns:
            FaceLoginResult. ``success`` is False for every non-match; the
            decision says why.

        Raises:
            FaceLoginError: If the candidate population or the matched user cannot be loaded
        """
        try:
            candidates = await self.db.retry_operation(self.db.face_embeddings.list_active_candidates)
        except Exception as e:
            logger.error(f"Loading match candidates failed: {e}")
            raise FaceLoginError(f"Failed to load enrolled faces: {e}")

        decision = self.searcher.search(probe, candidates)

        probe_quality = 0.0
        if decision.probe_assessment is not None and decision.probe_assessment.is_valid:
            probe_quality = self.probe_scorer.score(probe)

        logger.info(
            f"Face login search: reason={decision.reason.value}, best_score={decision.best_score:.4f}, "
            f"scanned={decision.scanned}, skipped={decision.skipped}, probe_quality={probe_quality:.3f}"
        )

        if not decision.matched:
            await record_login_attempt(self.db, LoginAttempt(
                email="unknown",
                success=False,
                failure_reason=decision.reason_text,
                login_method=FACE_LOGIN_METHOD,
                score=decision.best_score,
                ip_address=ip_address,
                user_agent=user_agent,
                created_at=datetime.now(timezone.utc),
            ))
            return FaceLoginResult(decision=decision, probe_quality=probe_quality)

        try:
            user = await self.db.users.get_user_by_id(decision.owner_id)
        except Exception as e:
            logger.error(f"Loading matched user {decision.owner_id} failed: {e}")
            raise FaceLoginError(f"Failed to load matched user: {e}")

        if user is None or not user.is_active:
            logger.warning(f"Matched user {decision.owner_id} is missing or inactive")
            await record_login_attempt(self.db, LoginAttempt(
                email=decision.candidate.email or "unknown",
                success=False,
                failure_reason="account inactive",
                login_method=FACE_LOGIN_METHOD,
                score=decision.best_score,
                ip_address=ip_address,
                user_agent=user_agent,
                created_at=datetime.now(timezone.utc),
            ))
            return FaceLoginResult(decision=decision, probe_quality=probe_quality)

        token = await self.sessions.issue(user, FACE_LOGIN_METHOD, ip_address, user_agent)
        await record_login_attempt(self.db, LoginAttempt(
            email=user.email,
            success=True,
            login_method=FACE_LOGIN_METHOD,
            score=decision.best_score,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=datetime.now(timezone.utc),
        ))

        logger.info(
            f"Face login successful for user {user.id}: score={decision.best_score:.4f}, "
            f"tier={decision.confidence_tier.value}"
        )
        return FaceLoginResult(decision=decision, probe_quality=probe_quality, user=user, token=token)

    async def delete_biometric_data(self, user_id: str) -> int:
        """
        Remove every enrolled embedding of a user.

        Returns:
            int: Number of deleted embeddings

        Raises:
            PersistenceError: If the delete fails
        """
        try:
            deleted = await self.db.face_embeddings.delete_for_user(user_id)
        except APIError as e:
            logger.error(f"Deleting face embeddings failed for user {user_id}: {e}")
            raise PersistenceError(f"Failed to delete face embeddings: {e.message}")

        logger.info(f"Deleted {deleted} face embeddings for user {user_id}")
        return deleted


# Global service instance
_face_auth_service: Optional[FaceAuthService] = None


def get_face_auth_service() -> FaceAuthService:
    """
    Get the global face authentication service instance.

    Returns:
        FaceAuthService: The global face authentication service instance
    """
    global _face_auth_service
    if _face_auth_service is None:
        _face_auth_service = FaceAuthService()
    return _face_auth_service

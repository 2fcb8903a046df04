"""
Face API endpoints: enrollment and face login.
"""

import time

import structlog
from fastapi import APIRouter, Depends, Request

from face_auth.api.auth import to_user_summary
from face_auth.api.dependencies import (
    get_client_info,
    get_correlation_id,
    get_current_user,
    raise_http_error,
)
from face_auth.matching import CaptureSample, FailureKind, MatchReason
from face_auth.models.api_models import (
    FaceEnrollmentRequest,
    FaceEnrollmentResponse,
    FaceLoginRequest,
    FaceLoginResponse,
    RejectedCapture,
)
from face_auth.models.internal_models import SessionUser
from face_auth.observability import (
    record_enrollment_metrics,
    record_face_login_metrics,
    trace_function,
)
from face_auth.services.auth_service import (
    EnrollmentError,
    FaceLoginError,
    PersistenceError,
    get_face_auth_service,
)

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1/face", tags=["face"])


def _rejected_captures(rejections) -> list:
    return [
        RejectedCapture(index=r.index, reason=r.reason.value, captureType=r.capture_type.value)
        for r in rejections
    ]


@router.post("/enroll", response_model=FaceEnrollmentResponse)
@trace_function("face_enrollment_endpoint")
async def enroll_faces(
    request: FaceEnrollmentRequest,
    http_request: Request,
    current_user: SessionUser = Depends(get_current_user)
) -> FaceEnrollmentResponse:
    """
    Enroll face captures for the current user, replacing any previous enrollment.

    Returns:
        FaceEnrollmentResponse with the stored count, average quality and refused captures

    Raises:
        HTTPException: 400 if too few captures are usable, 500 if they could not be stored
    """
    correlation_id = get_correlation_id(http_request)
    face_service = get_face_auth_service()
    start_time = time.time()

    samples = [
        CaptureSample(
            embedding=payload.embedding,
            capture_type=payload.captureType,
            declared_quality=payload.quality,
            source_index=index,
        )
        for index, payload in enumerate(request.embeddings)
    ]

    logger.info(
        "Face enrollment request received",
        user_id=current_user.user_id,
        captures=len(samples),
        correlation_id=correlation_id
    )

    try:
        outcome = await face_service.enroll_faces(current_user.user_id, samples)

    except PersistenceError as e:
        record_enrollment_metrics(False, time.time() - start_time, failure_kind=e.kind.value)
        logger.error("Face enrollment could not be stored", user_id=current_user.user_id, error=str(e), correlation_id=correlation_id)
        raise_http_error(500, "PersistenceError", str(e), correlation_id)

    except EnrollmentError as e:
        record_enrollment_metrics(False, time.time() - start_time, failure_kind=e.kind.value)
        logger.info("Face enrollment rejected", user_id=current_user.user_id, error=str(e), correlation_id=correlation_id)
        raise_http_error(
            400,
            "InsufficientSamples" if e.kind is FailureKind.INSUFFICIENT_QUALITY else "InvalidEnrollment",
            str(e),
            correlation_id,
            details={"rejected": [r.model_dump() for r in _rejected_captures(e.rejections)]}
        )

    except Exception as e:
        logger.error("Unexpected face enrollment error", user_id=current_user.user_id, error=str(e), correlation_id=correlation_id)
        raise_http_error(500, "InternalServerError", "An unexpected error occurred during face enrollment", correlation_id)

    record_enrollment_metrics(True, time.time() - start_time, stored_count=outcome.enrolled_count)

    message = f"{outcome.enrolled_count} face embeddings enrolled"
    if outcome.partially_persisted:
        message += f" ({outcome.requested_count - outcome.enrolled_count} could not be stored)"

    return FaceEnrollmentResponse(
        message=message,
        count=outcome.enrolled_count,
        averageQuality=round(outcome.average_quality, 4),
        rejected=_rejected_captures(outcome.rejected),
    )


@router.post("/login", response_model=FaceLoginResponse)
@trace_function("face_login_endpoint")
async def face_login(request: FaceLoginRequest, http_request: Request) -> FaceLoginResponse:
    """
    Log in with a live face capture.

    Raises:
        HTTPException: 400 for an unusable capture, 404 when nobody is enrolled,
            401 when the face is not recognized
    """
    correlation_id = get_correlation_id(http_request)
    face_service = get_face_auth_service()
    start_time = time.time()

    try:
        result = await face_service.face_login(request.faceEmbedding, **get_client_info(http_request))

    except FaceLoginError as e:
        logger.error("Face login failed", error=str(e), correlation_id=correlation_id)
        raise_http_error(500, "FaceLoginError", "Face login is temporarily unavailable", correlation_id)

    except Exception as e:
        logger.error("Unexpected face login error", error=str(e), correlation_id=correlation_id)
        raise_http_error(500, "InternalServerError", "An unexpected error occurred during face login", correlation_id)

    decision = result.decision
    record_face_login_metrics(
        success=result.success,
        processing_time=time.time() - start_time,
        best_score=decision.best_score if decision.scanned else None,
        reason=decision.reason.value
    )

    if decision.reason is MatchReason.INVALID_PROBE:
        raise_http_error(400, "InvalidFaceEmbedding", decision.reason_text, correlation_id)
    if decision.reason is MatchReason.POPULATION_EMPTY:
        raise_http_error(404, "NoEnrolledFaces", "No users have face login enabled", correlation_id)
    if not result.success:
        raise_http_error(
            401,
            "FaceNotRecognized",
            "Face not recognized",
            correlation_id,
            details={"confidence": round(decision.best_score, 4)}
        )

    logger.info(
        "Face login successful",
        user_id=result.user.id,
        score=decision.best_score,
        tier=decision.confidence_tier.value,
        correlation_id=correlation_id
    )
    return FaceLoginResponse(
        token=result.token,
        confidence=round(decision.best_score, 4),
        confidenceTier=decision.confidence_tier.value,
        user=to_user_summary(result.user),
    )

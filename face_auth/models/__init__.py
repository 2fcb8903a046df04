"""Data models for the facial authentication service."""

from .api_models import (
    RegisterRequest,
    CredentialLoginRequest,
    UserSummary,
    LoginResponse,
    SuccessResponse,
    FaceEmbeddingPayload,
    FaceEnrollmentRequest,
    RejectedCapture,
    FaceEnrollmentResponse,
    FaceLoginRequest,
    FaceLoginResponse,
    UserProfileResponse,
    DashboardStatsResponse,
    BiometricDeletionResponse,
    HealthResponse,
    ErrorResponse
)
from .internal_models import (
    UserProfile,
    LoginAttempt,
    LoginSession,
    SessionUser,
    BiometricSummary,
    EnrollmentOutcome,
    FaceLoginResult,
    DashboardStats
)

__all__ = [
    "RegisterRequest",
    "CredentialLoginRequest",
    "UserSummary",
    "LoginResponse",
    "SuccessResponse",
    "FaceEmbeddingPayload",
    "FaceEnrollmentRequest",
    "RejectedCapture",
    "FaceEnrollmentResponse",
    "FaceLoginRequest",
    "FaceLoginResponse",
    "UserProfileResponse",
    "DashboardStatsResponse",
    "BiometricDeletionResponse",
    "HealthResponse",
    "ErrorResponse",
    "UserProfile",
    "LoginAttempt",
    "LoginSession",
    "SessionUser",
    "BiometricSummary",
    "EnrollmentOutcome",
    "FaceLoginResult",
    "DashboardStats"
]

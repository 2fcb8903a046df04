"""Pydantic models for API requests and responses."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from face_auth.matching import CaptureType


class RegisterRequest(BaseModel):
    """Request model for account registration."""

    firstName: str = Field(..., min_length=1, max_length=100)
    lastName: str = Field(..., min_length=1, max_length=100)
    email: EmailStr = Field(..., description="Login email (unique)")
    password: str = Field(..., min_length=6, description="Account password")
    phone: Optional[str] = Field(None, max_length=20)
    idNumber: Optional[str] = Field(None, max_length=50, description="National ID number (unique)")

    @field_validator('email', mode='before')
    @classmethod
    def normalize_email(cls, v):
        """Trim and lowercase before the address is validated."""
        if isinstance(v, str):
            return v.strip().lower()
        return v


class CredentialLoginRequest(BaseModel):
    """Request model for email/password login."""

    email: Optional[str] = None
    password: Optional[str] = None


class UserSummary(BaseModel):
    """Public part of a user profile."""

    id: str
    firstName: str
    lastName: str
    email: str
    phone: Optional[str] = None
    createdAt: Optional[datetime] = None


class LoginResponse(BaseModel):
    """Response model for register and credential login endpoints."""

    success: bool = True
    message: str
    user: UserSummary
    token: str

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "success": True,
            "message": "Login successful",
            "user": {"id": "5f1c...", "firstName": "Ada", "lastName": "Lovelace", "email": "ada@example.com"},
            "token": "q0V8..."
        }
    })


class SuccessResponse(BaseModel):
    """Generic acknowledgement."""

    success: bool = True
    message: str


class FaceEmbeddingPayload(BaseModel):
    """One capture submitted for enrollment."""

    embedding: List[Any] = Field(..., description="128-dimension face descriptor")
    captureType: CaptureType = Field(CaptureType.NORMAL, description="Pose requested for this capture")
    quality: Optional[float] = Field(None, ge=0.0, le=1.0, description="Client-side quality hint")

    @field_validator('captureType', mode='before')
    @classmethod
    def parse_capture_type(cls, v):
        """Map unknown or legacy tags onto the closed capture type set."""
        return CaptureType.parse(v)


class FaceEnrollmentRequest(BaseModel):
    """Request model for face enrollment."""

    embeddings: List[FaceEmbeddingPayload] = Field(..., min_length=1, description="Captures, typically 3")


class RejectedCapture(BaseModel):
    """A capture the server refused during enrollment."""

    index: int
    reason: str
    captureType: str


class FaceEnrollmentResponse(BaseModel):
    """Response model for face enrollment."""

    success: bool = True
    message: str
    count: int = Field(..., description="Number of embeddings stored")
    averageQuality: float = Field(..., ge=0.0, le=1.0)
    rejected: List[RejectedCapture] = Field(default_factory=list)


class FaceLoginRequest(BaseModel):
    """Request model for face login."""

    faceEmbedding: List[Any] = Field(..., description="128-dimension face descriptor of the live capture")


class FaceLoginResponse(BaseModel):
    """Response model for successful face login."""

    success: bool = True
    token: str
    confidence: float = Field(..., ge=0.0, le=1.0, description="Composite similarity of the best match")
    confidenceTier: str
    user: UserSummary


class UserProfileResponse(BaseModel):
    """Response model for the profile endpoint."""

    success: bool = True
    user: Dict[str, Any]


class DashboardStatsResponse(BaseModel):
    """Response model for the dashboard endpoint."""

    success: bool = True
    stats: Dict[str, Any]


class BiometricDeletionResponse(BaseModel):
    """Response model for biometric data deletion."""

    success: bool = True
    message: str
    deletedCount: int


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str = Field(..., description="Service health status")
    timestamp: datetime = Field(..., description="Health check timestamp")
    version: str = Field("1.0.0", description="Service version")


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str = Field(..., description="Error type or category")
    message: str = Field(..., description="Human-readable error message")
    correlation_id: str = Field(..., description="Request correlation ID for tracing")
    timestamp: datetime = Field(..., description="Error timestamp")
    details: Optional[Dict[str, Any]] = Field(None, description="Structured diagnostics")

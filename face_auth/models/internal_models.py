"""Internal data models for the facial authentication service."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from face_auth.matching import ConfidenceTier, MatchDecision, Rejection


@dataclass
class UserProfile:
    """Profile row stored alongside the Supabase Auth identity."""

    id: str  # Supabase Auth user id
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    id_number: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None


@dataclass
class LoginAttempt:
    """Audit record for one credential or face login attempt."""

    email: str
    success: bool
    created_at: datetime
    login_method: str = "credentials"
    failure_reason: Optional[str] = None
    score: Optional[float] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    id: Optional[int] = None  # Database-generated ID

    def __post_init__(self):
        """Validate score range after initialization."""
        if self.score is not None and not (0.0 <= self.score <= 1.0):
            raise ValueError(f"Score must be between 0.0 and 1.0, got {self.score}")


@dataclass
class LoginSession:
    """Persisted session; only the hash of the bearer token is stored."""

    user_id: str
    token_hash: str
    expires_at: datetime
    login_method: str = "credentials"
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    id: Optional[int] = None


@dataclass
class SessionUser:
    """Identity resolved from a bearer token."""

    user_id: str
    email: str
    first_name: str
    last_name: str
    token: str


@dataclass
class BiometricSummary:
    """Aggregate view of a user's enrolled embeddings."""

    enrolled_count: int
    average_quality: float
    captures: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def biometric_enabled(self) -> bool:
        return self.enrolled_count > 0


@dataclass
class EnrollmentOutcome:
    """Result of a successful face enrollment."""

    user_id: str
    enrolled_count: int
    requested_count: int
    average_quality: float
    rejected: List[Rejection] = field(default_factory=list)

    @property
    def partially_persisted(self) -> bool:
        return self.enrolled_count < self.requested_count


@dataclass
class FaceLoginResult:
    """Outcome of a face login attempt as seen by the API layer."""

    decision: MatchDecision
    probe_quality: float = 0.0
    user: Optional[UserProfile] = None
    token: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.decision.matched and self.token is not None

    @property
    def confidence_tier(self) -> ConfidenceTier:
        return self.decision.confidence_tier


@dataclass
class DashboardStats:
    """Per-user dashboard figures."""

    total_logins: int
    active_sessions: int
    biometric: BiometricSummary
    recent_activity: List[LoginAttempt] = field(default_factory=list)

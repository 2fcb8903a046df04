"""
Tests for the HTTP endpoints.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock, patch

import pytest
from fastapi.testclient import TestClient

from face_auth.api.dependencies import get_current_user
from face_auth.main import app
from face_auth.matching import (
    CaptureType,
    ConfidenceTier,
    FailureKind,
    MatchDecision,
    MatchReason,
    QualityAssessment,
    Rejection,
    RejectionReason,
)
from face_auth.models.internal_models import (
    BiometricSummary,
    DashboardStats,
    EnrollmentOutcome,
    FaceLoginResult,
    LoginAttempt,
    SessionUser,
    UserProfile,
)
from face_auth.services.account_service import CredentialError, RegistrationError
from face_auth.services.auth_service import EnrollmentError, PersistenceError
from face_auth.services.session_service import SessionError

SESSION_USER = SessionUser(
    user_id="user-1",
    email="ada@example.com",
    first_name="Ada",
    last_name="Lovelace",
    token="tok",
)

PROFILE = UserProfile(
    id="user-1",
    first_name="Ada",
    last_name="Lovelace",
    email="ada@example.com",
    created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
)


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def authenticated():
    app.dependency_overrides[get_current_user] = lambda: SESSION_USER
    yield SESSION_USER
    app.dependency_overrides.clear()


@pytest.fixture
def account_service():
    service = Mock()
    with patch("face_auth.api.auth.get_account_service", return_value=service), \
            patch("face_auth.api.user.get_account_service", return_value=service):
        yield service


@pytest.fixture
def face_service():
    service = Mock()
    with patch("face_auth.api.face.get_face_auth_service", return_value=service), \
            patch("face_auth.api.user.get_face_auth_service", return_value=service):
        yield service


def _embedding():
    return [((i * 37) % 101) / 100.0 - 0.5 for i in range(128)]


class TestServiceEndpoints:
    """Tests for liveness and metrics."""

    def test_healthz(self, client):
        response = client.get("/healthz")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_metrics(self, client):
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "total_requests" in response.json()["metrics"]

    def test_correlation_id_is_echoed(self, client):
        response = client.get("/metrics", headers={"X-Call-ID": "call-42"})

        assert response.headers["X-Call-ID"] == "call-42"
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    def test_database_health(self, client, face_service):
        face_service.db.health_check = AsyncMock(return_value=True)
        face_service.db.users.count_users = AsyncMock(return_value=4)
        face_service.db.sessions.count_active_sessions = AsyncMock(return_value=2)

        response = client.get("/api/v1/health")

        body = response.json()
        assert body["status"] == "healthy"
        assert body["components"]["users"]["total"] == 4
        assert body["components"]["sessions"]["active"] == 2


class TestAuthEndpoints:
    """Tests for registration, login and logout."""

    def test_register(self, client, account_service):
        account_service.register = AsyncMock(return_value=(PROFILE, "new-token"))

        response = client.post("/api/v1/auth/register", json={
            "firstName": "Ada",
            "lastName": "Lovelace",
            "email": "ada@example.com",
            "password": "secret123",
        })

        assert response.status_code == 201
        body = response.json()
        assert body["token"] == "new-token"
        assert body["user"]["email"] == "ada@example.com"

    def test_register_conflict(self, client, account_service):
        account_service.register = AsyncMock(side_effect=RegistrationError("exists", conflict=True))

        response = client.post("/api/v1/auth/register", json={
            "firstName": "Ada",
            "lastName": "Lovelace",
            "email": "ada@example.com",
            "password": "secret123",
        })

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "UserAlreadyExists"

    def test_register_invalid_email(self, client, account_service):
        response = client.post("/api/v1/auth/register", json={
            "firstName": "Ada",
            "lastName": "Lovelace",
            "email": "not-an-email",
            "password": "secret123",
        })

        assert response.status_code == 422

    def test_register_email_with_filter_syntax(self, client, account_service):
        account_service.register = AsyncMock()

        response = client.post("/api/v1/auth/register", json={
            "firstName": "Ada",
            "lastName": "Lovelace",
            "email": "x@y.co,is_active.eq.true",
            "password": "secret123",
        })

        assert response.status_code == 422
        account_service.register.assert_not_called()

    def test_login(self, client, account_service):
        account_service.login = AsyncMock(return_value=(PROFILE, "tok"))

        response = client.post("/api/v1/auth/login", json={"email": "ada@example.com", "password": "secret123"})

        assert response.status_code == 200
        assert response.json()["token"] == "tok"

    def test_login_ignores_untrusted_forwarded_for(self, client, account_service):
        account_service.login = AsyncMock(return_value=(PROFILE, "tok"))

        client.post(
            "/api/v1/auth/login",
            json={"email": "ada@example.com", "password": "secret123"},
            headers={"X-Forwarded-For": "203.0.113.50"},
        )

        assert account_service.login.call_args.kwargs["ip_address"] == "testclient"

    def test_login_missing_fields(self, client, account_service):
        response = client.post("/api/v1/auth/login", json={"email": "ada@example.com"})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "MissingCredentials"

    def test_login_invalid_credentials(self, client, account_service):
        account_service.login = AsyncMock(side_effect=CredentialError("Invalid credentials"))

        response = client.post("/api/v1/auth/login", json={"email": "ada@example.com", "password": "nope"})

        assert response.status_code == 401

    def test_logout(self, client, account_service, authenticated):
        account_service.logout = AsyncMock(return_value=True)

        response = client.post("/api/v1/auth/logout")

        assert response.status_code == 200
        account_service.logout.assert_called_once_with(SESSION_USER)

    def test_logout_without_token(self, client):
        response = client.post("/api/v1/auth/logout")

        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "AuthenticationRequired"

    def test_unknown_bearer_token(self, client):
        session_service = Mock()
        session_service.resolve = AsyncMock(side_effect=SessionError("Invalid or expired session"))

        with patch("face_auth.api.dependencies.get_session_service", return_value=session_service):
            response = client.get("/api/v1/user/profile", headers={"Authorization": "Bearer stale"})

        assert response.status_code == 401
        session_service.resolve.assert_called_once_with("stale")


class TestFaceEndpoints:
    """Tests for face enrollment and face login."""

    def test_enroll(self, client, face_service, authenticated):
        face_service.enroll_faces = AsyncMock(return_value=EnrollmentOutcome(
            user_id="user-1",
            enrolled_count=2,
            requested_count=2,
            average_quality=0.61234,
            rejected=[Rejection(2, RejectionReason.NEAR_ZERO_MAGNITUDE, CaptureType.NOD)],
        ))

        response = client.post("/api/v1/face/enroll", json={"embeddings": [
            {"embedding": _embedding(), "captureType": "normal"},
            {"embedding": _embedding(), "captureType": "sonrisa", "quality": 0.8},
            {"embedding": [0.0] * 128, "captureType": "nod"},
        ]})

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 2
        assert body["averageQuality"] == 0.6123
        assert body["rejected"] == [{"index": 2, "reason": "near-zero magnitude", "captureType": "nod"}]

        user_id, samples = face_service.enroll_faces.call_args[0]
        assert user_id == "user-1"
        assert samples[1].capture_type is CaptureType.SMILE
        assert samples[1].declared_quality == 0.8
        assert [s.source_index for s in samples] == [0, 1, 2]

    def test_enroll_insufficient_samples(self, client, face_service, authenticated):
        face_service.enroll_faces = AsyncMock(side_effect=EnrollmentError(
            "At least 2 valid face captures are required, got 1",
            FailureKind.INSUFFICIENT_QUALITY,
            [Rejection(1, RejectionReason.WRONG_DIMENSION, CaptureType.NORMAL)],
        ))

        response = client.post("/api/v1/face/enroll", json={"embeddings": [
            {"embedding": _embedding()},
            {"embedding": [0.1, 0.2]},
        ]})

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error"] == "InsufficientSamples"
        assert detail["details"]["rejected"][0]["reason"] == "wrong dimension"

    def test_enroll_persistence_failure(self, client, face_service, authenticated):
        face_service.enroll_faces = AsyncMock(side_effect=PersistenceError("Failed to store face embeddings"))

        response = client.post("/api/v1/face/enroll", json={"embeddings": [{"embedding": _embedding()}]})

        assert response.status_code == 500
        assert response.json()["detail"]["error"] == "PersistenceError"

    def test_enroll_requires_authentication(self, client, face_service):
        response = client.post("/api/v1/face/enroll", json={"embeddings": [{"embedding": _embedding()}]})

        assert response.status_code == 401

    def test_face_login(self, client, face_service):
        decision = MatchDecision(
            matched=True,
            best_score=0.97,
            reason=MatchReason.MATCHED,
            confidence_tier=ConfidenceTier.HIGH,
            owner_id="user-1",
            scanned=3,
        )
        face_service.face_login = AsyncMock(return_value=FaceLoginResult(
            decision=decision, probe_quality=0.4, user=PROFILE, token="face-token"
        ))

        response = client.post("/api/v1/face/login", json={"faceEmbedding": _embedding()})

        assert response.status_code == 200
        body = response.json()
        assert body["token"] == "face-token"
        assert body["confidence"] == 0.97
        assert body["confidenceTier"] == "high"
        assert body["user"]["id"] == "user-1"

    def test_face_login_not_recognized(self, client, face_service):
        decision = MatchDecision(matched=False, best_score=0.41, reason=MatchReason.BELOW_THRESHOLD, scanned=3)
        face_service.face_login = AsyncMock(return_value=FaceLoginResult(decision=decision))

        response = client.post("/api/v1/face/login", json={"faceEmbedding": _embedding()})

        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "FaceNotRecognized"

    def test_face_login_invalid_probe(self, client, face_service):
        decision = MatchDecision(
            matched=False,
            best_score=0.0,
            reason=MatchReason.INVALID_PROBE,
            probe_assessment=QualityAssessment.invalid(RejectionReason.WRONG_DIMENSION),
        )
        face_service.face_login = AsyncMock(return_value=FaceLoginResult(decision=decision))

        response = client.post("/api/v1/face/login", json={"faceEmbedding": [0.1, 0.2]})

        assert response.status_code == 400
        assert response.json()["detail"]["message"] == "invalid probe: wrong dimension"

    def test_face_login_empty_population(self, client, face_service):
        decision = MatchDecision(matched=False, best_score=0.0, reason=MatchReason.POPULATION_EMPTY)
        face_service.face_login = AsyncMock(return_value=FaceLoginResult(decision=decision))

        response = client.post("/api/v1/face/login", json={"faceEmbedding": _embedding()})

        assert response.status_code == 404


class TestUserEndpoints:
    """Tests for profile, dashboard and biometric deletion."""

    def test_profile(self, client, account_service, authenticated):
        account_service.get_profile = AsyncMock(return_value=(
            PROFILE,
            BiometricSummary(enrolled_count=3, average_quality=0.7),
            2,
        ))

        response = client.get("/api/v1/user/profile")

        assert response.status_code == 200
        user = response.json()["user"]
        assert user["biometricEnabled"] is True
        assert user["activeSessions"] == 2

    def test_dashboard_stats(self, client, account_service, authenticated):
        account_service.get_dashboard_stats = AsyncMock(return_value=DashboardStats(
            total_logins=5,
            active_sessions=1,
            biometric=BiometricSummary(enrolled_count=0, average_quality=0.0),
            recent_activity=[
                LoginAttempt(
                    email="ada@example.com",
                    success=True,
                    login_method="face",
                    score=0.93,
                    created_at=datetime(2024, 1, 2, tzinfo=timezone.utc),
                )
            ],
        ))

        response = client.get("/api/v1/dashboard/stats")

        assert response.status_code == 200
        stats = response.json()["stats"]
        assert stats["totalLogins"] == 5
        assert stats["biometric"]["enabled"] is False
        assert stats["recentActivity"][0]["loginMethod"] == "face"

    def test_delete_biometric(self, client, face_service, authenticated):
        face_service.delete_biometric_data = AsyncMock(return_value=3)

        response = client.delete("/api/v1/user/biometric")

        assert response.status_code == 200
        assert response.json()["deletedCount"] == 3
        face_service.delete_biometric_data.assert_called_once_with("user-1")

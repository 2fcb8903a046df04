"""
Tests for the face authentication service.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

import pytest
from postgrest.exceptions import APIError

from face_auth.matching import (
    EMBEDDING_DIMENSION,
    CaptureSample,
    CaptureType,
    ConfidenceTier,
    FailureKind,
    MatchCandidate,
    MatchReason,
    RejectionReason,
)
from face_auth.models.internal_models import UserProfile
from face_auth.services.auth_service import (
    EnrollmentError,
    FaceAuthService,
    FaceLoginError,
    PersistenceError,
    get_face_auth_service,
    record_login_attempt,
)


class TestFaceAuthService:
    """Test cases for FaceAuthService."""

    @pytest.fixture
    def mock_db_manager(self):
        """Create a mock database manager."""
        db_manager = Mock()
        db_manager.users = Mock()
        db_manager.face_embeddings = Mock()
        db_manager.login_attempts = Mock()
        db_manager.login_attempts.create_login_attempt = AsyncMock()

        async def run_once(operation):
            return await operation()

        db_manager.retry_operation = AsyncMock(side_effect=run_once)
        return db_manager

    @pytest.fixture
    def mock_session_service(self):
        session_service = Mock()
        session_service.issue = AsyncMock(return_value="session-token")
        return session_service

    @pytest.fixture
    def face_service(self, mock_db_manager, mock_session_service):
        return FaceAuthService(db_manager=mock_db_manager, session_service=mock_session_service)

    @pytest.fixture
    def sample_user(self):
        return UserProfile(
            id="user-1",
            first_name="Ada",
            last_name="Lovelace",
            email="ada@example.com",
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )

    @pytest.fixture
    def samples(self, make_embedding):
        return [
            CaptureSample(embedding=make_embedding(), capture_type=CaptureType.NORMAL, source_index=0),
            CaptureSample(embedding=make_embedding(), capture_type=CaptureType.SMILE, source_index=1),
            CaptureSample(embedding=[0.0] * EMBEDDING_DIMENSION, capture_type=CaptureType.NOD, source_index=2),
        ]

    class TestEnrollment:
        """Tests for the face enrollment workflow."""

        @pytest.mark.asyncio
        async def test_enroll_faces_success(self, face_service, samples):
            face_service.db.face_embeddings.replace_for_user = AsyncMock(return_value=2)

            outcome = await face_service.enroll_faces("user-1", samples)

            assert outcome.enrolled_count == 2
            assert outcome.requested_count == 2
            assert outcome.partially_persisted is False
            assert 0.15 <= outcome.average_quality <= 1.0
            assert len(outcome.rejected) == 1
            assert outcome.rejected[0].reason is RejectionReason.NEAR_ZERO_MAGNITUDE

            user_id, records = face_service.db.face_embeddings.replace_for_user.call_args[0]
            assert user_id == "user-1"
            assert [r.capture_type for r in records] == [CaptureType.NORMAL, CaptureType.SMILE]

        @pytest.mark.asyncio
        async def test_enroll_faces_partial_persistence(self, face_service, samples):
            face_service.db.face_embeddings.replace_for_user = AsyncMock(return_value=1)

            outcome = await face_service.enroll_faces("user-1", samples)

            assert outcome.enrolled_count == 1
            assert outcome.partially_persisted is True

        @pytest.mark.asyncio
        async def test_enroll_faces_insufficient_samples(self, face_service, make_embedding):
            face_service.db.face_embeddings.replace_for_user = AsyncMock()
            samples = [
                CaptureSample(embedding=make_embedding(), source_index=0),
                CaptureSample(embedding=[1.0] * 5, source_index=1),
            ]

            with pytest.raises(EnrollmentError) as exc_info:
                await face_service.enroll_faces("user-1", samples)

            assert exc_info.value.kind is FailureKind.INSUFFICIENT_QUALITY
            assert exc_info.value.rejections[0].reason is RejectionReason.WRONG_DIMENSION
            face_service.db.face_embeddings.replace_for_user.assert_not_called()

        @pytest.mark.asyncio
        async def test_enroll_faces_too_many_samples(self, face_service, make_embedding):
            samples = [CaptureSample(embedding=make_embedding(), source_index=i) for i in range(11)]

            with pytest.raises(EnrollmentError, match="Too many captures") as exc_info:
                await face_service.enroll_faces("user-1", samples)

            assert exc_info.value.kind is FailureKind.MALFORMED_INPUT

        @pytest.mark.asyncio
        async def test_enroll_faces_database_error(self, face_service, samples):
            face_service.db.face_embeddings.replace_for_user = AsyncMock(
                side_effect=APIError({"message": "connection refused", "code": "500"})
            )

            with pytest.raises(PersistenceError, match="Failed to store face embeddings") as exc_info:
                await face_service.enroll_faces("user-1", samples)

            assert exc_info.value.kind is FailureKind.PERSISTENCE_FAILURE

        @pytest.mark.asyncio
        async def test_enroll_faces_nothing_stored(self, face_service, samples):
            face_service.db.face_embeddings.replace_for_user = AsyncMock(return_value=0)

            with pytest.raises(PersistenceError):
                await face_service.enroll_faces("user-1", samples)

    class TestFaceLogin:
        """Tests for the face login workflow."""

        @pytest.mark.asyncio
        async def test_face_login_success(self, face_service, sample_user, make_embedding):
            probe = make_embedding()
            face_service.db.face_embeddings.list_active_candidates = AsyncMock(return_value=[
                MatchCandidate(owner_id="user-2", embedding=make_embedding(), email="bob@example.com"),
                MatchCandidate(owner_id="user-1", embedding=list(probe), email="ada@example.com"),
            ])
            face_service.db.users.get_user_by_id = AsyncMock(return_value=sample_user)

            result = await face_service.face_login(probe, ip_address="10.0.0.1", user_agent="pytest")

            assert result.success is True
            assert result.token == "session-token"
            assert result.user is sample_user
            assert result.confidence_tier is ConfidenceTier.HIGH
            assert result.probe_quality > 0.0
            face_service.sessions.issue.assert_called_once_with(sample_user, "face", "10.0.0.1", "pytest")

            attempt = face_service.db.login_attempts.create_login_attempt.call_args[0][0]
            assert attempt.email == "ada@example.com"
            assert attempt.success is True
            assert attempt.login_method == "face"
            assert attempt.score == pytest.approx(1.0, abs=1e-9)

        @pytest.mark.asyncio
        async def test_face_login_not_recognized(self, face_service, make_embedding):
            face_service.db.face_embeddings.list_active_candidates = AsyncMock(return_value=[
                MatchCandidate(owner_id="user-2", embedding=make_embedding(), email="bob@example.com"),
            ])

            result = await face_service.face_login(make_embedding())

            assert result.success is False
            assert result.token is None
            assert result.decision.reason is MatchReason.BELOW_THRESHOLD
            face_service.sessions.issue.assert_not_called()

            attempt = face_service.db.login_attempts.create_login_attempt.call_args[0][0]
            assert attempt.success is False
            assert attempt.email == "unknown"
            assert attempt.failure_reason.startswith("below threshold")

        @pytest.mark.asyncio
        async def test_face_login_empty_population(self, face_service, make_embedding):
            face_service.db.face_embeddings.list_active_candidates = AsyncMock(return_value=[])

            result = await face_service.face_login(make_embedding())

            assert result.success is False
            assert result.decision.reason is MatchReason.POPULATION_EMPTY

        @pytest.mark.asyncio
        async def test_face_login_invalid_probe(self, face_service):
            face_service.db.face_embeddings.list_active_candidates = AsyncMock(return_value=[])

            result = await face_service.face_login([0.2] * 3)

            assert result.decision.reason is MatchReason.INVALID_PROBE
            assert result.probe_quality == 0.0
            attempt = face_service.db.login_attempts.create_login_attempt.call_args[0][0]
            assert attempt.failure_reason == "invalid probe: wrong dimension"

        @pytest.mark.asyncio
        async def test_face_login_inactive_user(self, face_service, sample_user, make_embedding):
            probe = make_embedding()
            sample_user.is_active = False
            face_service.db.face_embeddings.list_active_candidates = AsyncMock(return_value=[
                MatchCandidate(owner_id="user-1", embedding=list(probe), email="ada@example.com"),
            ])
            face_service.db.users.get_user_by_id = AsyncMock(return_value=sample_user)

            result = await face_service.face_login(probe)

            assert result.success is False
            assert result.decision.matched is True
            face_service.sessions.issue.assert_not_called()

        @pytest.mark.asyncio
        async def test_face_login_candidates_unavailable(self, face_service, make_embedding):
            face_service.db.face_embeddings.list_active_candidates = AsyncMock(side_effect=Exception("DB down"))

            with pytest.raises(FaceLoginError, match="Failed to load enrolled faces"):
                await face_service.face_login(make_embedding())

        @pytest.mark.asyncio
        async def test_audit_failure_does_not_fail_login(self, face_service, sample_user, make_embedding):
            probe = make_embedding()
            face_service.db.face_embeddings.list_active_candidates = AsyncMock(return_value=[
                MatchCandidate(owner_id="user-1", embedding=list(probe)),
            ])
            face_service.db.users.get_user_by_id = AsyncMock(return_value=sample_user)
            face_service.db.login_attempts.create_login_attempt = AsyncMock(side_effect=Exception("DB error"))

            result = await face_service.face_login(probe)

            assert result.success is True

    class TestBiometricDeletion:
        """Tests for biometric data removal."""

        @pytest.mark.asyncio
        async def test_delete_biometric_data(self, face_service):
            face_service.db.face_embeddings.delete_for_user = AsyncMock(return_value=3)

            deleted = await face_service.delete_biometric_data("user-1")

            assert deleted == 3
            face_service.db.face_embeddings.delete_for_user.assert_called_once_with("user-1")

        @pytest.mark.asyncio
        async def test_delete_biometric_data_error(self, face_service):
            face_service.db.face_embeddings.delete_for_user = AsyncMock(
                side_effect=APIError({"message": "permission denied", "code": "42501"})
            )

            with pytest.raises(PersistenceError):
                await face_service.delete_biometric_data("user-1")


class TestRecordLoginAttempt:
    """Test cases for the audit helper."""

    @pytest.mark.asyncio
    async def test_database_error_is_swallowed(self):
        db = Mock()
        db.login_attempts.create_login_attempt = AsyncMock(side_effect=Exception("DB error"))
        attempt = Mock(login_method="face", email="unknown", success=False)

        await record_login_attempt(db, attempt)

        db.login_attempts.create_login_attempt.assert_called_once_with(attempt)


class TestGlobalFaceAuthService:
    """Test cases for the global service accessor."""

    def test_get_face_auth_service_singleton(self):
        service1 = get_face_auth_service()
        service2 = get_face_auth_service()

        assert service1 is service2
        assert isinstance(service1, FaceAuthService)

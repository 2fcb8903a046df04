"""
Account service: registration, credential login and the per-user views.

Email/password identities live in Supabase Auth; the ``users`` table holds
the profile keyed by the auth user id.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Tuple

from supabase import AuthApiError

from face_auth.clients.supabase_client import DatabaseManager
from face_auth.models.api_models import RegisterRequest
from face_auth.models.internal_models import (
    BiometricSummary,
    DashboardStats,
    LoginAttempt,
    SessionUser,
    UserProfile,
)
from face_auth.services.auth_service import AuthenticationError, record_login_attempt
from face_auth.services.session_service import SessionService, get_session_service

logger = logging.getLogger(__name__)

CREDENTIALS_LOGIN_METHOD = "credentials"
RECENT_ACTIVITY_LIMIT = 10


class CredentialError(AuthenticationError):
    """Raised when an email/password pair is rejected or the account is inactive."""
    pass


class RegistrationError(AuthenticationError):
    """Raised when an account cannot be created."""

    def __init__(self, message: str, conflict: bool = False):
        super().__init__(message)
        self.conflict = conflict


class AccountService:
    """Registration, credential login, logout and profile/dashboard reads."""

    def __init__(
        self,
        db_manager: Optional[DatabaseManager] = None,
        session_service: Optional[SessionService] = None,
    ):
        self.db = db_manager or DatabaseManager()
        self.sessions = session_service or get_session_service()

    async def register(
        self,
        request: RegisterRequest,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Tuple[UserProfile, str]:
        """
        Create an auth identity and its profile, then log the user in.

        Returns:
            Tuple of (profile, session token)

        Raises:
            RegistrationError: ``conflict`` is set when the email or ID number is taken
        """
        if await self.db.users.exists_with_email_or_id_number(request.email, request.idNumber):
            raise RegistrationError("A user with this email or ID number already exists", conflict=True)

        try:
            user_id = await self.db.credentials.sign_up(request.email, request.password)
        except AuthApiError as e:
            logger.warning(f"Sign-up rejected for {request.email}: {e}")
            if "already registered" not in str(e).lower():
                raise RegistrationError(f"Registration failed: {e}")
            user_id = await self._find_orphaned_identity(request.email, request.password)
            if user_id is None:
                raise RegistrationError(f"Registration failed: {e}", conflict=True)
            logger.info(f"Resuming registration for {request.email}: identity {user_id} has no profile")

        try:
            profile = await self.db.users.create_profile(UserProfile(
                id=user_id,
                first_name=request.firstName.strip(),
                last_name=request.lastName.strip(),
                email=request.email,
                phone=request.phone,
                id_number=request.idNumber,
            ))
        except Exception as e:
            logger.error(
                f"Profile creation failed for identity {user_id}; "
                f"registering again with the same credentials resumes it: {e}"
            )
            raise

        token = await self.sessions.issue(profile, CREDENTIALS_LOGIN_METHOD, ip_address, user_agent)
        logger.info(f"Registered user {profile.id}")
        return profile, token

    async def _find_orphaned_identity(self, email: str, password: str) -> Optional[str]:
        """
        Id of an auth identity that an interrupted registration left without a profile.

        Only the password holder can claim it; None when the password is wrong
        or the profile exists.
        """
        user_id = await self.db.credentials.verify_password(email, password)
        if user_id is None:
            return None
        if await self.db.users.get_user_by_id(user_id) is not None:
            return None
        return user_id

    async def login(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Tuple[UserProfile, str]:
        """
        Verify an email/password pair and mint a session.

        Raises:
            CredentialError: If the credentials are wrong or the account is inactive
        """
        email = email.strip().lower()

        user_id = await self.db.credentials.verify_password(email, password)
        user = await self.db.users.get_user_by_id(user_id) if user_id else None

        if user is None:
            await self._log_attempt(email, False, "invalid credentials", ip_address, user_agent)
            raise CredentialError("Invalid credentials")

        if not user.is_active:
            await self._log_attempt(email, False, "account inactive", ip_address, user_agent)
            raise CredentialError("Account is inactive")

        token = await self.sessions.issue(user, CREDENTIALS_LOGIN_METHOD, ip_address, user_agent)
        await self._log_attempt(email, True, None, ip_address, user_agent)

        logger.info(f"Credential login successful for user {user.id}")
        return user, token

    async def logout(self, session_user: SessionUser) -> bool:
        revoked = await self.sessions.revoke(session_user.token)
        logger.info(f"Logged out user {session_user.user_id}")
        return revoked

    async def get_profile(self, user_id: str) -> Tuple[UserProfile, BiometricSummary, int]:
        """
        Load the profile with its biometric summary and active session count.

        Raises:
            CredentialError: If the user no longer exists
        """
        user = await self.db.users.get_user_by_id(user_id)
        if user is None:
            raise CredentialError("User not found")

        biometric = await self.db.face_embeddings.get_biometric_summary(user_id)
        active_sessions = await self.db.sessions.count_active_sessions(user_id)
        return user, biometric, active_sessions

    async def get_dashboard_stats(self, session_user: SessionUser) -> DashboardStats:
        total_logins = await self.db.login_attempts.count_successful_logins(session_user.email)
        active_sessions = await self.db.sessions.count_active_sessions(session_user.user_id)
        biometric = await self.db.face_embeddings.get_biometric_summary(session_user.user_id)
        recent = await self.db.login_attempts.get_recent_attempts_by_email(
            session_user.email, RECENT_ACTIVITY_LIMIT
        )
        return DashboardStats(
            total_logins=total_logins,
            active_sessions=active_sessions,
            biometric=biometric,
            recent_activity=recent,
        )

    async def _log_attempt(
        self,
        email: str,
        success: bool,
        failure_reason: Optional[str],
        ip_address: Optional[str],
        user_agent: Optional[str],
    ) -> None:
        await record_login_attempt(self.db, LoginAttempt(
            email=email,
            success=success,
            failure_reason=failure_reason,
            login_method=CREDENTIALS_LOGIN_METHOD,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=datetime.now(timezone.utc),
        ))


# Global service instance
_account_service: Optional[AccountService] = None


def get_account_service() -> AccountService:
    global _account_service
    if _account_service is None:
        _account_service = AccountService()
    return _account_service

"""
Bearer session management.

Tokens are opaque random strings handed to the client once; only their
SHA-256 digest is stored in ``login_sessions``.
"""

import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from face_auth.clients.supabase_client import DatabaseManager
from face_auth.config import settings
from face_auth.models.internal_models import LoginSession, SessionUser, UserProfile

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


class SessionError(Exception):
    """Raised when a bearer token is missing, unknown, revoked or expired."""
    pass


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class SessionService:
    """Issue, resolve and revoke login sessions."""

    def __init__(self, db_manager: Optional[DatabaseManager] = None, timeout_hours: Optional[int] = None):
        self.db = db_manager or DatabaseManager()
        self.timeout = timedelta(hours=timeout_hours or settings.session_timeout_hours)

    async def issue(
        self,
        user: UserProfile,
        login_method: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> str:
        """
        Mint a session for a user.

        Returns:
            str: The bearer token. It is not recoverable from the database.
        """
        token = secrets.token_urlsafe(TOKEN_BYTES)
        session = LoginSession(
            user_id=user.id,
            token_hash=hash_token(token),
            expires_at=datetime.now(timezone.utc) + self.timeout,
            login_method=login_method,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        await self.db.sessions.create_session(session)
        logger.info(f"Issued {login_method} session for user {user.id}")
        return token

    async def resolve(self, token: Optional[str]) -> SessionUser:
        """
        Look up the user behind a bearer token.

        Raises:
            SessionError: If the token is missing, unknown, revoked or expired,
                or its user has been deactivated
        """
        if not token:
            raise SessionError("Access token required")

        token_hash = hash_token(token)
        found = await self.db.sessions.get_active_session(token_hash)
        if found is None:
            raise SessionError("Invalid or expired session")

        session, user = found
        if session.expires_at <= datetime.now(timezone.utc):
            await self.db.sessions.deactivate_session(token_hash)
            logger.info(f"Deactivated expired session for user {session.user_id}")
            raise SessionError("Invalid or expired session")

        if not user.is_active:
            raise SessionError("Account is inactive")

        return SessionUser(
            user_id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            token=token,
        )

    async def revoke(self, token: str) -> bool:
        """Deactivate the session behind a token; returns whether one was found."""
        revoked = await self.db.sessions.deactivate_session(hash_token(token))
        return revoked > 0


# Global service instance
_session_service: Optional[SessionService] = None


def get_session_service() -> SessionService:
    global _session_service
    if _session_service is None:
        _session_service = SessionService()
    return _session_service

"""Supabase client for database operations."""

import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from supabase import create_client, Client, AuthApiError
from postgrest.exceptions import APIError

from ..config import settings
from ..matching import CaptureType, EnrolledRecord, MatchCandidate
from ..models.internal_models import (
    BiometricSummary,
    LoginAttempt,
    LoginSession,
    UserProfile,
)
from ..utils.vector_utils import embedding_to_json, parse_embedding

logger = logging.getLogger(__name__)


_FRACTION_PATTERN = re.compile(r"\.(\d+)")


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    value = value.replace('Z', '+00:00')
    # Postgres drops trailing zeros; fromisoformat on 3.10 wants exactly 3 or 6 digits
    value = _FRACTION_PATTERN.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, count=1)
    return datetime.fromisoformat(value)



def _profile_from_row(row: dict) -> UserProfile:
    return UserProfile(
        id=str(row["id"]),
        first_name=row.get("first_name") or "",
        last_name=row.get("last_name") or "",
        email=row["email"],
        phone=row.get("phone"),
        id_number=row.get("id_number"),
        is_active=bool(row.get("is_active", True)),
        created_at=_parse_timestamp(row.get("created_at")),
    )


class SupabaseClient:
    """Client for Supabase database operations."""

    def __init__(self):
        """Initialize Supabase client with configuration."""
        self._client: Optional[Client] = None
        self._auth_client: Optional[Client] = None
        self._url = settings.supabase_url
        self._key = settings.supabase_anon_key

    @property
    def client(self) -> Client:
        """Get or create Supabase client instance."""
        if self._client is None:
            self._client = create_client(self._url, self._key)
        return self._client

    @property
    def auth_client(self) -> Client:
        """
        Separate client for Supabase Auth calls.

        Signing in stores the user's session on the client it was called on;
        keeping those calls off the table client leaves its requests on the
        service key.
        """
        if self._auth_client is None:
            self._auth_client = create_client(self._url, self._key)
        return self._auth_client

    async def health_check(self) -> bool:
        """Check if database connection is healthy."""
        try:
            # Simple query to test connection
            self.client.table("users").select("count", count="exact").limit(0).execute()
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False


class UserRepository:
    """Repository for user profile operations."""

    def __init__(self, supabase_client: SupabaseClient):
        """Initialize repository with Supabase client."""
        self.client = supabase_client

    async def create_profile(self, profile: UserProfile) -> UserProfile:
        """Insert the profile row for a freshly registered identity."""
        try:
            profile_data = {
                "id": profile.id,
                "first_name": profile.first_name,
                "last_name": profile.last_name,
                "email": profile.email,
                "phone": profile.phone,
                "id_number": profile.id_number,
                "is_active": profile.is_active,
            }

            result = self.client.client.table("users").insert(profile_data).execute()

            if not result.data:
                raise ValueError("Failed to create user profile")

            created = _profile_from_row(result.data[0])
            logger.info(f"Successfully created profile for user {created.id}")
            return created

        except APIError as e:
            logger.error(f"Database error creating profile for {profile.email}: {e}")
            raise
        except Exception as e:
            logger.error(f"Unexpected error creating profile for {profile.email}: {e}")
            raise

    async def get_user_by_id(self, user_id: str) -> Optional[UserProfile]:
        """Retrieve user by ID."""
        try:
            result = self.client.client.table("users").select("*").eq("id", user_id).execute()

            if not result.data:
                return None

            return _profile_from_row(result.data[0])

        except APIError as e:
            logger.error(f"Database error retrieving user {user_id}: {e}")
            raise
        except Exception as e:
            logger.error(f"Unexpected error retrieving user {user_id}: {e}")
            raise

    async def exists_with_email_or_id_number(self, email: str, id_number: Optional[str]) -> bool:
        """Check whether the email or national ID number is already registered."""
        # Plain eq filters so user input never lands inside an or=() expression
        try:
            result = self.client.client.table("users").select("id").eq("email", email).limit(1).execute()
            if result.data:
                return True
            if not id_number:
                return False

            result = self.client.client.table("users").select("id").eq("id_number", id_number).limit(1).execute()
            return bool(result.data)

        except APIError as e:
            logger.error(f"Database error checking existing user {email}: {e}")
            raise

    async def count_users(self) -> int:
        """Count registered users."""
        result = self.client.client.table("users").select("id", count="exact").limit(0).execute()
        return result.count or 0


class FaceEmbeddingRepository:
    """
    Repository for enrolled face embeddings.

    Re-enrollment goes through the ``replace_face_embeddings`` Postgres
    function, which deletes the user's rows and inserts the new batch in one
    transaction and returns the number of inserted rows::

        create function replace_face_embeddings(p_user_id uuid, p_records jsonb)
        returns integer language plpgsql as $$
        declare inserted integer;
        begin
          delete from face_embeddings where user_id = p_user_id;
          insert into face_embeddings (user_id, embedding_data, capture_type, quality_score, created_at)
          select p_user_id, r->>'embedding_data', r->>'capture_type',
                 (r->>'quality_score')::real, (r->>'created_at')::timestamptz
          from jsonb_array_elements(p_records) r
          on conflict do nothing;
          get diagnostics inserted = row_count;
          return inserted;
        end $$;
    """

    def __init__(self, supabase_client: SupabaseClient):
        """Initialize repository with Supabase client."""
        self.client = supabase_client

    async def replace_for_user(self, user_id: str, records: List[EnrolledRecord]) -> int:
        """
        Atomically replace all enrolled embeddings of a user.

        Returns:
            int: Number of rows that were written
        """
        try:
            payload = [
                {
                    "embedding_data": embedding_to_json(record.embedding),
                    "capture_type": record.capture_type.value,
                    "quality_score": round(float(record.quality_score), 6),
                    "created_at": record.created_at.isoformat(),
                }
                for record in records
            ]

            result = self.client.client.rpc(
                "replace_face_embeddings",
                {"p_user_id": user_id, "p_records": payload}
            ).execute()

            inserted = int(result.data or 0)
            logger.info(f"Replaced face embeddings for user {user_id}: {inserted}/{len(records)} written")
            return inserted

        except APIError as e:
            logger.error(f"Database error replacing face embeddings for user {user_id}: {e}")
            raise
        except Exception as e:
            logger.error(f"Unexpected error replacing face embeddings for user {user_id}: {e}")
            raise

    async def list_active_candidates(self) -> List[MatchCandidate]:
        """
        Fetch every enrolled embedding that belongs to an active user.

        Ordered by quality (best first), then most recent first.
        """
        try:
            result = (
                self.client.client.table("face_embeddings")
                .select(
                    "user_id, embedding_data, capture_type, quality_score, created_at, "
                    "users!inner(email, first_name, last_name, is_active)"
                )
                .eq("users.is_active", True)
                .order("quality_score", desc=True)
                .order("created_at", desc=True)
                .execute()
            )

            candidates = []
            for row in result.data:
                owner = row.get("users") or {}
                candidates.append(MatchCandidate(
                    owner_id=str(row["user_id"]),
                    embedding=parse_embedding(row.get("embedding_data")),
                    capture_type=CaptureType.parse(row.get("capture_type")),
                    quality_score=row.get("quality_score"),
                    email=owner.get("email"),
                    first_name=owner.get("first_name"),
                    last_name=owner.get("last_name"),
                    is_active=bool(owner.get("is_active", True)),
                ))

            logger.debug(f"Loaded {len(candidates)} match candidates")
            return candidates

        except APIError as e:
            logger.error(f"Database error loading match candidates: {e}")
            raise
        except Exception as e:
            logger.error(f"Unexpected error loading match candidates: {e}")
            raise

    async def delete_for_user(self, user_id: str) -> int:
        """Delete all enrolled embeddings of a user and return how many were removed."""
        try:
            result = self.client.client.table("face_embeddings").delete().eq("user_id", user_id).execute()

            deleted = len(result.data or [])
            logger.info(f"Deleted {deleted} face embeddings for user {user_id}")
            return deleted

        except APIError as e:
            logger.error(f"Database error deleting face embeddings for user {user_id}: {e}")
            raise

    async def get_biometric_summary(self, user_id: str) -> BiometricSummary:
        """Count, average quality and capture list of a user's enrollment."""
        try:
            result = (
                self.client.client.table("face_embeddings")
                .select("capture_type, quality_score, created_at")
                .eq("user_id", user_id)
                .order("created_at", desc=True)
                .execute()
            )

            rows = result.data or []
            scores = [row["quality_score"] for row in rows if row.get("quality_score") is not None]
            average = sum(scores) / len(scores) if scores else 0.0

            return BiometricSummary(
                enrolled_count=len(rows),
                average_quality=average,
                captures=[
                    {
                        "captureType": row.get("capture_type"),
                        "qualityScore": row.get("quality_score"),
                        "createdAt": row.get("created_at"),
                    }
                    for row in rows
                ],
            )

        except APIError as e:
            logger.error(f"Database error summarizing face embeddings for user {user_id}: {e}")
            raise


class LoginAttemptRepository:
    """Repository for login attempt audit records."""

    def __init__(self, supabase_client: SupabaseClient):
        """Initialize repository with Supabase client."""
        self.client = supabase_client

    async def create_login_attempt(self, attempt: LoginAttempt) -> LoginAttempt:
        """Create a new login attempt record."""
        try:
            attempt_data = {
                "email": attempt.email,
                "success": attempt.success,
                "failure_reason": attempt.failure_reason,
                "login_method": attempt.login_method,
                "score": attempt.score,
                "ip_address": attempt.ip_address,
                "user_agent": attempt.user_agent,
                "created_at": attempt.created_at.isoformat()
            }

            result = self.client.client.table("login_attempts").insert(attempt_data).execute()

            if not result.data:
                raise ValueError("Failed to create login attempt")

            # Update the attempt with the generated ID
            attempt.id = result.data[0]["id"]

            logger.info(f"Recorded login attempt {attempt.id} for {attempt.email}: success={attempt.success}")
            return attempt

        except APIError as e:
            logger.error(f"Database error creating login attempt for {attempt.email}: {e}")
            raise
        except Exception as e:
            logger.error(f"Unexpected error creating login attempt for {attempt.email}: {e}")
            raise

    async def get_recent_attempts_by_email(self, email: str, limit: int = 10) -> List[LoginAttempt]:
        """Retrieve the most recent login attempts for an email."""
        try:
            result = (
                self.client.client.table("login_attempts")
                .select("*")
                .eq("email", email)
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )

            attempts = []
            for attempt_data in result.data:
                attempts.append(LoginAttempt(
                    id=attempt_data["id"],
                    email=attempt_data["email"],
                    success=attempt_data["success"],
                    failure_reason=attempt_data.get("failure_reason"),
                    login_method=attempt_data.get("login_method") or "credentials",
                    score=attempt_data.get("score"),
                    ip_address=attempt_data.get("ip_address"),
                    user_agent=attempt_data.get("user_agent"),
                    created_at=_parse_timestamp(attempt_data["created_at"])
                ))

            return attempts

        except APIError as e:
            logger.error(f"Database error retrieving login attempts for {email}: {e}")
            raise

    async def count_successful_logins(self, email: str) -> int:
        """Count successful logins for an email."""
        result = (
            self.client.client.table("login_attempts")
            .select("id", count="exact")
            .eq("email", email)
            .eq("success", True)
            .limit(0)
            .execute()
        )
        return result.count or 0


class SessionRepository:
    """Repository for login sessions."""

    def __init__(self, supabase_client: SupabaseClient):
        """Initialize repository with Supabase client."""
        self.client = supabase_client

    async def create_session(self, session: LoginSession) -> LoginSession:
        """Persist a new active session."""
        try:
            session_data = {
                "user_id": session.user_id,
                "token_hash": session.token_hash,
                "login_method": session.login_method,
                "ip_address": session.ip_address,
                "user_agent": session.user_agent,
                "is_active": True,
                "expires_at": session.expires_at.isoformat(),
            }

            result = self.client.client.table("login_sessions").insert(session_data).execute()

            if not result.data:
                raise ValueError("Failed to create login session")

            session.id = result.data[0]["id"]
            return session

        except APIError as e:
            logger.error(f"Database error creating session for user {session.user_id}: {e}")
            raise

    async def get_active_session(self, token_hash: str) -> Optional[Tuple[LoginSession, UserProfile]]:
        """Find an active session by token hash, joined to its user."""
        try:
            result = (
                self.client.client.table("login_sessions")
                .select("*, users!inner(*)")
                .eq("token_hash", token_hash)
                .eq("is_active", True)
                .limit(1)
                .execute()
            )

            if not result.data:
                return None

            row = result.data[0]
            session = LoginSession(
                id=row["id"],
                user_id=str(row["user_id"]),
                token_hash=row["token_hash"],
                login_method=row.get("login_method") or "credentials",
                ip_address=row.get("ip_address"),
                user_agent=row.get("user_agent"),
                is_active=row["is_active"],
                expires_at=_parse_timestamp(row["expires_at"]),
                created_at=_parse_timestamp(row.get("created_at")),
            )
            return session, _profile_from_row(row["users"])

        except APIError as e:
            logger.error(f"Database error looking up session: {e}")
            raise

    async def deactivate_session(self, token_hash: str) -> int:
        """Deactivate one session; returns the number of rows touched."""
        result = (
            self.client.client.table("login_sessions")
            .update({"is_active": False})
            .eq("token_hash", token_hash)
            .execute()
        )
        return len(result.data or [])

    async def count_active_sessions(self, user_id: Optional[str] = None) -> int:
        """Count unexpired active sessions, optionally for a single user."""
        query = (
            self.client.client.table("login_sessions")
            .select("id", count="exact")
            .eq("is_active", True)
            .gt("expires_at", datetime.now(timezone.utc).isoformat())
        )
        if user_id is not None:
            query = query.eq("user_id", user_id)
        result = query.limit(0).execute()
        return result.count or 0


class CredentialGateway:
    """Email/password identities managed by Supabase Auth."""

    def __init__(self, supabase_client: SupabaseClient):
        self.client = supabase_client

    async def sign_up(self, email: str, password: str) -> str:
        """
        Create an auth identity.

        Returns:
            str: The new identity's user id

        Raises:
            AuthApiError: If Supabase Auth refuses the sign-up
            ValueError: If no user came back
        """
        response = self.client.auth_client.auth.sign_up({"email": email, "password": password})
        if response.user is None:
            raise ValueError(f"Sign-up for {email} returned no user")
        logger.info(f"Created auth identity {response.user.id}")
        return str(response.user.id)

    async def verify_password(self, email: str, password: str) -> Optional[str]:
        """
        Check an email/password pair.

        Returns:
            The user id when the credentials are valid, None otherwise
        """
        try:
            response = self.client.auth_client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except AuthApiError as e:
            logger.info(f"Credential check failed for {email}: {e}")
            return None

        if response.user is None:
            return None
        return str(response.user.id)


class DatabaseManager:
    """High-level database manager that coordinates repositories."""

    def __init__(self):
        """Initialize database manager with client and repositories."""
        self.client = SupabaseClient()
        self.users = UserRepository(self.client)
        self.face_embeddings = FaceEmbeddingRepository(self.client)
        self.login_attempts = LoginAttemptRepository(self.client)
        self.sessions = SessionRepository(self.client)
        self.credentials = CredentialGateway(self.client)

    async def health_check(self) -> bool:
        """Check overall database health."""
        return await self.client.health_check()

    async def retry_operation(self, operation, max_retries: int = 3, base_delay: float = 1.0):
        """Retry database operations with exponential backoff."""
        last_exception = None

        for attempt in range(max_retries):
            try:
                return await operation()
            except Exception as e:
                last_exception = e
                if attempt < max_retries - 1:
                    delay = base_delay * (2 ** attempt)
                    logger.warning(f"Database operation failed (attempt {attempt + 1}/{max_retries}), retrying in {delay}s: {e}")
                    await asyncio.sleep(delay)
                else:
                    logger.error(f"Database operation failed after {max_retries} attempts: {e}")

        raise last_exception

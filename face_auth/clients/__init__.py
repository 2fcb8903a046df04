"""Client modules for external service integrations."""

from face_auth.clients.supabase_client import (
    SupabaseClient,
    UserRepository,
    FaceEmbeddingRepository,
    LoginAttemptRepository,
    SessionRepository,
    CredentialGateway,
    DatabaseManager
)

__all__ = [
    "SupabaseClient",
    "UserRepository",
    "FaceEmbeddingRepository",
    "LoginAttemptRepository",
    "SessionRepository",
    "CredentialGateway",
    "DatabaseManager"
]

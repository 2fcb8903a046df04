"""
Shared request helpers for the API routers.
"""

from datetime import datetime, timezone
from typing import Any, Dict, NoReturn, Optional

import structlog
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from face_auth.config import settings
from face_auth.middleware import get_client_address
from face_auth.models.api_models import ErrorResponse
from face_auth.models.internal_models import SessionUser
from face_auth.services.session_service import SessionError, get_session_service

logger = structlog.get_logger()

bearer_scheme = HTTPBearer(auto_error=False)


def get_correlation_id(request: Request) -> str:
    return request.headers.get("X-Call-ID", "unknown")


def get_client_info(request: Request) -> Dict[str, Optional[str]]:
    """Client address and user agent for the audit log."""
    return {
        "ip_address": get_client_address(request, settings.trusted_proxy_count),
        "user_agent": request.headers.get("User-Agent"),
    }


def raise_http_error(
    status_code: int,
    error_type: str,
    message: str,
    correlation_id: str,
    details: Optional[Dict[str, Any]] = None
) -> NoReturn:
    """Raise an HTTPException carrying a standard ErrorResponse body."""
    error_response = ErrorResponse(
        error=error_type,
        message=message,
        correlation_id=correlation_id,
        timestamp=datetime.now(timezone.utc),
        details=details
    )
    raise HTTPException(
        status_code=status_code,
        detail=error_response.model_dump(mode="json", exclude_none=True)
    )


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> SessionUser:
    """
    Resolve the bearer token of the request to its user.

    Raises:
        HTTPException: 401 when the token is missing, unknown, revoked or expired
    """
    correlation_id = get_correlation_id(request)
    token = credentials.credentials if credentials else None

    try:
        session_user = await get_session_service().resolve(token)
    except SessionError as e:
        logger.info("Bearer authentication rejected", reason=str(e), correlation_id=correlation_id)
        raise_http_error(401, "AuthenticationRequired", str(e), correlation_id)

    structlog.contextvars.bind_contextvars(user_id=session_user.user_id)
    return session_user

"""
User API endpoints: profile, dashboard, biometric data and service health.
"""

from datetime import datetime, timezone
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends, Request

from face_auth.api.dependencies import get_correlation_id, get_current_user, raise_http_error
from face_auth.models.api_models import (
    BiometricDeletionResponse,
    DashboardStatsResponse,
    UserProfileResponse,
)
from face_auth.models.internal_models import SessionUser
from face_auth.services.account_service import CredentialError, get_account_service
from face_auth.services.auth_service import PersistenceError, get_face_auth_service

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1", tags=["user"])


@router.get("/user/profile", response_model=UserProfileResponse)
async def get_profile(
    http_request: Request,
    current_user: SessionUser = Depends(get_current_user)
) -> UserProfileResponse:
    """Profile of the current user with biometric status and active session count."""
    correlation_id = get_correlation_id(http_request)

    try:
        user, biometric, active_sessions = await get_account_service().get_profile(current_user.user_id)
    except CredentialError as e:
        raise_http_error(404, "UserNotFound", str(e), correlation_id)
    except Exception as e:
        logger.error("Failed to load profile", user_id=current_user.user_id, error=str(e), correlation_id=correlation_id)
        raise_http_error(500, "InternalServerError", "Failed to load profile", correlation_id)

    return UserProfileResponse(user={
        "id": user.id,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "email": user.email,
        "phone": user.phone,
        "idNumber": user.id_number,
        "isActive": user.is_active,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
        "biometricEnabled": biometric.biometric_enabled,
        "enrolledFaces": biometric.enrolled_count,
        "activeSessions": active_sessions,
    })


@router.get("/dashboard/stats", response_model=DashboardStatsResponse)
async def get_dashboard_stats(
    http_request: Request,
    current_user: SessionUser = Depends(get_current_user)
) -> DashboardStatsResponse:
    """Login totals, sessions, biometric summary and recent activity of the current user."""
    correlation_id = get_correlation_id(http_request)

    try:
        stats = await get_account_service().get_dashboard_stats(current_user)
    except Exception as e:
        logger.error("Failed to load dashboard stats", user_id=current_user.user_id, error=str(e), correlation_id=correlation_id)
        raise_http_error(500, "InternalServerError", "Failed to load dashboard statistics", correlation_id)

    return DashboardStatsResponse(stats={
        "totalLogins": stats.total_logins,
        "activeSessions": stats.active_sessions,
        "biometric": {
            "enabled": stats.biometric.biometric_enabled,
            "enrolledCount": stats.biometric.enrolled_count,
            "averageQuality": round(stats.biometric.average_quality, 4),
            "captures": stats.biometric.captures,
        },
        "recentActivity": [
            {
                "success": attempt.success,
                "loginMethod": attempt.login_method,
                "failureReason": attempt.failure_reason,
                "score": attempt.score,
                "ipAddress": attempt.ip_address,
                "createdAt": attempt.created_at.isoformat() if attempt.created_at else None,
            }
            for attempt in stats.recent_activity
        ],
    })


@router.delete("/user/biometric", response_model=BiometricDeletionResponse)
async def delete_biometric_data(
    http_request: Request,
    current_user: SessionUser = Depends(get_current_user)
) -> BiometricDeletionResponse:
    """Delete every enrolled face embedding of the current user."""
    correlation_id = get_correlation_id(http_request)

    try:
        deleted = await get_face_auth_service().delete_biometric_data(current_user.user_id)
    except PersistenceError as e:
        raise_http_error(500, "PersistenceError", str(e), correlation_id)

    logger.info("Biometric data deleted", user_id=current_user.user_id, deleted=deleted, correlation_id=correlation_id)
    return BiometricDeletionResponse(message="Biometric data deleted", deletedCount=deleted)


@router.get("/health", response_model=Dict[str, Any])
async def service_health_check() -> Dict[str, Any]:
    """
    Health check with database connectivity and population counts.

    Returns:
        Dict with service health status and component checks
    """
    db = get_face_auth_service().db

    try:
        db_healthy = await db.health_check()
        components: Dict[str, Any] = {
            "database": {
                "status": "healthy" if db_healthy else "unhealthy",
                "details": "Database connectivity check"
            }
        }
        if db_healthy:
            components["users"] = {"total": await db.users.count_users()}
            components["sessions"] = {"active": await db.sessions.count_active_sessions()}

        return {
            "status": "healthy" if db_healthy else "unhealthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "components": components
        }

    except Exception as e:
        logger.error("Health check failed", error=str(e))
        return {
            "status": "unhealthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "error": str(e)
        }

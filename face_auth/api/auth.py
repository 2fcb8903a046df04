"""
Account API endpoints: registration, credential login and logout.
"""

from fastapi import APIRouter, Depends, Request

import structlog

from face_auth.api.dependencies import (
    get_client_info,
    get_correlation_id,
    get_current_user,
    raise_http_error,
)
from face_auth.models.api_models import (
    CredentialLoginRequest,
    LoginResponse,
    RegisterRequest,
    SuccessResponse,
    UserSummary,
)
from face_auth.models.internal_models import SessionUser, UserProfile
from face_auth.observability import trace_function
from face_auth.services.account_service import (
    CredentialError,
    RegistrationError,
    get_account_service,
)

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1/auth", tags=["authentication"])


def to_user_summary(user: UserProfile) -> UserSummary:
    return UserSummary(
        id=user.id,
        firstName=user.first_name,
        lastName=user.last_name,
        email=user.email,
        phone=user.phone,
        createdAt=user.created_at,
    )


@router.post("/register", response_model=LoginResponse, status_code=201)
@trace_function("register_endpoint")
async def register(request: RegisterRequest, http_request: Request) -> LoginResponse:
    """
    Create an account and log it in.

    Returns:
        LoginResponse with the new user and a session token

    Raises:
        HTTPException: 409 if the email or ID number is taken, 400 if sign-up is refused
    """
    correlation_id = get_correlation_id(http_request)
    account_service = get_account_service()

    logger.info("Registration request received", email=request.email, correlation_id=correlation_id)

    try:
        user, token = await account_service.register(request, **get_client_info(http_request))

    except RegistrationError as e:
        logger.warning("Registration failed", email=request.email, error=str(e), correlation_id=correlation_id)
        if e.conflict:
            raise_http_error(409, "UserAlreadyExists", str(e), correlation_id)
        raise_http_error(400, "RegistrationError", str(e), correlation_id)

    except Exception as e:
        logger.error("Unexpected registration error", email=request.email, error=str(e), correlation_id=correlation_id)
        raise_http_error(500, "InternalServerError", "An unexpected error occurred during registration", correlation_id)

    logger.info("Registration completed", user_id=user.id, correlation_id=correlation_id)
    return LoginResponse(message="User registered successfully", user=to_user_summary(user), token=token)


@router.post("/login", response_model=LoginResponse)
@trace_function("credential_login_endpoint")
async def login(request: CredentialLoginRequest, http_request: Request) -> LoginResponse:
    """
    Log in with email and password.

    Raises:
        HTTPException: 400 if a field is missing, 401 on invalid credentials or an inactive account
    """
    correlation_id = get_correlation_id(http_request)

    if not request.email or not request.password:
        raise_http_error(400, "MissingCredentials", "Email and password are required", correlation_id)

    account_service = get_account_service()

    try:
        user, token = await account_service.login(
            request.email,
            request.password,
            **get_client_info(http_request)
        )

    except CredentialError as e:
        logger.info("Credential login rejected", email=request.email, reason=str(e), correlation_id=correlation_id)
        raise_http_error(401, "InvalidCredentials", str(e), correlation_id)

    except Exception as e:
        logger.error("Unexpected login error", email=request.email, error=str(e), correlation_id=correlation_id)
        raise_http_error(500, "InternalServerError", "An unexpected error occurred during login", correlation_id)

    return LoginResponse(message="Login successful", user=to_user_summary(user), token=token)


@router.post("/logout", response_model=SuccessResponse)
async def logout(
    http_request: Request,
    current_user: SessionUser = Depends(get_current_user)
) -> SuccessResponse:
    """Revoke the session behind the bearer token."""
    correlation_id = get_correlation_id(http_request)

    try:
        await get_account_service().logout(current_user)
    except Exception as e:
        logger.error("Logout failed", user_id=current_user.user_id, error=str(e), correlation_id=correlation_id)
        raise_http_error(500, "InternalServerError", "Failed to log out", correlation_id)

    return SuccessResponse(message="Logout successful")

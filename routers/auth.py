"""
Authentication Router

Provides endpoints for registration, login, and profile management.

Endpoints:
    POST /api/auth/register - Create new account (sets session cookie)
    POST /api/auth/check-user - Check whether an account exists and is active
    POST /api/auth/login - Authenticate (sets session cookie)
    POST /api/auth/logout - Clear session cookie
    GET  /api/auth/me - Current user
    PUT  /api/auth/profile - Update name, email, avatar
    PUT  /api/auth/change-password - Change password
    GET  /api/auth/profile/forms - Profile with forms summary
"""

from fastapi import APIRouter, Depends, Request, Response, status

import auth as auth_utils
from core import models, schemas
from core.dependencies import get_analytics_service, get_user_service
from services.analytics import AnalyticsService
from services.users import UserService
from utils.logging import get_logger
from utils.rate_limit import limit_auth

logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication & Users"])


def _auth_payload(message: str, user: models.User) -> schemas.AuthResponse:
    return schemas.AuthResponse(
        message=message,
        user=schemas.UserResponse.model_validate(user),
        token=auth_utils.issue_token(user.id),
    )


# =============================================================================
# Registration & Login
# =============================================================================

@router.post(
    "/register",
    response_model=schemas.AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register new user",
    responses={
        201: {"description": "User created successfully"},
        400: {"description": "Missing input, short password or email already registered"},
    }
)
@limit_auth
async def register(
    request: Request,
    response: Response,
    payload: schemas.UserCreate,
    users: UserService = Depends(get_user_service)
):
    """
    Register a new user account.

    The password is hashed before storage. The new session token is
    returned and also set as an httpOnly cookie.
    """
    user = await users.register(payload)
    body = _auth_payload("User registered successfully", user)
    auth_utils.set_auth_cookie(response, body.token)
    return body


@router.post(
    "/check-user",
    summary="Check whether an account exists",
    responses={
        404: {"description": "No account with this email"},
        403: {"description": "Account deactivated"},
    }
)
@limit_auth
async def check_user(
    request: Request,
    payload: schemas.CheckUserRequest,
    users: UserService = Depends(get_user_service)
):
    return await users.check_user(payload.email)


@router.post(
    "/login",
    response_model=schemas.AuthResponse,
    summary="Login",
    responses={
        401: {"description": "Invalid credentials"},
        403: {"description": "Account deactivated"},
    }
)
@limit_auth
async def login(
    request: Request,
    response: Response,
    payload: schemas.UserLogin,
    users: UserService = Depends(get_user_service)
):
    """Authenticate with email and password; updates last login."""
    user = await users.authenticate(payload.email, payload.password)
    body = _auth_payload("Login successful", user)
    auth_utils.set_auth_cookie(response, body.token)
    return body


@router.post("/logout", response_model=schemas.MessageResponse, summary="Logout")
async def logout(response: Response):
    auth_utils.clear_auth_cookie(response)
    return {"message": "Logged out successfully"}


# =============================================================================
# Profile
# =============================================================================

@router.get("/me", summary="Get current user")
async def read_me(current_user: models.User = Depends(auth_utils.get_current_user)):
    return {"user": schemas.UserResponse.model_validate(current_user)}


@router.put("/profile", summary="Update profile")
async def update_profile(
    payload: schemas.ProfileUpdate,
    current_user: models.User = Depends(auth_utils.get_current_user),
    users: UserService = Depends(get_user_service)
):
    user = await users.update_profile(current_user, payload)
    return {
        "message": "Profile updated successfully",
        "user": schemas.UserResponse.model_validate(user),
    }


@router.put(
    "/change-password",
    response_model=schemas.MessageResponse,
    summary="Change password",
    responses={401: {"description": "Current password is incorrect"}}
)
async def change_password(
    payload: schemas.PasswordChange,
    current_user: models.User = Depends(auth_utils.get_current_user),
    users: UserService = Depends(get_user_service)
):
    await users.change_password(current_user, payload)
    return {"message": "Password changed successfully"}


@router.get("/profile/forms", summary="Profile with forms summary")
async def profile_forms(
    current_user: models.User = Depends(auth_utils.get_current_user),
    analytics: AnalyticsService = Depends(get_analytics_service)
):
    """
    Current user plus a summary of each active form: response count,
    last submission, five newest submissions and field count.
    """
    overview = await analytics.profile_overview(current_user.id)
    return {"user": schemas.UserResponse.model_validate(current_user), **overview}

"""
Authentication Utilities Module

Provides password hashing, JWT token management, and user authentication.
Uses bcrypt for password hashing and python-jose for JWT.

The token's ``sub`` claim holds the user id. Requests authenticate with
the httpOnly ``token`` cookie or an ``Authorization: Bearer`` header.

Usage:
    from auth import verify_password, get_password_hash, create_access_token

    # Hash a password
    hashed = get_password_hash("my_password")

    # Verify a password
    if verify_password("my_password", hashed):
        token = create_access_token({"sub": str(user.id)})
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Depends, Request, Response
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from core import database, models
from utils.exceptions import AuthenticationRequiredError
from utils.logging import get_logger

logger = get_logger(__name__)

# Bearer token extraction; requests without a header fall back to the cookie
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


# =============================================================================
# Password Hashing
# =============================================================================

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against a hashed password.

    Args:
        plain_password: The plain text password to verify
        hashed_password: The bcrypt hashed password to compare against

    Returns:
        bool: True if password matches, False otherwise
    """
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError as e:
        logger.error(f"Password verification failed: {e}")
        return False


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt (default 12 salt rounds)."""
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


# =============================================================================
# JWT Token Management
# =============================================================================

def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Payload data to encode in the token.
              Should include "sub" (subject) with the user id.
        expires_delta: Optional custom expiration time.
                       Defaults to ACCESS_TOKEN_EXPIRE_MINUTES from settings.

    Returns:
        str: Encoded JWT token
    """
    to_encode = data.copy()

    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})

    return jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )


def decode_access_token(token: str) -> Optional[dict]:
    """
    Decode and validate a JWT access token.

    Returns:
        dict: Decoded token payload, or None if invalid
    """
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        return None


def issue_token(user_id: int) -> str:
    return create_access_token({"sub": str(user_id)})


def set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.AUTH_COOKIE_SECURE,
        samesite="strict",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(settings.AUTH_COOKIE_NAME)


# =============================================================================
# User Authentication Dependencies
# =============================================================================

def _request_token(request: Request, bearer: Optional[str]) -> Optional[str]:
    # An explicit Authorization header wins over the session cookie
    return bearer or request.cookies.get(settings.AUTH_COOKIE_NAME)


async def _resolve_user(token: Optional[str], db: AsyncSession) -> models.User:
    if not token:
        raise AuthenticationRequiredError("Access denied. No token provided.")

    payload = decode_access_token(token)
    if payload is None or payload.get("sub") is None:
        logger.warning("Rejected invalid or expired token")
        raise AuthenticationRequiredError("Invalid token.")

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        logger.warning("Token 'sub' claim is not a user id")
        raise AuthenticationRequiredError("Invalid token.")

    result = await db.execute(select(models.User).where(models.User.id == user_id))
    user = result.scalars().first()

    if user is None or not user.is_active:
        logger.warning(f"Token refers to unknown or inactive user {user_id}")
        raise AuthenticationRequiredError("Invalid token or user not found.")

    return user


async def get_current_user(
    request: Request,
    bearer: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(database.get_db)
) -> models.User:
    """
    FastAPI dependency to get the current authenticated user.

    Raises:
        AuthenticationRequiredError: Missing/invalid token, or the user
            is unknown or deactivated

    Usage:
        @router.get("/me")
        async def get_me(user: User = Depends(get_current_user)):
            return user
    """
    return await _resolve_user(_request_token(request, bearer), db)


async def get_current_user_optional(
    request: Request,
    bearer: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(database.get_db)
) -> Optional[models.User]:
    """
    Optional version of get_current_user that returns None for
    unauthenticated requests.
    """
    token = _request_token(request, bearer)
    if not token:
        return None

    try:
        return await _resolve_user(token, db)
    except AuthenticationRequiredError:
        return None

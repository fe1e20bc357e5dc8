"""
User Account Service

Registration, login and profile maintenance for form owners and
submitters. Emails are compared exactly as stored.
"""

from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

import auth as auth_utils
from config.settings import settings
from core.database import store_operation, utcnow
from core.models import User
from core.schemas import PasswordChange, ProfileUpdate, UserCreate
from utils.exceptions import (
    AccountDeactivatedError,
    AuthenticationRequiredError,
    ConflictError,
    InvalidInputError,
    MissingRequiredInputError,
    NotFoundError,
)
from utils.logging import get_logger

logger = get_logger(__name__)


def _check_password_length(password: str, field: str = "password") -> None:
    if len(password) < settings.MIN_PASSWORD_LENGTH:
        raise InvalidInputError(
            f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters long",
            field=field,
        )


async def _commit_unique_email(db: AsyncSession, message: str) -> None:
    """Commit, mapping a unique-email violation from a concurrent writer to ConflictError."""
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.warning(f"Email uniqueness violated on commit: {e.orig}")
        raise ConflictError(message) from e


class UserService:
    """User operations scoped to a single database session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _find_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalars().first()

    @store_operation
    async def register(self, payload: UserCreate) -> User:
        """
        Create an account.

        Raises:
            MissingRequiredInputError: Name, email or password absent
            InvalidInputError: Password too short
            ConflictError: Email already registered
        """
        if not payload.name or not payload.email or not payload.password:
            raise MissingRequiredInputError("Name, email, and password are required")
        _check_password_length(payload.password)

        if await self._find_by_email(payload.email) is not None:
            logger.warning(f"Registration attempt with existing email: {payload.email}")
            raise ConflictError("User with this email already exists")

        user = User(
            name=payload.name.strip(),
            email=payload.email,
            password_hash=auth_utils.get_password_hash(payload.password),
            is_active=True,
            created_at=utcnow(),
        )
        self.db.add(user)
        await _commit_unique_email(self.db, "User with this email already exists")
        await self.db.refresh(user)

        logger.info(f"New user registered: {user.email}")
        return user

    @store_operation
    async def check_user(self, email: Optional[str]) -> Dict[str, Any]:
        """
        Report whether an account exists and may log in.

        Raises:
            MissingRequiredInputError: Email absent
            NotFoundError: No account with this email
            AccountDeactivatedError: Account exists but is deactivated
        """
        if not email:
            raise MissingRequiredInputError("Email is required", field="email")

        user = await self._find_by_email(email)
        if user is None:
            raise NotFoundError("User not found with this email address", resource="user")
        if not user.is_active:
            raise AccountDeactivatedError()

        return {
            "exists": True,
            "active": True,
            "message": "User found and account is active.",
            "user": {
                "id": user.id,
                "name": user.name,
                "email": user.email,
                "createdAt": user.created_at,
            },
        }

    @store_operation
    async def authenticate(self, email: Optional[str], password: Optional[str]) -> User:
        """
        Verify credentials and stamp ``last_login``.

        Raises:
            MissingRequiredInputError: Email or password absent
            AuthenticationRequiredError: Unknown email or wrong password
            AccountDeactivatedError: Deactivated account
        """
        if not email or not password:
            raise MissingRequiredInputError("Email and password are required")

        user = await self._find_by_email(email)
        if user is None:
            logger.warning(f"Failed login attempt for: {email}")
            raise AuthenticationRequiredError("Invalid email or password")
        if not user.is_active:
            logger.warning(f"Login attempt on deactivated account: {email}")
            raise AccountDeactivatedError()
        if not auth_utils.verify_password(password, user.password_hash):
            logger.warning(f"Failed login attempt for: {email}")
            raise AuthenticationRequiredError("Invalid email or password")

        try:
            user.last_login = utcnow()
            await self.db.commit()
            await self.db.refresh(user)
        except SQLAlchemyError as e:
            # Login still succeeds
            logger.error(f"Error updating last login for {email}: {e}")
            await self.db.rollback()

        logger.info(f"User logged in: {email}")
        return user

    @store_operation
    async def update_profile(self, user: User, payload: ProfileUpdate) -> User:
        """
        Update name, email and avatar.

        Raises:
            ConflictError: New email already taken
        """
        changes = payload.model_dump(exclude_unset=True)

        if changes.get("email") and changes["email"] != user.email:
            if await self._find_by_email(changes["email"]) is not None:
                raise ConflictError("Email is already taken")
            user.email = changes["email"]
        if changes.get("name"):
            user.name = changes["name"].strip()
        if "avatar" in changes:
            user.avatar = changes["avatar"]

        await _commit_unique_email(self.db, "Email is already taken")
        await self.db.refresh(user)

        logger.info(f"Profile updated for user {user.id}")
        return user

    @store_operation
    async def change_password(self, user: User, payload: PasswordChange) -> None:
        """
        Raises:
            MissingRequiredInputError: Either password absent
            InvalidInputError: New password too short
            AuthenticationRequiredError: Current password wrong
        """
        if not payload.current_password or not payload.new_password:
            raise MissingRequiredInputError("Current password and new password are required")
        _check_password_length(payload.new_password, field="newPassword")

        if not auth_utils.verify_password(payload.current_password, user.password_hash):
            raise AuthenticationRequiredError("Current password is incorrect")

        user.password_hash = auth_utils.get_password_hash(payload.new_password)
        await self.db.commit()

        logger.info(f"Password changed for user {user.id}")

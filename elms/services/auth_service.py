import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import joinedload
from sqlalchemy.ext.asyncio import AsyncSession

from elms.config import Settings
from elms.models.user import User
from elms.core.security import (
    verify_password,
    verify_and_check_needs_rehash,
    get_password_hash,
    create_user_token,
)


logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class AuthError(Exception):
    """Authentication failure; ``status_code`` is the HTTP status to report."""

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class AuthService:
    """Authentication service for login and password changes."""

    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.settings = settings

    async def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """
        Authenticate a user by email and password.

        Hashes made with a deprecated scheme are transparently re-hashed
        with the current default on a successful login.

        Returns:
            User object if authentication successful, None otherwise
        """
        stmt = (
            select(User)
            .options(joinedload(User.team))
            .where(User.email == email.lower())
        )
        result = await self.db.execute(stmt)
        user = result.scalar_one_or_none()

        if user is None:
            return None

        is_valid, needs_rehash = verify_and_check_needs_rehash(password, user.password_hash)
        if not is_valid:
            return None

        if needs_rehash:
            user.password_hash = get_password_hash(password)
            await self.db.flush()

        return user

    async def login(self, email: str, password: str) -> tuple[User, str]:
        """Authenticate and issue an access token."""
        user = await self.authenticate_user(email, password)
        if user is None:
            logger.warning(f"Failed login attempt for {email.lower()}")
            raise AuthError("Invalid credentials", status_code=401)

        token = create_user_token(self.settings, user)
        logger.info(f"User {user.id} logged in")
        return user, token

    async def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not current_password or not new_password:
            raise AuthError("Current and new password are required")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise AuthError(f"New password must be at least {MIN_PASSWORD_LENGTH} characters")
        if not verify_password(current_password, user.password_hash):
            raise AuthError("Current password is incorrect", status_code=401)

        user.password_hash = get_password_hash(new_password)
        await self.db.flush()
        logger.info(f"User {user.id} changed password")

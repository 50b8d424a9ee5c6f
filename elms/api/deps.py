from typing import Annotated, Optional
import uuid
import logging

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.orm import joinedload
from sqlalchemy.ext.asyncio import AsyncSession

from elms.config import Settings
from elms.database import get_db
from elms.core.security import verify_access_token
from elms.models.user import User, UserRoleType
from elms.services.ai.gemini_client import GeminiClient


logger = logging.getLogger(__name__)

# HTTP Bearer security scheme; missing credentials are reported as 401 below
security = HTTPBearer(auto_error=False)


def get_settings_dep(request: Request) -> Settings:
    """Settings the running application was created with."""
    return request.app.state.settings


async def get_current_user(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Dependency to get the current authenticated user.
    Validates the JWT token and re-loads the user from the database.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    user_id = verify_access_token(request.app.state.settings, credentials.credentials)
    if user_id is None:
        logger.warning("Token verification failed - invalid or expired token")
        raise credentials_exception

    try:
        user_uuid = uuid.UUID(user_id)
    except ValueError:
        logger.warning(f"Invalid user_id in token: {user_id}")
        raise credentials_exception

    result = await db.execute(
        select(User)
        .options(joinedload(User.team))
        .where(User.id == user_uuid)
    )
    user = result.scalar_one_or_none()

    if user is None:
        logger.warning(f"User {user_id} from token no longer exists")
        raise credentials_exception

    return user


def require_roles(*roles: UserRoleType):
    """
    Dependency factory to restrict an endpoint to some roles.

    Usage:
        @router.get("/all", dependencies=[Depends(require_roles(UserRoleType.ADMIN))])
        async def list_all_leaves():
            ...
    """
    allowed = {role.value for role in roles}

    async def role_dependency(
        user: Annotated[User, Depends(get_current_user)]
    ) -> User:
        if user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden - Insufficient permissions"
            )
        return user

    return role_dependency


def get_ai_client(request: Request) -> GeminiClient:
    """Generative model client; overridden in tests."""
    return GeminiClient.from_settings(request.app.state.settings)


# Type aliases for cleaner endpoint signatures
CurrentUser = Annotated[User, Depends(get_current_user)]
DB = Annotated[AsyncSession, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_settings_dep)]
AIClient = Annotated[GeminiClient, Depends(get_ai_client)]
AdminUser = Annotated[User, Depends(require_roles(UserRoleType.ADMIN))]
ApproverUser = Annotated[User, Depends(require_roles(UserRoleType.TEAM_LEAD, UserRoleType.ADMIN))]

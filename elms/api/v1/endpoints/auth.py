from fastapi import APIRouter, HTTPException

from elms.api.deps import DB, CurrentUser, AppSettings
from elms.schemas.auth import LoginRequest, LoginResponse, ChangePasswordRequest
from elms.schemas.base import MessageResponse
from elms.schemas.user import UserResponse
from elms.services.auth_service import AuthService, AuthError


router = APIRouter()


@router.post("/login", response_model=LoginResponse)
async def login(data: LoginRequest, db: DB, settings: AppSettings):
    """
    Authenticate with email and password.
    Returns a bearer token and the user's profile.
    """
    auth_service = AuthService(db, settings)
    try:
        user, token = await auth_service.login(data.email, data.password)
    except AuthError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    await db.commit()
    return LoginResponse(token=token, user=UserResponse.model_validate(user))


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    data: ChangePasswordRequest,
    current_user: CurrentUser,
    db: DB,
    settings: AppSettings,
):
    """Change the current user's password."""
    auth_service = AuthService(db, settings)
    try:
        await auth_service.change_password(current_user, data.current_password, data.new_password)
    except AuthError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    await db.commit()
    return MessageResponse(message="Password changed successfully")

from typing import Optional, List
import uuid

from fastapi import APIRouter, HTTPException, status, Query

from elms.api.deps import DB, CurrentUser, AdminUser
from elms.models.user import UserRoleType
from elms.schemas.base import MessageResponse
from elms.schemas.user import (
    UserCreate,
    UserUpdate,
    ProfileUpdate,
    UserResponse,
    UserListResponse,
    TeamCreate,
    TeamResponse,
)
from elms.services.user_service import UserService, UserServiceError


router = APIRouter()


# ==================== Profile ====================

@router.get("/profile", response_model=UserResponse)
async def get_profile(current_user: CurrentUser):
    """Get the current user's profile."""
    return UserResponse.model_validate(current_user)


@router.put("/profile", response_model=UserResponse)
async def update_profile(data: ProfileUpdate, current_user: CurrentUser, db: DB):
    """Update own name, phone and skills."""
    try:
        user = await UserService(db).update_profile(current_user, data)
    except UserServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    await db.commit()
    return UserResponse.model_validate(user)


# ==================== Teams ====================

@router.get("/teams", response_model=List[TeamResponse])
async def list_teams(current_user: CurrentUser, db: DB):
    """List all teams."""
    teams = await UserService(db).list_teams()
    return [TeamResponse.model_validate(team) for team in teams]


@router.post("/teams", response_model=TeamResponse, status_code=status.HTTP_201_CREATED)
async def create_team(data: TeamCreate, admin: AdminUser, db: DB):
    """Create a team. Admin only."""
    try:
        team = await UserService(db).create_team(data.name)
    except UserServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    await db.commit()
    return TeamResponse.model_validate(team)


# ==================== Users ====================

@router.get("", response_model=UserListResponse)
async def list_users(
    admin: AdminUser,
    db: DB,
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(50, ge=1, le=200, description="Page size"),
    role: Optional[UserRoleType] = Query(None, description="Filter by role"),
):
    """
    Get paginated list of users.
    Admin only.
    """
    users, total, pages = await UserService(db).list_users(
        page=page, size=size, role=role.value if role else None
    )
    return UserListResponse(
        items=[UserResponse.model_validate(user) for user in users],
        total=total,
        page=page,
        size=size,
        pages=pages,
    )


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(data: UserCreate, admin: AdminUser, db: DB):
    """Create a user account. Admin only."""
    try:
        user = await UserService(db).create_user(data)
    except UserServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    await db.commit()
    return UserResponse.model_validate(user)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: uuid.UUID, admin: AdminUser, db: DB):
    """Get a user by ID. Admin only."""
    user = await UserService(db).get_user(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserResponse.model_validate(user)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(user_id: uuid.UUID, data: UserUpdate, current_user: CurrentUser, db: DB):
    """
    Update a user.
    Admins may update anyone; other users only themselves (name and phone).
    """
    try:
        user = await UserService(db).update_user(current_user, user_id, data)
    except UserServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    await db.commit()
    return UserResponse.model_validate(user)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(user_id: uuid.UUID, admin: AdminUser, db: DB):
    """Delete a user together with their leaves and notifications. Admin only."""
    try:
        await UserService(db).delete_user(admin, user_id)
    except UserServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    await db.commit()
    return MessageResponse(message="User deleted successfully")

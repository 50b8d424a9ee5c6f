from pydantic import BaseModel, EmailStr, Field

from elms.models.user import (
    UserRoleType,
    DEFAULT_ANNUAL_BALANCE,
    DEFAULT_SICK_BALANCE,
    DEFAULT_CASUAL_BALANCE,
)
from elms.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema
from typing import Optional, List
from datetime import datetime
import uuid


# ==================== Team Schemas ====================

class TeamCreate(BaseCreateSchema):
    """Team creation schema. Blank names are rejected by the service."""
    name: str = Field(default="", max_length=100)


class TeamResponse(BaseResponseSchema):
    id: uuid.UUID
    name: str
    created_at: datetime


# ==================== User Schemas ====================

class UserCreate(BaseCreateSchema):
    """Admin-only user creation schema."""
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=6, description="Initial password")
    name: str = Field(..., min_length=1, max_length=150)
    role: UserRoleType = Field(..., description="employee, team_lead or admin")
    team_id: Optional[uuid.UUID] = None
    phone: Optional[str] = Field(None, max_length=20)
    leave_balance: int = Field(DEFAULT_ANNUAL_BALANCE, ge=0)
    sick_leave_balance: int = Field(DEFAULT_SICK_BALANCE, ge=0)
    casual_leave_balance: int = Field(DEFAULT_CASUAL_BALANCE, ge=0)


class UserUpdate(BaseUpdateSchema):
    """
    Partial user update.

    Which of these fields are actually applied depends on who is asking;
    see ``elms.services.user_service.allowed_update_fields``.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    phone: Optional[str] = Field(None, max_length=20)
    role: Optional[UserRoleType] = None
    team_id: Optional[uuid.UUID] = None
    leave_balance: Optional[int] = None
    sick_leave_balance: Optional[int] = None
    casual_leave_balance: Optional[int] = None


class ProfileUpdate(BaseUpdateSchema):
    """Self-service profile update."""
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    phone: Optional[str] = Field(None, max_length=20)
    skills: Optional[List[str]] = None


class UserResponse(BaseResponseSchema):
    """User response schema."""
    id: uuid.UUID
    email: str
    name: str
    role: str
    team_id: Optional[uuid.UUID] = None
    team_name: Optional[str] = None
    phone: Optional[str] = None
    skills: Optional[List[str]] = None
    leave_balance: int
    sick_leave_balance: int
    casual_leave_balance: int
    created_at: datetime


class UserListResponse(BaseModel):
    """Paginated user list response."""
    items: List[UserResponse]
    total: int
    page: int
    size: int
    pages: int

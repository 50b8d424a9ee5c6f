from pydantic import BaseModel, EmailStr, Field

from elms.schemas.base import BaseCreateSchema
from elms.schemas.user import UserResponse


class LoginRequest(BaseCreateSchema):
    """Login request schema."""
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=1, description="User password")


class LoginResponse(BaseModel):
    """Successful login: bearer token plus the user's profile."""
    message: str = "Login successful"
    token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    user: UserResponse


class ChangePasswordRequest(BaseCreateSchema):
    """Change own password. Length rules are checked by the auth service."""
    current_password: str = Field(default="", description="Current password")
    new_password: str = Field(default="", description="New password, at least 6 characters")

from pydantic import BaseModel, Field, model_validator

from elms.models.leave import LeaveType, LeaveStatus
from elms.schemas.base import BaseResponseSchema, BaseCreateSchema
from typing import Optional, List
from datetime import date, datetime
import uuid


class LeaveCreate(BaseCreateSchema):
    """Leave application."""
    leave_type: LeaveType = Field(..., description="annual, sick, casual, unpaid, maternity, paternity")
    from_date: date
    to_date: date
    description: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode="after")
    def check_period(self):
        if self.to_date < self.from_date:
            raise ValueError("to_date must be on or after from_date")
        return self


class LeaveActionRequest(BaseCreateSchema):
    """Approve/reject body. The comment becomes the stage comment."""
    comment: Optional[str] = Field(None, max_length=2000)


class LeaveApplyResponse(BaseModel):
    message: str = "Leave application submitted successfully"
    leave_id: uuid.UUID
    total_days: int


class LeaveActionResponse(BaseModel):
    message: str
    leave_id: uuid.UUID
    status: LeaveStatus
    team_lead_approval: str
    admin_approval: str


class LeaveApplicant(BaseResponseSchema):
    """Applicant details embedded in leave listings."""
    id: uuid.UUID
    name: str
    email: str
    role: str


class LeaveResponse(BaseResponseSchema):
    """Leave response schema."""
    id: uuid.UUID
    user_id: uuid.UUID
    leave_type: str
    from_date: date
    to_date: date
    total_days: int
    description: Optional[str] = None
    status: str
    team_lead_approval: str
    admin_approval: str
    team_lead_comment: Optional[str] = None
    admin_comment: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    user: Optional[LeaveApplicant] = None


class LeaveListResponse(BaseModel):
    """Paginated leave list response."""
    items: List[LeaveResponse]
    total: int
    page: int
    size: int
    pages: int

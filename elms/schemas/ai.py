"""
Schemas for the AI advisory endpoints.

Model replies are validated against these shapes before they reach the
client; anything that does not fit is treated like a failed call and the
safe fallback is returned instead.
"""
from pydantic import BaseModel, ConfigDict, Field, AliasChoices

from elms.models.leave import LeaveType
from elms.schemas.base import BaseCreateSchema
from typing import Optional, List, Literal
from datetime import date


# ==================== Requests ====================

class ChatRequest(BaseCreateSchema):
    message: str = Field(..., min_length=1, max_length=4000)


class AutofillRequest(BaseCreateSchema):
    input: str = Field(..., min_length=1, max_length=2000, description="Free-text leave request")


class ConflictCheckRequest(BaseCreateSchema):
    from_date: date
    to_date: date
    leave_type: Optional[LeaveType] = None


# ==================== Model output ====================

class ModelOutput(BaseModel):
    """Accepts snake_case or camelCase keys from the model."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AutofillData(ModelOutput):
    leave_type: LeaveType = Field(LeaveType.CASUAL, validation_alias=AliasChoices("leave_type", "leaveType"))
    from_date: date = Field(..., validation_alias=AliasChoices("from_date", "fromDate"))
    to_date: date = Field(..., validation_alias=AliasChoices("to_date", "toDate"))
    description: Optional[str] = None


class Recommendation(ModelOutput):
    suggestion: Literal["approve", "review", "reject"] = "review"
    risk_level: Literal["low", "medium", "high"] = Field("medium", validation_alias=AliasChoices("risk_level", "riskLevel"))
    reason: str = ""
    considerations: List[str] = []


class ConflictWarning(ModelOutput):
    type: str = "overlap"
    severity: Literal["low", "medium", "high"] = "medium"
    message: str


class ConflictReport(ModelOutput):
    has_conflicts: bool = Field(False, validation_alias=AliasChoices("has_conflicts", "hasConflicts"))
    warnings: List[ConflictWarning] = []


# ==================== Responses ====================

class ChatResponse(BaseModel):
    success: bool
    message: str


class AutofillResponse(BaseModel):
    success: bool
    data: Optional[AutofillData] = None
    error: Optional[str] = None


class RecommendationResponse(BaseModel):
    success: bool
    recommendation: Recommendation


class ConflictResponse(BaseModel):
    success: bool
    conflicts: ConflictReport

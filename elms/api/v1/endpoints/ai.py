"""
AI Assistant API Endpoints

Advisory only: failures of the model never surface as errors here, the
responses carry ``success: false`` and a safe default instead.
"""
import uuid

from fastapi import APIRouter, HTTPException, status

from elms.api.deps import DB, CurrentUser, ApproverUser, AIClient
from elms.schemas.ai import (
    ChatRequest,
    ChatResponse,
    AutofillRequest,
    AutofillResponse,
    ConflictCheckRequest,
    ConflictResponse,
    RecommendationResponse,
)
from elms.services.ai import LeaveAssistantService
from elms.services.leave_service import LeaveNotFoundError


router = APIRouter()


@router.post("/chat", response_model=ChatResponse)
async def chat(data: ChatRequest, current_user: CurrentUser, db: DB, client: AIClient):
    """Ask the leave assistant a question."""
    result = await LeaveAssistantService(db, client).chat(current_user, data.message)
    await db.commit()
    return result


@router.post("/autofill", response_model=AutofillResponse)
async def autofill(data: AutofillRequest, current_user: CurrentUser, db: DB, client: AIClient):
    """Turn a free-text request ("sick tomorrow") into leave form fields."""
    result = await LeaveAssistantService(db, client).autofill(current_user, data.input)
    await db.commit()
    return result


@router.get("/recommend/{leave_id}", response_model=RecommendationResponse)
async def recommend(leave_id: uuid.UUID, current_user: ApproverUser, db: DB, client: AIClient):
    """Advisory approve/review/reject suggestion for a leave. Team lead or admin."""
    try:
        result = await LeaveAssistantService(db, client).recommend(current_user, leave_id)
    except LeaveNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    await db.commit()
    return result


@router.post("/conflicts", response_model=ConflictResponse)
async def detect_conflicts(data: ConflictCheckRequest, current_user: CurrentUser, db: DB, client: AIClient):
    """Check planned dates against teammates' pending and approved leaves."""
    if data.to_date < data.from_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="to_date must be on or after from_date")

    result = await LeaveAssistantService(db, client).detect_conflicts(
        current_user,
        data.from_date,
        data.to_date,
        data.leave_type.value if data.leave_type else None,
    )
    await db.commit()
    return result

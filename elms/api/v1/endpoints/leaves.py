from typing import Optional, Literal
import uuid

from fastapi import APIRouter, HTTPException, status, Query

from elms.api.deps import DB, CurrentUser, AdminUser, ApproverUser
from elms.models.leave import LeaveStatus
from elms.models.user import UserRoleType
from elms.schemas.leave import (
    LeaveCreate,
    LeaveActionRequest,
    LeaveApplyResponse,
    LeaveActionResponse,
    LeaveResponse,
    LeaveListResponse,
)
from elms.services.leave_service import LeaveService, LeaveNotFoundError
from elms.services.leave_workflow import LeaveTransitionError


router = APIRouter()


def _list_response(items, total, pages, page, size) -> LeaveListResponse:
    return LeaveListResponse(
        items=[LeaveResponse.model_validate(leave) for leave in items],
        total=total,
        page=page,
        size=size,
        pages=pages,
    )


@router.post("", response_model=LeaveApplyResponse, status_code=status.HTTP_201_CREATED)
async def apply_leave(data: LeaveCreate, current_user: CurrentUser, db: DB):
    """
    Apply for leave.

    Team lead applications skip the team lead stage and go straight to the
    admins; everyone else's go to their team leads first.
    """
    try:
        leave = await LeaveService(db).apply(
            applicant=current_user,
            leave_type=data.leave_type.value,
            from_date=data.from_date,
            to_date=data.to_date,
            description=data.description,
        )
    except LeaveTransitionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    await db.commit()
    return LeaveApplyResponse(leave_id=leave.id, total_days=leave.total_days)


@router.get("/my", response_model=LeaveListResponse)
async def list_my_leaves(
    current_user: CurrentUser,
    db: DB,
    status_filter: Optional[LeaveStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
):
    """Current user's own leaves, newest first."""
    items, total, pages = await LeaveService(db).list_own(
        current_user.id,
        status=status_filter.value if status_filter else None,
        page=page,
        size=size,
    )
    return _list_response(items, total, pages, page, size)


@router.get("/team", response_model=LeaveListResponse)
async def list_team_leaves(
    current_user: ApproverUser,
    db: DB,
    status_filter: Optional[LeaveStatus] = Query(None, alias="status"),
    approval: Optional[Literal["pending"]] = Query(None, description="'pending' for the team lead queue"),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
):
    """Leaves of the employees in the caller's team. Team lead or admin."""
    items, total, pages = await LeaveService(db).list_team(
        current_user.team_id,
        status=status_filter.value if status_filter else None,
        pending_approval=approval == "pending",
        page=page,
        size=size,
    )
    return _list_response(items, total, pages, page, size)


@router.get("/all", response_model=LeaveListResponse)
async def list_all_leaves(
    admin: AdminUser,
    db: DB,
    status_filter: Optional[LeaveStatus] = Query(None, alias="status"),
    approval: Optional[Literal["pending"]] = Query(None, description="'pending' for the admin queue"),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
):
    """All leaves in the system. Admin only."""
    items, total, pages = await LeaveService(db).list_all(
        status=status_filter.value if status_filter else None,
        pending_approval=approval == "pending",
        page=page,
        size=size,
    )
    return _list_response(items, total, pages, page, size)


@router.get("/{leave_id}", response_model=LeaveResponse)
async def get_leave(leave_id: uuid.UUID, current_user: CurrentUser, db: DB):
    """Get a single leave. Employees can only see their own."""
    try:
        leave = await LeaveService(db).get_leave(leave_id, with_user=True)
    except LeaveNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    if current_user.role == UserRoleType.EMPLOYEE.value and leave.user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    return LeaveResponse.model_validate(leave)


async def _decide(leave_id: uuid.UUID, approve: bool, actor, data: Optional[LeaveActionRequest], db) -> LeaveActionResponse:
    comment = data.comment if data else None
    try:
        leave, outcome = await LeaveService(db).decide(leave_id, actor, approve, comment)
    except LeaveNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except LeaveTransitionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except PermissionError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden - Insufficient permissions")

    await db.commit()
    return LeaveActionResponse(
        message=outcome.message,
        leave_id=leave.id,
        status=leave.status,
        team_lead_approval=leave.team_lead_approval,
        admin_approval=leave.admin_approval,
    )


@router.put("/{leave_id}/approve", response_model=LeaveActionResponse)
async def approve_leave(
    leave_id: uuid.UUID,
    current_user: ApproverUser,
    db: DB,
    data: Optional[LeaveActionRequest] = None,
):
    """
    Approve a leave at the caller's stage.

    Team leads approve the first stage; admins give final approval, which
    deducts the leave's days from the matching balance.
    """
    return await _decide(leave_id, True, current_user, data, db)


@router.put("/{leave_id}/reject", response_model=LeaveActionResponse)
async def reject_leave(
    leave_id: uuid.UUID,
    current_user: ApproverUser,
    db: DB,
    data: Optional[LeaveActionRequest] = None,
):
    """Reject a leave at the caller's stage. The comment is sent to the applicant."""
    return await _decide(leave_id, False, current_user, data, db)

"""API endpoints for in-app notifications."""
import uuid

from fastapi import APIRouter, HTTPException, Query, status

from elms.api.deps import DB, CurrentUser
from elms.schemas.base import MessageResponse
from elms.schemas.notifications import NotificationResponse, NotificationListResponse
from elms.services.notification_service import NotificationService


router = APIRouter()


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    current_user: CurrentUser,
    db: DB,
    unread_only: bool = Query(False, description="Only unread notifications"),
):
    """Get the current user's 50 newest notifications and the unread count."""
    notifications, unread_count = await NotificationService(db).list_for_user(
        current_user.id, unread_only=unread_only
    )
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        unread_count=unread_count,
    )


@router.put("/all/read", response_model=MessageResponse)
async def mark_all_read(current_user: CurrentUser, db: DB):
    """Mark all of the current user's notifications as read."""
    await NotificationService(db).mark_all_read(current_user.id)
    await db.commit()
    return MessageResponse(message="All notifications marked as read")


@router.put("/{notification_id}/read", response_model=MessageResponse)
async def mark_read(notification_id: uuid.UUID, current_user: CurrentUser, db: DB):
    """Mark one notification as read."""
    updated = await NotificationService(db).mark_read(current_user.id, notification_id)
    if not updated:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")

    await db.commit()
    return MessageResponse(message="Notification marked as read")

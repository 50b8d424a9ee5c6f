from pydantic import BaseModel

from elms.schemas.base import BaseResponseSchema
from typing import Optional, List
from datetime import datetime
import uuid


class NotificationResponse(BaseResponseSchema):
    """Notification response schema."""
    id: uuid.UUID
    message: str
    type: str
    related_leave_id: Optional[uuid.UUID] = None
    is_read: bool
    created_at: datetime


class NotificationListResponse(BaseModel):
    """Newest notifications for the current user plus the unread count."""
    notifications: List[NotificationResponse]
    unread_count: int

"""
In-app Notification Service

Notifications are a best-effort side channel of the leave workflow: a
failed insert is logged and dropped, it never fails or rolls back the
leave change that triggered it. Each insert runs in its own SAVEPOINT so
a failure leaves the surrounding request transaction usable.
"""
import logging
from typing import Optional, List, Iterable, Tuple
import uuid

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from elms.models.notification import Notification
from elms.models.user import User, UserRoleType
from elms.services.leave_workflow import Audience, NotificationEvent


logger = logging.getLogger(__name__)

# Newest notifications returned by a listing
NOTIFICATION_LIST_LIMIT = 50


class NotificationService:
    """Write and read per-user notifications."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _insert(
        self,
        user_id: uuid.UUID,
        message: str,
        type: str,
        related_leave_id: Optional[uuid.UUID] = None,
    ) -> Notification:
        async with self.db.begin_nested():
            notification = Notification(
                user_id=user_id,
                message=message,
                type=type,
                related_leave_id=related_leave_id,
                is_read=False,
            )
            self.db.add(notification)
        return notification

    async def create(
        self,
        user_id: uuid.UUID,
        message: str,
        type: str,
        related_leave_id: Optional[uuid.UUID] = None,
    ) -> Optional[Notification]:
        """
        Append a notification for a user.

        Returns the new row, or None if it could not be written.
        """
        try:
            return await self._insert(user_id, message, type, related_leave_id)
        except Exception as e:
            logger.error(f"Failed to create notification for user {user_id}: {e}")
            return None

    async def list_for_user(
        self,
        user_id: uuid.UUID,
        unread_only: bool = False,
        limit: int = NOTIFICATION_LIST_LIMIT,
    ) -> Tuple[List[Notification], int]:
        """Newest notifications for a user and their total unread count."""
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read == False)  # noqa: E712
        query = query.order_by(Notification.created_at.desc()).limit(limit)
        result = await self.db.execute(query)
        notifications = list(result.scalars().all())

        unread_query = select(func.count(Notification.id)).where(
            Notification.user_id == user_id,
            Notification.is_read == False,  # noqa: E712
        )
        unread_count = await self.db.scalar(unread_query) or 0

        return notifications, unread_count

    async def mark_read(self, user_id: uuid.UUID, notification_id: uuid.UUID) -> bool:
        """Mark one of the user's notifications as read. False if it is not theirs."""
        result = await self.db.execute(
            update(Notification)
            .where(Notification.id == notification_id, Notification.user_id == user_id)
            .values(is_read=True)
        )
        return result.rowcount > 0

    async def mark_all_read(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
            .values(is_read=True)
        )
        return result.rowcount


class NotificationDispatcher:
    """
    Turns workflow events into notification rows.

    Resolves each event's audience (one user, every admin, or the team
    leads of a team) and writes one notification per recipient.
    """

    def __init__(self, db: AsyncSession, sink: Optional[NotificationService] = None):
        self.db = db
        self.sink = sink or NotificationService(db)

    async def recipients(self, event: NotificationEvent) -> List[uuid.UUID]:
        if event.audience == Audience.USER:
            return [event.user_id] if event.user_id else []

        if event.audience == Audience.ALL_ADMINS:
            query = select(User.id).where(User.role == UserRoleType.ADMIN.value)
        elif event.audience == Audience.TEAM_LEADS:
            if event.team_id is None:
                return []
            query = select(User.id).where(
                User.role == UserRoleType.TEAM_LEAD.value,
                User.team_id == event.team_id,
            )
        else:
            return []

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def dispatch(self, events: Iterable[NotificationEvent]) -> int:
        """Deliver all events; returns the number of notifications written."""
        delivered = 0
        for event in events:
            try:
                recipients = await self.recipients(event)
            except Exception as e:
                logger.error(f"Could not resolve recipients for {event.type.value}: {e}")
                continue

            for user_id in recipients:
                notification = await self.sink.create(
                    user_id=user_id,
                    message=event.message,
                    type=event.type.value,
                    related_leave_id=event.leave_id,
                )
                if notification is not None:
                    delivered += 1

        logger.debug(f"Dispatched {delivered} notification(s)")
        return delivered

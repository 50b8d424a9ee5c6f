import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Text, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from elms.database import Base
from elms.db_types import UUIDType

if TYPE_CHECKING:
    from elms.models.user import User


class NotificationType(str, Enum):
    """Notification type tags emitted by the leave workflow."""
    LEAVE_APPLIED = "leave_applied"
    LEAVE_PENDING = "leave_pending"
    LEAVE_APPROVED = "leave_approved"
    LEAVE_REJECTED = "leave_rejected"


class Notification(Base):
    """
    In-app notification for a single user. Only ``is_read`` ever changes.
    """
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Recipient
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )

    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False, comment="leave_applied, leave_pending, ...")

    related_leave_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("leaves.id", ondelete="SET NULL"),
        nullable=True
    )

    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    user: Mapped["User"] = relationship("User", back_populates="notifications")

    __table_args__ = (
        Index('ix_notifications_user_unread', 'user_id', 'is_read'),
        Index('ix_notifications_created', 'created_at'),
    )

    def __repr__(self) -> str:
        return f"<Notification(user='{self.user_id}', type='{self.type}', read={self.is_read})>"

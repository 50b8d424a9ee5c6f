"""Leave request model with its two approval stages.

A leave carries one column per approval stage plus a denormalised overall
``status``. The overall status is only ever written by the workflow in
``elms.services.leave_workflow`` so that it stays consistent with the stages.
"""
import uuid
from datetime import datetime, date, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Integer, Text, Date, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from elms.database import Base
from elms.db_types import UUIDType

if TYPE_CHECKING:
    from elms.models.user import User


# ==================== Enums ====================

class LeaveType(str, Enum):
    """Types of leave available."""
    ANNUAL = "annual"
    SICK = "sick"
    CASUAL = "casual"
    UNPAID = "unpaid"
    MATERNITY = "maternity"
    PATERNITY = "paternity"


class ApprovalStatus(str, Enum):
    """State of a single approval stage."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    NOT_APPLICABLE = "na"


class LeaveStatus(str, Enum):
    """Overall leave status."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# ==================== Leave ====================

class Leave(Base):
    """
    Employee leave application and approval.
    """
    __tablename__ = "leaves"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    leave_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="annual, sick, casual, unpaid, maternity, paternity"
    )

    # Leave Period
    from_date: Mapped[date] = mapped_column(Date, nullable=False)
    to_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_days: Mapped[int] = mapped_column(Integer, nullable=False, comment="Business days, minimum 1")

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Workflow
    status: Mapped[str] = mapped_column(
        String(20),
        default=LeaveStatus.PENDING.value,
        nullable=False,
        index=True,
        comment="pending, approved, rejected"
    )
    team_lead_approval: Mapped[str] = mapped_column(
        String(20),
        default=ApprovalStatus.PENDING.value,
        nullable=False,
        comment="pending, approved, rejected, na"
    )
    admin_approval: Mapped[str] = mapped_column(
        String(20),
        default=ApprovalStatus.PENDING.value,
        nullable=False,
        comment="pending, approved, rejected"
    )
    team_lead_comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    admin_comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="leaves")

    __table_args__ = (
        Index("ix_leaves_stage_queue", "admin_approval", "team_lead_approval"),
        Index("ix_leaves_period", "from_date", "to_date"),
    )

    def __repr__(self) -> str:
        return f"<Leave(user='{self.user_id}', type='{self.leave_type}', status='{self.status}')>"

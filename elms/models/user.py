import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, Integer, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from elms.database import Base
from elms.db_types import JSONType, UUIDType

if TYPE_CHECKING:
    from elms.models.leave import Leave
    from elms.models.notification import Notification


class UserRoleType(str, Enum):
    """Roles a user can hold; stored as VARCHAR."""
    EMPLOYEE = "employee"
    TEAM_LEAD = "team_lead"
    ADMIN = "admin"


# Default yearly allowances for a new account
DEFAULT_ANNUAL_BALANCE = 20
DEFAULT_SICK_BALANCE = 10
DEFAULT_CASUAL_BALANCE = 5


class Team(Base):
    """A named group of employees sharing one or more team leads."""
    __tablename__ = "teams"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    members: Mapped[List["User"]] = relationship("User", back_populates="team")

    def __repr__(self) -> str:
        return f"<Team(name='{self.name}')>"


class User(Base):
    """
    User account with its role, team and per-type leave balances.
    Balances only change through final leave approval or an admin edit.
    """
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Credentials
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # Profile
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    skills: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)

    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=UserRoleType.EMPLOYEE.value,
        index=True,
        comment="employee, team_lead, admin"
    )
    team_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("teams.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Leave balances (days)
    leave_balance: Mapped[int] = mapped_column(Integer, default=DEFAULT_ANNUAL_BALANCE, nullable=False)
    sick_leave_balance: Mapped[int] = mapped_column(Integer, default=DEFAULT_SICK_BALANCE, nullable=False)
    casual_leave_balance: Mapped[int] = mapped_column(Integer, default=DEFAULT_CASUAL_BALANCE, nullable=False)

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
    team: Mapped[Optional["Team"]] = relationship("Team", back_populates="members")
    leaves: Mapped[List["Leave"]] = relationship(
        "Leave",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True
    )
    notifications: Mapped[List["Notification"]] = relationship(
        "Notification",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    @property
    def team_name(self) -> Optional[str]:
        return self.team.name if self.team else None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRoleType.ADMIN.value

    @property
    def is_team_lead(self) -> bool:
        return self.role == UserRoleType.TEAM_LEAD.value

    def __repr__(self) -> str:
        return f"<User(email='{self.email}', role='{self.role}')>"

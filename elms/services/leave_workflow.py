"""
Leave Approval State Machine

Every change to a leave's approval columns goes through this module.
Each leave has two stages, team lead then admin, and an overall status
that summarises them:

    team_lead_approval  admin_approval   status
    ------------------  --------------   --------
    pending / na        pending          pending
    approved / na       pending          pending
    rejected            pending          rejected
    approved / na       approved         approved
    any                 rejected         rejected

The functions here do no I/O. They read ORM instances and name ORM columns
(``BALANCE_COLUMNS`` maps leave types to ``User`` attributes) but never
query, flush or modify anything. They check the guards against the leave as
loaded, and return a ``TransitionOutcome`` describing the column changes,
the balance to deduct and the notifications to send. Persisting the
outcome (and dispatching its events) is the caller's job, see
``elms.services.leave_service``.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Optional, List, Dict, Any
import uuid

from elms.models.leave import Leave, LeaveType, LeaveStatus, ApprovalStatus
from elms.models.notification import NotificationType
from elms.models.user import User, UserRoleType


# =============================================================================
# ERRORS AND RESULT TYPES
# =============================================================================

class LeaveTransitionError(Exception):
    """Raised when a requested approval step is not allowed."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class Audience(str, Enum):
    """Who a notification event is addressed to."""
    USER = "user"
    ALL_ADMINS = "all_admins"
    TEAM_LEADS = "team_leads"


@dataclass(frozen=True)
class NotificationEvent:
    """A notification to deliver once the transition has been persisted."""
    audience: Audience
    message: str
    type: NotificationType
    leave_id: Optional[uuid.UUID] = None
    user_id: Optional[uuid.UUID] = None
    team_id: Optional[uuid.UUID] = None

    @classmethod
    def to_user(cls, user_id, message, type, leave_id=None) -> "NotificationEvent":
        return cls(Audience.USER, message, type, leave_id=leave_id, user_id=user_id)

    @classmethod
    def to_admins(cls, message, type, leave_id=None) -> "NotificationEvent":
        return cls(Audience.ALL_ADMINS, message, type, leave_id=leave_id)

    @classmethod
    def to_team_leads(cls, team_id, message, type, leave_id=None) -> "NotificationEvent":
        return cls(Audience.TEAM_LEADS, message, type, leave_id=leave_id, team_id=team_id)


@dataclass
class TransitionOutcome:
    """Result of a workflow step."""
    message: str
    changes: Dict[str, Any] = field(default_factory=dict)
    events: List[NotificationEvent] = field(default_factory=list)
    balance_column: Any = None
    deduct_days: int = 0

    @property
    def deducts_balance(self) -> bool:
        return self.balance_column is not None and self.deduct_days > 0


# =============================================================================
# MESSAGES
# =============================================================================

MSG_TEAM_LEAD_APPLIED = "New leave request from Team Lead requires your approval"
MSG_MEMBER_APPLIED = "New leave request from your team member"
MSG_PENDING_ADMIN = "Leave request approved by Team Lead, pending your final approval"
MSG_PENDING_APPLICANT = "Your leave request has been approved by Team Lead, pending Admin approval"
MSG_APPROVED = "Your leave request has been approved!"
MSG_REJECTED = "Your leave request has been rejected."

ERR_TEAM_LEAD_PROCESSED = "Leave already processed by team lead"
ERR_ADMIN_PROCESSED = "Leave already processed by admin"
ERR_NEEDS_TEAM_LEAD = "Leave needs Team Lead approval first"
ERR_PROCESSED = "Leave already processed"


def rejection_message(comment: Optional[str]) -> str:
    if comment:
        return f"{MSG_REJECTED} Reason: {comment}"
    return MSG_REJECTED


# =============================================================================
# BALANCES
# =============================================================================

# Leave type -> balance column. Types not listed draw on the annual balance;
# None means the type never touches a balance.
BALANCE_COLUMNS = {
    LeaveType.SICK.value: User.sick_leave_balance,
    LeaveType.CASUAL.value: User.casual_leave_balance,
    LeaveType.UNPAID.value: None,
}


def balance_column_for(leave_type: str):
    """ORM column holding the balance a leave type is deducted from."""
    return BALANCE_COLUMNS.get(leave_type, User.leave_balance)


def balance_for(user: User, leave_type: str) -> Optional[int]:
    """The user's remaining balance for a leave type (None for unpaid)."""
    column = balance_column_for(leave_type)
    if column is None:
        return None
    return getattr(user, column.key)


# =============================================================================
# DURATION
# =============================================================================

def count_business_days(from_date: date, to_date: date) -> int:
    """
    Weekdays (Mon-Fri) in the inclusive range, never less than 1.

    A range that covers only a weekend still counts as one day.
    """
    days = 0
    current = from_date
    while current <= to_date:
        if current.weekday() < 5:
            days += 1
        current += timedelta(days=1)
    return max(days, 1)


# =============================================================================
# APPLICATION
# =============================================================================

def new_leave(
    applicant: User,
    leave_type: str,
    from_date: date,
    to_date: date,
    description: Optional[str] = None,
) -> tuple[Leave, TransitionOutcome]:
    """
    Build a new pending leave for ``applicant`` and the events announcing it.

    Team leads skip their own stage (``na``) and go straight to the admins;
    everyone else goes to the team leads of their team. An applicant
    without a team announces to nobody.
    """
    if to_date < from_date:
        raise LeaveTransitionError("to_date must be on or after from_date")

    is_team_lead = applicant.role == UserRoleType.TEAM_LEAD.value
    leave = Leave(
        id=uuid.uuid4(),
        user_id=applicant.id,
        leave_type=leave_type,
        from_date=from_date,
        to_date=to_date,
        total_days=count_business_days(from_date, to_date),
        description=description,
        status=LeaveStatus.PENDING.value,
        team_lead_approval=(
            ApprovalStatus.NOT_APPLICABLE.value if is_team_lead else ApprovalStatus.PENDING.value
        ),
        admin_approval=ApprovalStatus.PENDING.value,
    )

    events = []
    if is_team_lead:
        events.append(NotificationEvent.to_admins(
            MSG_TEAM_LEAD_APPLIED, NotificationType.LEAVE_APPLIED, leave_id=leave.id
        ))
    elif applicant.team_id is not None:
        events.append(NotificationEvent.to_team_leads(
            applicant.team_id, MSG_MEMBER_APPLIED, NotificationType.LEAVE_APPLIED, leave_id=leave.id
        ))

    return leave, TransitionOutcome(
        message="Leave application submitted successfully",
        events=events,
    )


# =============================================================================
# TEAM LEAD STAGE
# =============================================================================

def team_lead_approve(leave: Leave, comment: Optional[str] = None) -> TransitionOutcome:
    if (leave.status != LeaveStatus.PENDING.value
            or leave.team_lead_approval != ApprovalStatus.PENDING.value):
        raise LeaveTransitionError(ERR_TEAM_LEAD_PROCESSED)

    return TransitionOutcome(
        message="Leave approved by team lead",
        changes={
            "team_lead_approval": ApprovalStatus.APPROVED.value,
            "team_lead_comment": comment,
        },
        events=[
            NotificationEvent.to_admins(MSG_PENDING_ADMIN, NotificationType.LEAVE_PENDING, leave_id=leave.id),
            NotificationEvent.to_user(
                leave.user_id, MSG_PENDING_APPLICANT, NotificationType.LEAVE_PENDING, leave_id=leave.id
            ),
        ],
    )


def team_lead_reject(leave: Leave, comment: Optional[str] = None) -> TransitionOutcome:
    if (leave.status != LeaveStatus.PENDING.value
            or leave.team_lead_approval != ApprovalStatus.PENDING.value):
        raise LeaveTransitionError(ERR_PROCESSED)

    return TransitionOutcome(
        message="Leave rejected",
        changes={
            "team_lead_approval": ApprovalStatus.REJECTED.value,
            "team_lead_comment": comment,
            "status": LeaveStatus.REJECTED.value,
        },
        events=[
            NotificationEvent.to_user(
                leave.user_id, rejection_message(comment), NotificationType.LEAVE_REJECTED, leave_id=leave.id
            ),
        ],
    )


# =============================================================================
# ADMIN STAGE
# =============================================================================

def admin_approve(leave: Leave, comment: Optional[str] = None) -> TransitionOutcome:
    if (leave.status != LeaveStatus.PENDING.value
            or leave.admin_approval != ApprovalStatus.PENDING.value):
        raise LeaveTransitionError(ERR_ADMIN_PROCESSED)
    if leave.team_lead_approval not in (ApprovalStatus.APPROVED.value, ApprovalStatus.NOT_APPLICABLE.value):
        raise LeaveTransitionError(ERR_NEEDS_TEAM_LEAD)

    return TransitionOutcome(
        message="Leave approved",
        changes={
            "admin_approval": ApprovalStatus.APPROVED.value,
            "admin_comment": comment,
            "status": LeaveStatus.APPROVED.value,
        },
        events=[
            NotificationEvent.to_user(
                leave.user_id, MSG_APPROVED, NotificationType.LEAVE_APPROVED, leave_id=leave.id
            ),
        ],
        balance_column=balance_column_for(leave.leave_type),
        deduct_days=leave.total_days,
    )


def admin_reject(leave: Leave, comment: Optional[str] = None) -> TransitionOutcome:
    """
    Admins may reject at any stage, including a leave that is already
    approved or rejected. Balances already deducted are not restored.
    """
    return TransitionOutcome(
        message="Leave rejected",
        changes={
            "admin_approval": ApprovalStatus.REJECTED.value,
            "admin_comment": comment,
            "status": LeaveStatus.REJECTED.value,
        },
        events=[
            NotificationEvent.to_user(
                leave.user_id, rejection_message(comment), NotificationType.LEAVE_REJECTED, leave_id=leave.id
            ),
        ],
    )


# =============================================================================
# DISPATCH BY ROLE
# =============================================================================

TRANSITIONS = {
    (UserRoleType.TEAM_LEAD.value, True): team_lead_approve,
    (UserRoleType.TEAM_LEAD.value, False): team_lead_reject,
    (UserRoleType.ADMIN.value, True): admin_approve,
    (UserRoleType.ADMIN.value, False): admin_reject,
}


def can_decide(role: str) -> bool:
    """Can a user with this role approve or reject leaves?"""
    return (role, True) in TRANSITIONS


def decide(leave: Leave, role: str, approve: bool, comment: Optional[str] = None) -> TransitionOutcome:
    """
    Run the approve/reject step belonging to ``role``.

    Raises:
        PermissionError: role has no approval stage
        LeaveTransitionError: the step is not allowed in the leave's current state
    """
    transition = TRANSITIONS.get((role, approve))
    if transition is None:
        raise PermissionError(f"Role '{role}' cannot approve or reject leaves")
    return transition(leave, comment)

"""
Leave Service

Persists leave applications and approval decisions. The rules themselves
live in ``elms.services.leave_workflow``; this service loads the leave,
asks the workflow for an outcome, writes it in the request's transaction
and hands the resulting events to the notification dispatcher.
"""
import logging
import math
from datetime import date, datetime, timezone
from typing import Optional, List, Tuple
import uuid

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from elms.models.leave import Leave, LeaveStatus, ApprovalStatus
from elms.models.user import User, UserRoleType
from elms.services import leave_workflow
from elms.services.leave_workflow import LeaveTransitionError, TransitionOutcome
from elms.services.notification_service import NotificationDispatcher


logger = logging.getLogger(__name__)


class LeaveNotFoundError(Exception):
    def __init__(self, message: str = "Leave not found"):
        self.message = message
        super().__init__(self.message)


class LeaveService:
    """Leave application, approval and listing."""

    def __init__(self, db: AsyncSession, dispatcher: Optional[NotificationDispatcher] = None):
        self.db = db
        self.dispatcher = dispatcher or NotificationDispatcher(db)

    # ==================== Lookup ====================

    async def get_leave(self, leave_id: uuid.UUID, with_user: bool = False) -> Leave:
        query = select(Leave).where(Leave.id == leave_id)
        if with_user:
            query = query.options(joinedload(Leave.user))
        result = await self.db.execute(query)
        leave = result.scalar_one_or_none()
        if leave is None:
            raise LeaveNotFoundError()
        return leave

    # ==================== Apply ====================

    async def apply(
        self,
        applicant: User,
        leave_type: str,
        from_date: date,
        to_date: date,
        description: Optional[str] = None,
    ) -> Leave:
        """Create a pending leave for ``applicant`` and notify the first approver."""
        leave, outcome = leave_workflow.new_leave(applicant, leave_type, from_date, to_date, description)
        self.db.add(leave)
        await self.db.flush()

        logger.info(
            f"Leave {leave.id} applied by {applicant.id}: {leave.leave_type} "
            f"{leave.from_date}..{leave.to_date} ({leave.total_days} day(s))"
        )
        await self.dispatcher.dispatch(outcome.events)
        return leave

    # ==================== Approve / Reject ====================

    async def decide(
        self,
        leave_id: uuid.UUID,
        actor: User,
        approve: bool,
        comment: Optional[str] = None,
    ) -> Tuple[Leave, TransitionOutcome]:
        """
        Apply the actor's approve/reject step to a leave.

        The leave row is only updated if its approval columns still hold the
        values the decision was based on, so two concurrent decisions cannot
        both succeed (and a balance is never deducted twice).

        Raises:
            LeaveNotFoundError: unknown leave
            LeaveTransitionError: step not allowed in the current state
            PermissionError: actor's role has no approval stage
        """
        leave = await self.get_leave(leave_id)
        outcome = leave_workflow.decide(leave, actor.role, approve, comment)

        result = await self.db.execute(
            update(Leave)
            .where(
                Leave.id == leave.id,
                Leave.status == leave.status,
                Leave.team_lead_approval == leave.team_lead_approval,
                Leave.admin_approval == leave.admin_approval,
            )
            .values(**outcome.changes, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise LeaveTransitionError(leave_workflow.ERR_PROCESSED)

        if outcome.deducts_balance:
            column = outcome.balance_column
            await self.db.execute(
                update(User)
                .where(User.id == leave.user_id)
                .values({column: column - outcome.deduct_days})
                .execution_options(synchronize_session=False)
            )
            logger.info(f"Deducted {outcome.deduct_days} day(s) from {column.key} of user {leave.user_id}")

        await self.db.refresh(leave)
        logger.info(
            f"Leave {leave.id} {'approved' if approve else 'rejected'} by {actor.role} {actor.id}; "
            f"status={leave.status}"
        )

        await self.dispatcher.dispatch(outcome.events)
        return leave, outcome

    # ==================== Listings ====================

    async def _paginate(self, query, page: int, size: int) -> Tuple[List[Leave], int, int]:
        count_query = select(func.count()).select_from(query.order_by(None).subquery())
        total = await self.db.scalar(count_query) or 0

        query = (
            query.options(joinedload(Leave.user))
            .order_by(Leave.created_at.desc())
            .offset((page - 1) * size)
            .limit(size)
        )
        result = await self.db.execute(query)
        items = list(result.scalars().all())
        pages = math.ceil(total / size) if total > 0 else 1
        return items, total, pages

    async def list_own(
        self,
        user_id: uuid.UUID,
        status: Optional[str] = None,
        page: int = 1,
        size: int = 20,
    ):
        query = select(Leave).where(Leave.user_id == user_id)
        if status:
            query = query.where(Leave.status == status)
        return await self._paginate(query, page, size)

    async def list_team(
        self,
        team_id: Optional[uuid.UUID],
        status: Optional[str] = None,
        pending_approval: bool = False,
        page: int = 1,
        size: int = 20,
    ):
        """Leaves of the employees in a team; ``pending_approval`` limits to the team lead queue."""
        if team_id is None:
            return [], 0, 1

        query = (
            select(Leave)
            .join(User, Leave.user_id == User.id)
            .where(User.team_id == team_id, User.role == UserRoleType.EMPLOYEE.value)
        )
        if status:
            query = query.where(Leave.status == status)
        if pending_approval:
            query = query.where(Leave.team_lead_approval == ApprovalStatus.PENDING.value)
        return await self._paginate(query, page, size)

    async def list_all(
        self,
        status: Optional[str] = None,
        pending_approval: bool = False,
        page: int = 1,
        size: int = 20,
    ):
        """All leaves; ``pending_approval`` limits to the admin queue."""
        query = select(Leave)
        if status:
            query = query.where(Leave.status == status)
        if pending_approval:
            query = query.where(
                Leave.admin_approval == ApprovalStatus.PENDING.value,
                Leave.status == LeaveStatus.PENDING.value,
                Leave.team_lead_approval.in_([
                    ApprovalStatus.APPROVED.value,
                    ApprovalStatus.NOT_APPLICABLE.value,
                ]),
            )
        return await self._paginate(query, page, size)

"""
Dashboard Service

Read-only, role-specific rollups computed on every request.
"""
from typing import List, Optional
import uuid

from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from elms.models.leave import Leave, LeaveStatus, ApprovalStatus
from elms.models.user import User, UserRoleType
from elms.schemas.dashboard import (
    BalanceSummary,
    LeaveStats,
    TeamStats,
    OwnStats,
    SystemStats,
    UserCounts,
    EmployeeDashboard,
    TeamLeadDashboard,
    AdminDashboard,
)
from elms.schemas.leave import LeaveResponse


EMPLOYEE_RECENT_LEAVES = 5
ADMIN_RECENT_LEAVES = 10


def _count_status(status: LeaveStatus):
    return func.coalesce(func.sum(case((Leave.status == status.value, 1), else_=0)), 0)


class DashboardService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _leave_stats(self, *criteria) -> dict:
        query = select(
            func.count(Leave.id).label("total"),
            _count_status(LeaveStatus.PENDING).label("pending"),
            _count_status(LeaveStatus.APPROVED).label("approved"),
            _count_status(LeaveStatus.REJECTED).label("rejected"),
        ).select_from(Leave)
        if criteria:
            query = query.join(User, Leave.user_id == User.id).where(*criteria)
        row = (await self.db.execute(query)).one()
        return {
            "total": int(row.total or 0),
            "pending": int(row.pending or 0),
            "approved": int(row.approved or 0),
            "rejected": int(row.rejected or 0),
        }

    async def _leaves(self, *criteria, limit: Optional[int] = None) -> List[LeaveResponse]:
        query = (
            select(Leave)
            .join(User, Leave.user_id == User.id)
            .options(joinedload(Leave.user))
            .where(*criteria)
            .order_by(Leave.created_at.desc())
        )
        if limit:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return [LeaveResponse.model_validate(leave) for leave in result.scalars().all()]

    @staticmethod
    def _balances(user: User) -> BalanceSummary:
        return BalanceSummary(
            annual=user.leave_balance,
            sick=user.sick_leave_balance,
            casual=user.casual_leave_balance,
        )

    async def employee(self, user: User) -> EmployeeDashboard:
        stats = await self._leave_stats(Leave.user_id == user.id)
        recent = await self._leaves(Leave.user_id == user.id, limit=EMPLOYEE_RECENT_LEAVES)
        return EmployeeDashboard(
            balances=self._balances(user),
            stats=LeaveStats(**stats),
            recent_leaves=recent,
        )

    async def team_lead(self, user: User) -> TeamLeadDashboard:
        team_members = (User.team_id == user.team_id, User.role == UserRoleType.EMPLOYEE.value)

        if user.team_id is not None:
            pending = await self._leaves(
                *team_members,
                Leave.team_lead_approval == ApprovalStatus.PENDING.value,
            )
            team = await self._leave_stats(*team_members)
        else:
            pending, team = [], {}

        own = await self._leave_stats(Leave.user_id == user.id)
        return TeamLeadDashboard(
            balances=self._balances(user),
            pending_team_leaves=pending,
            team_stats=TeamStats(
                total=team.get("total", 0),
                pending=team.get("pending", 0),
                approved=team.get("approved", 0),
            ),
            own_stats=OwnStats(pending=own["pending"], approved=own["approved"]),
        )

    async def admin(self, user: User) -> AdminDashboard:
        system = await self._leave_stats()
        pending = await self._leaves(
            Leave.admin_approval == ApprovalStatus.PENDING.value,
            Leave.status == LeaveStatus.PENDING.value,
            Leave.team_lead_approval.in_([
                ApprovalStatus.APPROVED.value,
                ApprovalStatus.NOT_APPLICABLE.value,
            ]),
        )

        counts = (await self.db.execute(
            select(
                func.count(User.id).label("total"),
                func.coalesce(func.sum(case((User.role == UserRoleType.EMPLOYEE.value, 1), else_=0)), 0).label("employees"),
                func.coalesce(func.sum(case((User.role == UserRoleType.TEAM_LEAD.value, 1), else_=0)), 0).label("team_leads"),
            ).where(User.role != UserRoleType.ADMIN.value)
        )).one()

        recent = await self._leaves(limit=ADMIN_RECENT_LEAVES)
        return AdminDashboard(
            system_stats=SystemStats(
                total_leaves=system["total"],
                pending=system["pending"],
                approved=system["approved"],
                rejected=system["rejected"],
            ),
            pending_admin_approval=pending,
            user_counts=UserCounts(
                total=int(counts.total or 0),
                employees=int(counts.employees or 0),
                team_leads=int(counts.team_leads or 0),
            ),
            recent_leaves=recent,
        )

    async def for_user(self, user: User):
        if user.role == UserRoleType.ADMIN.value:
            return await self.admin(user)
        if user.role == UserRoleType.TEAM_LEAD.value:
            return await self.team_lead(user)
        return await self.employee(user)

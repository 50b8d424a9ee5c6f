from pydantic import BaseModel

from elms.schemas.leave import LeaveResponse
from typing import List, Literal


class BalanceSummary(BaseModel):
    annual: int
    sick: int
    casual: int


class LeaveStats(BaseModel):
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0


class TeamStats(BaseModel):
    total: int = 0
    pending: int = 0
    approved: int = 0


class OwnStats(BaseModel):
    pending: int = 0
    approved: int = 0


class SystemStats(BaseModel):
    total_leaves: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0


class UserCounts(BaseModel):
    total: int = 0
    employees: int = 0
    team_leads: int = 0


class EmployeeDashboard(BaseModel):
    role: Literal["employee"] = "employee"
    balances: BalanceSummary
    stats: LeaveStats
    recent_leaves: List[LeaveResponse]


class TeamLeadDashboard(BaseModel):
    role: Literal["team_lead"] = "team_lead"
    balances: BalanceSummary
    pending_team_leaves: List[LeaveResponse]
    team_stats: TeamStats
    own_stats: OwnStats


class AdminDashboard(BaseModel):
    role: Literal["admin"] = "admin"
    system_stats: SystemStats
    pending_admin_approval: List[LeaveResponse]
    user_counts: UserCounts
    recent_leaves: List[LeaveResponse]

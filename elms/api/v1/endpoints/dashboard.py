from typing import Union

from fastapi import APIRouter

from elms.api.deps import DB, CurrentUser
from elms.schemas.dashboard import EmployeeDashboard, TeamLeadDashboard, AdminDashboard
from elms.services.dashboard_service import DashboardService


router = APIRouter()


@router.get("", response_model=Union[AdminDashboard, TeamLeadDashboard, EmployeeDashboard])
async def get_dashboard(current_user: CurrentUser, db: DB):
    """
    Role-specific dashboard.

    - employee: balances, own leave stats, 5 most recent leaves
    - team_lead: balances, team queue, team and own stats
    - admin: system stats, admin queue, user counts, 10 most recent leaves
    """
    return await DashboardService(db).for_user(current_user)

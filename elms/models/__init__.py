# Models module - import everything so Base.metadata sees all tables
from elms.models.user import User, Team, UserRoleType
from elms.models.leave import Leave, LeaveType, LeaveStatus, ApprovalStatus
from elms.models.notification import Notification, NotificationType
from elms.models.ai_log import AILog

__all__ = [
    "User",
    "Team",
    "UserRoleType",
    "Leave",
    "LeaveType",
    "LeaveStatus",
    "ApprovalStatus",
    "Notification",
    "NotificationType",
    "AILog",
]

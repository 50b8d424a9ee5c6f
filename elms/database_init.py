"""
Database initialization.

Creates tables on startup and, when enabled, seeds the default teams and
one demo account per role. Seeding only happens while no admin exists, so
it is a no-op on every start after the first.
"""

import logging

from sqlalchemy import select, func

from elms.config import Settings
from elms.core.security import get_password_hash
from elms.database import Database
from elms.models.user import User, Team, UserRoleType

logger = logging.getLogger(__name__)


DEFAULT_TEAMS = ["Engineering", "Marketing", "Human Resources", "Finance"]

DEMO_USERS = [
    {
        "email": "admin@elms.com",
        "password": "admin123",
        "name": "System Admin",
        "role": UserRoleType.ADMIN,
        "team": None,
        "balances": (0, 0, 0),
    },
    {
        "email": "teamlead@elms.com",
        "password": "teamlead123",
        "name": "John Manager",
        "role": UserRoleType.TEAM_LEAD,
        "team": "Engineering",
        "balances": (20, 10, 5),
    },
    {
        "email": "employee@elms.com",
        "password": "employee123",
        "name": "Jane Employee",
        "role": UserRoleType.EMPLOYEE,
        "team": "Engineering",
        "balances": (20, 10, 5),
    },
]


async def seed_demo_data(database: Database) -> bool:
    """
    Insert default teams and demo users if there is no admin yet.

    Returns:
        True if anything was seeded
    """
    async with database.session() as session:
        admin_count = await session.scalar(
            select(func.count(User.id)).where(User.role == UserRoleType.ADMIN.value)
        )
        if admin_count:
            logger.info(f"Found {admin_count} admin(s). Skipping seed.")
            return False

        teams = {}
        for name in DEFAULT_TEAMS:
            team = await session.scalar(select(Team).where(Team.name == name))
            if team is None:
                team = Team(name=name)
                session.add(team)
            teams[name] = team
        await session.flush()

        for account in DEMO_USERS:
            exists = await session.scalar(select(User.id).where(User.email == account["email"]))
            if exists is not None:
                continue
            annual, sick, casual = account["balances"]
            team = teams.get(account["team"]) if account["team"] else None
            session.add(User(
                email=account["email"],
                password_hash=get_password_hash(account["password"]),
                name=account["name"],
                role=account["role"].value,
                team_id=team.id if team else None,
                leave_balance=annual,
                sick_leave_balance=sick,
                casual_leave_balance=casual,
            ))
            logger.info(f"Seeded {account['role'].value} account {account['email']}")

    return True


async def startup_initialization(database: Database, settings: Settings) -> None:
    """Run on application startup."""
    logger.info("Starting database initialization...")
    await database.create_all()

    if settings.SEED_DEMO_DATA:
        await seed_demo_data(database)

    logger.info("Database initialization complete")

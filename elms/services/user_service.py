"""
User and Team Service

Partial updates are filtered through an explicit allow-list that depends
on who is making the change: users may edit a few of their own profile
fields, admins may also move people between teams, change roles and
adjust balances.
"""
import logging
import math
from typing import Optional, List, Dict, Any, FrozenSet, Tuple
import uuid

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from elms.core.security import get_password_hash
from elms.models.user import User, Team, UserRoleType
from elms.schemas.user import UserCreate, UserUpdate, ProfileUpdate


logger = logging.getLogger(__name__)


# ==================== Update allow-lists ====================

SELF_UPDATABLE_FIELDS: FrozenSet[str] = frozenset({"name", "phone"})

ADMIN_UPDATABLE_FIELDS: FrozenSet[str] = SELF_UPDATABLE_FIELDS | frozenset({
    "role",
    "team_id",
    "leave_balance",
    "sick_leave_balance",
    "casual_leave_balance",
})

PROFILE_UPDATABLE_FIELDS: FrozenSet[str] = frozenset({"name", "phone", "skills"})

# Columns that may not be cleared with an explicit null
NON_NULLABLE_FIELDS: FrozenSet[str] = frozenset({
    "name",
    "role",
    "leave_balance",
    "sick_leave_balance",
    "casual_leave_balance",
})


def allowed_update_fields(actor: User, target_id: uuid.UUID) -> FrozenSet[str]:
    """Fields ``actor`` may change on user ``target_id``; empty if none."""
    if actor.role == UserRoleType.ADMIN.value:
        return ADMIN_UPDATABLE_FIELDS
    if actor.id == target_id:
        return SELF_UPDATABLE_FIELDS
    return frozenset()


def filter_updates(data: Dict[str, Any], allowed: FrozenSet[str]) -> Dict[str, Any]:
    """Keep only allowed fields, dropping nulls for required columns."""
    updates = {}
    for key, value in data.items():
        if key not in allowed:
            continue
        if value is None and key in NON_NULLABLE_FIELDS:
            continue
        if isinstance(value, UserRoleType):
            value = value.value
        updates[key] = value
    return updates


class UserServiceError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class UserService:
    """User and team administration."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== Users ====================

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        """Load a user with their team; always re-reads the row."""
        result = await self.db.execute(
            select(User)
            .options(joinedload(User.team))
            .where(User.id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_users(self, page: int = 1, size: int = 50, role: Optional[str] = None) -> Tuple[List[User], int, int]:
        query = select(User)
        if role:
            query = query.where(User.role == role)

        total = await self.db.scalar(select(func.count()).select_from(query.subquery())) or 0
        result = await self.db.execute(
            query.options(joinedload(User.team))
            .order_by(User.created_at.desc())
            .offset((page - 1) * size)
            .limit(size)
        )
        users = list(result.scalars().all())
        pages = math.ceil(total / size) if total > 0 else 1
        return users, total, pages

    async def _ensure_team_exists(self, team_id: Optional[uuid.UUID]) -> None:
        if team_id is not None and await self.db.get(Team, team_id) is None:
            raise UserServiceError("Team not found")

    async def create_user(self, data: UserCreate) -> User:
        email = data.email.lower()
        existing = await self.db.scalar(select(User.id).where(User.email == email))
        if existing is not None:
            raise UserServiceError("Email already exists")
        await self._ensure_team_exists(data.team_id)

        user = User(
            email=email,
            password_hash=get_password_hash(data.password),
            name=data.name,
            role=data.role.value,
            team_id=data.team_id,
            phone=data.phone,
            leave_balance=data.leave_balance,
            sick_leave_balance=data.sick_leave_balance,
            casual_leave_balance=data.casual_leave_balance,
        )
        self.db.add(user)
        try:
            await self.db.flush()
        except IntegrityError:
            raise UserServiceError("Email already exists")

        logger.info(f"Created user {user.id} ({user.role})")
        return await self.get_user(user.id)

    async def update_user(self, actor: User, target_id: uuid.UUID, data: UserUpdate) -> User:
        allowed = allowed_update_fields(actor, target_id)
        if not allowed:
            raise UserServiceError("Forbidden - Insufficient permissions", status_code=403)

        user = await self.get_user(target_id)
        if user is None:
            raise UserServiceError("User not found", status_code=404)

        updates = filter_updates(data.model_dump(exclude_unset=True), allowed)
        if not updates:
            raise UserServiceError("No fields to update")
        if "team_id" in updates:
            await self._ensure_team_exists(updates["team_id"])

        for field, value in updates.items():
            setattr(user, field, value)
        await self.db.flush()

        logger.info(f"User {target_id} updated by {actor.id}: {sorted(updates)}")
        return await self.get_user(target_id)

    async def update_profile(self, user: User, data: ProfileUpdate) -> User:
        updates = filter_updates(data.model_dump(exclude_unset=True), PROFILE_UPDATABLE_FIELDS)
        if not updates:
            raise UserServiceError("No fields to update")

        for field, value in updates.items():
            setattr(user, field, value)
        await self.db.flush()
        return await self.get_user(user.id)

    async def delete_user(self, actor: User, target_id: uuid.UUID) -> None:
        if actor.id == target_id:
            raise UserServiceError("Cannot delete yourself")

        user = await self.db.get(User, target_id)
        if user is None:
            raise UserServiceError("User not found", status_code=404)

        await self.db.delete(user)
        await self.db.flush()
        logger.info(f"User {target_id} deleted by {actor.id}")

    # ==================== Teams ====================

    async def list_teams(self) -> List[Team]:
        result = await self.db.execute(select(Team).order_by(Team.name))
        return list(result.scalars().all())

    async def create_team(self, name: str) -> Team:
        name = (name or "").strip()
        if not name:
            raise UserServiceError("Team name is required")

        existing = await self.db.scalar(select(Team.id).where(Team.name == name))
        if existing is not None:
            raise UserServiceError("Team already exists")

        team = Team(name=name)
        self.db.add(team)
        await self.db.flush()
        logger.info(f"Created team {team.name}")
        return team

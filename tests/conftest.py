from typing import Optional, List

import pytest
from httpx import AsyncClient, ASGITransport

from elms.api.deps import get_ai_client
from elms.config import Settings
from elms.core.security import get_password_hash, create_user_token
from elms.main import create_app
from elms.models.user import User, Team, UserRoleType
from elms.services.ai.gemini_client import AIServiceError


class FakeAIClient:
    """Stands in for GeminiClient: returns queued replies and records prompts."""

    def __init__(self):
        self.replies: List[str] = []
        self.prompts: List[str] = []
        self.error: Optional[Exception] = None

    @property
    def configured(self) -> bool:
        return True

    def reply_with(self, *replies: str) -> None:
        self.replies.extend(replies)

    def fail_with(self, message: str = "model unavailable") -> None:
        self.error = AIServiceError(message)

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        if not self.replies:
            raise AIServiceError("no reply queued")
        return self.replies.pop(0)


@pytest.fixture
def settings():
    return Settings(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        SECRET_KEY="test-secret-key",
        SEED_DEMO_DATA=False,
        GEMINI_API_KEY=None,
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def fake_ai():
    return FakeAIClient()


@pytest.fixture
async def app(settings, fake_ai):
    app = create_app(settings)
    app.dependency_overrides[get_ai_client] = lambda: fake_ai
    async with app.router.lifespan_context(app):
        yield app


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def db(app):
    """Open a committed unit of work against the app's database."""
    return app.state.db.session


@pytest.fixture
def make_user(db):
    async def _make_user(
        email: str,
        role: UserRoleType = UserRoleType.EMPLOYEE,
        team: Optional[Team] = None,
        password: str = "secret123",
        name: Optional[str] = None,
        **fields,
    ) -> User:
        async with db() as session:
            user = User(
                email=email,
                password_hash=get_password_hash(password),
                name=name or email.split("@")[0].replace(".", " ").title(),
                role=role.value,
                team_id=team.id if team else None,
                **fields,
            )
            session.add(user)
            await session.flush()
        return user
    return _make_user


@pytest.fixture
def make_team(db):
    async def _make_team(name: str) -> Team:
        async with db() as session:
            team = Team(name=name)
            session.add(team)
            await session.flush()
        return team
    return _make_team


@pytest.fixture
def auth(settings):
    """Authorization headers for a user."""
    def _auth(user: User) -> dict:
        return {"Authorization": f"Bearer {create_user_token(settings, user)}"}
    return _auth


@pytest.fixture
async def team(make_team):
    return await make_team("Engineering")


@pytest.fixture
async def admin(make_user):
    return await make_user("admin@elms.com", UserRoleType.ADMIN, name="System Admin")


@pytest.fixture
async def team_lead(make_user, team):
    return await make_user("lead@elms.com", UserRoleType.TEAM_LEAD, team=team, name="John Manager")


@pytest.fixture
async def employee(make_user, team):
    return await make_user("jane@elms.com", UserRoleType.EMPLOYEE, team=team, name="Jane Employee")


@pytest.fixture
def get_user(db):
    async def _get_user(user_id) -> Optional[User]:
        async with db() as session:
            return await session.get(User, user_id)
    return _get_user

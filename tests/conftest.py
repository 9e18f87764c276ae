from __future__ import annotations

import os

os.environ.setdefault("TASKVISION_ENVIRONMENT", "test")
os.environ.setdefault("TASKVISION_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("TASKVISION_JWT_SECRET_KEY", "test-secret-key")

from collections.abc import AsyncIterator, Callable, Sequence  # noqa: E402
from datetime import datetime  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402
from sqlmodel.ext.asyncio.session import AsyncSession  # noqa: E402

from taskvision.core.config import get_settings  # noqa: E402
from taskvision.core.security import create_access_token  # noqa: E402
from taskvision.deps import get_db_session  # noqa: E402
from taskvision.main import create_app  # noqa: E402
from taskvision.models import (  # noqa: E402
    AssignmentType,
    Task,
    TaskAssignee,
    TaskStatus,
    Team,
    TeamMember,
    User,
    UserRole,
)

# A fixed site used by geofence scenarios; one degree of latitude is
# 2 * pi * R / 360 meters on the haversine sphere.
SITE_LAT = 6.9271
SITE_LNG = 79.8612
METERS_PER_DEGREE_LAT = 6_371_000.0 * 3.141592653589793 / 180


def north_of_site(meters: float) -> tuple[float, float]:
    return SITE_LAT + meters / METERS_PER_DEGREE_LAT, SITE_LNG


class Seeder:
    """Insert fixtures straight through the session, bypassing the services."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def user(
        self,
        email: str,
        *,
        role: UserRole = UserRole.EMPLOYEE,
        is_active: bool = True,
    ) -> User:
        account = User(email=email, full_name=email.split("@")[0].title(), role=role, is_active=is_active)
        self.session.add(account)
        await self.session.commit()
        await self.session.refresh(account)
        return account

    async def team(self, name: str, leader: User, members: Sequence[User] = ()) -> Team:
        team = Team(name=name, leader_id=leader.id)
        self.session.add(team)
        await self.session.flush()
        for member in members:
            self.session.add(TeamMember(team_id=team.id, user_id=member.id))
        await self.session.commit()
        await self.session.refresh(team)
        return team

    async def task(
        self,
        creator: User,
        *,
        title: str = "Inspect pump station",
        assignees: Sequence[User] = (),
        team: Team | None = None,
        geofence_radius: int | None = None,
        estimate_minutes: int | None = None,
        due_date: datetime | None = None,
        status: TaskStatus = TaskStatus.NOT_STARTED,
    ) -> Task:
        task = Task(
            title=title,
            created_by_id=creator.id,
            assignment_type=AssignmentType.TEAM if team is not None else AssignmentType.INDIVIDUAL,
            assigned_team_id=team.id if team is not None else None,
            location_lat=SITE_LAT if geofence_radius is not None else None,
            location_lng=SITE_LNG if geofence_radius is not None else None,
            location_radius_meters=geofence_radius,
            estimate_minutes=estimate_minutes,
            due_date=due_date,
            status=status,
        )
        self.session.add(task)
        await self.session.flush()
        for assignee in assignees:
            self.session.add(TaskAssignee(task_id=task.id, user_id=assignee.id))
        await self.session.commit()
        await self.session.refresh(task)
        return task


@pytest_asyncio.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as connection:
        await connection.run_sync(SQLModel.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as db_session:
        try:
            yield db_session
        finally:
            if db_session.in_transaction():
                await db_session.rollback()


@pytest.fixture
def seed(session: AsyncSession) -> Seeder:
    return Seeder(session)


@pytest_asyncio.fixture
async def app(session: AsyncSession) -> AsyncIterator[FastAPI]:
    application = create_app()

    async def _override_db_session() -> AsyncIterator[AsyncSession]:
        yield session

    application.dependency_overrides[get_db_session] = _override_db_session
    try:
        yield application
    finally:
        application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client


@pytest.fixture
def auth_headers() -> Callable[[User], dict[str, str]]:
    settings = get_settings()

    def _headers(user: User) -> dict[str, str]:
        token = create_access_token(subject=user.id, roles=[user.role.value], settings=settings)
        return {"Authorization": f"Bearer {token.token}"}

    return _headers

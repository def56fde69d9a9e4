"""Pytest configuration and fixtures for engine and API tests."""
import os
import tempfile
from pathlib import Path

# Set test env BEFORE any imports that use config. A file database (not
# :memory:) so concurrent sessions get separate connections.
_db_dir = tempfile.mkdtemp(prefix="meet-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{Path(_db_dir) / 'test.db'}"
os.environ["ORG_TEAM_CODES"] = "CFG01:1"

import pytest
from httpx import ASGITransport, AsyncClient

from meet.engine import RegistrationEngine
from meet.models import (
    Athlete,
    Event,
    EventType,
    Group,
    GroupEventMapping,
    Registration,
    RegistrationStatus,
    Team,
)
from meet.models.base import async_session_factory, drop_db, engine, init_db
from meet.services.catalog import TeamDirectory
from web.api.main import app
from web.api.routes import get_engine


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
async def _init_db():
    """Fresh schema per test (ASGI lifespan doesn't run with httpx)."""
    await drop_db()
    await init_db()
    yield
    await engine.dispose()


@pytest.fixture
async def session():
    async with async_session_factory() as s:
        yield s


@pytest.fixture
def reg_engine():
    """Engine with its own lock registry so no lock outlives the test's event loop."""
    return RegistrationEngine(directory=TeamDirectory({"CFG01": 1}))


@pytest.fixture
async def client(reg_engine):
    """Async HTTP client for testing the API."""
    app.dependency_overrides[get_engine] = lambda: reg_engine
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


class Seed:
    """Creates committed reference rows for a test."""

    async def _add(self, obj):
        async with async_session_factory() as s:
            s.add(obj)
            await s.commit()
            await s.refresh(obj)
        return obj

    async def group(self, name="Grade 10 Boys", **limits) -> Group:
        return await self._add(Group(name=name, **limits))

    async def team(self, group=None, name="North High", org_code=None, **kw) -> Team:
        return await self._add(
            Team(name=name, org_code=org_code, group_id=group.id if group else None, **kw)
        )

    async def event(self, name="100m", groups=(), mandatory=False, event_type=EventType.INDIVIDUAL) -> Event:
        event = await self._add(Event(name=name, event_type=event_type))
        for group in groups:
            await self.map(group, event, mandatory=mandatory)
        return event

    async def map(self, group, event, mandatory=False) -> GroupEventMapping:
        return await self._add(GroupEventMapping(group_id=group.id, event_id=event.id, is_mandatory=mandatory))

    async def athlete(self, team, group=None, name="Alex Park", id_number=None) -> Athlete:
        group_id = group.id if group else team.group_id
        return await self._add(Athlete(team_id=team.id, group_id=group_id, name=name, id_number=id_number))

    async def registration(
        self, team, group, event=None, athlete=None, status=RegistrationStatus.CONFIRMED
    ) -> Registration:
        return await self._add(
            Registration(
                team_id=team.id,
                group_id=group.id,
                event_id=event.id if event else None,
                athlete_id=athlete.id if athlete else None,
                status=status,
            )
        )


@pytest.fixture
def seed():
    return Seed()

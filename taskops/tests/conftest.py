"""
Test fixtures - fresh SQLite database per test + seeded organization, workers and tags
"""
import os

os.environ.setdefault("TIMEZONE", "UTC")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("EMAIL_USER", "")
os.environ.setdefault("VAPID_PRIVATE_KEY", "")

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from taskops.database import Base
from taskops.main import app
from taskops.models.organization import Organization, User
from taskops.models.tag import Tag
from taskops.models.task import Task, TaskAssignment, TaskTag


@pytest_asyncio.fixture()
async def session_factory(tmp_path):
    """Session factory bound to a throwaway SQLite file (every stage opens its own sessions)"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def seed_data(db_session):
    """Insert baseline test data: one restaurant, a manager, two workers, two tags"""
    org = Organization(name="Main Street Bistro", location="Main St 123")
    db_session.add(org)
    await db_session.flush()

    manager = User(organization_id=org.id, email="manager@bistro.test", name="Manager", role="admin")
    alice = User(organization_id=org.id, email="alice@bistro.test", name="Alice", role="worker")
    bob = User(organization_id=org.id, email="bob@bistro.test", name="Bob", role="worker")
    db_session.add_all([manager, alice, bob])
    await db_session.flush()

    kitchen = Tag(organization_id=org.id, name="kitchen", color="#f59e0b", created_by=manager.id)
    opening = Tag(organization_id=org.id, name="opening", color="#3b82f6", created_by=manager.id)
    db_session.add_all([kitchen, opening])
    await db_session.commit()

    return {
        "org": org,
        "manager": manager,
        "alice": alice,
        "bob": bob,
        "kitchen": kitchen,
        "opening": opening,
    }


@pytest_asyncio.fixture()
async def make_task(db_session, seed_data):
    """Factory inserting a task with optional assignees and tags"""

    async def _make(assignees=(), tags=(), **fields):
        fields.setdefault("organization_id", seed_data["org"].id)
        fields.setdefault("title", "Clean the grill")
        fields.setdefault("created_by", seed_data["manager"].id)
        task = Task(**fields)
        db_session.add(task)
        await db_session.flush()
        for user in assignees:
            db_session.add(TaskAssignment(task_id=task.id, user_id=user.id))
        for tag in tags:
            db_session.add(TaskTag(task_id=task.id, tag_id=tag.id))
        await db_session.commit()
        await db_session.refresh(task)
        return task

    return _make


@pytest_asyncio.fixture()
async def client():
    """httpx AsyncClient bound to the FastAPI app"""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac

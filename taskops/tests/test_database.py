"""
Schema bootstrap and logging setup
"""
import logging

from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import create_async_engine

from taskops.config import get_settings
from taskops.database import init_schema
from taskops.utils.logger import get_logger


async def _columns(engine, table):
    async with engine.connect() as conn:
        return await conn.run_sync(lambda sync_conn: {c["name"] for c in inspect(sync_conn).get_columns(table)})


async def test_init_schema_upgrades_legacy_tasks_table(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'legacy.db'}")
    async with engine.begin() as conn:
        await conn.execute(text(
            "CREATE TABLE tasks (id INTEGER PRIMARY KEY, organization_id INTEGER NOT NULL, "
            "title VARCHAR NOT NULL, priority VARCHAR NOT NULL, status VARCHAR NOT NULL, "
            "due_date TIMESTAMP, created_at TIMESTAMP, updated_at TIMESTAMP)"
        ))
        await conn.execute(text(
            "INSERT INTO tasks (organization_id, title, priority, status) "
            "VALUES (1, 'Polish cutlery', 'low', 'completed')"
        ))

    try:
        added = await init_schema(engine)

        assert added == [
            "tasks.completed_at",
            "tasks.verified_at",
            "tasks.verified_by",
            "tasks.recurrence",
            "tasks.last_reminder_sent_at",
        ]
        assert {"recurrence", "last_reminder_sent_at"} <= await _columns(engine, "tasks")
        async with engine.connect() as conn:
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        assert "scheduler_markers" in tables
        async with engine.connect() as conn:
            recurrence = (await conn.execute(text("SELECT recurrence FROM tasks"))).scalar()
        assert recurrence == "once"

        # second run finds nothing to do
        assert await init_schema(engine) == []
    finally:
        await engine.dispose()


def test_logger_level_follows_settings(monkeypatch):
    settings = get_settings()
    monkeypatch.setattr(settings, "DEBUG", False)
    monkeypatch.setattr(settings, "LOG_LEVEL", "warning")

    logger = get_logger("taskops.tests.level")
    assert logger.level == logging.WARNING

    monkeypatch.setattr(settings, "LOG_LEVEL", "chatty")
    assert get_logger("taskops.tests.level").level == logging.INFO

    monkeypatch.setattr(settings, "DEBUG", True)
    assert get_logger("taskops.tests.level").level == logging.DEBUG
    assert len(logger.handlers) == 1

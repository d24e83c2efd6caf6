"""
Database configuration and session management
"""
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from taskops.config import get_settings
from taskops.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)


def _get_async_url(url: str) -> str:
    """Convert database URL to async variant"""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://")
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://")
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///")
    return url


# Create async engine
database_url = _get_async_url(settings.DATABASE_URL)
is_sqlite = database_url.startswith("sqlite")

engine_kwargs = {
    "echo": settings.DEBUG,
    "future": True,
}

# SQLite doesn't support pool_size
if not is_sqlite:
    engine_kwargs["pool_size"] = 20
    engine_kwargs["max_overflow"] = 10

engine = create_async_engine(database_url, **engine_kwargs)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)

# Base class for models
Base = declarative_base()

# Columns added after the first release (create_all doesn't ALTER tables)
COLUMN_MIGRATIONS = [
    ("tasks", "completed_at", "TIMESTAMP"),
    ("tasks", "verified_at", "TIMESTAMP"),
    ("tasks", "verified_by", "INTEGER"),
    ("tasks", "recurrence", "VARCHAR DEFAULT 'once'"),
    ("tasks", "last_reminder_sent_at", "TIMESTAMP"),
]


async def run_column_migrations(bind: Optional[AsyncEngine] = None) -> List[str]:
    """Add any missing COLUMN_MIGRATIONS column. Returns the columns added."""
    added = []
    async with (bind or engine).connect() as conn:
        for table, column, col_type in COLUMN_MIGRATIONS:
            try:
                await conn.execute(text(f"SELECT {column} FROM {table} LIMIT 1"))
                await conn.rollback()
            except Exception:
                await conn.rollback()
                try:
                    await conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {col_type}"))
                    await conn.commit()
                    added.append(f"{table}.{column}")
                    logger.info(f"Added column {table}.{column}")
                except Exception as e:
                    await conn.rollback()
                    logger.warning(f"Could not add column {table}.{column}: {e}")
    return added


async def init_schema(bind: Optional[AsyncEngine] = None) -> List[str]:
    """Create missing tables, then apply the additive column migrations"""
    from taskops import models  # noqa: F401 - register all tables on Base.metadata

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return await run_column_migrations(bind)

"""
Main FastAPI application
"""
import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from taskops.config import get_settings
from taskops.database import engine, init_schema
from taskops.api import cron
from taskops.services.lifecycle import start_lifecycle_scheduler
from taskops.services.push_scheduler import start_push_scheduler

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    added = await init_schema()
    logger.info(f"Database ready ({len(added)} column migration(s) applied)")

    background = [
        asyncio.create_task(start_lifecycle_scheduler()),
        asyncio.create_task(start_push_scheduler()),
    ]

    yield

    for task in background:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    await engine.dispose()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(cron.router, prefix="/api/cron", tags=["Cron"])


@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "taskops.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )

"""
Lifecycle orchestrator - one pass of the task lifecycle engine.

run_lifecycle_pass() is what the external cron trigger calls (hourly is
enough). Stages always run in this order and never take each other down:

    1. expiration reminders
    2. recurring task regeneration (once per day / week / month)
    3. retention cleanup of old finished tasks
"""
import asyncio
from datetime import datetime
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from taskops.config import get_settings
from taskops.database import AsyncSessionLocal
from taskops.models.task import Recurrence
from taskops.services.clock import utcnow, to_local, day_key, week_key, month_key
from taskops.services.expiration import check_for_expiring_tasks
from taskops.services.gateway import gateway_scope
from taskops.services.notifications import NotificationTransport, DefaultNotificationTransport
from taskops.services.recurrence import process_recurrence_type
from taskops.services.retention import cleanup_old_completed_tasks
from taskops.utils.logger import get_logger

logger = get_logger(__name__)


def recurrence_marker_name(recurrence: str) -> str:
    return f"recurrence:{recurrence}"


def due_recurrence_periods(now: datetime) -> list[tuple[str, str]]:
    """
    (recurrence, period key) pairs that may run at this instant.

    Daily always; weekly only on the configured weekday; monthly only on the
    first day of the month.
    """
    settings = get_settings()
    local = to_local(now)
    periods = [(Recurrence.DAILY.value, day_key(now))]
    if local.weekday() == settings.WEEKLY_RECURRENCE_WEEKDAY:
        periods.append((Recurrence.WEEKLY.value, week_key(now)))
    if local.day == 1:
        periods.append((Recurrence.MONTHLY.value, month_key(now)))
    return periods


async def process_due_recurrences(session_factory: async_sessionmaker, now: datetime) -> dict:
    """Regenerate each recurrence type whose current period has not been processed yet"""
    results = {}
    for recurrence, period_key in due_recurrence_periods(now):
        marker = recurrence_marker_name(recurrence)
        async with gateway_scope(session_factory) as gateway:
            last_key = await gateway.get_marker(marker)
        if last_key == period_key:
            results[recurrence] = {"status": "skipped", "period": period_key}
            continue

        report = await process_recurrence_type(session_factory, recurrence, now)
        report["period"] = period_key
        results[recurrence] = report

        # A failed scan leaves the period open so the next pass retries it
        if report["status"] == "ok":
            async with gateway_scope(session_factory) as gateway:
                await gateway.set_marker(marker, period_key, now)
    return results


async def _run_stage(name: str, stage: Callable[[], Awaitable[dict]]) -> dict:
    try:
        return await stage()
    except Exception as e:
        logger.exception(f"Lifecycle stage '{name}' failed")
        return {"status": "error", "error": str(e)}


async def run_lifecycle_pass(
    now: Optional[datetime] = None,
    session_factory: Optional[async_sessionmaker] = None,
    transport: Optional[NotificationTransport] = None,
) -> dict:
    """Run expiration reminders, recurrence regeneration and retention cleanup"""
    now = now or utcnow()
    session_factory = session_factory or AsyncSessionLocal
    transport = transport or DefaultNotificationTransport(session_factory)

    results = {
        "expiration": await _run_stage(
            "expiration", lambda: check_for_expiring_tasks(session_factory, transport, now)
        ),
        "recurrence": await _run_stage(
            "recurrence", lambda: process_due_recurrences(session_factory, now)
        ),
        "retention": await _run_stage(
            "retention", lambda: cleanup_old_completed_tasks(session_factory, now)
        ),
    }

    for stage, result in results.items():
        if result.get("status") == "error":
            logger.error(f"Lifecycle pass at {now.isoformat()}: stage '{stage}' failed: {result.get('error')}")
    logger.info(f"Lifecycle pass complete at {now.isoformat()}")
    return results


async def start_lifecycle_scheduler():
    """Background loop running the lifecycle pass at a configured interval."""
    settings = get_settings()

    if not settings.LIFECYCLE_SCHEDULER_ENABLED:
        logger.info("Lifecycle scheduler disabled - relying on the external cron trigger")
        return

    interval = max(settings.LIFECYCLE_INTERVAL_MIN, 1) * 60
    logger.info(f"Lifecycle scheduler started: running every {settings.LIFECYCLE_INTERVAL_MIN} min")

    while True:
        try:
            await run_lifecycle_pass()
        except Exception as e:
            logger.error(f"Lifecycle scheduler error: {e}")

        await asyncio.sleep(interval)

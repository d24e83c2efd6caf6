"""
Time-of-day push reminders.

A morning nudge to get through the day's tasks and an evening nudge to
verify finished ones, each broadcast once per local day within the first few
minutes of its hour. Missed windows are simply skipped.
"""
import asyncio
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from taskops.config import get_settings
from taskops.database import AsyncSessionLocal
from taskops.services.clock import utcnow, to_local, day_key
from taskops.services.gateway import gateway_scope
from taskops.services.notifications import NotificationTransport, DefaultNotificationTransport
from taskops.utils.logger import get_logger

logger = get_logger(__name__)


def _slots():
    settings = get_settings()
    return [
        ("morning", settings.MORNING_PUSH_HOUR, settings.MORNING_PUSH_TITLE, settings.MORNING_PUSH_BODY),
        ("evening", settings.EVENING_PUSH_HOUR, settings.EVENING_PUSH_TITLE, settings.EVENING_PUSH_BODY),
    ]


async def check_and_send_scheduled_notifications(
    session_factory: Optional[async_sessionmaker] = None,
    now: Optional[datetime] = None,
    transport: Optional[NotificationTransport] = None,
) -> dict:
    """Broadcast whichever time-of-day reminder is due and not yet sent today"""
    settings = get_settings()
    now = now or utcnow()
    session_factory = session_factory or AsyncSessionLocal
    transport = transport or DefaultNotificationTransport(session_factory)

    local = to_local(now)
    today = day_key(now)
    sent = {}

    for slot, hour, title, body in _slots():
        if local.hour != hour or local.minute >= settings.PUSH_WINDOW_MINUTES:
            continue

        marker = f"push:{slot}"
        async with gateway_scope(session_factory) as gateway:
            if await gateway.get_marker(marker) == today:
                continue

        logger.info(f"Sending {slot} notification (local time {local:%H:%M})")
        try:
            result = await asyncio.wait_for(
                transport.broadcast_push(title, body, f"{slot}-reminder"),
                timeout=settings.TRANSPORT_TIMEOUT_SECONDS,
            )
        except Exception:
            logger.exception(f"{slot.capitalize()} notification failed")
            result = {"success_count": 0, "fail_count": 0, "error": True}

        async with gateway_scope(session_factory) as gateway:
            await gateway.set_marker(marker, today, now)
        sent[slot] = result

    return sent


async def start_push_scheduler():
    """Background loop checking the time-of-day reminders roughly once a minute."""
    settings = get_settings()

    if not settings.PUSH_SCHEDULER_ENABLED:
        logger.info("Push scheduler disabled")
        return

    logger.info(
        f"Push scheduler started: morning {settings.MORNING_PUSH_HOUR}:00, "
        f"evening {settings.EVENING_PUSH_HOUR}:00 ({settings.TIMEZONE})"
    )

    while True:
        try:
            await check_and_send_scheduled_notifications()
        except Exception as e:
            logger.error(f"Push scheduler error: {e}")

        await asyncio.sleep(max(settings.PUSH_CHECK_INTERVAL_SEC, 10))

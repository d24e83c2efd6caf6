"""
Web Push delivery (VAPID) to the browser subscriptions stored per user.

Endpoints the push service reports as gone (404/410) are deleted.
"""
import asyncio
import json
from typing import Dict, List

from pywebpush import webpush, WebPushException
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import async_sessionmaker

from taskops.config import get_settings
from taskops.models.push_subscription import PushSubscription
from taskops.utils.logger import get_logger

logger = get_logger(__name__)


def _vapid_claims() -> Dict[str, str]:
    settings = get_settings()
    subject = settings.VAPID_SUBJECT or settings.EMAIL_FROM or "admin@example.com"
    if not subject.startswith("mailto:"):
        subject = f"mailto:{subject}"
    return {"sub": subject}


def _build_payload(title: str, body: str, tag: str, require_interaction: bool) -> str:
    return json.dumps({
        "title": title,
        "body": body,
        "icon": "/favicon.svg",
        "badge": "/favicon.svg",
        "tag": tag,
        "requireInteraction": require_interaction,
    })


def _send_web_push(subscription: Dict, payload: str) -> None:
    settings = get_settings()
    webpush(
        subscription_info=subscription,
        data=payload,
        vapid_private_key=settings.VAPID_PRIVATE_KEY,
        vapid_claims=_vapid_claims(),
    )


async def _deliver(
    session_factory: async_sessionmaker,
    subscriptions: List[PushSubscription],
    payload: str,
) -> Dict[str, int]:
    success_count = 0
    fail_count = 0
    gone: List[str] = []
    loop = asyncio.get_running_loop()

    for sub in subscriptions:
        subscription_info = {
            "endpoint": sub.endpoint,
            "keys": {"p256dh": sub.p256dh, "auth": sub.auth},
        }
        try:
            await loop.run_in_executor(None, _send_web_push, subscription_info, payload)
            success_count += 1
        except WebPushException as e:
            fail_count += 1
            status_code = e.response.status_code if e.response is not None else None
            logger.error(f"Push notification failed for endpoint {sub.endpoint}: {e}")
            if status_code in (404, 410):
                gone.append(sub.endpoint)
        except Exception as e:
            fail_count += 1
            logger.error(f"Push notification failed for endpoint {sub.endpoint}: {e}")

    if gone:
        async with session_factory() as db:
            await db.execute(delete(PushSubscription).where(PushSubscription.endpoint.in_(gone)))
            await db.commit()
        logger.info(f"Removed {len(gone)} expired push subscription(s)")

    return {"success_count": success_count, "fail_count": fail_count}


async def send_notification_to_user(
    session_factory: async_sessionmaker,
    user_id: int,
    title: str,
    body: str,
    tag: str = "task-reminder",
) -> Dict[str, int]:
    """Push to every subscription of one user"""
    if not get_settings().VAPID_PRIVATE_KEY:
        logger.debug("Push notifications disabled - VAPID_PRIVATE_KEY not configured")
        return {"success_count": 0, "fail_count": 0}

    async with session_factory() as db:
        result = await db.execute(
            select(PushSubscription).where(PushSubscription.user_id == user_id)
        )
        subscriptions = list(result.scalars().all())

    payload = _build_payload(title, body, tag, require_interaction=True)
    return await _deliver(session_factory, subscriptions, payload)


async def send_notification_to_all(
    session_factory: async_sessionmaker,
    title: str,
    body: str,
    tag: str = "daily-reminder",
) -> Dict[str, int]:
    """Broadcast to every stored subscription"""
    if not get_settings().VAPID_PRIVATE_KEY:
        logger.debug("Push notifications disabled - VAPID_PRIVATE_KEY not configured")
        return {"success_count": 0, "fail_count": 0}

    async with session_factory() as db:
        result = await db.execute(select(PushSubscription))
        subscriptions = list(result.scalars().all())

    payload = _build_payload(title, body, tag, require_interaction=False)
    result = await _deliver(session_factory, subscriptions, payload)
    logger.info(
        f"Push notifications sent: {result['success_count']} success, {result['fail_count']} failed"
    )
    return result

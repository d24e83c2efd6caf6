"""
Cron trigger endpoints - called by an external scheduler with a shared secret
"""
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from taskops.config import get_settings
from taskops.services.lifecycle import run_lifecycle_pass
from taskops.services.push_scheduler import check_and_send_scheduled_notifications

router = APIRouter()


def require_cron_secret(
    authorization: Optional[str] = Header(None),
    x_cron_secret: Optional[str] = Header(None),
):
    """Accept 'Authorization: Bearer <secret>' or 'X-Cron-Secret: <secret>'"""
    expected = get_settings().CRON_SECRET
    provided = x_cron_secret
    if authorization and authorization.lower().startswith("bearer "):
        provided = authorization[7:].strip()

    if not expected or not provided or not secrets.compare_digest(provided, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.get("/daily-notifications", dependencies=[Depends(require_cron_secret)])
async def daily_notifications():
    """Run one lifecycle pass: reminders, recurring task renewal, cleanup"""
    stages = await run_lifecycle_pass()
    return {"ok": True, "message": "Daily notifications run", "stages": stages}


@router.get("/push-scheduled", dependencies=[Depends(require_cron_secret)])
async def push_scheduled():
    """Send the morning/evening push reminder if its window is open"""
    sent = await check_and_send_scheduled_notifications()
    return {"ok": True, "message": "Push scheduled check run", "sent": sent}

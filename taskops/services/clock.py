"""
Clock and period keys.

Every timestamp in the database is a naive UTC datetime. Day, week and month
boundaries are taken in the reference timezone (settings.TIMEZONE), so all
"what period is it" questions go through this module.
"""
import calendar
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from taskops.config import get_settings
from taskops.models.task import Recurrence
from taskops.utils.helpers import utcnow

__all__ = [
    "utcnow",
    "to_local",
    "to_utc",
    "day_key",
    "week_key",
    "month_key",
    "compute_next_due_date",
]


def _zone(tz: Optional[str]) -> ZoneInfo:
    return ZoneInfo(tz or get_settings().TIMEZONE)


def to_local(now: datetime, tz: Optional[str] = None) -> datetime:
    """Naive UTC -> aware datetime in the reference timezone"""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(_zone(tz))


def to_utc(local: datetime) -> datetime:
    """Aware local datetime -> naive UTC"""
    return local.astimezone(timezone.utc).replace(tzinfo=None)


def day_key(now: datetime, tz: Optional[str] = None) -> str:
    return to_local(now, tz).date().isoformat()


def week_key(now: datetime, tz: Optional[str] = None) -> str:
    """
    Week identifier as "<year>-W<n>" where n = days since Jan 1 // 7.

    This is not ISO-8601 week numbering; the last few days of a year form a
    short week of their own. Existing markers depend on this exact scheme.
    """
    local = to_local(now, tz).date()
    days = (local - date(local.year, 1, 1)).days
    return f"{local.year}-W{days // 7}"


def month_key(now: datetime, tz: Optional[str] = None) -> str:
    local = to_local(now, tz)
    return f"{local.year}-{local.month:02d}"


def _end_of_day(local: datetime) -> datetime:
    return local.replace(hour=23, minute=59, second=59, microsecond=0)


def compute_next_due_date(recurrence: str, now: datetime, tz: Optional[str] = None) -> datetime:
    """
    Due date for the next instance of a recurring task, as naive UTC.

    daily   -> today 23:59:59 local
    weekly  -> six days from now, 23:59:59 local
    monthly -> last day of the current month, 23:59:59 local
    """
    local = to_local(now, tz)
    if recurrence == Recurrence.DAILY:
        end = _end_of_day(local)
    elif recurrence == Recurrence.WEEKLY:
        end = _end_of_day(local + timedelta(days=6))
    elif recurrence == Recurrence.MONTHLY:
        last_day = calendar.monthrange(local.year, local.month)[1]
        end = _end_of_day(local.replace(day=last_day))
    else:
        raise ValueError(f"No next due date for recurrence '{recurrence}'")
    return to_utc(end)

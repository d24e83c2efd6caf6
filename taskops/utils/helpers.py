"""
General helper utilities
"""
import math
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as a naive UTC datetime (the storage convention for all timestamps)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def days_remaining(due: datetime, now: datetime) -> int:
    """Whole days left until a due date, rounded up; zero or negative once overdue"""
    return math.ceil((due - now).total_seconds() / 86400)

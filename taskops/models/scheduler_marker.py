"""
Durable scheduler bookkeeping - last processed period key per job
"""
from sqlalchemy import Column, String, DateTime
from taskops.database import Base
from taskops.utils.helpers import utcnow


class SchedulerMarker(Base):
    __tablename__ = "scheduler_markers"

    name = Column(String, primary_key=True)   # e.g. "recurrence:daily", "push:morning"
    value = Column(String, nullable=False)    # period key, e.g. "2026-10-19"
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

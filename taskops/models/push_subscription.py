"""
Web Push subscription model - one row per browser endpoint
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from taskops.database import Base
from taskops.utils.helpers import utcnow


class PushSubscription(Base):
    __tablename__ = "push_subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    endpoint = Column(String, unique=True, nullable=False)
    p256dh = Column(String, nullable=False)
    auth = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow)

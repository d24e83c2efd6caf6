"""
Notification transport used by the lifecycle engine.

The engine only talks to NotificationTransport; the default implementation
delivers through SMTP email and Web Push.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from taskops.database import AsyncSessionLocal
from taskops.services import email_service, push_service


class NotificationTransport(ABC):

    @abstractmethod
    async def send_email(self, recipient: str, template_data: Dict[str, Any]) -> bool:
        """Deliver a reminder email; True when it was handed to the mail server"""
        pass

    @abstractmethod
    async def send_push(self, user_id: int, title: str, body: str, tag: str) -> Dict[str, int]:
        """Deliver a push message to all of a user's devices"""
        pass

    @abstractmethod
    async def broadcast_push(self, title: str, body: str, tag: str) -> Dict[str, int]:
        """Push to every subscribed device"""
        pass


class DefaultNotificationTransport(NotificationTransport):

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self.session_factory = session_factory or AsyncSessionLocal

    async def send_email(self, recipient: str, template_data: Dict[str, Any]) -> bool:
        return await email_service.send_expiration_notification(recipient, template_data)

    async def send_push(self, user_id: int, title: str, body: str, tag: str) -> Dict[str, int]:
        return await push_service.send_notification_to_user(
            self.session_factory, user_id, title, body, tag
        )

    async def broadcast_push(self, title: str, body: str, tag: str) -> Dict[str, int]:
        return await push_service.send_notification_to_all(self.session_factory, title, body, tag)

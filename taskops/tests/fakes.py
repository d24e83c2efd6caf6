"""
In-memory notification transport used by lifecycle tests.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set

from taskops.services.notifications import NotificationTransport


@dataclass
class SentPush:
    user_id: int
    title: str
    body: str
    tag: str


@dataclass
class FakeTransport(NotificationTransport):
    """Records every delivery; recipients listed in fail_for raise instead."""

    emails: List[tuple] = field(default_factory=list)
    pushes: List[SentPush] = field(default_factory=list)
    broadcasts: List[tuple] = field(default_factory=list)
    fail_for: Set[Any] = field(default_factory=set)

    async def send_email(self, recipient: str, template_data: Dict[str, Any]) -> bool:
        if recipient in self.fail_for:
            raise ConnectionError(f"SMTP unreachable for {recipient}")
        self.emails.append((recipient, template_data))
        return True

    async def send_push(self, user_id: int, title: str, body: str, tag: str) -> Dict[str, int]:
        if user_id in self.fail_for:
            raise ConnectionError(f"push service unreachable for {user_id}")
        self.pushes.append(SentPush(user_id, title, body, tag))
        return {"success_count": 1, "fail_count": 0}

    async def broadcast_push(self, title: str, body: str, tag: str) -> Dict[str, int]:
        self.broadcasts.append((title, body, tag))
        return {"success_count": 1, "fail_count": 0}

    @property
    def calls(self) -> int:
        return len(self.emails) + len(self.pushes)

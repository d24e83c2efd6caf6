"""
Email and Web Push delivery tests (no network: the blocking senders are patched)
"""
from datetime import datetime
from types import SimpleNamespace

import pytest
from pywebpush import WebPushException
from sqlalchemy import select

from taskops.config import get_settings
from taskops.models.push_subscription import PushSubscription
from taskops.services import email_service, push_service
from taskops.services.notifications import NotificationTransport

TEMPLATE = {
    "task_id": 7,
    "task_title": "Descale the espresso machine",
    "due_date": datetime(2026, 10, 16, 18, 0),
    "days_remaining": 2,
    "is_overdue": False,
    "assignee_name": "Alice",
    "organization_name": "Main Street Bistro",
}


@pytest.fixture
def settings(monkeypatch):
    s = get_settings()
    monkeypatch.setattr(s, "EMAIL_USER", "tasks@bistro.test")
    monkeypatch.setattr(s, "EMAIL_FROM", "tasks@bistro.test")
    monkeypatch.setattr(s, "VAPID_PRIVATE_KEY", "test-private-key")
    return s


class TestEmail:

    def test_message_content(self):
        msg = email_service.build_expiration_email("alice@bistro.test", TEMPLATE, "tasks@bistro.test")

        assert msg["Subject"] == "Expiring task: Descale the espresso machine"
        assert msg["To"] == "alice@bistro.test"
        text = msg.get_body(preferencelist=("plain",)).get_content()
        assert "is about to expire" in text
        assert "16/10/2026 18:00" in text
        assert "Main Street Bistro" in text
        assert msg.get_body(preferencelist=("html",)) is not None

    def test_overdue_subject(self):
        msg = email_service.build_expiration_email("a@b.test", {**TEMPLATE, "is_overdue": True}, "x@b.test")
        assert msg["Subject"].startswith("Overdue task")

    async def test_disabled_without_credentials(self, monkeypatch):
        monkeypatch.setattr(get_settings(), "EMAIL_USER", "")
        assert await email_service.send_expiration_notification("alice@bistro.test", TEMPLATE) is False

    async def test_send_goes_through_smtp(self, settings, monkeypatch):
        sent = []
        monkeypatch.setattr(email_service, "_send_smtp", sent.append)

        assert await email_service.send_expiration_notification("alice@bistro.test", TEMPLATE) is True
        assert [m["To"] for m in sent] == ["alice@bistro.test"]
        assert sent[0]["From"] == "tasks@bistro.test"

    async def test_smtp_failure_returns_false(self, settings, monkeypatch):
        def refuse(message):
            raise OSError("connection refused")

        monkeypatch.setattr(email_service, "_send_smtp", refuse)
        assert await email_service.send_expiration_notification("alice@bistro.test", TEMPLATE) is False


class TestPush:

    async def _subscribe(self, db_session, user, endpoint):
        db_session.add(PushSubscription(user_id=user.id, endpoint=endpoint, p256dh="key", auth="secret"))
        await db_session.commit()

    async def test_disabled_without_vapid_key(self, session_factory, seed_data, monkeypatch):
        monkeypatch.setattr(get_settings(), "VAPID_PRIVATE_KEY", "")
        result = await push_service.send_notification_to_user(session_factory, seed_data["alice"].id, "t", "b")
        assert result == {"success_count": 0, "fail_count": 0}

    async def test_gone_subscription_is_removed(self, settings, session_factory, db_session, seed_data, monkeypatch):
        alice = seed_data["alice"]
        await self._subscribe(db_session, alice, "https://push.test/alive")
        await self._subscribe(db_session, alice, "https://push.test/gone")
        delivered = []

        def fake_send(subscription, payload):
            if subscription["endpoint"].endswith("gone"):
                raise WebPushException("Push failed", response=SimpleNamespace(status_code=410, text="Gone"))
            delivered.append((subscription["endpoint"], payload))

        monkeypatch.setattr(push_service, "_send_web_push", fake_send)

        result = await push_service.send_notification_to_user(
            session_factory, alice.id, "Expiring task", "Descale - due 16/10 18:00", "task-7"
        )

        assert result == {"success_count": 1, "fail_count": 1}
        assert delivered[0][0] == "https://push.test/alive"
        assert '"tag": "task-7"' in delivered[0][1]
        async with session_factory() as s:
            endpoints = (await s.execute(select(PushSubscription.endpoint))).scalars().all()
        assert endpoints == ["https://push.test/alive"]

    async def test_transient_failure_keeps_subscription(self, settings, session_factory, db_session, seed_data, monkeypatch):
        await self._subscribe(db_session, seed_data["bob"], "https://push.test/flaky")

        def fake_send(subscription, payload):
            raise WebPushException("Push failed", response=SimpleNamespace(status_code=503, text="Busy"))

        monkeypatch.setattr(push_service, "_send_web_push", fake_send)

        result = await push_service.send_notification_to_all(session_factory, "Good night!", "Verify tasks")

        assert result == {"success_count": 0, "fail_count": 1}
        async with session_factory() as s:
            assert (await s.execute(select(PushSubscription))).scalars().first() is not None

    def test_vapid_subject_gets_mailto(self, settings, monkeypatch):
        monkeypatch.setattr(settings, "VAPID_SUBJECT", "ops@bistro.test")
        assert push_service._vapid_claims() == {"sub": "mailto:ops@bistro.test"}


def test_transport_must_implement_broadcast():
    class EmailAndPushOnly(NotificationTransport):
        async def send_email(self, recipient, template_data):
            return True

        async def send_push(self, user_id, title, body, tag):
            return {"success_count": 1, "fail_count": 0}

    with pytest.raises(TypeError):
        EmailAndPushOnly()

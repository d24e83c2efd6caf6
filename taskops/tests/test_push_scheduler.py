"""
Time-of-day push reminder tests
"""
from datetime import datetime

from taskops.services.push_scheduler import check_and_send_scheduled_notifications

from .fakes import FakeTransport


async def test_morning_reminder_sent_once_per_day(session_factory):
    transport = FakeTransport()

    sent = await check_and_send_scheduled_notifications(session_factory, datetime(2026, 10, 14, 9, 2), transport)
    again = await check_and_send_scheduled_notifications(session_factory, datetime(2026, 10, 14, 9, 4), transport)

    assert list(sent) == ["morning"]
    assert again == {}
    assert len(transport.broadcasts) == 1
    title, body, tag = transport.broadcasts[0]
    assert title == "Good morning!"
    assert tag == "morning-reminder"


async def test_outside_window_sends_nothing(session_factory):
    transport = FakeTransport()

    for now in (datetime(2026, 10, 14, 9, 10), datetime(2026, 10, 14, 8, 59), datetime(2026, 10, 14, 15, 0)):
        assert await check_and_send_scheduled_notifications(session_factory, now, transport) == {}

    assert transport.broadcasts == []


async def test_evening_reminder_and_next_day(session_factory):
    transport = FakeTransport()

    await check_and_send_scheduled_notifications(session_factory, datetime(2026, 10, 14, 9, 0), transport)
    evening = await check_and_send_scheduled_notifications(session_factory, datetime(2026, 10, 14, 22, 1), transport)
    tomorrow = await check_and_send_scheduled_notifications(session_factory, datetime(2026, 10, 15, 9, 3), transport)

    assert list(evening) == ["evening"]
    assert list(tomorrow) == ["morning"]
    assert [tag for _, _, tag in transport.broadcasts] == [
        "morning-reminder",
        "evening-reminder",
        "morning-reminder",
    ]


async def test_failed_broadcast_still_closes_the_slot(session_factory):
    class BrokenTransport(FakeTransport):
        async def broadcast_push(self, title, body, tag):
            raise ConnectionError("push service down")

    transport = BrokenTransport()
    now = datetime(2026, 10, 14, 22, 0)

    sent = await check_and_send_scheduled_notifications(session_factory, now, transport)
    again = await check_and_send_scheduled_notifications(session_factory, now, transport)

    assert sent["evening"]["error"] is True
    assert again == {}

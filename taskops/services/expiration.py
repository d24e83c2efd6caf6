"""
Expiration notifier - daily reminders for tasks running out of time.

A task with a due date becomes reminder-eligible once 2/3 of the time between
creation and due date has elapsed, or once it is overdue. Each eligible task
is reminded at most once per throttle window (24h by default) and every
assignee gets one reminder. The throttle marker lives on the task row, so it
survives restarts, and it is claimed with a conditional update before any
send so overlapping runs cannot remind the same task twice.
"""
import asyncio
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import async_sessionmaker

from taskops.config import get_settings
from taskops.models.organization import User
from taskops.models.task import Task, TERMINAL_STATUSES
from taskops.services.gateway import gateway_scope
from taskops.services.notifications import NotificationTransport
from taskops.utils.helpers import days_remaining
from taskops.utils.logger import get_logger

logger = get_logger(__name__)


def elapsed_fraction(created_at: datetime, due_date: datetime, now: datetime) -> float:
    """Share of the task's time window already used; 1.0 when the window is empty"""
    window = due_date - created_at
    if window <= timedelta(0):
        return 1.0
    return (now - created_at) / window


def is_overdue(task: Task, now: datetime) -> bool:
    return (
        task.due_date is not None
        and task.status not in TERMINAL_STATUSES
        and now > task.due_date
    )


def is_reminder_eligible(task: Task, now: datetime, threshold: Optional[float] = None) -> bool:
    if task.due_date is None or task.status in TERMINAL_STATUSES:
        return False
    if threshold is None:
        threshold = get_settings().REMINDER_ELAPSED_FRACTION
    created_at = task.created_at or now
    return now > task.due_date or elapsed_fraction(created_at, task.due_date, now) >= threshold


def reminder_throttled(task: Task, now: datetime, window: Optional[timedelta] = None) -> bool:
    """True while the last reminder for this task is still inside the throttle window"""
    if task.last_reminder_sent_at is None:
        return False
    if window is None:
        window = timedelta(hours=get_settings().REMINDER_THROTTLE_HOURS)
    return now - task.last_reminder_sent_at < window


def _template_data(task: Task, user: User, overdue: bool, now: datetime) -> dict:
    return {
        "task_id": task.id,
        "task_title": task.title,
        "due_date": task.due_date,
        "days_remaining": days_remaining(task.due_date, now),
        "is_overdue": overdue,
        "assignee_name": user.name,
        "organization_name": task.organization.name if task.organization else None,
    }


async def _remind_assignee(
    transport: NotificationTransport,
    task: Task,
    user: User,
    overdue: bool,
    now: datetime,
    timeout: float,
) -> bool:
    """Email and push one assignee; each channel fails independently"""
    delivered = False
    label = "OVERDUE" if overdue else "EXPIRING"

    if user.email:
        try:
            sent = await asyncio.wait_for(
                transport.send_email(user.email, _template_data(task, user, overdue, now)),
                timeout=timeout,
            )
            delivered = delivered or bool(sent)
        except Exception:
            logger.exception(f"Failed to email reminder for task {task.id} to {user.email}")

    try:
        title = f"{'Overdue' if overdue else 'Expiring'} task"
        body = f"{task.title} - due {task.due_date:%d/%m %H:%M}"
        result = await asyncio.wait_for(
            transport.send_push(user.id, title, body, f"task-{task.id}"),
            timeout=timeout,
        )
        delivered = delivered or result.get("success_count", 0) > 0
    except Exception:
        logger.exception(f"Failed to push reminder for task {task.id} to user {user.id}")

    logger.info(f"{label} - reminder for task {task.title!r} (ID: {task.id}) to user {user.id}")
    return delivered


async def check_for_expiring_tasks(
    session_factory: async_sessionmaker,
    transport: NotificationTransport,
    now: datetime,
) -> dict:
    """
    Send reminders for expiring and overdue tasks, then reset the throttle
    on tasks that have since been completed or verified.
    """
    settings = get_settings()
    timeout = settings.TRANSPORT_TIMEOUT_SECONDS
    window = timedelta(hours=settings.REMINDER_THROTTLE_HOURS)

    try:
        async with gateway_scope(session_factory) as gateway:
            tasks = await gateway.find_tasks(
                Task.due_date.isnot(None),
                Task.status.notin_(TERMINAL_STATUSES),
                with_assignees=True,
            )
    except Exception as e:
        logger.exception("Could not load open tasks for expiration check")
        return {"status": "error", "error": str(e)}

    reminded_tasks = 0
    dispatches = 0
    throttled = 0
    no_assignees = 0
    failed = 0

    for task in tasks:
        if not is_reminder_eligible(task, now):
            continue
        if reminder_throttled(task, now, window):
            throttled += 1
            continue
        if not task.assignees:
            no_assignees += 1
            continue

        # Claim the reminder slot before sending so overlapping runs cannot both send
        try:
            async with gateway_scope(session_factory) as gateway:
                claimed = await gateway.update_task_fields(
                    task.id,
                    or_(
                        Task.last_reminder_sent_at.is_(None),
                        Task.last_reminder_sent_at <= now - window,
                    ),
                    last_reminder_sent_at=now,
                    updated_at=Task.updated_at,
                )
        except Exception:
            failed += 1
            logger.exception(f"Could not store reminder marker for task {task.id}")
            continue
        if not claimed:
            throttled += 1
            continue

        reminded_tasks += 1
        overdue = is_overdue(task, now)
        for user in task.assignees:
            dispatches += 1
            try:
                await _remind_assignee(transport, task, user, overdue, now, timeout)
            except Exception:
                logger.exception(f"Reminder dispatch crashed for task {task.id}, user {user.id}")

    cleared = 0
    try:
        async with gateway_scope(session_factory) as gateway:
            cleared = await gateway.clear_reminder_markers(TERMINAL_STATUSES)
    except Exception:
        logger.exception("Could not clear reminder markers of finished tasks")

    if reminded_tasks or failed:
        logger.info(
            f"Expiration check: {reminded_tasks} task(s) reminded, {dispatches} dispatch(es), "
            f"{throttled} throttled, {failed} failed"
        )

    return {
        "status": "ok",
        "checked": len(tasks),
        "reminded_tasks": reminded_tasks,
        "dispatches": dispatches,
        "throttled": throttled,
        "skipped_no_assignees": no_assignees,
        "failed": failed,
        "markers_cleared": cleared,
    }

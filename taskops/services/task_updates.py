"""
Task mutations used by request handlers.

Any code path that changes a task's stored status goes through
change_task_status() so the completion/verification stamps and the status
history stay consistent. Due-date changes go through change_task_due_date()
so reminder escalation restarts from scratch.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from taskops.models.task import Task, TaskStatus
from taskops.services.gateway import TaskGateway
from taskops.services.status_history import record_status_change
from taskops.utils.logger import get_logger

logger = get_logger(__name__)


async def change_task_status(
    db: AsyncSession,
    task: Task,
    new_status: str,
    actor_id: Optional[int],
    now: datetime,
) -> Task:
    """Move a task to a new status and record the transition"""
    old_status = task.status
    if new_status == old_status:
        return task

    task.status = new_status
    task.updated_at = now
    if new_status == TaskStatus.COMPLETED and task.completed_at is None:
        task.completed_at = now
    if new_status == TaskStatus.VERIFIED and task.verified_at is None:
        task.verified_at = now
        task.verified_by = actor_id

    await db.commit()
    logger.info(f"Task {task.id} status {old_status} -> {new_status} (by {actor_id})")

    await record_status_change(db, task.id, old_status, new_status, actor_id, now)
    await db.refresh(task)
    return task


async def complete_task(
    db: AsyncSession, task: Task, actor_id: Optional[int], now: datetime
) -> Task:
    return await change_task_status(db, task, TaskStatus.COMPLETED.value, actor_id, now)


async def verify_task(
    db: AsyncSession, task: Task, verifier_id: int, now: datetime
) -> Task:
    return await change_task_status(db, task, TaskStatus.VERIFIED.value, verifier_id, now)


async def change_task_due_date(
    db: AsyncSession, task: Task, due_date: Optional[datetime]
) -> Task:
    """Set a new due date; a real change clears any pending reminder marker"""
    if due_date != task.due_date:
        task.due_date = due_date
        task.last_reminder_sent_at = None
        await db.commit()
        await db.refresh(task)
    return task


async def assign_user(
    db: AsyncSession,
    task: Task,
    user_id: int,
    actor_id: Optional[int],
    now: datetime,
) -> Task:
    """Add an assignee. A planned task becomes assigned on its first assignee."""
    created = await TaskGateway(db).insert_assignment_link(task.id, user_id)
    await db.commit()
    if created and task.status == TaskStatus.PLANNED:
        return await change_task_status(db, task, TaskStatus.ASSIGNED.value, actor_id, now)
    return task

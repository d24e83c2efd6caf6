"""
Retention sweeper - removes finished tasks once their grace window has passed.
"""
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from taskops.config import get_settings
from taskops.models.task import (
    Task,
    TaskStatus,
    TaskAssignment,
    TaskTag,
    TaskChecklistItem,
    TaskComment,
    TaskPhoto,
    TaskStatusHistory,
    TERMINAL_STATUSES,
)
from taskops.services.gateway import gateway_scope
from taskops.utils.logger import get_logger

logger = get_logger(__name__)

# Deleted in this order before the task row itself
CHILD_MODELS = (
    TaskTag,
    TaskChecklistItem,
    TaskComment,
    TaskPhoto,
    TaskAssignment,
    TaskStatusHistory,
)


def retention_anchor(task: Task) -> Optional[datetime]:
    """When the task entered its terminal status (legacy rows fall back to updated_at)"""
    if task.status == TaskStatus.COMPLETED:
        anchor = task.completed_at
    elif task.status == TaskStatus.VERIFIED:
        anchor = task.verified_at
    else:
        return None
    return anchor or task.updated_at or task.created_at


def is_expired(task: Task, now: datetime, grace: Optional[timedelta] = None) -> bool:
    if grace is None:
        grace = timedelta(days=get_settings().RETENTION_GRACE_DAYS)
    anchor = retention_anchor(task)
    return anchor is not None and anchor < now - grace


async def cleanup_old_completed_tasks(
    session_factory: async_sessionmaker,
    now: datetime,
    grace: Optional[timedelta] = None,
) -> dict:
    """Delete completed/verified tasks older than the grace window, children first"""
    try:
        async with gateway_scope(session_factory) as gateway:
            finished = await gateway.find_tasks(Task.status.in_(TERMINAL_STATUSES))
    except Exception as e:
        logger.exception("Could not load finished tasks for cleanup")
        return {"status": "error", "error": str(e)}

    expired = [task for task in finished if is_expired(task, now, grace)]
    deleted = 0
    failed = 0

    for task in expired:
        try:
            async with gateway_scope(session_factory) as gateway:
                for model in CHILD_MODELS:
                    await gateway.delete_child_rows(task.id, model)
                await gateway.delete_task(task.id)
            deleted += 1
        except Exception:
            failed += 1
            logger.exception(f"Failed to clean up task {task.id} ({task.title!r})")

    if deleted or failed:
        logger.info(f"Cleaned up {deleted} old completed task(s), {failed} failed")

    return {"status": "ok", "eligible": len(expired), "deleted": deleted, "failed": failed}

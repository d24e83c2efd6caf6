"""
Status history recorder - append-only audit of task status changes.

Recording is best effort: callers commit the status change first, so a failed
history write is logged and dropped without touching the task itself.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from taskops.services.gateway import TaskGateway
from taskops.utils.logger import get_logger

logger = get_logger(__name__)


async def record_status_change(
    db: AsyncSession,
    task_id: int,
    old_status: Optional[str],
    new_status: str,
    actor_id: Optional[int],
    changed_at: datetime,
) -> bool:
    """Append one history entry and commit it. Returns False if the write failed."""
    try:
        await TaskGateway(db).append_status_history(
            task_id=task_id,
            old_status=old_status,
            new_status=new_status,
            changed_by=actor_id,
            changed_at=changed_at,
        )
        await db.commit()
        return True
    except Exception:
        logger.exception(
            f"Failed to record status change for task {task_id}: {old_status} -> {new_status}"
        )
        await db.rollback()
        return False

"""
Persistence gateway for the lifecycle engine.

TaskGateway wraps a single AsyncSession; gateway_scope() gives one unit of
work (commit on success, rollback on error). Every statement is bounded by
settings.GATEWAY_TIMEOUT_SECONDS so a stalled database turns into a per-item
failure instead of hanging a whole pass.
"""
import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Iterable, List, Optional

from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from taskops.config import get_settings
from taskops.models.organization import User
from taskops.models.tag import Tag
from taskops.models.task import Task, TaskAssignment, TaskTag, TaskStatusHistory
from taskops.models.scheduler_marker import SchedulerMarker


class TaskGateway:
    def __init__(self, session: AsyncSession, timeout: Optional[float] = None):
        self.session = session
        self.timeout = timeout if timeout is not None else get_settings().GATEWAY_TIMEOUT_SECONDS

    async def _run(self, awaitable):
        return await asyncio.wait_for(awaitable, timeout=self.timeout)

    # --- Tasks ---

    async def find_tasks(self, *criteria, with_assignees: bool = False) -> List[Task]:
        query = select(Task).where(*criteria).order_by(Task.id)
        if with_assignees:
            query = query.options(
                selectinload(Task.assignees),
                selectinload(Task.organization),
            )
        result = await self._run(self.session.execute(query))
        return list(result.scalars().all())

    async def insert_task(self, **fields: Any) -> Task:
        task = Task(**fields)
        self.session.add(task)
        await self._run(self.session.flush())
        return task

    async def update_task_fields(self, task_id: int, *guards, **fields: Any) -> int:
        """
        Update one task row. Extra guard criteria make it a compare-and-set:
        the row only changes if it still matches them. Returns the rowcount.
        """
        if not fields:
            return 0
        result = await self._run(self.session.execute(
            update(Task).where(Task.id == task_id, *guards).values(**fields)
        ))
        return result.rowcount or 0

    async def delete_task(self, task_id: int) -> None:
        await self._run(self.session.execute(delete(Task).where(Task.id == task_id)))

    async def clear_reminder_markers(self, statuses: Iterable[str]) -> int:
        """Reset the reminder throttle for every task in the given statuses"""
        result = await self._run(self.session.execute(
            update(Task)
            .where(Task.status.in_(list(statuses)), Task.last_reminder_sent_at.isnot(None))
            .values(last_reminder_sent_at=None, updated_at=Task.updated_at)
        ))
        return result.rowcount or 0

    # --- Links ---

    async def insert_assignment_link(self, task_id: int, user_id: int) -> bool:
        """Link a user to a task. Returns False when the link already exists."""
        if await self._run(self.session.get(User, user_id)) is None:
            raise LookupError(f"User {user_id} no longer exists")
        existing = await self._run(self.session.get(TaskAssignment, (task_id, user_id)))
        if existing is not None:
            return False
        self.session.add(TaskAssignment(task_id=task_id, user_id=user_id))
        await self._run(self.session.flush())
        return True

    async def insert_tag_link(self, task_id: int, tag_id: int) -> bool:
        """Tag a task. Returns False when the tag is already attached."""
        if await self._run(self.session.get(Tag, tag_id)) is None:
            raise LookupError(f"Tag {tag_id} no longer exists")
        result = await self._run(self.session.execute(
            select(TaskTag.id).where(TaskTag.task_id == task_id, TaskTag.tag_id == tag_id)
        ))
        if result.first() is not None:
            return False
        self.session.add(TaskTag(task_id=task_id, tag_id=tag_id))
        await self._run(self.session.flush())
        return True

    async def list_assignee_ids(self, task_id: int) -> List[int]:
        result = await self._run(self.session.execute(
            select(TaskAssignment.user_id)
            .where(TaskAssignment.task_id == task_id)
            .order_by(TaskAssignment.user_id)
        ))
        return list(result.scalars().all())

    async def list_tag_ids(self, task_id: int) -> List[int]:
        result = await self._run(self.session.execute(
            select(TaskTag.tag_id).where(TaskTag.task_id == task_id).order_by(TaskTag.tag_id)
        ))
        return list(result.scalars().all())

    async def delete_child_rows(self, task_id: int, model) -> int:
        """Delete every row of a child table (any model with a task_id column) for one task"""
        result = await self._run(self.session.execute(
            delete(model).where(model.task_id == task_id)
        ))
        return result.rowcount or 0

    # --- Audit ---

    async def append_status_history(
        self,
        task_id: int,
        old_status: Optional[str],
        new_status: str,
        changed_by: Optional[int],
        changed_at: datetime,
    ) -> TaskStatusHistory:
        entry = TaskStatusHistory(
            task_id=task_id,
            old_status=old_status,
            new_status=new_status,
            changed_by=changed_by,
            changed_at=changed_at,
        )
        self.session.add(entry)
        await self._run(self.session.flush())
        return entry

    # --- Scheduler markers ---

    async def get_marker(self, name: str) -> Optional[str]:
        marker = await self._run(self.session.get(SchedulerMarker, name))
        return marker.value if marker else None

    async def set_marker(self, name: str, value: str, now: datetime) -> None:
        marker = await self._run(self.session.get(SchedulerMarker, name))
        if marker is None:
            self.session.add(SchedulerMarker(name=name, value=value, updated_at=now))
        else:
            marker.value = value
            marker.updated_at = now
        await self._run(self.session.flush())

    async def commit(self) -> None:
        await self._run(self.session.commit())


@asynccontextmanager
async def gateway_scope(session_factory: async_sessionmaker) -> AsyncIterator[TaskGateway]:
    """One unit of work: commits when the block succeeds, rolls back otherwise"""
    async with session_factory() as session:
        gateway = TaskGateway(session)
        try:
            yield gateway
            await gateway.commit()
        except Exception:
            await session.rollback()
            raise

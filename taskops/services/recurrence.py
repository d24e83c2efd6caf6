"""
Recurrence regenerator.

For every finished (completed/verified) task of a given recurrence, create the
next planned instance with a fresh due date, carry over assignees and tags,
then downgrade the finished task to a one-off so it is never cloned again.
Each task is its own unit of work; one bad task never stops the batch.

The caller decides whether the current period has already been processed
(see lifecycle.py); this module only does the scan-and-clone.
"""
from datetime import datetime

from sqlalchemy.ext.asyncio import async_sessionmaker

from taskops.models.task import Task, TaskStatus, Recurrence, TERMINAL_STATUSES
from taskops.services.clock import compute_next_due_date
from taskops.services.gateway import TaskGateway, gateway_scope
from taskops.services.status_history import record_status_change
from taskops.utils.logger import get_logger

logger = get_logger(__name__)

# Fields copied verbatim from the finished task onto its successor
INHERITED_FIELDS = (
    "organization_id",
    "title",
    "description",
    "priority",
    "estimated_time",
    "recurrence",
    "created_by",
)


class SourceAlreadyRenewed(Exception):
    """Another pass already renewed this task"""


def _validate_recurrence(recurrence: str) -> Recurrence:
    try:
        value = Recurrence(recurrence)
    except ValueError:
        raise ValueError(f"Unknown recurrence type: {recurrence!r}") from None
    if value == Recurrence.ONCE:
        raise ValueError("One-off tasks are never regenerated")
    return value


async def clone_recurring_task(gateway: TaskGateway, source: Task, due_date: datetime, now: datetime) -> Task:
    """
    Create the successor of a finished recurring task.

    Order matters: the source keeps its recurrence until the successor and all
    its links exist, so a failure part-way leaves the source eligible for the
    next pass (the surrounding unit of work rolls everything back).

    The source is retired with a compare-and-set. If another pass retired it
    first, SourceAlreadyRenewed is raised and the new successor is discarded
    with the rest of the unit of work.
    """
    fields = {name: getattr(source, name) for name in INHERITED_FIELDS}
    successor = await gateway.insert_task(
        **fields,
        status=TaskStatus.PLANNED.value,
        due_date=due_date,
        created_at=now,
        updated_at=now,
    )

    for user_id in await gateway.list_assignee_ids(source.id):
        await gateway.insert_assignment_link(successor.id, user_id)
    for tag_id in await gateway.list_tag_ids(source.id):
        await gateway.insert_tag_link(successor.id, tag_id)

    retired = await gateway.update_task_fields(
        source.id,
        Task.recurrence == source.recurrence,
        Task.status.in_(TERMINAL_STATUSES),
        recurrence=Recurrence.ONCE.value,
        updated_at=now,
    )
    if not retired:
        raise SourceAlreadyRenewed(source.id)
    return successor


async def process_recurrence_type(
    session_factory: async_sessionmaker,
    recurrence: str,
    now: datetime,
) -> dict:
    """
    Regenerate every finished task of one recurrence type.

    Raises ValueError for an invalid recurrence type. Everything else is
    logged and reported in the returned summary.
    """
    recurrence_type = _validate_recurrence(recurrence)
    due_date = compute_next_due_date(recurrence_type.value, now)

    try:
        async with gateway_scope(session_factory) as gateway:
            finished = await gateway.find_tasks(
                Task.recurrence == recurrence_type.value,
                Task.status.in_(TERMINAL_STATUSES),
            )
    except Exception as e:
        logger.exception(f"Could not scan {recurrence_type.value} recurring tasks")
        return {"status": "error", "recurrence": recurrence_type.value, "error": str(e)}

    created = 0
    skipped = 0
    failed = 0

    for source in finished:
        try:
            async with gateway_scope(session_factory) as gateway:
                successor = await clone_recurring_task(gateway, source, due_date, now)
                successor_id = successor.id
        except SourceAlreadyRenewed:
            skipped += 1
            logger.info(f"Task {source.id} ({source.title!r}) was already renewed by another pass")
            continue
        except Exception:
            failed += 1
            logger.exception(
                f"Failed to regenerate {recurrence_type.value} task {source.id} ({source.title!r})"
            )
            continue

        created += 1
        logger.info(
            f"Recurring task {source.id} ({source.title!r}) renewed as task {successor_id}, "
            f"due {due_date.isoformat()}"
        )
        async with session_factory() as db:
            await record_status_change(db, successor_id, None, TaskStatus.PLANNED.value, None, now)

    if finished:
        logger.info(
            f"Processed {len(finished)} {recurrence_type.value} recurring task(s): "
            f"{created} renewed, {skipped} already renewed, {failed} failed"
        )

    return {
        "status": "ok",
        "recurrence": recurrence_type.value,
        "found": len(finished),
        "created": created,
        "skipped": skipped,
        "failed": failed,
    }

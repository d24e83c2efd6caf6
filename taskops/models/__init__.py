from taskops.models.organization import Organization, User
from taskops.models.tag import Tag
from taskops.models.task import (
    Task,
    TaskAssignment,
    TaskTag,
    TaskChecklistItem,
    TaskComment,
    TaskPhoto,
    TaskStatusHistory,
)
from taskops.models.push_subscription import PushSubscription
from taskops.models.scheduler_marker import SchedulerMarker

__all__ = [
    "Organization",
    "User",
    "Tag",
    "Task",
    "TaskAssignment",
    "TaskTag",
    "TaskChecklistItem",
    "TaskComment",
    "TaskPhoto",
    "TaskStatusHistory",
    "PushSubscription",
    "SchedulerMarker",
]

"""Core engines: checklist progress, notification dispatch, task and user management."""

from taskboard_service.core.checklist import (
    ChecklistItemInput,
    MergeResult,
    apply_progress,
    compute_progress,
    derive_status,
    merge_checklist,
    replace_checklist,
)
from taskboard_service.core.notification_dispatcher import NotificationDispatcher
from taskboard_service.core.task_manager import TaskManager
from taskboard_service.core.user_manager import UserManager

__all__ = [
    "ChecklistItemInput",
    "MergeResult",
    "apply_progress",
    "compute_progress",
    "derive_status",
    "merge_checklist",
    "replace_checklist",
    "NotificationDispatcher",
    "TaskManager",
    "UserManager",
]

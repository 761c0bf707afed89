"""Data models for the taskboard service."""

from taskboard_service.models.base import Document, Timestamp, format_timestamp, new_id, utc_now
from taskboard_service.models.notification import Notification, NotificationType
from taskboard_service.models.task import ChecklistItem, Task, TaskPriority, TaskStatus
from taskboard_service.models.user import User, UserRole

__all__ = [
    # Base
    "Document",
    "Timestamp",
    "format_timestamp",
    "new_id",
    "utc_now",
    # Users
    "User",
    "UserRole",
    # Tasks
    "Task",
    "TaskStatus",
    "TaskPriority",
    "ChecklistItem",
    # Notifications
    "Notification",
    "NotificationType",
]

"""Request bodies accepted by the HTTP API (camelCase on the wire)."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr
from pydantic.alias_generators import to_camel

from taskboard_service.models import NotificationType, TaskPriority


class RequestModel(BaseModel):
    """Base for request bodies: camelCase aliases, snake_case attributes."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class RegisterRequest(RequestModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)
    profile_image_url: str | None = None
    admin_invite_token: str | None = None


class LoginRequest(RequestModel):
    email: str
    password: str


class TaskCreate(RequestModel):
    """Body of POST /api/tasks.

    `assigned_to` is left untyped so a non-list value reaches the task
    manager and is rejected with its own message.
    """

    title: str = Field(..., min_length=1)
    description: str | None = None
    priority: TaskPriority | None = None
    status: str | None = None
    due_date: datetime | None = None
    assigned_to: Any = None
    todo_checklists: list[dict[str, Any]] | None = None
    attachments: list[str] | None = None


class TaskUpdate(RequestModel):
    """Body of PUT /api/tasks/{id}; absent or null fields keep their value."""

    title: str | None = None
    description: str | None = None
    priority: TaskPriority | None = None
    due_date: datetime | None = None
    assigned_to: Any = None
    todo_checklists: list[dict[str, Any]] | None = None
    attachments: list[str] | None = None


class StatusUpdate(RequestModel):
    status: str | None = None


class ChecklistUpdate(RequestModel):
    todo_checklists: list[dict[str, Any]] = Field(default_factory=list)


class NotificationCreate(RequestModel):
    team: list[str] = Field(default_factory=list)
    text: str = ""
    task: str | None = None
    noti_type: NotificationType = NotificationType.ALERT


class MarkReadRequest(RequestModel):
    notification_id: StrictStr
    user_id: StrictStr

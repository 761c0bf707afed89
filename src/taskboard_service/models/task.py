"""Tasks and checklist items."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from taskboard_service.models.base import Document, Timestamp, new_id


class TaskStatus(str, Enum):
    """Task status, derived from checklist progress."""

    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


class TaskPriority(str, Enum):
    """Task priority levels."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class ChecklistItem(BaseModel):
    """A single checklist entry.

    `id` is assigned when the item is first inserted and survives merges,
    which match items by their trimmed text.
    """

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str = Field(default_factory=new_id, description="Stable item identity")
    text: str = Field(..., min_length=1, description="Item text (trimmed)")
    completed: bool = Field(default=False, description="Completion flag")
    extra: dict[str, Any] = Field(default_factory=dict, description="Client-defined additional fields")


class Task(Document):
    """A unit of work assigned to one or more users."""

    title: str = Field(..., min_length=1, description="Task title")
    description: str = Field(default="", description="Task description")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="Priority level")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Derived status")
    due_date: Timestamp | None = Field(default=None, description="Due date")
    assigned_to: list[str] = Field(default_factory=list, description="Assignee user IDs")
    created_by: str | None = Field(default=None, description="Creator user ID")
    todo_checklists: list[ChecklistItem] = Field(default_factory=list, description="Ordered checklist")
    progress: int = Field(default=0, ge=0, le=100, description="Checklist completion percentage")
    attachments: list[str] = Field(default_factory=list, description="Attachment references")
    notifications: list[str] = Field(default_factory=list, description="Linked notification IDs")

    def is_assignee(self, user_id: str) -> bool:
        """Check whether a user is assigned to this task."""
        return user_id in self.assigned_to

    @property
    def completed_todo_count(self) -> int:
        return sum(1 for item in self.todo_checklists if item.completed)

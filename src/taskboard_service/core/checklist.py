"""Checklist merging and progress derivation.

Incoming checklist items are matched to a task's existing items by trimmed
text. A match overrides the fields the client sent and keeps the item's
identity; anything else is appended as a new item. Progress and status are
then recomputed from the merged list.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from taskboard_service.models.base import new_id
from taskboard_service.models.task import ChecklistItem, Task, TaskStatus

# Keys a client may echo back that never become extension fields
RESERVED_KEYS = frozenset({"id", "_id", "text", "completed", "extra"})


class ChecklistItemInput(BaseModel):
    """A checklist item as sent by a client.

    Only `text` is required. Unknown keys are kept and merged into the
    item's `extra` map.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="allow")

    text: str = Field(..., min_length=1)
    completed: bool = False
    extra: dict[str, Any] = Field(default_factory=dict)

    def extension_fields(self) -> dict[str, Any]:
        """Client-defined fields to merge into the item's extension map."""
        loose = {k: v for k, v in (self.model_extra or {}).items() if k not in RESERVED_KEYS}
        return {**self.extra, **loose}


@dataclass
class MergeResult:
    """Outcome of merging a batch of items into a checklist."""

    items: list[ChecklistItem]
    updated: int = 0
    appended: int = 0
    touched_ids: list[str] = field(default_factory=list)


def merge_checklist(
    existing: Sequence[ChecklistItem],
    incoming: Sequence[ChecklistItemInput],
) -> MergeResult:
    """Merge incoming items into an existing checklist.

    Matching only considers items present before this batch: two new items
    with the same text in one batch are both appended. When existing items
    share a text, the first one is the match.

    Args:
        existing: Current checklist, in order
        incoming: Items to merge, applied in order

    Returns:
        MergeResult with the new checklist; existing items keep their positions
    """
    items = [item.model_copy() for item in existing]

    slots: dict[str, int] = {}
    for index, item in enumerate(items):
        slots.setdefault(item.text.strip(), index)

    result = MergeResult(items=items)

    for new_item in incoming:
        text = new_item.text.strip()
        index = slots.get(text)

        if index is not None:
            current = items[index]
            updates: dict[str, Any] = {"text": text}
            if "completed" in new_item.model_fields_set:
                updates["completed"] = new_item.completed
            extension = new_item.extension_fields()
            if extension:
                updates["extra"] = {**current.extra, **extension}
            items[index] = current.model_copy(update=updates)
            result.updated += 1
            result.touched_ids.append(current.id)
        else:
            item = ChecklistItem(
                text=text,
                completed=new_item.completed,
                extra=new_item.extension_fields(),
            )
            items.append(item)
            result.appended += 1
            result.touched_ids.append(item.id)

    return result


def replace_checklist(
    existing: Sequence[ChecklistItem],
    incoming: Sequence[ChecklistItemInput],
) -> list[ChecklistItem]:
    """Build a checklist from `incoming` alone, in its order.

    Items whose text matches an existing item keep that item's identity;
    existing items absent from `incoming` are dropped.
    """
    known: dict[str, ChecklistItem] = {}
    for item in existing:
        known.setdefault(item.text.strip(), item)

    items = []
    for new_item in incoming:
        text = new_item.text.strip()
        current = known.get(text)
        items.append(
            ChecklistItem(
                id=current.id if current else new_id(),
                text=text,
                completed=new_item.completed,
                extra=new_item.extension_fields(),
            )
        )
    return items


def compute_progress(items: Sequence[ChecklistItem]) -> int:
    """Completion percentage, rounded half up; 0 for an empty checklist."""
    total = len(items)
    if total == 0:
        return 0
    completed = sum(1 for item in items if item.completed)
    return (200 * completed + total) // (2 * total)


def derive_status(progress: int) -> TaskStatus:
    """Status implied by a progress percentage."""
    if progress >= 100:
        return TaskStatus.COMPLETED
    if progress > 0:
        return TaskStatus.IN_PROGRESS
    return TaskStatus.PENDING


def apply_progress(task: Task) -> Task:
    """Recompute a task's progress and status from its checklist in place."""
    task.progress = compute_progress(task.todo_checklists)
    task.status = derive_status(task.progress)
    return task

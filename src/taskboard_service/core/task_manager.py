"""Task lifecycle management."""

import time
from collections.abc import Sequence
from contextlib import contextmanager
from typing import Any, Iterator

import pydantic

from taskboard_service.auth.authenticator import Identity
from taskboard_service.core.checklist import (
    ChecklistItemInput,
    apply_progress,
    merge_checklist,
    replace_checklist,
)
from taskboard_service.errors import AuthorizationError, NotFoundError, ValidationError
from taskboard_service.models import Task, TaskPriority, TaskStatus, User, utc_now
from taskboard_service.storage.document_store import DocumentStore, Filters
from taskboard_service.utils.logging import get_logger
from taskboard_service.utils.metrics import get_metrics

logger = get_logger(__name__)
metrics = get_metrics()

RECENT_TASK_LIMIT = 10
RECENT_TASK_FIELDS = {"id", "title", "status", "priority", "due_date", "created_at"}

# Fields an admin may change through a general update
UPDATABLE_FIELDS = ("title", "description", "priority", "due_date", "attachments")


def _distribution(values: Sequence[str], counts: dict[Any, int]) -> dict[str, int]:
    """Counts keyed by each value with whitespace removed ("In Progress" -> "InProgress")."""
    return {value.replace(" ", ""): counts.get(value, 0) for value in values}


def _as_checklist_inputs(items: Any) -> list[ChecklistItemInput]:
    if not isinstance(items, list):
        raise ValidationError("todoChecklists should be an array of checklist items")
    try:
        return [
            item if isinstance(item, ChecklistItemInput) else ChecklistItemInput.model_validate(item)
            for item in items
        ]
    except pydantic.ValidationError as e:
        raise ValidationError("Every checklist item needs non-empty text", errors=e.errors(include_url=False, include_context=False)) from e


def _as_assignees(value: Any) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError("assignedTo should be an array of user IDs")
    return list(dict.fromkeys(value))


class TaskManager:
    """Manages tasks.

    Provides:
    - Creation, update and deletion (admin only)
    - Status changes and checklist merges (assignees and admins)
    - Listings and dashboards scoped to the caller
    """

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    @contextmanager
    def _timed(self, operation: str) -> Iterator[None]:
        start = time.perf_counter()
        status = "success"
        try:
            yield
        except Exception:
            status = "error"
            raise
        finally:
            metrics.record_task_operation(
                operation=operation,
                status=status,
                duration=time.perf_counter() - start,
            )

    async def _load(self, task_id: str) -> Task:
        doc = await self.store.get("tasks", task_id)
        if doc is None:
            raise NotFoundError("Task", task_id)
        return Task.model_validate(doc)

    async def _save(self, task: Task, fields: Sequence[str]) -> None:
        """Write the named fields of a task back, leaving the rest as stored."""
        task.touch()
        doc = task.to_document()
        changes = {name: doc[name] for name in (*fields, "updated_at")}
        if not await self.store.update_fields("tasks", task.id, changes):
            raise NotFoundError("Task", task.id)

    async def _user_summaries(self, user_ids: Sequence[str]) -> list[dict[str, Any]]:
        """Name, email and image for each existing user; unknown IDs are skipped."""
        summaries = []
        for user_id in user_ids:
            doc = await self.store.get("users", user_id)
            if doc is not None:
                summaries.append(User.model_validate(doc).summary())
        return summaries

    async def populate(self, task: Task) -> dict[str, Any]:
        """API shape of a task with `assignedTo` expanded to user summaries."""
        data = task.to_api()
        data["assignedTo"] = await self._user_summaries(task.assigned_to)
        return data

    @staticmethod
    def _require_assignee_or_admin(task: Task, caller: Identity, message: str) -> None:
        if not caller.is_admin and not task.is_assignee(caller.user_id):
            raise AuthorizationError(message)

    @staticmethod
    def _require_admin(caller: Identity) -> None:
        if not caller.is_admin:
            raise AuthorizationError("Admin access denied")

    async def create_task(self, caller: Identity, fields: dict[str, Any]) -> Task:
        """Create a task.

        Args:
            caller: Authenticated admin
            fields: Task fields (snake_case); `assigned_to` must be a list

        Returns:
            The stored task

        Raises:
            AuthorizationError: If the caller is not an admin
            ValidationError: If fields are missing or malformed
        """
        self._require_admin(caller)
        with self._timed("create"):
            fields = dict(fields)
            assigned = _as_assignees(fields.pop("assigned_to", None))
            checklist = _as_checklist_inputs(fields.pop("todo_checklists", None) or [])
            requested_status = fields.pop("status", None)

            try:
                task = Task(
                    **{k: v for k, v in fields.items() if v is not None},
                    assigned_to=assigned,
                    created_by=caller.user_id,
                    todo_checklists=merge_checklist([], checklist).items,
                )
            except pydantic.ValidationError as e:
                raise ValidationError("Invalid task", errors=e.errors(include_url=False, include_context=False)) from e

            if task.todo_checklists:
                apply_progress(task)
            elif requested_status:
                self._override_status(task, requested_status)

            await self.store.insert("tasks", task.to_document())

        logger.info("task_created", task_id=task.id, created_by=caller.user_id, assignees=len(assigned))
        return task

    async def get_task(self, task_id: str) -> dict[str, Any]:
        """Fetch a task with assignees populated.

        Raises:
            NotFoundError: If the task does not exist
        """
        return await self.populate(await self._load(task_id))

    async def list_tasks(self, caller: Identity, status: str | None = None) -> dict[str, Any]:
        """List tasks visible to the caller.

        Admins see every task; members see tasks assigned to them. Each task
        carries `completedTodoCount`. `statusSummary` counts the caller's
        whole scope regardless of the status filter.

        Args:
            caller: Authenticated caller
            status: Optional status filter

        Returns:
            Dict with "tasks" and "statusSummary"
        """
        scope: Filters = {} if caller.is_admin else {"assigned_to": caller.user_id}
        filters = dict(scope)
        if status:
            filters["status"] = status

        tasks = []
        for doc in await self.store.find("tasks", filters):
            task = Task.model_validate(doc)
            data = await self.populate(task)
            data["completedTodoCount"] = task.completed_todo_count
            tasks.append(data)

        by_status = await self.store.aggregate_count("tasks", "status", scope)
        return {
            "tasks": tasks,
            "statusSummary": {
                "all": sum(by_status.values()),
                "pendingTasks": by_status.get(TaskStatus.PENDING.value, 0),
                "inProgressTasks": by_status.get(TaskStatus.IN_PROGRESS.value, 0),
                "completedTasks": by_status.get(TaskStatus.COMPLETED.value, 0),
            },
        }

    async def update_task(self, caller: Identity, task_id: str, fields: dict[str, Any]) -> Task:
        """Apply an admin update.

        Fields that are absent or null keep their value. Replacing the
        checklist re-derives progress and status.

        Raises:
            AuthorizationError: If the caller is not an admin
            NotFoundError: If the task does not exist
            ValidationError: If a field is malformed
        """
        self._require_admin(caller)
        with self._timed("update"):
            task = await self._load(task_id)

            changed: list[str] = []
            try:
                for name in UPDATABLE_FIELDS:
                    value = fields.get(name)
                    if value is not None and value != "":
                        setattr(task, name, value)
                        changed.append(name)
            except pydantic.ValidationError as e:
                raise ValidationError("Invalid task", errors=e.errors(include_url=False, include_context=False)) from e

            if fields.get("assigned_to") is not None:
                task.assigned_to = _as_assignees(fields["assigned_to"])
                changed.append("assigned_to")

            if fields.get("todo_checklists") is not None:
                task.todo_checklists = replace_checklist(
                    task.todo_checklists, _as_checklist_inputs(fields["todo_checklists"])
                )
                apply_progress(task)
                changed.extend(["todo_checklists", "progress", "status"])

            await self._save(task, changed)

        logger.info("task_updated", task_id=task_id, fields=sorted(k for k, v in fields.items() if v is not None))
        return task

    async def delete_task(self, caller: Identity, task_id: str) -> None:
        """Delete a task.

        Raises:
            AuthorizationError: If the caller is not an admin
            NotFoundError: If the task does not exist
        """
        self._require_admin(caller)
        with self._timed("delete"):
            if not await self.store.delete("tasks", task_id):
                raise NotFoundError("Task", task_id)
        logger.info("task_deleted", task_id=task_id, deleted_by=caller.user_id)

    @staticmethod
    def _override_status(task: Task, status: str) -> None:
        try:
            task.status = TaskStatus(status)
        except ValueError as e:
            raise ValidationError(f"Invalid status: {status}") from e
        if task.status == TaskStatus.COMPLETED:
            task.progress = 100

    async def update_status(self, caller: Identity, task_id: str, status: str | None) -> Task:
        """Set a task's status directly.

        Marking a task Completed sets progress to 100. The next checklist
        merge derives status from the checklist again.

        Raises:
            NotFoundError: If the task does not exist
            AuthorizationError: If the caller is neither assignee nor admin
            ValidationError: If the status is unknown
        """
        with self._timed("status"):
            task = await self._load(task_id)
            self._require_assignee_or_admin(task, caller, "Not authorized to update this task")

            if status:
                self._override_status(task, status)
            await self._save(task, ["status", "progress"])

        logger.info("task_status_updated", task_id=task_id, status=task.status, user_id=caller.user_id)
        return task

    async def update_checklist(
        self,
        caller: Identity,
        task_id: str,
        items: Sequence[ChecklistItemInput | dict[str, Any]],
    ) -> dict[str, Any]:
        """Merge checklist items into a task and recompute its progress.

        Items match existing ones by trimmed text and update them in place;
        other items are appended. Progress and status are then derived from
        the whole checklist.

        Args:
            caller: Authenticated assignee or admin
            task_id: Task to update
            items: Incoming checklist items, applied in order

        Returns:
            The updated task, re-read, with assignees populated

        Raises:
            NotFoundError: If the task does not exist
            AuthorizationError: If the caller is neither assignee nor admin
            ValidationError: If an item has no text
        """
        with self._timed("checklist"):
            task = await self._load(task_id)
            self._require_assignee_or_admin(task, caller, "Not authorized")

            result = merge_checklist(task.todo_checklists, _as_checklist_inputs(list(items)))
            task.todo_checklists = result.items
            apply_progress(task)
            await self._save(task, ["todo_checklists", "progress", "status"])

            metrics.checklist_items_merged_total.labels(outcome="updated").inc(result.updated)
            metrics.checklist_items_merged_total.labels(outcome="appended").inc(result.appended)

            updated = await self.get_task(task_id)

        logger.info(
            "task_checklist_updated",
            task_id=task_id,
            updated=result.updated,
            appended=result.appended,
            progress=task.progress,
            status=task.status,
        )
        return updated

    async def dashboard(self, caller: Identity | None = None) -> dict[str, Any]:
        """Task statistics, status/priority charts and recent tasks.

        Args:
            caller: Restrict to tasks assigned to this user; None for all tasks

        Returns:
            Dict with "statistics", "charts" and "recentTasks"
        """
        scope: Filters = {} if caller is None else {"assigned_to": caller.user_id}

        total = await self.store.count("tasks", scope)
        by_status = await self.store.aggregate_count("tasks", "status", scope)
        by_priority = await self.store.aggregate_count("tasks", "priority", scope)
        overdue = await self.store.count(
            "tasks",
            {
                **scope,
                "status": {"$ne": TaskStatus.COMPLETED.value},
                "due_date": {"$lt": utc_now()},
            },
        )

        status_chart = _distribution([s.value for s in TaskStatus], by_status)
        if caller is not None:
            status_chart["All"] = total

        recent_docs = await self.store.find(
            "tasks", scope, sort="created_at", descending=True, limit=RECENT_TASK_LIMIT
        )
        recent = [Task.model_validate(doc).to_api(include=RECENT_TASK_FIELDS) for doc in recent_docs]

        return {
            "statistics": {
                "totalTasks": total,
                "pendingTasks": by_status.get(TaskStatus.PENDING.value, 0),
                "completedTasks": by_status.get(TaskStatus.COMPLETED.value, 0),
                "overdueTasks": overdue,
            },
            "charts": {
                "taskDistribution": status_chart,
                "taskPriorityLevels": _distribution([p.value for p in TaskPriority], by_priority),
            },
            "recentTasks": recent,
        }

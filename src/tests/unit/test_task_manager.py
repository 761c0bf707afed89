"""Unit tests for task management, listings and dashboards."""

from datetime import timedelta

import pytest

from taskboard_service.auth.authenticator import Identity
from taskboard_service.core.notification_dispatcher import NotificationDispatcher
from taskboard_service.core.task_manager import TaskManager
from taskboard_service.errors import AuthorizationError, NotFoundError, ValidationError
from taskboard_service.models import Task, TaskStatus, utc_now
from taskboard_service.storage.document_store import DocumentStore
from tests.fixtures.factories import insert_task, insert_user


class TestCreateTask:
    """Tests for task creation."""

    @pytest.mark.asyncio
    async def test_admin_creates_task(self, task_manager: TaskManager, admin: Identity, store: DocumentStore) -> None:
        task = await task_manager.create_task(
            admin,
            {"title": "Release", "assigned_to": ["u1", "u2"], "priority": "High"},
        )

        stored = Task.model_validate(await store.get("tasks", task.id))
        assert stored.title == "Release"
        assert stored.assigned_to == ["u1", "u2"]
        assert stored.created_by == admin.user_id
        assert stored.status == TaskStatus.PENDING.value
        assert stored.progress == 0

    @pytest.mark.asyncio
    async def test_member_cannot_create(self, task_manager: TaskManager, member: Identity) -> None:
        with pytest.raises(AuthorizationError):
            await task_manager.create_task(member, {"title": "Nope", "assigned_to": []})

    @pytest.mark.parametrize("assigned_to", [None, "u1", [1, 2]])
    @pytest.mark.asyncio
    async def test_assigned_to_must_be_list_of_ids(
        self, task_manager: TaskManager, admin: Identity, assigned_to: object
    ) -> None:
        with pytest.raises(ValidationError, match="assignedTo should be an array of user IDs"):
            await task_manager.create_task(admin, {"title": "Bad", "assigned_to": assigned_to})

    @pytest.mark.asyncio
    async def test_initial_checklist_derives_progress(self, task_manager: TaskManager, admin: Identity) -> None:
        task = await task_manager.create_task(
            admin,
            {
                "title": "With checklist",
                "assigned_to": [],
                "status": "Pending",
                "todo_checklists": [{"text": "a", "completed": True}, {"text": "b"}],
            },
        )

        assert task.progress == 50
        assert task.status == TaskStatus.IN_PROGRESS.value

    @pytest.mark.asyncio
    async def test_requested_status_used_without_checklist(self, task_manager: TaskManager, admin: Identity) -> None:
        task = await task_manager.create_task(admin, {"title": "Done already", "assigned_to": [], "status": "Completed"})

        assert task.status == TaskStatus.COMPLETED.value
        assert task.progress == 100

    @pytest.mark.asyncio
    async def test_missing_title_rejected(self, task_manager: TaskManager, admin: Identity, store: DocumentStore) -> None:
        with pytest.raises(ValidationError):
            await task_manager.create_task(admin, {"assigned_to": []})
        assert await store.count("tasks") == 0


class TestUpdateChecklist:
    """Tests for checklist merges through the task manager."""

    @pytest.mark.asyncio
    async def test_assignee_merges_checklist(
        self, task_manager: TaskManager, member: Identity, store: DocumentStore
    ) -> None:
        await insert_user(store, id=member.user_id, name="Ada")
        task = await insert_task(store, checklist=[("a", True), ("b", False)], assigned_to=[member.user_id])

        updated = await task_manager.update_checklist(
            member,
            task.id,
            [{"text": "b", "completed": True}, {"text": "c", "completed": False}],
        )

        assert len(updated["todoChecklists"]) == 3
        assert updated["progress"] == 67
        assert updated["status"] == "In Progress"
        assert updated["assignedTo"][0]["name"] == "Ada"

        stored = Task.model_validate(await store.get("tasks", task.id))
        assert stored.progress == 67

    @pytest.mark.asyncio
    async def test_admin_may_merge_unassigned_task(
        self, task_manager: TaskManager, admin: Identity, store: DocumentStore
    ) -> None:
        task = await insert_task(store, checklist=[("a", False)])

        updated = await task_manager.update_checklist(admin, task.id, [{"text": "a", "completed": True}])

        assert updated["status"] == "Completed"

    @pytest.mark.asyncio
    async def test_outsider_is_forbidden(
        self, task_manager: TaskManager, outsider: Identity, store: DocumentStore
    ) -> None:
        task = await insert_task(store, checklist=[("a", False)], assigned_to=["u1"])

        with pytest.raises(AuthorizationError, match="Not authorized"):
            await task_manager.update_checklist(outsider, task.id, [{"text": "a", "completed": True}])

        stored = Task.model_validate(await store.get("tasks", task.id))
        assert stored.todo_checklists[0].completed is False

    @pytest.mark.asyncio
    async def test_missing_task(self, task_manager: TaskManager, admin: Identity) -> None:
        with pytest.raises(NotFoundError):
            await task_manager.update_checklist(admin, "missing", [{"text": "a"}])

    @pytest.mark.asyncio
    async def test_item_without_text_rejected(
        self, task_manager: TaskManager, admin: Identity, store: DocumentStore
    ) -> None:
        task = await insert_task(store)

        with pytest.raises(ValidationError):
            await task_manager.update_checklist(admin, task.id, [{"completed": True}])


class TestUpdateStatus:
    """Tests for manual status changes."""

    @pytest.mark.asyncio
    async def test_completed_sets_full_progress(
        self, task_manager: TaskManager, member: Identity, store: DocumentStore
    ) -> None:
        task = await insert_task(store, checklist=[("a", False)], assigned_to=[member.user_id])

        updated = await task_manager.update_status(member, task.id, "Completed")

        assert updated.status == TaskStatus.COMPLETED.value
        assert updated.progress == 100

    @pytest.mark.asyncio
    async def test_next_merge_rederives_status(
        self, task_manager: TaskManager, member: Identity, store: DocumentStore
    ) -> None:
        task = await insert_task(store, checklist=[("a", False), ("b", False)], assigned_to=[member.user_id])
        await task_manager.update_status(member, task.id, "Completed")

        updated = await task_manager.update_checklist(member, task.id, [{"text": "a", "completed": True}])

        assert updated["progress"] == 50
        assert updated["status"] == "In Progress"

    @pytest.mark.asyncio
    async def test_non_assignee_forbidden(
        self, task_manager: TaskManager, outsider: Identity, store: DocumentStore
    ) -> None:
        task = await insert_task(store, assigned_to=["u1"])

        with pytest.raises(AuthorizationError, match="Not authorized to update this task"):
            await task_manager.update_status(outsider, task.id, "Completed")

    @pytest.mark.asyncio
    async def test_unknown_status_rejected(
        self, task_manager: TaskManager, admin: Identity, store: DocumentStore
    ) -> None:
        task = await insert_task(store)

        with pytest.raises(ValidationError):
            await task_manager.update_status(admin, task.id, "Blocked")


class TestUpdateAndDelete:
    """Tests for admin updates and deletion."""

    @pytest.mark.asyncio
    async def test_partial_update_keeps_other_fields(
        self, task_manager: TaskManager, admin: Identity, store: DocumentStore
    ) -> None:
        task = await insert_task(store, title="Old", description="Keep me")

        updated = await task_manager.update_task(admin, task.id, {"title": "New", "description": None})

        assert updated.title == "New"
        assert updated.description == "Keep me"

    @pytest.mark.asyncio
    async def test_replacing_checklist_rederives_progress(
        self, task_manager: TaskManager, admin: Identity, store: DocumentStore
    ) -> None:
        task = await insert_task(store, checklist=[("a", False), ("b", False)])

        updated = await task_manager.update_task(
            admin, task.id, {"todo_checklists": [{"text": "a", "completed": True}]}
        )

        assert [item.text for item in updated.todo_checklists] == ["a"]
        assert updated.todo_checklists[0].id == task.todo_checklists[0].id
        assert updated.progress == 100
        assert updated.status == TaskStatus.COMPLETED.value

    @pytest.mark.asyncio
    async def test_update_rejects_non_list_assignees(
        self, task_manager: TaskManager, admin: Identity, store: DocumentStore
    ) -> None:
        task = await insert_task(store)

        with pytest.raises(ValidationError):
            await task_manager.update_task(admin, task.id, {"assigned_to": "u1"})

    @pytest.mark.asyncio
    async def test_member_cannot_update_or_delete(
        self, task_manager: TaskManager, member: Identity, store: DocumentStore
    ) -> None:
        task = await insert_task(store, assigned_to=[member.user_id])

        with pytest.raises(AuthorizationError):
            await task_manager.update_task(member, task.id, {"title": "Mine now"})
        with pytest.raises(AuthorizationError):
            await task_manager.delete_task(member, task.id)

    @pytest.mark.asyncio
    async def test_delete(self, task_manager: TaskManager, admin: Identity, store: DocumentStore) -> None:
        task = await insert_task(store)

        await task_manager.delete_task(admin, task.id)

        assert await store.get("tasks", task.id) is None
        with pytest.raises(NotFoundError):
            await task_manager.delete_task(admin, task.id)


class TestConcurrentNotificationLinks:
    """Saves must not drop notification links written after the task was loaded."""

    @staticmethod
    def _dispatch_before_write(
        monkeypatch: pytest.MonkeyPatch,
        store: DocumentStore,
        dispatcher: NotificationDispatcher,
        linked: list[str],
    ) -> None:
        """Dispatch a task notification the first time a task is written back."""
        original = store.update_fields

        async def update_fields(collection, doc_id, fields):
            if not linked:
                notification = await dispatcher.dispatch(["u1"], "Heads up", related_task=doc_id)
                linked.append(notification.id)
            return await original(collection, doc_id, fields)

        monkeypatch.setattr(store, "update_fields", update_fields)

    @pytest.mark.asyncio
    async def test_checklist_merge_keeps_link(
        self,
        monkeypatch: pytest.MonkeyPatch,
        task_manager: TaskManager,
        dispatcher: NotificationDispatcher,
        member: Identity,
        store: DocumentStore,
    ) -> None:
        task = await insert_task(store, checklist=[("a", False)], assigned_to=[member.user_id])
        linked: list[str] = []
        self._dispatch_before_write(monkeypatch, store, dispatcher, linked)

        updated = await task_manager.update_checklist(member, task.id, [{"text": "a", "completed": True}])

        assert updated["progress"] == 100
        assert (await store.get("tasks", task.id))["notifications"] == linked

    @pytest.mark.asyncio
    async def test_status_and_admin_updates_keep_link(
        self,
        monkeypatch: pytest.MonkeyPatch,
        task_manager: TaskManager,
        dispatcher: NotificationDispatcher,
        admin: Identity,
        store: DocumentStore,
    ) -> None:
        task = await insert_task(store)
        linked: list[str] = []
        self._dispatch_before_write(monkeypatch, store, dispatcher, linked)

        await task_manager.update_status(admin, task.id, "Completed")
        await task_manager.update_task(admin, task.id, {"title": "Renamed"})

        stored = Task.model_validate(await store.get("tasks", task.id))
        assert stored.notifications == linked
        assert stored.title == "Renamed"
        assert stored.status == TaskStatus.COMPLETED.value


class TestQueries:
    """Tests for listings and dashboards."""

    @pytest.mark.asyncio
    async def test_member_lists_only_assigned_tasks(
        self, task_manager: TaskManager, member: Identity, admin: Identity, store: DocumentStore
    ) -> None:
        mine = await insert_task(store, checklist=[("a", True), ("b", False)], assigned_to=[member.user_id])
        await insert_task(store, assigned_to=["someone-else"])

        listing = await task_manager.list_tasks(member)
        everything = await task_manager.list_tasks(admin)

        assert [t["id"] for t in listing["tasks"]] == [mine.id]
        assert listing["tasks"][0]["completedTodoCount"] == 1
        assert len(everything["tasks"]) == 2

    @pytest.mark.asyncio
    async def test_status_summary_ignores_filter(
        self, task_manager: TaskManager, admin: Identity, store: DocumentStore
    ) -> None:
        await insert_task(store, status="Pending")
        await insert_task(store, status="Completed")
        await insert_task(store, status="In Progress")

        listing = await task_manager.list_tasks(admin, status="Completed")

        assert len(listing["tasks"]) == 1
        assert listing["statusSummary"] == {
            "all": 3,
            "pendingTasks": 1,
            "inProgressTasks": 1,
            "completedTasks": 1,
        }

    @pytest.mark.asyncio
    async def test_dashboard_statistics_and_charts(
        self, task_manager: TaskManager, member: Identity, store: DocumentStore
    ) -> None:
        past = utc_now() - timedelta(days=2)
        await insert_task(store, status="Pending", priority="High", due_date=past, assigned_to=[member.user_id])
        await insert_task(store, status="Completed", priority="Low", due_date=past)
        await insert_task(store, status="In Progress", priority="High")

        dashboard = await task_manager.dashboard()
        mine = await task_manager.dashboard(caller=member)

        assert dashboard["statistics"] == {
            "totalTasks": 3,
            "pendingTasks": 1,
            "completedTasks": 1,
            "overdueTasks": 1,
        }
        assert dashboard["charts"]["taskDistribution"] == {"Pending": 1, "InProgress": 1, "Completed": 1}
        assert dashboard["charts"]["taskPriorityLevels"] == {"Low": 1, "Medium": 0, "High": 2}
        assert len(dashboard["recentTasks"]) == 3
        assert set(dashboard["recentTasks"][0]) == {"id", "title", "status", "priority", "dueDate", "createdAt"}

        assert mine["statistics"]["totalTasks"] == 1
        assert mine["charts"]["taskDistribution"]["All"] == 1
        assert "All" not in dashboard["charts"]["taskDistribution"]

    @pytest.mark.asyncio
    async def test_get_task_populates_assignees(
        self, task_manager: TaskManager, store: DocumentStore
    ) -> None:
        user = await insert_user(store, name="Grace")
        task = await insert_task(store, assigned_to=[user.id, "deleted-user"])

        data = await task_manager.get_task(task.id)

        assert data["assignedTo"] == [user.summary()]
        assert "password" not in data["assignedTo"][0]

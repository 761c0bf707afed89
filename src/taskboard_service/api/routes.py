"""HTTP routes for auth, users, tasks and notifications."""

from typing import Any

from fastapi import APIRouter, status

from taskboard_service.api.dependencies import AdminIdentity, CurrentIdentity, Dispatcher, Tasks, Users
from taskboard_service.api.schemas import (
    ChecklistUpdate,
    LoginRequest,
    MarkReadRequest,
    NotificationCreate,
    RegisterRequest,
    StatusUpdate,
    TaskCreate,
    TaskUpdate,
)

auth_router = APIRouter(prefix="/api/auth", tags=["auth"])
users_router = APIRouter(prefix="/api/users", tags=["users"])
tasks_router = APIRouter(prefix="/api/tasks", tags=["tasks"])
notifications_router = APIRouter(prefix="/api/notifications", tags=["notifications"])


# Auth


@auth_router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, users: Users) -> dict[str, Any]:
    user, token = await users.register(
        name=body.name,
        email=body.email,
        password=body.password,
        profile_image_url=body.profile_image_url,
        admin_invite_token=body.admin_invite_token,
    )
    return {**user.to_api(), "token": token}


@auth_router.post("/login")
async def login(body: LoginRequest, users: Users) -> dict[str, Any]:
    user, token = await users.login(body.email, body.password)
    return {**user.to_api(), "token": token}


@auth_router.get("/profile")
async def profile(identity: CurrentIdentity, users: Users) -> dict[str, Any]:
    user = await users.get_user(identity.user_id)
    return user.to_api()


# Users


@users_router.get("")
async def list_users(_: AdminIdentity, users: Users) -> list[dict[str, Any]]:
    return await users.list_users_with_counts()


@users_router.get("/{user_id}")
async def get_user(user_id: str, _: AdminIdentity, users: Users) -> dict[str, Any]:
    user = await users.get_user(user_id)
    return user.to_api()


@users_router.delete("/{user_id}")
async def delete_user(user_id: str, _: AdminIdentity, users: Users) -> dict[str, Any]:
    await users.delete_user(user_id)
    return {"message": "User deleted successfully"}


# Tasks


@tasks_router.get("/dashboard")
async def dashboard(_: CurrentIdentity, tasks: Tasks) -> dict[str, Any]:
    return await tasks.dashboard()


@tasks_router.get("/user-dashboard")
async def user_dashboard(identity: CurrentIdentity, tasks: Tasks) -> dict[str, Any]:
    return await tasks.dashboard(caller=identity)


@tasks_router.get("")
async def list_tasks(identity: CurrentIdentity, tasks: Tasks, status: str | None = None) -> dict[str, Any]:
    return await tasks.list_tasks(identity, status=status)


@tasks_router.post("", status_code=status.HTTP_201_CREATED)
async def create_task(body: TaskCreate, identity: AdminIdentity, tasks: Tasks) -> dict[str, Any]:
    task = await tasks.create_task(identity, body.model_dump())
    return {"message": "Task Created Successfully", "task": task.to_api()}


@tasks_router.get("/{task_id}")
async def get_task(task_id: str, _: CurrentIdentity, tasks: Tasks) -> dict[str, Any]:
    return await tasks.get_task(task_id)


@tasks_router.put("/{task_id}")
async def update_task(task_id: str, body: TaskUpdate, identity: AdminIdentity, tasks: Tasks) -> dict[str, Any]:
    task = await tasks.update_task(identity, task_id, body.model_dump(exclude_unset=True))
    return {"message": "Task updated successfully", "task": task.to_api()}


@tasks_router.delete("/{task_id}")
async def delete_task(task_id: str, identity: AdminIdentity, tasks: Tasks) -> dict[str, Any]:
    await tasks.delete_task(identity, task_id)
    return {"message": "Task deleted successfully"}


@tasks_router.put("/{task_id}/status")
async def update_task_status(
    task_id: str, body: StatusUpdate, identity: CurrentIdentity, tasks: Tasks
) -> dict[str, Any]:
    task = await tasks.update_status(identity, task_id, body.status)
    return {"message": "Task status updated successfully", "task": task.to_api()}


@tasks_router.put("/{task_id}/checklist")
async def update_task_checklist(
    task_id: str, body: ChecklistUpdate, identity: CurrentIdentity, tasks: Tasks
) -> dict[str, Any]:
    task = await tasks.update_checklist(identity, task_id, body.todo_checklists)
    return {"message": "Checklist updated successfully", "task": task}


# Notifications


@notifications_router.post("", status_code=status.HTTP_201_CREATED)
async def create_notification(body: NotificationCreate, _: AdminIdentity, dispatcher: Dispatcher) -> dict[str, Any]:
    notification = await dispatcher.dispatch(
        recipients=body.team,
        text=body.text,
        related_task=body.task,
        noti_type=body.noti_type,
    )
    return {**notification.to_api(), "message": "Notification created and sent successfully"}


@notifications_router.get("/user")
async def user_notifications(identity: CurrentIdentity, dispatcher: Dispatcher) -> list[dict[str, Any]]:
    return await dispatcher.list_for_user(identity.user_id)


@notifications_router.post("/read")
async def mark_notification_read(
    body: MarkReadRequest, identity: CurrentIdentity, dispatcher: Dispatcher
) -> dict[str, Any]:
    notification = await dispatcher.mark_read(body.notification_id, body.user_id, caller=identity)
    return notification.to_api()

"""FastAPI dependencies resolving the caller and the services on app.state."""

from typing import Annotated

from fastapi import Depends, Header, Request

from taskboard_service.auth.authenticator import Authenticator, Identity
from taskboard_service.core.notification_dispatcher import NotificationDispatcher
from taskboard_service.core.task_manager import TaskManager
from taskboard_service.core.user_manager import UserManager
from taskboard_service.errors import AuthorizationError


def get_authenticator(request: Request) -> Authenticator:
    return request.app.state.authenticator


def get_task_manager(request: Request) -> TaskManager:
    return request.app.state.task_manager


def get_user_manager(request: Request) -> UserManager:
    return request.app.state.user_manager


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


async def current_identity(
    authenticator: Annotated[Authenticator, Depends(get_authenticator)],
    authorization: Annotated[str | None, Header()] = None,
) -> Identity:
    """Resolve the `Authorization: Bearer <token>` header to the caller."""
    return await authenticator.verify(authorization)


async def require_admin(identity: Annotated[Identity, Depends(current_identity)]) -> Identity:
    """Resolve the caller and require the admin role."""
    if not identity.is_admin:
        raise AuthorizationError("Admin access denied")
    return identity


CurrentIdentity = Annotated[Identity, Depends(current_identity)]
AdminIdentity = Annotated[Identity, Depends(require_admin)]
Tasks = Annotated[TaskManager, Depends(get_task_manager)]
Users = Annotated[UserManager, Depends(get_user_manager)]
Dispatcher = Annotated[NotificationDispatcher, Depends(get_dispatcher)]

"""Test data factories."""

from tests.fixtures.factories import (
    NotificationFactory,
    TaskFactory,
    UserFactory,
    insert_task,
    insert_user,
)

__all__ = [
    "NotificationFactory",
    "TaskFactory",
    "UserFactory",
    "insert_task",
    "insert_user",
]

"""Pytest fixtures for the taskboard service tests."""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from pydantic import SecretStr

from taskboard_service.auth.authenticator import Identity
from taskboard_service.auth.tokens import TokenService
from taskboard_service.config import Settings
from taskboard_service.core.notification_dispatcher import NotificationDispatcher
from taskboard_service.core.task_manager import TaskManager
from taskboard_service.core.user_manager import UserManager
from taskboard_service.models import UserRole
from taskboard_service.realtime.channels import ChannelHub
from taskboard_service.realtime.presence import PresenceRegistry
from taskboard_service.storage.document_store import DocumentStore


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Create test settings pointing at a temporary database."""
    return Settings(
        database_path=str(tmp_path / "taskboard.db"),
        token_secret=SecretStr("test-secret"),
        token_ttl_minutes=60,
        bcrypt_rounds=4,
        admin_invite_token=SecretStr("let-me-admin"),
        log_level="DEBUG",
        log_format="console",
        metrics_enabled=True,
    )


@pytest.fixture
async def store(tmp_path: Path) -> AsyncGenerator[DocumentStore, None]:
    """Initialized document store in a temporary directory."""
    document_store = DocumentStore(str(tmp_path / "store.db"))
    await document_store.initialize()
    yield document_store
    await document_store.close()


@pytest.fixture
def presence() -> PresenceRegistry:
    return PresenceRegistry()


@pytest.fixture
def hub() -> ChannelHub:
    return ChannelHub()


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(SecretStr("test-secret"), ttl_minutes=60)


@pytest.fixture
def dispatcher(store: DocumentStore, presence: PresenceRegistry, hub: ChannelHub) -> NotificationDispatcher:
    return NotificationDispatcher(store, presence, hub)


@pytest.fixture
def task_manager(store: DocumentStore) -> TaskManager:
    return TaskManager(store)


@pytest.fixture
def user_manager(store: DocumentStore, tokens: TokenService) -> UserManager:
    return UserManager(
        store,
        tokens,
        admin_invite_token=SecretStr("let-me-admin"),
        bcrypt_rounds=4,
    )


@pytest.fixture
def admin() -> Identity:
    return Identity(user_id="admin-1", role=UserRole.ADMIN)


@pytest.fixture
def member() -> Identity:
    return Identity(user_id="u1", role=UserRole.MEMBER)


@pytest.fixture
def outsider() -> Identity:
    return Identity(user_id="u9", role=UserRole.MEMBER)

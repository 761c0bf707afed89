"""User registration, login and administration."""

import hmac
from typing import Any

import pydantic
from pydantic import SecretStr

from taskboard_service.auth.passwords import hash_password, verify_password
from taskboard_service.auth.tokens import TokenService
from taskboard_service.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from taskboard_service.models import Task, TaskStatus, User, UserRole
from taskboard_service.storage.document_store import DocumentStore
from taskboard_service.utils.logging import get_logger

logger = get_logger(__name__)


class UserManager:
    """Manages user accounts and issues tokens on registration and login."""

    def __init__(
        self,
        store: DocumentStore,
        tokens: TokenService,
        admin_invite_token: SecretStr | None = None,
        bcrypt_rounds: int = 12,
    ) -> None:
        """Initialize user manager.

        Args:
            store: Document store
            tokens: Token service used to issue bearer tokens
            admin_invite_token: Registration token that grants the admin role
            bcrypt_rounds: bcrypt cost factor for new password hashes
        """
        self.store = store
        self.tokens = tokens
        self.admin_invite_token = admin_invite_token
        self.bcrypt_rounds = bcrypt_rounds

    def _role_for_invite(self, invite_token: str | None) -> UserRole:
        if not invite_token or self.admin_invite_token is None:
            return UserRole.MEMBER
        expected = self.admin_invite_token.get_secret_value()
        if expected and hmac.compare_digest(invite_token, expected):
            return UserRole.ADMIN
        return UserRole.MEMBER

    async def create_user(
        self,
        name: str,
        email: str,
        password: str,
        role: UserRole = UserRole.MEMBER,
        profile_image_url: str | None = None,
    ) -> User:
        """Create and store a user.

        Raises:
            ValidationError: If a field is missing or malformed
            ConflictError: If the email is already registered
        """
        if not password:
            raise ValidationError("Password is required")
        try:
            user = User(
                name=name,
                email=email,
                password=hash_password(password, rounds=self.bcrypt_rounds),
                role=role,
                profile_image_url=profile_image_url,
            )
        except pydantic.ValidationError as e:
            raise ValidationError("Invalid user", errors=e.errors(include_url=False, include_context=False)) from e

        try:
            await self.store.insert("users", user.to_document())
        except ConflictError as e:
            raise ConflictError("User already exists", email=user.email) from e

        logger.info("user_created", user_id=user.id, role=user.role)
        return user

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        profile_image_url: str | None = None,
        admin_invite_token: str | None = None,
    ) -> tuple[User, str]:
        """Register a new account.

        The admin role is granted only when `admin_invite_token` matches the
        configured invite token.

        Returns:
            Tuple of (user, bearer token)
        """
        user = await self.create_user(
            name=name,
            email=email,
            password=password,
            role=self._role_for_invite(admin_invite_token),
            profile_image_url=profile_image_url,
        )
        return user, self.tokens.issue(user.id)

    async def login(self, email: str, password: str) -> tuple[User, str]:
        """Verify credentials.

        Returns:
            Tuple of (user, bearer token)

        Raises:
            AuthenticationError: If the email is unknown or the password is wrong
        """
        doc = await self.store.find_one("users", {"email": email.strip().lower()})
        if doc is None or not verify_password(password, doc.get("password", "")):
            logger.info("login_failed", email=email)
            raise AuthenticationError("Invalid email or password")

        user = User.model_validate(doc)
        logger.info("login_succeeded", user_id=user.id)
        return user, self.tokens.issue(user.id)

    async def get_user(self, user_id: str) -> User:
        """Fetch a user.

        Raises:
            NotFoundError: If the user does not exist
        """
        doc = await self.store.get("users", user_id)
        if doc is None:
            raise NotFoundError("User", user_id)
        return User.model_validate(doc)

    async def list_users_with_counts(self) -> list[dict[str, Any]]:
        """All users with counts of tasks they created or are assigned to, by status."""
        results = []
        for doc in await self.store.find("users"):
            user = User.model_validate(doc)
            task_docs = await self.store.find(
                "tasks",
                {"$or": [{"created_by": user.id}, {"assigned_to": user.id}]},
            )
            statuses = [Task.model_validate(t).status for t in task_docs]
            results.append({
                **user.to_api(),
                "pendingTasksCount": statuses.count(TaskStatus.PENDING.value),
                "inProgressTasksCount": statuses.count(TaskStatus.IN_PROGRESS.value),
                "completedTasksCount": statuses.count(TaskStatus.COMPLETED.value),
            })
        return results

    async def delete_user(self, user_id: str) -> None:
        """Delete a user.

        Raises:
            NotFoundError: If the user does not exist
        """
        if not await self.store.delete("users", user_id):
            raise NotFoundError("User", user_id)
        logger.info("user_deleted", user_id=user_id)

"""Resolve bearer credentials to caller identities."""

from dataclasses import dataclass

from taskboard_service.auth.tokens import TokenService
from taskboard_service.errors import AuthenticationError
from taskboard_service.models.user import User, UserRole
from taskboard_service.storage.document_store import DocumentStore
from taskboard_service.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Identity:
    """The authenticated caller."""

    user_id: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class Authenticator:
    """Verifies a bearer credential and loads the user it belongs to."""

    def __init__(self, tokens: TokenService, store: DocumentStore) -> None:
        self.tokens = tokens
        self.store = store

    async def verify(self, credential: str | None) -> Identity:
        """Resolve an `Authorization` header value to an identity.

        Args:
            credential: Header value, expected as "Bearer <token>"

        Returns:
            Identity of the caller

        Raises:
            AuthenticationError: If the credential is missing, invalid, or its user no longer exists
        """
        if not credential or not credential.startswith("Bearer"):
            raise AuthenticationError("Not authorized, no token")

        parts = credential.split(" ", 1)
        if len(parts) != 2 or not parts[1].strip():
            raise AuthenticationError("Not authorized, no token")

        user_id = self.tokens.verify(parts[1].strip())

        doc = await self.store.get("users", user_id)
        if doc is None:
            logger.warning("token_user_missing", user_id=user_id)
            raise AuthenticationError("User not found")

        user = User.model_validate(doc)
        return Identity(user_id=user.id, role=UserRole(user.role))

"""Authentication: password hashing, bearer tokens, identity resolution."""

from taskboard_service.auth.authenticator import Authenticator, Identity
from taskboard_service.auth.passwords import hash_password, verify_password
from taskboard_service.auth.tokens import TokenService

__all__ = [
    "Authenticator",
    "Identity",
    "TokenService",
    "hash_password",
    "verify_password",
]

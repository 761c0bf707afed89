"""Signed bearer tokens.

Tokens are Fernet tokens (AES-CBC + HMAC-SHA256) whose plaintext is a JSON
object with the user ID (`sub`). Fernet stamps the issue time into the token,
so expiry is checked against the configured lifetime on decrypt.
"""

import base64
import hashlib
import json
import time

from cryptography.fernet import Fernet, InvalidToken
from pydantic import SecretStr

from taskboard_service.errors import AuthenticationError


class TokenService:
    """Issues and verifies bearer tokens."""

    def __init__(self, secret: SecretStr | str, ttl_minutes: int = 7 * 24 * 60) -> None:
        """Initialize token service.

        Args:
            secret: Signing secret; a Fernet key is derived from it with SHA-256
            ttl_minutes: Token lifetime
        """
        raw = secret.get_secret_value() if isinstance(secret, SecretStr) else secret
        derived = hashlib.sha256(raw.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(derived))
        self.ttl_seconds = ttl_minutes * 60

    def issue(self, user_id: str, now: float | None = None) -> str:
        """Issue a token for a user.

        Args:
            user_id: Subject of the token
            now: Issue time override (Unix seconds)

        Returns:
            Encoded token
        """
        issued_at = int(now if now is not None else time.time())
        body = json.dumps({"sub": user_id}, separators=(",", ":")).encode("utf-8")
        return self._fernet.encrypt_at_time(body, issued_at).decode("ascii")

    def verify(self, token: str, now: float | None = None) -> str:
        """Verify a token and return its user ID.

        Raises:
            AuthenticationError: If the token is malformed, tampered with, or expired
        """
        current = int(now if now is not None else time.time())
        try:
            issued_at = self._fernet.extract_timestamp(token)
        except (InvalidToken, TypeError, ValueError) as e:
            raise AuthenticationError("Token failed") from e

        if current - issued_at > self.ttl_seconds:
            raise AuthenticationError("Token expired")

        try:
            body = self._fernet.decrypt_at_time(token, self.ttl_seconds, current)
            claims = json.loads(body)
        except (InvalidToken, TypeError, ValueError) as e:
            raise AuthenticationError("Token failed") from e

        if not isinstance(claims, dict) or not isinstance(claims.get("sub"), str):
            raise AuthenticationError("Token failed")
        return claims["sub"]

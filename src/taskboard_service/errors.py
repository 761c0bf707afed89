"""Error hierarchy.

    TaskboardError
    ├── ValidationError      - missing or malformed input, nothing written
    ├── AuthenticationError  - missing, expired or invalid credential
    ├── AuthorizationError   - caller lacks the role or assignment required
    ├── NotFoundError        - referenced user, task or notification is missing
    ├── ConflictError        - uniqueness violation (duplicate email)
    └── PersistenceError     - the document store failed or rejected a write

Failures of best-effort side effects (real-time push, task linkage) are logged
where they happen and never raised.
"""

from typing import Any


class TaskboardError(Exception):
    """Base error for taskboard operations."""

    status_code = 500

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Serialize for an API error body."""
        return {"message": self.message, **self.context}


class ValidationError(TaskboardError):
    """Raised when required input is missing or malformed."""

    status_code = 400


class AuthenticationError(TaskboardError):
    """Raised when a bearer credential cannot be verified."""

    status_code = 401


class AuthorizationError(TaskboardError):
    """Raised when the caller is not allowed to perform the operation."""

    status_code = 403


class NotFoundError(TaskboardError):
    """Raised when a referenced document does not exist."""

    status_code = 404

    def __init__(self, kind: str, document_id: str) -> None:
        super().__init__(f"{kind} not found")
        self.kind = kind
        self.document_id = document_id


class ConflictError(TaskboardError):
    """Raised when a write would violate a uniqueness constraint."""

    status_code = 409


class PersistenceError(TaskboardError):
    """Raised when the document store is unavailable or rejects an operation."""

    status_code = 500

    def to_dict(self) -> dict[str, Any]:
        # Store details stay in the logs.
        return {"message": "Server Error"}

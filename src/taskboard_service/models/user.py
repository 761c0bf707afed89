"""User accounts."""

from enum import Enum
from typing import Any

from pydantic import Field, field_validator

from taskboard_service.models.base import Document


class UserRole(str, Enum):
    """Account roles."""

    ADMIN = "admin"
    MEMBER = "member"


class User(Document):
    """A registered account.

    `password` holds the bcrypt hash and is stripped from every API response.
    """

    name: str = Field(..., min_length=1, description="Display name")
    email: str = Field(..., min_length=3, description="Unique, lower-cased email address")
    password: str = Field(..., min_length=1, description="bcrypt password hash")
    role: UserRole = Field(default=UserRole.MEMBER, description="Account role")
    profile_image_url: str | None = Field(default=None, description="Profile image reference")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Lower-case and sanity check the email address."""
        v = v.strip().lower()
        local, _, domain = v.partition("@")
        if not local or not domain:
            raise ValueError(f"Invalid email address: {v}")
        return v

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def to_api(self, **kwargs: Any) -> dict[str, Any]:
        exclude = set(kwargs.pop("exclude", None) or ()) | {"password"}
        return super().to_api(exclude=exclude, **kwargs)

    def summary(self) -> dict[str, Any]:
        """Fields shown when a user is populated into a task."""
        return self.to_api(include={"id", "name", "email", "profile_image_url"})

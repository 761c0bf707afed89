"""Notifications addressed to a team of users."""

from enum import Enum

from pydantic import Field, field_validator, model_validator

from taskboard_service.models.base import Document


class NotificationType(str, Enum):
    """Notification categories."""

    ALERT = "alert"
    MESSAGE = "message"
    TASK_UPDATE = "task_update"


class Notification(Document):
    """A notification persisted for every recipient in `team`.

    `is_read` records which recipients acknowledged it and is always a subset
    of `team`.
    """

    team: list[str] = Field(..., min_length=1, description="Recipient user IDs")
    text: str = Field(..., min_length=1, description="Notification text")
    task: str | None = Field(default=None, description="Related task ID")
    noti_type: NotificationType = Field(default=NotificationType.ALERT, description="Notification category")
    is_read: list[str] = Field(default_factory=list, description="Recipients who acknowledged it")

    @field_validator("team", "is_read")
    @classmethod
    def dedupe(cls, v: list[str]) -> list[str]:
        """Drop duplicate IDs, keeping first occurrence order."""
        return list(dict.fromkeys(v))

    @model_validator(mode="after")
    def read_set_within_team(self) -> "Notification":
        strangers = set(self.is_read) - set(self.team)
        if strangers:
            raise ValueError(f"is_read contains non-recipients: {sorted(strangers)}")
        return self

    def is_recipient(self, user_id: str) -> bool:
        return user_id in self.team

    def mark_read(self, user_id: str) -> bool:
        """Record a read acknowledgment.

        Returns:
            True if the read-set changed, False if already acknowledged
        """
        if user_id in self.is_read:
            return False
        self.is_read = [*self.is_read, user_id]
        self.touch()
        return True

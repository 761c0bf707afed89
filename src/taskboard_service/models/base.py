"""Base document model and common types."""

from datetime import datetime, timezone
from typing import Annotated, Any
from uuid import uuid4

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel


def new_id() -> str:
    """Generate a document identifier."""
    return uuid4().hex


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Fixed-width ISO8601 form so stored timestamps compare lexicographically."""
    return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


Timestamp = Annotated[
    datetime,
    AfterValidator(ensure_utc),
    PlainSerializer(format_timestamp, return_type=str, when_used="json"),
]


class Document(BaseModel):
    """Base model for everything kept in the document store.

    Provides:
    - A string identifier assigned at creation
    - Creation and modification timestamps
    - camelCase aliases for the API, snake_case names for storage
    """

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        use_enum_values=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str = Field(default_factory=new_id, description="Document identifier")
    created_at: Timestamp = Field(default_factory=utc_now, description="Creation timestamp")
    updated_at: Timestamp = Field(default_factory=utc_now, description="Last modification timestamp")

    def touch(self) -> None:
        """Update the modification timestamp."""
        self.updated_at = utc_now()

    def to_document(self) -> dict[str, Any]:
        """Convert to the stored JSON document."""
        return self.model_dump(mode="json")

    def to_api(self, **kwargs: Any) -> dict[str, Any]:
        """Convert to the camelCase JSON shape returned by the API."""
        return self.model_dump(mode="json", by_alias=True, **kwargs)

"""Pydantic models for custom avatars.

A custom avatar is generated by the rendering backend from a text
prompt. It is stored locally as soon as the backend accepts the prompt
and is refreshed from the task status until the image is available.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator

DEFAULT_AVATAR_NAME = "Custom Avatar"


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


class AvatarStatus(str, Enum):
    """Lifecycle status of a custom avatar."""

    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


class CustomAvatar(BaseModel):
    """A user-created avatar."""

    id: UUID = Field(default_factory=uuid4, description="Unique avatar identifier")
    name: str = Field(default=DEFAULT_AVATAR_NAME, description="Display name")
    prompt: str = Field(description="Prompt the avatar image is generated from")
    task_id: str = Field(description="Remote avatar task identifier")
    status: AvatarStatus = Field(
        default=AvatarStatus.PENDING,
        description="Generation status of the avatar image",
    )
    image_url: str | None = Field(
        default=None,
        description="Generated image location once ready",
    )
    error: str | None = Field(default=None, description="Backend failure message")
    created_at: datetime = Field(
        default_factory=_utc_now,
        description="When the avatar was created",
    )


class CustomAvatarCreate(BaseModel):
    """Request model for creating an avatar from a prompt."""

    name: str = Field(default=DEFAULT_AVATAR_NAME, max_length=100)
    prompt: str = Field(min_length=1, max_length=1000)
    go_fast: bool = Field(default=True, description="Trade quality for speed")

    @field_validator("name")
    @classmethod
    def _default_blank_name(cls, value: str) -> str:
        return value.strip() or DEFAULT_AVATAR_NAME

    @field_validator("prompt")
    @classmethod
    def _strip_prompt(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("Prompt must not be blank")
        return stripped

"""Pydantic models for user-visible video projects.

A project is the local record of one video, whether it is still being
rendered or already available. Generation instances move a project from
IN_PROGRESS to READY or FAILED; the user may rename or delete it.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, computed_field, field_validator


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


class ProjectStatus(str, Enum):
    """Lifecycle status of a project."""

    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    READY = "ready"
    FAILED = "failed"
    PLANNED = "planned"


class Project(BaseModel):
    """A user-visible video project."""

    id: UUID = Field(default_factory=uuid4, description="Unique project identifier")
    title: str = Field(default="New Video", description="Display title")
    thumbnail_url: str = Field(default="", description="Thumbnail image reference")
    status: ProjectStatus = Field(
        default=ProjectStatus.NOT_STARTED,
        description="Current lifecycle status",
    )
    duration: float = Field(default=0.0, ge=0, description="Video duration in seconds")
    created_at: datetime = Field(
        default_factory=_utc_now,
        description="When the project was created",
    )
    language: str = Field(default="English (US)", description="Script language")
    avatar_name: str = Field(default="Unknown", description="Avatar display name")
    voice_name: str = Field(default="Default", description="Voice display name")
    script: str = Field(default="", description="Script the avatar speaks")
    task_id: str | None = Field(
        default=None,
        description="Remote rendering task identifier, if any",
    )
    video_url: str | None = Field(
        default=None,
        description="Rendered video location once ready",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def formatted_duration(self) -> str:
        """Duration as ``m:ss``."""
        total = int(self.duration)
        return f"{total // 60}:{total % 60:02d}"


class ProjectRename(BaseModel):
    """Request model for renaming a project."""

    title: str = Field(min_length=1, max_length=200, description="New title")

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("Title must not be blank")
        return stripped

"""Wire models for the remote rendering backend.

The payload shapes are dictated by the vendor API; these models only
decode and encode them. Status values the backend may add in the future
decode to ``RemoteTaskStatus.UNKNOWN`` instead of failing validation.
"""

from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

T = TypeVar("T")


class RemoteTaskStatus(str, Enum):
    """Coarse status of a remote task."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> "RemoteTaskStatus":
        return cls.UNKNOWN


class VoiceEmotion(str, Enum):
    """Speaking style accepted by the backend."""

    EXCITED = "Excited"
    FRIENDLY = "Friendly"
    SERIOUS = "Serious"
    SOOTHING = "Soothing"
    BROADCASTER = "Broadcaster"


class TaskCreatedResponse(BaseModel):
    """Response to any task-creating request."""

    task_id: str = Field(min_length=1)


class TaskStatusResponse(BaseModel):
    """Response of the task status endpoint."""

    status: RemoteTaskStatus
    type: str | None = None
    image_path: str | None = None
    video_url: str | None = None
    error: str | None = None


class VideoResultData(BaseModel):
    """Innermost video payload of a task result."""

    id: str
    status: str
    video_url: str
    thumbnail_url: str | None = None
    gif_url: str | None = None
    duration: float | None = None
    error: str | None = None


class ResultContainer(BaseModel):
    message: str
    code: int
    data: VideoResultData


class TaskResultResponse(BaseModel):
    """Full body of the task result endpoint for video tasks."""

    status: str
    type: str
    stage: str
    result: ResultContainer


class VideoResult(BaseModel):
    """The part of a finished video task the client cares about."""

    video_url: str
    thumbnail_url: str | None = None
    duration_seconds: float | None = None


class VideoDimensions(BaseModel):
    """Output frame size."""

    width: int = Field(gt=0)
    height: int = Field(gt=0)


LANDSCAPE = VideoDimensions(width=1920, height=1080)


class VideoJobForm(BaseModel):
    """Form fields shared by both video creation endpoints."""

    width: int
    height: int
    voice_id: str | None = None
    input_text: str | None = None
    speed: float | None = 1.0
    pitch: int | None = 0
    emotion: VoiceEmotion | None = VoiceEmotion.FRIENDLY
    locale: str | None = None
    background_color: str | None = None

    def to_form_data(self) -> dict[str, str]:
        """Render the populated fields as multipart form values."""
        data: dict[str, str] = {}
        for name, value in self.model_dump(exclude_none=True).items():
            if isinstance(value, Enum):
                value = value.value
            data[name] = str(value)
        return data


class PresetVideoForm(VideoJobForm):
    """Form for rendering a vendor preset avatar."""

    avatar_id: str


# ---------------------------------------------------------------------------
# Catalog payloads (wrapped as {"answer": {"status": ..., "result": [...]}})
# ---------------------------------------------------------------------------


class CatalogAnswer(BaseModel, Generic[T]):
    status: str
    result: T


class CatalogEnvelope(BaseModel, Generic[T]):
    answer: CatalogAnswer[T]


class AvatarPreset(BaseModel):
    """A vendor preset avatar."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="avatar_id")
    name: str = Field(alias="avatar_name")
    gender: str | None = None
    premium: int = 0
    preview_image_url: str | None = None
    preview_video_url: str | None = None

    @field_validator("premium", mode="before")
    @classmethod
    def _coerce_premium(cls, value: Any) -> int:
        # Backend sends either 0/1 or true/false
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, int):
            return value
        return 0


class VoicePreset(BaseModel):
    """A vendor synthetic voice."""

    voice_id: str
    name: str | None = None
    language: str | None = None
    language_code: str | None = None
    gender: str | None = None
    preview_audio: str | None = None
    support_pause: bool | None = None
    emotion: bool | None = None

    @property
    def has_preview(self) -> bool:
        return bool(self.preview_audio)

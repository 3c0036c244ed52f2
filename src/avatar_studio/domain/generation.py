"""Pydantic models for avatar video generation jobs.

A generation turns a script, an avatar, a voice and an optional
background into a rendered video on the remote backend. Each request is
tracked in-process by a generation instance that moves through
IDLE -> SUBMITTING -> POLLING -> COMPLETED/FAILED, and durably by a
JobRecord so in-flight jobs survive restarts.

Progress shown to users is an optimistic, time-driven estimate (the
backend reports no granular progress). It is a UX smoothing value, not a
measure of backend work.
"""

import re
from enum import Enum
from typing import Annotated, Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, computed_field, field_validator

_HEX_COLOR = re.compile(r"^#?[0-9A-Fa-f]{6}$")


class GenerationState(str, Enum):
    """Lifecycle state of a generation instance."""

    IDLE = "idle"
    SUBMITTING = "submitting"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transition can happen without a retry."""
        return self in (GenerationState.COMPLETED, GenerationState.FAILED)


class GenerationPhase(str, Enum):
    """Coarse phase derived from the progress fraction."""

    ANALYZING = "analyzing"
    PREPARING_AVATAR = "preparing-avatar"
    SYNTHESIZING_VOICE = "synthesizing-voice"
    RENDERING = "rendering"
    FINALIZING = "finalizing"

    @property
    def title(self) -> str:
        """Human-readable label for the phase."""
        return _PHASE_TITLES[self]


_PHASE_TITLES = {
    GenerationPhase.ANALYZING: "Analyzing script",
    GenerationPhase.PREPARING_AVATAR: "Preparing avatar",
    GenerationPhase.SYNTHESIZING_VOICE: "Synthesizing voice",
    GenerationPhase.RENDERING: "Rendering video",
    GenerationPhase.FINALIZING: "Finalizing...",
}

# Upper bounds (exclusive) of each phase; anything above is FINALIZING
_PHASE_THRESHOLDS: list[tuple[float, GenerationPhase]] = [
    (0.15, GenerationPhase.ANALYZING),
    (0.35, GenerationPhase.PREPARING_AVATAR),
    (0.55, GenerationPhase.SYNTHESIZING_VOICE),
    (0.85, GenerationPhase.RENDERING),
]


def phase_for_progress(fraction: float) -> GenerationPhase:
    """Map a progress fraction to its coarse phase."""
    for upper, phase in _PHASE_THRESHOLDS:
        if fraction < upper:
            return phase
    return GenerationPhase.FINALIZING


def advance_progress(
    fraction: float,
    *,
    rate: float,
    floor: float,
    ceiling: float,
) -> float:
    """Advance an optimistic progress fraction by one tick.

    Moves towards ``ceiling`` by ``rate`` of the remaining distance, but
    never by less than ``floor``, so the curve decelerates without
    stalling. The result is clamped to ``ceiling`` so it can never claim
    completion on its own.

    Args:
        fraction: Current progress in [0, 1]
        rate: Share of the remaining distance covered per tick
        floor: Minimum step per tick
        ceiling: Highest value reachable before real completion

    Returns:
        The new progress fraction
    """
    if fraction >= ceiling:
        return fraction
    step = max((ceiling - fraction) * rate, floor)
    return min(fraction + step, ceiling)


class FailureReason(str, Enum):
    """Where a failed generation attempt went wrong."""

    SUBMISSION = "submission"  # Job creation rejected or unreachable
    POLLING = "polling"  # Status check failed locally
    BACKEND = "backend"  # Backend reported the task as failed
    TIMEOUT = "timeout"  # No terminal status within the wait budget
    RESULT = "result"  # Completed but the result could not be read


class AvatarRef(BaseModel):
    """The avatar selected for a generation.

    Preset avatars are referenced by the vendor's avatar id; custom
    avatars carry the source image bytes and are submitted as an upload.
    """

    model_config = {"frozen": True}

    name: str = Field(description="Avatar display name")
    is_custom: bool = Field(default=False, description="User-created avatar")
    preset_id: str | None = Field(
        default=None,
        description="Vendor avatar identifier for preset avatars",
    )
    image_data: bytes | None = Field(
        default=None,
        description="Source image for custom avatars",
        repr=False,
    )
    image_name: str = Field(default="avatar.jpg", description="Upload filename")
    thumbnail_url: str = Field(default="", description="Thumbnail reference")

    @property
    def uses_image_upload(self) -> bool:
        """Whether the avatar is submitted as an image upload."""
        return self.is_custom and bool(self.image_data)


class VoiceRef(BaseModel):
    """The synthetic voice selected for a generation."""

    model_config = {"frozen": True}

    voice_id: str = Field(description="Vendor voice identifier")
    name: str = Field(default="Default", description="Voice display name")
    language_code: str | None = Field(
        default=None,
        description="Locale sent with the job, e.g. en-US",
    )


class BackgroundRef(BaseModel):
    """The background selected for a generation."""

    model_config = {"frozen": True}

    name: str = Field(description="Background display name")
    color_hex: str | None = Field(
        default=None,
        description="Primary background colour as #RRGGBB",
    )

    @field_validator("color_hex")
    @classmethod
    def _normalize_color(cls, value: str | None) -> str | None:
        if value is None:
            return None
        if not _HEX_COLOR.match(value):
            raise ValueError(f"Invalid colour {value!r}, expected #RRGGBB")
        return "#" + value.lstrip("#").upper()


class GenerationRequest(BaseModel):
    """Immutable input bundle for one generation.

    Built when the user confirms the final creation step and consumed by
    exactly one generation instance.
    """

    model_config = {"frozen": True}

    project_id: UUID = Field(
        default_factory=uuid4,
        description="Project the rendered video belongs to",
    )
    title: str = Field(default="New Video", description="Project title")
    script: str = Field(min_length=1, description="Text the avatar speaks")
    avatar: AvatarRef = Field(description="Selected avatar")
    voice: VoiceRef = Field(description="Selected voice")
    background: BackgroundRef | None = Field(
        default=None,
        description="Optional background",
    )
    language: str = Field(default="English (US)", description="Script language")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def estimated_duration(self) -> float:
        """Estimated spoken duration in seconds at 150 words per minute."""
        return len(self.script.split()) / 150.0 * 60.0


class GenerationProgress(BaseModel):
    """Snapshot of the optimistic progress of a generation."""

    fraction: float = Field(default=0.0, ge=0, le=1, description="Progress in [0, 1]")
    remaining_seconds: int = Field(default=180, ge=0, description="Estimated time left")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def phase(self) -> GenerationPhase:
        """Coarse phase for the current fraction."""
        return phase_for_progress(self.fraction)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def percent(self) -> int:
        """Progress as a whole percentage."""
        return int(self.fraction * 100)


class ReadyOutcome(BaseModel):
    """Terminal outcome of a successful generation."""

    outcome: Literal["ready"] = "ready"
    video_url: str = Field(description="Rendered video location")
    thumbnail_url: str | None = Field(default=None, description="Video thumbnail")
    duration: float | None = Field(default=None, description="Video duration (s)")


class FailedOutcome(BaseModel):
    """Terminal outcome of a failed generation."""

    outcome: Literal["failed"] = "failed"
    message: str = Field(description="Error message shown to the user")
    reason: FailureReason = Field(description="Where the attempt failed")


GenerationOutcome = Annotated[
    ReadyOutcome | FailedOutcome,
    Field(discriminator="outcome"),
]


class JobRecord(BaseModel):
    """Durable pairing of a project with its in-flight remote task.

    At most one record exists per project; it is used to rebuild
    generation instances after a restart.
    """

    project_id: UUID = Field(description="Owning project")
    remote_task_id: str = Field(min_length=1, description="Remote task identifier")

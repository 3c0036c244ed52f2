# Domain models package (Pydantic models)

from src.avatar_studio.domain.avatar import AvatarStatus, CustomAvatar, CustomAvatarCreate
from src.avatar_studio.domain.generation import (
    AvatarRef,
    BackgroundRef,
    FailedOutcome,
    FailureReason,
    GenerationOutcome,
    GenerationPhase,
    GenerationProgress,
    GenerationRequest,
    GenerationState,
    JobRecord,
    ReadyOutcome,
    VoiceRef,
    advance_progress,
    phase_for_progress,
)
from src.avatar_studio.domain.project import Project, ProjectRename, ProjectStatus
from src.avatar_studio.domain.remote_task import (
    AvatarPreset,
    RemoteTaskStatus,
    TaskStatusResponse,
    VideoResult,
    VoicePreset,
)

__all__ = [
    # Avatar
    "AvatarStatus",
    "CustomAvatar",
    "CustomAvatarCreate",
    # Generation
    "AvatarRef",
    "BackgroundRef",
    "FailedOutcome",
    "FailureReason",
    "GenerationOutcome",
    "GenerationPhase",
    "GenerationProgress",
    "GenerationRequest",
    "GenerationState",
    "JobRecord",
    "ReadyOutcome",
    "VoiceRef",
    "advance_progress",
    "phase_for_progress",
    # Project
    "Project",
    "ProjectRename",
    "ProjectStatus",
    # Remote backend
    "AvatarPreset",
    "RemoteTaskStatus",
    "TaskStatusResponse",
    "VideoResult",
    "VoicePreset",
]

"""API router for avatar video generations."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import Base64Bytes, BaseModel, Field, model_validator

from src.avatar_studio.api.dependencies import get_generation_manager
from src.avatar_studio.domain.generation import (
    AvatarRef,
    BackgroundRef,
    GenerationOutcome,
    GenerationProgress,
    GenerationRequest,
    GenerationState,
    VoiceRef,
)
from src.avatar_studio.services.generation_instance import GenerationInstance
from src.avatar_studio.services.generation_manager import GenerationManager

router = APIRouter(prefix="/generations", tags=["generations"])


class AvatarInput(BaseModel):
    """Avatar selection as sent by clients.

    Preset avatars are identified by ``preset_id``; custom avatars send
    their source image base64-encoded.
    """

    name: str = Field(description="Avatar display name")
    preset_id: str | None = Field(default=None, description="Vendor avatar identifier")
    image_base64: Base64Bytes | None = Field(
        default=None,
        description="Base64-encoded source image for custom avatars",
    )
    image_name: str = Field(default="avatar.jpg", description="Upload filename")
    thumbnail_url: str = Field(default="", description="Thumbnail reference")

    @model_validator(mode="after")
    def require_source(self) -> "AvatarInput":
        """Require either a preset identifier or an uploaded image."""
        if self.preset_id is None and self.image_base64 is None:
            raise ValueError("Avatar needs a preset_id or an image_base64")
        return self

    def to_ref(self) -> AvatarRef:
        return AvatarRef(
            name=self.name,
            is_custom=self.image_base64 is not None,
            preset_id=self.preset_id,
            image_data=self.image_base64,
            image_name=self.image_name,
            thumbnail_url=self.thumbnail_url,
        )


class GenerationCreate(BaseModel):
    """Request body for starting a generation."""

    title: str = Field(default="New Video", min_length=1, description="Project title")
    script: str = Field(min_length=1, description="Text the avatar speaks")
    avatar: AvatarInput
    voice: VoiceRef
    background: BackgroundRef | None = None
    language: str = Field(default="English (US)", description="Script language")

    def to_request(self) -> GenerationRequest:
        return GenerationRequest(
            title=self.title,
            script=self.script,
            avatar=self.avatar.to_ref(),
            voice=self.voice,
            background=self.background,
            language=self.language,
        )


class GenerationView(BaseModel):
    """Observable snapshot of a generation instance."""

    id: UUID
    project_id: UUID
    state: GenerationState
    remote_task_id: str | None = None
    progress: GenerationProgress
    error_message: str | None = None
    outcome: GenerationOutcome | None = None
    can_retry: bool = False

    @classmethod
    def from_instance(cls, instance: GenerationInstance) -> "GenerationView":
        return cls(
            id=instance.id,
            project_id=instance.project_id,
            state=instance.state,
            remote_task_id=instance.remote_task_id,
            progress=instance.progress,
            error_message=instance.error_message,
            outcome=instance.outcome,
            can_retry=instance.can_retry,
        )


@router.post("", response_model=GenerationView, status_code=status.HTTP_202_ACCEPTED)
async def start_generation(
    body: GenerationCreate,
    manager: Annotated[GenerationManager, Depends(get_generation_manager)],
) -> GenerationView:
    """Start generating a video.

    The job is submitted in the background; poll GET /generations/{id}
    for state and progress.
    """
    instance = await manager.start_new_generation(body.to_request())
    return GenerationView.from_instance(instance)


@router.get("", response_model=list[GenerationView])
async def list_generations(
    manager: Annotated[GenerationManager, Depends(get_generation_manager)],
) -> list[GenerationView]:
    """List every tracked generation, including finished ones."""
    return [GenerationView.from_instance(i) for i in manager.active_generations]


@router.get("/{generation_id}", response_model=GenerationView)
async def get_generation(
    generation_id: UUID,
    manager: Annotated[GenerationManager, Depends(get_generation_manager)],
) -> GenerationView:
    """Get the current state and progress of a generation."""
    return GenerationView.from_instance(manager.get(generation_id))


@router.post("/{generation_id}/retry", response_model=GenerationView)
async def retry_generation(
    generation_id: UUID,
    manager: Annotated[GenerationManager, Depends(get_generation_manager)],
) -> GenerationView:
    """Resubmit a failed generation as a new remote job."""
    instance = manager.get(generation_id)
    instance.retry()
    return GenerationView.from_instance(instance)


@router.post("/{generation_id}/cancel", response_model=GenerationView)
async def cancel_generation(
    generation_id: UUID,
    manager: Annotated[GenerationManager, Depends(get_generation_manager)],
) -> GenerationView:
    """Stop tracking progress; the remote job keeps running."""
    instance = manager.get(generation_id)
    instance.cancel()
    return GenerationView.from_instance(instance)


@router.delete("/{generation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def dismiss_generation(
    generation_id: UUID,
    manager: Annotated[GenerationManager, Depends(get_generation_manager)],
) -> Response:
    """Cancel a generation and stop tracking it."""
    manager.get(generation_id)
    manager.remove(generation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

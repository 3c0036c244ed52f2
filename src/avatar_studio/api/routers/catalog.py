"""API router for avatars, voices and backend availability."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel

from src.avatar_studio.api.dependencies import get_avatar_library
from src.avatar_studio.domain.avatar import CustomAvatar, CustomAvatarCreate
from src.avatar_studio.domain.remote_task import AvatarPreset, VoicePreset
from src.avatar_studio.services.avatar_library import AvatarLibrary

router = APIRouter(tags=["catalog"])


class BackendStatus(BaseModel):
    online: bool


@router.get("/backend/status", response_model=BackendStatus)
async def get_backend_status(
    library: Annotated[AvatarLibrary, Depends(get_avatar_library)],
) -> BackendStatus:
    """Report whether the rendering backend is reachable."""
    return BackendStatus(online=await library.backend_online())


# Declared before /avatars/{avatar_id} so "presets" is not parsed as an ID
@router.get(
    "/avatars/presets",
    response_model=list[AvatarPreset],
    response_model_by_alias=False,
)
async def list_avatar_presets(
    library: Annotated[AvatarLibrary, Depends(get_avatar_library)],
) -> list[AvatarPreset]:
    """List the backend's preset avatars."""
    return await library.list_presets()


@router.get("/avatars", response_model=list[CustomAvatar])
async def list_custom_avatars(
    library: Annotated[AvatarLibrary, Depends(get_avatar_library)],
) -> list[CustomAvatar]:
    """List custom avatars, newest first."""
    return await library.list_custom()


@router.post(
    "/avatars",
    response_model=CustomAvatar,
    status_code=status.HTTP_201_CREATED,
)
async def create_custom_avatar(
    body: CustomAvatarCreate,
    library: Annotated[AvatarLibrary, Depends(get_avatar_library)],
) -> CustomAvatar:
    """Generate a custom avatar from a text prompt.

    The avatar is returned as pending; poll GET /avatars/{avatar_id}
    until its status is ready or failed.
    """
    return await library.create_from_prompt(body)


@router.get("/avatars/{avatar_id}", response_model=CustomAvatar)
async def get_custom_avatar(
    avatar_id: UUID,
    library: Annotated[AvatarLibrary, Depends(get_avatar_library)],
) -> CustomAvatar:
    """Get a custom avatar, refreshing it from the backend while pending."""
    return await library.refresh(avatar_id)


@router.delete("/avatars/{avatar_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_custom_avatar(
    avatar_id: UUID,
    library: Annotated[AvatarLibrary, Depends(get_avatar_library)],
) -> Response:
    """Delete a custom avatar."""
    await library.delete(avatar_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/voices", response_model=list[VoicePreset])
async def list_voices(
    library: Annotated[AvatarLibrary, Depends(get_avatar_library)],
    language: Annotated[
        str | None,
        Query(description="Match language name or code, case-insensitive"),
    ] = None,
    search: Annotated[
        str | None,
        Query(description="Match voice name or language, case-insensitive"),
    ] = None,
) -> list[VoicePreset]:
    """List voices that have a preview sample."""
    return await library.list_voices(language=language, search=search)

"""Service for the avatar and voice catalog.

Combines the backend's preset catalogs with the locally stored custom
avatars. A custom avatar is created from a prompt and refreshed from its
remote task status until the backend reports it ready or failed.
"""

import logging
from uuid import UUID

from src.avatar_studio.clients.errors import RemoteApiError
from src.avatar_studio.clients.remote_job_client import RemoteJobClient
from src.avatar_studio.domain.avatar import AvatarStatus, CustomAvatar, CustomAvatarCreate
from src.avatar_studio.domain.remote_task import AvatarPreset, RemoteTaskStatus, VoicePreset
from src.avatar_studio.repositories.interfaces import CustomAvatarRepositoryInterface

logger = logging.getLogger(__name__)


class AvatarNotFoundError(Exception):
    """Raised when a custom avatar is not found."""


def _matches(needle: str, *haystacks: str | None) -> bool:
    needle = needle.casefold()
    return any(h is not None and needle in h.casefold() for h in haystacks)


class AvatarLibrary:
    """Preset catalogs plus the user's custom avatars."""

    def __init__(
        self,
        client: RemoteJobClient,
        repository: CustomAvatarRepositoryInterface,
    ) -> None:
        """Initialize library.

        Args:
            client: Remote backend client
            repository: Custom avatar store
        """
        self._client = client
        self._repository = repository

    async def backend_online(self) -> bool:
        """Check whether the rendering backend answers."""
        try:
            return await self._client.check_server_status()
        except RemoteApiError as exc:
            logger.warning("Rendering backend unreachable: %s", exc)
            return False

    async def list_presets(self) -> list[AvatarPreset]:
        """List the backend's preset avatars."""
        return await self._client.list_avatar_presets()

    async def list_voices(
        self,
        language: str | None = None,
        search: str | None = None,
    ) -> list[VoicePreset]:
        """List voices with a preview sample, optionally filtered.

        Args:
            language: Case-insensitive match on language name or code
            search: Case-insensitive match on voice name or language name

        Returns:
            Matching voices in backend order
        """
        voices = await self._client.list_voices()
        if search:
            voices = [v for v in voices if _matches(search, v.name, v.language)]
        if language:
            voices = [
                v for v in voices if _matches(language, v.language, v.language_code)
            ]
        return voices

    async def list_custom(self) -> list[CustomAvatar]:
        """List custom avatars, newest first."""
        return await self._repository.list_all()

    async def create_from_prompt(self, body: CustomAvatarCreate) -> CustomAvatar:
        """Start generating an avatar and store it as pending."""
        task_id = await self._client.create_avatar_from_prompt(body.prompt, body.go_fast)
        avatar = CustomAvatar(name=body.name, prompt=body.prompt, task_id=task_id)
        await self._repository.add(avatar)
        logger.info("Avatar %s submitted as task %s", avatar.id, task_id)
        return avatar

    async def refresh(self, avatar_id: UUID) -> CustomAvatar:
        """Get an avatar, updating it from the backend while pending.

        Raises:
            AvatarNotFoundError: If no such avatar is stored
        """
        avatar = await self._repository.get_by_id(avatar_id)
        if avatar is None:
            raise AvatarNotFoundError(f"Avatar '{avatar_id}' not found")
        if avatar.status is not AvatarStatus.PENDING:
            return avatar

        response = await self._client.get_job_status(avatar.task_id)
        if response.status is RemoteTaskStatus.COMPLETED:
            avatar = avatar.model_copy(
                update={"status": AvatarStatus.READY, "image_url": response.image_path}
            )
        elif response.status is RemoteTaskStatus.FAILED:
            avatar = avatar.model_copy(
                update={
                    "status": AvatarStatus.FAILED,
                    "error": response.error or "Avatar generation failed",
                }
            )
        else:
            return avatar

        await self._repository.update(avatar)
        logger.info("Avatar %s -> %s", avatar.id, avatar.status.value)
        return avatar

    async def delete(self, avatar_id: UUID) -> None:
        """Delete a custom avatar.

        Raises:
            AvatarNotFoundError: If no such avatar is stored
        """
        if not await self._repository.delete(avatar_id):
            raise AvatarNotFoundError(f"Avatar '{avatar_id}' not found")

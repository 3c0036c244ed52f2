"""Repository for user-created avatars."""

import asyncio
import logging
from uuid import UUID

from pydantic import TypeAdapter, ValidationError

from src.avatar_studio.domain.avatar import CustomAvatar
from src.avatar_studio.repositories.interfaces import (
    CustomAvatarRepositoryInterface,
    KeyValueStoreInterface,
)

logger = logging.getLogger(__name__)

_AVATARS = TypeAdapter(list[CustomAvatar])


class CustomAvatarRepository(CustomAvatarRepositoryInterface):
    """Key-value backed custom avatar list, newest first.

    Mutations are serialized with an asyncio.Lock around a
    read-modify-write of the whole list.
    """

    def __init__(
        self, store: KeyValueStoreInterface, key: str = "custom_avatars"
    ) -> None:
        """Initialize repository.

        Args:
            store: Durable key-value store
            key: Storage key holding the avatar list
        """
        self._store = store
        self._key = key
        self._lock = asyncio.Lock()

    async def _read(self) -> list[CustomAvatar]:
        raw = await self._store.load(self._key)
        if raw is None:
            return []
        try:
            return _AVATARS.validate_python(raw)
        except ValidationError as exc:
            logger.warning("Discarding unreadable avatar list: %s", exc)
            return []

    async def _write(self, avatars: list[CustomAvatar]) -> None:
        await self._store.save(self._key, _AVATARS.dump_python(avatars, mode="json"))

    async def list_all(self) -> list[CustomAvatar]:
        """List all custom avatars, newest first."""
        return await self._read()

    async def get_by_id(self, avatar_id: UUID) -> CustomAvatar | None:
        """Get a custom avatar by its ID."""
        for avatar in await self._read():
            if avatar.id == avatar_id:
                return avatar
        return None

    async def add(self, avatar: CustomAvatar) -> CustomAvatar:
        """Insert an avatar at the front of the list."""
        async with self._lock:
            avatars = [a for a in await self._read() if a.id != avatar.id]
            avatars.insert(0, avatar)
            await self._write(avatars)

        logger.info("Stored custom avatar %s (%s)", avatar.id, avatar.name)
        return avatar

    async def update(self, avatar: CustomAvatar) -> CustomAvatar | None:
        """Replace the stored avatar with the same ID, keeping its position."""
        async with self._lock:
            avatars = await self._read()
            for index, existing in enumerate(avatars):
                if existing.id == avatar.id:
                    avatars[index] = avatar
                    await self._write(avatars)
                    return avatar
        return None

    async def delete(self, avatar_id: UUID) -> bool:
        """Delete a custom avatar by ID."""
        async with self._lock:
            avatars = await self._read()
            remaining = [a for a in avatars if a.id != avatar_id]
            if len(remaining) == len(avatars):
                return False
            await self._write(remaining)

        logger.info("Deleted custom avatar %s", avatar_id)
        return True

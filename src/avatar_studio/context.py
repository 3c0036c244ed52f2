"""Explicit wiring of the studio's long-lived collaborators.

A StudioContext replaces process-wide singletons: the application builds
one at startup and hands it to whatever needs the store, the client or
the manager.
"""

import logging
from dataclasses import dataclass

import httpx

from src.avatar_studio.clients.remote_job_client import RemoteJobClient
from src.avatar_studio.config import Settings
from src.avatar_studio.repositories.avatar_repository import CustomAvatarRepository
from src.avatar_studio.repositories.job_registry import JobRegistry
from src.avatar_studio.repositories.key_value_store import JsonFileStore
from src.avatar_studio.repositories.project_repository import ProjectRepository
from src.avatar_studio.services.avatar_library import AvatarLibrary
from src.avatar_studio.services.generation_manager import GenerationManager

logger = logging.getLogger(__name__)


@dataclass
class StudioContext:
    """Everything a running studio needs, wired together."""

    settings: Settings
    store: JsonFileStore
    projects: ProjectRepository
    registry: JobRegistry
    client: RemoteJobClient
    manager: GenerationManager
    avatars: CustomAvatarRepository
    library: AvatarLibrary

    async def aclose(self) -> None:
        """Stop all generations and close the HTTP connection pool."""
        self.manager.shutdown()
        await self.client.aclose()
        logger.info("Studio context closed")


def build_context(
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> StudioContext:
    """Build a StudioContext from settings.

    Args:
        settings: Application settings
        transport: Optional HTTP transport for the remote client (tests)

    Returns:
        A fully wired context
    """
    store = JsonFileStore(settings.data_path)
    projects = ProjectRepository(store)
    registry = JobRegistry(store)
    client = RemoteJobClient.from_settings(settings, transport=transport)
    manager = GenerationManager(client, projects, registry, settings)
    avatars = CustomAvatarRepository(store)
    return StudioContext(
        settings=settings,
        store=store,
        projects=projects,
        registry=registry,
        client=client,
        manager=manager,
        avatars=avatars,
        library=AvatarLibrary(client, avatars),
    )

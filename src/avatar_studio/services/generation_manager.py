"""Service tracking every active generation instance.

The manager is the single owner of in-process generation instances. It
creates the project a new generation writes to, rebuilds instances from
surviving JobRecords after a restart, and evicts instances when the user
dismisses them. Terminal instances are kept until removed so their
outcome stays observable.
"""

import logging
from uuid import UUID

from src.avatar_studio.clients.interfaces import RemoteJobClientInterface
from src.avatar_studio.config import Settings
from src.avatar_studio.domain.generation import GenerationRequest
from src.avatar_studio.domain.project import Project, ProjectStatus
from src.avatar_studio.repositories.interfaces import (
    JobRegistryInterface,
    ProjectRepositoryInterface,
)
from src.avatar_studio.services.generation_instance import GenerationInstance

logger = logging.getLogger(__name__)


class GenerationNotFoundError(Exception):
    """Raised when a generation instance is not tracked."""


class GenerationManager:
    """Owns the collection of active generation instances."""

    def __init__(
        self,
        client: RemoteJobClientInterface,
        projects: ProjectRepositoryInterface,
        registry: JobRegistryInterface,
        settings: Settings,
    ) -> None:
        """Initialize manager.

        Args:
            client: Remote job API client shared by all instances
            projects: Project store
            registry: Durable registry of in-flight jobs
            settings: Timing and progress tuning
        """
        self._client = client
        self._projects = projects
        self._registry = registry
        self._settings = settings
        self._instances: dict[UUID, GenerationInstance] = {}

    @property
    def active_generations(self) -> list[GenerationInstance]:
        """Tracked instances in insertion order."""
        return list(self._instances.values())

    @property
    def running_count(self) -> int:
        """Number of instances still working towards an outcome."""
        return sum(1 for instance in self._instances.values() if instance.is_active)

    def get(self, instance_id: UUID) -> GenerationInstance:
        """Get a tracked instance by ID.

        Raises:
            GenerationNotFoundError: If no such instance is tracked
        """
        instance = self._instances.get(instance_id)
        if instance is None:
            raise GenerationNotFoundError(f"Generation '{instance_id}' not found")
        return instance

    def find_by_project(self, project_id: UUID) -> GenerationInstance | None:
        """Get the tracked instance writing to a project, if any."""
        for instance in self._instances.values():
            if instance.project_id == project_id:
                return instance
        return None

    async def start_new_generation(self, request: GenerationRequest) -> GenerationInstance:
        """Create the project for a request and start generating it.

        Args:
            request: Confirmed generation input

        Returns:
            The started instance
        """
        if await self._projects.get_by_id(request.project_id) is None:
            await self._projects.create(
                Project(
                    id=request.project_id,
                    title=request.title,
                    thumbnail_url=request.avatar.thumbnail_url,
                    status=ProjectStatus.IN_PROGRESS,
                    duration=request.estimated_duration,
                    language=request.language,
                    avatar_name=request.avatar.name,
                    voice_name=request.voice.name,
                    script=request.script,
                )
            )

        instance = self._new_instance(request=request)
        self._instances[instance.id] = instance
        instance.start()
        logger.info(
            "Started generation %s for project %s (%d running)",
            instance.id,
            request.project_id,
            self.running_count,
        )
        return instance

    def remove(self, instance_id: UUID) -> bool:
        """Cancel an instance and stop tracking it.

        Returns:
            False if the instance was not tracked
        """
        instance = self._instances.pop(instance_id, None)
        if instance is None:
            return False
        instance.cancel()
        logger.info("Removed generation %s", instance_id)
        return True

    async def restore_active_generations(self) -> list[GenerationInstance]:
        """Resume polling every job that survived a restart.

        Records whose project no longer exists are dropped. Projects
        already tracked in-process are skipped, so calling this twice
        never produces duplicate instances.

        Returns:
            The instances that were started
        """
        restored: list[GenerationInstance] = []
        for record in await self._registry.all():
            if self.find_by_project(record.project_id) is not None:
                continue

            if await self._projects.get_by_id(record.project_id) is None:
                logger.warning(
                    "Dropping job record for missing project %s", record.project_id
                )
                await self._registry.remove(record.project_id)
                continue

            instance = self._new_instance(record=record)
            self._instances[instance.id] = instance
            instance.start()
            restored.append(instance)

        if restored:
            logger.info("Restored %d in-flight generation(s)", len(restored))
        return restored

    async def delete_project(self, project_id: UUID) -> bool:
        """Delete a project together with its generation and job record.

        Returns:
            False if the project did not exist
        """
        for instance in [i for i in self._instances.values() if i.project_id == project_id]:
            self.remove(instance.id)
        await self._registry.remove(project_id)
        return await self._projects.delete(project_id)

    def shutdown(self) -> None:
        """Cancel every instance, keeping JobRecords for the next start."""
        for instance in self._instances.values():
            instance.cancel()
        logger.info("Generation manager stopped (%d tracked)", len(self._instances))
        self._instances.clear()

    def _new_instance(self, **source) -> GenerationInstance:
        return GenerationInstance(
            self._client,
            self._projects,
            self._registry,
            self._settings,
            **source,
        )

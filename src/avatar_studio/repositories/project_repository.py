"""Repository for user-visible video projects."""

import asyncio
import logging
from datetime import datetime
from uuid import UUID

from pydantic import TypeAdapter, ValidationError

from src.avatar_studio.domain.project import Project, ProjectStatus
from src.avatar_studio.repositories.interfaces import (
    KeyValueStoreInterface,
    ProjectRepositoryInterface,
)

logger = logging.getLogger(__name__)

_PROJECTS = TypeAdapter(list[Project])


class ProjectNotFoundError(Exception):
    """Raised when a project is not found."""


class ProjectExistsError(Exception):
    """Raised when creating a project whose ID is already taken."""


class ProjectValidationError(ValueError):
    """Raised when project data fails validation."""


class ProjectRepository(ProjectRepositoryInterface):
    """Key-value backed project list.

    Projects are stored as a single list, newest first. Every mutation
    is a read-modify-write of the whole list under one asyncio.Lock, so
    concurrent generations updating different projects never lose each
    other's writes.
    """

    def __init__(self, store: KeyValueStoreInterface, key: str = "projects") -> None:
        """Initialize repository.

        Args:
            store: Durable key-value store
            key: Storage key holding the project list
        """
        self._store = store
        self._key = key
        self._lock = asyncio.Lock()

    async def _read(self) -> list[Project]:
        raw = await self._store.load(self._key)
        if raw is None:
            return []
        try:
            return _PROJECTS.validate_python(raw)
        except ValidationError as exc:
            logger.warning("Discarding unreadable project list: %s", exc)
            return []

    async def _write(self, projects: list[Project]) -> None:
        await self._store.save(
            self._key,
            [p.model_dump(mode="json", exclude={"formatted_duration"}) for p in projects],
        )

    async def list_all(self) -> list[Project]:
        """List all projects, newest first."""
        return await self._read()

    async def list_recent(self, limit: int = 3) -> list[Project]:
        """List the ``limit`` most recent projects."""
        return (await self._read())[:limit]

    async def get_by_id(self, project_id: UUID) -> Project | None:
        """Get a project by its ID."""
        for project in await self._read():
            if project.id == project_id:
                return project
        return None

    async def create(self, project: Project) -> Project:
        """Create a new project at the front of the list.

        Raises:
            ProjectExistsError: If a project with this ID already exists
        """
        async with self._lock:
            projects = await self._read()
            if any(p.id == project.id for p in projects):
                raise ProjectExistsError(f"Project '{project.id}' already exists")
            projects.insert(0, project)
            await self._write(projects)

        logger.info("Created project %s (%s)", project.id, project.status.value)
        return project

    async def update_status(
        self,
        project_id: UUID,
        status: ProjectStatus,
        *,
        video_url: str | None = None,
        thumbnail_url: str | None = None,
        task_id: str | None = None,
        duration: float | None = None,
    ) -> Project | None:
        """Update the status and rendering details of a project."""
        async with self._lock:
            projects = await self._read()
            for index, project in enumerate(projects):
                if project.id != project_id:
                    continue

                changes: dict[str, object] = {"status": status, "task_id": task_id}
                if thumbnail_url:
                    changes["thumbnail_url"] = thumbnail_url
                if duration is not None:
                    changes["duration"] = duration
                if video_url is not None:
                    changes["video_url"] = video_url

                updated = project.model_copy(update=changes)
                projects[index] = updated
                await self._write(projects)
                break
            else:
                logger.warning("Status update for unknown project %s", project_id)
                return None

        logger.info("Project %s status -> %s", project_id, status.value)
        return updated

    async def rename(self, project_id: UUID, title: str) -> Project | None:
        """Rename a project, trimming surrounding whitespace."""
        title = title.strip()
        if not title:
            raise ProjectValidationError("Project title must not be blank")

        async with self._lock:
            projects = await self._read()
            for index, project in enumerate(projects):
                if project.id == project_id:
                    projects[index] = project.model_copy(update={"title": title})
                    await self._write(projects)
                    return projects[index]
        return None

    async def delete(self, project_id: UUID) -> bool:
        """Delete a project by ID."""
        async with self._lock:
            projects = await self._read()
            remaining = [p for p in projects if p.id != project_id]
            if len(remaining) == len(projects):
                return False
            await self._write(remaining)

        logger.info("Deleted project %s", project_id)
        return True

    async def count_created_since(self, moment: datetime) -> int:
        """Count projects created at or after ``moment``."""
        return sum(1 for p in await self._read() if p.created_at >= moment)

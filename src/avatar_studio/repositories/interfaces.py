"""Abstract base classes for repository interfaces.

Defines the contracts that concrete repository implementations must fulfill.
Services depend on these interfaces (not concrete classes) to enable proper
Dependency Inversion and easier testing/mocking.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any
from uuid import UUID

from src.avatar_studio.domain.avatar import CustomAvatar
from src.avatar_studio.domain.generation import JobRecord
from src.avatar_studio.domain.project import Project, ProjectStatus


class KeyValueStoreInterface(ABC):
    """Abstract durable key-value storage of JSON-serializable values."""

    @abstractmethod
    async def load(self, key: str) -> Any | None:
        """Load the value stored under a key.

        Args:
            key: Storage key

        Returns:
            The stored value, or None if nothing (readable) is stored
        """
        ...

    @abstractmethod
    async def save(self, key: str, value: Any) -> None:
        """Durably store a value under a key, replacing any previous value.

        Args:
            key: Storage key
            value: JSON-serializable value
        """
        ...

    @abstractmethod
    async def clear(self, key: str) -> None:
        """Remove the value stored under a key, if any.

        Args:
            key: Storage key
        """
        ...


class JobRegistryInterface(ABC):
    """Abstract interface for the durable project -> remote task table.

    Holds at most one JobRecord per project. Used to rebuild in-flight
    generations after a restart.
    """

    @abstractmethod
    async def add(self, record: JobRecord) -> None:
        """Store a record, replacing any record for the same project.

        Args:
            record: Record to store
        """
        ...

    @abstractmethod
    async def remove(self, project_id: UUID) -> bool:
        """Delete the record for a project.

        Args:
            project_id: Owning project

        Returns:
            True if a record was deleted, False if none existed
        """
        ...

    @abstractmethod
    async def get(self, project_id: UUID) -> JobRecord | None:
        """Get the record for a project.

        Args:
            project_id: Owning project

        Returns:
            JobRecord if present, None otherwise
        """
        ...

    @abstractmethod
    async def all(self) -> list[JobRecord]:
        """Return every stored record.

        Returns:
            Records in insertion order
        """
        ...


class ProjectRepositoryInterface(ABC):
    """Abstract interface for project storage and retrieval."""

    @abstractmethod
    async def list_all(self) -> list[Project]:
        """List all projects.

        Returns:
            Projects sorted newest first
        """
        ...

    @abstractmethod
    async def list_recent(self, limit: int = 3) -> list[Project]:
        """List the most recent projects.

        Args:
            limit: Maximum number of projects to return

        Returns:
            Up to ``limit`` projects, newest first
        """
        ...

    @abstractmethod
    async def get_by_id(self, project_id: UUID) -> Project | None:
        """Get a project by its ID.

        Args:
            project_id: Project UUID

        Returns:
            Project if found, None otherwise
        """
        ...

    @abstractmethod
    async def create(self, project: Project) -> Project:
        """Create a new project.

        Args:
            project: Project to create

        Returns:
            Created project

        Raises:
            ProjectExistsError: If a project with this ID already exists
        """
        ...

    @abstractmethod
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
        """Update the status and rendering details of a project.

        Thumbnail and duration are kept when not provided, the video URL is
        only replaced when provided, and the task ID is always set.

        Args:
            project_id: Project UUID
            status: New status
            video_url: Rendered video location
            thumbnail_url: Thumbnail location
            task_id: Remote task identifier
            duration: Video duration in seconds

        Returns:
            Updated project, or None if not found
        """
        ...

    @abstractmethod
    async def rename(self, project_id: UUID, title: str) -> Project | None:
        """Rename a project.

        Args:
            project_id: Project UUID
            title: New title (surrounding whitespace is trimmed)

        Returns:
            Updated project, or None if not found
        """
        ...

    @abstractmethod
    async def delete(self, project_id: UUID) -> bool:
        """Delete a project by ID.

        Args:
            project_id: Project UUID

        Returns:
            True if deleted, False if not found
        """
        ...

    @abstractmethod
    async def count_created_since(self, moment: datetime) -> int:
        """Count projects created at or after a moment.

        Args:
            moment: Timezone-aware lower bound

        Returns:
            Number of matching projects
        """
        ...


class CustomAvatarRepositoryInterface(ABC):
    """Abstract interface for custom avatar storage."""

    @abstractmethod
    async def list_all(self) -> list[CustomAvatar]:
        """List all custom avatars.

        Returns:
            Avatars sorted newest first
        """
        ...

    @abstractmethod
    async def get_by_id(self, avatar_id: UUID) -> CustomAvatar | None:
        """Get a custom avatar by its ID.

        Args:
            avatar_id: Avatar UUID

        Returns:
            CustomAvatar if found, None otherwise
        """
        ...

    @abstractmethod
    async def add(self, avatar: CustomAvatar) -> CustomAvatar:
        """Add an avatar at the front of the list.

        Args:
            avatar: Avatar to add

        Returns:
            The stored avatar
        """
        ...

    @abstractmethod
    async def update(self, avatar: CustomAvatar) -> CustomAvatar | None:
        """Replace a stored avatar with the same ID.

        Args:
            avatar: Updated avatar

        Returns:
            The stored avatar, or None if no avatar has this ID
        """
        ...

    @abstractmethod
    async def delete(self, avatar_id: UUID) -> bool:
        """Delete a custom avatar by ID.

        Args:
            avatar_id: Avatar UUID

        Returns:
            True if deleted, False if not found
        """
        ...

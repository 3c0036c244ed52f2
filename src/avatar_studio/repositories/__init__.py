# Repositories package (data access abstraction)

from src.avatar_studio.repositories.avatar_repository import CustomAvatarRepository
from src.avatar_studio.repositories.job_registry import JobRegistry
from src.avatar_studio.repositories.key_value_store import JsonFileStore
from src.avatar_studio.repositories.project_repository import (
    ProjectExistsError,
    ProjectNotFoundError,
    ProjectRepository,
    ProjectValidationError,
)

__all__ = [
    "CustomAvatarRepository",
    "JobRegistry",
    "JsonFileStore",
    "ProjectExistsError",
    "ProjectNotFoundError",
    "ProjectRepository",
    "ProjectValidationError",
]

"""Centralized FastAPI dependency providers.

Long-lived collaborators live on the StudioContext built during the
application lifespan and stored on ``app.state.context``. Routers reach
them only through these providers, so tests can swap the whole context
with ``app.dependency_overrides``.
"""

from typing import Annotated

from fastapi import Depends, Request

from src.avatar_studio.context import StudioContext
from src.avatar_studio.repositories.project_repository import ProjectRepository
from src.avatar_studio.services.avatar_library import AvatarLibrary
from src.avatar_studio.services.generation_manager import GenerationManager


def get_context(request: Request) -> StudioContext:
    """Dependency provider for the application's StudioContext."""
    return request.app.state.context


def get_generation_manager(
    context: Annotated[StudioContext, Depends(get_context)],
) -> GenerationManager:
    """Dependency provider for GenerationManager."""
    return context.manager


def get_project_repository(
    context: Annotated[StudioContext, Depends(get_context)],
) -> ProjectRepository:
    """Dependency provider for ProjectRepository."""
    return context.projects


def get_avatar_library(
    context: Annotated[StudioContext, Depends(get_context)],
) -> AvatarLibrary:
    """Dependency provider for AvatarLibrary."""
    return context.library

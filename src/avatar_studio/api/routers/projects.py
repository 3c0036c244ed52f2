"""API router for video projects."""

from datetime import UTC, datetime, timedelta
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from src.avatar_studio.api.dependencies import (
    get_generation_manager,
    get_project_repository,
)
from src.avatar_studio.domain.project import Project, ProjectRename
from src.avatar_studio.repositories.project_repository import (
    ProjectNotFoundError,
    ProjectRepository,
)
from src.avatar_studio.services.generation_manager import GenerationManager

router = APIRouter(prefix="/projects", tags=["projects"])


class ProjectStats(BaseModel):
    """Library statistics shown on the home screen."""

    total: int = Field(description="Number of projects")
    created_this_week: int = Field(description="Projects created in the last 7 days")
    running_generations: int = Field(description="Generations still in progress")


@router.get("", response_model=list[Project])
async def list_projects(
    repository: Annotated[ProjectRepository, Depends(get_project_repository)],
    limit: Annotated[
        int | None,
        Query(ge=1, le=100, description="Return only the most recent projects"),
    ] = None,
) -> list[Project]:
    """List projects, newest first."""
    if limit is not None:
        return await repository.list_recent(limit)
    return await repository.list_all()


@router.get("/stats", response_model=ProjectStats)
async def get_project_stats(
    repository: Annotated[ProjectRepository, Depends(get_project_repository)],
    manager: Annotated[GenerationManager, Depends(get_generation_manager)],
) -> ProjectStats:
    """Get project counts for the library overview."""
    week_ago = datetime.now(UTC) - timedelta(days=7)
    return ProjectStats(
        total=len(await repository.list_all()),
        created_this_week=await repository.count_created_since(week_ago),
        running_generations=manager.running_count,
    )


@router.get("/{project_id}", response_model=Project)
async def get_project(
    project_id: UUID,
    repository: Annotated[ProjectRepository, Depends(get_project_repository)],
) -> Project:
    """Get a project by ID."""
    project = await repository.get_by_id(project_id)
    if project is None:
        raise ProjectNotFoundError(f"Project '{project_id}' not found")
    return project


@router.patch("/{project_id}", response_model=Project)
async def rename_project(
    project_id: UUID,
    body: ProjectRename,
    repository: Annotated[ProjectRepository, Depends(get_project_repository)],
) -> Project:
    """Rename a project."""
    project = await repository.rename(project_id, body.title)
    if project is None:
        raise ProjectNotFoundError(f"Project '{project_id}' not found")
    return project


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: UUID,
    manager: Annotated[GenerationManager, Depends(get_generation_manager)],
) -> Response:
    """Delete a project, stopping its generation and forgetting its job."""
    if not await manager.delete_project(project_id):
        raise ProjectNotFoundError(f"Project '{project_id}' not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)

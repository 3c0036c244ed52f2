"""API routers package."""

from fastapi import APIRouter

from src.avatar_studio.api.routers.catalog import router as catalog_router
from src.avatar_studio.api.routers.generations import router as generations_router
from src.avatar_studio.api.routers.projects import router as projects_router

api_router = APIRouter()

# Generation lifecycle router
api_router.include_router(generations_router)

# Project library router
api_router.include_router(projects_router)

# Avatar, voice and backend status router
api_router.include_router(catalog_router)

"""FastAPI application entry point for Avatar Studio."""

import logging
from contextlib import asynccontextmanager

# Configure logging before importing modules
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

from fastapi import FastAPI  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402

from src.avatar_studio.api.exception_handlers import (  # noqa: E402
    register_exception_handlers,
)
from src.avatar_studio.api.routers import api_router  # noqa: E402
from src.avatar_studio.config import get_settings  # noqa: E402
from src.avatar_studio.context import build_context  # noqa: E402


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: wire the studio and resume in-flight jobs."""
    _logger = logging.getLogger(__name__)

    settings = get_settings()
    context = build_context(settings)
    app.state.context = context

    restored = await context.manager.restore_active_generations()
    _logger.info(
        "Avatar Studio ready (backend %s, %d job(s) resumed)",
        settings.api_base_url,
        len(restored),
    )

    yield

    # Cleanup: JobRecords are kept so the next start resumes polling
    await context.aclose()


app = FastAPI(
    title="Avatar Studio",
    description="Talking-avatar video generation with durable job tracking",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:8989",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include API routers
app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}

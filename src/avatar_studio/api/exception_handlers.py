"""Centralized exception handlers for the FastAPI application.

Maps domain exceptions raised by services, repositories and the remote
client to HTTP responses, so routers can let them propagate.

Usage in main.py:
    from src.avatar_studio.api.exception_handlers import register_exception_handlers
    register_exception_handlers(app)
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.avatar_studio.clients.errors import InvalidInputError, RemoteApiError
from src.avatar_studio.repositories.project_repository import (
    ProjectExistsError,
    ProjectNotFoundError,
    ProjectValidationError,
)
from src.avatar_studio.services.avatar_library import AvatarNotFoundError
from src.avatar_studio.services.generation_instance import GenerationStateError
from src.avatar_studio.services.generation_manager import GenerationNotFoundError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Mapping: exception class -> HTTP status code
#
# "Not found" errors   -> 404
# "Validation" errors  -> 400
# "Already exists"     -> 409
# "State conflict"     -> 409
# Remote backend       -> 502
# ---------------------------------------------------------------------------

_NOT_FOUND_EXCEPTIONS: list[type[Exception]] = [
    ProjectNotFoundError,
    GenerationNotFoundError,
    AvatarNotFoundError,
]

_BAD_REQUEST_EXCEPTIONS: list[type[Exception]] = [
    InvalidInputError,
    ProjectValidationError,
]

_CONFLICT_EXCEPTIONS: list[type[Exception]] = [
    ProjectExistsError,
    GenerationStateError,
]


# ---------------------------------------------------------------------------
# Handler factories
# ---------------------------------------------------------------------------


def _make_handler(status_code: int):
    """Create an exception handler that returns a JSON error response.

    Args:
        status_code: HTTP status code to return.

    Returns:
        An async exception handler compatible with FastAPI.
    """

    async def handler(_request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc)},
        )

    return handler


async def _remote_api_handler(_request: Request, exc: RemoteApiError) -> JSONResponse:
    """Handle rendering backend failures.

    Returns 502 Bad Gateway: the request was fine but the upstream
    backend could not serve it.
    """
    logger.error("Rendering backend error: %s", exc)
    return JSONResponse(
        status_code=502,
        content={"detail": f"Rendering backend error: {exc}"},
    )


async def _unhandled_exception_handler(
    request: Request, _exc: Exception
) -> JSONResponse:
    """Catch-all handler for unexpected exceptions.

    Logs the full traceback server-side but returns only a generic
    message to the client.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "An internal server error occurred."},
    )


# ---------------------------------------------------------------------------
# Public registration function
# ---------------------------------------------------------------------------


def register_exception_handlers(app: FastAPI) -> None:
    """Register all centralized exception handlers on the FastAPI app.

    Args:
        app: The FastAPI application instance.
    """
    # 404 Not Found
    not_found_handler = _make_handler(404)
    for exc_class in _NOT_FOUND_EXCEPTIONS:
        app.add_exception_handler(exc_class, not_found_handler)

    # 400 Bad Request
    bad_request_handler = _make_handler(400)
    for exc_class in _BAD_REQUEST_EXCEPTIONS:
        app.add_exception_handler(exc_class, bad_request_handler)

    # 409 Conflict
    conflict_handler = _make_handler(409)
    for exc_class in _CONFLICT_EXCEPTIONS:
        app.add_exception_handler(exc_class, conflict_handler)

    # 502 for every other backend failure (InvalidInputError is matched first)
    app.add_exception_handler(RemoteApiError, _remote_api_handler)

    # Catch-all for unhandled exceptions (must be registered last)
    app.add_exception_handler(Exception, _unhandled_exception_handler)

    logger.info("Registered centralized exception handlers")

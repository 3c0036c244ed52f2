# Clients package (remote rendering backend)

from src.avatar_studio.clients.errors import (
    DecodeError,
    InvalidInputError,
    NetworkError,
    RemoteApiError,
    ServerError,
    TaskFailedError,
    TaskTimeoutError,
    UnauthorizedError,
)
from src.avatar_studio.clients.interfaces import RemoteJobClientInterface
from src.avatar_studio.clients.remote_job_client import RemoteJobClient

__all__ = [
    "DecodeError",
    "InvalidInputError",
    "NetworkError",
    "RemoteApiError",
    "RemoteJobClient",
    "RemoteJobClientInterface",
    "ServerError",
    "TaskFailedError",
    "TaskTimeoutError",
    "UnauthorizedError",
]

"""Errors raised by remote rendering backend clients."""


class RemoteApiError(Exception):
    """Base class for every failure talking to the rendering backend."""


class InvalidInputError(RemoteApiError):
    """The request was rejected as invalid, or could not be built."""


class UnauthorizedError(RemoteApiError):
    """The API key was missing or rejected."""

    def __init__(self, message: str = "Unauthorized. Check your API key.") -> None:
        super().__init__(message)


class ServerError(RemoteApiError):
    """The backend answered with an error status."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Server error: {message}")
        self.detail = message


class NetworkError(RemoteApiError):
    """The backend could not be reached or the connection failed."""


class DecodeError(RemoteApiError):
    """The backend answered with a body that could not be decoded."""


class TaskFailedError(RemoteApiError):
    """The backend reported a task as failed."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Task failed: {message}")
        self.detail = message


class TaskTimeoutError(RemoteApiError):
    """A task did not reach a terminal status within the wait budget."""

"""Abstract contract for the remote job API.

Generation instances depend on this interface rather than on a concrete
HTTP client so they can be driven by fakes in tests.
"""

from abc import ABC, abstractmethod

from src.avatar_studio.domain.remote_task import TaskStatusResponse, VideoResult


class RemoteJobClientInterface(ABC):
    """Operations a generation needs from the rendering backend.

    Every operation may raise a
    :class:`~src.avatar_studio.clients.errors.RemoteApiError` subclass:
    invalid input, unauthorized, server error, network error or decode
    error.
    """

    @abstractmethod
    async def create_job_from_preset(
        self,
        avatar_id: str,
        voice_id: str,
        script_text: str,
        locale_code: str | None,
        background_color_hex: str | None = None,
    ) -> str:
        """Start rendering a vendor preset avatar.

        Args:
            avatar_id: Vendor avatar identifier
            voice_id: Vendor voice identifier
            script_text: Text the avatar speaks
            locale_code: Voice locale, e.g. en-US
            background_color_hex: Optional background colour as #RRGGBB

        Returns:
            Remote task identifier
        """
        ...

    @abstractmethod
    async def create_job_from_image(
        self,
        image_bytes: bytes,
        image_name: str,
        voice_id: str,
        script_text: str,
        locale_code: str | None,
        background_color_hex: str | None = None,
    ) -> str:
        """Start rendering an avatar from an uploaded image.

        Args:
            image_bytes: Avatar source image
            image_name: Upload filename (its extension selects the MIME type)
            voice_id: Vendor voice identifier
            script_text: Text the avatar speaks
            locale_code: Voice locale, e.g. en-US
            background_color_hex: Optional background colour as #RRGGBB

        Returns:
            Remote task identifier
        """
        ...

    @abstractmethod
    async def get_job_status(self, task_id: str) -> TaskStatusResponse:
        """Fetch the coarse status of a task.

        Args:
            task_id: Remote task identifier

        Returns:
            Status response; unrecognised statuses decode as UNKNOWN
        """
        ...

    @abstractmethod
    async def get_job_result(self, task_id: str) -> VideoResult:
        """Fetch the rendered video of a completed task.

        Args:
            task_id: Remote task identifier

        Returns:
            Video location, thumbnail and duration
        """
        ...

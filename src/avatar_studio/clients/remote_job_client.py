"""httpx-based client for the remote avatar rendering backend.

Every request carries the ``X-Api-Key`` header. Job creation requests are
sent as multipart/form-data because the backend accepts optional file
uploads alongside the form fields. Transport failures, HTTP error statuses
and undecodable bodies are mapped onto the
:mod:`~src.avatar_studio.clients.errors` taxonomy so callers never see raw
httpx exceptions.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from src.avatar_studio.clients.errors import (
    DecodeError,
    InvalidInputError,
    NetworkError,
    ServerError,
    TaskFailedError,
    TaskTimeoutError,
    UnauthorizedError,
)
from src.avatar_studio.clients.interfaces import RemoteJobClientInterface
from src.avatar_studio.config import Settings
from src.avatar_studio.domain.remote_task import (
    LANDSCAPE,
    AvatarPreset,
    CatalogEnvelope,
    PresetVideoForm,
    RemoteTaskStatus,
    TaskCreatedResponse,
    TaskResultResponse,
    TaskStatusResponse,
    VideoDimensions,
    VideoJobForm,
    VideoResult,
    VoicePreset,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _form_parts(form: dict[str, str]) -> list[tuple[str, tuple[None, str]]]:
    """Encode plain form fields as filename-less multipart parts."""
    return [(name, (None, value)) for name, value in form.items()]


class RemoteJobClient(RemoteJobClientInterface):
    """Async client for the rendering backend.

    Holds one pooled ``httpx.AsyncClient``; close it with :meth:`aclose`
    or use the client as an async context manager.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        *,
        timeout: httpx.Timeout | float = httpx.Timeout(60.0, connect=10.0),
        dimensions: VideoDimensions = LANDSCAPE,
        completion_timeout: float | None = None,
        poll_interval: Callable[[float], float] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize client.

        Args:
            base_url: Backend root URL
            api_key: Value for the X-Api-Key header
            timeout: Per-request HTTP timeout
            dimensions: Frame size requested for rendered videos
            completion_timeout: Default budget for wait_for_task_completion
                (default: Settings.completion_timeout_seconds)
            poll_interval: Maps seconds elapsed to the next polling delay
                (default: Settings.poll_interval_for)
            transport: Optional custom transport (used by tests)
        """
        headers = {"Accept": "application/json"}
        if api_key:
            headers["X-Api-Key"] = api_key

        self._dimensions = dimensions
        if completion_timeout is None or poll_interval is None:
            defaults = Settings()
            if completion_timeout is None:
                completion_timeout = defaults.completion_timeout_seconds
            if poll_interval is None:
                poll_interval = defaults.poll_interval_for
        self._completion_timeout = completion_timeout
        self._poll_interval = poll_interval
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        logger.info("Remote job client initialised for %s", base_url)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "RemoteJobClient":
        """Build a client from application settings."""
        return cls(
            settings.api_base_url,
            settings.api_key,
            timeout=httpx.Timeout(
                settings.request_timeout_seconds,
                connect=settings.connect_timeout_seconds,
            ),
            dimensions=VideoDimensions(
                width=settings.video_width, height=settings.video_height
            ),
            completion_timeout=settings.completion_timeout_seconds,
            poll_interval=settings.poll_interval_for,
            transport=transport,
        )

    async def __aenter__(self) -> "RemoteJobClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Networking core
    # ------------------------------------------------------------------

    async def _request(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        """Send a request and map failures onto RemoteApiError subclasses."""
        logger.debug("%s %s", method, endpoint)
        try:
            response = await self._client.request(method, endpoint, **kwargs)
        except httpx.TransportError as exc:
            raise NetworkError(
                f"Network error: {str(exc) or type(exc).__name__}"
            ) from exc

        logger.debug("HTTP %d for %s %s", response.status_code, method, endpoint)

        if response.status_code in (401, 403):
            raise UnauthorizedError()
        if response.status_code in (400, 422):
            raise InvalidInputError(response.text or f"HTTP {response.status_code}")
        if response.status_code >= 400:
            raise ServerError(response.text or f"HTTP {response.status_code}")
        return response

    @staticmethod
    def _decode(response: httpx.Response, model: type[M]) -> M:
        """Decode a JSON body into a model, raising DecodeError on mismatch."""
        try:
            return model.model_validate_json(response.content)
        except ValidationError as exc:
            raise DecodeError(f"Failed to decode response: {exc}") from exc

    async def _create_task(
        self,
        endpoint: str,
        form: dict[str, str],
        files: list[tuple[str, tuple[str, bytes]]] | None = None,
    ) -> str:
        """POST a multipart form and return the created task ID."""
        parts = _form_parts(form) + list(files or [])
        response = await self._request("POST", endpoint, files=parts)
        task_id = self._decode(response, TaskCreatedResponse).task_id
        logger.info("Created task %s via %s", task_id, endpoint)
        return task_id

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------

    async def check_server_status(self) -> bool:
        """Return True when the backend reports itself as running."""
        response = await self._request("GET", "/status")
        try:
            return response.json().get("status") == "running"
        except (ValueError, AttributeError) as exc:
            raise DecodeError(f"Failed to decode response: {exc}") from exc

    # ------------------------------------------------------------------
    # Video jobs
    # ------------------------------------------------------------------

    async def create_job_from_preset(
        self,
        avatar_id: str,
        voice_id: str,
        script_text: str,
        locale_code: str | None,
        background_color_hex: str | None = None,
    ) -> str:
        """Start rendering a vendor preset avatar."""
        form = PresetVideoForm(
            width=self._dimensions.width,
            height=self._dimensions.height,
            avatar_id=avatar_id,
            voice_id=voice_id,
            input_text=script_text,
            locale=locale_code,
            background_color=background_color_hex,
        )
        return await self._create_task("/heygen/create_from_presets", form.to_form_data())

    async def create_job_from_image(
        self,
        image_bytes: bytes,
        image_name: str,
        voice_id: str,
        script_text: str,
        locale_code: str | None,
        background_color_hex: str | None = None,
    ) -> str:
        """Start rendering an avatar from an uploaded image."""
        if not image_bytes:
            raise InvalidInputError("Avatar image is empty")

        form = VideoJobForm(
            width=self._dimensions.width,
            height=self._dimensions.height,
            voice_id=voice_id,
            input_text=script_text,
            locale=locale_code,
            background_color=background_color_hex,
        )
        logger.debug("Uploading avatar image %s (%d bytes)", image_name, len(image_bytes))
        return await self._create_task(
            "/heygen/create_from_images",
            form.to_form_data(),
            files=[("avatar_image", (image_name, image_bytes))],
        )

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def get_job_status(self, task_id: str) -> TaskStatusResponse:
        """Fetch the coarse status of a task."""
        response = await self._request("GET", f"/task/status/{task_id}")
        status = self._decode(response, TaskStatusResponse)
        if status.error:
            logger.debug("Task %s reports error: %s", task_id, status.error)
        return status

    async def _get_task_result(self, task_id: str) -> httpx.Response:
        return await self._request("GET", f"/task/result/{task_id}")

    async def get_job_result(self, task_id: str) -> VideoResult:
        """Fetch and decode the rendered video of a completed task."""
        response = await self._get_task_result(task_id)
        data = self._decode(response, TaskResultResponse).result.data
        return VideoResult(
            video_url=data.video_url,
            thumbnail_url=data.thumbnail_url,
            duration_seconds=data.duration,
        )

    async def wait_for_task_completion(
        self,
        task_id: str,
        timeout: float | None = None,
        on_status: Callable[[TaskStatusResponse], None] | None = None,
    ) -> TaskStatusResponse:
        """Poll a task until it completes.

        The polling interval widens as the task ages to reduce backend load
        on long-running jobs. Unknown statuses are treated like pending.

        Args:
            task_id: Remote task identifier
            timeout: Overall budget in seconds (default: client setting)
            on_status: Called with every status response

        Returns:
            The final COMPLETED status response

        Raises:
            TaskFailedError: If the backend reports the task as failed
            TaskTimeoutError: If no terminal status arrives within the budget
        """
        budget = self._completion_timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        started = loop.time()
        last_status: RemoteTaskStatus | None = None

        while (elapsed := loop.time() - started) < budget:
            status = await self.get_job_status(task_id)
            if on_status is not None:
                on_status(status)

            if status.status != last_status:
                logger.info("Task %s status -> %s", task_id, status.status.value)
                last_status = status.status

            if status.status == RemoteTaskStatus.COMPLETED:
                return status
            if status.status == RemoteTaskStatus.FAILED:
                raise TaskFailedError(status.error or "Unknown error")

            await asyncio.sleep(self._poll_interval(elapsed))

        logger.warning("Task %s timed out after %.0fs", task_id, budget)
        raise TaskTimeoutError(f"Task timed out after {budget:.0f} seconds")

    # ------------------------------------------------------------------
    # Catalog and avatar creation
    # ------------------------------------------------------------------

    async def create_avatar_from_prompt(self, prompt: str, go_fast: bool = True) -> str:
        """Start generating a custom avatar image from a text prompt."""
        if not prompt.strip():
            raise InvalidInputError("Avatar prompt must not be empty")
        return await self._create_task(
            "/avatar/create",
            {"prompt": prompt, "go_fast": "true" if go_fast else "false"},
        )

    async def _run_catalog_task(self, endpoint: str) -> httpx.Response:
        response = await self._request("POST", endpoint)
        task_id = self._decode(response, TaskCreatedResponse).task_id
        await self.wait_for_task_completion(task_id)
        return await self._get_task_result(task_id)

    async def list_avatar_presets(self) -> list[AvatarPreset]:
        """Fetch every vendor preset avatar."""
        response = await self._run_catalog_task("/heygen/all_avatars")
        avatars = self._decode(response, CatalogEnvelope[list[AvatarPreset]]).answer.result
        logger.info("Fetched %d avatar presets", len(avatars))
        return avatars

    async def list_voices(self, with_preview_only: bool = True) -> list[VoicePreset]:
        """Fetch vendor voices.

        Args:
            with_preview_only: Drop voices without a preview sample

        Returns:
            Available voices
        """
        response = await self._run_catalog_task("/heygen/all_voices")
        voices = self._decode(response, CatalogEnvelope[list[VoicePreset]]).answer.result
        if with_preview_only:
            voices = [v for v in voices if v.has_preview]
        logger.info("Fetched %d voices", len(voices))
        return voices

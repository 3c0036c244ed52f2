"""Shared fixtures for the generation lifecycle tests.

Timing settings are shrunk to milliseconds so lifecycle tests finish
quickly while still exercising the real polling and progress tasks.
"""

from pathlib import Path

import pytest

from src.avatar_studio.clients.interfaces import RemoteJobClientInterface
from src.avatar_studio.config import Settings
from src.avatar_studio.domain.generation import (
    AvatarRef,
    BackgroundRef,
    GenerationRequest,
    VoiceRef,
)
from src.avatar_studio.domain.remote_task import (
    RemoteTaskStatus,
    TaskStatusResponse,
    VideoResult,
)
from src.avatar_studio.repositories.job_registry import JobRegistry
from src.avatar_studio.repositories.key_value_store import JsonFileStore
from src.avatar_studio.repositories.project_repository import ProjectRepository

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class ScriptedClient(RemoteJobClientInterface):
    """In-memory remote client that replays scripted status responses.

    ``statuses`` items may be a RemoteTaskStatus, a TaskStatusResponse or
    an exception to raise. Once the script is exhausted the client keeps
    answering PROCESSING. Status scripts are shared by all tasks.
    """

    def __init__(
        self,
        statuses: list | None = None,
        *,
        result: VideoResult | None = None,
        submit_error: Exception | None = None,
        result_error: Exception | None = None,
    ) -> None:
        self.statuses = list(statuses or [])
        self.result = result or VideoResult(
            video_url="https://cdn.example.com/v.mp4",
            thumbnail_url="https://cdn.example.com/v.jpg",
            duration_seconds=42.0,
        )
        self.submit_error = submit_error
        self.result_error = result_error
        self.created: list[dict] = []
        self.status_calls: list[str] = []
        self.result_calls: list[str] = []

    def _next_task_id(self, **details) -> str:
        if self.submit_error is not None:
            raise self.submit_error
        self.created.append(details)
        return f"task-{len(self.created)}"

    async def create_job_from_preset(
        self,
        avatar_id,
        voice_id,
        script_text,
        locale_code,
        background_color_hex=None,
    ) -> str:
        return self._next_task_id(
            kind="preset",
            avatar_id=avatar_id,
            voice_id=voice_id,
            script_text=script_text,
            locale_code=locale_code,
            background_color_hex=background_color_hex,
        )

    async def create_job_from_image(
        self,
        image_bytes,
        image_name,
        voice_id,
        script_text,
        locale_code,
        background_color_hex=None,
    ) -> str:
        return self._next_task_id(
            kind="image",
            image_bytes=image_bytes,
            image_name=image_name,
            voice_id=voice_id,
            script_text=script_text,
            locale_code=locale_code,
            background_color_hex=background_color_hex,
        )

    async def get_job_status(self, task_id: str) -> TaskStatusResponse:
        self.status_calls.append(task_id)
        item = self.statuses.pop(0) if self.statuses else RemoteTaskStatus.PROCESSING
        if isinstance(item, Exception):
            raise item
        if isinstance(item, TaskStatusResponse):
            return item
        return TaskStatusResponse(status=item)

    async def get_job_result(self, task_id: str) -> VideoResult:
        self.result_calls.append(task_id)
        if self.result_error is not None:
            raise self.result_error
        return self.result


def make_request(
    *,
    script: str = "Hello there from the studio",
    custom_image: bytes | None = None,
    preset_id: str | None = "anna_public",
    background: BackgroundRef | None = None,
) -> GenerationRequest:
    """Create a GenerationRequest with sensible defaults."""
    if custom_image is not None:
        avatar = AvatarRef(
            name="Me",
            is_custom=True,
            image_data=custom_image,
            image_name="me.png",
            thumbnail_url="thumbs/me.png",
        )
    else:
        avatar = AvatarRef(name="Anna", preset_id=preset_id, thumbnail_url="thumbs/anna.png")
    return GenerationRequest(
        title="Quarterly update",
        script=script,
        avatar=avatar,
        voice=VoiceRef(voice_id="v-1", name="Jenny", language_code="en-US"),
        background=background,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with millisecond timings and a temporary data directory."""
    return Settings(
        data_path=tmp_path / "data",
        poll_intervals=[0.01],
        poll_interval_thresholds=[],
        progress_tick_seconds=0.005,
        completion_timeout_seconds=5.0,
    )


@pytest.fixture
def store(settings: Settings) -> JsonFileStore:
    """A JsonFileStore rooted in the temporary data directory."""
    return JsonFileStore(settings.data_path)


@pytest.fixture
def projects(store: JsonFileStore) -> ProjectRepository:
    """A ProjectRepository over the temporary store."""
    return ProjectRepository(store)


@pytest.fixture
def registry(store: JsonFileStore) -> JobRegistry:
    """A JobRegistry over the temporary store."""
    return JobRegistry(store)

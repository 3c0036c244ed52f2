"""Tests for the GenerationInstance lifecycle.

Drives real instances against a scripted in-memory remote client and a
temporary JSON store, covering the submit/poll/reconcile path, every
failure reason, cancellation, retry and restart recovery.
"""

import asyncio
import logging
from uuid import UUID

import pytest

from src.avatar_studio.clients.errors import DecodeError, NetworkError, ServerError
from src.avatar_studio.config import Settings
from src.avatar_studio.domain.generation import (
    BackgroundRef,
    FailedOutcome,
    FailureReason,
    GenerationState,
    JobRecord,
    ReadyOutcome,
)
from src.avatar_studio.domain.project import Project, ProjectStatus
from src.avatar_studio.domain.remote_task import RemoteTaskStatus, TaskStatusResponse
from src.avatar_studio.repositories.job_registry import JobRegistry
from src.avatar_studio.repositories.project_repository import ProjectRepository
from src.avatar_studio.services.generation_instance import (
    GenerationInstance,
    GenerationStateError,
)
from tests.conftest import ScriptedClient, make_request

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _create_project(projects: ProjectRepository, project_id: UUID) -> None:
    await projects.create(
        Project(id=project_id, title="Quarterly update", status=ProjectStatus.IN_PROGRESS)
    )


async def _eventually(predicate, timeout: float = 2.0) -> None:
    """Wait until predicate() is true."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.005)


async def _run(instance: GenerationInstance):
    instance.start()
    return await asyncio.wait_for(instance.wait(), 2)


class _StalledClient(ScriptedClient):
    """ScriptedClient whose submission or result fetch is slow.

    ``call_started`` is set as soon as the slow call begins, so a test can
    act while the call is still in flight.
    """

    def __init__(self, *args, stall: str, delay: float = 0.2, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.stall = stall
        self.delay = delay
        self.call_started = asyncio.Event()

    async def _slow(self, call: str) -> None:
        if self.stall == call:
            self.call_started.set()
            await asyncio.sleep(self.delay)

    async def create_job_from_preset(self, *args, **kwargs) -> str:
        await self._slow("submit")
        return await super().create_job_from_preset(*args, **kwargs)

    async def get_job_result(self, task_id: str):
        await self._slow("result")
        return await super().get_job_result(task_id)


@pytest.fixture
def build(projects: ProjectRepository, registry: JobRegistry, settings: Settings):
    """Factory creating an instance (and its project) for a client."""

    async def _build(client: ScriptedClient, request=None, record=None, **overrides):
        run_settings = settings.model_copy(update=overrides) if overrides else settings
        if record is None:
            request = request or make_request()
        project_id = request.project_id if request else record.project_id
        await _create_project(projects, project_id)
        return GenerationInstance(
            client, projects, registry, run_settings, request=request, record=record
        )

    return _build


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


class TestCompletion:
    """Tests for a job that renders successfully."""

    async def test_ready_outcome_reconciled_into_project(
        self, build, projects: ProjectRepository, registry: JobRegistry
    ) -> None:
        """pending -> processing -> completed marks the project ready."""
        client = ScriptedClient(
            [RemoteTaskStatus.PENDING, RemoteTaskStatus.PROCESSING, RemoteTaskStatus.COMPLETED]
        )
        instance = await build(client)

        outcome = await _run(instance)

        assert isinstance(outcome, ReadyOutcome)
        assert outcome.video_url == "https://cdn.example.com/v.mp4"
        assert instance.state == GenerationState.COMPLETED
        assert instance.progress.percent == 100
        assert client.status_calls == ["task-1", "task-1", "task-1"]
        assert client.result_calls == ["task-1"]

        project = await projects.get_by_id(instance.project_id)
        assert project.status == ProjectStatus.READY
        assert project.video_url == "https://cdn.example.com/v.mp4"
        assert project.thumbnail_url == "https://cdn.example.com/v.jpg"
        assert project.task_id == "task-1"
        assert project.duration == 42.0
        assert await registry.all() == []

    async def test_record_written_while_polling(self, build, registry: JobRegistry) -> None:
        """The JobRecord exists from submission until the job resolves."""
        client = ScriptedClient()
        instance = await build(client)
        instance.start()

        await _eventually(lambda: instance.state == GenerationState.POLLING)
        record = await registry.get(instance.project_id)

        assert record == JobRecord(project_id=instance.project_id, remote_task_id="task-1")
        assert instance.remote_task_id == "task-1"
        instance.cancel()

    async def test_percent_monotonic_and_100_only_at_completion(self, build) -> None:
        """Progress never decreases and reaches 100 only when completed."""
        client = ScriptedClient([RemoteTaskStatus.PROCESSING] * 5 + [RemoteTaskStatus.COMPLETED])
        instance = await build(client)
        percents: list[int] = []
        instance.add_progress_listener(lambda _i, p: percents.append(p.percent))

        await _run(instance)

        assert percents == sorted(percents)
        assert percents[-1] == 100
        assert all(p < 100 for p in percents[:-1])

    async def test_terminal_listener_fires_once(self, build) -> None:
        """Exactly one terminal event is delivered per attempt."""
        client = ScriptedClient([RemoteTaskStatus.COMPLETED])
        instance = await build(client)
        events: list = []
        instance.add_terminal_listener(lambda _i, outcome: events.append(outcome))

        await _run(instance)
        await asyncio.sleep(0.05)

        assert len(events) == 1
        assert isinstance(events[0], ReadyOutcome)

    async def test_listener_errors_do_not_disturb_instance(self, build) -> None:
        """A raising listener is logged and the job still completes."""
        client = ScriptedClient([RemoteTaskStatus.PROCESSING, RemoteTaskStatus.COMPLETED])
        instance = await build(client)

        def explode(*_args) -> None:
            raise RuntimeError("listener bug")

        instance.add_progress_listener(explode)
        instance.add_terminal_listener(explode)

        outcome = await _run(instance)

        assert isinstance(outcome, ReadyOutcome)
        assert instance.state == GenerationState.COMPLETED

    async def test_unknown_status_treated_as_pending(self, build, caplog) -> None:
        """An unrecognised status keeps polling and is logged."""
        client = ScriptedClient(
            [TaskStatusResponse(status="queued-for-gpu"), RemoteTaskStatus.COMPLETED]
        )
        instance = await build(client)

        with caplog.at_level(logging.WARNING):
            outcome = await _run(instance)

        assert isinstance(outcome, ReadyOutcome)
        assert "unrecognised status" in caplog.text


# ---------------------------------------------------------------------------
# Submission variants
# ---------------------------------------------------------------------------


class TestSubmission:
    """Tests for choosing and calling the submission endpoint."""

    async def test_preset_avatar_uses_preset_variant(self, build) -> None:
        """Preset avatars are submitted by id with locale and background."""
        client = ScriptedClient([RemoteTaskStatus.COMPLETED])
        request = make_request(background=BackgroundRef(name="Navy", color_hex="112233"))
        instance = await build(client, request=request)

        await _run(instance)

        assert client.created == [
            {
                "kind": "preset",
                "avatar_id": "anna_public",
                "voice_id": "v-1",
                "script_text": "Hello there from the studio",
                "locale_code": "en-US",
                "background_color_hex": "#112233",
            }
        ]

    async def test_custom_avatar_uses_image_variant(self, build) -> None:
        """Custom avatars upload their image bytes."""
        client = ScriptedClient([RemoteTaskStatus.COMPLETED])
        instance = await build(client, request=make_request(custom_image=b"\x89PNG"))

        await _run(instance)

        created = client.created[0]
        assert created["kind"] == "image"
        assert created["image_bytes"] == b"\x89PNG"
        assert created["image_name"] == "me.png"
        assert created["background_color_hex"] is None

    async def test_starts_in_submitting(self, build) -> None:
        """A fresh instance enters submitting synchronously on start()."""
        instance = await build(ScriptedClient([RemoteTaskStatus.COMPLETED]))
        instance.start()

        assert instance.state == GenerationState.SUBMITTING
        await asyncio.wait_for(instance.wait(), 2)

    async def test_start_twice_raises(self, build) -> None:
        """start() is only valid from idle."""
        instance = await build(ScriptedClient())
        instance.start()

        with pytest.raises(GenerationStateError):
            instance.start()
        instance.cancel()

    def test_requires_request_or_record(
        self, projects: ProjectRepository, registry: JobRegistry, settings: Settings
    ) -> None:
        """An instance needs exactly one source."""
        with pytest.raises(ValueError):
            GenerationInstance(ScriptedClient(), projects, registry, settings)


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    """Tests for every failure reason."""

    async def test_backend_failure_resolves_project_and_record(
        self, build, projects: ProjectRepository, registry: JobRegistry
    ) -> None:
        """A backend 'failed' status carries its message verbatim."""
        client = ScriptedClient(
            [
                RemoteTaskStatus.PROCESSING,
                TaskStatusResponse(status=RemoteTaskStatus.FAILED, error="render error"),
            ]
        )
        instance = await build(client)

        outcome = await _run(instance)

        assert outcome == FailedOutcome(message="render error", reason=FailureReason.BACKEND)
        assert instance.state == GenerationState.FAILED
        assert instance.error_message == "render error"
        assert (await projects.get_by_id(instance.project_id)).status == ProjectStatus.FAILED
        assert await registry.all() == []

    async def test_backend_failure_default_message(self, build) -> None:
        """A backend failure without details uses a generic message."""
        client = ScriptedClient([RemoteTaskStatus.FAILED])
        instance = await build(client)

        outcome = await _run(instance)

        assert outcome.message == "Video generation failed"

    async def test_network_error_while_polling_keeps_job_recoverable(
        self, build, projects: ProjectRepository, registry: JobRegistry
    ) -> None:
        """A local polling error leaves the project and record in place."""
        client = ScriptedClient([NetworkError("Network error: connection reset")])
        instance = await build(client)

        outcome = await _run(instance)

        assert outcome.reason == FailureReason.POLLING
        assert outcome.message == "Network error: connection reset"
        project = await projects.get_by_id(instance.project_id)
        assert project.status == ProjectStatus.IN_PROGRESS
        assert (await registry.get(instance.project_id)).remote_task_id == "task-1"

    async def test_result_decode_error(
        self, build, projects: ProjectRepository, registry: JobRegistry
    ) -> None:
        """A completed job with an unreadable result is a failure."""
        client = ScriptedClient(
            [RemoteTaskStatus.COMPLETED],
            result_error=DecodeError("Failed to decode response: missing video_url"),
        )
        instance = await build(client)

        outcome = await _run(instance)

        assert outcome.reason == FailureReason.RESULT
        assert instance.progress.percent < 100
        assert (
            await projects.get_by_id(instance.project_id)
        ).status == ProjectStatus.IN_PROGRESS
        assert await registry.get(instance.project_id) is not None

    async def test_timeout_is_distinct_from_backend_failure(
        self, build, registry: JobRegistry
    ) -> None:
        """No terminal status within the budget fails with reason timeout."""
        client = ScriptedClient()
        instance = await build(client, completion_timeout_seconds=0.05)

        outcome = await _run(instance)

        assert outcome.reason == FailureReason.TIMEOUT
        assert outcome.message.startswith("Task timed out after")
        assert await registry.get(instance.project_id) is not None

    async def test_submission_failure_marks_project_failed(
        self, build, projects: ProjectRepository, registry: JobRegistry
    ) -> None:
        """A rejected submission writes no record and never polls."""
        client = ScriptedClient(submit_error=ServerError("quota exceeded"))
        instance = await build(client)

        outcome = await _run(instance)

        assert outcome.reason == FailureReason.SUBMISSION
        assert outcome.message == "Server error: quota exceeded"
        assert client.status_calls == []
        assert await registry.all() == []
        assert (await projects.get_by_id(instance.project_id)).status == ProjectStatus.FAILED

    async def test_incompatible_avatar_fails_submission(self, build) -> None:
        """An avatar with neither preset id nor image cannot be submitted."""
        client = ScriptedClient()
        instance = await build(client, request=make_request(preset_id=None))

        outcome = await _run(instance)

        assert outcome.reason == FailureReason.SUBMISSION
        assert outcome.message == "Avatar is not compatible"
        assert client.created == []


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


class TestCancel:
    """Tests for cancel()."""

    async def test_cancel_stops_work_and_keeps_state(
        self, build, projects: ProjectRepository, registry: JobRegistry
    ) -> None:
        """Cancelling stops polling without touching project or record."""
        client = ScriptedClient()
        instance = await build(client)
        events: list = []
        instance.add_terminal_listener(lambda _i, outcome: events.append(outcome))
        instance.start()
        await _eventually(lambda: len(client.status_calls) >= 2)

        instance.cancel()
        calls = len(client.status_calls)
        await asyncio.sleep(0.05)

        assert instance.state == GenerationState.CANCELLED
        assert await instance.wait() is None
        assert len(client.status_calls) == calls
        assert events == []
        assert (
            await projects.get_by_id(instance.project_id)
        ).status == ProjectStatus.IN_PROGRESS
        assert await registry.get(instance.project_id) is not None

    async def test_cancel_during_result_fetch(
        self, build, projects: ProjectRepository, registry: JobRegistry
    ) -> None:
        """A result arriving after cancel is never reconciled."""
        client = _StalledClient([RemoteTaskStatus.COMPLETED], stall="result")
        instance = await build(client)
        events: list = []
        instance.add_terminal_listener(lambda _i, outcome: events.append(outcome))
        instance.start()
        await asyncio.wait_for(client.call_started.wait(), 2)

        instance.cancel()
        await asyncio.sleep(client.delay + 0.1)

        assert instance.state == GenerationState.CANCELLED
        assert await instance.wait() is None
        assert events == []
        assert instance.progress.percent < 100
        project = await projects.get_by_id(instance.project_id)
        assert project.status == ProjectStatus.IN_PROGRESS
        assert project.video_url is None
        assert await registry.get(instance.project_id) == JobRecord(
            project_id=instance.project_id, remote_task_id="task-1"
        )

    async def test_cancel_during_submission(
        self, build, projects: ProjectRepository, registry: JobRegistry
    ) -> None:
        """A submission still in flight at cancel writes no record."""
        client = _StalledClient(stall="submit")
        instance = await build(client)
        instance.start()
        await asyncio.wait_for(client.call_started.wait(), 2)

        instance.cancel()
        await asyncio.sleep(client.delay + 0.1)

        assert instance.state == GenerationState.CANCELLED
        assert instance.remote_task_id is None
        assert client.status_calls == []
        assert await registry.all() == []
        assert (
            await projects.get_by_id(instance.project_id)
        ).status == ProjectStatus.IN_PROGRESS

    async def test_cancel_terminal_is_noop(self, build) -> None:
        """Cancelling a finished instance keeps its terminal state."""
        instance = await build(ScriptedClient([RemoteTaskStatus.COMPLETED]))
        await _run(instance)

        instance.cancel()

        assert instance.state == GenerationState.COMPLETED
        assert isinstance(instance.outcome, ReadyOutcome)


# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------


class TestRetry:
    """Tests for retry()."""

    async def test_retry_submits_new_job(
        self, build, projects: ProjectRepository, registry: JobRegistry
    ) -> None:
        """A failed generation resubmits and can then complete."""
        client = ScriptedClient(
            [
                TaskStatusResponse(status=RemoteTaskStatus.FAILED, error="render error"),
                RemoteTaskStatus.COMPLETED,
            ]
        )
        instance = await build(client)
        events: list = []
        instance.add_terminal_listener(lambda _i, outcome: events.append(outcome))
        await _run(instance)
        assert instance.can_retry

        instance.retry()
        assert instance.state == GenerationState.SUBMITTING
        assert instance.error_message is None
        outcome = await asyncio.wait_for(instance.wait(), 2)

        assert isinstance(outcome, ReadyOutcome)
        assert len(client.created) == 2
        assert [type(e) for e in events] == [FailedOutcome, ReadyOutcome]
        project = await projects.get_by_id(instance.project_id)
        assert project.status == ProjectStatus.READY
        assert project.task_id == "task-2"
        assert await registry.all() == []

    async def test_retry_replaces_stale_record(self, build, registry: JobRegistry) -> None:
        """Retrying after a local failure drops the abandoned task's record."""
        client = ScriptedClient([NetworkError("Network error: timeout")])
        instance = await build(client)
        await _run(instance)
        assert (await registry.get(instance.project_id)).remote_task_id == "task-1"

        instance.retry()
        await _eventually(lambda: instance.state == GenerationState.POLLING)

        assert (await registry.get(instance.project_id)).remote_task_id == "task-2"
        instance.cancel()

    async def test_retry_requires_failed_state(self, build) -> None:
        """retry() from a non-failed state is a state error."""
        instance = await build(ScriptedClient([RemoteTaskStatus.COMPLETED]))
        await _run(instance)

        with pytest.raises(GenerationStateError):
            instance.retry()

    async def test_recovered_instance_cannot_retry(self, build) -> None:
        """An instance rebuilt from a record has no request to resubmit."""
        record = JobRecord(project_id=make_request().project_id, remote_task_id="T-1")
        instance = await build(ScriptedClient([RemoteTaskStatus.FAILED]), record=record)
        await _run(instance)

        assert not instance.can_retry
        with pytest.raises(GenerationStateError):
            instance.retry()


# ---------------------------------------------------------------------------
# Recovery
# ---------------------------------------------------------------------------


class TestRecovery:
    """Tests for instances rebuilt from a JobRecord."""

    async def test_resumes_polling_without_resubmitting(
        self, build, projects: ProjectRepository
    ) -> None:
        """A surviving record goes straight to polling its task."""
        record = JobRecord(project_id=make_request().project_id, remote_task_id="T-9")
        client = ScriptedClient([RemoteTaskStatus.PROCESSING, RemoteTaskStatus.COMPLETED])
        instance = await build(client, record=record)

        instance.start()
        assert instance.state == GenerationState.POLLING
        outcome = await asyncio.wait_for(instance.wait(), 2)

        assert isinstance(outcome, ReadyOutcome)
        assert client.created == []
        assert client.status_calls == ["T-9", "T-9"]
        project = await projects.get_by_id(record.project_id)
        assert project.status == ProjectStatus.READY
        assert project.task_id == "T-9"

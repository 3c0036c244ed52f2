"""Lifecycle of a single avatar video generation.

A GenerationInstance drives one remote rendering job from submission to a
terminal outcome:

    IDLE -> SUBMITTING -> POLLING -> COMPLETED | FAILED
    IDLE -> POLLING                  (recovered from a JobRecord)
    any non-terminal -> CANCELLED

Two asyncio tasks run per attempt and are cancelled as a unit:

- the job task submits the request, records the JobRecord, polls the
  status endpoint on a widening interval and reconciles the result into
  the project store;
- the progress ticker advances an optimistic progress estimate at a fixed
  cadence. It is UX smoothing only and never reports completion on its
  own.

Failures never escape the instance. They become a FailedOutcome delivered
to terminal listeners exactly once per attempt. Local failures (polling,
result decoding, timeout) keep the project IN_PROGRESS and keep the
JobRecord, so the job can still be recovered after a restart.
Backend-reported failures resolve both.
"""

import asyncio
import logging
from collections.abc import Callable
from uuid import UUID, uuid4

from src.avatar_studio.clients.errors import InvalidInputError, RemoteApiError
from src.avatar_studio.clients.interfaces import RemoteJobClientInterface
from src.avatar_studio.config import Settings
from src.avatar_studio.domain.generation import (
    FailedOutcome,
    FailureReason,
    GenerationProgress,
    GenerationRequest,
    GenerationState,
    JobRecord,
    ReadyOutcome,
    advance_progress,
)
from src.avatar_studio.domain.project import ProjectStatus
from src.avatar_studio.domain.remote_task import RemoteTaskStatus
from src.avatar_studio.repositories.interfaces import (
    JobRegistryInterface,
    ProjectRepositoryInterface,
)

logger = logging.getLogger(__name__)

_BACKEND_FAILURE_DEFAULT = "Video generation failed"


class GenerationStateError(Exception):
    """Raised when an operation is invalid for the current generation state."""


class GenerationInstance:
    """In-process tracker for one remote video rendering job.

    Built either from a GenerationRequest (a fresh submission) or from a
    surviving JobRecord (restart recovery, which skips submission and
    starts polling the known remote task).
    """

    def __init__(
        self,
        client: RemoteJobClientInterface,
        projects: ProjectRepositoryInterface,
        registry: JobRegistryInterface,
        settings: Settings,
        *,
        request: GenerationRequest | None = None,
        record: JobRecord | None = None,
    ) -> None:
        """Initialize instance.

        Args:
            client: Remote job API client
            projects: Project store the outcome is written to
            registry: Durable registry of in-flight jobs
            settings: Timing and progress tuning
            request: Request to submit (fresh generation)
            record: Surviving JobRecord to resume polling (recovery)

        Raises:
            ValueError: If neither or both of request and record are given
        """
        if (request is None) == (record is None):
            raise ValueError("Provide exactly one of request or record")

        self.id: UUID = uuid4()
        self._client = client
        self._projects = projects
        self._registry = registry
        self._settings = settings
        self._request = request
        self._project_id: UUID = request.project_id if request else record.project_id
        self._remote_task_id: str | None = record.remote_task_id if record else None

        self._state = GenerationState.IDLE
        self._progress = self._initial_progress()
        self._error_message: str | None = None
        self._outcome: ReadyOutcome | FailedOutcome | None = None
        self._attempt = 0
        self._done = asyncio.Event()
        self._job_task: asyncio.Task | None = None
        self._ticker_task: asyncio.Task | None = None
        self._progress_listeners: list[
            Callable[["GenerationInstance", GenerationProgress], None]
        ] = []
        self._terminal_listeners: list[
            Callable[["GenerationInstance", ReadyOutcome | FailedOutcome], None]
        ] = []

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def project_id(self) -> UUID:
        return self._project_id

    @property
    def request(self) -> GenerationRequest | None:
        return self._request

    @property
    def state(self) -> GenerationState:
        return self._state

    @property
    def progress(self) -> GenerationProgress:
        return self._progress

    @property
    def remote_task_id(self) -> str | None:
        return self._remote_task_id

    @property
    def error_message(self) -> str | None:
        return self._error_message

    @property
    def outcome(self) -> ReadyOutcome | FailedOutcome | None:
        return self._outcome

    @property
    def is_active(self) -> bool:
        """Whether the instance is still working towards an outcome."""
        return not (self._state.is_terminal or self._state == GenerationState.CANCELLED)

    @property
    def can_retry(self) -> bool:
        return self._state == GenerationState.FAILED and self._request is not None

    def add_progress_listener(
        self, listener: Callable[["GenerationInstance", GenerationProgress], None]
    ) -> None:
        """Register a callback fired on every progress change."""
        self._progress_listeners.append(listener)

    def add_terminal_listener(
        self, listener: Callable[["GenerationInstance", ReadyOutcome | FailedOutcome], None]
    ) -> None:
        """Register a callback fired once per attempt with its outcome."""
        self._terminal_listeners.append(listener)

    async def wait(self) -> ReadyOutcome | FailedOutcome | None:
        """Wait for the current attempt to end.

        Returns:
            The attempt's outcome, or None if it was cancelled
        """
        await self._done.wait()
        return self._outcome

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the attempt: submit (or resume polling) and tick progress.

        Must be called from a running event loop.

        Raises:
            GenerationStateError: If the instance is not IDLE
        """
        if self._state != GenerationState.IDLE:
            raise GenerationStateError(
                f"Cannot start generation in state {self._state.value}"
            )

        self._attempt += 1
        if self._remote_task_id is None:
            self._set_state(GenerationState.SUBMITTING)
        else:
            self._set_state(GenerationState.POLLING)

        self._ticker_task = asyncio.create_task(
            self._tick_progress(), name=f"generation-progress-{self.id}"
        )
        self._job_task = asyncio.create_task(self._run(), name=f"generation-job-{self.id}")

    def retry(self) -> None:
        """Resubmit a failed generation as a brand-new remote job.

        The failed remote task is abandoned rather than resumed.

        Raises:
            GenerationStateError: If the instance is not FAILED, or was
                recovered without its original request
        """
        if self._state != GenerationState.FAILED:
            raise GenerationStateError(
                f"Cannot retry generation in state {self._state.value}"
            )
        if self._request is None:
            raise GenerationStateError(
                "Generation was recovered without its request and cannot be resubmitted"
            )

        self._cancel_tasks()
        self._progress = self._initial_progress()
        self._error_message = None
        self._outcome = None
        self._remote_task_id = None
        self._done = asyncio.Event()
        self._set_state(GenerationState.IDLE)
        logger.info("Retrying generation %s for project %s", self.id, self._project_id)
        self.start()

    def cancel(self) -> None:
        """Stop all work without touching the project or the JobRecord.

        A remote job that is still running is left for restart recovery.
        Cancelling a terminal or already cancelled instance does nothing.
        """
        if not self.is_active:
            return

        self._set_state(GenerationState.CANCELLED)
        self._cancel_tasks()
        self._done.set()

    # ------------------------------------------------------------------
    # Job task
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        try:
            if self._state == GenerationState.SUBMITTING:
                if not await self._submit():
                    return
            try:
                await asyncio.wait_for(
                    self._poll_until_terminal(),
                    timeout=self._settings.completion_timeout_seconds,
                )
            except TimeoutError:
                await self._fail(
                    FailureReason.TIMEOUT,
                    f"Task timed out after "
                    f"{self._settings.completion_timeout_seconds:.0f} seconds",
                )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Generation %s crashed", self.id)
            reason = (
                FailureReason.SUBMISSION
                if self._remote_task_id is None
                else FailureReason.POLLING
            )
            self._stop_ticker()
            self._error_message = str(exc) or type(exc).__name__
            self._finish(
                GenerationState.FAILED,
                FailedOutcome(message=self._error_message, reason=reason),
            )

    async def _submit(self) -> bool:
        """Create the remote job and record it; return False on failure."""
        if self._attempt > 1:
            # The abandoned task must not be resumed by restart recovery
            await self._registry.remove(self._project_id)
            await self._projects.update_status(
                self._project_id, ProjectStatus.IN_PROGRESS, task_id=None
            )

        try:
            task_id = await self._create_remote_job()
        except RemoteApiError as exc:
            logger.warning("Submission failed for project %s: %s", self._project_id, exc)
            # No remote job exists, so nothing could ever resolve the project
            await self._fail(
                FailureReason.SUBMISSION, str(exc), project_status=ProjectStatus.FAILED
            )
            return False

        if not self.is_active:
            return False

        self._remote_task_id = task_id
        await self._registry.add(
            JobRecord(project_id=self._project_id, remote_task_id=task_id)
        )
        self._set_state(GenerationState.POLLING)
        return True

    async def _create_remote_job(self) -> str:
        """Pick the image or preset submission variant for the avatar."""
        request = self._request
        avatar = request.avatar
        voice = request.voice
        background_hex = request.background.color_hex if request.background else None

        if avatar.uses_image_upload:
            return await self._client.create_job_from_image(
                avatar.image_data,
                avatar.image_name,
                voice.voice_id,
                request.script,
                voice.language_code,
                background_hex,
            )
        if avatar.preset_id:
            return await self._client.create_job_from_preset(
                avatar.preset_id,
                voice.voice_id,
                request.script,
                voice.language_code,
                background_hex,
            )
        raise InvalidInputError("Avatar is not compatible")

    async def _poll_until_terminal(self) -> None:
        task_id = self._remote_task_id
        loop = asyncio.get_running_loop()
        started = loop.time()

        while True:
            await asyncio.sleep(self._settings.poll_interval_for(loop.time() - started))

            try:
                status = await self._client.get_job_status(task_id)
            except RemoteApiError as exc:
                logger.warning("Polling task %s failed: %s", task_id, exc)
                await self._fail(FailureReason.POLLING, str(exc))
                return

            if status.status == RemoteTaskStatus.COMPLETED:
                await self._complete(task_id)
                return
            if status.status == RemoteTaskStatus.FAILED:
                await self._fail(
                    FailureReason.BACKEND,
                    status.error or _BACKEND_FAILURE_DEFAULT,
                    project_status=ProjectStatus.FAILED,
                    drop_record=True,
                )
                return
            if status.status == RemoteTaskStatus.UNKNOWN:
                # Could be a terminal state added by the backend; keep polling
                logger.warning("Task %s returned an unrecognised status", task_id)

    async def _complete(self, task_id: str) -> None:
        self._stop_ticker()
        try:
            result = await self._client.get_job_result(task_id)
        except RemoteApiError as exc:
            logger.warning("Fetching result of task %s failed: %s", task_id, exc)
            await self._fail(FailureReason.RESULT, str(exc))
            return

        if not self.is_active:
            return
        await self._projects.update_status(
            self._project_id,
            ProjectStatus.READY,
            video_url=result.video_url,
            thumbnail_url=result.thumbnail_url,
            task_id=task_id,
            duration=result.duration_seconds,
        )
        if not self.is_active:
            return
        await self._registry.remove(self._project_id)

        self._set_progress(1.0)
        self._finish(
            GenerationState.COMPLETED,
            ReadyOutcome(
                video_url=result.video_url,
                thumbnail_url=result.thumbnail_url,
                duration=result.duration_seconds,
            ),
        )

    async def _fail(
        self,
        reason: FailureReason,
        message: str,
        *,
        project_status: ProjectStatus | None = None,
        drop_record: bool = False,
    ) -> None:
        self._stop_ticker()
        if not self.is_active:
            return

        if project_status is not None:
            await self._projects.update_status(self._project_id, project_status, task_id=None)
        if drop_record and self.is_active:
            await self._registry.remove(self._project_id)

        self._error_message = message
        self._finish(GenerationState.FAILED, FailedOutcome(message=message, reason=reason))

    def _finish(
        self, state: GenerationState, outcome: ReadyOutcome | FailedOutcome
    ) -> None:
        """Enter a terminal state and deliver the outcome exactly once."""
        if not self.is_active or self._outcome is not None:
            return

        self._outcome = outcome
        self._set_state(state)
        self._done.set()
        for listener in list(self._terminal_listeners):
            try:
                listener(self, outcome)
            except Exception:
                logger.exception("Terminal listener failed for generation %s", self.id)

    # ------------------------------------------------------------------
    # Progress ticker
    # ------------------------------------------------------------------

    def _initial_progress(self) -> GenerationProgress:
        return GenerationProgress(
            fraction=0.0, remaining_seconds=self._settings.estimated_total_seconds
        )

    async def _tick_progress(self) -> None:
        settings = self._settings
        while True:
            await asyncio.sleep(settings.progress_tick_seconds)
            fraction = advance_progress(
                self._progress.fraction,
                rate=settings.progress_rate,
                floor=settings.progress_floor,
                ceiling=settings.progress_ceiling,
            )
            if fraction != self._progress.fraction:
                self._set_progress(fraction)

    def _set_progress(self, fraction: float) -> None:
        remaining = max(0, int((1 - fraction) * self._settings.estimated_total_seconds))
        self._progress = GenerationProgress(fraction=fraction, remaining_seconds=remaining)
        for listener in list(self._progress_listeners):
            try:
                listener(self, self._progress)
            except Exception:
                logger.exception("Progress listener failed for generation %s", self.id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _set_state(self, state: GenerationState) -> None:
        if state == self._state:
            return
        logger.info(
            "Generation %s (project %s) %s -> %s",
            self.id,
            self._project_id,
            self._state.value,
            state.value,
        )
        self._state = state

    def _stop_ticker(self) -> None:
        if self._ticker_task is not None and not self._ticker_task.done():
            self._ticker_task.cancel()

    def _cancel_tasks(self) -> None:
        self._stop_ticker()
        current = asyncio.current_task() if _loop_running() else None
        if (
            self._job_task is not None
            and not self._job_task.done()
            and self._job_task is not current
        ):
            self._job_task.cancel()


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True

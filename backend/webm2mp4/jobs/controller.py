"""
Conversion job controller.

Owns the job state machine and is the only component that branches on
failure. Everything the presentation layer sees flows out of here as
Job snapshots and transient notifications.

Responsibilities:
- Bootstrap the engine through the adapter
- Accept or reject candidate files (declared media type only)
- Run one conversion at a time and track its progress
- Own the single live output handle and release it on every exit path
- Recover from conversion failures after a fixed delay

============================================================================
GUARDRAIL
============================================================================
There is no cancel while CONVERTING. The engine has no partial-abort
contract; a conversion ends in SUCCEEDED or FAILED, nothing else.
A second convert request while one is running is rejected, never queued.
============================================================================
"""

import asyncio
import logging
import math
from datetime import datetime
from typing import Callable, List, Optional

from ..execution.adapter import EngineAdapter
from ..execution.errors import EngineLoadError, TranscodeError
from ..execution.formats import SOURCE_MEDIA_TYPE, TARGET_MEDIA_TYPE, suggested_output_name
from ..notifications.center import NotificationCenter
from ..notifications.models import Notification
from ..outputs.handles import OutputHandleRegistry
from .errors import InvalidStateTransitionError, JobError, ValidationError
from .models import Job, JobStatus, SourceFile
from .state import is_accepting, validate_transition

logger = logging.getLogger(__name__)

JobListener = Callable[[Job], None]

DEFAULT_RECOVERY_DELAY_SECONDS = 3.0


class ConversionController:
    """
    Finite-state machine for a single WebM → MP4 conversion.

    The adapter is injected and exclusively owned; so are the output
    handle registry and the notification center.
    """

    def __init__(
        self,
        adapter: EngineAdapter,
        handles: Optional[OutputHandleRegistry] = None,
        notifications: Optional[NotificationCenter] = None,
        recovery_delay_seconds: float = DEFAULT_RECOVERY_DELAY_SECONDS,
    ):
        """
        Initialize controller.

        Args:
            adapter: Engine adapter (not yet loaded)
            handles: Registry that stores converted outputs
            notifications: Sink for transient user-facing messages
            recovery_delay_seconds: Time spent in FAILED before returning to IDLE
        """
        self._adapter = adapter
        self._handles = handles or OutputHandleRegistry()
        self._notifications = notifications or NotificationCenter()
        self.recovery_delay_seconds = recovery_delay_seconds

        self._job = Job()
        self._listeners: List[JobListener] = []
        self._attempt = 0
        self._conversion_task: Optional["asyncio.Task[Job]"] = None
        self._recovery_task: Optional["asyncio.Task[None]"] = None
        self._closed = False

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def job(self) -> Job:
        """Snapshot of the current job."""
        return self._job.model_copy()

    @property
    def status(self) -> JobStatus:
        return self._job.status

    @property
    def adapter(self) -> EngineAdapter:
        return self._adapter

    @property
    def handles(self) -> OutputHandleRegistry:
        return self._handles

    @property
    def notifications(self) -> NotificationCenter:
        return self._notifications

    @property
    def is_converting(self) -> bool:
        return self._conversion_task is not None and not self._conversion_task.done()

    def subscribe(self, listener: JobListener) -> Callable[[], None]:
        """
        Register a state-change listener.

        The listener receives a Job snapshot after every transition and
        every progress change. It must not block.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Engine bootstrap
    # ------------------------------------------------------------------

    async def start(self) -> Job:
        """
        Load the engine and leave BOOTSTRAPPING.

        BOOTSTRAPPING → IDLE on success.
        BOOTSTRAPPING → FAILED on EngineLoadError (terminal for the session).

        Safe to call more than once; later calls observe the same outcome.
        """
        self._require_open()

        try:
            await self._adapter.load()
        except EngineLoadError as e:
            if self._job.status == JobStatus.BOOTSTRAPPING:
                logger.error(f"[Job] Engine failed to load: {e}")
                self._transition(JobStatus.FAILED, failure_reason=e.reason, engine_failed=True)
                self._notifications.publish(Notification.engine_load_failed(str(e)))
            return self.job

        if self._job.status == JobStatus.BOOTSTRAPPING:
            self._transition(JobStatus.IDLE)
        return self.job

    # ------------------------------------------------------------------
    # File selection
    # ------------------------------------------------------------------

    def select_file(self, source: SourceFile) -> bool:
        """
        Offer a candidate file.

        Accepted files start a new job in SELECTED. Rejected files clear
        any previous selection, leave the controller IDLE and publish a
        validation notification. The engine is never called here.

        Returns:
            True if the file was accepted

        Raises:
            InvalidStateTransitionError: While bootstrapping, converting,
                or after the engine failed to load
        """
        self._require_open()
        status = self._job.status

        if self._job.engine_failed:
            raise InvalidStateTransitionError(
                status.value, JobStatus.SELECTED.value, "engine failed to load; restart required"
            )
        if not is_accepting(status):
            raise InvalidStateTransitionError(
                status.value, JobStatus.SELECTED.value, "not accepting files right now"
            )

        self._cancel_recovery()

        try:
            self._validate(source)
        except ValidationError as e:
            logger.warning(f"[Job] Rejected file: {e}")
            self._replace_job(JobStatus.IDLE)
            self._notifications.publish(Notification.validation_failed(source.media_type))
            return False

        self._replace_job(JobStatus.SELECTED, source_file=source)
        logger.info(
            f"[Job] Selected {source.name!r} ({source.size_label}) as job {self._job.id}"
        )
        return True

    @staticmethod
    def _validate(source: SourceFile) -> None:
        # Declared type only; zero-byte files pass and fail in the engine
        if source.media_type != SOURCE_MEDIA_TYPE:
            raise ValidationError(source.name, source.media_type, SOURCE_MEDIA_TYPE)

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    def reset(self) -> Job:
        """
        Return to IDLE, releasing the source file and any output handle.

        Legal from IDLE (no-op), SELECTED, SUCCEEDED and conversion FAILED.

        Raises:
            InvalidStateTransitionError: While bootstrapping, converting,
                or after the engine failed to load
        """
        self._require_open()
        status = self._job.status

        if self._job.engine_failed:
            raise InvalidStateTransitionError(
                status.value, JobStatus.IDLE.value, "engine failed to load; restart required"
            )
        if status == JobStatus.BOOTSTRAPPING:
            raise InvalidStateTransitionError(status.value, JobStatus.IDLE.value, "engine is still loading")
        if status == JobStatus.CONVERTING:
            raise InvalidStateTransitionError(
                status.value, JobStatus.IDLE.value, "a conversion cannot be interrupted"
            )
        if status == JobStatus.IDLE:
            return self.job

        self._cancel_recovery()
        self._replace_job(JobStatus.IDLE)
        logger.info("[Job] Reset to idle")
        return self.job

    def cancel(self) -> Job:
        """Abandon a selected file before converting it."""
        if self._job.status != JobStatus.SELECTED:
            raise InvalidStateTransitionError(
                self._job.status.value, JobStatus.IDLE.value, "nothing selected to cancel"
            )
        return self.reset()

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def start_conversion(self) -> "asyncio.Task[Job]":
        """
        Move SELECTED → CONVERTING and schedule the engine call.

        The transition happens before this returns, so a second request
        made while the first is outstanding is rejected immediately.

        Returns:
            Task resolving to the final Job snapshot (SUCCEEDED or FAILED)

        Raises:
            InvalidStateTransitionError: If no file is selected or a
                conversion is already running
        """
        self._require_open()
        status = self._job.status

        if self.is_converting or status == JobStatus.CONVERTING:
            raise InvalidStateTransitionError(
                status.value, JobStatus.CONVERTING.value, "a conversion is already running"
            )
        if status != JobStatus.SELECTED or self._job.source_file is None:
            raise InvalidStateTransitionError(
                status.value, JobStatus.CONVERTING.value, "no file selected"
            )

        source = self._job.source_file
        self._attempt += 1
        attempt = self._attempt

        self._transition(JobStatus.CONVERTING, progress_percent=0, failure_reason=None)
        logger.info(f"[Job] Converting {source.name!r} (job {self._job.id}, attempt {attempt})")

        task = asyncio.get_running_loop().create_task(self._run_conversion(attempt, source))
        self._conversion_task = task
        return task

    async def convert(self) -> Job:
        """
        Start a conversion and wait for it to settle.

        Cancelling the caller does not cancel the conversion; it keeps
        running and settles in SUCCEEDED or FAILED as usual.
        """
        return await asyncio.shield(self.start_conversion())

    async def _run_conversion(self, attempt: int, source: SourceFile) -> Job:
        def on_progress(fraction: float) -> None:
            self._apply_progress(attempt, fraction)

        try:
            output = await self._adapter.transcode(source.data, on_progress)
        except TranscodeError as e:
            if self._is_stale(attempt):
                return self.job
            logger.error(f"[Job] Job {self._job.id} failed: {e}")
            self._transition(JobStatus.FAILED, failure_reason=e.reason)
            self._notifications.publish(Notification.transcode_failed(self._job.id))
            self._schedule_recovery()
            return self.job
        except asyncio.CancelledError:
            if not self._is_stale(attempt):
                logger.warning(f"[Job] Job {self._job.id} was cancelled mid-conversion")
                self._transition(JobStatus.FAILED, failure_reason="conversion was cancelled")
                self._notifications.publish(Notification.transcode_failed(self._job.id))
                self._schedule_recovery()
            raise

        if self._is_stale(attempt):
            return self.job

        self._release_output()
        handle = self._handles.create(
            output,
            media_type=TARGET_MEDIA_TYPE,
            filename=suggested_output_name(source.name),
        )
        self._transition(JobStatus.SUCCEEDED, output_handle=handle, progress_percent=100)
        logger.info(f"[Job] Job {self._job.id} succeeded: {handle.filename} at {handle.url}")
        return self.job

    def _apply_progress(self, attempt: int, fraction: float) -> None:
        if self._is_stale(attempt):
            return
        if fraction is None or math.isnan(fraction):
            return

        percent = int(round(fraction * 100))
        percent = max(0, min(100, percent))

        # Engine regressions are clamped, never propagated
        if percent <= self._job.progress_percent:
            return

        self._job.progress_percent = percent
        self._job.updated_at = datetime.now()
        self._emit()

    def _is_stale(self, attempt: int) -> bool:
        return (
            self._closed
            or attempt != self._attempt
            or self._job.status != JobStatus.CONVERTING
        )

    # ------------------------------------------------------------------
    # Failure recovery
    # ------------------------------------------------------------------

    def _schedule_recovery(self) -> None:
        self._cancel_recovery()
        job_id = self._job.id
        self._recovery_task = asyncio.get_running_loop().create_task(
            self._recover_after_delay(job_id)
        )

    async def _recover_after_delay(self, job_id: str) -> None:
        await asyncio.sleep(self.recovery_delay_seconds)
        if self._closed or self._job.id != job_id or self._job.status != JobStatus.FAILED:
            return
        logger.info(f"[Job] Recovering from failed job {job_id}")
        self._recovery_task = None
        self._replace_job(JobStatus.IDLE)

    def _cancel_recovery(self) -> None:
        if self._recovery_task is not None and not self._recovery_task.done():
            self._recovery_task.cancel()
        self._recovery_task = None

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def teardown(self) -> None:
        """
        Release everything the controller owns.

        Stops timers, abandons an in-flight conversion, revokes every
        output handle and closes the engine. The controller cannot be
        used afterwards.
        """
        if self._closed:
            return
        self._closed = True
        logger.info("[Job] Tearing down controller")

        self._cancel_recovery()

        task = self._conversion_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._conversion_task = None

        self._release_output()
        self._handles.revoke_all()
        self._listeners.clear()
        self._job = Job()

        await self._adapter.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_open(self) -> None:
        if self._closed:
            raise JobError("Controller has been torn down")

    def _transition(self, status: JobStatus, **changes) -> None:
        """Move the current job to a new status."""
        old_status = self._job.status
        validate_transition(old_status, status)

        for key, value in changes.items():
            setattr(self._job, key, value)
        self._job.status = status
        self._job.updated_at = datetime.now()

        if old_status != status:
            logger.info(f"[Job] {old_status.value} -> {status.value} (job {self._job.id})")
        self._emit()

    def _replace_job(self, status: JobStatus, source_file: Optional[SourceFile] = None) -> None:
        """Discard the current job (releasing its output) and start a new one."""
        old_status = self._job.status
        validate_transition(old_status, status)

        self._release_output()
        self._job = Job(status=status, source_file=source_file)

        if old_status != status:
            logger.info(f"[Job] {old_status.value} -> {status.value} (job {self._job.id})")
        self._emit()

    def _release_output(self) -> None:
        handle = self._job.output_handle
        if handle is None:
            return
        self._handles.revoke(handle.token)
        self._job.output_handle = None

    def _emit(self) -> None:
        snapshot = self.job
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.warning(f"[Job] State listener failed: {e}")

"""
GenerationOrchestrator - one submission surface, one job at a time.

Pipeline:
    validate → (upload) → submit → poll → handoff

    submit_text / submit_file run validation synchronously, then await the
    upload and submission round trips, then start the poll loop as a
    background asyncio task and return the Job. The caller renders
    `state` (or subscribes to it) while the task runs.

Observable state:
    idle → submitting → polling → done | error(kind)
    Cancellation returns the surface to idle without a notification.

Guarantees:
    - Overlapping submissions on one orchestrator raise JobInFlightError.
    - Every terminal failure clears the in-flight flag and sends exactly
      one error notice.
    - A successful job is published to the registry exactly once; the
      surface keeps no reference to the result afterwards. A registry
      that raises while publishing is reported as a generic failure.
    - The voice is resolved once at submission and travels with the
      flow; it is not re-read while polling.
    - aclose() (or leaving `async with`) cancels the poll task and waits
      for it, whatever state it was in.

Example:
    async with GenerationOrchestrator(service, registry, notifier) as surface:
        job = await surface.submit_text("Rain on a tin roof", balance=100)
        if job:
            outcome = await surface.wait()
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

from audio_jobs.core.config import OrchestratorConfig
from audio_jobs.core.logging import fail, get_logger, info, set_job_id, warn
from audio_jobs.core.metrics import JobMetrics, metrics as default_metrics
from audio_jobs.jobs.errors import (
    ErrorKind,
    JobError,
    JobInFlightError,
    ValidationError,
    VoiceUnavailableError,
)
from audio_jobs.jobs.handoff import (
    Notifier,
    PlaybackRegistry,
    RequestMeta,
    ResultHandoff,
    VoiceResolver,
    failure_notice,
    throttle_notice,
)
from audio_jobs.jobs.models import (
    AudioFile,
    FileReferenceRequest,
    FileRequest,
    GenerationRequest,
    Job,
    OrchestratorState,
    Phase,
    Succeeded,
    TextRequest,
)
from audio_jobs.jobs.poller import CancelToken, PollOutcome, PollState, StatusPoller
from audio_jobs.jobs.service import GenerationService
from audio_jobs.jobs.submitter import JobSubmitter
from audio_jobs.jobs.upload import UploadPipeline
from audio_jobs.jobs.validators import (
    capture_text,
    validate,
    validate_audio_file,
    validate_balance,
)

_LOG = get_logger("audio-jobs.orchestrator")

StateListener = Callable[[OrchestratorState], None]


@dataclass
class _Flow:
    """State owned by one submission, from validation to terminal state."""
    meta: RequestMeta
    token: CancelToken
    file: Optional[AudioFile] = None
    job: Optional[Job] = None
    task: Optional["asyncio.Task[PollOutcome]"] = None


class GenerationOrchestrator:
    """
    Runs generation jobs for a single surface.

    Args:
        service: Remote generation service.
        registry: Where finished results are published.
        notifier: Where user-facing notices go.
        voices: Voice selection, required for file jobs.
        config: Limits, cadence and result rules (defaults if None).
        label: What this surface does, used in notices
            ("generate sound effects", "convert voice").
        service_tag: Tag stamped on results; text jobs default to the
            configured text service tag.
    """

    def __init__(
        self,
        service: GenerationService,
        registry: PlaybackRegistry,
        notifier: Notifier,
        voices: Optional[VoiceResolver] = None,
        config: Optional[OrchestratorConfig] = None,
        label: str = "generate sound effects",
        service_tag: Optional[str] = None,
        metrics: JobMetrics = default_metrics,
    ):
        self._service = service
        self._notifier = notifier
        self._voices = voices
        self._config = config or OrchestratorConfig()
        self.label = label
        self._service_tag = service_tag
        self._metrics = metrics

        self._uploader = UploadPipeline(service, metrics=metrics)
        self._submitter = JobSubmitter(service, metrics=metrics)
        self._handoff = ResultHandoff(registry, notifier, self._config.results)

        self._state = OrchestratorState()
        self._listeners: List[StateListener] = []
        self._flow: Optional[_Flow] = None
        self._last_outcome: Optional[PollOutcome] = None

    # =========================================================================
    # Observable state
    # =========================================================================

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def in_flight(self) -> bool:
        """True from submission start until the job reaches a terminal state."""
        return self._flow is not None

    @property
    def last_outcome(self) -> Optional[PollOutcome]:
        return self._last_outcome

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call `listener` on every state change. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _set_state(self, phase: Phase, job_id: Optional[str] = None, error: Optional[ErrorKind] = None) -> None:
        self._state = OrchestratorState(phase=phase, job_id=job_id, error=error)
        for listener in list(self._listeners):
            listener(self._state)

    # =========================================================================
    # Submission
    # =========================================================================

    async def submit_text(self, raw_text: Optional[str], balance: int | float) -> Optional[Job]:
        """
        Submit a sound-effect description.

        Input longer than the configured limit is truncated, as the
        prompt box would. Returns the Job once polling has started, or
        None if the attempt failed (the failure has been notified).

        Raises:
            JobInFlightError: A job is already running on this surface.
        """
        self._guard()
        limits = self._config.validation
        try:
            request = validate(TextRequest(capture_text(raw_text, limits.max_text_chars)), balance, limits)
        except ValidationError as e:
            self._reject(e, kind="text")
            return None

        flow = _Flow(
            meta=RequestMeta(kind="text", content=request.content, service_tag=self._service_tag),
            token=CancelToken(),
        )
        return await self._start(flow, request)

    async def submit_file(
        self,
        file: AudioFile,
        balance: int | float,
        profile_key: str = "seedvc",
    ) -> Optional[Job]:
        """
        Upload an audio file and submit a voice-conversion job.

        The voice for `profile_key` is resolved now and kept for the
        whole job. Returns the Job once polling has started, or None if
        the attempt failed.

        Raises:
            JobInFlightError: A job is already running on this surface.
        """
        self._guard()
        limits = self._config.validation
        try:
            validate_audio_file(file, limits)
            voice_id = self._voices.resolve_voice(profile_key) if self._voices else None
            if not voice_id:
                raise VoiceUnavailableError(f"No voice selected for profile {profile_key!r}",
                                            {"profile_key": profile_key})
            validate_balance(balance, limits.min_balance)
        except ValidationError as e:
            self._reject(e, kind="file")
            return None

        flow = _Flow(
            meta=RequestMeta(kind="file", file_name=file.name, voice_id=voice_id, service_tag=self._service_tag),
            token=CancelToken(),
            file=file,
        )
        return await self._start(flow, FileRequest(file=file, voice_id=voice_id))

    def _guard(self) -> None:
        if self._flow is not None:
            job_id = self._flow.job.id if self._flow.job else None
            warn(_LOG, "overlapping_submission_rejected", job=job_id)
            raise JobInFlightError(job_id)

    async def _start(self, flow: _Flow, request: TextRequest | FileRequest) -> Optional[Job]:
        self._flow = flow
        self._set_state(Phase.SUBMITTING)

        try:
            submit_request: GenerationRequest
            if isinstance(request, FileRequest):
                target = await self._uploader.upload(request.file)
                submit_request = FileReferenceRequest(storage_key=target.storage_key, voice_id=request.voice_id)
            else:
                submit_request = request
            submission = await self._submitter.submit(submit_request)
        except JobError as e:
            self._release(flow)
            self._reject(e, kind=flow.meta.kind)
            return None
        except BaseException:
            self._release(flow)
            self._set_state(Phase.IDLE)
            raise

        flow.job = submission.job
        if submission.throttled:
            self._notifier.notify(throttle_notice())

        if flow.token.cancelled:
            info(_LOG, "cancelled_before_polling", job=flow.job.id)
            self._metrics.record_outcome(flow.meta.kind, PollState.CANCELLED.value)
            self._release(flow)
            self._set_state(Phase.IDLE)
            return None

        poller = StatusPoller(
            self._service,
            interval_s=self._config.polling.interval_s,
            max_duration_s=self._config.polling.max_duration_s,
            metrics=self._metrics,
        )
        self._metrics.inc_in_flight()
        self._set_state(Phase.POLLING, job_id=flow.job.id)
        flow.task = asyncio.create_task(self._poll(flow, poller), name=f"poll-{flow.job.id}")
        return flow.job

    # =========================================================================
    # Polling and terminal handling
    # =========================================================================

    async def _poll(self, flow: _Flow, poller: StatusPoller) -> PollOutcome:
        assert flow.job is not None
        set_job_id(flow.job.id)
        try:
            outcome = await poller.run(flow.job, flow.token)
        except asyncio.CancelledError:
            self._complete(flow, PollOutcome(PollState.CANCELLED, flow.job.id, queries=poller.queries))
            raise
        self._complete(flow, outcome)
        return outcome

    def _complete(self, flow: _Flow, outcome: PollOutcome) -> None:
        if flow is not self._flow or flow.job is None:
            return
        job = flow.job
        duration = (datetime.now(timezone.utc) - job.submitted_at).total_seconds()
        self._last_outcome = outcome
        self._metrics.dec_in_flight()

        try:
            if outcome.state is PollState.SUCCEEDED and isinstance(outcome.status, Succeeded):
                self._release(flow)
                try:
                    self._handoff.on_success(job, outcome.status, flow.meta)
                except Exception as e:
                    # Registry failure: the job is lost to the user, report it once.
                    fail(_LOG, "publish_failed", job=job.id, error=type(e).__name__, detail=str(e))
                    self._metrics.record_outcome(flow.meta.kind, PollState.FAILED.value, duration)
                    self._fail(job, ErrorKind.GENERIC_FAILURE)
                    return
                self._metrics.record_outcome(flow.meta.kind, outcome.state.value, duration)
                self._set_state(Phase.DONE, job_id=job.id)
            elif outcome.state is PollState.FAILED:
                kind = outcome.error.kind if outcome.error else ErrorKind.GENERIC_FAILURE
                fail(_LOG, "job_failed", job=job.id, kind=kind.value, queries=outcome.queries)
                self._metrics.record_outcome(flow.meta.kind, outcome.state.value, duration)
                self._release(flow)
                self._fail(job, kind)
            else:
                info(_LOG, "job_cancelled", job=job.id, queries=outcome.queries)
                self._metrics.record_outcome(flow.meta.kind, outcome.state.value, duration)
                self._release(flow)
                self._set_state(Phase.IDLE)
        finally:
            self._release(flow)

    def _fail(self, job: Job, kind: ErrorKind) -> None:
        self._handoff.on_failure(job.id, failure_notice(ErrorKind.GENERIC_FAILURE, self.label))
        self._set_state(Phase.ERROR, job_id=job.id, error=kind)

    def _reject(self, error: JobError, kind: str) -> None:
        """Report a failure that happened before polling started."""
        warn(_LOG, "attempt_failed", kind=kind, error=error.kind.value, detail=error.message)
        self._metrics.record_outcome(kind, PollState.FAILED.value)
        self._notifier.notify(failure_notice(error.kind, self.label, self._config.validation.min_balance))
        self._set_state(Phase.ERROR, error=error.kind)

    def _release(self, flow: _Flow) -> None:
        # Drop the payload and job so nothing outlives the handoff.
        flow.file = None
        flow.job = None
        if self._flow is flow:
            self._flow = None

    # =========================================================================
    # Waiting and teardown
    # =========================================================================

    async def wait(self) -> Optional[PollOutcome]:
        """Wait for the current job to reach a terminal state."""
        flow = self._flow
        if flow is None or flow.task is None:
            return self._last_outcome
        try:
            return await flow.task
        except asyncio.CancelledError:
            if flow.task.cancelled():
                return self._last_outcome
            raise

    def cancel(self) -> None:
        """
        Request cancellation of the current job.

        No further status queries are issued; a query already in flight
        has its result discarded. Returns immediately.
        """
        if self._flow is not None:
            self._flow.token.cancel()

    async def aclose(self) -> None:
        """Cancel the current job and wait for its poll task to stop."""
        flow = self._flow
        if flow is None:
            return
        flow.token.cancel()
        task = flow.task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def __aenter__(self) -> "GenerationOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

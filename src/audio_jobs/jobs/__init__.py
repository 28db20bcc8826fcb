"""
audio-jobs job layer.

This package turns a user request into a finished, published audio
result. It sits between the caller (CLI, UI) and the remote generation
service.

Components:
    - validators.py: Precondition checks before any network call
    - upload.py: Payload transfer to a single-use storage target
    - submitter.py: Job creation
    - poller.py: Status polling with cooperative cancellation
    - handoff.py: Result publication and user notices
    - orchestrator.py: GenerationOrchestrator, which runs the whole flow
    - service.py: Remote service interface and httpx client
"""
from .errors import (
    EmptyInputError,
    ErrorKind,
    InsufficientBalanceError,
    JobError,
    JobInFlightError,
    PayloadTooLargeError,
    PollingFailedError,
    SubmissionFailedError,
    UnsupportedMediaTypeError,
    UploadFailedError,
    ValidationError,
    VoiceUnavailableError,
)
from .handoff import (
    InMemoryPlaybackRegistry,
    LoggingNotifier,
    Notice,
    Notifier,
    PlaybackRegistry,
    RecordingNotifier,
    StaticVoiceResolver,
    VoiceResolver,
)
from .models import AudioFile, Job, OrchestratorState, Phase, PlayableResult, TextRequest
from .orchestrator import GenerationOrchestrator
from .poller import CancelToken, PollOutcome, PollState, StatusPoller
from .service import GenerationService, HttpGenerationService

__all__ = [
    "GenerationOrchestrator",
    "GenerationService",
    "HttpGenerationService",
    "StatusPoller",
    "CancelToken",
    "PollOutcome",
    "PollState",
    "AudioFile",
    "TextRequest",
    "Job",
    "PlayableResult",
    "OrchestratorState",
    "Phase",
    "Notice",
    "Notifier",
    "LoggingNotifier",
    "RecordingNotifier",
    "PlaybackRegistry",
    "InMemoryPlaybackRegistry",
    "VoiceResolver",
    "StaticVoiceResolver",
    "ErrorKind",
    "JobError",
    "ValidationError",
    "InsufficientBalanceError",
    "EmptyInputError",
    "UnsupportedMediaTypeError",
    "PayloadTooLargeError",
    "VoiceUnavailableError",
    "UploadFailedError",
    "SubmissionFailedError",
    "PollingFailedError",
    "JobInFlightError",
]

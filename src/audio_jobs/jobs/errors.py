"""
Error taxonomy for generation jobs.

Every failure the orchestrator can surface is a JobError carrying an
ErrorKind. The kind, not the message text, decides what the user is told:
the HTTP client maps transport responses to kinds at the boundary, and
nothing downstream inspects message strings.

    JobError
    ├── ValidationError
    │   ├── InsufficientBalanceError
    │   ├── EmptyInputError
    │   ├── UnsupportedMediaTypeError
    │   ├── PayloadTooLargeError
    │   └── VoiceUnavailableError
    ├── UploadFailedError
    ├── SubmissionFailedError
    └── PollingFailedError

JobInFlightError is separate: it signals a caller bug (overlapping
submissions on one surface) rather than a terminal job event.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Machine-readable failure kinds."""
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    EMPTY_INPUT = "EMPTY_INPUT"
    UNSUPPORTED_MEDIA_TYPE = "UNSUPPORTED_MEDIA_TYPE"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    VOICE_UNAVAILABLE = "VOICE_UNAVAILABLE"
    UPLOAD_FAILED = "UPLOAD_FAILED"
    SUBMISSION_FAILED = "SUBMISSION_FAILED"
    POLLING_FAILED = "POLLING_FAILED"
    GENERIC_FAILURE = "GENERIC_FAILURE"


class JobError(Exception):
    """
    Base exception for job failures.

    Attributes:
        message: Human-readable description (for logs, not for matching).
        kind: ErrorKind deciding how the failure is reported.
        details: Optional context (status codes, limits, ...).
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.GENERIC_FAILURE,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.kind = kind
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the error body shape used on the wire."""
        result: Dict[str, Any] = {
            "ok": False,
            "error": self.kind.value,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(JobError):
    """
    A precondition on balance or input failed.

    Raised locally before anything is sent, except InsufficientBalanceError,
    which the service client also raises when the service reports a 402
    after submission.
    """


class InsufficientBalanceError(ValidationError):
    """Balance below the per-job threshold, locally or as reported remotely."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorKind.INSUFFICIENT_BALANCE, details)


class EmptyInputError(ValidationError):
    def __init__(self, message: str = "Text is required", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorKind.EMPTY_INPUT, details)


class UnsupportedMediaTypeError(ValidationError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorKind.UNSUPPORTED_MEDIA_TYPE, details)


class PayloadTooLargeError(ValidationError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorKind.PAYLOAD_TOO_LARGE, details)


class VoiceUnavailableError(ValidationError):
    """No voice could be resolved for the requested profile."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorKind.VOICE_UNAVAILABLE, details)


class UploadFailedError(JobError):
    """The payload could not be written to its storage target. Not retried."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorKind.UPLOAD_FAILED, details)


class SubmissionFailedError(JobError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorKind.SUBMISSION_FAILED, details)


class PollingFailedError(JobError):
    """A status query failed (transport, parse or deadline). Terminal for the job."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorKind.POLLING_FAILED, details)


class JobInFlightError(RuntimeError):
    """Raised when a surface tries to submit while its previous job is still running."""

    def __init__(self, job_id: Optional[str] = None):
        self.job_id = job_id
        super().__init__(f"A generation job is already in flight ({job_id or 'submitting'})")

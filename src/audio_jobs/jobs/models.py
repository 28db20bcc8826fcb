"""
Data model for generation jobs.

Requests:
    TextRequest          - a sound-effect description, submitted as-is
    FileRequest          - an audio file plus the voice to convert it to,
                           before the payload has been uploaded
    FileReferenceRequest - the same job after upload: a storage key + voice

Job lifecycle:
    Job           - identifier handed back by the service on submission
    JobStatus     - Pending | Succeeded(result_url) | Failed
    PlayableResult- what the playback registry receives on success
"""
from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from audio_jobs.jobs.errors import ErrorKind

# Browsers report MP3 uploads as audio/mp3 and the service keys on that,
# so normalise the stdlib guesses to the same spelling.
_CONTENT_TYPE_ALIASES = {
    "audio/mpeg": "audio/mp3",
    "audio/x-wav": "audio/wav",
    "audio/wave": "audio/wav",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Requests
# =============================================================================

@dataclass(frozen=True)
class TextRequest:
    """Text-to-sound request. `content` is the captured prompt."""
    content: str
    kind: str = field(default="text", init=False)


@dataclass(frozen=True)
class AudioFile:
    """
    An audio payload selected by the user.

    Attributes:
        name: Original file name, used as the result title.
        content_type: Declared MIME type.
        data: Raw bytes.
    """
    name: str
    content_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: Union[str, Path], content_type: Optional[str] = None) -> "AudioFile":
        """Read a file from disk, guessing the content type from its extension."""
        p = Path(path)
        if content_type is None:
            guessed, _ = mimetypes.guess_type(p.name)
            content_type = guessed or "application/octet-stream"
        content_type = _CONTENT_TYPE_ALIASES.get(content_type, content_type)
        return cls(name=p.name, content_type=content_type, data=p.read_bytes())


@dataclass(frozen=True)
class FileRequest:
    """Voice-conversion request before upload."""
    file: AudioFile
    voice_id: str
    kind: str = field(default="file", init=False)


@dataclass(frozen=True)
class FileReferenceRequest:
    """Voice-conversion request after upload."""
    storage_key: str
    voice_id: str
    kind: str = field(default="file-reference", init=False)


GenerationRequest = Union[TextRequest, FileReferenceRequest]


# =============================================================================
# Service records
# =============================================================================

@dataclass(frozen=True)
class UploadTarget:
    """Single-use pre-signed write location."""
    write_url: str
    storage_key: str


@dataclass(frozen=True)
class SubmitReceipt:
    """What the service answers to a submission."""
    job_id: str
    throttled: bool = False


@dataclass(frozen=True)
class Job:
    id: str
    submitted_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class Submission:
    """Job Submitter output: the new job and the advisory throttle flag."""
    job: Job
    throttled: bool = False


@dataclass(frozen=True)
class Pending:
    terminal = False


@dataclass(frozen=True)
class Succeeded:
    result_url: str
    terminal = True


@dataclass(frozen=True)
class Failed:
    reason: Optional[str] = None
    terminal = True


JobStatus = Union[Pending, Succeeded, Failed]


@dataclass(frozen=True)
class PlayableResult:
    """A finished artifact, ready for the playback registry."""
    id: str
    title: str
    audio_url: str
    source_voice: str
    duration_label: str
    created_at: datetime
    service_tag: str


# =============================================================================
# Orchestrator state
# =============================================================================

class Phase(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    POLLING = "polling"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class OrchestratorState:
    """
    Observable state of one submission surface.

    `error` is set only when phase is ERROR; `job_id` only while a job
    exists (polling) or just finished (done/error after submission).
    """
    phase: Phase = Phase.IDLE
    job_id: Optional[str] = None
    error: Optional[ErrorKind] = None

    @property
    def busy(self) -> bool:
        return self.phase in (Phase.SUBMITTING, Phase.POLLING)

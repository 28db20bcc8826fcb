"""
In-memory generation backend for local runs and integration tests.

DevBackend mimics the remote generation service closely enough to drive
the orchestrator end to end:

    - Credits: starts at `credits`, each accepted job costs `job_cost`.
    - Throttle: a submission is flagged when more than `throttle_limit`
      submissions arrived within the last `throttle_window_s` seconds.
    - Jobs: a job reports pending for `pending_polls` status queries,
      then succeeds. Text prompts containing `fail_marker` fail instead.
    - Uploads: single-use storage keys, payloads capped at
      `max_upload_bytes`.

All state lives behind one lock; route handlers may run in FastAPI's
threadpool.
"""
from __future__ import annotations

import threading
import time
import uuid
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, Optional

from audio_jobs.core.config import Defaults, Settings
from audio_jobs.core.logging import get_logger, info, verbose

_LOG = get_logger("audio-jobs.devserver")


class BackendError(Exception):
    """A request the backend refuses. Carries the HTTP status and wire error code."""

    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message


@dataclass
class DevJob:
    id: str
    kind: str
    prompt: Optional[str] = None
    storage_key: Optional[str] = None
    voice_id: Optional[str] = None
    polls: int = 0
    will_fail: bool = False


@dataclass
class DevUpload:
    storage_key: str
    content_type: str
    data: Optional[bytes] = None


@dataclass
class DevBackendConfig:
    credits: int = 100
    job_cost: int = Defaults.VALIDATION_MIN_BALANCE
    pending_polls: int = 2
    throttle_limit: int = 3
    throttle_window_s: float = 60.0
    max_upload_bytes: int = Defaults.VALIDATION_MAX_UPLOAD_BYTES
    allowed_content_types: tuple = Defaults.VALIDATION_ALLOWED_CONTENT_TYPES
    fail_marker: str = "[fail]"

    @classmethod
    def from_settings(cls, settings: Settings) -> "DevBackendConfig":
        section: Dict[str, Any] = settings.raw.get("devserver", {}) or {}
        validation: Dict[str, Any] = settings.raw.get("validation", {}) or {}
        defaults = cls()
        # devserver section first, then the client-side allow-list
        allowed = section.get("allowed_content_types",
                              validation.get("allowed_content_types", defaults.allowed_content_types))
        if isinstance(allowed, str):
            allowed = [allowed]
        return cls(
            credits=int(section.get("credits", defaults.credits)),
            job_cost=int(section.get("job_cost", defaults.job_cost)),
            pending_polls=int(section.get("pending_polls", defaults.pending_polls)),
            throttle_limit=int(section.get("throttle_limit", defaults.throttle_limit)),
            throttle_window_s=float(section.get("throttle_window_s", defaults.throttle_window_s)),
            max_upload_bytes=int(section.get("max_upload_bytes", defaults.max_upload_bytes)),
            allowed_content_types=tuple(str(t).lower() for t in allowed),
            fail_marker=str(section.get("fail_marker", defaults.fail_marker)),
        )


class DevBackend:

    def __init__(
        self,
        config: Optional[DevBackendConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or DevBackendConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._credits = self.config.credits
        self._jobs: Dict[str, DevJob] = {}
        self._uploads: Dict[str, DevUpload] = {}
        self._recent: Deque[float] = deque()

    @property
    def credits(self) -> int:
        with self._lock:
            return self._credits

    def get_job(self, job_id: str) -> Optional[DevJob]:
        with self._lock:
            return self._jobs.get(job_id)

    # =========================================================================
    # Submission
    # =========================================================================

    def submit_text(self, prompt: str) -> tuple[DevJob, bool]:
        """Create a sound-effect job. Returns (job, throttled)."""
        with self._lock:
            self._charge()
            job = DevJob(
                id=self._new_id(),
                kind="text",
                prompt=prompt,
                will_fail=bool(self.config.fail_marker) and self.config.fail_marker in prompt,
            )
            return self._accept(job)

    def submit_file(self, storage_key: str, voice_id: str) -> tuple[DevJob, bool]:
        """Create a voice-conversion job from a written upload."""
        with self._lock:
            upload = self._uploads.get(storage_key)
            if upload is None or upload.data is None:
                raise BackendError(400, "UNKNOWN_STORAGE_KEY", f"No uploaded payload for {storage_key}")
            self._charge()
            job = DevJob(id=self._new_id(), kind="file", storage_key=storage_key, voice_id=voice_id)
            return self._accept(job)

    def _charge(self) -> None:
        if self._credits < self.config.job_cost:
            raise BackendError(402, "INSUFFICIENT_CREDITS", "Not enough credits")
        self._credits -= self.config.job_cost

    def _accept(self, job: DevJob) -> tuple[DevJob, bool]:
        now = self._clock()
        while self._recent and now - self._recent[0] > self.config.throttle_window_s:
            self._recent.popleft()
        self._recent.append(now)
        throttled = len(self._recent) > self.config.throttle_limit
        self._jobs[job.id] = job
        info(_LOG, "job_created", job=job.id, kind=job.kind, throttled=throttled, credits=self._credits)
        return job, throttled

    @staticmethod
    def _new_id() -> str:
        return uuid.uuid4().hex[:12]

    # =========================================================================
    # Uploads
    # =========================================================================

    def create_upload(self, content_type: str) -> DevUpload:
        if content_type not in self.config.allowed_content_types:
            raise BackendError(415, "UNSUPPORTED_MEDIA_TYPE", f"Unsupported content type {content_type}")
        upload = DevUpload(storage_key=f"up-{uuid.uuid4().hex}", content_type=content_type)
        with self._lock:
            self._uploads[upload.storage_key] = upload
        return upload

    def write_upload(self, storage_key: str, data: bytes) -> int:
        """Store the payload for `storage_key`. Returns the byte count."""
        if len(data) > self.config.max_upload_bytes:
            raise BackendError(413, "PAYLOAD_TOO_LARGE", "File is too large")
        with self._lock:
            upload = self._uploads.get(storage_key)
            if upload is None:
                raise BackendError(404, "UNKNOWN_STORAGE_KEY", f"No upload target {storage_key}")
            if upload.data is not None:
                raise BackendError(409, "ALREADY_WRITTEN", f"Upload target {storage_key} already used")
            upload.data = bytes(data)
        verbose(_LOG, "upload_written", storage_key=storage_key, bytes=len(data))
        return len(data)

    def read_audio(self, job_id: str) -> bytes:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise BackendError(404, "UNKNOWN_JOB", f"No job {job_id}")
            if job.storage_key:
                return self._uploads[job.storage_key].data or b""
            return b""

    # =========================================================================
    # Status
    # =========================================================================

    def poll(self, job_id: str) -> DevJob:
        """Advance and return the job. Pending for `pending_polls` queries."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise BackendError(404, "UNKNOWN_JOB", f"No job {job_id}")
            job.polls += 1
            return job

    def is_done(self, job: DevJob) -> bool:
        return job.polls > self.config.pending_polls

    def health(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "status": "ok",
                "credits": self._credits,
                "jobs": len(self._jobs),
                "uploads": len(self._uploads),
            }

"""
Result handoff and the collaborators it talks to.

On success a PlayableResult is built (pure) and published to the
playback registry, at most once per job id. On failure exactly one
notification per job id is sent. Both guards hold even if the same
terminal response is delivered twice.

Collaborators (abstract, with small concrete implementations):
    PlaybackRegistry - shared store of finished audio (publish only)
    Notifier         - user-facing notices (errors and throttle info)
    VoiceResolver    - read-only profile -> voice id lookup
"""
from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from collections import OrderedDict
from typing import Dict, List, Mapping, Optional

from audio_jobs.core.config import ResultsConfig
from audio_jobs.core.logging import error, get_logger, info, success, warn
from audio_jobs.jobs.errors import ErrorKind
from audio_jobs.jobs.models import Job, PlayableResult, Succeeded

_LOG = get_logger("audio-jobs.handoff")

# Job ids remembered per channel for duplicate suppression.
HANDOFF_HISTORY = 256

THROTTLE_MESSAGE = "Exceeding 3 requests per minute will queue your requests."


# =============================================================================
# Notices
# =============================================================================

@dataclass(frozen=True)
class Notice:
    """
    A user-facing notification.

    Attributes:
        kind: ErrorKind for failures, None for the throttle notice.
        message: Text to show.
        level: "error" or "info".
    """
    kind: Optional[ErrorKind]
    message: str
    level: str = "error"


def failure_notice(kind: ErrorKind, label: str, min_balance: int = 15) -> Notice:
    """
    Build the notice for a failure kind.

    Args:
        kind: What went wrong.
        label: What the surface does, e.g. "generate sound effects".
        min_balance: Credits threshold quoted in the balance message.
    """
    if kind is ErrorKind.INSUFFICIENT_BALANCE:
        message = f"Not enough credits! You need at least {min_balance} credits to {label}."
    elif kind is ErrorKind.EMPTY_INPUT:
        message = "Please enter some text first."
    elif kind is ErrorKind.UNSUPPORTED_MEDIA_TYPE:
        message = "Please select an MP3 or WAV file only"
    elif kind is ErrorKind.PAYLOAD_TOO_LARGE:
        message = "File is too large. Max size is 50MB"
    elif kind is ErrorKind.VOICE_UNAVAILABLE:
        message = "Please select a voice first."
    elif kind is ErrorKind.UPLOAD_FAILED:
        message = "Failed to upload file to storage. Please try again."
    else:
        message = f"Failed to {label}. Please try again."
    return Notice(kind=kind, message=message, level="error")


def throttle_notice() -> Notice:
    return Notice(kind=None, message=THROTTLE_MESSAGE, level="info")


class Notifier(ABC):
    @abstractmethod
    def notify(self, notice: Notice) -> None:
        """Show `notice` to the user."""


class LoggingNotifier(Notifier):
    """Writes notices to the log; used by the CLI."""

    def notify(self, notice: Notice) -> None:
        if notice.level == "error":
            error(_LOG, "notice", kind=notice.kind.value if notice.kind else None, text=notice.message)
        else:
            info(_LOG, "notice", text=notice.message)


class RecordingNotifier(Notifier):
    """Keeps every notice in memory."""

    def __init__(self):
        self.notices: List[Notice] = []

    def notify(self, notice: Notice) -> None:
        self.notices.append(notice)

    @property
    def errors(self) -> List[Notice]:
        return [n for n in self.notices if n.level == "error"]


# =============================================================================
# Playback registry
# =============================================================================

class PlaybackRegistry(ABC):
    @abstractmethod
    def publish(self, result: PlayableResult) -> None:
        """Take ownership of a finished result."""


class InMemoryPlaybackRegistry(PlaybackRegistry):
    """Append-only list of results, safe to publish to from any thread."""

    def __init__(self):
        self._lock = threading.Lock()
        self._items: List[PlayableResult] = []

    def publish(self, result: PlayableResult) -> None:
        with self._lock:
            self._items.append(result)

    @property
    def items(self) -> List[PlayableResult]:
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


# =============================================================================
# Voice selection
# =============================================================================

class VoiceResolver(ABC):
    @abstractmethod
    def resolve_voice(self, profile_key: str) -> Optional[str]:
        """Currently selected voice id for `profile_key`, or None."""


class StaticVoiceResolver(VoiceResolver):
    """Voice ids from a fixed mapping, typically the `voices` config section."""

    def __init__(self, voices: Optional[Mapping[str, str]] = None):
        self._voices: Dict[str, str] = dict(voices or {})

    def resolve_voice(self, profile_key: str) -> Optional[str]:
        return self._voices.get(profile_key) or None


# =============================================================================
# Handoff
# =============================================================================

@dataclass(frozen=True)
class RequestMeta:
    """
    What the handoff needs to know about the originating request.

    Captured at submission time so later changes (e.g. the user picking
    another voice mid-poll) do not leak into the result.
    """
    kind: str                       # "text" or "file"
    content: Optional[str] = None   # text jobs
    file_name: Optional[str] = None # file jobs
    voice_id: str = ""
    service_tag: Optional[str] = None


def make_title(meta: RequestMeta, config: ResultsConfig) -> str:
    if meta.kind == "text":
        content = meta.content or ""
        limit = config.title_max_chars
        return content[:limit] + ("..." if len(content) > limit else "")
    return meta.file_name or config.file_title_fallback


def build_result(
    job: Job,
    status: Succeeded,
    meta: RequestMeta,
    config: Optional[ResultsConfig] = None,
    created_at: Optional[datetime] = None,
) -> PlayableResult:
    """Construct the PlayableResult for a succeeded job. Pure."""
    config = config or ResultsConfig()
    if meta.kind == "text":
        service_tag = meta.service_tag or config.text_service_tag
    else:
        service_tag = meta.service_tag or ""
    return PlayableResult(
        id=job.id,
        title=make_title(meta, config),
        audio_url=status.result_url,
        source_voice=meta.voice_id if meta.kind != "text" else "",
        duration_label=config.duration_label,
        created_at=created_at or datetime.now(timezone.utc),
        service_tag=service_tag,
    )


class ResultHandoff:
    """
    Delivers terminal outcomes: results to the registry, failures to
    the notifier. Each job id is delivered at most once per channel.

    Only the last `history` ids per channel are remembered, oldest
    evicted first, so a long-lived surface does not grow without bound.
    """

    def __init__(
        self,
        registry: PlaybackRegistry,
        notifier: Notifier,
        config: Optional[ResultsConfig] = None,
        history: int = HANDOFF_HISTORY,
    ):
        self._registry = registry
        self._notifier = notifier
        self._config = config or ResultsConfig()
        self._lock = threading.Lock()
        self._history = max(1, int(history))
        self._published: "OrderedDict[str, None]" = OrderedDict()
        self._failed: "OrderedDict[str, None]" = OrderedDict()

    def on_success(self, job: Job, status: Succeeded, meta: RequestMeta) -> Optional[PlayableResult]:
        """Build and publish. Returns the result, or None if already published."""
        result = build_result(job, status, meta, self._config)
        return result if self.publish(result) else None

    def publish(self, result: PlayableResult) -> bool:
        with self._lock:
            if result.id in self._published:
                warn(_LOG, "duplicate_publish_ignored", job=result.id)
                return False
            self._remember(self._published, result.id)
        self._registry.publish(result)
        success(_LOG, "published", job=result.id, title=result.title)
        return True

    def on_failure(self, job_id: str, notice: Notice) -> bool:
        """Send the failure notice for `job_id` unless one was already sent."""
        with self._lock:
            if job_id in self._failed:
                warn(_LOG, "duplicate_failure_ignored", job=job_id)
                return False
            self._remember(self._failed, job_id)
        self._notifier.notify(notice)
        return True

    def _remember(self, seen: "OrderedDict[str, None]", job_id: str) -> None:
        # Caller holds the lock.
        seen[job_id] = None
        while len(seen) > self._history:
            seen.popitem(last=False)

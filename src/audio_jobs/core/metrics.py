"""
Prometheus Metrics for the job orchestrator.

Metrics Exposed:
    audio_jobs_submissions_total        - Submissions accepted by the service, by kind
    audio_jobs_outcomes_total           - Terminal outcomes by kind and state
    audio_jobs_status_queries_total     - Status queries issued
    audio_jobs_uploads_total            - Payload uploads by status
    audio_jobs_upload_bytes_total       - Payload bytes written to storage
    audio_jobs_job_duration_seconds     - Submission-to-terminal latency
    audio_jobs_in_flight                - Jobs currently being polled
    audio_jobs_throttle_notices_total   - Submissions flagged as throttled

Usage:
    from audio_jobs.core.metrics import metrics

    metrics.record_submission("text", throttled=False)
    metrics.record_outcome("text", "succeeded", duration=3.5)

    content, content_type = metrics.get_metrics_response()

Each JobMetrics instance owns a private CollectorRegistry, so tests can
build a fresh one without clashing with the module-level collector.
"""
from __future__ import annotations

from typing import Dict, Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class JobMetrics:
    """
    Job orchestration metrics backed by prometheus_client.

    Attributes:
        enabled: When False every record_* call is a no-op.
    """

    def __init__(self, enabled: bool = True):
        self._enabled = enabled
        self._registry = CollectorRegistry()
        self._setup_metrics()

    def _setup_metrics(self) -> None:
        self._submissions_total = Counter(
            "audio_jobs_submissions_total",
            "Generation jobs accepted by the remote service",
            ["kind"],
            registry=self._registry,
        )
        self._throttle_notices = Counter(
            "audio_jobs_throttle_notices_total",
            "Submissions returned with the throttle flag set",
            registry=self._registry,
        )
        self._outcomes_total = Counter(
            "audio_jobs_outcomes_total",
            "Terminal job outcomes",
            ["kind", "state"],
            registry=self._registry,
        )
        self._status_queries = Counter(
            "audio_jobs_status_queries_total",
            "Job status queries issued by pollers",
            registry=self._registry,
        )
        self._uploads_total = Counter(
            "audio_jobs_uploads_total",
            "Payload uploads to pre-signed storage targets",
            ["status"],
            registry=self._registry,
        )
        self._upload_bytes = Counter(
            "audio_jobs_upload_bytes_total",
            "Bytes written to storage targets",
            registry=self._registry,
        )
        self._job_duration = Histogram(
            "audio_jobs_job_duration_seconds",
            "Time from submission to terminal state",
            ["kind"],
            buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0),
            registry=self._registry,
        )
        self._in_flight = Gauge(
            "audio_jobs_in_flight",
            "Jobs currently being polled",
            registry=self._registry,
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    def record_submission(self, kind: str, throttled: bool = False) -> None:
        if not self._enabled:
            return
        self._submissions_total.labels(kind=kind).inc()
        if throttled:
            self._throttle_notices.inc()

    def record_outcome(self, kind: str, state: str, duration: Optional[float] = None) -> None:
        """
        Record a terminal outcome.

        Args:
            kind: "text" or "file"
            state: "succeeded", "failed" or "cancelled"
            duration: Seconds since submission, if the job got that far
        """
        if not self._enabled:
            return
        self._outcomes_total.labels(kind=kind, state=state).inc()
        if duration is not None and duration >= 0:
            self._job_duration.labels(kind=kind).observe(duration)

    def inc_status_queries(self) -> None:
        if not self._enabled:
            return
        self._status_queries.inc()

    def record_upload(self, status: str, size: int = 0) -> None:
        """Record an upload attempt ("ok" or "failed")."""
        if not self._enabled:
            return
        self._uploads_total.labels(status=status).inc()
        if status == "ok" and size > 0:
            self._upload_bytes.inc(size)

    def inc_in_flight(self) -> None:
        if self._enabled:
            self._in_flight.inc()

    def dec_in_flight(self) -> None:
        if self._enabled:
            self._in_flight.dec()

    def sample(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Current value of a sample, 0.0 if it has not been recorded yet."""
        value = self._registry.get_sample_value(name, labels or {})
        return value if value is not None else 0.0

    def get_metrics_response(self) -> tuple[bytes, str]:
        """
        Get metrics in Prometheus exposition format.

        Returns:
            Tuple of (content_bytes, content_type)
        """
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


# Global collector; import this to record metrics.
metrics = JobMetrics()

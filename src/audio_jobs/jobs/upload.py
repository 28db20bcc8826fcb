"""
Upload pipeline for file-based jobs.

    1. Ask the service for a fresh UploadTarget keyed by content type
    2. PUT the bytes to its write URL, once
    3. Hand the storage key to the Job Submitter

There is no retry: the target is single-use and a partial write to it
cannot be resumed, so any transport failure or non-2xx response ends
the attempt with UploadFailedError. The pipeline never submits a job.
"""
from __future__ import annotations

import time

from audio_jobs.core.logging import fail, get_logger, info, verbose
from audio_jobs.core.metrics import JobMetrics, metrics as default_metrics
from audio_jobs.jobs.errors import UploadFailedError
from audio_jobs.jobs.models import AudioFile, UploadTarget
from audio_jobs.jobs.service import GenerationService

_LOG = get_logger("audio-jobs.upload")


class UploadPipeline:
    """Transfers one payload to a freshly issued storage target."""

    def __init__(self, service: GenerationService, metrics: JobMetrics = default_metrics):
        self._service = service
        self._metrics = metrics

    async def upload(self, file: AudioFile) -> UploadTarget:
        """
        Upload `file` and return the target it was written to.

        Raises:
            UploadFailedError: On any failure obtaining the target or
                writing the bytes.
        """
        t0 = time.monotonic()
        try:
            target = await self._service.request_upload_target(file.content_type)
        except UploadFailedError:
            self._metrics.record_upload("failed")
            raise
        except Exception as e:
            self._metrics.record_upload("failed")
            raise UploadFailedError(
                f"Could not obtain upload target: {e}",
                {"error_type": type(e).__name__},
            ) from e
        verbose(_LOG, "upload_target", storage_key=target.storage_key, content_type=file.content_type)

        try:
            status_code = await self._service.write_payload(target.write_url, file.data, file.content_type)
        except Exception as e:
            self._metrics.record_upload("failed")
            fail(_LOG, "upload_failed", storage_key=target.storage_key, error=str(e),
                 error_type=type(e).__name__)
            raise UploadFailedError(
                "Failed to upload file to storage",
                {"storage_key": target.storage_key, "error_type": type(e).__name__},
            ) from e

        if not 200 <= status_code < 300:
            self._metrics.record_upload("failed")
            fail(_LOG, "upload_failed", storage_key=target.storage_key, status_code=status_code)
            raise UploadFailedError(
                "Failed to upload file to storage",
                {"storage_key": target.storage_key, "status_code": status_code},
            )

        self._metrics.record_upload("ok", size=file.size)
        info(_LOG, "uploaded", storage_key=target.storage_key, bytes=file.size,
             seconds=round(time.monotonic() - t0, 3))
        return target

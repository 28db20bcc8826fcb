"""
Job submitter: turns a validated request into a Job.

Text requests are sent as their content; file-reference requests as a
storage key plus voice id. The voice must already be resolved by the
caller.

Remote balance rejections keep their InsufficientBalanceError type so
the caller can show the credits message; every other failure collapses
into SubmissionFailedError.
"""
from __future__ import annotations

from audio_jobs.core.logging import fail, get_logger, info
from audio_jobs.core.metrics import JobMetrics, metrics as default_metrics
from audio_jobs.jobs.errors import InsufficientBalanceError, SubmissionFailedError
from audio_jobs.jobs.models import FileReferenceRequest, GenerationRequest, Job, Submission, TextRequest
from audio_jobs.jobs.service import GenerationService

_LOG = get_logger("audio-jobs.submitter")


class JobSubmitter:

    def __init__(self, service: GenerationService, metrics: JobMetrics = default_metrics):
        self._service = service
        self._metrics = metrics

    async def submit(self, request: GenerationRequest) -> Submission:
        """
        Submit a generation request.

        Returns:
            Submission with the new Job and the throttle flag.

        Raises:
            InsufficientBalanceError: The service reports too few credits.
            SubmissionFailedError: Anything else went wrong.
        """
        if not isinstance(request, (TextRequest, FileReferenceRequest)):
            raise TypeError(f"cannot submit {type(request).__name__}")

        kind = "text" if isinstance(request, TextRequest) else "file"
        try:
            if isinstance(request, TextRequest):
                receipt = await self._service.submit_text_job(request.content)
            else:
                receipt = await self._service.submit_file_job(request.storage_key, request.voice_id)
        except (InsufficientBalanceError, SubmissionFailedError):
            raise
        except Exception as e:
            fail(_LOG, "submit_failed", error=str(e), error_type=type(e).__name__)
            raise SubmissionFailedError(
                f"Unexpected submission error: {e}",
                {"error_type": type(e).__name__},
            ) from e

        if not receipt.job_id:
            raise SubmissionFailedError("Service returned an empty job id")

        self._metrics.record_submission(kind, throttled=receipt.throttled)
        info(_LOG, "submitted", kind=kind, job=receipt.job_id, throttled=receipt.throttled)
        return Submission(job=Job(id=receipt.job_id), throttled=receipt.throttled)

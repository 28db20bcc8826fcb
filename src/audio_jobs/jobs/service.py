"""
Remote generation service interface and HTTP client.

GenerationService is the abstract boundary the orchestrator talks to.
HttpGenerationService implements it with httpx against the JSON API
described in api/schemas.py.

Error classification happens here, once: a 402 response or an
INSUFFICIENT_CREDITS error code becomes InsufficientBalanceError, every
other failed submission becomes SubmissionFailedError, and a failed
status query becomes PollingFailedError. Callers never look at message
text.

Usage:
    async with HttpGenerationService("http://127.0.0.1:8000") as service:
        receipt = await service.submit_text_job("Thunder rolling in")
        status = await service.get_job_status(receipt.job_id)
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
from pydantic import ValidationError as WireValidationError

from audio_jobs.api.schemas import (
    ErrorResponse,
    FileJobRequest,
    StatusResponse,
    SubmitResponse,
    TextJobRequest,
    UploadTargetRequest,
    UploadTargetResponse,
)
from audio_jobs.core.config import Defaults
from audio_jobs.core.logging import debug, get_logger, warn
from audio_jobs.jobs.errors import (
    InsufficientBalanceError,
    PollingFailedError,
    SubmissionFailedError,
    UploadFailedError,
)
from audio_jobs.jobs.models import Failed, JobStatus, Pending, SubmitReceipt, Succeeded, UploadTarget

_LOG = get_logger("audio-jobs.service")

INSUFFICIENT_CREDITS = "INSUFFICIENT_CREDITS"


class GenerationService(ABC):
    """Operations the orchestrator needs from the remote service."""

    @abstractmethod
    async def submit_text_job(self, content: str) -> SubmitReceipt:
        """Start a text-to-sound job."""

    @abstractmethod
    async def submit_file_job(self, storage_key: str, voice_id: str) -> SubmitReceipt:
        """Start a voice-conversion job for an uploaded payload."""

    @abstractmethod
    async def request_upload_target(self, content_type: str) -> UploadTarget:
        """Obtain a fresh single-use write location."""

    @abstractmethod
    async def write_payload(self, write_url: str, data: bytes, content_type: str) -> int:
        """PUT bytes to a write location. Returns the HTTP status code."""

    @abstractmethod
    async def get_job_status(self, job_id: str) -> JobStatus:
        """Query the current status of a job."""

    async def aclose(self) -> None:
        """Release transport resources."""


def parse_status(payload: Any) -> JobStatus:
    """
    Map a status body onto JobStatus.

    Raises:
        PollingFailedError: If the body does not match StatusResponse.
    """
    try:
        status = StatusResponse.model_validate(payload)
    except WireValidationError as e:
        raise PollingFailedError("Malformed status response", {"error": str(e)}) from e

    if status.success and status.audio_url:
        return Succeeded(result_url=status.audio_url)
    if status.failed:
        return Failed()
    return Pending()


class HttpGenerationService(GenerationService):
    """
    httpx-based client for the generation service.

    Args:
        base_url: Service root, e.g. "http://127.0.0.1:8000".
        timeout_s: Per-request timeout.
        client: Optional pre-built AsyncClient (tests pass one with a
            MockTransport or ASGITransport). A client passed in is not
            closed by aclose().
    """

    def __init__(
        self,
        base_url: str = Defaults.SERVICE_BASE_URL,
        timeout_s: float = Defaults.SERVICE_TIMEOUT_S,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout_s)

    async def __aenter__(self) -> "HttpGenerationService":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    # =========================================================================
    # Submission
    # =========================================================================

    async def submit_text_job(self, content: str) -> SubmitReceipt:
        body = TextJobRequest(text=content).model_dump(by_alias=True)
        return await self._submit("/v1/sound-effects", body)

    async def submit_file_job(self, storage_key: str, voice_id: str) -> SubmitReceipt:
        body = FileJobRequest(storage_key=storage_key, voice_id=voice_id).model_dump(by_alias=True)
        return await self._submit("/v1/voice-changer", body)

    async def _submit(self, path: str, body: dict) -> SubmitReceipt:
        debug(_LOG, "submit_request", path=path)
        try:
            resp = await self._client.post(self._url(path), json=body)
        except httpx.HTTPError as e:
            raise SubmissionFailedError(
                f"Submission transport error: {e}",
                {"error_type": type(e).__name__},
            ) from e

        if resp.is_success:
            try:
                parsed = SubmitResponse.model_validate(resp.json())
            except (ValueError, WireValidationError) as e:
                raise SubmissionFailedError("Malformed submission response", {"error": str(e)}) from e
            return SubmitReceipt(job_id=parsed.audio_id, throttled=parsed.should_show_throttle_alert)

        raise self._classify_submission_error(resp)

    @staticmethod
    def _classify_submission_error(resp: httpx.Response) -> Exception:
        code: Optional[str] = None
        message = resp.reason_phrase
        try:
            err = ErrorResponse.model_validate(resp.json())
            code, message = err.error, err.message or message
        except (ValueError, WireValidationError):
            pass

        details = {"status_code": resp.status_code, "error": code}
        if resp.status_code == 402 or code == INSUFFICIENT_CREDITS:
            return InsufficientBalanceError(message or "Not enough credits", details)
        warn(_LOG, "submission_rejected", status_code=resp.status_code, error=code)
        return SubmissionFailedError(message or "Submission failed", details)

    # =========================================================================
    # Upload
    # =========================================================================

    async def request_upload_target(self, content_type: str) -> UploadTarget:
        body = UploadTargetRequest(content_type=content_type).model_dump(by_alias=True)
        try:
            resp = await self._client.post(self._url("/v1/uploads"), json=body)
            resp.raise_for_status()
            parsed = UploadTargetResponse.model_validate(resp.json())
        except (httpx.HTTPError, ValueError, WireValidationError) as e:
            raise UploadFailedError(
                f"Could not obtain upload target: {e}",
                {"error_type": type(e).__name__},
            ) from e
        return UploadTarget(write_url=parsed.upload_url, storage_key=parsed.storage_key)

    async def write_payload(self, write_url: str, data: bytes, content_type: str) -> int:
        resp = await self._client.put(write_url, content=data, headers={"Content-Type": content_type})
        return resp.status_code

    # =========================================================================
    # Status
    # =========================================================================

    async def get_job_status(self, job_id: str) -> JobStatus:
        try:
            resp = await self._client.get(self._url(f"/v1/generations/{job_id}"))
            resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise PollingFailedError(
                f"Status query failed: {e}",
                {"job_id": job_id, "error_type": type(e).__name__},
            ) from e
        return parse_status(payload)

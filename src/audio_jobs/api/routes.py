"""
Development server routes.

Endpoints:
    POST /v1/sound-effects          - Submit a text job
    POST /v1/voice-changer          - Submit a file job from an uploaded payload
    POST /v1/uploads                - Issue a single-use upload target
    PUT  /v1/uploads/{storage_key}  - Write the payload (raw bytes)
    GET  /v1/generations/{audio_id} - Job status
    GET  /v1/audio/{audio_id}       - Finished audio
    GET  /health                    - Credits and counts
    GET  /metrics                   - Prometheus metrics

Error Handling:
    Refusals are returned as JSON:
    {
        "ok": false,
        "error": "<ERROR_CODE>",
        "message": "<human readable message>"
    }

    402 INSUFFICIENT_CREDITS, 404 UNKNOWN_JOB / UNKNOWN_STORAGE_KEY,
    409 ALREADY_WRITTEN, 413 PAYLOAD_TOO_LARGE, 415 UNSUPPORTED_MEDIA_TYPE.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from audio_jobs.api.dependencies import get_backend
from audio_jobs.api.devserver import BackendError, DevBackend
from audio_jobs.api.schemas import (
    ErrorResponse,
    FileJobRequest,
    StatusResponse,
    SubmitResponse,
    TextJobRequest,
    UploadTargetRequest,
    UploadTargetResponse,
)
from audio_jobs.core.metrics import metrics

router = APIRouter()


def _error_response(error: BackendError) -> JSONResponse:
    body = ErrorResponse(error=error.code, message=error.message)
    return JSONResponse(status_code=error.status_code, content=body.model_dump(by_alias=True))


@router.post("/v1/sound-effects")
def submit_sound_effect(req: TextJobRequest, backend: DevBackend = Depends(get_backend)):
    try:
        job, throttled = backend.submit_text(req.text)
    except BackendError as e:
        return _error_response(e)
    return SubmitResponse(audio_id=job.id, should_show_throttle_alert=throttled).model_dump(by_alias=True)


@router.post("/v1/voice-changer")
def submit_voice_change(req: FileJobRequest, backend: DevBackend = Depends(get_backend)):
    try:
        job, throttled = backend.submit_file(req.storage_key, req.voice_id)
    except BackendError as e:
        return _error_response(e)
    return SubmitResponse(audio_id=job.id, should_show_throttle_alert=throttled).model_dump(by_alias=True)


@router.post("/v1/uploads")
def create_upload(req: UploadTargetRequest, request: Request, backend: DevBackend = Depends(get_backend)):
    """Issue an upload target. The upload URL points back at this server."""
    try:
        upload = backend.create_upload(req.content_type)
    except BackendError as e:
        return _error_response(e)
    upload_url = str(request.url_for("write_upload", storage_key=upload.storage_key))
    return UploadTargetResponse(upload_url=upload_url, storage_key=upload.storage_key).model_dump(by_alias=True)


@router.put("/v1/uploads/{storage_key}", name="write_upload")
async def write_upload(storage_key: str, request: Request, backend: DevBackend = Depends(get_backend)):
    data = await request.body()
    try:
        size = backend.write_upload(storage_key, data)
    except BackendError as e:
        return _error_response(e)
    return {"ok": True, "bytes": size}


@router.get("/v1/generations/{audio_id}")
def generation_status(audio_id: str, request: Request, backend: DevBackend = Depends(get_backend)):
    """
    Status of a job.

    Each call counts as one status query; the job stays pending for the
    configured number of queries, then reports its final state.
    """
    try:
        job = backend.poll(audio_id)
    except BackendError as e:
        return _error_response(e)

    if not backend.is_done(job):
        return StatusResponse().model_dump(by_alias=True)
    if job.will_fail:
        return StatusResponse(failed=True).model_dump(by_alias=True)
    audio_url = str(request.url_for("get_audio", audio_id=job.id))
    return StatusResponse(success=True, audio_url=audio_url).model_dump(by_alias=True)


@router.get("/v1/audio/{audio_id}", name="get_audio")
def get_audio(audio_id: str, backend: DevBackend = Depends(get_backend)):
    try:
        data = backend.read_audio(audio_id)
    except BackendError as e:
        return _error_response(e)
    return Response(content=data, media_type="audio/mpeg")


@router.get("/health")
def health(backend: DevBackend = Depends(get_backend)):
    return backend.health()


@router.get("/metrics")
def prometheus_metrics():
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)

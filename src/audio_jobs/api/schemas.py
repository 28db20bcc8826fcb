"""
Wire schemas for the generation service.

These pydantic models are shared by the HTTP client
(jobs/service.py) and the development server (api/devserver.py), so
both sides agree on one JSON shape. Field names on the wire are
camelCase; Python attributes are snake_case.

Example exchange:
    POST /v1/sound-effects        {"text": "Heavy rain on a tin roof"}
    <- 200                        {"audioId": "j1", "shouldShowThrottleAlert": false}

    GET  /v1/generations/j1
    <- 200                        {"success": true, "failed": false,
                                   "audioUrl": "https://cdn/j1.mp3"}
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from audio_jobs.core.config import Defaults


class WireModel(BaseModel):
    """Base: camelCase aliases, populate by field name too."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TextJobRequest(WireModel):
    text: str = Field(
        ..., min_length=1, max_length=Defaults.VALIDATION_MAX_TEXT_CHARS, description="Sound effect description"
    )


class FileJobRequest(WireModel):
    storage_key: str = Field(..., min_length=1)
    voice_id: str = Field(..., min_length=1)


class SubmitResponse(WireModel):
    audio_id: str
    should_show_throttle_alert: bool = False


class UploadTargetRequest(WireModel):
    content_type: str = Field(..., min_length=1)


class UploadTargetResponse(WireModel):
    upload_url: str
    storage_key: str


class StatusResponse(WireModel):
    """
    Job status.

    success + audioUrl means finished; failed means terminal failure;
    anything else is still pending.
    """
    success: bool = False
    failed: bool = False
    audio_url: Optional[str] = None


class ErrorResponse(WireModel):
    ok: bool = False
    error: str
    message: str = ""

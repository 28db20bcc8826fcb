"""
Precondition checks for generation requests.

Validation runs synchronously before any network activity so that an
invalid request never spends remote quota.

Rules (defaults, see ValidationConfig):
    - Text: trimmed content must be non-empty; content longer than
      500 characters is truncated at capture time, never rejected
    - File: declared type in {audio/mp3, audio/wav}; size <= 50 MiB
    - Balance: at least 15 credits, whatever the request kind

Payload checks run before the balance check, so an empty prompt is
reported as EMPTY_INPUT even when the balance is also too low.

Usage:
    from audio_jobs.jobs.validators import capture_text, validate

    request = TextRequest(capture_text(raw_input))
    request = validate(request, balance=credits)
"""
from __future__ import annotations

import math
from dataclasses import replace
from typing import Optional, Union

from audio_jobs.core.config import ValidationConfig
from audio_jobs.core.logging import debug, get_logger
from audio_jobs.jobs.errors import (
    EmptyInputError,
    InsufficientBalanceError,
    PayloadTooLargeError,
    UnsupportedMediaTypeError,
)
from audio_jobs.jobs.models import AudioFile, FileRequest, TextRequest

_LOG = get_logger("audio-jobs.validators")

_DEFAULTS = ValidationConfig()


def capture_text(raw: Optional[str], max_chars: int = _DEFAULTS.max_text_chars) -> str:
    """
    Capture user input the way the prompt box does: keep at most
    `max_chars` characters, drop the rest.
    """
    if not raw:
        return ""
    if len(raw) > max_chars:
        debug(_LOG, "text_truncated", chars=len(raw), max_chars=max_chars)
        return raw[:max_chars]
    return raw


def validate_text(content: Optional[str], max_chars: int = _DEFAULTS.max_text_chars) -> str:
    """
    Validate captured prompt text.

    Returns:
        The content, truncated to `max_chars` if needed.

    Raises:
        EmptyInputError: If the content is empty after trimming.
    """
    if not content or not content.strip():
        raise EmptyInputError("Text is required")
    return capture_text(content, max_chars)


def validate_audio_file(file: AudioFile, config: ValidationConfig = _DEFAULTS) -> AudioFile:
    """
    Validate a selected audio file.

    Raises:
        UnsupportedMediaTypeError: Declared type not in the allow-list.
        PayloadTooLargeError: Size above config.max_upload_bytes.
    """
    content_type = (file.content_type or "").lower()
    if content_type not in config.allowed_content_types:
        raise UnsupportedMediaTypeError(
            f"Unsupported media type: {file.content_type!r}",
            {"content_type": file.content_type, "allowed": list(config.allowed_content_types)},
        )
    if file.size > config.max_upload_bytes:
        raise PayloadTooLargeError(
            f"File exceeds maximum size ({file.size} > {config.max_upload_bytes})",
            {"size": file.size, "max_bytes": config.max_upload_bytes},
        )
    return file


def validate_balance(balance: int | float, min_balance: int = _DEFAULTS.min_balance) -> None:
    """
    Raises:
        InsufficientBalanceError: If balance < min_balance or is not a finite number.
    """
    if not math.isfinite(balance) or balance < min_balance:
        raise InsufficientBalanceError(
            f"Not enough credits ({balance} < {min_balance})",
            {"balance": balance, "min_balance": min_balance},
        )


def validate(
    request: Union[TextRequest, FileRequest],
    balance: int | float,
    config: ValidationConfig = _DEFAULTS,
) -> Union[TextRequest, FileRequest]:
    """
    Check a request before anything is sent.

    Args:
        request: TextRequest or FileRequest (pre-upload).
        balance: Caller's current credit balance.
        config: Limits to enforce.

    Returns:
        The request to submit. Text requests come back with content
        bounded to config.max_text_chars.

    Raises:
        ValidationError: One of its subclasses, see module docstring.
    """
    if isinstance(request, TextRequest):
        content = validate_text(request.content, config.max_text_chars)
        if content != request.content:
            request = replace(request, content=content)
    elif isinstance(request, FileRequest):
        validate_audio_file(request.file, config)
    else:
        raise TypeError(f"cannot validate {type(request).__name__}")

    validate_balance(balance, config.min_balance)
    return request

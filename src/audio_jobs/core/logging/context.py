"""
Job correlation and logging configuration state.

The job id lives in a ContextVar so that every log line emitted while a
poll task is running carries the id of the job it is polling. Each
asyncio task gets its own copy of the context, so concurrent surfaces
do not overwrite each other's id.

Environment Variables:
    - AUDIO_JOBS_SETTINGS: Settings file to read the logging section from
    - AUDIO_JOBS_LOG_LEVEL: Log level (1-4 or name)
    - AUDIO_JOBS_LOG_DIR: Directory for the JSONL log
    - AUDIO_JOBS_JSONL_FILE: JSONL filename
    - AUDIO_JOBS_LOG_ROTATE_BYTES / AUDIO_JOBS_LOG_ROTATE_BACKUP: rotation
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict, Optional

import yaml

from .levels import LEVEL_NAMES, LogLevel

_job_id: ContextVar[str] = ContextVar("job_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_job_id() -> str:
    """Job id bound to the current context, or "-" outside a job."""
    return _job_id.get()


def set_job_id(job_id: str) -> None:
    _job_id.set(job_id)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def _read_settings_section(path: str) -> Dict[str, Any]:
    # Read directly rather than through core.config to avoid an import cycle
    # (config -> logging -> config) when modules log at import time.
    if not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    section = raw.get("logging", {}) if isinstance(raw, dict) else {}
    return dict(section or {})


def read_logging_config(settings_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Resolve logging configuration.

    Priority (highest first): environment variables, the ``logging``
    section of the settings file, defaults. The settings file is
    `settings_path` when given, else AUDIO_JOBS_SETTINGS.
    """
    settings_path = settings_path or os.getenv("AUDIO_JOBS_SETTINGS", "config/settings.yaml")
    try:
        cfg = _read_settings_section(settings_path)
    except (OSError, yaml.YAMLError):
        cfg = {}

    if os.getenv("AUDIO_JOBS_LOG_LEVEL"):
        cfg["level"] = os.environ["AUDIO_JOBS_LOG_LEVEL"]
    if os.getenv("AUDIO_JOBS_LOG_DIR"):
        cfg["log_dir"] = os.environ["AUDIO_JOBS_LOG_DIR"]
    if os.getenv("AUDIO_JOBS_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["AUDIO_JOBS_JSONL_FILE"]
    for env_name, key in (
        ("AUDIO_JOBS_LOG_ROTATE_BYTES", "rotate_max_bytes"),
        ("AUDIO_JOBS_LOG_ROTATE_BACKUP", "rotate_backup_count"),
    ):
        value = os.getenv(env_name)
        if value and value.isdigit():
            cfg[key] = int(value)

    return cfg

"""
Configuration Management for audio-jobs.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration objects
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (AUDIO_JOBS_BASE_URL, AUDIO_JOBS_LOG_LEVEL, etc.)
    2. YAML config file (config/settings.yaml)
    3. Defaults class values

Example settings.yaml:
    service:
      base_url: http://127.0.0.1:8000
      timeout_s: 30

    polling:
      interval_ms: 500

    voices:
      seedvc: andreas
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
import os
import yaml


class ConfigValidationError(Exception):
    """Raised when a configuration value is out of bounds or of the wrong type."""
    pass


class Defaults:
    """
    Centralized default configuration values.

    Sections:
        - Service: Remote generation service endpoint
        - Validation: Preconditions checked before any network call
        - Polling: Status poll cadence
        - Results: How finished jobs are turned into playable records
        - Logging: Log level
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Remote Service
    # ─────────────────────────────────────────────────────────────────────────
    SERVICE_BASE_URL = "http://127.0.0.1:8000"
    SERVICE_TIMEOUT_S = 30.0

    # ─────────────────────────────────────────────────────────────────────────
    # Validation
    # ─────────────────────────────────────────────────────────────────────────
    VALIDATION_MIN_BALANCE = 15                   # Credits needed per job
    VALIDATION_MAX_TEXT_CHARS = 500               # Prompt capture limit
    VALIDATION_MAX_UPLOAD_BYTES = 50 * 1024 * 1024
    VALIDATION_ALLOWED_CONTENT_TYPES = ("audio/mp3", "audio/wav")

    # ─────────────────────────────────────────────────────────────────────────
    # Polling
    # ─────────────────────────────────────────────────────────────────────────
    POLLING_INTERVAL_MS = 500
    POLLING_MAX_DURATION_S: Optional[float] = None  # None = until terminal

    # ─────────────────────────────────────────────────────────────────────────
    # Results
    # ─────────────────────────────────────────────────────────────────────────
    RESULTS_TITLE_MAX_CHARS = 50
    RESULTS_DURATION_LABEL = "0:30"               # Not computed from audio
    RESULTS_FILE_TITLE_FALLBACK = "Voice changed audio"
    RESULTS_TEXT_SERVICE_TAG = "make-an-audio"

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_LEVEL = 2                             # 1=MINIMAL .. 4=DEBUG


@dataclass
class ServiceConfig:
    """Where the generation service lives and how long to wait on it."""
    base_url: str = Defaults.SERVICE_BASE_URL
    timeout_s: float = Defaults.SERVICE_TIMEOUT_S


@dataclass
class ValidationConfig:
    """
    Precondition limits.

    These are enforced locally so that invalid requests never spend
    remote quota.
    """
    min_balance: int = Defaults.VALIDATION_MIN_BALANCE
    max_text_chars: int = Defaults.VALIDATION_MAX_TEXT_CHARS
    max_upload_bytes: int = Defaults.VALIDATION_MAX_UPLOAD_BYTES
    allowed_content_types: Tuple[str, ...] = Defaults.VALIDATION_ALLOWED_CONTENT_TYPES


@dataclass
class PollingConfig:
    """Status poller cadence and optional overall deadline."""
    interval_ms: int = Defaults.POLLING_INTERVAL_MS
    max_duration_s: Optional[float] = Defaults.POLLING_MAX_DURATION_S

    @property
    def interval_s(self) -> float:
        return self.interval_ms / 1000.0


@dataclass
class ResultsConfig:
    """Construction rules for playable results."""
    title_max_chars: int = Defaults.RESULTS_TITLE_MAX_CHARS
    duration_label: str = Defaults.RESULTS_DURATION_LABEL
    file_title_fallback: str = Defaults.RESULTS_FILE_TITLE_FALLBACK
    text_service_tag: str = Defaults.RESULTS_TEXT_SERVICE_TAG


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, failures only
        2 = NORMAL: Job lifecycle (default)
        3 = VERBOSE: Every poll tick
        4 = DEBUG: Wire payloads, internal state
    """
    level: int = Defaults.LOGGING_LEVEL


@dataclass
class OrchestratorConfig:
    """
    Validated configuration for the job orchestrator.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = OrchestratorConfig.from_settings(settings)
        print(config.polling.interval_s)
    """
    service: ServiceConfig = field(default_factory=ServiceConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    results: ResultsConfig = field(default_factory=ResultsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "OrchestratorConfig":
        """
        Create OrchestratorConfig from Settings with validation.

        Args:
            settings: Raw Settings object loaded from YAML.

        Returns:
            Validated OrchestratorConfig instance.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Service
        # ─────────────────────────────────────────────────────────────────────
        service_raw = raw.get("service", {}) or {}
        service = ServiceConfig(
            base_url=settings.base_url,
            timeout_s=float(service_raw.get("timeout_s", Defaults.SERVICE_TIMEOUT_S)),
        )
        if not service.base_url:
            raise ConfigValidationError("service.base_url must not be empty")
        cls._validate_positive("service.timeout_s", service.timeout_s)

        # ─────────────────────────────────────────────────────────────────────
        # Validation
        # ─────────────────────────────────────────────────────────────────────
        validation_raw = raw.get("validation", {}) or {}
        allowed = validation_raw.get("allowed_content_types", Defaults.VALIDATION_ALLOWED_CONTENT_TYPES)
        if isinstance(allowed, str):
            allowed = [allowed]
        validation = ValidationConfig(
            min_balance=int(validation_raw.get("min_balance", Defaults.VALIDATION_MIN_BALANCE)),
            max_text_chars=int(validation_raw.get("max_text_chars", Defaults.VALIDATION_MAX_TEXT_CHARS)),
            max_upload_bytes=int(validation_raw.get("max_upload_bytes", Defaults.VALIDATION_MAX_UPLOAD_BYTES)),
            allowed_content_types=tuple(str(t).lower() for t in allowed),
        )
        cls._validate_non_negative("validation.min_balance", validation.min_balance)
        # The wire schema caps prompts at the default; a config can only lower it.
        cls._validate_range("validation.max_text_chars", validation.max_text_chars,
                            1, Defaults.VALIDATION_MAX_TEXT_CHARS)
        cls._validate_positive("validation.max_upload_bytes", validation.max_upload_bytes)
        if not validation.allowed_content_types:
            raise ConfigValidationError("validation.allowed_content_types must not be empty")

        # ─────────────────────────────────────────────────────────────────────
        # Polling
        # ─────────────────────────────────────────────────────────────────────
        polling_raw = raw.get("polling", {}) or {}
        max_duration = polling_raw.get("max_duration_s", Defaults.POLLING_MAX_DURATION_S)
        polling = PollingConfig(
            interval_ms=int(polling_raw.get("interval_ms", Defaults.POLLING_INTERVAL_MS)),
            max_duration_s=float(max_duration) if max_duration is not None else None,
        )
        cls._validate_positive("polling.interval_ms", polling.interval_ms)
        if polling.max_duration_s is not None:
            cls._validate_positive("polling.max_duration_s", polling.max_duration_s)

        # ─────────────────────────────────────────────────────────────────────
        # Results
        # ─────────────────────────────────────────────────────────────────────
        results_raw = raw.get("results", {}) or {}
        results = ResultsConfig(
            title_max_chars=int(results_raw.get("title_max_chars", Defaults.RESULTS_TITLE_MAX_CHARS)),
            duration_label=str(results_raw.get("duration_label", Defaults.RESULTS_DURATION_LABEL)),
            file_title_fallback=str(results_raw.get("file_title_fallback", Defaults.RESULTS_FILE_TITLE_FALLBACK)),
            text_service_tag=str(results_raw.get("text_service_tag", Defaults.RESULTS_TEXT_SERVICE_TAG)),
        )
        cls._validate_positive("results.title_max_chars", results.title_max_chars)

        # ─────────────────────────────────────────────────────────────────────
        # Logging
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)

        # Handle string log levels (e.g., "INFO", "DEBUG")
        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)

        logging_cfg = LoggingConfig(level=log_level)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        return cls(
            service=service,
            validation=validation,
            polling=polling,
            results=results,
            logging=logging_cfg,
        )

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        """Validate that a value is non-negative (>= 0)."""
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        """Validate that a value is within a range [min_val, max_val]."""
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_orchestrator_config() for the validated, typed view.
    """
    raw: Dict[str, Any]

    @property
    def base_url(self) -> str:
        """Base URL of the generation service."""
        return str((self.raw.get("service", {}) or {}).get("base_url", Defaults.SERVICE_BASE_URL)).rstrip("/")

    @property
    def voices(self) -> Dict[str, str]:
        """Selected voice id per profile key (e.g. {"seedvc": "andreas"})."""
        return {str(k): str(v) for k, v in (self.raw.get("voices", {}) or {}).items() if v}

    def get_orchestrator_config(self) -> OrchestratorConfig:
        """
        Get validated OrchestratorConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return OrchestratorConfig.from_settings(self)


def load_settings(path: str = "config/settings.yaml") -> Settings:
    """
    Load settings from a YAML configuration file.

    Environment variable overrides:
        - AUDIO_JOBS_BASE_URL: Override service.base_url

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Settings object with loaded configuration.

    Raises:
        FileNotFoundError: If the settings file doesn't exist.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    with p.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    base_url = os.getenv("AUDIO_JOBS_BASE_URL")
    if base_url:
        raw["service"] = dict(raw.get("service") or {}, base_url=base_url)

    return Settings(raw=raw)

"""
FastAPI dependency providers for the development server.

    get_settings() - loads and caches settings (AUDIO_JOBS_SETTINGS or
                     config/settings.yaml; empty settings if absent)
    get_backend()  - the shared DevBackend built from those settings

Tests replace the backend with app.dependency_overrides[get_backend].
"""
from __future__ import annotations

import os
from functools import lru_cache

from audio_jobs.api.devserver import DevBackend, DevBackendConfig
from audio_jobs.core.config import Settings, load_settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    path = os.getenv("AUDIO_JOBS_SETTINGS", "config/settings.yaml")
    try:
        return load_settings(path)
    except FileNotFoundError:
        return Settings(raw={})


@lru_cache(maxsize=1)
def get_backend() -> DevBackend:
    """Singleton backend; all requests see the same credits and jobs."""
    return DevBackend(DevBackendConfig.from_settings(get_settings()))

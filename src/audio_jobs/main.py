"""
FastAPI application for the development generation server.

Serves the same JSON API the orchestrator's HTTP client speaks, backed
by an in-memory DevBackend (see api/devserver.py).

Usage:
    uvicorn audio_jobs.main:app --host 127.0.0.1 --port 8000

    # or through the CLI
    audio-jobs --serve --port 8000
"""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI

from audio_jobs.api.dependencies import get_backend
from audio_jobs.api.devserver import DevBackend
from audio_jobs.api.routes import router
from audio_jobs.core.logging import configure_logging


def create_app(backend: Optional[DevBackend] = None) -> FastAPI:
    """
    Create the development server.

    Args:
        backend: Backend to serve. When None the shared backend built
            from settings is used.
    """
    configure_logging()

    app = FastAPI(title="audio-jobs dev server")
    app.include_router(router)

    if backend is not None:
        app.dependency_overrides[get_backend] = lambda: backend

    return app


app = create_app()

"""
audio-jobs: asynchronous audio generation job orchestrator.

Submits sound-effect prompts or audio files to a remote generation
service, polls the job until it finishes and hands the finished audio to
a playback registry exactly once.

Key Features:
    - Precondition checks before any network call (credits, input, file type/size)
    - Single-use upload targets for file jobs
    - 500 ms status polling with cooperative cancellation
    - Structural error classification with one notice per failed job
    - In-memory development server (FastAPI) for local runs
    - Prometheus metrics

Example Usage:
    >>> from audio_jobs.jobs import (
    ...     GenerationOrchestrator, HttpGenerationService,
    ...     InMemoryPlaybackRegistry, LoggingNotifier,
    ... )
    >>> async def run():
    ...     async with HttpGenerationService("http://127.0.0.1:8000") as service:
    ...         registry = InMemoryPlaybackRegistry()
    ...         async with GenerationOrchestrator(service, registry, LoggingNotifier()) as surface:
    ...             if await surface.submit_text("Glass shattering", balance=100):
    ...                 await surface.wait()
    ...         return registry.items
"""

__version__ = "0.1.0"
__all__ = ["__version__"]

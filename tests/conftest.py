"""Shared fixtures: a scripted generation service and fast orchestrator config."""
from __future__ import annotations

import asyncio
import os
from typing import List, Optional, Sequence, Union

import pytest

os.environ.setdefault("AUDIO_JOBS_NO_COLOR", "1")

from audio_jobs.core.config import OrchestratorConfig, PollingConfig
from audio_jobs.core.metrics import JobMetrics
from audio_jobs.jobs.models import AudioFile, JobStatus, Pending, SubmitReceipt, UploadTarget
from audio_jobs.jobs.service import GenerationService

StatusStep = Union[JobStatus, Exception]


class ScriptedService(GenerationService):
    """
    GenerationService that replays scripted answers and records calls.

    statuses are returned in order; the last one repeats. An Exception in
    the script is raised instead of returned. When `hold_status` is set,
    status queries wait for `release_status` before answering.
    """

    def __init__(
        self,
        statuses: Sequence[StatusStep] = (Pending(),),
        receipt: Union[SubmitReceipt, Exception] = SubmitReceipt(job_id="j1"),
        target: Union[UploadTarget, Exception] = UploadTarget(write_url="https://store/put/k1", storage_key="k1"),
        write_status: Union[int, Exception] = 200,
        hold_status: bool = False,
    ):
        self.statuses: List[StatusStep] = list(statuses)
        self.receipt = receipt
        self.target = target
        self.write_status = write_status
        self.hold_status = hold_status

        self.text_submissions: List[str] = []
        self.file_submissions: List[tuple] = []
        self.upload_requests: List[str] = []
        self.writes: List[tuple] = []
        self.status_queries = 0
        self.closed = False

        self._release: Optional[asyncio.Event] = None
        self._query_started: Optional[asyncio.Event] = None

    # Status gating is created lazily so the events bind to the running loop.
    @property
    def query_started(self) -> asyncio.Event:
        if self._query_started is None:
            self._query_started = asyncio.Event()
        return self._query_started

    def release_status(self) -> None:
        if self._release is None:
            self._release = asyncio.Event()
        self._release.set()

    async def submit_text_job(self, content: str) -> SubmitReceipt:
        self.text_submissions.append(content)
        return self._answer(self.receipt)

    async def submit_file_job(self, storage_key: str, voice_id: str) -> SubmitReceipt:
        self.file_submissions.append((storage_key, voice_id))
        return self._answer(self.receipt)

    async def request_upload_target(self, content_type: str) -> UploadTarget:
        self.upload_requests.append(content_type)
        return self._answer(self.target)

    async def write_payload(self, write_url: str, data: bytes, content_type: str) -> int:
        self.writes.append((write_url, len(data), content_type))
        return self._answer(self.write_status)

    async def get_job_status(self, job_id: str) -> JobStatus:
        self.status_queries += 1
        step = self.statuses[min(self.status_queries - 1, len(self.statuses) - 1)]
        if self.hold_status:
            self.query_started.set()
            if self._release is None:
                self._release = asyncio.Event()
            await self._release.wait()
        return self._answer(step)

    async def aclose(self) -> None:
        self.closed = True

    @staticmethod
    def _answer(step):
        if isinstance(step, Exception):
            raise step
        return step


@pytest.fixture
def fast_config() -> OrchestratorConfig:
    """Default limits with a 10 ms poll interval."""
    return OrchestratorConfig(polling=PollingConfig(interval_ms=10))


@pytest.fixture
def fresh_metrics() -> JobMetrics:
    return JobMetrics()


@pytest.fixture
def wav_file() -> AudioFile:
    return AudioFile(name="take1.wav", content_type="audio/wav", data=b"RIFF" + b"\x00" * 60)

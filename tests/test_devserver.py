"""
Tests for the development server.

Tests cover:
- Route behavior through fastapi.testclient.TestClient
- Credits, throttle window and job progression in DevBackend
- Full orchestrator runs over httpx.ASGITransport
"""
from __future__ import annotations

import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient

from audio_jobs.api.devserver import DevBackend, DevBackendConfig
from audio_jobs.core.config import Settings
from audio_jobs.jobs.errors import ErrorKind
from audio_jobs.jobs.handoff import InMemoryPlaybackRegistry, RecordingNotifier, StaticVoiceResolver
from audio_jobs.jobs.models import Phase
from audio_jobs.jobs.orchestrator import GenerationOrchestrator
from audio_jobs.jobs.poller import PollState
from audio_jobs.jobs.service import HttpGenerationService
from audio_jobs.main import create_app


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def backend():
    return DevBackend(DevBackendConfig(max_upload_bytes=1024))


@pytest.fixture
def client(backend):
    return TestClient(create_app(backend))


class TestRoutes:
    """HTTP surface of the dev server."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "credits": 100, "jobs": 0, "uploads": 0}

    def test_submit_text_job(self, client, backend):
        response = client.post("/v1/sound-effects", json={"text": "Cat purring"})
        assert response.status_code == 200
        body = response.json()
        assert body["shouldShowThrottleAlert"] is False
        assert backend.get_job(body["audioId"]).prompt == "Cat purring"
        assert backend.credits == 85

    def test_empty_text_rejected(self, client):
        assert client.post("/v1/sound-effects", json={"text": ""}).status_code == 422

    def test_status_pending_then_success(self, client):
        audio_id = client.post("/v1/sound-effects", json={"text": "Cat"}).json()["audioId"]

        first = client.get(f"/v1/generations/{audio_id}").json()
        second = client.get(f"/v1/generations/{audio_id}").json()
        third = client.get(f"/v1/generations/{audio_id}").json()

        assert first == {"success": False, "failed": False, "audioUrl": None}
        assert second["success"] is False
        assert third["success"] is True
        assert third["audioUrl"].endswith(f"/v1/audio/{audio_id}")

    def test_fail_marker(self, client):
        audio_id = client.post("/v1/sound-effects", json={"text": "boom [fail]"}).json()["audioId"]
        for _ in range(2):
            client.get(f"/v1/generations/{audio_id}")
        assert client.get(f"/v1/generations/{audio_id}").json()["failed"] is True

    def test_unknown_job(self, client):
        response = client.get("/v1/generations/nope")
        assert response.status_code == 404
        assert response.json()["error"] == "UNKNOWN_JOB"

    def test_out_of_credits(self):
        client = TestClient(create_app(DevBackend(DevBackendConfig(credits=20))))
        assert client.post("/v1/sound-effects", json={"text": "a"}).status_code == 200
        response = client.post("/v1/sound-effects", json={"text": "b"})
        assert response.status_code == 402
        assert response.json() == {"ok": False, "error": "INSUFFICIENT_CREDITS", "message": "Not enough credits"}

    def test_upload_and_voice_change(self, client, backend):
        target = client.post("/v1/uploads", json={"contentType": "audio/wav"}).json()
        assert target["uploadUrl"].endswith(f"/v1/uploads/{target['storageKey']}")

        put = client.put(target["uploadUrl"], content=b"RIFFdata", headers={"Content-Type": "audio/wav"})
        assert put.status_code == 200
        assert put.json() == {"ok": True, "bytes": 8}

        response = client.post("/v1/voice-changer", json={"storageKey": target["storageKey"], "voiceId": "andreas"})
        assert response.status_code == 200
        job = backend.get_job(response.json()["audioId"])
        assert job.voice_id == "andreas"

        for _ in range(3):
            client.get(f"/v1/generations/{job.id}")
        assert client.get(f"/v1/audio/{job.id}").content == b"RIFFdata"

    def test_upload_target_single_use(self, client):
        target = client.post("/v1/uploads", json={"contentType": "audio/mp3"}).json()
        assert client.put(target["uploadUrl"], content=b"a").status_code == 200
        assert client.put(target["uploadUrl"], content=b"b").status_code == 409

    def test_upload_too_large(self, client):
        target = client.post("/v1/uploads", json={"contentType": "audio/wav"}).json()
        response = client.put(target["uploadUrl"], content=b"x" * 2048)
        assert response.status_code == 413
        assert response.json()["error"] == "PAYLOAD_TOO_LARGE"

    def test_unsupported_content_type(self, client):
        response = client.post("/v1/uploads", json={"contentType": "audio/ogg"})
        assert response.status_code == 415

    def test_voice_change_requires_written_upload(self, client):
        target = client.post("/v1/uploads", json={"contentType": "audio/wav"}).json()
        response = client.post("/v1/voice-changer", json={"storageKey": target["storageKey"], "voiceId": "v"})
        assert response.status_code == 400
        assert response.json()["error"] == "UNKNOWN_STORAGE_KEY"

    def test_metrics_endpoint(self, client):
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "audio_jobs_status_queries_total" in response.text


class TestDevBackend:
    """DevBackend rules without HTTP."""

    def test_throttle_after_three_in_window(self):
        clock = FakeClock()
        backend = DevBackend(DevBackendConfig(credits=1000), clock=clock)

        flags = [backend.submit_text(f"s{i}")[1] for i in range(4)]
        assert flags == [False, False, False, True]

    def test_throttle_window_expires(self):
        clock = FakeClock()
        backend = DevBackend(DevBackendConfig(credits=1000), clock=clock)
        for i in range(3):
            backend.submit_text(f"s{i}")

        clock.now += 61
        _, throttled = backend.submit_text("later")
        assert throttled is False

    def test_config_from_settings(self):
        settings = Settings(raw={"devserver": {"credits": 30, "pending_polls": 0}})
        config = DevBackendConfig.from_settings(settings)
        assert config.credits == 30
        assert config.pending_polls == 0
        assert config.job_cost == 15
        assert config.allowed_content_types == ("audio/mp3", "audio/wav")

    def test_allowed_content_types_from_devserver_section(self):
        settings = Settings(raw={
            "validation": {"allowed_content_types": ["audio/wav"]},
            "devserver": {"allowed_content_types": ["Audio/OGG", "audio/wav"]},
        })
        assert DevBackendConfig.from_settings(settings).allowed_content_types == ("audio/ogg", "audio/wav")

    def test_allowed_content_types_fall_back_to_validation(self):
        settings = Settings(raw={"validation": {"allowed_content_types": "audio/wav"}})
        backend = DevBackend(DevBackendConfig.from_settings(settings))

        assert backend.config.allowed_content_types == ("audio/wav",)
        client = TestClient(create_app(backend))
        assert client.post("/v1/uploads", json={"contentType": "audio/mp3"}).status_code == 415
        assert client.post("/v1/uploads", json={"contentType": "audio/wav"}).status_code == 200


def _e2e(backend: DevBackend, fast_config, fresh_metrics, submit, **kwargs):
    """Run one orchestrator submission against the dev server in-process."""
    app = create_app(backend)
    registry = InMemoryPlaybackRegistry()
    notifier = RecordingNotifier()

    async def run():
        client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")
        async with client:
            service = HttpGenerationService("http://testserver", client=client)
            async with GenerationOrchestrator(service, registry, notifier, config=fast_config,
                                              metrics=fresh_metrics, **kwargs) as surface:
                job = await submit(surface)
                outcome = await surface.wait() if job else None
                return surface, outcome

    surface, outcome = asyncio.run(run())
    return surface, outcome, registry, notifier


class TestEndToEnd:
    """Orchestrator against the in-process dev server."""

    def test_text_job_published(self, fast_config, fresh_metrics):
        backend = DevBackend()
        surface, outcome, registry, notifier = _e2e(
            backend, fast_config, fresh_metrics,
            lambda s: s.submit_text("Crackling campfire", balance=100),
        )

        assert outcome.state is PollState.SUCCEEDED
        assert outcome.queries == 3
        assert len(registry) == 1
        assert registry.items[0].audio_url.startswith("http://testserver/v1/audio/")
        assert notifier.notices == []
        assert backend.credits == 85

    def test_file_job_published(self, fast_config, fresh_metrics, wav_file):
        backend = DevBackend()
        surface, outcome, registry, _ = _e2e(
            backend, fast_config, fresh_metrics,
            lambda s: s.submit_file(wav_file, balance=100),
            voices=StaticVoiceResolver({"seedvc": "andreas"}),
            label="convert voice",
            service_tag="seedvc",
        )

        assert outcome.state is PollState.SUCCEEDED
        result = registry.items[0]
        assert result.title == "take1.wav"
        assert result.source_voice == "andreas"
        assert backend.get_job(result.id).voice_id == "andreas"

    def test_failed_job_notified(self, fast_config, fresh_metrics):
        surface, outcome, registry, notifier = _e2e(
            DevBackend(), fast_config, fresh_metrics,
            lambda s: s.submit_text("explosion [fail]", balance=100),
        )

        assert outcome.state is PollState.FAILED
        assert len(notifier.errors) == 1
        assert surface.state.error is ErrorKind.GENERIC_FAILURE
        assert len(registry) == 0

    def test_remote_credits_exhausted(self, fast_config, fresh_metrics):
        """Local balance looks fine but the service says no."""
        surface, outcome, _, notifier = _e2e(
            DevBackend(DevBackendConfig(credits=10)), fast_config, fresh_metrics,
            lambda s: s.submit_text("Rain", balance=100),
        )

        assert outcome is None
        assert notifier.errors[0].kind is ErrorKind.INSUFFICIENT_BALANCE
        assert surface.state.phase is Phase.ERROR

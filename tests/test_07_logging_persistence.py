def test_logging_jsonl_persistence(monkeypatch, tmp_path):
    import asyncio
    import json
    import logging

    from audio_jobs.core.logging import configure_logging, get_logger, info, set_job_id

    monkeypatch.setenv("AUDIO_JOBS_LOG_DIR", str(tmp_path))
    monkeypatch.setenv("AUDIO_JOBS_JSONL_FILE", "test.jsonl")

    async def emit():
        set_job_id("job-1")
        info(get_logger("test"), "hello", event="logging_test", foo="bar")

    try:
        configure_logging(force=True)
        asyncio.run(emit())

        for handler in logging.getLogger().handlers:
            handler.flush()

        log_path = tmp_path / "test.jsonl"
        assert log_path.exists()

        line = log_path.read_text(encoding="utf-8").strip().splitlines()[-1]
        payload = json.loads(line)
        assert payload["message"] == "hello"
        assert payload["level"] == 2
        assert payload["tag"] == "INFO"
        assert payload["job_id"] == "job-1"
        assert payload["event"] == "logging_test"
        assert payload["extra"]["foo"] == "bar"
        assert "ts" in payload
    finally:
        for handler in logging.getLogger().handlers:
            handler.close()
        monkeypatch.delenv("AUDIO_JOBS_LOG_DIR")
        configure_logging(force=True)

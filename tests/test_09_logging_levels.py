"""Tests for the numeric logging level system."""
from __future__ import annotations

import asyncio
import io
import logging
from unittest.mock import patch

import pytest


@pytest.fixture
def restore_logging():
    """Put the default configuration back after a test reconfigures it."""
    yield
    from audio_jobs.core.logging import configure_logging
    configure_logging(2, force=True)


class TestLogLevelEnum:
    """Test LogLevel enum values."""

    def test_level_enum_values(self):
        from audio_jobs.core.logging import LogLevel

        assert LogLevel.MINIMAL == 1
        assert LogLevel.NORMAL == 2
        assert LogLevel.VERBOSE == 3
        assert LogLevel.DEBUG == 4

    def test_level_enum_ordering(self):
        from audio_jobs.core.logging import LogLevel

        assert LogLevel.MINIMAL < LogLevel.NORMAL < LogLevel.VERBOSE < LogLevel.DEBUG

    def test_level_map(self):
        """Numeric levels map onto Python logging levels."""
        from audio_jobs.core.logging import LEVEL_MAP, LogLevel

        assert LEVEL_MAP[LogLevel.MINIMAL] == logging.WARNING
        assert LEVEL_MAP[LogLevel.NORMAL] == logging.INFO
        assert LEVEL_MAP[LogLevel.VERBOSE] == logging.DEBUG
        assert LEVEL_MAP[LogLevel.DEBUG] < logging.DEBUG


class TestLevelCoercion:
    """Test level coercion from various input types."""

    def test_level_from_int(self):
        from audio_jobs.core.logging import LogLevel, coerce_level

        assert coerce_level(1) == LogLevel.MINIMAL
        assert coerce_level(4) == LogLevel.DEBUG

    def test_level_from_string_names(self):
        from audio_jobs.core.logging import LogLevel, coerce_level

        assert coerce_level("minimal") == LogLevel.MINIMAL
        assert coerce_level("VERBOSE") == LogLevel.VERBOSE
        assert coerce_level(" debug ") == LogLevel.DEBUG
        assert coerce_level("3") == LogLevel.VERBOSE

    def test_level_from_python_levels(self):
        from audio_jobs.core.logging import LogLevel, coerce_level

        assert coerce_level("INFO") == LogLevel.NORMAL
        assert coerce_level("ERROR") == LogLevel.MINIMAL
        assert coerce_level(logging.WARNING) == LogLevel.MINIMAL
        assert coerce_level(logging.INFO) == LogLevel.NORMAL
        assert coerce_level(logging.DEBUG) == LogLevel.DEBUG

    def test_invalid_level_defaults_to_normal(self):
        from audio_jobs.core.logging import LogLevel, coerce_level

        assert coerce_level("invalid") == LogLevel.NORMAL
        assert coerce_level(None) == LogLevel.NORMAL


class TestLevelFiltering:
    """Records above the configured level are dropped."""

    def _capture(self, level, emit):
        from audio_jobs.core.logging import configure_logging, get_logger

        buffer = io.StringIO()
        with patch("sys.stdout", buffer):
            configure_logging(level, force=True)
            emit(get_logger("test.levels"))
            for handler in logging.getLogger().handlers:
                handler.flush()
        return buffer.getvalue()

    def test_minimal_shows_only_failures(self, restore_logging):
        from audio_jobs.core.logging import fail, info, verbose

        def emit(log):
            info(log, "submitted")
            verbose(log, "poll_tick")
            fail(log, "job_failed")

        out = self._capture(1, emit)
        assert "job_failed" in out
        assert "submitted" not in out
        assert "poll_tick" not in out

    def test_normal_hides_poll_ticks(self, restore_logging):
        from audio_jobs.core.logging import info, verbose

        def emit(log):
            info(log, "submitted", kind="text")
            verbose(log, "poll_tick")

        out = self._capture(2, emit)
        assert "submitted kind=text" in out
        assert "poll_tick" not in out

    def test_verbose_shows_poll_ticks(self, restore_logging):
        from audio_jobs.core.logging import debug, verbose

        def emit(log):
            verbose(log, "poll_tick", state="pending")
            debug(log, "wire_payload")

        out = self._capture(3, emit)
        assert "poll_tick state=pending" in out
        assert "wire_payload" not in out

    def test_debug_shows_everything(self, restore_logging):
        from audio_jobs.core.logging import debug

        out = self._capture(4, lambda log: debug(log, "wire_payload"))
        assert "wire_payload" in out

    def test_level_name(self, restore_logging):
        from audio_jobs.core.logging import get_level_name

        self._capture("verbose", lambda log: None)
        assert get_level_name() == "VERBOSE"

    def test_env_level(self, monkeypatch, restore_logging):
        from audio_jobs.core.logging import LogLevel, get_level

        monkeypatch.setenv("AUDIO_JOBS_LOG_LEVEL", "4")
        self._capture(None, lambda log: None)
        assert get_level() == LogLevel.DEBUG


class TestJobCorrelation:
    """Job ids follow the asyncio task that set them."""

    def test_job_id_in_console_line(self, restore_logging):
        from audio_jobs.core.logging import configure_logging, get_logger, info, set_job_id

        buffer = io.StringIO()

        async def run():
            set_job_id("job-42")
            info(get_logger("test.job"), "poll_started")

        with patch("sys.stdout", buffer):
            configure_logging(2, force=True)
            asyncio.run(run())

        assert "(job-42) poll_started" in buffer.getvalue()

    def test_tasks_do_not_share_job_id(self):
        from audio_jobs.core.logging import get_job_id, set_job_id

        async def poll(job_id, seen):
            set_job_id(job_id)
            await asyncio.sleep(0)
            seen[job_id] = get_job_id()

        async def run():
            seen = {}
            await asyncio.gather(poll("a", seen), poll("b", seen))
            return seen

        assert asyncio.run(run()) == {"a": "a", "b": "b"}
        assert get_job_id() == "-"

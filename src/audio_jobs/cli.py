"""
Command-Line Interface for audio-jobs.

Runs one generation job end to end against a generation service, or
serves the in-memory development service.

Usage Examples:
    # Sound effect from a prompt
    audio-jobs --text "Heavy rain on a tin roof" --balance 100

    # Positional text (same as above)
    audio-jobs "Heavy rain on a tin roof"

    # Voice conversion of a file with an explicit voice
    audio-jobs --file take1.wav --voice andreas

    # Validate only, no network
    audio-jobs --text "Test" --dry-run --json

    # Local development service
    audio-jobs --serve --port 8000

Exit codes:
    0 - result published
    1 - validation, upload, submission or job failure
    2 - cancelled (Ctrl+C)

Environment Variables:
    AUDIO_JOBS_SETTINGS: Settings file (default config/settings.yaml)
    AUDIO_JOBS_BASE_URL: Generation service URL
    AUDIO_JOBS_LOG_LEVEL: Log level 1-4
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from audio_jobs.core.config import OrchestratorConfig, Settings, load_settings
from audio_jobs.core.logging import configure_logging, get_logger, info
from audio_jobs.core.metrics import metrics
from audio_jobs.jobs.errors import ValidationError, VoiceUnavailableError
from audio_jobs.jobs.handoff import (
    InMemoryPlaybackRegistry,
    LoggingNotifier,
    Notice,
    StaticVoiceResolver,
    failure_notice,
)
from audio_jobs.jobs.models import AudioFile, TextRequest
from audio_jobs.jobs.orchestrator import GenerationOrchestrator
from audio_jobs.jobs.poller import PollState
from audio_jobs.jobs.service import HttpGenerationService
from audio_jobs.jobs.validators import capture_text, validate, validate_audio_file, validate_balance

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 2

TEXT_LABEL = "generate sound effects"
FILE_LABEL = "convert voice"


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="audio-jobs CLI (submit and poll a generation job)")

    # Input options (text vs file)
    parser.add_argument("text_pos", nargs="?", help="Sound effect description (positional)")
    parser.add_argument("--text", help="Sound effect description")
    parser.add_argument("--file", help="Audio file to voice-convert (MP3 or WAV)")

    # Job options
    parser.add_argument("--balance", type=float, default=100,
                        help="Credit balance to check against (default 100)")
    parser.add_argument("--profile", default="seedvc", help="Voice profile key for file jobs")
    parser.add_argument("--voice", help="Voice id override for the selected profile")

    # Service
    parser.add_argument("--base-url", help="Generation service URL")
    parser.add_argument("--config", help="Settings file")

    # Execution modes
    parser.add_argument("--dry-run", action="store_true", help="Validate only, no network")
    parser.add_argument("--json", action="store_true", help="Print JSON summary")
    parser.add_argument("--metrics", action="store_true", help="Print Prometheus metrics afterwards")

    # Dev server
    parser.add_argument("--serve", action="store_true", help="Run the development service")
    parser.add_argument("--host", default="127.0.0.1", help="Dev server host")
    parser.add_argument("--port", type=int, default=8000, help="Dev server port")

    return parser.parse_args(argv)


def _load_settings(args: argparse.Namespace) -> Settings:
    """Explicit --config must exist; the default path may be missing."""
    if args.config:
        return load_settings(args.config)
    path = os.getenv("AUDIO_JOBS_SETTINGS", "config/settings.yaml")
    if not Path(path).exists():
        return Settings(raw={})
    return load_settings(path)


def _resolve_input(args: argparse.Namespace) -> tuple[Optional[str], Optional[AudioFile]]:
    """
    Return (text, file). Exactly one is set.

    Raises:
        SystemExit: No input, or both kinds of input.
    """
    text = args.text or args.text_pos
    if args.file:
        if text:
            raise SystemExit("Use --file without --text or positional text.")
        path = Path(args.file)
        if not path.is_file():
            raise SystemExit(f"File not found: {path}")
        return None, AudioFile.from_path(path)
    if text is None:
        raise SystemExit("Provide --text, a positional text or --file.")
    return text, None


def _dry_run(
    text: Optional[str],
    file: Optional[AudioFile],
    balance: float,
    profile: str,
    voices: StaticVoiceResolver,
    config: OrchestratorConfig,
) -> Dict[str, Any]:
    """Run the precondition checks the orchestrator would run."""
    limits = config.validation
    label = TEXT_LABEL if file is None else FILE_LABEL
    summary: Dict[str, Any] = {"ok": True, "dry_run": True, "kind": "text" if file is None else "file"}
    try:
        if file is None:
            request = validate(TextRequest(capture_text(text, limits.max_text_chars)), balance, limits)
            summary["chars"] = len(request.content)
        else:
            validate_audio_file(file, limits)
            voice_id = voices.resolve_voice(profile)
            if not voice_id:
                raise VoiceUnavailableError(f"No voice selected for profile {profile!r}")
            validate_balance(balance, limits.min_balance)
            summary.update(file=file.name, content_type=file.content_type, bytes=file.size, voice=voice_id)
    except ValidationError as e:
        summary["ok"] = False
        summary["error"] = e.to_dict()
        summary["notice"] = failure_notice(e.kind, label, limits.min_balance).message
    return summary


class _CollectingNotifier(LoggingNotifier):
    """Logs notices and keeps them for the final summary."""

    def __init__(self):
        super().__init__()
        self.notices: List[Notice] = []

    def notify(self, notice: Notice) -> None:
        super().notify(notice)
        self.notices.append(notice)


async def _run_job(
    text: Optional[str],
    file: Optional[AudioFile],
    args: argparse.Namespace,
    settings: Settings,
    config: OrchestratorConfig,
    voices: StaticVoiceResolver,
) -> Dict[str, Any]:
    notifier = _CollectingNotifier()
    registry = InMemoryPlaybackRegistry()
    base_url = args.base_url or settings.base_url

    async with HttpGenerationService(base_url, timeout_s=config.service.timeout_s) as service:
        surface = GenerationOrchestrator(
            service,
            registry,
            notifier,
            voices=voices,
            config=config,
            label=TEXT_LABEL if file is None else FILE_LABEL,
            service_tag=None if file is None else args.profile,
        )
        async with surface:
            if file is None:
                job = await surface.submit_text(text, args.balance)
            else:
                job = await surface.submit_file(file, args.balance, profile_key=args.profile)
            outcome = await surface.wait() if job else None

    return {
        "ok": len(registry) > 0,
        "dry_run": False,
        "job_id": job.id if job else None,
        "state": outcome.state.value if outcome else surface.state.phase.value,
        "queries": outcome.queries if outcome else 0,
        "notices": [n.message for n in notifier.notices],
        "results": [_result_dict(r) for r in registry.items],
    }


def _result_dict(result) -> Dict[str, Any]:
    data = asdict(result)
    data["created_at"] = result.created_at.isoformat()
    return data


def _print(payload: Dict[str, Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(payload)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Optional list of command-line arguments.

    Returns:
        Exit code (see module docstring).
    """
    args = _parse_args(argv)

    if args.serve:
        import uvicorn

        configure_logging()
        uvicorn.run("audio_jobs.main:app", host=args.host, port=args.port)
        return EXIT_OK

    settings = _load_settings(args)
    config = settings.get_orchestrator_config()

    # The selected settings file drives logging too; AUDIO_JOBS_LOG_LEVEL still wins.
    level = None if os.getenv("AUDIO_JOBS_LOG_LEVEL") else config.logging.level
    configure_logging(level, force=True, settings_path=args.config)
    log = get_logger("audio-jobs.cli")
    voice_map = dict(settings.voices)
    if args.voice:
        voice_map[args.profile] = args.voice
    voices = StaticVoiceResolver(voice_map)

    text, file = _resolve_input(args)

    if args.dry_run:
        summary = _dry_run(text, file, args.balance, args.profile, voices, config)
        _print(summary, args.json)
        if not summary["ok"]:
            return EXIT_FAILED
        info(log, "dry_run", kind=summary["kind"])
        print("VALIDATION_OK")
        return EXIT_OK

    try:
        summary = asyncio.run(_run_job(text, file, args, settings, config, voices))
    except KeyboardInterrupt:
        info(log, "cancelled")
        return EXIT_CANCELLED

    _print(summary, args.json)
    if args.metrics:
        content, _ = metrics.get_metrics_response()
        print(content.decode("utf-8"))

    if summary["ok"]:
        return EXIT_OK
    if summary["state"] == PollState.CANCELLED.value:
        return EXIT_CANCELLED
    return EXIT_FAILED


if __name__ == "__main__":
    raise SystemExit(main())

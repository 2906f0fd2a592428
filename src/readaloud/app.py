"""Engine factory and logging setup for the read-aloud service."""

from __future__ import annotations

import logging
import os
from typing import Optional

from dotenv import load_dotenv

from .config import Settings, get_settings
from .logging_handlers import DateStampedFileHandler, cleanup_old_logs
from .logging_settings import parse_logging_settings
from .services.audio_output import AudioOutput, ClockAudioOutput
from .services.playback_engine import ReadAloudEngine
from .services.speech_client import SpeechClient

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(__name__)


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure console and per-session file logging.

    Levels come from the logging settings file; a ``LOG_LEVEL`` environment
    variable (or `.env` entry) overrides the terminal level.
    """
    # Load .env file first to ensure LOG_LEVEL is available
    load_dotenv()
    settings = settings or get_settings()
    log_settings = parse_logging_settings(settings.logging_settings_path)

    terminal_level = log_settings.terminal_level
    override = os.getenv("LOG_LEVEL")
    if override:
        terminal_level = getattr(logging, override.upper(), logging.INFO)

    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT)
    handlers: list[logging.Handler] = []

    if terminal_level is not None:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(terminal_level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    if log_settings.sessions_level is not None:
        file_handler = DateStampedFileHandler(settings.log_dir, prefix="readaloud")
        file_handler.setLevel(log_settings.sessions_level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    enabled_levels = [
        level
        for level in (terminal_level, log_settings.sessions_level)
        if level is not None
    ]
    root_level = min(enabled_levels) if enabled_levels else logging.CRITICAL

    logging.basicConfig(
        level=root_level,
        handlers=handlers or [logging.NullHandler()],
        force=True,  # Override any existing configuration
    )
    logging.getLogger("readaloud").setLevel(root_level)

    # Quiet down the HTTP stack unless debugging
    http_level = root_level if root_level <= logging.DEBUG else logging.WARNING
    logging.getLogger("httpx").setLevel(http_level)
    logging.getLogger("httpcore").setLevel(http_level)

    cleanup_old_logs([settings.log_dir], log_settings.retention_hours, logger=logger)


def _build_output(settings: Settings) -> AudioOutput:
    if settings.audio_output == "pygame":
        # Optional dependency, only imported when selected
        from .services.pygame_output import PygameAudioOutput

        return PygameAudioOutput()
    return ClockAudioOutput()


def create_engine(settings: Optional[Settings] = None) -> ReadAloudEngine:
    """Build a ReadAloudEngine wired to the configured endpoint and output.

    The engine owns the speech client and the output; ``await engine.aclose()``
    (or ``async with engine``) releases both.
    """
    settings = settings or get_settings()

    speech_client = SpeechClient(
        str(settings.speech_url),
        timeout=settings.speech_timeout,
        max_attempts=settings.speech_max_attempts,
        backoff=settings.retry_backoff_seconds,
    )
    engine = ReadAloudEngine(
        speech_client,
        _build_output(settings),
        timings=settings.playback_timings(),
        preload_batch_size=settings.preload_batch_size,
        owns_dependencies=True,
    )
    logger.info(
        f"Read-aloud engine ready (endpoint={settings.speech_url}, "
        f"output={settings.audio_output}, batch={settings.preload_batch_size})"
    )
    return engine


__all__ = ["configure_logging", "create_engine"]

"""Read-aloud configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from readaloud.services.playback_engine import PlaybackTimings

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Synthesis endpoint (serves cached story audio with word timings)
    speech_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("http://localhost:5000/api/text-to-speech"),
        validation_alias=AliasChoices("READ_ALOUD_SPEECH_URL", "speech_url"),
    )
    speech_timeout: float = Field(
        default=30.0,
        ge=1,
        validation_alias=AliasChoices("READ_ALOUD_SPEECH_TIMEOUT", "speech_timeout"),
    )
    speech_max_attempts: int = Field(
        default=3,
        ge=1,
        validation_alias=AliasChoices(
            "READ_ALOUD_MAX_ATTEMPTS",
            "speech_max_attempts",
        ),
    )
    retry_backoff_seconds: float = Field(
        default=1.0,
        ge=0,
        validation_alias=AliasChoices(
            "READ_ALOUD_RETRY_BACKOFF",
            "retry_backoff_seconds",
        ),
    )

    preload_batch_size: int = Field(
        default=2,
        ge=1,
        validation_alias=AliasChoices(
            "READ_ALOUD_PRELOAD_BATCH_SIZE",
            "preload_batch_size",
        ),
        description="How many paragraphs are synthesized concurrently while preloading.",
    )
    paragraph_pause_seconds: float = Field(
        default=0.7,
        ge=0,
        validation_alias=AliasChoices(
            "READ_ALOUD_PARAGRAPH_PAUSE",
            "paragraph_pause_seconds",
        ),
    )
    error_skip_delay_seconds: float = Field(
        default=0.5,
        ge=0,
        validation_alias=AliasChoices(
            "READ_ALOUD_ERROR_SKIP_DELAY",
            "error_skip_delay_seconds",
        ),
    )
    word_poll_interval_seconds: float = Field(
        default=0.05,
        gt=0,
        validation_alias=AliasChoices(
            "READ_ALOUD_WORD_POLL_INTERVAL",
            "word_poll_interval_seconds",
        ),
    )
    playback_error_retries: int = Field(
        default=2,
        ge=0,
        validation_alias=AliasChoices(
            "READ_ALOUD_PLAYBACK_ERROR_RETRIES",
            "playback_error_retries",
        ),
    )

    audio_output: Literal["clock", "pygame"] = Field(
        default="clock",
        validation_alias=AliasChoices("READ_ALOUD_AUDIO_OUTPUT", "audio_output"),
    )

    logging_settings_path: Path = Field(
        default_factory=lambda: Path("logging_settings.conf"),
        validation_alias=AliasChoices(
            "LOGGING_SETTINGS_PATH",
            "logging_settings_path",
        ),
    )
    log_dir: Path = Field(
        default_factory=lambda: Path("logs/sessions"),
        validation_alias=AliasChoices("READ_ALOUD_LOG_DIR", "log_dir"),
    )

    def playback_timings(self) -> PlaybackTimings:
        return PlaybackTimings(
            paragraph_pause=self.paragraph_pause_seconds,
            error_skip_delay=self.error_skip_delay_seconds,
            word_poll_interval=self.word_poll_interval_seconds,
            playback_error_retries=self.playback_error_retries,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()


__all__ = ["PROJECT_ROOT", "Settings", "get_settings"]

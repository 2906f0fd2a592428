"""Error types and user-facing failure records for read-aloud playback."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ReadAloudError(RuntimeError):
    """Base error raised for read-aloud failures."""


class AudioHandleReleasedError(ReadAloudError):
    """Raised when audio data is requested from a released handle."""


class RejectionReason(str, Enum):
    """Why an audio output refused to start playback."""

    NEEDS_USER_GESTURE = "needs_user_gesture"
    UNSUPPORTED_FORMAT = "unsupported_format"
    OTHER = "other"


class PlaybackRejectedError(ReadAloudError):
    """Raised by an audio output when playback cannot be started."""

    def __init__(self, reason: RejectionReason, message: str = ""):
        super().__init__(message or reason.value)
        self.reason = reason


# Non-fatal failures recorded on the engine. Each one knows the message shown
# to the listener; the engine keeps going after any of them.


@dataclass(frozen=True)
class NoAudioAvailable:
    paragraph_index: int

    @property
    def message(self) -> str:
        return f"Could not generate audio for paragraph {self.paragraph_index + 1}"


@dataclass(frozen=True)
class PlaybackRejected:
    paragraph_index: int
    reason: RejectionReason
    detail: str = ""

    @property
    def message(self) -> str:
        if self.reason is RejectionReason.NEEDS_USER_GESTURE:
            return "Please click the Read Aloud button to start audio playback"
        if self.reason is RejectionReason.UNSUPPORTED_FORMAT:
            return "Audio format not supported"
        return f"Playback failed: {self.detail}"


@dataclass(frozen=True)
class PlaybackHardwareError:
    paragraph_index: int
    detail: str = ""

    @property
    def message(self) -> str:
        return f"Audio playback error in paragraph {self.paragraph_index + 1}"


PlaybackFailure = NoAudioAvailable | PlaybackRejected | PlaybackHardwareError


__all__ = [
    "AudioHandleReleasedError",
    "NoAudioAvailable",
    "PlaybackFailure",
    "PlaybackHardwareError",
    "PlaybackRejected",
    "PlaybackRejectedError",
    "ReadAloudError",
    "RejectionReason",
]

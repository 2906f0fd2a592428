"""Decoded paragraph audio and the handle that owns its bytes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from readaloud.errors import AudioHandleReleasedError
from readaloud.schemas.speech import WordTiming

logger = logging.getLogger(__name__)


class AudioHandle:
    """Exclusive owner of one paragraph's decoded audio bytes.

    A handle is released exactly once; later ``release()`` calls are no-ops
    and reading ``data`` afterwards raises ``AudioHandleReleasedError``.
    """

    def __init__(self, data: bytes, mime_type: str = "audio/mpeg"):
        self._data: bytes | None = data
        self.mime_type = mime_type
        self.size = len(data)

    @property
    def released(self) -> bool:
        return self._data is None

    @property
    def data(self) -> bytes:
        if self._data is None:
            raise AudioHandleReleasedError("audio handle has already been released")
        return self._data

    def release(self) -> None:
        if self._data is not None:
            self._data = None
            logger.debug(f"Released audio handle ({self.size} bytes)")

    def __repr__(self) -> str:
        state = "released" if self.released else f"{self.size} bytes"
        return f"AudioHandle({self.mime_type}, {state})"


@dataclass
class ParagraphAudio:
    """Result of synthesizing one paragraph."""

    handle: AudioHandle
    words: tuple[WordTiming, ...] = ()
    duration: float = 0.0
    has_word_timing: bool = field(default=False)

    @property
    def playable_duration(self) -> float:
        """Reported duration, or the end of the last timed word when unknown."""
        if self.duration > 0:
            return self.duration
        if self.words:
            return self.words[-1].end
        return 0.0

    def release(self) -> None:
        self.handle.release()


def release_all(items: list[ParagraphAudio | None]) -> int:
    """Release every handle in ``items``; returns how many were still live."""
    released = 0
    for item in items:
        if item is not None and not item.handle.released:
            item.release()
            released += 1
    return released


__all__ = ["AudioHandle", "ParagraphAudio", "release_all"]

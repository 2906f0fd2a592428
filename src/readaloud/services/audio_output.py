"""
Audio outputs used by the read-aloud engine.

An output turns a ParagraphAudio into a live AudioPlayback. The engine owns
at most one playback at a time and drives it through play()/pause()/close(),
while the playback reports back through two callbacks:

    on_ended()      the paragraph finished playing
    on_error(exc)   the audio failed mid-play (decode / device failure)

ClockAudioOutput is silent and advances on the event-loop clock. It is the
default for headless use and what the tests drive.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Protocol

from readaloud.errors import PlaybackRejectedError, RejectionReason
from readaloud.services.paragraph_audio import ParagraphAudio

logger = logging.getLogger(__name__)


class AudioPlayback(Protocol):
    on_ended: Optional[Callable[[], None]]
    on_error: Optional[Callable[[BaseException], None]]

    @property
    def current_time(self) -> float: ...

    @property
    def duration(self) -> Optional[float]: ...

    @property
    def paused(self) -> bool: ...

    async def play(self) -> None: ...

    def pause(self) -> None: ...

    def close(self) -> None: ...


class AudioOutput(Protocol):
    def open(self, audio: ParagraphAudio) -> AudioPlayback: ...

    def close(self) -> None: ...


class ClockPlayback:
    """Silent playback that lasts ``duration`` seconds of event-loop time."""

    def __init__(self, duration: float):
        self._duration = max(0.0, duration)
        self._position = 0.0
        self._started_at: Optional[float] = None
        self._end_task: Optional[asyncio.Task] = None
        self._closed = False
        self.on_ended: Optional[Callable[[], None]] = None
        self.on_error: Optional[Callable[[BaseException], None]] = None

    @property
    def current_time(self) -> float:
        if self._started_at is None:
            return self._position
        elapsed = asyncio.get_running_loop().time() - self._started_at
        return min(self._duration, self._position + elapsed)

    @property
    def duration(self) -> Optional[float]:
        return self._duration or None

    @property
    def paused(self) -> bool:
        return self._started_at is None

    async def play(self) -> None:
        if self._closed:
            raise PlaybackRejectedError(RejectionReason.OTHER, "playback is closed")
        if not self.paused:
            return
        if self._position >= self._duration:
            self._position = 0.0
        loop = asyncio.get_running_loop()
        self._started_at = loop.time()
        self._end_task = loop.create_task(self._run_to_end())

    def pause(self) -> None:
        if self.paused:
            return
        self._position = self.current_time
        self._started_at = None
        self._cancel_end_task()

    def close(self) -> None:
        self.pause()
        self._closed = True
        self.on_ended = None
        self.on_error = None

    def fail(self, exc: BaseException) -> None:
        """Simulate a device failure; stops the clock and reports ``exc``."""
        self.pause()
        if self.on_error is not None:
            self.on_error(exc)

    async def _run_to_end(self) -> None:
        await asyncio.sleep(self._duration - self._position)
        self._position = self._duration
        self._started_at = None
        self._end_task = None
        if self.on_ended is not None:
            self.on_ended()

    def _cancel_end_task(self) -> None:
        if self._end_task is not None:
            self._end_task.cancel()
            self._end_task = None


class ClockAudioOutput:
    """Output producing ClockPlayback instances; keeps the last one opened."""

    def __init__(self) -> None:
        self.last_playback: Optional[ClockPlayback] = None
        self.opened = 0

    def open(self, audio: ParagraphAudio) -> ClockPlayback:
        # Fails like a real decoder would on freed audio
        _ = audio.handle.data
        playback = ClockPlayback(audio.playable_duration)
        self.last_playback = playback
        logger.debug(f"Opened {playback.duration or 0:.2f}s clock playback")
        self.opened += 1
        return playback

    def close(self) -> None:
        if self.last_playback is not None:
            self.last_playback.close()


__all__ = [
    "AudioOutput",
    "AudioPlayback",
    "ClockAudioOutput",
    "ClockPlayback",
]

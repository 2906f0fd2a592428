"""Sound-device output backed by ``pygame.mixer.music``.

Install with ``pip install whypals-readaloud[audio]``. The mixer has a single music
channel, which matches the engine's one-live-playback model. MP3 bytes are
loaded straight from memory; completion is detected by polling the mixer on
the event loop.
"""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Callable, Optional

import pygame

from readaloud.errors import PlaybackRejectedError, RejectionReason
from readaloud.services.paragraph_audio import ParagraphAudio

logger = logging.getLogger(__name__)

_POLL_SECONDS = 0.03


class PygamePlayback:
    def __init__(self, audio: ParagraphAudio):
        self._data = audio.handle.data
        self._duration = audio.playable_duration or None
        self._loaded = False
        self._started = False
        self._paused = True
        self._closed = False
        self._watch_task: Optional[asyncio.Task] = None
        self.on_ended: Optional[Callable[[], None]] = None
        self.on_error: Optional[Callable[[BaseException], None]] = None

    @property
    def current_time(self) -> float:
        if not self._started:
            return 0.0
        # get_pos() is -1 once the music stopped
        pos = pygame.mixer.music.get_pos()
        return max(0, pos) / 1000

    @property
    def duration(self) -> Optional[float]:
        return self._duration

    @property
    def paused(self) -> bool:
        return self._paused

    async def play(self) -> None:
        if self._closed:
            raise PlaybackRejectedError(RejectionReason.OTHER, "playback is closed")
        if not self._paused:
            return
        try:
            if not self._loaded:
                pygame.mixer.music.load(io.BytesIO(self._data), "mp3")
                self._loaded = True
        except pygame.error as e:
            raise PlaybackRejectedError(RejectionReason.UNSUPPORTED_FORMAT, str(e)) from e
        try:
            if self._started:
                pygame.mixer.music.unpause()
            else:
                pygame.mixer.music.play()
                self._started = True
        except pygame.error as e:
            raise PlaybackRejectedError(RejectionReason.OTHER, str(e)) from e
        self._paused = False
        if self._watch_task is None:
            self._watch_task = asyncio.get_running_loop().create_task(self._watch())

    def pause(self) -> None:
        if self._paused or self._closed:
            return
        pygame.mixer.music.pause()
        self._paused = True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.on_ended = None
        self.on_error = None
        if self._watch_task is not None:
            self._watch_task.cancel()
            self._watch_task = None
        if self._loaded:
            pygame.mixer.music.stop()
            pygame.mixer.music.unload()

    async def _watch(self) -> None:
        while not self._closed:
            await asyncio.sleep(_POLL_SECONDS)
            if self._paused:
                continue
            try:
                busy = pygame.mixer.music.get_busy()
            except pygame.error as e:
                logger.error(f"Mixer failed during playback: {e}")
                self._paused = True
                self._watch_task = None
                if self.on_error is not None:
                    self.on_error(e)
                return
            if not busy:
                self._paused = True
                self._watch_task = None
                if self.on_ended is not None:
                    self.on_ended()
                return


class PygameAudioOutput:
    """Opens paragraph audio on the default sound device."""

    def __init__(self, frequency: int = 44100):
        self.frequency = frequency

    def _ensure_mixer(self) -> None:
        if pygame.mixer.get_init() is None:
            pygame.mixer.init(frequency=self.frequency)
            logger.info(f"Initialized pygame mixer at {self.frequency} Hz")

    def open(self, audio: ParagraphAudio) -> PygamePlayback:
        self._ensure_mixer()
        return PygamePlayback(audio)

    def close(self) -> None:
        if pygame.mixer.get_init() is not None:
            pygame.mixer.quit()


__all__ = ["PygameAudioOutput", "PygamePlayback"]

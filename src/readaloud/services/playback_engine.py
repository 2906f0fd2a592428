"""
Sequential read-aloud playback for multi-paragraph stories.

The engine preloads audio for every paragraph, then plays the paragraphs one
at a time, keeping a word-highlight cursor in sync with the playback clock.

Architecture:
    speak(paragraphs) → PreloadScheduler → [ParagraphAudio | None] → play 0..n-1

Every deferred continuation (timers, synthesis results, output callbacks)
captures the session generation when it is scheduled and does nothing if the
generation has moved on. speak(), stop(), session end and teardown all bump
the generation, so nothing scheduled before them can touch the new state.

A paragraph's audio handle is released once playback moves past it; stop(),
speak() and teardown release whatever is still cached.

Recovery never aborts the session:
- missing audio        → synthesize once more, else record NoAudioAvailable and skip
- playback error       → drop the slot's audio and replay the same paragraph
                         (bounded per paragraph, then PlaybackHardwareError and skip)
- play() rejected      → record PlaybackRejected and skip

Usage:
    engine = ReadAloudEngine(speech_client, ClockAudioOutput())
    async with engine:
        engine.speak(["First paragraph.", "Second paragraph."])
        await engine.wait_until_idle()
"""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import Coroutine, Optional, Sequence

from readaloud.errors import (
    NoAudioAvailable,
    PlaybackFailure,
    PlaybackHardwareError,
    PlaybackRejected,
    PlaybackRejectedError,
    ReadAloudError,
    RejectionReason,
)
from readaloud.schemas.playback import PlaybackPhase, PlaybackSnapshot
from readaloud.schemas.speech import WordTiming
from readaloud.services.audio_output import AudioOutput, AudioPlayback
from readaloud.services.paragraph_audio import ParagraphAudio, release_all
from readaloud.services.preload import PreloadScheduler, Synthesizer
from readaloud.services.word_cursor import locate_word_index

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlaybackTimings:
    """Delays (seconds) used by the sequencer."""

    paragraph_pause: float = 0.7
    error_skip_delay: float = 0.5
    word_poll_interval: float = 0.05
    playback_error_retries: int = 2


class ReadAloudEngine:
    """
    Plays a list of paragraphs in order with word-level highlighting.

    All public methods must be called from the event loop thread. speak() is
    fire-and-forget; progress is observed through the state properties or
    snapshot().

    Attributes:
        synthesizer: Source of ParagraphAudio (usually a SpeechClient)
        output: Audio output that opens a playback per paragraph
        timings: Pause / retry / polling delays
    """

    def __init__(
        self,
        synthesizer: Synthesizer,
        output: AudioOutput,
        *,
        timings: Optional[PlaybackTimings] = None,
        preload_batch_size: int = 2,
        owns_dependencies: bool = False,
    ):
        self.synthesizer = synthesizer
        self.output = output
        self.timings = timings or PlaybackTimings()
        self._preloader = PreloadScheduler(synthesizer, batch_size=preload_batch_size)
        self._owns_dependencies = owns_dependencies

        self._phase = PlaybackPhase.IDLE
        self._generation = 0
        self._closed = False
        self._paragraphs: tuple[str, ...] = ()
        self._preloaded: list[Optional[ParagraphAudio]] = []
        self._playback: Optional[AudioPlayback] = None
        self._playback_retries: dict[int, int] = {}
        self._pending_advance: Optional[asyncio.TimerHandle] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._tasks: set[asyncio.Task] = set()
        self._idle = asyncio.Event()
        self._idle.set()

        self.current_paragraph_index = -1
        self.current_word_index = -1
        self.progress = 0.0
        self.loading_progress = 0.0
        self.error: Optional[str] = None
        self.last_failure: Optional[PlaybackFailure] = None

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def phase(self) -> PlaybackPhase:
        return self._phase

    @property
    def is_loading(self) -> bool:
        return self._phase is PlaybackPhase.LOADING

    @property
    def is_playing(self) -> bool:
        return self._phase in (PlaybackPhase.PLAYING, PlaybackPhase.PAUSED)

    @property
    def is_paused(self) -> bool:
        return self._phase is PlaybackPhase.PAUSED

    @property
    def paragraphs(self) -> tuple[str, ...]:
        return self._paragraphs

    @property
    def preloaded(self) -> tuple[Optional[ParagraphAudio], ...]:
        return tuple(self._preloaded)

    def get_current_words(self) -> list[WordTiming]:
        """Word timings of the paragraph being read, empty when none."""
        index = self.current_paragraph_index
        if 0 <= index < len(self._preloaded):
            audio = self._preloaded[index]
            if audio is not None:
                return list(audio.words)
        return []

    def snapshot(self) -> PlaybackSnapshot:
        return PlaybackSnapshot(
            phase=self._phase,
            is_playing=self.is_playing,
            is_paused=self.is_paused,
            is_loading=self.is_loading,
            loading_progress=self.loading_progress,
            progress=self.progress,
            paragraph_count=len(self._paragraphs),
            current_paragraph_index=self.current_paragraph_index,
            current_word_index=self.current_word_index,
            current_words=self.get_current_words(),
            error=self.error,
        )

    async def wait_until_idle(self) -> None:
        """Wait until the current session finishes or is stopped."""
        await self._idle.wait()

    # ------------------------------------------------------------------
    # Transport controls
    # ------------------------------------------------------------------

    def speak(self, paragraphs: Sequence[str]) -> None:
        """Start reading ``paragraphs``, replacing any session in progress."""
        if self._closed:
            raise ReadAloudError("read-aloud engine has been closed")
        asyncio.get_running_loop()  # RuntimeError outside the event loop

        self._clear_session()
        generation = self._generation
        self._paragraphs = tuple(paragraphs)
        self._phase = PlaybackPhase.LOADING
        self._idle.clear()
        self.error = None
        self.last_failure = None

        logger.info(f"Preparing audio for {len(self._paragraphs)} paragraph(s)")
        self._spawn(self._load_and_play(self._paragraphs, generation))

    def pause(self) -> None:
        if self._phase is not PlaybackPhase.PLAYING:
            return
        if self._playback is not None:
            self._playback.pause()
        self._phase = PlaybackPhase.PAUSED
        logger.debug(f"Paused at paragraph {self.current_paragraph_index}")

    def resume(self) -> None:
        if self._phase is not PlaybackPhase.PAUSED:
            return
        self._phase = PlaybackPhase.PLAYING
        logger.debug(f"Resumed at paragraph {self.current_paragraph_index}")
        if self._playback is not None:
            self._spawn(
                self._attempt_play(
                    self.current_paragraph_index, self._generation, self._playback
                )
            )

    def stop(self) -> None:
        """Stop reading and release every cached audio handle. Idempotent."""
        was_active = self._phase is not PlaybackPhase.IDLE
        self._clear_session()
        self._idle.set()
        if was_active:
            logger.info("Read-aloud stopped")

    async def aclose(self) -> None:
        """Tear the engine down. Safe to call more than once."""
        if self._closed:
            return
        self.stop()
        self._closed = True

        pending = list(self._tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        if self._owns_dependencies:
            close = getattr(self.synthesizer, "aclose", None)
            if close is not None:
                await close()
            self.output.close()

    async def __aenter__(self) -> "ReadAloudEngine":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Session plumbing
    # ------------------------------------------------------------------

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and not self._closed

    def _halt(self) -> None:
        """Invalidate pending continuations and return the transport to idle."""
        self._generation += 1
        self._cancel_pending_advance()
        self._stop_word_polling()
        self._detach_playback()
        self._phase = PlaybackPhase.IDLE
        self.current_paragraph_index = -1
        self.current_word_index = -1
        self.progress = 0.0

    def _clear_session(self) -> None:
        self._halt()
        released = release_all(self._preloaded)
        if released:
            logger.debug(f"Released {released} cached paragraph audio handle(s)")
        self._preloaded = []
        self._paragraphs = ()
        self._playback_retries.clear()
        self.loading_progress = 0.0

    def _finish(self) -> None:
        logger.info(f"Finished reading {len(self._paragraphs)} paragraph(s)")
        self._halt()
        self._idle.set()

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Read-aloud task failed", exc_info=task.exception())

    def _record_failure(self, failure: PlaybackFailure) -> None:
        self.last_failure = failure
        self.error = failure.message

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def _load_and_play(self, paragraphs: tuple[str, ...], generation: int) -> None:
        def _on_progress(percent: int) -> None:
            if self._is_current(generation):
                self.loading_progress = float(percent)

        results = await self._preloader.preload_all(
            paragraphs,
            is_cancelled=lambda: not self._is_current(generation),
            on_progress=_on_progress,
        )

        if not self._is_current(generation):
            released = release_all(results)
            logger.info(f"Discarded {released} preloaded paragraph(s) from a stopped session")
            return

        self._preloaded = results
        self._phase = PlaybackPhase.PLAYING
        self._play_paragraph(0, generation)

    # ------------------------------------------------------------------
    # Sequencing
    # ------------------------------------------------------------------

    def _play_paragraph(self, index: int, generation: int) -> None:
        if not self._is_current(generation):
            return

        self._cancel_pending_advance()
        self._stop_word_polling()
        self._detach_playback()

        previous = self.current_paragraph_index
        if 0 <= previous < index:
            self._release_slot(previous)

        if index >= len(self._paragraphs):
            self._finish()
            return

        self.current_paragraph_index = index
        self.current_word_index = -1
        self.error = None
        self.last_failure = None

        audio = self._preloaded[index]
        if audio is None:
            logger.warning(f"No audio available for paragraph {index}, regenerating...")
            self._spawn(self._recover_missing(index, self._paragraphs[index], generation))
            return

        try:
            playback = self.output.open(audio)
        except Exception as e:
            self._on_playback_error(index, generation, None, e)
            return

        playback.on_ended = functools.partial(self._on_ended, index, generation, playback)
        playback.on_error = functools.partial(
            self._on_playback_error, index, generation, playback
        )
        self._playback = playback
        self._start_word_polling(index, generation, playback, audio.words)
        self._spawn(self._attempt_play(index, generation, playback))

    async def _recover_missing(self, index: int, text: str, generation: int) -> None:
        try:
            audio = await self.synthesizer.synthesize(text)
        except Exception as e:
            logger.error(f"Re-synthesis raised for paragraph {index}: {e}")
            audio = None

        if not self._is_current(generation):
            if audio is not None:
                audio.release()
            return

        if audio is not None:
            self._preloaded[index] = audio
            self._play_paragraph(index, generation)
            return

        failure = NoAudioAvailable(index)
        logger.error(failure.message)
        self._record_failure(failure)
        self._schedule_paragraph(index + 1, self.timings.error_skip_delay, generation)

    async def _attempt_play(
        self, index: int, generation: int, playback: AudioPlayback
    ) -> None:
        if not self._is_current(generation) or playback is not self._playback:
            return
        # Paused between paragraphs: resume() starts this playback later
        if self._phase is PlaybackPhase.PAUSED:
            return

        try:
            await playback.play()
            return
        except PlaybackRejectedError as e:
            failure = PlaybackRejected(index, e.reason, str(e))
        except Exception as e:
            failure = PlaybackRejected(index, RejectionReason.OTHER, str(e))

        if not self._is_current(generation) or playback is not self._playback:
            return

        logger.error(
            f"Error playing paragraph {index}: {failure.reason.value} ({failure.detail})"
        )
        self._stop_word_polling()
        self._detach_playback()
        self._record_failure(failure)
        self._schedule_paragraph(index + 1, self.timings.error_skip_delay, generation)

    def _on_ended(self, index: int, generation: int, playback: AudioPlayback) -> None:
        if not self._is_current(generation) or playback is not self._playback:
            return
        self._stop_word_polling()
        self.current_word_index = -1
        self.progress = (index + 1) / len(self._paragraphs) * 100
        self._schedule_paragraph(index + 1, self.timings.paragraph_pause, generation)

    def _on_playback_error(
        self,
        index: int,
        generation: int,
        playback: Optional[AudioPlayback],
        exc: BaseException,
    ) -> None:
        if not self._is_current(generation):
            return
        if playback is not None and playback is not self._playback:
            return

        logger.error(f"Audio error in paragraph {index}: {exc}")
        self._stop_word_polling()
        self._detach_playback()
        self._discard_slot(index)

        retries = self._playback_retries.get(index, 0)
        if retries >= self.timings.playback_error_retries:
            self._record_failure(PlaybackHardwareError(index, str(exc)))
            self._schedule_paragraph(index + 1, self.timings.error_skip_delay, generation)
            return

        self._playback_retries[index] = retries + 1
        self._play_paragraph(index, generation)

    def _schedule_paragraph(self, index: int, delay: float, generation: int) -> None:
        self._cancel_pending_advance()
        loop = asyncio.get_running_loop()
        self._pending_advance = loop.call_later(
            delay, self._advance, index, generation
        )

    def _advance(self, index: int, generation: int) -> None:
        self._pending_advance = None
        self._play_paragraph(index, generation)

    def _cancel_pending_advance(self) -> None:
        if self._pending_advance is not None:
            self._pending_advance.cancel()
            self._pending_advance = None

    def _release_slot(self, index: int) -> None:
        # Word timings stay readable; only the audio bytes are freed
        audio = self._preloaded[index]
        if audio is not None:
            audio.release()

    def _discard_slot(self, index: int) -> None:
        audio = self._preloaded[index]
        if audio is not None:
            audio.release()
            self._preloaded[index] = None

    def _detach_playback(self) -> None:
        playback = self._playback
        self._playback = None
        if playback is not None:
            playback.close()

    # ------------------------------------------------------------------
    # Word cursor
    # ------------------------------------------------------------------

    def _start_word_polling(
        self,
        index: int,
        generation: int,
        playback: AudioPlayback,
        words: Sequence[WordTiming],
    ) -> None:
        self._poll_task = asyncio.get_running_loop().create_task(
            self._poll_position(index, generation, playback, words)
        )

    def _stop_word_polling(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

    async def _poll_position(
        self,
        index: int,
        generation: int,
        playback: AudioPlayback,
        words: Sequence[WordTiming],
    ) -> None:
        total = len(self._paragraphs)
        while self._is_current(generation) and playback is self._playback:
            if not playback.paused:
                position = playback.current_time
                duration = playback.duration
                if duration:
                    fraction = min(position / duration, 1.0)
                    self.progress = (index + fraction) / total * 100
                if words:
                    self.current_word_index = locate_word_index(position, words)
            await asyncio.sleep(self.timings.word_poll_interval)


__all__ = ["PlaybackTimings", "ReadAloudEngine"]

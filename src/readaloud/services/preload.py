"""Batched preloading of paragraph audio ahead of playback."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Callable, Optional, Protocol, Sequence

from readaloud.services.paragraph_audio import ParagraphAudio, release_all

logger = logging.getLogger(__name__)


class Synthesizer(Protocol):
    async def synthesize(self, text: str) -> Optional[ParagraphAudio]: ...


class PreloadScheduler:
    """
    Synthesizes every paragraph of a document before playback starts.

    Paragraphs are processed in contiguous batches of ``batch_size``
    concurrent calls; a batch fully resolves before the next one is issued.
    The result list always has one slot per paragraph, in input order.
    """

    def __init__(self, synthesizer: Synthesizer, batch_size: int = 2):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.synthesizer = synthesizer
        self.batch_size = batch_size

    async def preload_all(
        self,
        paragraphs: Sequence[str],
        *,
        is_cancelled: Callable[[], bool] = lambda: False,
        on_progress: Optional[Callable[[int], None]] = None,
    ) -> list[Optional[ParagraphAudio]]:
        """
        Args:
            paragraphs: Paragraph texts in reading order
            is_cancelled: Checked before each batch; once true no new batch starts
            on_progress: Receives the rounded completion percentage after every
                         paragraph resolves (success or failure)

        Returns:
            One entry per paragraph: the audio, or None if synthesis failed or
            the paragraph was never requested because of cancellation.
        """
        total = len(paragraphs)
        results: list[Optional[ParagraphAudio]] = [None] * total
        completed = 0
        start_time = time.monotonic()

        async def _load(index: int) -> None:
            nonlocal completed
            try:
                results[index] = await self.synthesizer.synthesize(paragraphs[index])
            except Exception as e:
                logger.error(f"Synthesis raised for paragraph {index}: {e}")
            completed += 1
            if on_progress is not None:
                # round half up (12.5 -> 13)
                on_progress(math.floor(completed / total * 100 + 0.5))

        for batch_start in range(0, total, self.batch_size):
            if is_cancelled():
                logger.info(
                    f"Preload cancelled after {completed}/{total} paragraphs"
                )
                break
            batch = range(batch_start, min(batch_start + self.batch_size, total))
            try:
                await asyncio.gather(*(_load(index) for index in batch))
            except asyncio.CancelledError:
                release_all(results)
                raise

        missing = sum(1 for item in results if item is None)
        elapsed = (time.monotonic() - start_time) * 1000
        logger.info(
            f"Preloaded {total - missing}/{total} paragraphs in {elapsed:.0f}ms"
        )
        return results


__all__ = ["PreloadScheduler", "Synthesizer"]

import asyncio
import base64
import logging
from typing import Awaitable, Callable, Optional

import httpx

from readaloud.schemas.speech import SpeechRequest, SpeechResponse
from readaloud.services.paragraph_audio import AudioHandle, ParagraphAudio

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class SpeechClient:
    """
    Client for the story text-to-speech endpoint.

    Each call to synthesize() turns one paragraph into a ParagraphAudio:
    - POSTs {"text": ...} and expects base64 MP3 audio plus optional word timings
    - Retries non-success responses, responses without audio and transport
      errors with linear backoff (backoff * attempt number)
    - Never raises; an exhausted paragraph resolves to None

    A single httpx.AsyncClient is reused for connection pooling. It is created
    lazily and closed by aclose() unless it was injected by the caller.
    """

    def __init__(
        self,
        speech_url: str,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        max_attempts: int = 3,
        backoff: float = 1.0,
        sleep: Sleep = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.speech_url = speech_url
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff = backoff
        self._sleep = sleep
        self._http_client = http_client
        self._owns_client = http_client is None

    def get_http_client(self) -> httpx.AsyncClient:
        """Get the shared HTTP client, creating it on first use."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
            logger.info("Created httpx.AsyncClient for speech synthesis")
        return self._http_client

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            logger.info("Closed speech HTTP client")
        self._http_client = None

    async def synthesize(
        self, text: str, max_attempts: Optional[int] = None
    ) -> Optional[ParagraphAudio]:
        """
        Synthesize one paragraph.

        Args:
            text: Paragraph text, sent verbatim
            max_attempts: Overrides the client's attempt budget for this call

        Returns:
            ParagraphAudio owning a fresh AudioHandle, or None once every
            attempt has failed. The caller must release the handle.
        """
        attempts = max_attempts or self.max_attempts

        for attempt in range(1, attempts + 1):
            try:
                response = await self.get_http_client().post(
                    self.speech_url,
                    json=SpeechRequest(text=text).model_dump(),
                    timeout=self.timeout,
                )
                if response.is_success:
                    data = SpeechResponse.model_validate(response.json())
                    if data.audio:
                        audio = self._decode(data)
                        logger.info(
                            f"Synthesized {audio.handle.size} bytes "
                            f"({len(audio.words)} timed words) for text: {text[:50]}..."
                        )
                        return audio
                    logger.error("Speech endpoint returned no audio data")
                else:
                    logger.error(
                        f"Speech endpoint error {response.status_code}: {response.text[:200]}"
                    )
            except Exception as e:
                logger.error(
                    f"Error synthesizing speech (attempt {attempt}/{attempts}): {e}"
                )

            if attempt < attempts:
                await self._sleep(self.backoff * attempt)

        logger.warning(f"Giving up on speech after {attempts} attempt(s): {text[:50]}...")
        return None

    @staticmethod
    def _decode(data: SpeechResponse) -> ParagraphAudio:
        raw = base64.b64decode(data.audio or "", validate=True)
        words = tuple(data.words or ())
        has_word_timing = (
            data.has_word_timing
            if data.has_word_timing is not None
            else len(words) > 0
        )
        return ParagraphAudio(
            handle=AudioHandle(raw, mime_type="audio/mpeg"),
            words=words,
            duration=data.duration or 0.0,
            has_word_timing=has_word_timing,
        )


__all__ = ["SpeechClient"]

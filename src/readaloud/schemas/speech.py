"""Wire schemas for the speech synthesis endpoint."""

from pydantic import BaseModel, ConfigDict, Field


class WordTiming(BaseModel):
    """A word and the window (seconds into the paragraph audio) it is spoken in."""

    model_config = ConfigDict(frozen=True)

    word: str
    start: float = Field(ge=0)
    end: float = Field(ge=0)


class SpeechRequest(BaseModel):
    """Request body sent to the synthesis endpoint."""

    text: str


class SpeechResponse(BaseModel):
    """Successful synthesis payload.

    ``audio`` is optional here on purpose: a 200 response without audio is a
    retryable failure, not a validation error.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    audio: str | None = Field(
        default=None,
        description="Base64 encoded MP3 audio.",
    )
    words: list[WordTiming] | None = Field(default=None)
    duration: float | None = Field(default=None, ge=0)
    has_word_timing: bool | None = Field(default=None, alias="hasWordTiming")

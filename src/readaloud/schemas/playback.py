"""Observable read-aloud playback state."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from readaloud.schemas.speech import WordTiming


class PlaybackPhase(str, Enum):
    """Single source of truth for the engine's transport state."""

    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"


class PlaybackSnapshot(BaseModel):
    """Point-in-time copy of everything a UI needs to render the reader."""

    model_config = ConfigDict(frozen=True)

    phase: PlaybackPhase = PlaybackPhase.IDLE
    is_playing: bool = False
    is_paused: bool = False
    is_loading: bool = False
    loading_progress: float = Field(default=0.0, ge=0, le=100)
    progress: float = Field(default=0.0, ge=0, le=100)
    paragraph_count: int = 0
    current_paragraph_index: int = -1
    current_word_index: int = -1
    current_words: list[WordTiming] = Field(default_factory=list)
    error: str | None = None

"""
Read-Aloud Services Package.

This package contains the modules behind story read-aloud:

- speech_client: Fetches paragraph audio + word timings with retry/backoff
- preload: Synthesizes all paragraphs up front in small concurrent batches
- playback_engine: Plays paragraphs in order with word highlighting
- audio_output: Playback abstraction and the silent clock-driven output
- pygame_output: Sound-device output (optional ``audio`` extra, import directly)
- story_text: Story content → readable paragraphs, highlight states

Architecture Overview:

    ┌──────────────┐     ┌─────────────────┐     ┌──────────────┐
    │ story_text   │────▶│ PreloadScheduler│────▶│ SpeechClient │──▶ POST /api/text-to-speech
    └──────────────┘     └─────────────────┘     └──────────────┘
                                  │
                                  ▼
                         ┌─────────────────┐     ┌──────────────┐
                         │ ReadAloudEngine │────▶│ AudioOutput  │
                         └─────────────────┘     └──────────────┘
                                  │
                                  ▼
                         word cursor / progress / error (UI)
"""

from .audio_output import AudioOutput, AudioPlayback, ClockAudioOutput, ClockPlayback
from .paragraph_audio import AudioHandle, ParagraphAudio
from .playback_engine import PlaybackTimings, ReadAloudEngine
from .preload import PreloadScheduler
from .speech_client import SpeechClient
from .story_text import split_story_paragraphs
from .word_cursor import locate_word_index

__all__ = [
    "AudioHandle",
    "AudioOutput",
    "AudioPlayback",
    "ClockAudioOutput",
    "ClockPlayback",
    "ParagraphAudio",
    "PlaybackTimings",
    "PreloadScheduler",
    "ReadAloudEngine",
    "SpeechClient",
    "locate_word_index",
    "split_story_paragraphs",
]

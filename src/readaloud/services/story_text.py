"""
Story text preparation and highlight states for read-aloud.

Story content is stored as blank-line separated paragraphs. Illustrations
are embedded as ``[IMAGE:url]`` tags, either as a paragraph of their own or
inline; neither is ever read aloud.
"""

import re
from enum import Enum
from typing import List, Optional, Sequence

from readaloud.schemas.speech import WordTiming

IMAGE_TAG_PATTERN = re.compile(r"\[IMAGE:([^\]]+)\]")
FULL_IMAGE_TAG_PATTERN = re.compile(r"^\[IMAGE:([^\]]+)\]$")


class ParagraphState(str, Enum):
    PLAIN = "plain"  # nothing is being read
    COMPLETED = "completed"
    CURRENT = "current"
    UPCOMING = "upcoming"


class WordState(str, Enum):
    SPOKEN = "spoken"
    ACTIVE = "active"
    PENDING = "pending"


def extract_image_url(paragraph: str) -> Optional[str]:
    """Return the URL when the paragraph is only an image tag."""
    match = FULL_IMAGE_TAG_PATTERN.match(paragraph.strip())
    return match.group(1) if match else None


def remove_image_tags(text: str) -> str:
    return IMAGE_TAG_PATTERN.sub("", text).strip()


def split_story_paragraphs(content: str) -> List[str]:
    """Split story content into the paragraphs that should be read aloud.

    Paragraph order is preserved, so index ``i`` of the result is the i-th
    readable paragraph of the story.
    """
    paragraphs = []
    for paragraph in content.split("\n\n"):
        if extract_image_url(paragraph) is not None:
            continue
        cleaned = remove_image_tags(paragraph)
        if cleaned:
            paragraphs.append(cleaned)
    return paragraphs


def paragraph_state(
    tts_index: int, current_index: int, is_reading: bool
) -> ParagraphState:
    if not is_reading:
        return ParagraphState.PLAIN
    if tts_index < current_index:
        return ParagraphState.COMPLETED
    if tts_index == current_index:
        return ParagraphState.CURRENT
    return ParagraphState.UPCOMING


def word_states(
    words: Sequence[WordTiming], current_word_index: int
) -> List[WordState]:
    states = []
    for i in range(len(words)):
        if i < current_word_index:
            states.append(WordState.SPOKEN)
        elif i == current_word_index:
            states.append(WordState.ACTIVE)
        else:
            states.append(WordState.PENDING)
    return states


__all__ = [
    "ParagraphState",
    "WordState",
    "extract_image_url",
    "paragraph_state",
    "remove_image_tags",
    "split_story_paragraphs",
    "word_states",
]

"""Locate the word being spoken at a playback position."""

from typing import Sequence

from readaloud.schemas.speech import WordTiming


def locate_word_index(position: float, words: Sequence[WordTiming]) -> int:
    """Return the index of the word to highlight at ``position`` seconds.

    A word is active while ``start <= position <= end``. In the gap after a
    word ends and before the next one starts (or after the last word) the
    word that just ended stays highlighted. Before the first word, -1.
    """
    last = len(words) - 1
    for i, timing in enumerate(words):
        if timing.start <= position <= timing.end:
            return i
        if position > timing.end and (i == last or position < words[i + 1].start):
            return i
    return -1


__all__ = ["locate_word_index"]

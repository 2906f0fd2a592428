import asyncio
from unittest.mock import MagicMock

import pytest

pygame = pytest.importorskip("pygame")

from readaloud.errors import PlaybackRejectedError, RejectionReason  # noqa: E402
from readaloud.services import pygame_output  # noqa: E402
from readaloud.services.paragraph_audio import AudioHandle, ParagraphAudio  # noqa: E402


@pytest.fixture
def music(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    """Replace the mixer's music channel so no sound device is needed."""
    fake = MagicMock()
    fake.get_busy.return_value = True
    fake.get_pos.return_value = 1500
    monkeypatch.setattr(pygame.mixer, "music", fake)
    monkeypatch.setattr(pygame_output, "_POLL_SECONDS", 0.001)
    return fake


def _audio() -> ParagraphAudio:
    return ParagraphAudio(AudioHandle(b"ID3fake"), duration=2.0)


@pytest.mark.asyncio
async def test_play_loads_from_memory_and_reports_end(music: MagicMock):
    ended = asyncio.Event()
    playback = pygame_output.PygamePlayback(_audio())
    playback.on_ended = ended.set

    await playback.play()

    music.load.assert_called_once()
    assert music.load.call_args.args[1] == "mp3"
    music.play.assert_called_once()
    assert playback.current_time == 1.5
    assert playback.duration == 2.0

    music.get_busy.return_value = False
    await asyncio.wait_for(ended.wait(), timeout=1.0)
    assert playback.paused is True


@pytest.mark.asyncio
async def test_resume_unpauses_instead_of_restarting(music: MagicMock):
    playback = pygame_output.PygamePlayback(_audio())

    await playback.play()
    playback.pause()
    await playback.play()

    music.pause.assert_called_once()
    music.unpause.assert_called_once()
    music.play.assert_called_once()
    playback.close()
    music.unload.assert_called_once()


@pytest.mark.asyncio
async def test_undecodable_audio_is_rejected(music: MagicMock):
    music.load.side_effect = pygame.error("Unrecognized audio format")
    playback = pygame_output.PygamePlayback(_audio())

    with pytest.raises(PlaybackRejectedError) as exc_info:
        await playback.play()

    assert exc_info.value.reason is RejectionReason.UNSUPPORTED_FORMAT


@pytest.mark.asyncio
async def test_mixer_failure_reports_error(music: MagicMock):
    errors: list[BaseException] = []
    playback = pygame_output.PygamePlayback(_audio())
    playback.on_error = errors.append

    await playback.play()
    music.get_busy.side_effect = pygame.error("device lost")

    for _ in range(100):
        if errors:
            break
        await asyncio.sleep(0.005)

    assert len(errors) == 1
    assert playback.paused is True

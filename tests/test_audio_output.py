import asyncio

import pytest

from readaloud.errors import AudioHandleReleasedError, PlaybackRejectedError, RejectionReason
from readaloud.services.audio_output import ClockAudioOutput, ClockPlayback
from readaloud.services.paragraph_audio import AudioHandle, ParagraphAudio


@pytest.mark.asyncio
async def test_clock_playback_runs_to_end():
    ended = asyncio.Event()
    playback = ClockPlayback(0.02)
    playback.on_ended = ended.set

    assert playback.paused is True
    assert playback.duration == 0.02

    await playback.play()
    assert playback.paused is False

    await asyncio.wait_for(ended.wait(), timeout=1.0)
    assert playback.current_time == pytest.approx(0.02)
    assert playback.paused is True


@pytest.mark.asyncio
async def test_pause_freezes_position():
    ended: list[bool] = []
    playback = ClockPlayback(0.1)
    playback.on_ended = lambda: ended.append(True)

    await playback.play()
    await asyncio.sleep(0.02)
    playback.pause()
    position = playback.current_time

    await asyncio.sleep(0.12)

    assert playback.current_time == position
    assert 0 < position < 0.1
    assert ended == []


@pytest.mark.asyncio
async def test_close_drops_callbacks_and_rejects_play():
    ended: list[bool] = []
    playback = ClockPlayback(0.01)
    playback.on_ended = lambda: ended.append(True)

    await playback.play()
    playback.close()
    await asyncio.sleep(0.03)

    assert ended == []
    with pytest.raises(PlaybackRejectedError) as exc_info:
        await playback.play()
    assert exc_info.value.reason is RejectionReason.OTHER


@pytest.mark.asyncio
async def test_fail_reports_error():
    errors: list[BaseException] = []
    playback = ClockPlayback(1.0)
    playback.on_error = errors.append

    await playback.play()
    boom = RuntimeError("device lost")
    playback.fail(boom)

    assert errors == [boom]
    assert playback.paused is True


def test_zero_duration_is_unknown():
    assert ClockPlayback(0.0).duration is None


def test_output_refuses_released_audio():
    output = ClockAudioOutput()
    audio = ParagraphAudio(AudioHandle(b"mp3"), duration=1.0)

    playback = output.open(audio)
    assert output.last_playback is playback
    assert output.opened == 1

    audio.release()
    with pytest.raises(AudioHandleReleasedError):
        output.open(audio)
    assert output.opened == 1


def test_output_close_closes_last_playback():
    output = ClockAudioOutput()
    output.open(ParagraphAudio(AudioHandle(b"mp3"), duration=1.0))

    output.close()

    assert output.last_playback is not None
    assert output.last_playback.on_ended is None

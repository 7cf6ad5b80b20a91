import asyncio

import pytest

from mockloop.core import audio
from mockloop.core.audio import EdgeTTSNarrator, TranscriptCapture, estimate_duration, synthesize
from mockloop.core.errors import SpeechChannelError
from mockloop.core.speech import SpeechCoordinator


class FakeCommunicate:
    def __init__(self, text, voice):
        self.text = text
        self.voice = voice

    async def stream(self):
        yield {"type": "WordBoundary"}
        yield {"type": "audio", "data": b"abc"}
        yield {"type": "audio", "data": b"def"}


class BrokenCommunicate:
    def __init__(self, text, voice):
        pass

    async def stream(self):
        raise ConnectionError("service unavailable")
        yield


def test_estimate_duration():
    assert estimate_duration("one two three", words_per_minute=60) == 3


def test_synthesize_joins_audio_chunks(monkeypatch):
    monkeypatch.setattr(audio.edge_tts, "Communicate", FakeCommunicate)

    result = asyncio.run(synthesize("Hello there", "female"))

    assert result["format"] == "mp3"
    assert result["audio_data"] == "YWJjZGVm"


def test_synthesize_failure_raises_speech_error(monkeypatch):
    monkeypatch.setattr(audio.edge_tts, "Communicate", BrokenCommunicate)

    with pytest.raises(SpeechChannelError):
        asyncio.run(synthesize("Hello"))


def test_narrator_sends_payload_and_stop(monkeypatch, test_settings):
    async def fake_synthesize(text, voice):
        return {"audio_data": "", "format": "mp3", "sample_rate": 24000, "duration_seconds": 0}

    monkeypatch.setattr(audio, "synthesize", fake_synthesize)
    monkeypatch.setattr(audio, "estimate_duration", lambda text, wpm=150: 0)

    sent = []
    stops = []

    async def sink(payload):
        sent.append(payload)

    async def stop_sink():
        stops.append(True)

    async def scenario():
        narrator = EdgeTTSNarrator(sink, stop_sink, settings=test_settings)
        await narrator.say("First line.")
        narrator.cancel()
        await asyncio.sleep(0)

    asyncio.run(scenario())

    assert [p["text"] for p in sent] == ["First line."]
    assert stops == [True]


def test_transcript_capture_through_coordinator():
    capture = TranscriptCapture()
    coordinator = SpeechCoordinator(capture=capture, chunk_pause=0)
    partials, finals = [], []

    handle = coordinator.listen(partials.append, finals.append)
    capture.push_partial("bina")
    capture.push_final("binary search")
    coordinator.stop_listening(handle)
    capture.push_final("too late")

    assert partials == ["bina"]
    assert finals == ["binary search"]
    assert not capture.active


def test_narrator_tracks_stop_signal_until_done(caplog, test_settings):
    async def sink(payload):
        pass

    async def broken_stop():
        raise ConnectionError("socket closed")

    async def scenario():
        narrator = EdgeTTSNarrator(sink, broken_stop, settings=test_settings)
        narrator.cancel()
        pending = len(narrator._stop_tasks)
        for _ in range(3):
            await asyncio.sleep(0)
        return pending, len(narrator._stop_tasks)

    pending, remaining = asyncio.run(scenario())

    assert pending == 1
    assert remaining == 0
    assert "Narration stop signal failed" in caplog.text


def test_narrator_cancel_without_loop_is_a_no_op(test_settings):
    async def sink(payload):
        pass

    async def stop_sink():
        pass

    narrator = EdgeTTSNarrator(sink, stop_sink, settings=test_settings)
    narrator.cancel()

    assert not narrator._stop_tasks

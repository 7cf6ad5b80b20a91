"""
Audio backends for MockLoop

Handles:
- Text-to-Speech using Edge TTS (Microsoft), streamed to a client sink
- Speech-to-Text transcripts pushed in by the client (browser recognition)

Both plug into the SpeechCoordinator through its backend interfaces.
"""

import asyncio
import base64
import logging
from typing import Any, Awaitable, Callable

import edge_tts

from mockloop.config.settings import Settings, get_settings
from mockloop.core.errors import SpeechChannelError

logger = logging.getLogger(__name__)

# Map voice names to Edge TTS voices
EDGE_VOICES = {
    "male": "en-US-GuyNeural",
    "female": "en-US-JennyNeural",
    "professional": "en-US-AriaNeural",
    "default": "en-US-GuyNeural",
}


def estimate_duration(text: str, words_per_minute: int = 150) -> float:
    """Estimate spoken duration in seconds."""
    word_count = len(text.split())
    return word_count / max(1, words_per_minute) * 60


async def synthesize(text: str, voice: str = "default") -> dict[str, Any]:
    """
    Generate speech using Edge TTS.

    Args:
        text: Text to synthesize
        voice: Voice alias from EDGE_VOICES or a full Edge voice name

    Returns:
        Audio payload with base64 mp3 data and estimated duration

    Raises:
        SpeechChannelError: If synthesis fails
    """
    edge_voice = EDGE_VOICES.get(voice, voice or EDGE_VOICES["default"])

    try:
        communicate = edge_tts.Communicate(text, edge_voice)

        # Collect audio chunks
        audio_chunks = []
        async for chunk in communicate.stream():
            if chunk["type"] == "audio":
                audio_chunks.append(chunk["data"])
    except Exception as e:
        logger.error(f"Edge TTS failed: {e}")
        raise SpeechChannelError(f"Edge TTS failed: {e}") from e

    audio_data = b"".join(audio_chunks)

    return {
        "audio_data": base64.b64encode(audio_data).decode("utf-8"),
        "format": "mp3",
        "sample_rate": 24000,
        "duration_seconds": estimate_duration(text),
    }


class EdgeTTSNarrator:
    """
    Narration backend that synthesizes each chunk with Edge TTS and hands it
    to a sink (usually a websocket), then waits out its playback time.
    """

    def __init__(
        self,
        sink: Callable[[dict[str, Any]], Awaitable[None]],
        stop_sink: Callable[[], Awaitable[None]] | None = None,
        settings: Settings | None = None,
    ):
        """
        Args:
            sink: Receives each synthesized audio payload (plus its text)
            stop_sink: Told to stop client playback when narration is cancelled
        """
        self.settings = settings or get_settings()
        self.sink = sink
        self.stop_sink = stop_sink
        self._stop_tasks: set[asyncio.Task] = set()

    async def say(self, text: str) -> None:
        payload = await synthesize(text, self.settings.tts_voice)
        payload["text"] = text
        await self.sink(payload)

        # Client plays asynchronously; hold the channel for the playback time
        await asyncio.sleep(
            estimate_duration(text, self.settings.tts_words_per_minute)
        )

    def cancel(self) -> None:
        if self.stop_sink is None:
            return
        try:
            task = asyncio.get_running_loop().create_task(self.stop_sink())
        except RuntimeError:
            logger.debug("No running loop; stop signal not sent")
            return
        self._stop_tasks.add(task)
        task.add_done_callback(self._stop_done)

    def _stop_done(self, task: asyncio.Task) -> None:
        self._stop_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Narration stop signal failed: {task.exception()!r}")


class TranscriptCapture:
    """
    Capture backend fed by the client.

    The browser runs speech recognition and sends partial/final transcripts;
    the API layer forwards them through push_partial()/push_final().
    """

    def __init__(self):
        self._on_partial: Callable[[str], Any] | None = None
        self._on_final: Callable[[str], Any] | None = None
        self._on_error: Callable[[Exception], Any] | None = None

    @property
    def active(self) -> bool:
        return self._on_final is not None

    def start(self, on_partial, on_final, on_error) -> None:
        self._on_partial = on_partial
        self._on_final = on_final
        self._on_error = on_error

    def stop(self) -> None:
        self._on_partial = None
        self._on_final = None
        self._on_error = None

    def push_partial(self, text: str) -> None:
        if self._on_partial:
            self._on_partial(text)

    def push_final(self, text: str) -> None:
        if self._on_final:
            self._on_final(text)

    def push_error(self, error: Exception) -> None:
        if self._on_error:
            self._on_error(error)

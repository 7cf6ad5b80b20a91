"""
Speech Coordinator for MockLoop

Serializes narration (text-to-speech) and capture (speech-to-text) against
a monotonically increasing utterance epoch:
- Every speak() allocates a new epoch and supersedes the previous utterance
- Every chunk boundary and callback checks that its epoch is still current
- A stale utterance ends as Cancelled and never calls its completion handler
- cancel_all() bumps the epoch and halts the backend immediately

Backends are injected, so the same coordinator drives edge-tts over a
websocket, a terminal, or a test double.
"""

import asyncio
import inspect
import itertools
import logging
import re
from enum import Enum
from typing import Any, Callable, Protocol

from pydantic import BaseModel

from mockloop.config.settings import Settings, get_settings
from mockloop.core.errors import SpeechChannelError
from mockloop.core.tag_parser import clean_for_speech

logger = logging.getLogger(__name__)

SENTENCE_PATTERN = re.compile(r"[^.!?]+[.!?]+|[^.!?]+$")


def split_sentences(text: str) -> list[str]:
    """Split text into sentence-sized narration chunks."""
    return [chunk.strip() for chunk in SENTENCE_PATTERN.findall(text) if chunk.strip()]


# ============================================================================
# BACKEND INTERFACES
# ============================================================================

class NarrationBackend(Protocol):
    """Text-to-speech channel."""

    async def say(self, text: str) -> None:
        """Narrate one chunk; return when playback finishes."""
        ...

    def cancel(self) -> None:
        """Halt playback immediately."""
        ...


class CaptureBackend(Protocol):
    """Speech-to-text channel."""

    def start(
        self,
        on_partial: Callable[[str], None],
        on_final: Callable[[str], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        ...

    def stop(self) -> None:
        ...


class NullNarration:
    """Narration backend for text-only sessions."""

    async def say(self, text: str) -> None:
        return None

    def cancel(self) -> None:
        return None


# ============================================================================
# UTTERANCES
# ============================================================================

class UtteranceState(str, Enum):
    PENDING = "pending"
    SPEAKING = "speaking"
    DONE = "done"
    CANCELLED = "cancelled"


class Utterance(BaseModel):
    """One narration request."""

    epoch: int
    text: str
    state: UtteranceState = UtteranceState.PENDING
    chunks_played: int = 0


class ListenHandle(BaseModel):
    """Token returned by listen(); callbacks stop once it is inactive."""

    handle_id: int
    active: bool = True


class SpeechCoordinator:
    """
    Epoch-guarded narration and capture.

    At most one utterance is Speaking at a time. Listening does not cancel
    narration; ordering the two is the caller's job.
    """

    def __init__(
        self,
        narration: NarrationBackend | None = None,
        capture: CaptureBackend | None = None,
        settings: Settings | None = None,
        chunk_pause: float | None = None,
        cancel_repeats: int | None = None,
    ):
        settings = settings or get_settings()

        self.narration = narration or NullNarration()
        self.capture = capture
        self.chunk_pause = (
            settings.narration_chunk_pause_seconds if chunk_pause is None else chunk_pause
        )
        self.cancel_repeats = (
            settings.narration_cancel_repeats if cancel_repeats is None else cancel_repeats
        )

        self.epoch = 0
        self.current: Utterance | None = None
        self._interrupt: asyncio.Event | None = None

        self._handle_ids = itertools.count(1)
        self._listen_handle: ListenHandle | None = None

        self._speaking_callbacks: list[Callable[[bool], Any]] = []

    @property
    def narration_enabled(self) -> bool:
        return not isinstance(self.narration, NullNarration)

    @property
    def is_speaking(self) -> bool:
        return self.current is not None and self.current.state == UtteranceState.SPEAKING

    @property
    def is_listening(self) -> bool:
        return self._listen_handle is not None and self._listen_handle.active

    def on_speaking_change(self, callback: Callable[[bool], Any]) -> None:
        """Register a callback invoked with True/False as narration starts/stops."""
        self._speaking_callbacks.append(callback)

    # =========================================================================
    # NARRATION
    # =========================================================================

    async def speak(
        self,
        text: str,
        on_end: Callable[[], Any] | None = None,
    ) -> Utterance:
        """
        Narrate text chunk by chunk.

        Args:
            text: Text to narrate; markdown and tags are cleaned first
            on_end: Called once playback completes, unless superseded

        Returns:
            The utterance, in state Done or Cancelled
        """
        self._supersede_current()

        self.epoch += 1
        epoch = self.epoch
        interrupt = asyncio.Event()
        self._interrupt = interrupt

        utterance = Utterance(epoch=epoch, text=text)
        self.current = utterance

        chunks = split_sentences(clean_for_speech(text))

        if chunks:
            utterance.state = UtteranceState.SPEAKING
            self._notify_speaking(True)

        for i, chunk in enumerate(chunks):
            if epoch != self.epoch:
                break

            try:
                interrupted = await self._play_chunk(chunk, interrupt)
            except Exception as e:
                # A broken chunk is skipped; the rest of the utterance still plays
                logger.error(f"Narration chunk {i + 1}/{len(chunks)} failed: {e}")
                continue

            if interrupted or epoch != self.epoch:
                break

            utterance.chunks_played += 1

            if i < len(chunks) - 1 and self.chunk_pause > 0:
                try:
                    await asyncio.wait_for(interrupt.wait(), timeout=self.chunk_pause)
                except asyncio.TimeoutError:
                    pass

        if epoch != self.epoch:
            utterance.state = UtteranceState.CANCELLED
            logger.debug(f"Utterance {epoch} superseded by epoch {self.epoch}")
            return utterance

        utterance.state = UtteranceState.DONE
        self._notify_speaking(False)

        if on_end is not None:
            try:
                result = on_end()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Narration end callback error: {e}")

        return utterance

    async def _play_chunk(self, chunk: str, interrupt: asyncio.Event) -> bool:
        """
        Play one chunk, racing it against the interrupt event.

        Returns:
            True if playback was interrupted
        """
        say_task = asyncio.ensure_future(self.narration.say(chunk))
        wait_task = asyncio.ensure_future(interrupt.wait())

        try:
            done, pending = await asyncio.wait(
                {say_task, wait_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            say_task.cancel()
            wait_task.cancel()
            raise

        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        if say_task in done:
            say_task.result()
            return False
        return True

    def cancel_all(self) -> None:
        """
        Stop all narration now.

        Bumps the epoch so nothing started earlier can complete afterwards,
        then halts the backend several times since some backends resume
        after a single cancel.
        """
        was_speaking = self.is_speaking
        self._supersede_current()
        self.epoch += 1

        for _ in range(max(1, self.cancel_repeats)):
            self._halt_backend()

        if was_speaking:
            self._notify_speaking(False)

    def _supersede_current(self) -> None:
        if self.current and self.current.state in (UtteranceState.PENDING, UtteranceState.SPEAKING):
            self.current.state = UtteranceState.CANCELLED
            self._halt_backend()
        if self._interrupt is not None:
            self._interrupt.set()

    def _halt_backend(self) -> None:
        try:
            self.narration.cancel()
        except Exception as e:
            logger.warning(f"Narration cancel failed: {e}")

    def _notify_speaking(self, speaking: bool) -> None:
        for callback in self._speaking_callbacks:
            try:
                callback(speaking)
            except Exception as e:
                logger.error(f"Speaking callback error: {e}")

    # =========================================================================
    # CAPTURE
    # =========================================================================

    def listen(
        self,
        on_partial: Callable[[str], Any],
        on_final: Callable[[str], Any],
        on_error: Callable[[Exception], Any] | None = None,
    ) -> ListenHandle:
        """
        Start capturing speech.

        Returns:
            Handle to pass to stop_listening()

        Raises:
            SpeechChannelError: If no capture backend is available
        """
        if self.capture is None:
            raise SpeechChannelError("No capture backend configured")

        if self._listen_handle is not None:
            self.stop_listening(self._listen_handle)

        handle = ListenHandle(handle_id=next(self._handle_ids))

        def guard(callback):
            def wrapped(value):
                if not handle.active or callback is None:
                    return None
                try:
                    return callback(value)
                except Exception as e:
                    logger.error(f"Capture callback error: {e}")
                    return None
            return wrapped

        try:
            self.capture.start(guard(on_partial), guard(on_final), guard(on_error))
        except Exception as e:
            handle.active = False
            raise SpeechChannelError(f"Capture backend failed to start: {e}") from e

        self._listen_handle = handle
        logger.debug(f"Listening started (handle {handle.handle_id})")
        return handle

    def stop_listening(self, handle: ListenHandle | None) -> None:
        """Stop capture. Callbacks arriving afterwards are dropped."""
        if handle is None or not handle.active:
            return

        handle.active = False
        if self._listen_handle is handle:
            self._listen_handle = None
            if self.capture is not None:
                try:
                    self.capture.stop()
                except Exception as e:
                    logger.warning(f"Capture stop failed: {e}")

        logger.debug(f"Listening stopped (handle {handle.handle_id})")

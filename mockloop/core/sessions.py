"""
Session registry - entry point for starting and ending interviews.

Owns the collaborators shared by every session (router, question bank,
finalizer, result sink) and builds a SessionController per interview.
"""

import asyncio
import logging
from typing import Callable

from pydantic import BaseModel, ConfigDict

from mockloop.config.settings import Settings, get_settings
from mockloop.core.ai_reasoning import AIReasoningLayer
from mockloop.core.persistence import ResultSink, build_sink
from mockloop.core.provider_router import ProviderRouter
from mockloop.core.question_bank import FallbackQuestionBank
from mockloop.core.result_finalizer import ResultFinalizer, WeakAreaIndex
from mockloop.core.session_controller import SessionController
from mockloop.core.speech import SpeechCoordinator
from mockloop.models.interview import InterviewConfig
from mockloop.models.result import EndReason, InterviewResult

logger = logging.getLogger(__name__)


class SessionHandle(BaseModel):
    """A running interview as seen by callers."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    session_id: str
    controller: SessionController
    start_task: asyncio.Task | None = None


class SessionRegistry:
    """
    In-memory registry of interview sessions.

    Sessions are kept after completion so their status and result stay
    readable until the process exits.
    """

    def __init__(
        self,
        router: ProviderRouter,
        question_bank: FallbackQuestionBank | None = None,
        finalizer: ResultFinalizer | None = None,
        result_sink: ResultSink | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.router = router
        self.ai_reasoning = AIReasoningLayer(router, settings=self.settings)
        self.question_bank = question_bank or FallbackQuestionBank()
        self.finalizer = finalizer or ResultFinalizer(WeakAreaIndex(self.settings.weak_areas_path))
        self.result_sink = result_sink or build_sink(self.settings)

        self._sessions: dict[str, SessionHandle] = {}

    def create_session(
        self,
        config: InterviewConfig,
        speech: SpeechCoordinator | None = None,
    ) -> SessionHandle:
        """Build a session without starting it."""
        # Credentials that failed earlier get another chance, unless a
        # running session still depends on those failure marks
        if self.live_count == 0:
            self.router.reset_epoch()
        else:
            logger.info(f"Keeping provider failures: {self.live_count} session(s) running")

        controller = SessionController(
            config=config,
            ai_reasoning=self.ai_reasoning,
            speech=speech,
            question_bank=self.question_bank,
            finalizer=self.finalizer,
            result_sink=self.result_sink,
            settings=self.settings,
        )
        handle = SessionHandle(session_id=controller.session_id, controller=controller)
        self._sessions[handle.session_id] = handle

        logger.info(
            f"Created session {handle.session_id} | "
            f"type={config.interview_type.value} | difficulty={config.difficulty.value}"
        )
        return handle

    async def start_session(
        self,
        config: InterviewConfig,
        speech: SpeechCoordinator | None = None,
        configure: Callable[[SessionController], None] | None = None,
    ) -> SessionHandle:
        """
        Create a session and run its opening in the background.

        Args:
            config: Interview configuration
            speech: Narration and capture for voice sessions
            configure: Hook to register listeners before the session starts

        Returns:
            Handle whose start_task completes once the first question is asked
        """
        handle = self.create_session(config, speech)
        if configure is not None:
            configure(handle.controller)
        return self.launch(handle)

    def launch(self, handle: SessionHandle, speech: SpeechCoordinator | None = None) -> SessionHandle:
        """Run the opening of a created session in the background."""
        if handle.start_task is not None:
            logger.warning(f"Session {handle.session_id} already launched")
            return handle

        if speech is not None:
            handle.controller.speech = speech
        handle.start_task = handle.controller.spawn(handle.controller.start())
        return handle

    @property
    def live_count(self) -> int:
        """Sessions that have started and not yet ended."""
        return sum(
            1 for handle in self._sessions.values()
            if handle.start_task is not None and not handle.controller.ended
        )

    def get(self, session_id: str) -> SessionHandle | None:
        return self._sessions.get(session_id)

    async def end_session(
        self,
        handle: SessionHandle,
        reason: EndReason = EndReason.USER_ENDED,
    ) -> InterviewResult:
        """End a session; returns the same result if it already ended."""
        return await handle.controller.end_session(reason)

    async def close(self) -> None:
        """End every live session, then release shared resources."""
        for handle in list(self._sessions.values()):
            if not handle.controller.ended:
                await handle.controller.end_session()
        self._sessions.clear()

        close_sink = getattr(self.result_sink, "close", None)
        if close_sink is not None:
            await close_sink()

"""
Session Controller - State machine for a single mock interview.

This is the central coordinator for one session. It owns the session
state, asks the AI layer for questions and evaluations, narrates through
the SpeechCoordinator, runs the countdown, and funnels every ending
(threshold met, time up, user ended, no question source) through one
completion path that runs exactly once.
"""

import asyncio
import inspect
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable

from mockloop.config.settings import Settings, get_settings
from mockloop.core.ai_reasoning import AIReasoningLayer
from mockloop.core.errors import (
    DuplicateSubmissionRejected,
    NoQuestionSourceError,
    ProviderExhaustedError,
    ProviderTransientError,
    SessionAlreadyEndedError,
    SpeechChannelError,
    StateTransitionError,
)
from mockloop.core.persistence import NullResultSink, ResultSink
from mockloop.core.question_bank import (
    CODING_WRAP_UP_MESSAGE,
    NEXT_PROBLEM_MESSAGE,
    STUCK_MESSAGE,
    TIME_UP_MESSAGE,
    FallbackQuestionBank,
    fallback_intro,
)
from mockloop.core.result_finalizer import ResultFinalizer
from mockloop.core.speech import ListenHandle, SpeechCoordinator
from mockloop.models.evaluation import CodeEvaluation, Evaluation
from mockloop.models.interview import (
    InterviewConfig,
    PatternRecord,
    ProblemResult,
    SessionState,
    SessionStep,
    Turn,
    TurnKind,
    TurnRole,
)
from mockloop.models.result import EndReason, InterviewResult

logger = logging.getLogger(__name__)

PROVIDER_ERRORS = (ProviderExhaustedError, ProviderTransientError)

PROBLEM_DIFFICULTY = {
    "beginner": "easy",
    "intermediate": "medium",
    "advanced": "hard",
}


class SessionController:
    """
    Drives one interview through its steps.

    States:
        LOADING → INTRO → (QUESTION | CODING) → FEEDBACK → (QUESTION | CODING | COMPLETE)

    COMPLETE is terminal and reachable from every other step. A boolean
    ended flag is checked after every await before state is touched, so
    late provider or narration results are discarded once the session
    is over.
    """

    VALID_TRANSITIONS: dict[SessionStep, list[SessionStep]] = {
        SessionStep.LOADING: [SessionStep.INTRO, SessionStep.COMPLETE],
        SessionStep.INTRO: [SessionStep.QUESTION, SessionStep.CODING, SessionStep.COMPLETE],
        SessionStep.QUESTION: [SessionStep.FEEDBACK, SessionStep.COMPLETE],
        SessionStep.CODING: [SessionStep.FEEDBACK, SessionStep.COMPLETE],
        SessionStep.FEEDBACK: [SessionStep.QUESTION, SessionStep.CODING, SessionStep.COMPLETE],
        SessionStep.COMPLETE: [],  # Terminal state
    }

    def __init__(
        self,
        config: InterviewConfig,
        ai_reasoning: AIReasoningLayer,
        speech: SpeechCoordinator | None = None,
        question_bank: FallbackQuestionBank | None = None,
        finalizer: ResultFinalizer | None = None,
        result_sink: ResultSink | None = None,
        settings: Settings | None = None,
    ):
        """
        Args:
            config: Candidate's interview configuration
            ai_reasoning: Question generation and evaluation
            speech: Narration and capture; None means text-only
            question_bank: Static questions used when providers are exhausted
            finalizer: Builds the result at completion
            result_sink: Persistence collaborator
            settings: Settings override
        """
        self.settings = settings or get_settings()
        self.ai_reasoning = ai_reasoning
        self.speech = speech
        self.question_bank = question_bank or FallbackQuestionBank()
        self.finalizer = finalizer or ResultFinalizer()
        self.result_sink = result_sink or NullResultSink()

        self.state = SessionState(
            config=config,
            time_remaining=config.duration_minutes * 60,
        )

        self._started = False
        self._ended = False
        self._closing = False  # Time is up; only the ending may run
        self._ended_event = asyncio.Event()
        self._in_flight = False
        self._time_up_fired = False
        self._result: InterviewResult | None = None

        self._active_prompt = ""
        self._listen_handle: ListenHandle | None = None
        self._transcript_parts: list[str] = []
        self.live_transcript = ""

        self._timer_task: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()
        self.persist_task: asyncio.Task | None = None

        # Event callbacks
        self._state_change_callbacks: list[Callable[[str, SessionStep, SessionStep], Any]] = []
        self._turn_callbacks: list[Callable[[str, Turn], Any]] = []
        self._banner_callbacks: list[Callable[[str, str], Any]] = []

    @property
    def session_id(self) -> str:
        return self.state.session_id

    @property
    def ended(self) -> bool:
        return self._ended

    @property
    def winding_down(self) -> bool:
        """True once the session is ending; no new interviewer turns start."""
        return self._ended or self._closing

    @property
    def result(self) -> InterviewResult | None:
        return self._result

    @property
    def narrating(self) -> bool:
        return (
            self.speech is not None
            and self.state.config.narration_enabled
        )

    # =========================================================================
    # EVENTS
    # =========================================================================

    def on_state_change(self, callback: Callable[[str, SessionStep, SessionStep], Awaitable[None]]) -> None:
        self._state_change_callbacks.append(callback)

    def on_turn(self, callback: Callable[[str, Turn], Awaitable[None]]) -> None:
        self._turn_callbacks.append(callback)

    def on_banner(self, callback: Callable[[str, str], Awaitable[None]]) -> None:
        """Register a listener for non-fatal, user-visible problems."""
        self._banner_callbacks.append(callback)

    async def _emit(self, callbacks: list[Callable], *args) -> None:
        for callback in callbacks:
            try:
                result = callback(self.session_id, *args)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Session {self.session_id} callback error: {e}")

    async def _banner(self, message: str) -> None:
        logger.warning(f"Session {self.session_id}: {message}")
        await self._emit(self._banner_callbacks, message)

    # =========================================================================
    # STATE MACHINE
    # =========================================================================

    def _set_step(self, new_step: SessionStep) -> SessionStep:
        """Validate and apply a transition without notifying listeners."""
        old_step = self.state.step

        valid_next_steps = self.VALID_TRANSITIONS.get(old_step, [])
        if new_step not in valid_next_steps:
            raise StateTransitionError(
                f"Invalid transition from {old_step.value} to {new_step.value}. "
                f"Valid transitions: {[s.value for s in valid_next_steps]}"
            )

        self.state.step = new_step
        logger.info(f"Session {self.session_id}: {old_step.value} → {new_step.value}")
        return old_step

    async def transition_state(self, new_step: SessionStep) -> None:
        """
        Move the session to a new step.

        Raises:
            StateTransitionError: If the transition is invalid
        """
        old_step = self._set_step(new_step)
        await self._emit(self._state_change_callbacks, old_step, new_step)

    # =========================================================================
    # TASKS & TIMING
    # =========================================================================

    def spawn(self, coro) -> asyncio.Task:
        """Run a coroutine in the background; cancelled at teardown."""
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Session {self.session_id} background task failed: {error!r}")

    async def _delay(self, seconds: float) -> None:
        """Sleep, waking early if the session ends."""
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._ended_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    def _start_timer(self) -> None:
        if self._timer_task is None:
            self._timer_task = self.spawn(self._run_timer())

    async def _run_timer(self) -> None:
        while not self._ended:
            await asyncio.sleep(self.settings.tick_interval_seconds)
            await self.tick()

    async def tick(self) -> None:
        """Advance the countdown by one second."""
        if self._ended or self.state.step in (SessionStep.LOADING, SessionStep.COMPLETE):
            return

        self.state.time_remaining = max(0, self.state.time_remaining - 1)
        self.state.time_used += 1

        if self.state.time_remaining == 0 and not self._time_up_fired:
            self._time_up_fired = True
            await self._time_up()

    async def _time_up(self) -> None:
        logger.info(f"Session {self.session_id}: time's up")
        self._closing = True
        self._ended_event.set()
        await self._say(TIME_UP_MESSAGE)
        await self._complete(EndReason.TIME_UP)

    # =========================================================================
    # INTERVIEW FLOW
    # =========================================================================

    async def start(self) -> None:
        """
        Open the session: introduction, countdown, first question.

        Never blocks on providers; the introduction falls back to a static
        template.
        """
        if self._started:
            logger.warning(f"Session {self.session_id} already started")
            return
        self._started = True
        self.state.started_at = datetime.utcnow()

        try:
            intro = await self.ai_reasoning.generate_intro(self.state.config)
        except PROVIDER_ERRORS as e:
            logger.warning(f"Intro generation failed, using template: {e}")
            intro = fallback_intro(self.state.config)

        if self.winding_down:
            return

        await self.transition_state(SessionStep.INTRO)
        await self._say(intro)
        if self.winding_down:
            return

        self._start_timer()
        await self._delay(self.settings.first_question_delay_seconds)
        if self.winding_down:
            return

        await self.ask_next_question()

    async def ask_next_question(self) -> str | None:
        """
        Generate, record and narrate a new top-level question.

        Returns:
            The question text, or None if the session ended meanwhile
        """
        if self.winding_down:
            return None

        state = self.state
        state.question_number += 1
        state.follow_up_count = 0
        state.stuck_count = 0

        parsed = None
        try:
            parsed = await self.ai_reasoning.generate_question(state)
        except PROVIDER_ERRORS as e:
            logger.warning(f"Question generation failed: {e}")
            if self.winding_down:
                return None
            await self._banner("AI interviewer is busy; using a practice question.")

        if self.winding_down:
            return None

        if parsed is not None:
            text = parsed.clean_text
            is_coding = state.config.interview_type.is_coding_track
            if parsed.question_type == "coding":
                is_coding = True
            elif parsed.question_type == "concept":
                is_coding = False
            patterns = parsed.patterns
        else:
            try:
                text = self._fallback_question()
            except NoQuestionSourceError as e:
                logger.error(f"Session {self.session_id}: {e}")
                await self._banner("No interview questions are available right now. Please try again.")
                await self._complete(EndReason.NO_QUESTION_SOURCE)
                return None
            is_coding = state.config.interview_type.is_coding_track
            patterns = []

        state.is_coding_question = is_coding
        state.current_question = text
        self._active_prompt = text
        for pattern in patterns:
            state.patterns_asked.append(PatternRecord(pattern=pattern))

        await self.transition_state(SessionStep.CODING if is_coding else SessionStep.QUESTION)
        await self._say(text, TurnKind.QUESTION)
        return text

    def _fallback_question(self) -> str:
        interview_type = self.state.config.interview_type
        used = self.state.used_fallback_questions

        if self.question_bank.is_exhausted(interview_type, used):
            used.clear()

        question = self.question_bank.pick(interview_type, used)
        if question is None:
            raise NoQuestionSourceError(
                f"No provider and no fallback questions for {interview_type.value}"
            )

        used.append(question)
        return question

    async def _say(self, text: str, kind: TurnKind = TurnKind.MESSAGE) -> None:
        """Append an interviewer turn and narrate it."""
        turn = self.state.add_turn(TurnRole.AI, text, kind)
        await self._emit(self._turn_callbacks, turn)

        if not self.narrating or self._ended:
            return
        await self.speech.speak(text)

    # =========================================================================
    # ANSWERS
    # =========================================================================

    async def submit_answer(self, text: str) -> Evaluation | None:
        """
        Submit a typed answer or final voice transcript.

        Returns:
            The evaluation, or None if the submission was dropped
        """
        return await self._evaluate_and_advance(answer=text)

    async def submit_code(self, code: str, language: str | None = None) -> CodeEvaluation | None:
        """
        Submit code for the current problem.

        Returns:
            The code evaluation, or None if the submission was dropped
        """
        return await self._evaluate_and_advance(
            code=code,
            language=language or self.state.config.tech_stack,
        )

    async def _evaluate_and_advance(
        self,
        answer: str | None = None,
        code: str | None = None,
        language: str | None = None,
    ) -> Evaluation | None:
        """Single evaluation pipeline shared by typed, voice and code answers."""
        if self.winding_down:
            logger.info(f"Ignoring submission: {SessionAlreadyEndedError(self.session_id)!r}")
            return None

        if self._in_flight:
            logger.info(f"Dropping submission: {DuplicateSubmissionRejected(self.session_id)!r}")
            return None

        content = (code if code is not None else answer or "").strip()
        if not content:
            return None

        if self.state.step not in (SessionStep.QUESTION, SessionStep.CODING):
            logger.info(
                f"Ignoring submission in step {self.state.step.value} "
                f"for session {self.session_id}"
            )
            return None

        self._in_flight = True
        try:
            return await self._run_evaluation(content, code is not None, language)
        finally:
            self._in_flight = False

    async def _run_evaluation(self, content: str, is_code: bool, language: str | None) -> Evaluation | None:
        state = self.state
        question = self._active_prompt or state.current_question

        if is_code:
            turn = state.add_turn(TurnRole.CANDIDATE, f"```{language}\n{content}\n```", TurnKind.CODE)
        else:
            turn = state.add_turn(TurnRole.CANDIDATE, content, TurnKind.ANSWER)
        await self._emit(self._turn_callbacks, turn)

        await self.transition_state(SessionStep.FEEDBACK)

        try:
            if is_code:
                evaluation = await self.ai_reasoning.evaluate_code(
                    question, content, language or state.config.tech_stack, state.config
                )
            else:
                evaluation = await self.ai_reasoning.evaluate_answer(question, content, state.config)
        except PROVIDER_ERRORS as e:
            logger.warning(f"Evaluation failed, moving on: {e}")
            if self.winding_down:
                return None
            await self._banner("Couldn't evaluate that answer right now. Let's keep going.")
            await self._next_or_complete(is_code)
            return None

        if self._ended:
            return None

        self._fold(evaluation)
        if is_code:
            self._record_problem(evaluation)

        # Scored, but the session is closing; nothing else is said
        if self.winding_down:
            return evaluation

        if is_code:
            if evaluation.feedback:
                await self._say(evaluation.feedback)
                if self.winding_down:
                    return evaluation

        await self._decide_next(evaluation, is_code)
        return evaluation

    def _fold(self, evaluation: Evaluation) -> None:
        """Fold an evaluation into the running aggregates."""
        state = self.state
        state.evaluations_count += 1
        state.score_total += evaluation.score
        state.overall_score = round(state.score_total / state.evaluations_count)

        for strength in evaluation.strengths:
            if strength not in state.strengths:
                state.strengths.append(strength)
        for improvement in evaluation.improvements:
            if improvement not in state.improvements:
                state.improvements.append(improvement)

        pattern = state.current_pattern()
        if pattern is not None:
            pattern.score = evaluation.score
            pattern.solved = evaluation.score >= self.settings.solved_score_threshold

    def _record_problem(self, evaluation: CodeEvaluation) -> None:
        state = self.state
        solved = evaluation.works and evaluation.score >= self.settings.solved_score_threshold

        state.problems.append(ProblemResult(
            title=evaluation.problem_title or "Coding problem",
            difficulty=PROBLEM_DIFFICULTY.get(state.config.difficulty.value, "medium"),
            solved=solved,
            score=evaluation.score,
            optimized=evaluation.is_optimal,
        ))

        pattern = state.current_pattern()
        if pattern is not None:
            pattern.solved = solved

    async def _decide_next(self, evaluation: Evaluation, is_code: bool) -> None:
        """
        Decide what follows an evaluation.

        Options:
        1. Stuck too long: encourage and change topic
        2. Ask the evaluator's follow-up (at most two in a row)
        3. Ask a new question, or complete if the exit threshold is met
        """
        if self.winding_down:
            return

        state = self.state

        if evaluation.score < self.settings.stuck_score:
            state.stuck_count += 1
        else:
            state.stuck_count = 0

        if state.stuck_count >= self.settings.stuck_threshold:
            logger.info(f"Session {self.session_id}: candidate stuck, changing topic")
            state.stuck_count = 0
            state.follow_up_count = 0
            await self._say(STUCK_MESSAGE)
            if self.winding_down:
                return
            await self.ask_next_question()
            return

        if evaluation.follow_up and state.follow_up_count < self.settings.max_follow_ups_per_question:
            if await self._ask_follow_up(evaluation, with_feedback=not is_code):
                return

        state.follow_up_count = 0
        await self._next_or_complete(is_code)

    async def _ask_follow_up(self, evaluation: Evaluation, with_feedback: bool = True) -> bool:
        """Narrate the evaluator's follow-up. Returns False if there was nothing usable."""
        if self.winding_down:
            return True

        state = self.state
        parsed = self.ai_reasoning.parser.parse(evaluation.follow_up or "")
        if not parsed.clean_text:
            return False

        state.follow_up_count += 1
        if parsed.question_type == "coding":
            state.is_coding_question = True
        elif parsed.question_type == "concept":
            state.is_coding_question = False

        text = parsed.clean_text
        if (
            with_feedback
            and evaluation.feedback
            and evaluation.score < self.settings.low_score_feedback_threshold
        ):
            text = f"{evaluation.feedback} {text}"

        await self._delay(self.settings.follow_up_delay_seconds)
        if self.winding_down:
            return True

        self._active_prompt = parsed.clean_text
        await self.transition_state(
            SessionStep.CODING if state.is_coding_question else SessionStep.QUESTION
        )
        await self._say(text, TurnKind.FOLLOW_UP)
        return True

    async def _next_or_complete(self, after_code: bool) -> None:
        if self.winding_down:
            return

        state = self.state

        if state.config.interview_type.is_coding_track:
            if len(state.problems) >= self.settings.coding_problem_limit:
                await self._say(CODING_WRAP_UP_MESSAGE)
                await self._complete(EndReason.FINISHED)
                return
            if after_code:
                await self._say(NEXT_PROBLEM_MESSAGE)
        elif state.ai_turn_count() >= self.settings.conversational_turn_limit:
            await self._complete(EndReason.FINISHED)
            return

        if self.winding_down:
            return
        await self.ask_next_question()

    # =========================================================================
    # VOICE INPUT
    # =========================================================================

    async def start_listening(self) -> bool:
        """
        Start capturing a spoken answer.

        Returns:
            True if capture started
        """
        if self.winding_down or self.speech is None:
            return False

        self._transcript_parts = []
        self.live_transcript = ""
        try:
            self._listen_handle = self.speech.listen(
                self._on_partial_transcript,
                self._on_final_transcript,
                self._on_capture_error,
            )
        except SpeechChannelError as e:
            logger.warning(f"Voice input unavailable: {e}")
            await self._banner("Voice input is unavailable. Please type your answer.")
            return False
        return True

    async def stop_listening(self) -> Evaluation | None:
        """Stop capture and submit what was heard through the answer pipeline."""
        if self.speech is not None:
            self.speech.stop_listening(self._listen_handle)
        self._listen_handle = None

        transcript = " ".join(self._transcript_parts).strip() or self.live_transcript.strip()
        self._transcript_parts = []
        self.live_transcript = ""

        if not transcript:
            return None
        return await self.submit_answer(transcript)

    def _on_partial_transcript(self, text: str) -> None:
        if not self._ended:
            self.live_transcript = " ".join(self._transcript_parts + [text]).strip()

    def _on_final_transcript(self, text: str) -> None:
        if not self._ended and text.strip():
            self._transcript_parts.append(text.strip())
            self.live_transcript = " ".join(self._transcript_parts)

    def _on_capture_error(self, error: Exception) -> None:
        logger.warning(f"Session {self.session_id} capture error: {error}")

    # =========================================================================
    # COMPLETION
    # =========================================================================

    async def end_session(self, reason: EndReason = EndReason.USER_ENDED) -> InterviewResult:
        """
        End the interview now.

        Safe to call repeatedly; later calls return the first result.
        """
        return await self._complete(reason)

    async def _complete(self, reason: EndReason) -> InterviewResult:
        """The single path into COMPLETE. Runs its body exactly once."""
        if self._result is not None:
            return self._result

        # Everything up to the stored result is synchronous, so a concurrent
        # caller either sees no ending yet or the finished result.
        self._ended = True
        self._ended_event.set()
        self._teardown()

        old_step = self._set_step(SessionStep.COMPLETE)
        self.state.completed_at = datetime.utcnow()

        result = self.finalizer.build(self.state, reason)
        self._result = result
        self.state.add_turn(TurnRole.AI, result.closing_message)

        logger.info(
            f"Session {self.session_id} complete ({reason.value}): "
            f"score={result.overall_score}, questions={result.questions_total}"
        )

        self.persist_task = asyncio.get_running_loop().create_task(self._persist(result))

        await self._emit(self._state_change_callbacks, old_step, SessionStep.COMPLETE)
        await self._emit(self._turn_callbacks, self.state.conversation[-1])
        return result

    def _teardown(self) -> None:
        """Stop narration and capture, cancel timers and scheduled work."""
        if self.speech is not None:
            self.speech.cancel_all()
            self.speech.stop_listening(self._listen_handle)
        self._listen_handle = None

        current = asyncio.current_task()
        for task in list(self._tasks):
            if task is not current and not task.done():
                task.cancel()

    async def _persist(self, result: InterviewResult) -> bool:
        try:
            return await self.result_sink.save(result)
        except Exception as e:
            logger.error(f"Persisting session {self.session_id} failed: {e}")
            return False

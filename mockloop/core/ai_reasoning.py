"""
AI Reasoning Layer for MockLoop

Handles all AI-powered operations:
- Session introduction
- Question generation (with TYPE/PATTERN directives)
- Answer evaluation
- Code evaluation

Every call goes through the ProviderRouter. ProviderExhaustedError is
propagated so the session controller can pick its own fallback; an
unparseable evaluation is replaced by a heuristic one.
"""

import json
import logging
from typing import Any

from mockloop.config.settings import Settings, get_settings
from mockloop.core.errors import MalformedResponseError
from mockloop.core.provider_router import ProviderRouter
from mockloop.core.tag_parser import ResponseTagParser
from mockloop.models.directive import ParsedResponse
from mockloop.models.evaluation import CodeEvaluation, Evaluation
from mockloop.models.interview import InterviewConfig, SessionState, TurnRole
from mockloop.prompts.evaluator import EvaluatorPrompts
from mockloop.prompts.interviewer import InterviewerPrompts

logger = logging.getLogger(__name__)

HISTORY_TURNS = 10


class AIReasoningLayer:
    """
    Central AI reasoning component.

    Prompts are built here, sent through the router, and the responses are
    turned into typed results.
    """

    def __init__(
        self,
        router: ProviderRouter,
        parser: ResponseTagParser | None = None,
        settings: Settings | None = None,
    ):
        self.router = router
        self.parser = parser or ResponseTagParser()
        self.settings = settings or get_settings()

        # Prompt templates
        self.interviewer_prompts = InterviewerPrompts()
        self.evaluator_prompts = EvaluatorPrompts()

    def _history(self, state: SessionState) -> list[dict[str, str]]:
        """Recent conversation as chat messages, oldest first."""
        return [
            {
                "role": "assistant" if turn.role == TurnRole.AI else "user",
                "content": turn.text,
            }
            for turn in state.conversation[-HISTORY_TURNS:]
        ]

    # =========================================================================
    # INTRODUCTION & QUESTIONS
    # =========================================================================

    async def generate_intro(self, config: InterviewConfig) -> str:
        """
        Generate the session-opening line.

        Raises:
            ProviderExhaustedError: If no provider could answer
            MalformedResponseError: If the answer was empty after cleanup
        """
        response = await self.router.request(
            self.interviewer_prompts.intro_prompt(config),
            system=self.interviewer_prompts.system_prompt(config),
        )
        parsed = self.parser.parse(response)
        if not parsed.clean_text:
            raise MalformedResponseError("empty introduction")
        return parsed.clean_text

    async def generate_question(self, state: SessionState) -> ParsedResponse:
        """
        Generate the next top-level question.

        Args:
            state: Current session state (used for history and de-duplication)

        Returns:
            Parsed question with directives

        Raises:
            ProviderExhaustedError: If no provider could answer
            MalformedResponseError: If the answer was empty after cleanup
        """
        logger.info(
            f"Generating question #{state.question_number} | "
            f"type={state.config.interview_type.value} | "
            f"asked={len(state.asked_questions())}"
        )

        response = await self.router.request(
            self.interviewer_prompts.question_prompt(state),
            system=self.interviewer_prompts.system_prompt(state.config),
            history=self._history(state),
        )
        parsed = self.parser.parse(response)
        if not parsed.clean_text:
            raise MalformedResponseError("empty question")

        logger.info(
            f"Generated question: type={parsed.question_type}, patterns={parsed.patterns}"
        )
        return parsed

    # =========================================================================
    # EVALUATION
    # =========================================================================

    async def evaluate_answer(
        self,
        question: str,
        answer: str,
        config: InterviewConfig,
    ) -> Evaluation:
        """
        Evaluate a candidate's answer to a question.

        Raises:
            ProviderExhaustedError: If no provider could answer
        """
        response = await self.router.request(
            self.evaluator_prompts.answer_prompt(question, answer, config),
            temperature=0.3,
        )

        data = self._extract_json(response)
        if data is None:
            evaluation = self._get_fallback_evaluation(answer, response)
        else:
            evaluation = Evaluation(**self._evaluation_fields(data))

        logger.info(
            f"Evaluation complete: score={evaluation.score}, "
            f"follow_up={'yes' if evaluation.follow_up else 'no'}, "
            f"fallback={evaluation.is_fallback}"
        )
        self._record_score("answer_score", evaluation.score)
        return evaluation

    async def evaluate_code(
        self,
        question: str,
        code: str,
        language: str,
        config: InterviewConfig,
    ) -> CodeEvaluation:
        """
        Evaluate a code submission.

        Raises:
            ProviderExhaustedError: If no provider could answer
        """
        response = await self.router.request(
            self.evaluator_prompts.code_prompt(question, code, language, config),
            temperature=0.2,
        )

        data = self._extract_json(response)
        if data is None:
            fallback = self._get_fallback_evaluation(code, response)
            evaluation = CodeEvaluation(**fallback.model_dump(), problem_title=_title_of(question))
        else:
            evaluation = CodeEvaluation(
                **self._evaluation_fields(data),
                works=bool(data.get("works", False)),
                time_complexity=str(data.get("timeComplexity") or ""),
                space_complexity=str(data.get("spaceComplexity") or ""),
                is_optimal=bool(data.get("isOptimal", False)),
                problem_title=str(data.get("problemTitle") or _title_of(question)),
            )

        logger.info(
            f"Code evaluation complete: score={evaluation.score}, works={evaluation.works}, "
            f"complexity={evaluation.time_complexity or 'n/a'}"
        )
        self._record_score("code_score", evaluation.score)
        return evaluation

    def _extract_json(self, response: str) -> dict[str, Any] | None:
        """Parse the outermost JSON object in a response, or None."""
        try:
            json_start = response.find("{")
            json_end = response.rfind("}") + 1
            if json_start >= 0 and json_end > json_start:
                data = json.loads(response[json_start:json_end])
                if isinstance(data, dict):
                    return data
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse evaluation JSON: {e}")
        return None

    def _evaluation_fields(self, data: dict[str, Any]) -> dict[str, Any]:
        follow_up = data.get("followUp", data.get("follow_up"))
        if not isinstance(follow_up, str) or follow_up.strip().lower() in ("", "null", "none"):
            follow_up = None

        return {
            "score": _clamp_score(data.get("score")),
            "feedback": str(data.get("feedback") or ""),
            "strengths": tuple(str(s) for s in data.get("strengths") or [] if s),
            "improvements": tuple(str(s) for s in data.get("improvements") or [] if s),
            "follow_up": follow_up.strip() if follow_up else None,
        }

    def _get_fallback_evaluation(self, answer: str, response: str) -> Evaluation:
        """Heuristic evaluation when the model output cannot be parsed."""
        word_count = len(answer.split())

        # Base score on response length
        score = min(70, 30 + word_count)

        feedback = response.strip()
        if not feedback or feedback.startswith("{") or len(feedback) > 300:
            feedback = "Could not fully evaluate. Keep practicing!"

        return Evaluation(
            score=score,
            feedback=feedback,
            strengths=("Attempted the question",) if word_count else (),
            improvements=("Try to be more specific",),
            follow_up=None,
            is_fallback=True,
        )

    def _record_score(self, name: str, value: int) -> None:
        langfuse = self.router.langfuse
        if langfuse is None:
            return
        try:
            langfuse.create_score(name=name, value=value)
        except Exception as lf_err:
            logger.warning(f"Langfuse score failed: {lf_err}")


def _clamp_score(raw: Any) -> int:
    try:
        score = int(round(float(raw)))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, min(100, score))


def _title_of(question: str) -> str:
    """First line of a problem statement, without markdown emphasis."""
    first_line = question.strip().splitlines()[0] if question.strip() else "Coding problem"
    return first_line.strip("*# ").strip()[:120] or "Coding problem"

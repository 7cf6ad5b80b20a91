"""
Persistence collaborator for finished interviews.

Saving is best-effort: a failure is logged and reported as False, never
raised, so the candidate always gets to see their result.
"""

import logging
from typing import Protocol

import httpx

from mockloop.config.settings import Settings, get_settings
from mockloop.models.result import InterviewResult

logger = logging.getLogger(__name__)


class ResultSink(Protocol):
    async def save(self, result: InterviewResult) -> bool:
        ...


def result_record(result: InterviewResult) -> dict:
    """The record shape accepted by the interview store."""
    return {
        "sessionId": result.session_id,
        "interviewType": result.interview_type.value,
        "customRole": result.config.custom_role,
        "config": {
            "difficulty": result.config.difficulty.value,
            "companyTarget": result.config.company_target.value,
            "techStack": result.config.tech_stack,
            "duration": result.config.duration_minutes,
        },
        "overallScore": result.overall_score,
        "scores": {
            "problemSolving": result.scores.problem_solving,
            "communication": result.scores.communication,
            "confidence": result.scores.confidence,
            "accuracy": result.scores.accuracy,
        },
        "patternsAsked": [p.model_dump() for p in result.patterns_asked],
        "conversation": [
            {"role": t.role.value, "text": t.text, "timestamp": t.timestamp.isoformat()}
            for t in result.conversation
        ],
        "problems": [p.model_dump() for p in result.problems],
        "strengths": list(result.strengths),
        "weakPoints": list(result.weak_points),
        "suggestions": list(result.suggestions),
        "timeTaken": result.time_taken,
        "questionsAttempted": result.questions_attempted,
        "questionsTotal": result.questions_total,
        "completedEarly": result.completed_early,
    }


class NullResultSink:
    """Sink used when no store is configured."""

    async def save(self, result: InterviewResult) -> bool:
        logger.info(f"No persistence configured; result {result.session_id} kept in memory")
        return False


class HttpResultSink:
    """POSTs finished results to the interview store."""

    def __init__(
        self,
        url: str,
        client: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.url = url
        self.client = client or httpx.AsyncClient(timeout=self.settings.persistence_timeout_seconds)

    async def save(self, result: InterviewResult) -> bool:
        try:
            response = await self.client.post(self.url, json=result_record(result))
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to persist interview {result.session_id}: {e}")
            return False

        logger.info(f"Interview {result.session_id} saved")
        return True

    async def close(self):
        await self.client.aclose()


def build_sink(settings: Settings | None = None) -> ResultSink:
    settings = settings or get_settings()
    if settings.persistence_url:
        return HttpResultSink(settings.persistence_url, settings=settings)
    return NullResultSink()

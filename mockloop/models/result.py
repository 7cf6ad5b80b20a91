"""
Result models for MockLoop

The InterviewResult is the immutable snapshot handed to the persistence
collaborator once a session completes.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from mockloop.models.interview import (
    InterviewConfig,
    InterviewType,
    PatternRecord,
    ProblemResult,
    Turn,
)


class EndReason(str, Enum):
    """Why a session reached `complete`."""

    FINISHED = "finished"  # Exit threshold met
    TIME_UP = "time_up"
    USER_ENDED = "user_ended"
    NO_QUESTION_SOURCE = "no_question_source"


class ScoreBreakdown(BaseModel):
    """Per-category scores derived from the overall score (each 0-100)."""

    model_config = ConfigDict(frozen=True)

    problem_solving: int = Field(default=0, ge=0, le=100)
    communication: int = Field(default=0, ge=0, le=100)
    confidence: int = Field(default=0, ge=0, le=100)
    accuracy: int = Field(default=0, ge=0, le=100)


class InterviewResult(BaseModel):
    """Immutable record of a finished session."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    interview_type: InterviewType
    config: InterviewConfig

    overall_score: int = Field(..., ge=0, le=100)
    scores: ScoreBreakdown

    patterns_asked: tuple[PatternRecord, ...] = ()
    conversation: tuple[Turn, ...] = ()
    problems: tuple[ProblemResult, ...] = ()

    strengths: tuple[str, ...] = ()
    weak_points: tuple[str, ...] = ()
    suggestions: tuple[str, ...] = ()

    time_taken: int = Field(default=0, description="Seconds spent in the session")
    questions_attempted: int = 0
    questions_total: int = 0
    completed_early: bool = False
    end_reason: EndReason = EndReason.FINISHED
    closing_message: str = ""
    completed_at: datetime = Field(default_factory=datetime.utcnow)


class WeakArea(BaseModel):
    """One topic in the long-lived weak-area index."""

    topic: str
    count: int = 1
    last_seen: datetime = Field(default_factory=datetime.utcnow)
    improving: bool = False
    improved_at: datetime | None = None

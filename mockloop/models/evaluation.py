"""
Evaluation models for MockLoop

Defines the structures produced when a candidate answer or code submission
is scored.
"""

from pydantic import BaseModel, ConfigDict, Field


class Evaluation(BaseModel):
    """Scored feedback for one candidate turn. Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    score: int = Field(
        ..., ge=0, le=100,
        description="Overall score for the answer"
    )
    strengths: tuple[str, ...] = Field(
        default=(),
        description="What the candidate did well"
    )
    improvements: tuple[str, ...] = Field(
        default=(),
        description="What the candidate should work on"
    )
    feedback: str = Field(
        default="",
        description="One or two sentences of spoken feedback"
    )
    follow_up: str | None = Field(
        default=None,
        description="Follow-up question the interviewer may ask next"
    )
    is_fallback: bool = Field(
        default=False,
        description="Produced heuristically because the model output was unusable"
    )


class CodeEvaluation(Evaluation):
    """Evaluation of a code submission."""

    works: bool = False
    time_complexity: str = ""
    space_complexity: str = ""
    is_optimal: bool = False
    problem_title: str = ""

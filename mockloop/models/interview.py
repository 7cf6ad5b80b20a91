"""
Interview session and state models for MockLoop
"""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field


class InterviewType(str, Enum):
    """Interview track offered to the candidate."""

    DSA = "dsa"
    CODING = "coding"
    SYSTEM_DESIGN = "system-design"
    DBMS = "dbms"
    OS = "os"
    CN = "cn"
    HR = "hr"
    CUSTOM = "custom"

    @property
    def is_coding_track(self) -> bool:
        """Coding tracks default to code questions and exit on solved problems."""
        return self in (InterviewType.DSA, InterviewType.CODING)


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class CompanyTarget(str, Enum):
    FAANG = "faang"
    PRODUCT = "product"
    SERVICE = "service"
    STARTUP = "startup"


class SessionStep(str, Enum):
    """Session state machine steps."""

    LOADING = "loading"  # Preparing the opening line
    INTRO = "intro"  # Interviewer introduction being narrated
    QUESTION = "question"  # Conceptual question awaiting an answer
    CODING = "coding"  # Coding question awaiting an answer or code
    FEEDBACK = "feedback"  # Evaluating and deciding the next turn
    COMPLETE = "complete"  # Terminal


class TurnRole(str, Enum):
    AI = "ai"
    CANDIDATE = "candidate"


class TurnKind(str, Enum):
    """What a turn carries."""

    QUESTION = "question"  # Top-level question
    FOLLOW_UP = "follow_up"
    MESSAGE = "message"  # Intro, transitions, closing lines
    ANSWER = "answer"
    CODE = "code"


class InterviewConfig(BaseModel):
    """Candidate's interview configuration."""

    candidate_id: str = Field(
        default="anonymous",
        description="Key for the candidate's weak-area history"
    )
    interview_type: InterviewType = Field(
        default=InterviewType.DSA,
        description="Interview track"
    )
    custom_role: str = Field(
        default="",
        description="Role name used by custom interviews"
    )
    difficulty: Difficulty = Field(
        default=Difficulty.INTERMEDIATE,
        description="Question difficulty"
    )
    company_target: CompanyTarget = Field(
        default=CompanyTarget.PRODUCT,
        description="Company tier the candidate is preparing for"
    )
    duration_minutes: int = Field(
        default=30, ge=1, le=180,
        description="Session length in minutes"
    )
    tech_stack: str = Field(
        default="javascript",
        description="Preferred language for coding questions"
    )
    narration_enabled: bool = Field(
        default=True,
        description="Speak interviewer turns aloud"
    )


class Turn(BaseModel):
    """One entry of the conversation log."""

    role: TurnRole
    text: str
    kind: TurnKind = TurnKind.MESSAGE
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class ProblemResult(BaseModel):
    """Outcome of one coding problem."""

    title: str
    difficulty: str = "medium"
    solved: bool = False
    score: int = Field(default=0, ge=0, le=100)
    optimized: bool = False


class PatternRecord(BaseModel):
    """A DSA pattern asked during the session and how it went."""

    pattern: str
    score: int = 0
    solved: bool = False


class SessionState(BaseModel):
    """
    The single mutable aggregate of a running session.

    Only the SessionController mutates it.
    """

    session_id: str = Field(default_factory=lambda: uuid4().hex[:12])
    config: InterviewConfig = Field(default_factory=InterviewConfig)

    step: SessionStep = SessionStep.LOADING
    question_number: int = 0
    follow_up_count: int = Field(default=0, ge=0)
    stuck_count: int = Field(default=0, ge=0)

    time_remaining: int = 0
    time_used: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None

    conversation: list[Turn] = Field(default_factory=list)
    problems: list[ProblemResult] = Field(default_factory=list)
    patterns_asked: list[PatternRecord] = Field(default_factory=list)

    current_question: str = ""
    is_coding_question: bool = False
    used_fallback_questions: list[str] = Field(default_factory=list)

    # Running aggregates
    overall_score: int = 0
    score_total: int = 0
    evaluations_count: int = 0
    strengths: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)

    def add_turn(self, role: TurnRole, text: str, kind: TurnKind = TurnKind.MESSAGE) -> Turn:
        turn = Turn(role=role, text=text, kind=kind)
        self.conversation.append(turn)
        return turn

    def ai_turn_count(self) -> int:
        return sum(1 for t in self.conversation if t.role == TurnRole.AI)

    def candidate_turn_count(self) -> int:
        return sum(1 for t in self.conversation if t.role == TurnRole.CANDIDATE)

    def asked_questions(self) -> list[str]:
        """Top-level questions asked so far, oldest first."""
        return [
            t.text for t in self.conversation
            if t.kind == TurnKind.QUESTION
        ]

    def current_pattern(self) -> PatternRecord | None:
        return self.patterns_asked[-1] if self.patterns_asked else None

"""
Data models and schemas for MockLoop

Contains Pydantic models for:
- Provider chain and credentials
- Response directives
- Interview configuration and session state
- Evaluation results
- Final interview result
"""

from mockloop.models.provider import (
    Credential,
    ProviderConfig,
    ProviderChain,
    RequestShape,
)
from mockloop.models.directive import (
    CodingDirective,
    ConceptDirective,
    PatternDirective,
    ParsedResponse,
    KNOWN_PATTERNS,
)
from mockloop.models.interview import (
    InterviewConfig,
    InterviewType,
    Difficulty,
    CompanyTarget,
    SessionStep,
    SessionState,
    Turn,
    TurnRole,
    TurnKind,
    ProblemResult,
    PatternRecord,
)
from mockloop.models.evaluation import Evaluation, CodeEvaluation
from mockloop.models.result import (
    InterviewResult,
    ScoreBreakdown,
    EndReason,
    WeakArea,
)

__all__ = [
    # Provider
    "Credential",
    "ProviderConfig",
    "ProviderChain",
    "RequestShape",
    # Directive
    "CodingDirective",
    "ConceptDirective",
    "PatternDirective",
    "ParsedResponse",
    "KNOWN_PATTERNS",
    # Interview
    "InterviewConfig",
    "InterviewType",
    "Difficulty",
    "CompanyTarget",
    "SessionStep",
    "SessionState",
    "Turn",
    "TurnRole",
    "TurnKind",
    "ProblemResult",
    "PatternRecord",
    # Evaluation
    "Evaluation",
    "CodeEvaluation",
    # Result
    "InterviewResult",
    "ScoreBreakdown",
    "EndReason",
    "WeakArea",
]

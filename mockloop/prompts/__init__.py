"""
AI prompt templates for MockLoop

Contains structured prompts for:
- Interviewer persona and introduction
- Question generation
- Answer and code evaluation
"""

from mockloop.prompts.interviewer import InterviewerPrompts
from mockloop.prompts.evaluator import EvaluatorPrompts

__all__ = [
    "InterviewerPrompts",
    "EvaluatorPrompts",
]

"""
AI Evaluator Prompt Templates

Contains structured prompts for scoring:
- Spoken or typed answers
- Code submissions

Both ask for a single JSON object so the response can be parsed
without guessing.
"""

from mockloop.core.question_bank import type_label
from mockloop.models.interview import InterviewConfig


class EvaluatorPrompts:
    """
    Prompt templates for AI evaluation of answers.

    Key principles:
    - Objective scoring on a 0-100 scale
    - Identify both strengths and gaps
    - At most one follow-up question
    """

    SYSTEM_CONTEXT = """You are an expert technical interviewer evaluating a candidate's response.
Be fair but thorough in your evaluation."""

    SCORING_GUIDE = """
=== SCORING GUIDE (0-100) ===
- 85-100: Complete, accurate, well-structured, covers edge cases
- 70-84: Mostly correct with minor gaps
- 50-69: Partially correct, shows basic understanding
- 25-49: Significant gaps or misconceptions
- 0-24: Incorrect, off-topic, or no real attempt
"""

    def answer_prompt(self, question: str, answer: str, config: InterviewConfig) -> str:
        """Prompt for scoring a conversational answer."""
        return f"""{self.SYSTEM_CONTEXT}
{self.SCORING_GUIDE}
Interview Type: {type_label(config)}
Difficulty: {config.difficulty.value}

=== QUESTION ===
"{question}"

=== CANDIDATE'S ANSWER ===
"{answer}"

Evaluate the answer and respond in this JSON format ONLY:
{{
    "score": <number 0-100>,
    "feedback": "<brief constructive feedback>",
    "strengths": ["<strength 1>", "<strength 2>"],
    "improvements": ["<area 1>", "<area 2>"],
    "followUp": "<optional follow-up question or null>"
}}"""

    def code_prompt(
        self,
        question: str,
        code: str,
        language: str,
        config: InterviewConfig,
    ) -> str:
        """Prompt for scoring a code submission."""
        return f"""{self.SYSTEM_CONTEXT}
{self.SCORING_GUIDE}
Interview Type: {type_label(config)}
Difficulty: {config.difficulty.value}

=== PROBLEM ===
{question}

=== CANDIDATE'S CODE ({language}) ===
```{language}
{code}
```

Check correctness against the problem, including edge cases, and analyse complexity.
Respond in this JSON format ONLY:
{{
    "problemTitle": "<short problem title>",
    "difficulty": "easy|medium|hard",
    "score": <number 0-100>,
    "works": <true|false>,
    "timeComplexity": "<e.g. O(n)>",
    "spaceComplexity": "<e.g. O(1)>",
    "isOptimal": <true|false>,
    "feedback": "<brief constructive feedback>",
    "strengths": ["<strength 1>"],
    "improvements": ["<area 1>"],
    "followUp": "<optional follow-up question or null>"
}}"""

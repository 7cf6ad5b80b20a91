"""
Static question bank and canned interviewer lines.

Used when every provider is exhausted so a session never blocks waiting
for a question.
"""

import logging
import random

from mockloop.models.interview import InterviewConfig, InterviewType

logger = logging.getLogger(__name__)


FALLBACK_QUESTIONS: dict[InterviewType, list[str]] = {
    InterviewType.HR: [
        "Tell me about yourself and your background.",
        "What are your greatest strengths and how do they help you professionally?",
        "Describe a challenging situation you faced and how you handled it.",
        "Where do you see yourself in 5 years?",
        "Why do you want to work in this industry?",
        "Tell me about a time you worked in a team. What was your role?",
        "How do you handle pressure or stressful situations?",
        "What motivates you to do your best work?",
        "Describe a situation where you had to learn something quickly.",
        "Do you have any questions for us?",
    ],
    InterviewType.DSA: [
        "Explain the difference between an array and a linked list. When would you use each?",
        "What is time complexity? Explain Big O notation with examples.",
        "How does a hash table work? What are collision handling techniques?",
        "Explain the difference between BFS and DFS. When would you use each?",
        "What is dynamic programming? Give an example problem.",
        "Explain the two-pointer technique with an example.",
        "What is a binary search tree? What are its advantages?",
        "Explain the sliding window pattern. What problems does it solve?",
        "What is the difference between stack and queue? Give use cases.",
        "How would you detect a cycle in a linked list?",
    ],
    InterviewType.CODING: [
        "Write a function to reverse a string without using built-in methods.",
        "Find the maximum element in an array. Optimize for time complexity.",
        "Write code to check if a string is a palindrome.",
        "Implement a function to find two numbers that add up to a target sum.",
        "Write a function to remove duplicates from a sorted array in-place.",
        "Implement binary search on a sorted array.",
        "Write code to check if parentheses in a string are balanced.",
        "Find the first non-repeating character in a string.",
        "Implement a queue using two stacks.",
        "Write a function to merge two sorted arrays.",
    ],
    InterviewType.SYSTEM_DESIGN: [
        "How would you design a URL shortening service like bit.ly?",
        "Design a basic chat application. What components would you need?",
        "How would you design a cache system? What eviction policies exist?",
        "Explain how you would design a rate limiter.",
        "Design a notification system for a mobile app.",
        "How would you handle millions of file uploads efficiently?",
        "Design a simple recommendation system. What data would you need?",
        "How would you design an API gateway?",
        "Explain the trade-offs between SQL and NoSQL databases.",
        "How would you design a system to handle peak traffic?",
    ],
    InterviewType.DBMS: [
        "Explain the difference between INNER JOIN and LEFT JOIN with an example.",
        "What is normalization? Walk me through 1NF, 2NF and 3NF.",
        "What are the ACID properties of a transaction?",
        "How does an index speed up a query, and what does it cost?",
        "When would you choose a NoSQL database over a relational one?",
        "What is the difference between a clustered and a non-clustered index?",
    ],
    InterviewType.OS: [
        "What is the difference between a process and a thread?",
        "Explain what a deadlock is and the conditions required for it.",
        "How does virtual memory work?",
        "Compare round robin and shortest-job-first scheduling.",
        "What is a semaphore and how is it different from a mutex?",
        "What happens during a context switch?",
    ],
    InterviewType.CN: [
        "Walk me through what happens when you type a URL into a browser.",
        "What is the difference between TCP and UDP?",
        "Explain the TCP three-way handshake.",
        "How does DNS resolution work?",
        "What are the layers of the OSI model?",
        "What is the difference between HTTP and HTTPS?",
    ],
}

TYPE_LABELS: dict[InterviewType, str] = {
    InterviewType.DSA: "DSA",
    InterviewType.CODING: "Coding",
    InterviewType.SYSTEM_DESIGN: "System Design",
    InterviewType.DBMS: "DBMS",
    InterviewType.OS: "Operating Systems",
    InterviewType.CN: "Computer Networks",
    InterviewType.HR: "HR",
    InterviewType.CUSTOM: "Technical",
}

# ============================================================================
# CANNED INTERVIEWER LINES
# ============================================================================

INTRO_TEMPLATE = (
    "Welcome to your {label} interview! I'll be your interviewer today. "
    "Let's begin with a question to understand your knowledge. "
    "Take your time to think before answering."
)

STUCK_MESSAGE = (
    "No worries! That's a tricky one. Let's move on to something different "
    "and we can come back to this topic later."
)

TIME_UP_MESSAGE = "Time's up! Let's wrap up this session."

CODING_WRAP_UP_MESSAGE = "Great discussion! You've completed the coding portion. Let's wrap up."

NEXT_PROBLEM_MESSAGE = "Good! Let's move on to the next problem."


def type_label(config: InterviewConfig) -> str:
    if config.interview_type == InterviewType.CUSTOM and config.custom_role:
        return config.custom_role
    return TYPE_LABELS.get(config.interview_type, "Technical")


def fallback_intro(config: InterviewConfig) -> str:
    """Static opening line used when no provider can produce one."""
    return INTRO_TEMPLATE.format(label=type_label(config))


class FallbackQuestionBank:
    """
    Rotating static questions keyed by interview type.

    Selection excludes questions already used in the session. Once every
    question of a type has been used the caller starts a fresh cycle.
    """

    def __init__(
        self,
        questions: dict[InterviewType, list[str]] | None = None,
        rng: random.Random | None = None,
        default_type: InterviewType = InterviewType.DSA,
    ):
        self.questions = FALLBACK_QUESTIONS if questions is None else questions
        self.rng = rng or random.Random()
        self.default_type = default_type

    def questions_for(self, interview_type: InterviewType) -> list[str]:
        """Questions for a type, falling back to the default type's list."""
        return self.questions.get(interview_type) or self.questions.get(self.default_type, [])

    def is_exhausted(self, interview_type: InterviewType, used: list[str]) -> bool:
        pool = self.questions_for(interview_type)
        return bool(pool) and all(q in used for q in pool)

    def pick(self, interview_type: InterviewType, used: list[str]) -> str | None:
        """
        Pick a question not in `used`.

        Returns:
            A question, or None if the bank has nothing for this type
        """
        pool = self.questions_for(interview_type)
        if not pool:
            return None

        available = [q for q in pool if q not in used]
        if not available:
            logger.info(f"Fallback bank for {interview_type.value} exhausted, cycling")
            available = list(pool)

        return self.rng.choice(available)

"""
Result Finalizer for MockLoop

Collapses a finished session into an immutable InterviewResult:
- Overall score (running average, 0 when the candidate never answered)
- Per-category scores derived from it
- Deduplicated strengths and weak points, with defaults
- Study suggestions for the weak points

Also maintains the weak-area index, a JSON file tracking how often each
topic shows up as a weakness per candidate.
"""

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any

from mockloop.models.interview import SessionState
from mockloop.models.result import (
    EndReason,
    InterviewResult,
    ScoreBreakdown,
    WeakArea,
)

logger = logging.getLogger(__name__)

# Topic keyword -> what to study next
STUDY_TOPICS: dict[str, str] = {
    "sliding_window": "Sliding Window Pattern: master fixed and variable window problems",
    "two_pointer": "Two Pointer Technique: solve array problems efficiently",
    "binary_search": "Binary Search: search algorithms and their variations",
    "dp": "Dynamic Programming: memoization, tabulation and classic problems",
    "graphs": "Graph Algorithms: BFS, DFS and shortest paths",
    "trees": "Tree Data Structures: traversals, BSTs and recursion on trees",
    "recursion": "Recursion & Backtracking: build and prune search trees",
    "linked_list": "Linked List Patterns: fast/slow pointers and reversal",
    "hash": "Hash Tables & Maps: constant-time lookups and counting",
    "heap": "Heap & Priority Queue: top-k and scheduling problems",
    "greedy": "Greedy Algorithms: prove the local choice is safe",
    "complexity": "Complexity Analysis: reason about time and space before coding",
    "edge_case": "Edge Cases: empty inputs, duplicates and boundaries",
    "scalability": "Scalability Basics: load balancing, sharding and replication",
    "caching": "Caching Strategies: eviction policies and invalidation",
    "database": "Database Design: normalization, indexing and transactions",
    "communication": "Communication Skills: structure answers with the STAR method",
    "confidence": "Interview Confidence: think aloud and commit to an approach",
}

MAX_SUGGESTIONS = 5


def _normalize(topic: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", topic.lower()).strip("_")


def _dedupe(items: list[str]) -> list[str]:
    """Deduplicate case-insensitively, keeping first occurrence order."""
    seen = set()
    result = []
    for item in items:
        key = item.strip().lower()
        if key and key not in seen:
            seen.add(key)
            result.append(item.strip())
    return result


def suggest_study_topics(weak_points: list[str]) -> list[str]:
    """Map weak points to study suggestions (direct, then partial match)."""
    suggestions = []
    matched = set()

    for topic in weak_points:
        normalized = _normalize(topic)
        for key, suggestion in STUDY_TOPICS.items():
            if key in matched:
                continue
            if key == normalized or key in normalized or (normalized and normalized in key):
                suggestions.append(suggestion)
                matched.add(key)
                break

    return suggestions[:MAX_SUGGESTIONS]


class ResultFinalizer:
    """Builds the InterviewResult exactly once per session."""

    def __init__(self, weak_areas: "WeakAreaIndex | None" = None):
        self.weak_areas = weak_areas
        self._results: dict[str, InterviewResult] = {}

    def build(self, state: SessionState, reason: EndReason = EndReason.FINISHED) -> InterviewResult:
        """
        Snapshot a session into a result.

        Calling again for the same session returns the first result.

        Args:
            state: Final session state
            reason: Why the session ended

        Returns:
            Immutable InterviewResult
        """
        if state.session_id in self._results:
            return self._results[state.session_id]

        attempted = state.candidate_turn_count()
        has_attempts = attempted > 0

        if not has_attempts:
            final_score = 0
        elif state.evaluations_count > 0:
            final_score = state.overall_score
        else:
            # Answered, but no evaluation ever came back
            final_score = 50

        scores = ScoreBreakdown(
            problem_solving=final_score,
            communication=min(100, final_score + 5) if has_attempts else 0,
            confidence=max(0, final_score - 5) if has_attempts else 0,
            accuracy=final_score,
        )

        strengths = _dedupe(state.strengths)
        weak_points = _dedupe(state.improvements)

        if has_attempts:
            strengths = strengths or ["Willing to try", "Showed up for practice"]
            weak_points = weak_points or ["Could provide more detailed answers"]
            suggestions = suggest_study_topics(
                weak_points + [p.pattern for p in state.patterns_asked if not p.solved]
            ) or ["Practice more mock interviews", "Take time to fully answer questions"]
            closing = (
                "Great job! You've completed the interview. "
                f"Your overall performance score is {final_score}."
            )
        else:
            strengths = ["Showed up for practice"]
            weak_points = ["Interview ended too quickly to evaluate"]
            suggestions = ["Try completing at least a few questions for better feedback"]
            closing = "Interview ended. Try answering some questions next time for a proper evaluation!"

        result = InterviewResult(
            session_id=state.session_id,
            interview_type=state.config.interview_type,
            config=state.config,
            overall_score=final_score,
            scores=scores,
            patterns_asked=tuple(state.patterns_asked),
            conversation=tuple(state.conversation),
            problems=tuple(state.problems),
            strengths=tuple(strengths),
            weak_points=tuple(weak_points),
            suggestions=tuple(suggestions),
            time_taken=state.time_used,
            questions_attempted=attempted,
            questions_total=state.ai_turn_count(),
            completed_early=not has_attempts,
            end_reason=reason,
            closing_message=closing,
        )
        self._results[state.session_id] = result

        logger.info(
            f"Session {state.session_id} finalized: score={final_score}, "
            f"attempted={attempted}, reason={reason.value}"
        )

        if self.weak_areas is not None and has_attempts:
            try:
                self.weak_areas.merge(result)
            except OSError as e:
                logger.error(f"Weak-area index update failed: {e}")

        return result


# ============================================================================
# WEAK-AREA INDEX
# ============================================================================

class WeakAreaIndex:
    """
    Store per-candidate weak areas in a JSON file.

    Layout: {candidate_id: {"topics": [WeakArea...], "sessions": [session_id...]}}
    """

    def __init__(self, path: str | Path = "data/weak_areas.json"):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> dict[str, Any]:
        """Load the index from disk."""
        if not self.path.exists():
            return {}
        try:
            data: Any = json.loads(self.path.read_text())
        except json.JSONDecodeError:
            logger.warning(f"Weak-area index {self.path} is corrupt, starting fresh")
            return {}
        return data if isinstance(data, dict) else {}

    def save(self, data: dict[str, Any]) -> None:
        """Write the index to disk."""
        self.path.write_text(json.dumps(data, indent=2, default=str))

    def get(self, candidate_id: str) -> list[WeakArea]:
        entry = self.load().get(candidate_id, {})
        return [WeakArea(**item) for item in entry.get("topics", [])]

    def merge(self, result: InterviewResult) -> list[WeakArea]:
        """
        Fold a result's weak points and strengths into the candidate's index.

        - Known topic (case-insensitive): count += 1, last_seen updated
        - New topic: appended with count 1
        - A strength overlapping a prior topic marks it improving

        Merging the same session twice is a no-op.

        Returns:
            The candidate's weak areas after the merge
        """
        candidate_id = result.config.candidate_id
        data = self.load()
        entry = data.setdefault(candidate_id, {"topics": [], "sessions": []})

        if result.session_id in entry["sessions"]:
            logger.debug(f"Session {result.session_id} already merged for {candidate_id}")
            return [WeakArea(**item) for item in entry["topics"]]

        areas = [WeakArea(**item) for item in entry["topics"]]
        now = datetime.utcnow()

        # Prior weaknesses that now show up as strengths
        strengths = [s.lower() for s in result.strengths]
        for area in areas:
            topic = area.topic.lower()
            if any(topic in s or s in topic for s in strengths if s):
                if not area.improving:
                    area.improved_at = now
                area.improving = True

        by_topic = {area.topic.lower(): area for area in areas}
        for weak_point in result.weak_points:
            key = weak_point.strip().lower()
            if not key:
                continue
            if key in by_topic:
                by_topic[key].count += 1
                by_topic[key].last_seen = now
            else:
                area = WeakArea(topic=weak_point.strip(), last_seen=now)
                areas.append(area)
                by_topic[key] = area

        entry["topics"] = [area.model_dump(mode="json") for area in areas]
        entry["sessions"].append(result.session_id)
        self.save(data)

        logger.info(f"Weak-area index for {candidate_id}: {len(areas)} topic(s)")
        return areas

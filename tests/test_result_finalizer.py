import json

from mockloop.core.result_finalizer import (
    ResultFinalizer,
    WeakAreaIndex,
    suggest_study_topics,
)
from mockloop.models.interview import (
    InterviewConfig,
    PatternRecord,
    SessionState,
    TurnRole,
)
from mockloop.models.result import EndReason


def _state(answers=2, scores=(80, 60), strengths=(), improvements=(), candidate_id="cand-1"):
    state = SessionState(config=InterviewConfig(candidate_id=candidate_id))
    state.add_turn(TurnRole.AI, "Welcome!")
    for n in range(answers):
        state.add_turn(TurnRole.AI, f"Question {n + 1}?")
        state.add_turn(TurnRole.CANDIDATE, f"Answer {n + 1}")
    for score in scores:
        state.score_total += score
        state.evaluations_count += 1
    if state.evaluations_count:
        state.overall_score = round(state.score_total / state.evaluations_count)
    state.strengths = list(strengths)
    state.improvements = list(improvements)
    state.time_used = 600
    return state


def test_build_derives_category_scores():
    result = ResultFinalizer().build(_state(), EndReason.FINISHED)

    assert result.overall_score == 70
    assert result.scores.problem_solving == 70
    assert result.scores.accuracy == 70
    assert result.scores.communication == 75
    assert result.scores.confidence == 65
    assert result.questions_attempted == 2
    assert result.questions_total == 3
    assert result.time_taken == 600
    assert not result.completed_early


def test_derived_scores_stay_in_range():
    high = ResultFinalizer().build(_state(scores=(100,)))
    low = ResultFinalizer().build(_state(scores=(2,)))

    assert high.scores.communication == 100
    assert low.scores.confidence == 0


def test_no_answers_means_zero_and_completed_early():
    result = ResultFinalizer().build(_state(answers=0, scores=()), EndReason.USER_ENDED)

    assert result.overall_score == 0
    assert result.scores.communication == 0
    assert result.scores.confidence == 0
    assert result.completed_early
    assert result.strengths == ("Showed up for practice",)


def test_answers_without_evaluations_score_fifty():
    result = ResultFinalizer().build(_state(answers=1, scores=()))

    assert result.overall_score == 50


def test_strengths_and_weak_points_are_deduplicated_with_defaults():
    result = ResultFinalizer().build(_state(
        strengths=["Clear thinking", "clear thinking ", "Good examples"],
    ))

    assert result.strengths == ("Clear thinking", "Good examples")
    assert result.weak_points == ("Could provide more detailed answers",)
    assert result.suggestions


def test_build_is_idempotent_per_session():
    finalizer = ResultFinalizer()
    state = _state()

    first = finalizer.build(state, EndReason.TIME_UP)
    state.overall_score = 5
    second = finalizer.build(state, EndReason.USER_ENDED)

    assert second is first
    assert second.end_reason == EndReason.TIME_UP


def test_suggestions_follow_weak_points_and_unsolved_patterns():
    state = _state(improvements=["Dynamic programming (dp) basics"])
    state.patterns_asked = [PatternRecord(pattern="graphs", score=30, solved=False)]

    result = ResultFinalizer().build(state)

    assert any(s.startswith("Dynamic Programming") for s in result.suggestions)
    assert any(s.startswith("Graph Algorithms") for s in result.suggestions)


def test_suggest_study_topics_caps_the_list():
    topics = ["dp", "graphs", "trees", "heap", "greedy", "caching", "database"]

    assert len(suggest_study_topics(topics)) == 5
    assert suggest_study_topics(["astrology"]) == []


# ============================================================================
# WEAK-AREA INDEX
# ============================================================================

def test_weak_area_merge_counts_and_appends(tmp_path):
    index = WeakAreaIndex(tmp_path / "nested" / "weak.json")
    finalizer = ResultFinalizer(index)

    finalizer.build(_state(improvements=["Edge cases", "Complexity analysis"]))
    finalizer.build(_state(improvements=["edge cases", "Recursion"]))

    areas = {a.topic: a for a in index.get("cand-1")}
    assert areas["Edge cases"].count == 2
    assert areas["Complexity analysis"].count == 1
    assert areas["Recursion"].count == 1
    assert len(areas) == 3


def test_strength_overlap_marks_topic_improving(tmp_path):
    index = WeakAreaIndex(tmp_path / "weak.json")
    finalizer = ResultFinalizer(index)

    finalizer.build(_state(improvements=["Edge cases"]))
    finalizer.build(_state(
        strengths=["Handled edge cases carefully"],
        improvements=["Naming"],
    ))

    areas = {a.topic: a for a in index.get("cand-1")}
    assert areas["Edge cases"].improving
    assert areas["Edge cases"].improved_at is not None
    assert not areas["Naming"].improving


def test_merge_is_idempotent_per_session(tmp_path):
    index = WeakAreaIndex(tmp_path / "weak.json")
    result = ResultFinalizer().build(_state(improvements=["Edge cases"]))

    index.merge(result)
    index.merge(result)

    assert [a.count for a in index.get("cand-1")] == [1]


def test_sessions_without_answers_are_not_merged(tmp_path):
    index = WeakAreaIndex(tmp_path / "weak.json")

    ResultFinalizer(index).build(_state(answers=0, scores=()))

    assert index.get("cand-1") == []


def test_candidates_are_kept_apart(tmp_path):
    index = WeakAreaIndex(tmp_path / "weak.json")
    finalizer = ResultFinalizer(index)

    finalizer.build(_state(improvements=["Edge cases"], candidate_id="alice"))
    finalizer.build(_state(improvements=["Recursion"], candidate_id="bob"))

    assert [a.topic for a in index.get("alice")] == ["Edge cases"]
    assert [a.topic for a in index.get("bob")] == ["Recursion"]


def test_corrupt_index_starts_fresh(tmp_path):
    path = tmp_path / "weak.json"
    path.write_text("{not json")
    index = WeakAreaIndex(path)

    ResultFinalizer(index).build(_state(improvements=["Edge cases"]))

    data = json.loads(path.read_text())
    assert [t["topic"] for t in data["cand-1"]["topics"]] == ["Edge cases"]

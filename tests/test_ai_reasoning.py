import asyncio

import pytest

from conftest import ScriptedRouter, evaluation_json
from mockloop.core.ai_reasoning import AIReasoningLayer
from mockloop.core.errors import MalformedResponseError, ProviderExhaustedError
from mockloop.models.interview import InterviewConfig, SessionState, TurnRole


def _layer(*responses) -> AIReasoningLayer:
    return AIReasoningLayer(ScriptedRouter(responses))


def test_generate_question_parses_directives():
    layer = _layer("Interviewer: [TYPE:CODING] [PATTERN:heap] Find the k largest elements.")
    state = SessionState(config=InterviewConfig())

    parsed = asyncio.run(layer.generate_question(state))

    assert parsed.clean_text == "Find the k largest elements."
    assert parsed.question_type == "coding"
    assert parsed.patterns == ["heap"]


def test_generate_question_rejects_tag_only_output():
    layer = _layer("[TYPE:CODING]")

    with pytest.raises(MalformedResponseError):
        asyncio.run(layer.generate_question(SessionState()))


def test_exhaustion_propagates():
    layer = _layer()

    with pytest.raises(ProviderExhaustedError):
        asyncio.run(layer.generate_intro(InterviewConfig()))


def test_history_is_sent_as_chat_messages():
    state = SessionState()
    state.add_turn(TurnRole.AI, "Welcome!")
    state.add_turn(TurnRole.CANDIDATE, "Thanks.")

    history = _layer()._history(state)

    assert history == [
        {"role": "assistant", "content": "Welcome!"},
        {"role": "user", "content": "Thanks."},
    ]


def test_evaluate_answer_reads_json_inside_prose():
    raw = "Here is my evaluation:\n" + evaluation_json(
        72, follow_up="null", feedback="Solid.", strengths=["Clear"], improvements=["Depth"]
    ) + "\nHope this helps."
    layer = _layer(raw)

    evaluation = asyncio.run(layer.evaluate_answer("What is a B-tree?", "A balanced tree.", InterviewConfig()))

    assert evaluation.score == 72
    assert evaluation.follow_up is None
    assert evaluation.strengths == ("Clear",)
    assert evaluation.improvements == ("Depth",)
    assert not evaluation.is_fallback


def test_out_of_range_scores_are_clamped():
    layer = _layer(evaluation_json(140), evaluation_json("oops"))

    async def scenario():
        config = InterviewConfig()
        high = await layer.evaluate_answer("Q", "A", config)
        bad = await layer.evaluate_answer("Q", "A", config)
        return high, bad

    high, bad = asyncio.run(scenario())

    assert high.score == 100
    assert bad.score == 0


def test_non_finite_scores_count_as_zero():
    # json accepts the Infinity and NaN literals
    layer = _layer(evaluation_json(float("inf")), evaluation_json(float("nan")))

    async def scenario():
        config = InterviewConfig()
        return [await layer.evaluate_answer("Q", "A", config) for _ in range(2)]

    infinite, missing = asyncio.run(scenario())

    assert infinite.score == 0
    assert missing.score == 0


def test_unparseable_evaluation_falls_back_to_heuristic():
    layer = _layer("Great answer, very thorough!")

    evaluation = asyncio.run(
        layer.evaluate_answer("Q", "one two three four five", InterviewConfig())
    )

    assert evaluation.is_fallback
    assert evaluation.score == 35
    assert evaluation.feedback == "Great answer, very thorough!"
    assert evaluation.follow_up is None


def test_evaluate_code_reads_code_fields():
    layer = _layer(evaluation_json(
        88, works=True, isOptimal=True, timeComplexity="O(n)",
        spaceComplexity="O(1)", problemTitle="Move Zeroes",
    ))

    evaluation = asyncio.run(layer.evaluate_code(
        "**Move Zeroes**\nShift zeros to the end.", "def f(a): ...", "python", InterviewConfig()
    ))

    assert evaluation.works
    assert evaluation.is_optimal
    assert evaluation.time_complexity == "O(n)"
    assert evaluation.problem_title == "Move Zeroes"


def test_code_fallback_uses_question_title():
    layer = _layer("no json here")

    evaluation = asyncio.run(layer.evaluate_code(
        "**Move Zeroes**\nShift zeros to the end.", "def f(a): ...", "python", InterviewConfig()
    ))

    assert evaluation.is_fallback
    assert evaluation.problem_title == "Move Zeroes"
    assert not evaluation.works

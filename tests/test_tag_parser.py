import pytest

from mockloop.core.tag_parser import ResponseTagParser, clean_for_speech
from mockloop.models.directive import CodingDirective, ConceptDirective, PatternDirective


@pytest.fixture
def parser():
    return ResponseTagParser()


def test_extracts_type_and_patterns(parser):
    parsed = parser.parse(
        "[TYPE:CODING] [PATTERN:Sliding_Window] [PATTERN:two_pointers] "
        "Find the longest substring without repeating characters."
    )

    assert parsed.clean_text == "Find the longest substring without repeating characters."
    assert parsed.question_type == "coding"
    assert parsed.patterns == ["sliding_window", "two_pointers"]
    assert parsed.directives == (
        CodingDirective(),
        PatternDirective(name="sliding_window"),
        PatternDirective(name="two_pointers"),
    )


def test_last_type_tag_wins(parser):
    parsed = parser.parse("[type:coding] Explain hashing. [TYPE:CONCEPT]")

    assert parsed.question_type == "concept"
    assert isinstance(parsed.directives[0], ConceptDirective)
    assert parsed.clean_text == "Explain hashing."


def test_unknown_brackets_are_kept(parser):
    parsed = parser.parse("Given nums = [1, 2, 3] and [NOTE] return the sum.")

    assert parsed.clean_text == "Given nums = [1, 2, 3] and [NOTE] return the sum."
    assert parsed.directives == ()


def test_unrecognized_pattern_slug_passes_through(parser):
    parsed = parser.parse("[PATTERN:monotonic-queue] Sliding maximum.")

    assert parsed.patterns == ["monotonic-queue"]
    assert not parsed.directives[0].known


@pytest.mark.parametrize("raw", [
    "<s> Candidate: What is a B-tree?",
    "[SYSTEM] What is a B-tree?",
    "### Interviewer's Response: What is a B-tree?",
    "Interviewer: What is a B-tree?",
])
def test_leading_priming_artifacts_are_stripped(parser, raw):
    assert parser.parse(raw).clean_text == "What is a B-tree?"


def test_role_words_in_the_body_survive(parser):
    text = "User sessions expire after an hour. How would a Candidate: field be indexed?"

    assert parser.parse(text).clean_text == text


@pytest.mark.parametrize("raw", [
    "[TYPE:CODING] [PATTERN:dp] Climb stairs.",
    "Candidate: [TYPE:CONCEPT] Interviewer: Explain ACID.",
    "[TYPE:[TYPE:CODING]CODING] Nested tags.",
    "   plain text   ",
    "",
])
def test_parsing_clean_text_again_changes_nothing(parser, raw):
    first = parser.parse(raw)
    second = parser.parse(first.clean_text)

    assert second.clean_text == first.clean_text
    assert second.directives == ()


def test_clean_for_speech_removes_markdown():
    text = (
        "**Great** answer!\n```python\nprint(1)\n```\n"
        "- Use `dict` lookups for O(1) access. [TYPE:CODING]"
    )

    spoken = clean_for_speech(text)

    assert "**" not in spoken
    assert "```" not in spoken
    assert "[TYPE:CODING]" not in spoken
    assert "O of 1" in spoken
    assert "Here is a code example." in spoken

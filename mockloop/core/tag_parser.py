"""
Response Tag Parser for MockLoop

Turns raw interviewer output into clean text plus typed directives:
- `[TYPE:CODING]` / `[TYPE:CONCEPT]` (last occurrence wins)
- `[PATTERN:<slug>]` (all occurrences, in order, lower-cased)

Leading priming artifacts (`<s>`, `[SYSTEM]`, role prefixes such as
"Candidate:") are stripped with anchored prefix rules only; the body of
the text is never scanned for them. Unknown bracketed tokens are kept.
"""

import logging
import re

from mockloop.models.directive import (
    CodingDirective,
    ConceptDirective,
    PatternDirective,
    ParsedResponse,
)

logger = logging.getLogger(__name__)


TAG_PATTERN = re.compile(
    r"[ \t]*\[(?:TYPE:(?P<type>CODING|CONCEPT)|PATTERN:(?P<pattern>[A-Za-z0-9_-]+))\]",
    re.IGNORECASE,
)

PREFIX_RULES = [
    re.compile(r"^\s*<s>\s*", re.IGNORECASE),
    re.compile(r"^\s*\[SYSTEM\]\s*", re.IGNORECASE),
    # "### Candidate's Response:" style headers, colon optional
    re.compile(
        r"^\s*###\s*(?:Candidate|User|Interviewer)(?:'s)?(?:\s*(?:Response|Answer))?\s*:?\s*",
        re.IGNORECASE,
    ),
    # Bare role prefixes need the colon so "User sessions..." survives
    re.compile(
        r"^\s*(?:Candidate|User|Interviewer)(?:'s)?(?:\s*(?:Response|Answer))?\s*:\s*",
        re.IGNORECASE,
    ),
]


class ResponseTagParser:
    """
    Extracts directives from model output.

    parse() is idempotent: parsing the clean text again yields the same
    text and no directives.
    """

    def parse(self, raw: str) -> ParsedResponse:
        """
        Parse raw model text.

        Args:
            raw: Text as returned by the provider

        Returns:
            ParsedResponse with cleaned text and directives
        """
        text = raw or ""
        type_directive: CodingDirective | ConceptDirective | None = None
        patterns: list[PatternDirective] = []

        while True:
            before = text

            for match in TAG_PATTERN.finditer(text):
                if match.group("type"):
                    if match.group("type").upper() == "CODING":
                        type_directive = CodingDirective()
                    else:
                        type_directive = ConceptDirective()
                else:
                    patterns.append(PatternDirective(name=match.group("pattern").lower()))

            text = TAG_PATTERN.sub("", text)
            text = self._strip_prefixes(text)

            # Removing one tag can splice the halves of another together
            if text == before:
                break

        text = text.strip()

        for pattern in patterns:
            if not pattern.known:
                logger.debug(f"Unrecognized pattern slug passed through: {pattern.name}")

        directives = ([type_directive] if type_directive else []) + patterns
        return ParsedResponse(clean_text=text, directives=tuple(directives))

    def _strip_prefixes(self, text: str) -> str:
        changed = True
        while changed:
            changed = False
            for rule in PREFIX_RULES:
                stripped = rule.sub("", text, count=1)
                if stripped != text:
                    text = stripped
                    changed = True
        return text


# ============================================================================
# SPEECH CLEANUP
# ============================================================================

_SPEECH_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"```[\s\S]*?```"), " Here is a code example. "),
    (re.compile(r"`([^`]+)`"), r"\1"),
    (re.compile(r"\*\*([^*]+)\*\*"), r"\1"),
    (re.compile(r"\*([^*]+)\*"), r"\1"),
    (re.compile(r"__([^_]+)__"), r"\1"),
    (re.compile(r"#{1,6}\s*"), ""),
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),
    (re.compile(r"\[[A-Z0-9_\s:]+\]"), ""),
    (re.compile(r"^\s*[-*+]\s+", re.MULTILINE), ""),
    (re.compile(r"^\s*\d+\.\s+", re.MULTILINE), ""),
    (re.compile(r"O\(([^)]+)\)"), r" O of \1 "),
    (re.compile(r">="), " greater than or equal to "),
    (re.compile(r"<="), " less than or equal to "),
    (re.compile(r"!="), " not equal to "),
    (re.compile(r"=="), " equals "),
    (re.compile(r"->|=>"), " arrow "),
    (re.compile(r"&&"), " and "),
    (re.compile(r"\|\|"), " or "),
    (re.compile(r"\s+"), " "),
]


def clean_for_speech(text: str) -> str:
    """Remove markdown and symbols so narration reads naturally."""
    if not text:
        return ""
    for pattern, replacement in _SPEECH_RULES:
        text = pattern.sub(replacement, text)
    return text.strip()

"""
Directive models for MockLoop.

Directives are structured instructions embedded in model output as bracket
tags. They are parsed into a discriminated union so callers branch on
`kind` instead of re-testing substrings.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


# Enumerated DSA pattern slugs the interviewer prompt asks for.
KNOWN_PATTERNS: frozenset[str] = frozenset({
    "two_pointers",
    "sliding_window",
    "binary_search",
    "dp",
    "graphs",
    "trees",
    "backtracking",
    "greedy",
    "heap",
    "stack",
    "linked_list",
    "hashing",
    "bit_manipulation",
    "intervals",
    "trie",
    "union_find",
    "prefix_sum",
    "recursion",
    "sorting",
    "matrix",
})


class CodingDirective(BaseModel):
    """`[TYPE:CODING]` - the question expects code."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["coding"] = "coding"


class ConceptDirective(BaseModel):
    """`[TYPE:CONCEPT]` - the question expects a spoken/written explanation."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["concept"] = "concept"


class PatternDirective(BaseModel):
    """`[PATTERN:<slug>]` - the algorithmic pattern the question targets."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["pattern"] = "pattern"
    name: str

    @property
    def known(self) -> bool:
        return self.name in KNOWN_PATTERNS


Directive = Annotated[
    Union[CodingDirective, ConceptDirective, PatternDirective],
    Field(discriminator="kind"),
]


class ParsedResponse(BaseModel):
    """Cleaned model text plus the directives extracted from it."""

    model_config = ConfigDict(frozen=True)

    clean_text: str
    directives: tuple[Directive, ...] = ()

    @property
    def question_type(self) -> Literal["coding", "concept"] | None:
        """The type directive, if any. At most one is ever present."""
        for directive in self.directives:
            if directive.kind in ("coding", "concept"):
                return directive.kind
        return None

    @property
    def patterns(self) -> list[str]:
        return [d.name for d in self.directives if d.kind == "pattern"]

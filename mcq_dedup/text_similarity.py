"""Lexical similarity heuristics for MCQ question stems.

Three independent signals are computed for a pair of questions:

* keyword overlap: Jaccard ratio of the significant-token sets
* containment: one normalised stem is a substring of the other
* positional character agreement between the normalised stems

``are_similar`` ORs four threshold checks over those signals.  The test is
deliberately aggressive: paraphrased re-extractions of the same question should
collapse together even if that occasionally merges two distinct questions that
share most of their vocabulary.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import AbstractSet, FrozenSet, Optional, Set


PUNCTUATION_RE = re.compile(r"""[.,/#!$%^&*;:{}=\-_`~()?"']""")
WHITESPACE_RE = re.compile(r"\s+")

# Whole-word fillers removed before the strict (whitespace-free) comparison.
FILLER_WORDS = (
    "the", "a", "an", "in", "on", "at", "for", "to", "of", "with", "by",
    "is", "are", "was", "were", "has", "have", "had", "be", "been", "being",
    "this", "that", "these", "those", "which", "what", "who", "whom", "whose",
    "there", "here", "during", "especially", "typical", "primary", "following",
    "known", "called", "named", "termed",
)
FILLER_RE = re.compile(r"\b(?:" + "|".join(FILLER_WORDS) + r")\b")

KEYWORD_STOP_WORDS = frozenset({
    "the", "and", "for", "with", "that", "this", "have", "from", "they",
    "their", "which", "what", "during", "especially", "typical", "primary",
    "following",
})
MIN_KEYWORD_LENGTH = 4

KEYWORD_WEIGHT = 1.2
CONTAINS_SCORE = 0.9
CHAR_WEIGHT = 1.1

COMBINED_THRESHOLD = 0.65
KEYWORD_THRESHOLD = 0.6
CHAR_THRESHOLD = 0.7


@dataclass(frozen=True)
class SimilarityScore:
    keyword_score: float
    contains: bool
    char_score: float
    combined: float


def normalise_text(text: Optional[str]) -> str:
    """Canonical comparison form: lower-case, no punctuation, fillers or whitespace."""
    if not text:
        return ""
    lowered = PUNCTUATION_RE.sub("", text.lower())
    lowered = FILLER_RE.sub("", lowered)
    return WHITESPACE_RE.sub("", lowered)


def extract_keywords(text: Optional[str]) -> Set[str]:
    if not text:
        return set()
    stripped = PUNCTUATION_RE.sub("", text.lower())
    return {
        token
        for token in stripped.split(" ")
        if len(token) >= MIN_KEYWORD_LENGTH and token not in KEYWORD_STOP_WORDS
    }


def keyword_overlap(first: AbstractSet[str], second: AbstractSet[str]) -> float:
    union = first | second
    if not union:
        return 0.0
    return len(first & second) / len(union)


def positional_agreement(first: str, second: str) -> float:
    longest = max(len(first), len(second))
    if longest == 0:
        return 0.0
    matches = sum(1 for left, right in zip(first, second) if left == right)
    return matches / longest


@dataclass(frozen=True)
class QuestionForm:
    """Per-question values reused across every pairwise comparison."""

    normalised: str
    keywords: FrozenSet[str]


def question_form(text: Optional[str]) -> QuestionForm:
    return QuestionForm(normalised=normalise_text(text), keywords=frozenset(extract_keywords(text)))


def compare_forms(first: QuestionForm, second: QuestionForm) -> SimilarityScore:
    keyword_score = keyword_overlap(first.keywords, second.keywords)

    norm_first = first.normalised
    norm_second = second.normalised
    # An empty stem would be a substring of everything; treat it as unrelated.
    contains = bool(norm_first and norm_second) and (
        norm_first in norm_second or norm_second in norm_first
    )
    char_score = positional_agreement(norm_first, norm_second)

    combined = max(
        keyword_score * KEYWORD_WEIGHT,
        CONTAINS_SCORE if contains else 0.0,
        char_score * CHAR_WEIGHT,
    )
    return SimilarityScore(
        keyword_score=keyword_score,
        contains=contains,
        char_score=char_score,
        combined=combined,
    )


def forms_similar(first: QuestionForm, second: QuestionForm) -> bool:
    score = compare_forms(first, second)
    return (
        score.combined > COMBINED_THRESHOLD
        or score.keyword_score > KEYWORD_THRESHOLD
        or score.contains
        or score.char_score > CHAR_THRESHOLD
    )


def calculate_similarity(first: Optional[str], second: Optional[str]) -> SimilarityScore:
    return compare_forms(question_form(first), question_form(second))


def are_similar(first: Optional[str], second: Optional[str]) -> bool:
    return forms_similar(question_form(first), question_form(second))

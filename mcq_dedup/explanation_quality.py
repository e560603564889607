"""Heuristic quality score for MCQ explanations.

The score rewards longer explanations, causal/scientific connectives, list or
definition punctuation, parenthetical asides and citation-like proper nouns.
Typical explanations land between 0 and 15; the score is not clamped.
"""

from __future__ import annotations

import re
from typing import List, Optional


# (minimum exclusive word count, points), evaluated highest first.
WORD_COUNT_BANDS = (
    (30, 5),
    (20, 4),
    (15, 3),
    (10, 2),
    (5, 1),
)

CONNECTIVE_PHRASES = (
    "because",
    "therefore",
    "thus",
    "hence",
    "mechanism",
    "process",
    "function",
    "results",
    "causes",
    "leads to",
    "specifically",
    "meaning",
    "refers to",
    "characterized by",
    "known as",
)
CONNECTIVE_POINTS = 2
PUNCTUATION_POINTS = 1
PARENTHESIS_POINTS = 1
CITATION_POINTS = 2

# Typical ceiling shown to operators next to each score.
DISPLAY_MAX_SCORE = 15

CITATION_RE = re.compile(r"\b[A-Z][a-z]+ (?:et al\.|[A-Z][a-z]+\b)")
SCIENTIFIC_TERM_RE = re.compile(r"\([^)]+\)|\b[A-Z][a-z]+ (?:et al\.|[A-Z][a-z]+\b)")


def word_count_points(explanation: str) -> int:
    words = len(explanation.split())
    for minimum, points in WORD_COUNT_BANDS:
        if words > minimum:
            return points
    return 0


def has_connective(explanation: str) -> bool:
    lowered = explanation.lower()
    return any(phrase in lowered for phrase in CONNECTIVE_PHRASES)


def score_explanation(explanation: Optional[str]) -> int:
    if not isinstance(explanation, str) or not explanation.strip():
        return 0

    score = word_count_points(explanation)
    if has_connective(explanation):
        score += CONNECTIVE_POINTS
    if ":" in explanation or " - " in explanation:
        score += PUNCTUATION_POINTS
    if "(" in explanation and ")" in explanation:
        score += PARENTHESIS_POINTS
    if CITATION_RE.search(explanation):
        score += CITATION_POINTS
    return score


def extract_scientific_terms(explanation: str) -> List[str]:
    """Parenthetical spans and capitalised name pairs, in order of appearance."""
    return SCIENTIFIC_TERM_RE.findall(explanation)

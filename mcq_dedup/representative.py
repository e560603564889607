"""Pick the surviving record for each duplicate group and merge explanations."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .explanation_quality import extract_scientific_terms, score_explanation


SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
MIN_SENTENCE_LENGTH = 6


@dataclass
class GroupResolution:
    kept: Dict[str, Any]
    kept_id: Any = None
    removed: List[Dict[str, Any]] = field(default_factory=list)
    merged: bool = False
    member_scores: Dict[Any, int] = field(default_factory=dict)
    source_ids: List[Any] = field(default_factory=list)


def option_count(record: Dict[str, Any]) -> int:
    options = record.get("options")
    if isinstance(options, (dict, list)):
        return len(options)
    return 0


def record_id(record: Dict[str, Any]) -> int:
    try:
        return int(record.get("id"))
    except (TypeError, ValueError, OverflowError):
        return 0


def ranking_key(record: Dict[str, Any]):
    return (-score_explanation(record.get("explanation")), -option_count(record), record_id(record))


def choose_representative(group: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """Best explanation first, then the most options, then the oldest id."""
    if not group:
        raise ValueError("Cannot choose a representative from an empty group")
    if len(group) == 1:
        return group[0]
    return sorted(group, key=ranking_key)[0]


def split_sentences(explanation: str) -> List[str]:
    fragments = (fragment.strip() for fragment in SENTENCE_SPLIT_RE.split(explanation))
    return [fragment for fragment in fragments if len(fragment) >= MIN_SENTENCE_LENGTH]


def merge_explanations(explanations: Sequence[Optional[str]]) -> str:
    unique = list(dict.fromkeys(text for text in explanations if text))
    if len(unique) <= 1:
        return unique[0] if unique else ""

    sentences: Dict[str, None] = {}
    terms: Dict[str, None] = {}
    for text in unique:
        for term in extract_scientific_terms(text):
            terms.setdefault(term, None)
        for sentence in split_sentences(text):
            sentences.setdefault(sentence, None)

    combined = ". ".join(sentences) + "."
    if terms:
        terms_text = ", ".join(terms)
        if terms_text not in combined:
            combined += f" ({terms_text})"
    return combined


def resolve_group(group: Sequence[Dict[str, Any]]) -> GroupResolution:
    scores = {record.get("id"): score_explanation(record.get("explanation")) for record in group}
    if len(group) == 1:
        return GroupResolution(kept=group[0], kept_id=group[0].get("id"), member_scores=scores)

    best = choose_representative(group)
    resolution = GroupResolution(
        kept=best,
        kept_id=best.get("id"),
        removed=[record for record in group if record is not best],
        member_scores=scores,
        source_ids=[record.get("id") for record in group],
    )

    explanations = [
        record.get("explanation")
        for record in group
        if isinstance(record.get("explanation"), str) and record.get("explanation")
    ]
    if len(explanations) > 1:
        merged_text = merge_explanations(explanations)
        current = best.get("explanation")
        if len(merged_text) > len(current if isinstance(current, str) else ""):
            best["explanation"] = merged_text
            resolution.merged = True
    return resolution

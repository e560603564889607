"""Group near-duplicate MCQs into connected components of ``are_similar``."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from tqdm import tqdm

from .text_similarity import forms_similar, question_form


SimilarityFn = Callable[[Optional[str], Optional[str]], bool]


def question_text(record: Dict[str, Any]) -> str:
    question = record.get("question")
    return question if isinstance(question, str) else ""


def pair_relation(
    records: Sequence[Dict[str, Any]],
    similar_fn: Optional[SimilarityFn],
) -> Callable[[int, int], bool]:
    questions = [question_text(record) for record in records]
    if similar_fn is not None:
        return lambda left, right: similar_fn(questions[left], questions[right])
    # Normalised stems and keyword sets are built once per record, not per pair.
    forms = [question_form(question) for question in questions]
    return lambda left, right: forms_similar(forms[left], forms[right])


def group_similar(
    records: Sequence[Dict[str, Any]],
    similar_fn: Optional[SimilarityFn] = None,
    progress: bool = False,
) -> List[List[Dict[str, Any]]]:
    """Partition ``records`` (already sorted by id) into similarity groups.

    Each group is seeded by the first unprocessed record.  Records directly
    similar to the seed join first, then the remaining records are rescanned
    until a full pass adds nothing, so chains of paraphrases (A~B, B~C) end up
    together even when A and C share nothing.

    ``similar_fn`` replaces the default lexical test; it receives the two raw
    question strings.
    """
    similar = pair_relation(records, similar_fn)
    processed: Set[int] = set()
    groups: List[List[Dict[str, Any]]] = []

    for seed in tqdm(range(len(records)), desc="Clustering", disable=not progress):
        if seed in processed:
            continue

        members = [seed]
        processed.add(seed)

        for candidate in range(seed + 1, len(records)):
            if candidate in processed:
                continue
            if similar(seed, candidate):
                members.append(candidate)
                processed.add(candidate)

        found_more = True
        while found_more:
            found_more = False
            for candidate in range(len(records)):
                if candidate in processed:
                    continue
                if any(similar(member, candidate) for member in members):
                    members.append(candidate)
                    processed.add(candidate)
                    found_more = True

        groups.append([records[index] for index in members])

    return groups
